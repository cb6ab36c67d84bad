"""
SLA Application Services
=========================

Application services orchestrate business logic and coordinate between
domain entities and repositories.

Following SOLID principles:
- Single Responsibility: Each service has one clear purpose
- Dependency Inversion: Depend on abstractions (repositories), not concrete implementations
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional, Union
from abc import ABC, abstractmethod

from helpdesk.config import AlertType, SLALogAction, SLAState, SLAType, settings
from helpdesk.core import (
    ConfigurationException,
    ConflictException,
    ResourceNotFoundException,
    ValidationException,
)
from helpdesk.shared.infrastructure.logging import get_logger
from helpdesk.sla.application.dto import (
    IngestResponse,
    SLAConfigCreateDTO,
    SLAConfigUpdateDTO,
    TicketCreateDTO,
    TicketIngestRequest,
)
from helpdesk.sla.domain import (
    BusinessHours,
    DeadlineStatus,
    SLAAlert,
    SLACalculator,
    SLAConfig,
    SLALog,
    SLANotApplicable,
    SLAReport,
    Ticket,
    TicketSLAStatus,
)
from helpdesk.shared.timeutils import as_utc

logger = get_logger(__name__)

SLAEvaluation = Union[TicketSLAStatus, SLANotApplicable]


# ========== Repository Interfaces (Dependency Inversion) ==========

class ISLAConfigRepository(ABC):
    """Interface for SLA configuration access."""

    @abstractmethod
    async def get_by_id(self, tenant_id: str, config_id: str) -> Optional[SLAConfig]:
        """Get a tenant's config by ID."""

    @abstractmethod
    async def list(self, tenant_id: str, filters: dict) -> List[SLAConfig]:
        """List a tenant's configs (filters: priority, category_id, is_active)."""

    @abstractmethod
    async def find_active(
        self,
        tenant_id: str,
        priority: str,
        category_id: Optional[str] = None
    ) -> Optional[SLAConfig]:
        """
        Active config for a ticket.

        A config for the ticket's category beats the priority-only config.
        None means no SLA applies.
        """

    @abstractmethod
    async def exists_active(
        self,
        tenant_id: str,
        priority: str,
        category_id: Optional[str],
        exclude_id: Optional[str] = None
    ) -> bool:
        """Check for an active config with exactly this priority and category."""

    @abstractmethod
    async def create(self, config: SLAConfig) -> SLAConfig:
        """Create new config."""

    @abstractmethod
    async def update(self, config: SLAConfig) -> SLAConfig:
        """Persist changes to an existing config."""


class ITicketRepository(ABC):
    """Interface for ticket data access."""

    @abstractmethod
    async def get_by_id(self, tenant_id: str, ticket_id: str) -> Optional[Ticket]:
        """Get ticket by internal ID."""

    @abstractmethod
    async def get_by_external_id(self, tenant_id: str, external_id: str) -> Optional[Ticket]:
        """Get ticket by external ID."""

    @abstractmethod
    async def create(self, ticket: Ticket) -> Ticket:
        """Create new ticket."""

    @abstractmethod
    async def update(self, ticket: Ticket) -> Ticket:
        """Update existing ticket."""

    @abstractmethod
    async def list_open(self, tenant_id: str) -> List[Ticket]:
        """Tickets whose status is still open."""

    @abstractmethod
    async def list_in_period(
        self,
        tenant_id: str,
        start: datetime,
        end: datetime
    ) -> List[Ticket]:
        """Tickets created, resolved or closed within [start, end]."""


class ISLAAlertRepository(ABC):
    """Interface for SLA alert data access."""

    @abstractmethod
    async def list_for_ticket(self, ticket_id: str) -> List[SLAAlert]:
        """All alerts of a ticket, open or resolved."""

    @abstractmethod
    async def list_open(self, tenant_id: str) -> List[SLAAlert]:
        """Unresolved alerts of a tenant, oldest first."""

    @abstractmethod
    async def create(self, alert: SLAAlert) -> Optional[SLAAlert]:
        """
        Create new alert.

        Returns None when an alert of the same (ticket, type) already exists.
        """

    @abstractmethod
    async def resolve(self, alert_id: str, resolved_at: datetime) -> None:
        """Mark alert as resolved."""


class ISLALogRepository(ABC):
    """Interface for the SLA audit trail."""

    @abstractmethod
    async def create(self, log: SLALog) -> SLALog:
        """Append an entry."""

    @abstractmethod
    async def list(self, tenant_id: str, filters: dict) -> List[SLALog]:
        """
        A tenant's entries, newest first.

        Filters: ticket_id, action, event_type, date_from, date_to.
        """


def _config_snapshot(config: SLAConfig) -> dict:
    return {
        "priority": config.priority,
        "category_id": config.category_id,
        "first_response_minutes": config.first_response_minutes,
        "resolution_minutes": config.resolution_minutes,
        "business_hours_start": config.business_hours_start,
        "business_hours_end": config.business_hours_end,
        "business_days": list(config.business_days),
        "timezone": config.timezone,
        "is_active": config.is_active,
    }


# ========== Application Services ==========

class SLAConfigService:
    """
    Service for managing a tenant's SLA configurations.

    Every change is written to the audit trail in the same transaction.
    """

    def __init__(self, config_repository: ISLAConfigRepository, log_repository: ISLALogRepository):
        self._config_repo = config_repository
        self._log_repo = log_repository

    async def list_configs(
        self,
        tenant_id: str,
        priority: Optional[str] = None,
        category_id: Optional[str] = None,
        is_active: Optional[bool] = None
    ) -> List[SLAConfig]:
        filters = {}
        if priority is not None:
            filters["priority"] = priority
        if category_id is not None:
            filters["category_id"] = category_id
        if is_active is not None:
            filters["is_active"] = is_active
        return await self._config_repo.list(tenant_id, filters)

    async def get_config(self, tenant_id: str, config_id: str) -> SLAConfig:
        """
        Raises:
            ResourceNotFoundException: If the tenant has no such config
        """
        config = await self._config_repo.get_by_id(tenant_id, config_id)
        if config is None:
            raise ResourceNotFoundException("SLA config", config_id)
        return config

    async def create_config(
        self,
        tenant_id: str,
        dto: SLAConfigCreateDTO,
        user_id: Optional[str] = None
    ) -> SLAConfig:
        """
        Create a config.

        Raises:
            ConflictException: If an active config already covers the same
                priority and category
            ConfigurationException: If the business hours are unusable
        """
        now = datetime.now(timezone.utc)
        config = SLAConfig(
            id=None,
            tenant_id=tenant_id,
            priority=dto.priority,
            category_id=dto.category_id,
            first_response_minutes=dto.first_response_minutes,
            resolution_minutes=dto.resolution_minutes,
            business_hours_start=dto.business_hours_start,
            business_hours_end=dto.business_hours_end,
            business_days=list(dto.business_days),
            timezone=dto.timezone or settings.default_timezone,
            is_active=dto.is_active,
            created_at=now,
            updated_at=now,
        )
        config.business_hours()

        if config.is_active:
            await self._ensure_no_active_duplicate(config)

        config = await self._config_repo.create(config)
        category = f" and category {config.category_id}" if config.category_id else ""
        await self._log_repo.create(SLALog(
            id=None,
            tenant_id=tenant_id,
            config_id=config.id,
            user_id=user_id,
            action=SLALogAction.CREATED,
            event_type="config_created",
            description=f"SLA config created for priority {config.priority}{category}",
            new_values=_config_snapshot(config),
            created_at=now,
        ))
        logger.info(
            "SLA config created",
            extra={"tenant_id": tenant_id, "config_id": config.id, "priority": config.priority}
        )
        return config

    async def update_config(
        self,
        tenant_id: str,
        config_id: str,
        dto: SLAConfigUpdateDTO,
        user_id: Optional[str] = None
    ) -> SLAConfig:
        """
        Apply a partial update.

        Raises:
            ResourceNotFoundException: If the tenant has no such config
            ConflictException: If re-activating would duplicate an active config
            ConfigurationException: If the resulting business hours are unusable
        """
        config = await self.get_config(tenant_id, config_id)
        changes = dto.model_dump(exclude_unset=True)
        before = _config_snapshot(config)
        was_active = config.is_active

        for name, value in changes.items():
            setattr(config, name, value)

        config.business_hours()
        if config.is_active and not was_active:
            await self._ensure_no_active_duplicate(config)

        config.updated_at = datetime.now(timezone.utc)
        config = await self._config_repo.update(config)
        await self._log_repo.create(SLALog(
            id=None,
            tenant_id=tenant_id,
            config_id=config_id,
            user_id=user_id,
            action=SLALogAction.UPDATED,
            event_type="config_updated",
            description="SLA config updated",
            old_values={name: before[name] for name in changes},
            new_values={name: _config_snapshot(config)[name] for name in changes},
            created_at=config.updated_at,
        ))
        logger.info(
            "SLA config updated",
            extra={"tenant_id": tenant_id, "config_id": config_id, "fields": sorted(changes)}
        )
        return config

    async def deactivate_config(
        self,
        tenant_id: str,
        config_id: str,
        user_id: Optional[str] = None
    ) -> SLAConfig:
        """Configs are never deleted, only deactivated."""
        config = await self.get_config(tenant_id, config_id)
        if config.is_active:
            config.is_active = False
            config.updated_at = datetime.now(timezone.utc)
            config = await self._config_repo.update(config)
            await self._log_repo.create(SLALog(
                id=None,
                tenant_id=tenant_id,
                config_id=config_id,
                user_id=user_id,
                action=SLALogAction.DEACTIVATED,
                event_type="config_deactivated",
                description=f"SLA config deactivated for priority {config.priority}",
                old_values=_config_snapshot(config) | {"is_active": True},
                created_at=config.updated_at,
            ))
            logger.info(
                "SLA config deactivated",
                extra={"tenant_id": tenant_id, "config_id": config_id}
            )
        return config

    async def _ensure_no_active_duplicate(self, config: SLAConfig) -> None:
        if await self._config_repo.exists_active(
            config.tenant_id, config.priority, config.category_id, exclude_id=config.id
        ):
            raise ConflictException(
                "An active SLA config already exists for this priority and category",
                {"priority": config.priority, "category_id": config.category_id}
            )


class SLAService:
    """
    Service for SLA calculations and ticket tracking.

    Coordinates between domain logic and data access.
    """

    def __init__(
        self,
        ticket_repository: ITicketRepository,
        config_repository: ISLAConfigRepository,
        risk_threshold_percent: Optional[float] = None
    ):
        self._ticket_repo = ticket_repository
        self._config_repo = config_repository
        self._risk_threshold = (
            risk_threshold_percent
            if risk_threshold_percent is not None
            else settings.sla_risk_threshold_percent
        )

    async def ingest_tickets(self, tenant_id: str, request: TicketIngestRequest) -> IngestResponse:
        """
        Create or update tickets by external ID.

        An existing ticket is only overwritten by a newer ``updated_at``.
        A ticket that fails validation is counted and reported; the rest of
        the batch still goes through.
        """
        created = 0
        updated = 0
        errors = []

        for ticket_dto in request.tickets:
            try:
                existing = await self._ticket_repo.get_by_external_id(tenant_id, ticket_dto.id)
                ticket = self._to_ticket(tenant_id, ticket_dto, existing)
                if existing is None:
                    await self._ticket_repo.create(ticket)
                    created += 1
                elif ticket.updated_at > as_utc(existing.updated_at):
                    await self._ticket_repo.update(ticket)
                    updated += 1
            except ValidationException as e:
                errors.append(f"Ticket {ticket_dto.id}: {e.message}")

        logger.info(
            "Tickets ingested",
            extra={
                "tenant_id": tenant_id,
                "created_count": created,
                "updated_count": updated,
                "failed_count": len(errors),
            }
        )
        return IngestResponse(created=created, updated=updated, failed=len(errors), errors=errors)

    async def get_ticket(self, tenant_id: str, ticket_id: str) -> Ticket:
        ticket = await self._ticket_repo.get_by_id(tenant_id, ticket_id)
        if ticket is None:
            raise ResourceNotFoundException("Ticket", ticket_id)
        return ticket

    async def evaluate(self, ticket: Ticket, now: Optional[datetime] = None) -> SLAEvaluation:
        """
        Compute and classify both deadlines of a ticket.

        Returns:
            TicketSLAStatus, or SLANotApplicable when no active config matches

        Raises:
            ConfigurationException: If the matching config's business hours
                are unusable
        """
        now = now or datetime.now(timezone.utc)
        config = await self._config_repo.find_active(
            ticket.tenant_id, ticket.priority, ticket.category_id
        )
        if config is None:
            logger.info(
                "SLA not applicable",
                extra={
                    "sla_outcome": "not_applicable",
                    "tenant_id": ticket.tenant_id,
                    "ticket_id": ticket.id,
                    "priority": ticket.priority,
                }
            )
            return SLANotApplicable(
                tenant_id=ticket.tenant_id,
                ticket_id=ticket.id,
                priority=ticket.priority,
                category_id=ticket.category_id,
            )

        try:
            hours = config.business_hours()
        except ConfigurationException:
            logger.error(
                "SLA configuration unusable",
                extra={
                    "sla_outcome": "configuration_error",
                    "tenant_id": ticket.tenant_id,
                    "config_id": config.id,
                }
            )
            raise

        return TicketSLAStatus(
            ticket_id=ticket.id,
            priority=ticket.priority,
            config_id=config.id,
            evaluated_at=now,
            first_response=self._classify(ticket, hours, config, SLAType.FIRST_RESPONSE, now),
            resolution=self._classify(ticket, hours, config, SLAType.RESOLUTION, now),
        )

    def _classify(
        self,
        ticket: Ticket,
        hours: BusinessHours,
        config: SLAConfig,
        sla_type: str,
        now: datetime
    ) -> DeadlineStatus:
        budget = config.minutes_for(sla_type)
        due_at = hours.add_business_minutes(ticket.created_at, budget)
        return SLACalculator.classify(
            sla_type=sla_type,
            created_at=ticket.created_at,
            due_at=due_at,
            budget_minutes=budget,
            hours=hours,
            current_time=now,
            event_at=ticket.event_for(sla_type),
            risk_threshold_percent=self._risk_threshold,
        )

    @staticmethod
    def _to_ticket(tenant_id: str, dto: TicketCreateDTO, existing: Optional[Ticket]) -> Ticket:
        return Ticket(
            id=existing.id if existing else None,
            tenant_id=tenant_id,
            external_id=dto.id,
            priority=dto.priority,
            category_id=dto.category_id,
            status=dto.status,
            subject=dto.subject,
            created_at=dto.created_at,
            updated_at=dto.updated_at,
            first_response_at=dto.first_response_at,
            resolved_at=dto.resolved_at,
            closed_at=dto.closed_at,
        )


class SLAAlertService:
    """
    Service for evaluating SLA compliance and generating alerts.

    Evaluation runs on read: listing alerts first re-evaluates the tenant's
    open tickets, plus any ticket that still has an open alert. At most one
    alert exists per (ticket, alert type). Raising a breach alert and closing
    alerts once the event is recorded are written to the audit trail.
    """

    def __init__(
        self,
        sla_service: SLAService,
        ticket_repository: ITicketRepository,
        alert_repository: ISLAAlertRepository,
        log_repository: ISLALogRepository
    ):
        self._sla_service = sla_service
        self._ticket_repo = ticket_repository
        self._alert_repo = alert_repository
        self._log_repo = log_repository

    async def evaluate_tenant(self, tenant_id: str, now: Optional[datetime] = None) -> List[SLAAlert]:
        """
        Evaluate SLA for all open tickets of a tenant.

        Tickets resolved or closed since their last evaluation are included
        while they have open alerts, so those alerts get closed.

        Returns:
            List of new alerts created
        """
        now = now or datetime.now(timezone.utc)
        new_alerts = []

        tickets = {ticket.id: ticket for ticket in await self._ticket_repo.list_open(tenant_id)}
        for alert in await self._alert_repo.list_open(tenant_id):
            if alert.ticket_id in tickets:
                continue
            ticket = await self._ticket_repo.get_by_id(tenant_id, alert.ticket_id)
            if ticket is not None:
                tickets[ticket.id] = ticket

        for ticket in tickets.values():
            new_alerts.extend(await self.evaluate_ticket(ticket, now))

        if new_alerts:
            logger.info(
                "SLA alerts raised",
                extra={"tenant_id": tenant_id, "count": len(new_alerts)}
            )
        return new_alerts

    async def evaluate_ticket(self, ticket: Ticket, now: Optional[datetime] = None) -> List[SLAAlert]:
        """
        Bring a ticket's alerts in line with its deadline states.

        Returns:
            The alerts created by this call (empty when nothing changed)
        """
        now = now or datetime.now(timezone.utc)
        result = await self._sla_service.evaluate(ticket, now)
        if isinstance(result, SLANotApplicable):
            return []

        existing = {
            alert.alert_type: alert
            for alert in await self._alert_repo.list_for_ticket(ticket.id)
        }
        created = []

        for deadline in result.deadlines:
            at_risk_type = AlertType.for_state(deadline.sla_type, SLAState.AT_RISK)
            breached_type = AlertType.for_state(deadline.sla_type, SLAState.BREACHED)

            if deadline.state == SLAState.AT_RISK:
                alert = await self._ensure_alert(ticket, deadline, at_risk_type, existing, now)
                if alert:
                    created.append(alert)

            elif deadline.state == SLAState.BREACHED:
                alert = await self._ensure_alert(ticket, deadline, breached_type, existing, now)
                if alert:
                    created.append(alert)
                await self._close(existing.get(at_risk_type), now)

            elif deadline.state in (SLAState.MET, SLAState.MET_LATE):
                closed_at_risk = await self._close(existing.get(at_risk_type), now)
                closed_breach = await self._close(existing.get(breached_type), now)
                if closed_at_risk or closed_breach:
                    await self._log_ticket_event(
                        ticket,
                        deadline,
                        SLALogAction.RESOLUTION,
                        f"{deadline.sla_type}_{deadline.state}",
                        f"{deadline.sla_type.replace('_', ' ').capitalize()} recorded for ticket "
                        f"{ticket.external_id} ({deadline.state.replace('_', ' ')})",
                        now,
                    )

        return created

    async def list_open_alerts(self, tenant_id: str) -> List[SLAAlert]:
        return await self._alert_repo.list_open(tenant_id)

    async def _ensure_alert(
        self,
        ticket: Ticket,
        deadline: DeadlineStatus,
        alert_type: str,
        existing: Dict[str, SLAAlert],
        now: datetime
    ) -> Optional[SLAAlert]:
        if alert_type in existing:
            return None

        alert = SLAAlert(
            id=None,
            tenant_id=ticket.tenant_id,
            ticket_id=ticket.id,
            alert_type=alert_type,
            severity=ticket.priority,
            message=SLACalculator.alert_message(deadline.sla_type, deadline.state, ticket.external_id),
            due_at=deadline.due_at,
            created_at=now,
        )
        saved = await self._alert_repo.create(alert)
        if saved is None:
            # Another request inserted the same alert first
            logger.debug(
                "Duplicate SLA alert skipped",
                extra={"ticket_id": ticket.id, "alert_type": alert_type}
            )
            return None

        existing[alert_type] = saved
        logger.warning(
            "SLA alert created",
            extra={
                "tenant_id": ticket.tenant_id,
                "ticket_id": ticket.id,
                "alert_type": alert_type,
                "severity": ticket.priority,
            }
        )
        if deadline.state == SLAState.BREACHED:
            await self._log_ticket_event(
                ticket, deadline, SLALogAction.VIOLATION,
                f"{deadline.sla_type}_breach", saved.message, now,
            )
        return saved

    async def _close(self, alert: Optional[SLAAlert], now: datetime) -> bool:
        if alert is not None and alert.is_open:
            alert.resolve(now)
            await self._alert_repo.resolve(alert.id, now)
            return True
        return False

    async def _log_ticket_event(
        self,
        ticket: Ticket,
        deadline: DeadlineStatus,
        action: str,
        event_type: str,
        description: str,
        now: datetime
    ) -> None:
        await self._log_repo.create(SLALog(
            id=None,
            tenant_id=ticket.tenant_id,
            ticket_id=ticket.id,
            action=action,
            event_type=event_type,
            description=description,
            elapsed_minutes=deadline.elapsed_minutes,
            created_at=now,
        ))


class SLALogService:
    """Read access to the SLA audit trail."""

    def __init__(self, log_repository: ISLALogRepository):
        self._log_repo = log_repository

    async def list_logs(
        self,
        tenant_id: str,
        ticket_id: Optional[str] = None,
        action: Optional[str] = None,
        event_type: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None
    ) -> List[SLALog]:
        """
        Raises:
            ValidationException: If date_to is before date_from
        """
        if date_from and date_to and date_to < date_from:
            raise ValidationException(
                "date_to must not be before date_from",
                {"date_from": date_from.isoformat(), "date_to": date_to.isoformat()}
            )

        filters = {
            "ticket_id": ticket_id,
            "action": action,
            "event_type": event_type,
            "date_from": date_from,
            "date_to": date_to,
        }
        return await self._log_repo.list(
            tenant_id, {name: value for name, value in filters.items() if value is not None}
        )


class SLAReportService:
    """
    Service for SLA compliance reports.
    """

    def __init__(self, sla_service: SLAService, ticket_repository: ITicketRepository):
        self._sla_service = sla_service
        self._ticket_repo = ticket_repository

    async def generate(
        self,
        tenant_id: str,
        start: datetime,
        end: datetime,
        now: Optional[datetime] = None
    ) -> SLAReport:
        """
        Aggregate compliance over tickets created or resolved in [start, end].

        Tickets without an applicable SLA are left out of every counter.

        Raises:
            ValidationException: If end is before start
        """
        if end < start:
            raise ValidationException(
                "end_date must not be before start_date",
                {"start_date": start.isoformat(), "end_date": end.isoformat()}
            )

        now = now or datetime.now(timezone.utc)
        report = SLAReport(tenant_id=tenant_id, period_start=start, period_end=end)

        for ticket in await self._ticket_repo.list_in_period(tenant_id, start, end):
            result = await self._sla_service.evaluate(ticket, now)
            if isinstance(result, SLANotApplicable):
                continue
            report.add(result)

        logger.info(
            "SLA report generated",
            extra={
                "tenant_id": tenant_id,
                "total_tickets": report.overall.total_tickets,
                "compliance_rate": report.overall.compliance_rate,
            }
        )
        return report
