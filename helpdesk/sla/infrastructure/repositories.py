"""
SLA Infrastructure Repositories
=================================

Concrete implementations of repository interfaces using SQLAlchemy.

This layer contains the data access logic - how we store and retrieve
entities from the database. Repositories flush but never commit; the
request session owns the transaction.
"""

from typing import List, Optional
from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import and_, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.config import OPEN_STATUSES
from helpdesk.core import RepositoryException
from helpdesk.sla.application import (
    ISLAAlertRepository,
    ISLAConfigRepository,
    ISLALogRepository,
    ITicketRepository,
)
from helpdesk.sla.domain import SLAAlert, SLAConfig, SLALog, Ticket
from helpdesk.sla.infrastructure.models import SLAAlertModel, SLAConfigModel, SLALogModel, TicketModel


def _parse_uuid(value: Optional[str]) -> Optional[UUID]:
    if value is None:
        return None
    try:
        return UUID(str(value))
    except ValueError:
        return None


class SQLAlchemySLAConfigRepository(ISLAConfigRepository):
    """
    SQLAlchemy implementation of SLA config repository.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, tenant_id: str, config_id: str) -> Optional[SLAConfig]:
        model = await self._get_model(tenant_id, config_id)
        return self._to_entity(model) if model else None

    async def list(self, tenant_id: str, filters: dict) -> List[SLAConfig]:
        stmt = select(SLAConfigModel).where(SLAConfigModel.tenant_id == tenant_id)

        if "priority" in filters:
            stmt = stmt.where(SLAConfigModel.priority == filters["priority"])
        if "category_id" in filters:
            stmt = stmt.where(SLAConfigModel.category_id == filters["category_id"])
        if "is_active" in filters:
            stmt = stmt.where(SLAConfigModel.is_active == filters["is_active"])

        stmt = stmt.order_by(SLAConfigModel.priority, SLAConfigModel.created_at)
        result = await self._session.execute(stmt)
        return [self._to_entity(m) for m in result.scalars().all()]

    async def find_active(
        self,
        tenant_id: str,
        priority: str,
        category_id: Optional[str] = None
    ) -> Optional[SLAConfig]:
        """Category-specific config first, then the priority-only one."""
        if category_id is not None:
            model = await self._find_active_model(tenant_id, priority, category_id)
            if model is not None:
                return self._to_entity(model)

        model = await self._find_active_model(tenant_id, priority, None)
        return self._to_entity(model) if model else None

    async def exists_active(
        self,
        tenant_id: str,
        priority: str,
        category_id: Optional[str],
        exclude_id: Optional[str] = None
    ) -> bool:
        model = await self._find_active_model(tenant_id, priority, category_id, exclude_id)
        return model is not None

    async def create(self, config: SLAConfig) -> SLAConfig:
        model = SLAConfigModel(id=uuid4(), **self._columns(config))
        self._session.add(model)
        await self._session.flush()
        return self._to_entity(model)

    async def update(self, config: SLAConfig) -> SLAConfig:
        model = await self._get_model(config.tenant_id, config.id)
        if model is None:
            raise RepositoryException(f"SLA config {config.id} not found")

        for name, value in self._columns(config).items():
            setattr(model, name, value)

        await self._session.flush()
        return self._to_entity(model)

    async def _get_model(self, tenant_id: str, config_id: str) -> Optional[SLAConfigModel]:
        config_uuid = _parse_uuid(config_id)
        if config_uuid is None:
            return None

        stmt = select(SLAConfigModel).where(
            SLAConfigModel.id == config_uuid,
            SLAConfigModel.tenant_id == tenant_id,
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def _find_active_model(
        self,
        tenant_id: str,
        priority: str,
        category_id: Optional[str],
        exclude_id: Optional[str] = None
    ) -> Optional[SLAConfigModel]:
        category_clause = (
            SLAConfigModel.category_id.is_(None)
            if category_id is None
            else SLAConfigModel.category_id == category_id
        )
        stmt = select(SLAConfigModel).where(
            SLAConfigModel.tenant_id == tenant_id,
            SLAConfigModel.priority == priority,
            SLAConfigModel.is_active.is_(True),
            category_clause,
        )
        exclude_uuid = _parse_uuid(exclude_id)
        if exclude_uuid is not None:
            stmt = stmt.where(SLAConfigModel.id != exclude_uuid)

        stmt = stmt.order_by(SLAConfigModel.updated_at.desc()).limit(1)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    def _columns(config: SLAConfig) -> dict:
        return {
            "tenant_id": config.tenant_id,
            "category_id": config.category_id,
            "priority": config.priority,
            "first_response_minutes": config.first_response_minutes,
            "resolution_minutes": config.resolution_minutes,
            "business_hours_start": config.business_hours_start,
            "business_hours_end": config.business_hours_end,
            "business_days": list(config.business_days),
            "timezone": config.timezone,
            "is_active": config.is_active,
            "created_at": config.created_at,
            "updated_at": config.updated_at,
        }

    @staticmethod
    def _to_entity(model: SLAConfigModel) -> SLAConfig:
        return SLAConfig(
            id=str(model.id),
            tenant_id=model.tenant_id,
            priority=model.priority,
            category_id=model.category_id,
            first_response_minutes=model.first_response_minutes,
            resolution_minutes=model.resolution_minutes,
            business_hours_start=model.business_hours_start,
            business_hours_end=model.business_hours_end,
            business_days=list(model.business_days),
            timezone=model.timezone,
            is_active=model.is_active,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )


class SQLAlchemyTicketRepository(ITicketRepository):
    """
    SQLAlchemy implementation of ticket repository.

    Handles persistence of Ticket entities using async SQLAlchemy.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, tenant_id: str, ticket_id: str) -> Optional[Ticket]:
        """Get ticket by internal ID."""
        ticket_uuid = _parse_uuid(ticket_id)
        if ticket_uuid is None:
            return None

        stmt = select(TicketModel).where(
            TicketModel.id == ticket_uuid,
            TicketModel.tenant_id == tenant_id,
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def get_by_external_id(self, tenant_id: str, external_id: str) -> Optional[Ticket]:
        """Get ticket by external ID."""
        model = await self._get_model_by_external_id(tenant_id, external_id)
        return self._to_entity(model) if model else None

    async def create(self, ticket: Ticket) -> Ticket:
        """Create new ticket."""
        model = TicketModel(id=uuid4(), **self._columns(ticket))
        self._session.add(model)
        await self._session.flush()
        return self._to_entity(model)

    async def update(self, ticket: Ticket) -> Ticket:
        """Update existing ticket."""
        model = await self._get_model_by_external_id(ticket.tenant_id, ticket.external_id)
        if not model:
            raise RepositoryException(f"Ticket {ticket.external_id} not found")

        for name, value in self._columns(ticket).items():
            setattr(model, name, value)

        await self._session.flush()
        return self._to_entity(model)

    async def list_open(self, tenant_id: str) -> List[Ticket]:
        stmt = (
            select(TicketModel)
            .where(TicketModel.tenant_id == tenant_id, TicketModel.status.in_(OPEN_STATUSES))
            .order_by(TicketModel.created_at.asc())
        )
        result = await self._session.execute(stmt)
        return [self._to_entity(m) for m in result.scalars().all()]

    async def list_in_period(
        self,
        tenant_id: str,
        start: datetime,
        end: datetime
    ) -> List[Ticket]:
        stmt = (
            select(TicketModel)
            .where(
                TicketModel.tenant_id == tenant_id,
                or_(
                    TicketModel.created_at.between(start, end),
                    TicketModel.resolved_at.between(start, end),
                    and_(TicketModel.resolved_at.is_(None), TicketModel.closed_at.between(start, end)),
                ),
            )
            .order_by(TicketModel.created_at.asc())
        )
        result = await self._session.execute(stmt)
        return [self._to_entity(m) for m in result.scalars().all()]

    async def _get_model_by_external_id(self, tenant_id: str, external_id: str) -> Optional[TicketModel]:
        stmt = select(TicketModel).where(
            TicketModel.tenant_id == tenant_id,
            TicketModel.external_id == external_id,
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    def _columns(ticket: Ticket) -> dict:
        return {
            "tenant_id": ticket.tenant_id,
            "external_id": ticket.external_id,
            "priority": ticket.priority,
            "category_id": ticket.category_id,
            "status": ticket.status,
            "subject": ticket.subject,
            "created_at": ticket.created_at,
            "updated_at": ticket.updated_at,
            "first_response_at": ticket.first_response_at,
            "resolved_at": ticket.resolved_at,
            "closed_at": ticket.closed_at,
        }

    @staticmethod
    def _to_entity(model: TicketModel) -> Ticket:
        return Ticket(
            id=str(model.id),
            tenant_id=model.tenant_id,
            external_id=model.external_id,
            priority=model.priority,
            category_id=model.category_id,
            status=model.status,
            subject=model.subject,
            created_at=model.created_at,
            updated_at=model.updated_at,
            first_response_at=model.first_response_at,
            resolved_at=model.resolved_at,
            closed_at=model.closed_at,
        )


class SQLAlchemyAlertRepository(ISLAAlertRepository):
    """
    SQLAlchemy implementation of SLA alert repository.

    Handles persistence of SLAAlert entities.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def list_for_ticket(self, ticket_id: str) -> List[SLAAlert]:
        ticket_uuid = _parse_uuid(ticket_id)
        if ticket_uuid is None:
            return []

        stmt = select(SLAAlertModel).where(SLAAlertModel.ticket_id == ticket_uuid)
        result = await self._session.execute(stmt)
        return [self._to_entity(m) for m in result.scalars().all()]

    async def list_open(self, tenant_id: str) -> List[SLAAlert]:
        stmt = (
            select(SLAAlertModel)
            .where(SLAAlertModel.tenant_id == tenant_id, SLAAlertModel.resolved_at.is_(None))
            .order_by(SLAAlertModel.created_at.asc())
        )
        result = await self._session.execute(stmt)
        return [self._to_entity(m) for m in result.scalars().all()]

    async def create(self, alert: SLAAlert) -> Optional[SLAAlert]:
        """
        Create new alert.

        The insert runs in a SAVEPOINT so a unique-constraint collision with
        a concurrent evaluation only rolls back this insert.
        """
        model = SLAAlertModel(
            id=uuid4() if not alert.id else UUID(alert.id),
            tenant_id=alert.tenant_id,
            ticket_id=UUID(alert.ticket_id),
            alert_type=alert.alert_type,
            severity=alert.severity,
            message=alert.message,
            due_at=alert.due_at,
            created_at=alert.created_at,
            resolved_at=alert.resolved_at,
        )

        try:
            async with self._session.begin_nested():
                self._session.add(model)
                await self._session.flush()
        except IntegrityError:
            return None

        # Update alert with generated ID
        alert.id = str(model.id)
        return alert

    async def resolve(self, alert_id: str, resolved_at: datetime) -> None:
        """Mark alert as resolved."""
        alert_uuid = _parse_uuid(alert_id)
        if alert_uuid is None:
            raise RepositoryException(f"Invalid alert ID: {alert_id}")

        stmt = select(SLAAlertModel).where(SLAAlertModel.id == alert_uuid)
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()

        if not model:
            raise RepositoryException(f"Alert {alert_id} not found")

        if model.resolved_at is None:
            model.resolved_at = resolved_at
            await self._session.flush()

    @staticmethod
    def _to_entity(model: SLAAlertModel) -> SLAAlert:
        return SLAAlert(
            id=str(model.id),
            tenant_id=model.tenant_id,
            ticket_id=str(model.ticket_id),
            alert_type=model.alert_type,
            severity=model.severity,
            message=model.message,
            due_at=model.due_at,
            created_at=model.created_at,
            resolved_at=model.resolved_at,
        )


class SQLAlchemySLALogRepository(ISLALogRepository):
    """
    SQLAlchemy implementation of the SLA audit trail.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def create(self, log: SLALog) -> SLALog:
        model = SLALogModel(
            id=uuid4(),
            tenant_id=log.tenant_id,
            ticket_id=_parse_uuid(log.ticket_id),
            config_id=_parse_uuid(log.config_id),
            user_id=log.user_id,
            action=log.action,
            event_type=log.event_type,
            description=log.description,
            old_values=log.old_values,
            new_values=log.new_values,
            elapsed_minutes=log.elapsed_minutes,
            created_at=log.created_at,
        )
        self._session.add(model)
        await self._session.flush()

        log.id = str(model.id)
        return log

    async def list(self, tenant_id: str, filters: dict) -> List[SLALog]:
        stmt = select(SLALogModel).where(SLALogModel.tenant_id == tenant_id)

        if "ticket_id" in filters:
            ticket_uuid = _parse_uuid(filters["ticket_id"])
            if ticket_uuid is None:
                return []
            stmt = stmt.where(SLALogModel.ticket_id == ticket_uuid)
        if "action" in filters:
            stmt = stmt.where(SLALogModel.action == filters["action"])
        if "event_type" in filters:
            stmt = stmt.where(SLALogModel.event_type == filters["event_type"])
        if "date_from" in filters:
            stmt = stmt.where(SLALogModel.created_at >= filters["date_from"])
        if "date_to" in filters:
            stmt = stmt.where(SLALogModel.created_at <= filters["date_to"])

        stmt = stmt.order_by(SLALogModel.created_at.desc())
        result = await self._session.execute(stmt)
        return [self._to_entity(m) for m in result.scalars().all()]

    @staticmethod
    def _to_entity(model: SLALogModel) -> SLALog:
        return SLALog(
            id=str(model.id),
            tenant_id=model.tenant_id,
            ticket_id=str(model.ticket_id) if model.ticket_id else None,
            config_id=str(model.config_id) if model.config_id else None,
            user_id=model.user_id,
            action=model.action,
            event_type=model.event_type,
            description=model.description,
            old_values=model.old_values,
            new_values=model.new_values,
            elapsed_minutes=model.elapsed_minutes,
            created_at=model.created_at,
        )
