"""
SLA Domain Entities
====================

Pure Python domain entities for SLA tracking.

Following Domain-Driven Design principles, these entities contain
business logic and are free of infrastructure concerns.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from helpdesk.config import OPEN_STATUSES, SLAState, SLAType
from helpdesk.core import ValidationException
from helpdesk.sla.domain.business_hours import BusinessHours
from helpdesk.sla.domain.value_objects import DeadlineStatus


@dataclass
class SLAConfig:
    """
    SLA policy for one (tenant, priority[, category]).

    At most one active config exists per combination; a category-specific
    config takes precedence over the priority-only one.
    """

    id: Optional[str]
    tenant_id: str
    priority: str
    first_response_minutes: int
    resolution_minutes: int
    business_hours_start: str = "09:00"
    business_hours_end: str = "18:00"
    business_days: List[int] = field(default_factory=lambda: [1, 2, 3, 4, 5])
    timezone: str = "Africa/Luanda"
    category_id: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def business_hours(self) -> BusinessHours:
        """
        Raises:
            ConfigurationException: If the stored window cannot be used
        """
        return BusinessHours.from_config(
            self.business_hours_start,
            self.business_hours_end,
            self.business_days,
            self.timezone,
        )

    def minutes_for(self, sla_type: str) -> int:
        if sla_type == SLAType.FIRST_RESPONSE:
            return self.first_response_minutes
        return self.resolution_minutes


@dataclass
class Ticket:
    """
    Ticket entity as seen by the SLA engine.

    Only the timestamps matter for SLA purposes; the ticket lifecycle itself
    is owned elsewhere.
    """

    id: Optional[str]
    tenant_id: str
    external_id: str
    priority: str
    status: str
    subject: str

    created_at: datetime
    updated_at: datetime

    category_id: Optional[str] = None
    first_response_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None

    def __post_init__(self):
        """Validate ticket on initialization."""
        if self.updated_at < self.created_at:
            raise ValidationException("updated_at cannot be before created_at")

        if self.first_response_at and self.first_response_at < self.created_at:
            raise ValidationException("first_response_at cannot be before created_at")

        if self.resolved_at and self.resolved_at < self.created_at:
            raise ValidationException("resolved_at cannot be before created_at")

        if self.closed_at and self.closed_at < self.created_at:
            raise ValidationException("closed_at cannot be before created_at")

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES

    @property
    def resolution_event_at(self) -> Optional[datetime]:
        """Resolution time, falling back to close time for tickets closed without one."""
        return self.resolved_at or self.closed_at

    def event_for(self, sla_type: str) -> Optional[datetime]:
        if sla_type == SLAType.FIRST_RESPONSE:
            return self.first_response_at
        return self.resolution_event_at


@dataclass
class TicketSLAStatus:
    """Both deadlines of a ticket, classified at ``evaluated_at``."""

    ticket_id: str
    priority: str
    config_id: Optional[str]
    evaluated_at: datetime
    first_response: DeadlineStatus
    resolution: DeadlineStatus

    @property
    def deadlines(self) -> Tuple[DeadlineStatus, DeadlineStatus]:
        return self.first_response, self.resolution

    @property
    def is_compliant(self) -> bool:
        return all(d.state == SLAState.MET for d in self.deadlines)

    @property
    def is_breached(self) -> bool:
        return any(d.is_breach for d in self.deadlines)

    @property
    def is_at_risk(self) -> bool:
        return not self.is_breached and any(d.state == SLAState.AT_RISK for d in self.deadlines)


@dataclass
class SLAAlert:
    """
    SLA alert entity.

    At most one alert exists per (ticket, alert type). An alert is resolved
    once the deadline's event is recorded, or when a breach supersedes an
    at-risk alert.
    """

    id: Optional[str]
    tenant_id: str
    ticket_id: str
    alert_type: str
    severity: str
    message: str
    due_at: datetime
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    resolved_at: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        return self.resolved_at is None

    @property
    def sla_type(self) -> str:
        if self.alert_type.startswith(SLAType.FIRST_RESPONSE):
            return SLAType.FIRST_RESPONSE
        return SLAType.RESOLUTION

    def resolve(self, timestamp: Optional[datetime] = None) -> None:
        if self.resolved_at is None:
            self.resolved_at = timestamp or datetime.now(timezone.utc)


@dataclass
class SLALog:
    """
    Audit trail entry.

    Config changes carry ``config_id``; violations and resolutions carry
    ``ticket_id``. Entries are append-only.
    """

    id: Optional[str]
    tenant_id: str
    action: str
    event_type: str
    description: str
    ticket_id: Optional[str] = None
    config_id: Optional[str] = None
    user_id: Optional[str] = None
    old_values: Optional[Dict[str, Any]] = None
    new_values: Optional[Dict[str, Any]] = None
    elapsed_minutes: Optional[float] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class ComplianceTally:
    """Running counters for a compliance report (overall or one priority)."""

    total_tickets: int = 0
    compliant_tickets: int = 0
    breached_tickets: int = 0
    at_risk_tickets: int = 0
    response_minutes: List[float] = field(default_factory=list)
    resolution_minutes: List[float] = field(default_factory=list)

    def add(self, status: TicketSLAStatus) -> None:
        self.total_tickets += 1
        if status.is_compliant:
            self.compliant_tickets += 1
        if status.is_breached:
            self.breached_tickets += 1
        if status.is_at_risk:
            self.at_risk_tickets += 1

        if status.first_response.elapsed_minutes is not None:
            self.response_minutes.append(status.first_response.elapsed_minutes)
        if status.resolution.elapsed_minutes is not None:
            self.resolution_minutes.append(status.resolution.elapsed_minutes)

    @property
    def compliance_rate(self) -> float:
        if self.total_tickets == 0:
            return 0.0
        return round(self.compliant_tickets / self.total_tickets * 100, 2)

    @property
    def average_response_minutes(self) -> Optional[float]:
        return _mean(self.response_minutes)

    @property
    def average_resolution_minutes(self) -> Optional[float]:
        return _mean(self.resolution_minutes)


def _mean(values: List[float]) -> Optional[float]:
    if not values:
        return None
    return round(sum(values) / len(values), 2)


@dataclass
class SLAReport:
    """Compliance report for a tenant over a period."""

    tenant_id: str
    period_start: datetime
    period_end: datetime
    overall: ComplianceTally = field(default_factory=ComplianceTally)
    by_priority: Dict[str, ComplianceTally] = field(default_factory=dict)

    def add(self, status: TicketSLAStatus) -> None:
        self.overall.add(status)
        self.by_priority.setdefault(status.priority, ComplianceTally()).add(status)
