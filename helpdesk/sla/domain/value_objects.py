"""
SLA Value Objects
==================

Immutable value objects for SLA domain.

Value objects are defined by their attributes rather than an identity.
They are immutable and can be freely shared.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

from helpdesk.config import SLAState, SLAType
from helpdesk.shared.timeutils import as_utc
from helpdesk.sla.domain.business_hours import BusinessHours


@dataclass(frozen=True)
class DeadlineStatus:
    """
    Where one SLA clock (first response or resolution) stands at a point in time.
    """
    sla_type: str
    due_at: datetime
    budget_minutes: int
    state: str
    event_at: Optional[datetime] = None
    # Business minutes left before the deadline; None once the event happened
    remaining_minutes: Optional[float] = None
    # Business minutes from ticket creation to the event, if it happened
    elapsed_minutes: Optional[float] = None

    @property
    def is_compliant(self) -> Optional[bool]:
        """True when met, False when breached or met late, None while open."""
        return SLACalculator.compliance(self.state)

    @property
    def is_breach(self) -> bool:
        return self.state in (SLAState.BREACHED, SLAState.MET_LATE)


@dataclass(frozen=True)
class SLANotApplicable:
    """
    No active SLA configuration matches the ticket.

    This is a normal outcome: SLA tracking is simply off for the ticket. It is
    returned, never raised, so callers can tell it apart from a broken
    configuration.
    """
    tenant_id: str
    ticket_id: str
    priority: str
    category_id: Optional[str] = None
    reason: str = "no_active_config"


class SLACalculator:
    """
    Pure functions for SLA calculations.

    Stateless utility class: every SLA rule lives here so the services only
    orchestrate.
    """

    @staticmethod
    def calculate_deadlines(
        created_at: datetime,
        hours: BusinessHours,
        first_response_minutes: int,
        resolution_minutes: int
    ) -> Tuple[datetime, datetime]:
        """
        Calculate both deadlines for a ticket.

        Returns:
            Tuple of (first_response_due_at, resolution_due_at) in UTC
        """
        return (
            hours.add_business_minutes(created_at, first_response_minutes),
            hours.add_business_minutes(created_at, resolution_minutes),
        )

    @staticmethod
    def classify(
        sla_type: str,
        created_at: datetime,
        due_at: datetime,
        budget_minutes: int,
        hours: BusinessHours,
        current_time: datetime,
        event_at: Optional[datetime] = None,
        risk_threshold_percent: float = 20.0
    ) -> DeadlineStatus:
        """
        Classify one deadline.

        Args:
            sla_type: first_response or resolution
            created_at: When the ticket was created
            due_at: The deadline
            budget_minutes: Business minutes the deadline allows
            hours: Business hours used to measure remaining/elapsed time
            current_time: Evaluation instant
            event_at: First response or resolution time, if recorded
            risk_threshold_percent: At risk once this share of the budget
                or less remains

        Returns:
            DeadlineStatus
        """
        due_at = as_utc(due_at)
        current_time = as_utc(current_time)

        # A recorded event freezes the state
        if event_at is not None:
            event_at = as_utc(event_at)
            state = SLAState.MET if event_at <= due_at else SLAState.MET_LATE
            return DeadlineStatus(
                sla_type=sla_type,
                due_at=due_at,
                budget_minutes=budget_minutes,
                state=state,
                event_at=event_at,
                elapsed_minutes=hours.business_minutes_between(created_at, event_at),
            )

        if current_time >= due_at:
            return DeadlineStatus(
                sla_type=sla_type,
                due_at=due_at,
                budget_minutes=budget_minutes,
                state=SLAState.BREACHED,
                remaining_minutes=0.0,
            )

        remaining = hours.business_minutes_between(current_time, due_at)
        threshold = budget_minutes * risk_threshold_percent / 100
        state = SLAState.AT_RISK if remaining <= threshold else SLAState.PENDING

        return DeadlineStatus(
            sla_type=sla_type,
            due_at=due_at,
            budget_minutes=budget_minutes,
            state=state,
            remaining_minutes=remaining,
        )

    @staticmethod
    def compliance(state: str) -> Optional[bool]:
        if state == SLAState.MET:
            return True
        if state in (SLAState.MET_LATE, SLAState.BREACHED):
            return False
        return None

    @staticmethod
    def alert_message(sla_type: str, state: str, ticket_ref: str) -> str:
        """Human-readable alert text."""
        label = "First response" if sla_type == SLAType.FIRST_RESPONSE else "Resolution"
        if state == SLAState.AT_RISK:
            return f"{label} SLA at risk for ticket {ticket_ref}"
        return f"{label} SLA breached for ticket {ticket_ref}"
