"""
SLA Domain Layer
================

Domain layer for SLA module.

Contains:
- Entities: Core business objects with identity (SLAConfig, Ticket, SLAAlert, SLALog)
- Value Objects: Immutable objects defined by attributes (DeadlineStatus, SLANotApplicable)
- Domain Services: Stateless business logic (BusinessHours, SLACalculator)

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from helpdesk.sla.domain.business_hours import BusinessHours
from helpdesk.sla.domain.entities import (
    SLAConfig,
    Ticket,
    TicketSLAStatus,
    SLAAlert,
    SLALog,
    ComplianceTally,
    SLAReport,
)
from helpdesk.sla.domain.value_objects import (
    SLACalculator,
    DeadlineStatus,
    SLANotApplicable,
)

__all__ = [
    # Entities
    "SLAConfig",
    "Ticket",
    "TicketSLAStatus",
    "SLAAlert",
    "SLALog",
    "ComplianceTally",
    "SLAReport",
    # Value Objects & Services
    "BusinessHours",
    "SLACalculator",
    "DeadlineStatus",
    "SLANotApplicable",
]
