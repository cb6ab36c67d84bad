"""
SLA Infrastructure Layer
=========================

Infrastructure implementations for SLA tracking:
- Models: SQLAlchemy ORM models
- Repositories: Data access layer
"""

from helpdesk.sla.infrastructure.models import SLAConfigModel, TicketModel, SLAAlertModel, SLALogModel
from helpdesk.sla.infrastructure.repositories import (
    SQLAlchemySLAConfigRepository,
    SQLAlchemyTicketRepository,
    SQLAlchemyAlertRepository,
    SQLAlchemySLALogRepository,
)

__all__ = [
    "SLAConfigModel",
    "TicketModel",
    "SLAAlertModel",
    "SLALogModel",
    "SQLAlchemySLAConfigRepository",
    "SQLAlchemyTicketRepository",
    "SQLAlchemyAlertRepository",
    "SQLAlchemySLALogRepository",
]
