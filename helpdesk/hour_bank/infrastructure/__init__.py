"""
Hour Bank Infrastructure Layer
===============================

- Models: SQLAlchemy ORM models
- Repositories: Data access layer, including the atomic debit
"""

from helpdesk.hour_bank.infrastructure.models import HourBankModel, TimeEntryModel
from helpdesk.hour_bank.infrastructure.repositories import (
    SQLAlchemyHourBankRepository,
    SQLAlchemyTimeEntryRepository,
    build_debit_statement,
)

__all__ = [
    "HourBankModel",
    "TimeEntryModel",
    "SQLAlchemyHourBankRepository",
    "SQLAlchemyTimeEntryRepository",
    "build_debit_statement",
]
