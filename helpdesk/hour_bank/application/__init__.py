"""
Hour Bank Application Layer
============================

Contains:
- Services: Orchestrate business logic and coordinate with repositories
- DTOs: Data transfer objects for API serialization

This layer depends on the domain layer and repository interfaces,
but not on concrete infrastructure implementations.
"""

from helpdesk.hour_bank.application.dto import (
    HourBankCreateDTO,
    HourBankUpdateDTO,
    HourBankResponse,
    HourBankDisplay,
    TimeEntryCreateDTO,
    TimeEntryUpdateDTO,
    TimeEntryResponse,
    TimeEntryListResponse,
)
from helpdesk.hour_bank.application.services import (
    HourBankService,
    TimeEntryService,
    IHourBankRepository,
    ITimeEntryRepository,
)

__all__ = [
    # DTOs
    "HourBankCreateDTO",
    "HourBankUpdateDTO",
    "HourBankResponse",
    "HourBankDisplay",
    "TimeEntryCreateDTO",
    "TimeEntryUpdateDTO",
    "TimeEntryResponse",
    "TimeEntryListResponse",
    # Services
    "HourBankService",
    "TimeEntryService",
    # Repository Interfaces
    "IHourBankRepository",
    "ITimeEntryRepository",
]
