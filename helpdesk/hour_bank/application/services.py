"""
Hour Bank Application Services
===============================

Hour bank management and time-entry recording.

A finalised time entry and the debit of its bank happen in the same
transaction: the request session commits both or neither.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from helpdesk.config import settings
from helpdesk.core import (
    HourBankDebitRejected,
    ResourceNotFoundException,
    ValidationException,
)
from helpdesk.hour_bank.application.dto import (
    HourBankCreateDTO,
    HourBankUpdateDTO,
    TimeEntryCreateDTO,
    TimeEntryUpdateDTO,
)
from helpdesk.hour_bank.domain import (
    DebitPolicy,
    HourBank,
    TimeEntry,
    TimerAction,
    TimerState,
    duration_hours,
    reduce_timer,
)
from helpdesk.shared.infrastructure.logging import get_logger
from helpdesk.shared.timeutils import utcnow
from helpdesk.sla.application import ITicketRepository

logger = get_logger(__name__)


# ========== Repository Interfaces (Dependency Inversion) ==========

class IHourBankRepository(ABC):
    """Interface for hour bank data access."""

    @abstractmethod
    async def get_by_id(self, tenant_id: str, hour_bank_id: str) -> Optional[HourBank]:
        """Get a tenant's bank by ID."""

    @abstractmethod
    async def list(self, tenant_id: str, customer_id: Optional[str] = None) -> List[HourBank]:
        """List a tenant's banks, optionally for one customer."""

    @abstractmethod
    async def create(self, bank: HourBank) -> HourBank:
        """Create new bank."""

    @abstractmethod
    async def update(self, bank: HourBank) -> HourBank:
        """Persist total hours, rate, expiry and active flag. Never consumed hours."""

    @abstractmethod
    async def debit(
        self,
        tenant_id: str,
        hour_bank_id: str,
        hours: Decimal,
        allow_overdraft: bool = True
    ) -> bool:
        """
        Atomically add ``hours`` to the bank's consumed hours.

        Returns False when no row was updated: the bank does not exist or,
        with overdraft disallowed, the debit would exceed the total.
        """


class ITimeEntryRepository(ABC):
    """Interface for time entry data access."""

    @abstractmethod
    async def get_by_id(self, tenant_id: str, entry_id: str) -> Optional[TimeEntry]:
        """Get a tenant's time entry by ID."""

    @abstractmethod
    async def find_running(self, tenant_id: str, ticket_id: str, user_id: str) -> Optional[TimeEntry]:
        """The user's running timer on a ticket, if any."""

    @abstractmethod
    async def list_for_ticket(self, tenant_id: str, ticket_id: str) -> List[TimeEntry]:
        """Entries of a ticket, oldest first."""

    @abstractmethod
    async def create(self, entry: TimeEntry) -> TimeEntry:
        """Create new entry."""

    @abstractmethod
    async def update(self, entry: TimeEntry) -> TimeEntry:
        """Persist a finalised entry."""


# ========== Application Services ==========

class HourBankService:
    """
    Service for creating, updating and reading hour banks.
    """

    def __init__(self, hour_bank_repository: IHourBankRepository):
        self._bank_repo = hour_bank_repository

    async def list_banks(self, tenant_id: str, customer_id: Optional[str] = None) -> List[HourBank]:
        return await self._bank_repo.list(tenant_id, customer_id)

    async def get_bank(self, tenant_id: str, hour_bank_id: str) -> HourBank:
        bank = await self._bank_repo.get_by_id(tenant_id, hour_bank_id)
        if bank is None:
            raise ResourceNotFoundException("Hour bank", hour_bank_id)
        return bank

    async def create_bank(self, tenant_id: str, dto: HourBankCreateDTO) -> HourBank:
        now = utcnow()
        bank = HourBank(
            id=None,
            tenant_id=tenant_id,
            customer_id=dto.customer_id,
            total_hours=dto.total_hours,
            consumed_hours=Decimal("0"),
            hourly_rate=dto.hourly_rate,
            expires_at=dto.expires_at,
            is_active=dto.is_active,
            created_at=now,
            updated_at=now,
        )
        bank = await self._bank_repo.create(bank)
        logger.info(
            "Hour bank created",
            extra={
                "tenant_id": tenant_id,
                "hour_bank_id": bank.id,
                "customer_id": bank.customer_id,
                "total_hours": str(bank.total_hours),
            }
        )
        return bank

    async def update_bank(self, tenant_id: str, hour_bank_id: str, dto: HourBankUpdateDTO) -> HourBank:
        bank = await self.get_bank(tenant_id, hour_bank_id)
        changes = dto.model_dump(exclude_unset=True)

        # expires_at may be cleared explicitly; the other fields may not
        for name, value in changes.items():
            if value is None and name != "expires_at":
                continue
            setattr(bank, name, value)

        bank.updated_at = utcnow()
        bank = await self._bank_repo.update(bank)
        logger.info(
            "Hour bank updated",
            extra={"tenant_id": tenant_id, "hour_bank_id": hour_bank_id, "fields": sorted(changes)}
        )
        return bank


class TimeEntryService:
    """
    Service for time entries: starting timers, finalising them and recording
    manual work, debiting the chosen hour bank.
    """

    def __init__(
        self,
        time_entry_repository: ITimeEntryRepository,
        hour_bank_repository: IHourBankRepository,
        ticket_repository: ITicketRepository,
        debit_policy: Optional[DebitPolicy] = None
    ):
        self._entry_repo = time_entry_repository
        self._bank_repo = hour_bank_repository
        self._ticket_repo = ticket_repository
        self._policy = debit_policy or DebitPolicy(
            allow_overdraft=settings.hour_bank_allow_overdraft,
            block_inactive_debits=settings.hour_bank_block_inactive_debits,
        )

    async def create_entry(
        self,
        tenant_id: str,
        user_id: str,
        dto: TimeEntryCreateDTO,
        now: Optional[datetime] = None
    ) -> TimeEntry:
        """
        Start a timer, or record a manual entry when a duration is given.

        Raises:
            ConflictException: The user already has a running timer on the ticket
            ResourceNotFoundException: Unknown ticket or hour bank
            HourBankDebitRejected: The debit policy refused a manual entry
        """
        now = now or utcnow()
        if await self._ticket_repo.get_by_id(tenant_id, dto.ticket_id) is None:
            raise ResourceNotFoundException("Ticket", dto.ticket_id)

        start_time = dto.start_time or now

        if dto.is_manual:
            entry = TimeEntry(
                id=None,
                tenant_id=tenant_id,
                ticket_id=dto.ticket_id,
                user_id=user_id,
                start_time=start_time,
                end_time=start_time,
                duration=dto.duration,
                hour_bank_id=dto.hour_bank_id,
                description=dto.description,
                created_at=now,
            )
            await self._debit(tenant_id, entry, now)
            entry = await self._entry_repo.create(entry)
            logger.info(
                "Manual time entry recorded",
                extra={"tenant_id": tenant_id, "entry_id": entry.id, "duration": str(entry.duration)}
            )
            return entry

        running = await self._entry_repo.find_running(tenant_id, dto.ticket_id, user_id)
        state = running.timer_state() if running else TimerState()
        state = reduce_timer(state, TimerAction.START, start_time)

        if dto.hour_bank_id is not None:
            await self._get_bank(tenant_id, dto.hour_bank_id)

        entry = await self._entry_repo.create(TimeEntry(
            id=None,
            tenant_id=tenant_id,
            ticket_id=dto.ticket_id,
            user_id=user_id,
            start_time=state.start_time,
            hour_bank_id=dto.hour_bank_id,
            description=dto.description,
            created_at=now,
        ))
        logger.info(
            "Timer started",
            extra={"tenant_id": tenant_id, "entry_id": entry.id, "ticket_id": entry.ticket_id}
        )
        return entry

    async def finish_entry(
        self,
        tenant_id: str,
        entry_id: str,
        dto: TimeEntryUpdateDTO,
        now: Optional[datetime] = None
    ) -> TimeEntry:
        """
        Stop or pause a running entry and debit its bank.

        Raises:
            ResourceNotFoundException: Unknown entry or hour bank
            ConflictException: The entry was already finalised
            HourBankDebitRejected: The debit policy refused the debit
        """
        now = now or utcnow()
        entry = await self._entry_repo.get_by_id(tenant_id, entry_id)
        if entry is None:
            raise ResourceNotFoundException("Time entry", entry_id)

        state = reduce_timer(entry.timer_state(), dto.action, dto.end_time or now)

        entry.end_time = state.end_time
        entry.duration = dto.duration if dto.duration is not None else duration_hours(state, now)
        if dto.hour_bank_id is not None:
            entry.hour_bank_id = dto.hour_bank_id
        if dto.description is not None:
            entry.description = dto.description

        await self._debit(tenant_id, entry, now)
        entry = await self._entry_repo.update(entry)
        logger.info(
            "Timer finalised",
            extra={
                "tenant_id": tenant_id,
                "entry_id": entry_id,
                "action": dto.action,
                "duration": str(entry.duration),
                "hour_bank_id": entry.hour_bank_id,
            }
        )
        return entry

    async def list_for_ticket(self, tenant_id: str, ticket_id: str) -> List[TimeEntry]:
        return await self._entry_repo.list_for_ticket(tenant_id, ticket_id)

    async def _get_bank(self, tenant_id: str, hour_bank_id: str) -> HourBank:
        bank = await self._bank_repo.get_by_id(tenant_id, hour_bank_id)
        if bank is None:
            raise ResourceNotFoundException("Hour bank", hour_bank_id)
        return bank

    async def _debit(self, tenant_id: str, entry: TimeEntry, now: datetime) -> None:
        """Charge the entry's duration to its bank, if it has one."""
        if entry.hour_bank_id is None or not entry.duration:
            return
        if entry.duration < 0:
            raise ValidationException("duration cannot be negative", {"duration": str(entry.duration)})

        bank = await self._get_bank(tenant_id, entry.hour_bank_id)
        self._policy.check(bank, now)

        applied = await self._bank_repo.debit(
            tenant_id,
            entry.hour_bank_id,
            entry.duration,
            allow_overdraft=self._policy.allow_overdraft,
        )
        if not applied:
            logger.warning(
                "Hour bank debit rejected",
                extra={
                    "tenant_id": tenant_id,
                    "hour_bank_id": entry.hour_bank_id,
                    "duration": str(entry.duration),
                    "remaining_hours": str(bank.remaining_hours),
                }
            )
            raise HourBankDebitRejected(
                entry.hour_bank_id,
                "insufficient_balance",
                {
                    "hour_bank_id": entry.hour_bank_id,
                    "reason": "insufficient_balance",
                    "requested_hours": str(entry.duration),
                    "remaining_hours": str(bank.remaining_hours),
                }
            )

        logger.info(
            "Hour bank debited",
            extra={
                "tenant_id": tenant_id,
                "hour_bank_id": entry.hour_bank_id,
                "duration": str(entry.duration),
            }
        )
