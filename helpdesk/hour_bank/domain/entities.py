"""
Hour Bank Domain Entities
==========================

Prepaid hour balances and the time entries that draw them down.

Balances are derived, never stored: ``consumed_hours`` only ever grows
through debits, and everything else is computed from it.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional

from helpdesk.config import HourBankStatus, HourBankWarning
from helpdesk.core import HourBankDebitRejected
from helpdesk.hour_bank.domain.timer import TimerState, elapsed_seconds
from helpdesk.shared.timeutils import as_utc, utcnow


@dataclass
class HourBank:
    """
    A customer's prepaid hours.

    A customer may hold several banks at once; each time entry debits at
    most one of them.
    """

    id: Optional[str]
    tenant_id: str
    customer_id: str
    total_hours: Decimal
    consumed_hours: Decimal = Decimal("0")
    hourly_rate: Optional[Decimal] = None
    expires_at: Optional[datetime] = None
    is_active: bool = True
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def remaining_hours(self) -> Decimal:
        """May be negative when the bank is overdrawn."""
        return self.total_hours - self.consumed_hours

    @property
    def usage_percentage(self) -> float:
        if self.total_hours <= 0:
            return 0.0
        return float(self.consumed_hours / self.total_hours * 100)

    @property
    def total_value(self) -> Optional[Decimal]:
        if self.hourly_rate is None:
            return None
        return self.total_hours * self.hourly_rate

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and as_utc(self.expires_at) < as_utc(now)

    def is_expiring_soon(self, now: datetime, within_days: int = 30) -> bool:
        if self.expires_at is None or self.is_expired(now):
            return False
        return as_utc(self.expires_at) - as_utc(now) < timedelta(days=within_days)

    def is_running_low(self, threshold_percent: float = 80.0) -> bool:
        return self.usage_percentage > threshold_percent

    def status(
        self,
        now: datetime,
        expiring_soon_days: int = 30,
        low_balance_percent: float = 80.0
    ) -> str:
        """Single display status; the first matching condition wins."""
        if self.is_expired(now):
            return HourBankStatus.EXPIRED
        if not self.is_active:
            return HourBankStatus.INACTIVE
        if self.is_expiring_soon(now, expiring_soon_days):
            return HourBankStatus.EXPIRING_SOON
        if self.is_running_low(low_balance_percent):
            return HourBankStatus.LOW_BALANCE
        return HourBankStatus.ACTIVE

    def warnings(
        self,
        now: datetime,
        expiring_soon_days: int = 30,
        low_balance_percent: float = 80.0
    ) -> List[str]:
        """Every condition that applies, so co-occurring ones are all visible."""
        flags = []
        if self.is_expired(now):
            flags.append(HourBankWarning.EXPIRED)
        if not self.is_active:
            flags.append(HourBankWarning.INACTIVE)
        if self.is_expiring_soon(now, expiring_soon_days):
            flags.append(HourBankWarning.EXPIRING_SOON)
        if self.is_running_low(low_balance_percent):
            flags.append(HourBankWarning.RUNNING_LOW)
        return flags


@dataclass
class TimeEntry:
    """
    Work logged against a ticket.

    Created running (no ``end_time``) or as a manual entry, finalised once,
    immutable afterwards.
    """

    id: Optional[str]
    tenant_id: str
    ticket_id: str
    user_id: str
    start_time: datetime
    end_time: Optional[datetime] = None
    duration: Optional[Decimal] = None
    hour_bank_id: Optional[str] = None
    description: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)

    @property
    def is_running(self) -> bool:
        return self.end_time is None

    def timer_state(self) -> TimerState:
        return TimerState(entry_id=self.id, start_time=self.start_time, end_time=self.end_time)

    def elapsed_seconds(self, now: datetime) -> int:
        return elapsed_seconds(self.timer_state(), now)


@dataclass(frozen=True)
class DebitPolicy:
    """
    Rules applied before a bank is charged.

    With the defaults every debit goes through: banks may be overdrawn and
    inactive or expired banks are still charged.
    """

    allow_overdraft: bool = True
    block_inactive_debits: bool = False

    def check(self, bank: HourBank, now: datetime) -> None:
        """
        Raises:
            HourBankDebitRejected: If the bank may not be charged at all

        The balance check is not done here; when overdraft is disallowed it
        is enforced atomically by the debit update itself.
        """
        if not self.block_inactive_debits:
            return
        if bank.is_expired(now):
            raise HourBankDebitRejected(bank.id, "expired")
        if not bank.is_active:
            raise HourBankDebitRejected(bank.id, "inactive")
