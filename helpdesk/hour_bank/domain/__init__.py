"""
Hour Bank Domain Layer
======================

Contains:
- Entities: HourBank, TimeEntry
- Value Objects: DebitPolicy, TimerState
- Domain Services: the timer reducer

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from helpdesk.hour_bank.domain.entities import HourBank, TimeEntry, DebitPolicy
from helpdesk.hour_bank.domain.timer import (
    TimerAction,
    TimerState,
    reduce_timer,
    elapsed_seconds,
    duration_hours,
    format_elapsed,
)

__all__ = [
    "HourBank",
    "TimeEntry",
    "DebitPolicy",
    "TimerAction",
    "TimerState",
    "reduce_timer",
    "elapsed_seconds",
    "duration_hours",
    "format_elapsed",
]
