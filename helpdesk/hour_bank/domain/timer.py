"""
Running Timer
=============

Timer state for time entries, as a pure reducer over the persisted
``start_time``/``end_time``.

Nothing ticks on the server: the elapsed time of a running entry is always
recomputed from its start time, so a timer survives restarts and is the same
for every client looking at it.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from helpdesk.core import ConflictException, ValidationException
from helpdesk.shared.timeutils import as_utc

HOURS_QUANTUM = Decimal("0.01")


class TimerAction:
    """Actions a timer reacts to."""
    START = "start"
    STOP = "stop"
    PAUSE = "pause"
    TICK = "tick"


VALID_TIMER_ACTIONS = [TimerAction.START, TimerAction.STOP, TimerAction.PAUSE, TimerAction.TICK]


@dataclass(frozen=True)
class TimerState:
    entry_id: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    @property
    def is_running(self) -> bool:
        return self.start_time is not None and self.end_time is None

    @property
    def is_finished(self) -> bool:
        return self.end_time is not None


def reduce_timer(
    state: TimerState,
    action: str,
    at: datetime,
    entry_id: Optional[str] = None
) -> TimerState:
    """
    Next timer state after ``action`` happens at ``at``.

    ``start`` begins a new entry, ``stop`` and ``pause`` both finalise the
    running entry (a paused timer resumes as a new entry), ``tick`` changes
    nothing.

    Raises:
        ConflictException: Starting a running timer, or finalising one that
            is not running
        ValidationException: Unknown action, or an end before the start
    """
    at = as_utc(at)

    if action == TimerAction.START:
        if state.is_running:
            raise ConflictException("Timer is already running", {"entry_id": state.entry_id})
        return TimerState(entry_id=entry_id, start_time=at, end_time=None)

    if action in (TimerAction.STOP, TimerAction.PAUSE):
        if not state.is_running:
            raise ConflictException(
                "Time entry is already finalised" if state.is_finished else "Timer is not running",
                {"entry_id": state.entry_id}
            )
        if at < as_utc(state.start_time):
            raise ValidationException(
                "end_time cannot be before start_time",
                {"start_time": state.start_time.isoformat(), "end_time": at.isoformat()}
            )
        return replace(state, end_time=at)

    if action == TimerAction.TICK:
        return state

    raise ValidationException(f"Unknown timer action '{action}'", {"action": action})


def elapsed_seconds(state: TimerState, now: datetime) -> int:
    """Whole seconds between start and end (or ``now`` while running)."""
    if state.start_time is None:
        return 0
    until = state.end_time or now
    return max(0, int((as_utc(until) - as_utc(state.start_time)).total_seconds()))


def duration_hours(state: TimerState, now: datetime) -> Decimal:
    """Elapsed time in hours, rounded to 2 places."""
    hours = Decimal(elapsed_seconds(state, now)) / Decimal(3600)
    return hours.quantize(HOURS_QUANTUM, rounding=ROUND_HALF_UP)


def format_elapsed(seconds: int) -> str:
    """``HH:MM:SS`` from one hour on, ``MM:SS`` below."""
    hours, rest = divmod(max(0, seconds), 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"
