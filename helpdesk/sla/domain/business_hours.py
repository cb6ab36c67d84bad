"""
Business Hours
==============

Time-window arithmetic that only counts minutes inside a tenant's business
hours.

Weekday indices follow the convention used by the SLA settings screen:
0 = Sunday, 1 = Monday ... 6 = Saturday, so Monday-Friday is {1, 2, 3, 4, 5}.

All arithmetic is done on UTC instants. Each business-day window is built in
the tenant's timezone and then converted, so DST transitions shorten or
lengthen a window instead of shifting it.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import FrozenSet, Iterable, Iterator, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from helpdesk.core import ConfigurationException
from helpdesk.shared.timeutils import as_utc


def parse_time_of_day(value: str) -> time:
    """
    Parse an ``HH:MM`` string.

    Raises:
        ConfigurationException: If the string is not a valid time of day
    """
    try:
        hours, minutes = value.split(":")
        if len(hours) != 2 or len(minutes) != 2:
            raise ValueError(value)
        return time(int(hours), int(minutes))
    except (AttributeError, ValueError):
        raise ConfigurationException(
            f"Invalid business hours time '{value}', expected HH:MM",
            {"value": value}
        )


def weekday_index(day: date) -> int:
    """Sunday-based weekday index (0 = Sunday)."""
    return (day.weekday() + 1) % 7


@dataclass(frozen=True)
class BusinessHours:
    """
    A weekly business-hours window in a given timezone.

    Construction validates the window, so a ``BusinessHours`` instance always
    has some business time available each week and the walking algorithms
    below always terminate.
    """

    start: time
    end: time
    days: FrozenSet[int]
    tz: ZoneInfo

    @classmethod
    def from_config(
        cls,
        start: str,
        end: str,
        days: Iterable[int],
        timezone_name: str,
    ) -> "BusinessHours":
        """
        Build from the persisted SLA configuration fields.

        Raises:
            ConfigurationException: Zero-length or inverted window, no
                business days, out-of-range weekday or unknown timezone
        """
        start_time = parse_time_of_day(start)
        end_time = parse_time_of_day(end)
        day_set = frozenset(days)

        if start_time >= end_time:
            raise ConfigurationException(
                "Business hours window is empty: start must be before end",
                {"business_hours_start": start, "business_hours_end": end}
            )
        if not day_set:
            raise ConfigurationException(
                "At least one business day is required",
                {"business_days": []}
            )
        if any(d not in range(7) for d in day_set):
            raise ConfigurationException(
                "Business days must be weekday indices 0-6",
                {"business_days": sorted(day_set)}
            )
        try:
            tz = ZoneInfo(timezone_name)
        except (ZoneInfoNotFoundError, ValueError):
            raise ConfigurationException(
                f"Unknown timezone '{timezone_name}'",
                {"timezone": timezone_name}
            )

        return cls(start=start_time, end=end_time, days=day_set, tz=tz)

    def is_business_day(self, day: date) -> bool:
        return weekday_index(day) in self.days

    def window_for(self, day: date) -> Optional[Tuple[datetime, datetime]]:
        """UTC open/close instants of ``day``'s window, or None on a day off."""
        if not self.is_business_day(day):
            return None
        opens = datetime.combine(day, self.start, tzinfo=self.tz)
        closes = datetime.combine(day, self.end, tzinfo=self.tz)
        return opens.astimezone(timezone.utc), closes.astimezone(timezone.utc)

    def _windows_from(self, instant: datetime) -> Iterator[Tuple[datetime, datetime]]:
        """Business windows in order, starting with the local day of ``instant``."""
        day = instant.astimezone(self.tz).date()
        while True:
            window = self.window_for(day)
            if window is not None:
                yield window
            day += timedelta(days=1)

    def add_business_minutes(self, start: datetime, minutes: float) -> datetime:
        """
        Deadline reached after spending ``minutes`` of business time from
        ``start``.

        A start outside business hours is snapped forward to the next opening.
        A budget that runs out exactly at closing time returns the closing
        instant rather than the next day's opening.
        """
        cursor = as_utc(start)
        remaining = timedelta(minutes=minutes)

        for opens, closes in self._windows_from(cursor):
            if closes <= cursor:
                continue
            cursor = max(cursor, opens)
            available = closes - cursor
            if remaining <= available:
                return cursor + remaining
            remaining -= available

    def business_minutes_between(self, start: datetime, end: datetime) -> float:
        """Business minutes elapsed in ``[start, end]``; 0 when end <= start."""
        start, end = as_utc(start), as_utc(end)
        if end <= start:
            return 0.0

        total = timedelta()
        for opens, closes in self._windows_from(start):
            if opens >= end:
                break
            overlap_start = max(start, opens)
            overlap_end = min(end, closes)
            if overlap_end > overlap_start:
                total += overlap_end - overlap_start

        return total.total_seconds() / 60

    def is_within_business_hours(self, instant: datetime) -> bool:
        instant = as_utc(instant)
        window = self.window_for(instant.astimezone(self.tz).date())
        return window is not None and window[0] <= instant < window[1]
