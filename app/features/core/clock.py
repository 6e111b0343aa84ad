"""
Time sources.

All persisted timestamps are timezone-naive UTC (PostgreSQL TIMESTAMP WITHOUT
TIME ZONE), so clocks hand out naive UTC datetimes.
"""

from datetime import datetime, timedelta, timezone
from typing import Protocol


def utc_now() -> datetime:
    """Current time as naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Normalize an aware datetime to naive UTC; naive values pass through."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class Clock(Protocol):
    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall-clock time."""

    def now(self) -> datetime:
        return utc_now()


class FrozenClock:
    """
    Manually advanced clock for tests and replays.

    Example:
        clock = FrozenClock(datetime(2025, 1, 6, 10, 0))
        clock.advance(days=1)
    """

    def __init__(self, start: datetime):
        self._now = to_naive_utc(start)

    def now(self) -> datetime:
        return self._now

    def set(self, value: datetime) -> None:
        self._now = to_naive_utc(value)

    def advance(self, **kwargs) -> datetime:
        self._now = self._now + timedelta(**kwargs)
        return self._now
