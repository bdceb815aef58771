"""
Timestamp sources for the store.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol, Union


class Clock(Protocol):
    """Anything that can tell the current time."""

    def now(self) -> datetime:
        ...


class SystemClock:
    """UTC wall clock."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class ManualClock:
    """Clock that only moves when told to. Used by tests and the demo."""

    def __init__(self, start: Optional[datetime] = None):
        self._now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._now

    def set(self, value: datetime) -> None:
        self._now = value

    def advance(self, delta: Union[timedelta, float] = 1.0) -> datetime:
        """Move forward by a timedelta or a number of seconds."""
        if not isinstance(delta, timedelta):
            delta = timedelta(seconds=delta)
        self._now = self._now + delta
        return self._now
