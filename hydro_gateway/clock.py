from datetime import datetime, timedelta, timezone
from typing import Protocol

# Stored timestamps are aware UTC datetimes read from a Clock owned by the
# store, never from the caller.

class Clock(Protocol):
    def now(self) -> datetime:
        ...

class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

class FixedClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime) -> None:
        self._now = _utc(start)

    def now(self) -> datetime:
        return self._now

    def set(self, value: datetime) -> None:
        self._now = _utc(value)

    def advance(self, **kwargs: float) -> datetime:
        """Move forward by ``timedelta(**kwargs)`` and return the new time."""
        self._now = self._now + timedelta(**kwargs)
        return self._now

def _utc(value: datetime) -> datetime:
    # naive input is taken to already be UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
