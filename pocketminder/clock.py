# pocketminder/clock.py
"""
Time sources for the engine.

All instants inside the engine are naive wall-clock datetimes in the user's
local zone. Aware datetimes coming from callers are converted with to_local().
"""

from __future__ import annotations

import time
from datetime import datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from pocketminder.errors import DeadlineExceeded

__all__ = ["Clock", "SystemClock", "FixedClock", "Deadline", "check_deadline", "to_local"]


def to_local(dt: datetime, tz: str) -> datetime:
    """Return dt as naive local time in tz. Naive input is taken as already local."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(ZoneInfo(tz)).replace(tzinfo=None)


class Clock:
    """Anything with now() -> naive local datetime."""

    def now(self) -> datetime:  # pragma: no cover - interface
        raise NotImplementedError


class SystemClock(Clock):
    def __init__(self, tz: str = "UTC"):
        self.tz = tz

    def now(self) -> datetime:
        # minute granularity is enough for reminders; keep seconds anyway
        return datetime.now(ZoneInfo(self.tz)).replace(tzinfo=None, microsecond=0)


class FixedClock(Clock):
    """Hermetic clock for tests: returns a pinned instant until moved."""

    def __init__(self, at: datetime):
        self.at = at

    def now(self) -> datetime:
        return self.at

    def set(self, at: datetime) -> None:
        self.at = at

    def advance(self, **kwargs) -> datetime:
        self.at = self.at + timedelta(**kwargs)
        return self.at


class Deadline:
    """
    Monotonic deadline shared by every I/O call of one engine operation.
    seconds=None means no limit.
    """

    def __init__(self, seconds: Optional[float] = None):
        self._expires_at = None if seconds is None else time.monotonic() + seconds

    @property
    def expired(self) -> bool:
        return self._expires_at is not None and time.monotonic() >= self._expires_at

    def check(self, what: str = "I/O") -> None:
        """Raise DeadlineExceeded if no time is left for the next call."""
        if self.expired:
            raise DeadlineExceeded(f"deadline exceeded before {what}")


def check_deadline(deadline: Optional[Deadline], what: str) -> None:
    if deadline is not None:
        deadline.check(what)
