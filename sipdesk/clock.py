"""
Clock collaborator

Every time-window decision (slot availability, edit cutoffs, plan windows)
takes an explicit ``now``. Routers obtain it from ``get_clock`` so tests can
pin the wall clock with ``FixedClock``.
"""

from datetime import datetime
from zoneinfo import ZoneInfo

from .config import LOCAL_TIMEZONE


class Clock:
    """System clock returning naive local wall-clock time"""

    def __init__(self, timezone: str = LOCAL_TIMEZONE):
        self.tz = ZoneInfo(timezone)

    def now(self) -> datetime:
        return datetime.now(self.tz).replace(tzinfo=None, microsecond=0)


class FixedClock(Clock):
    """Clock pinned to a given instant"""

    def __init__(self, instant: datetime):
        self.instant = instant

    def now(self) -> datetime:
        return self.instant


_system_clock = Clock()


def get_clock() -> Clock:
    """FastAPI dependency for the request clock"""
    return _system_clock
