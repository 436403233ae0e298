"""
Schedule Mutation Guard

Decides whether a FreshPlan day's delivery slot may still be changed:

- dated after tomorrow: always editable
- dated tomorrow: editable until the daily cutoff (23:59 today by default)
- dated today or earlier: frozen
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional

from ...config import TOMORROW_EDIT_CUTOFF
from ...errors import ScheduleLocked


def parse_cutoff(value: str) -> time:
    hours, minutes = value.split(":")
    return time(hour=int(hours), minute=int(minutes))


DEFAULT_CUTOFF = parse_cutoff(TOMORROW_EDIT_CUTOFF)


@dataclass(frozen=True)
class ScheduleWindow:
    editable: bool
    reason: str
    locks_at: Optional[datetime]


def editability(day_date: date, now: datetime, cutoff: time = DEFAULT_CUTOFF) -> ScheduleWindow:
    """Compute the edit window for a delivery dated ``day_date`` as seen at ``now``"""
    today = now.date()
    tomorrow = today + timedelta(days=1)
    # A day locks at the cutoff on the day before it
    locks_at = datetime.combine(day_date - timedelta(days=1), cutoff)

    if day_date > tomorrow:
        return ScheduleWindow(True, "Delivery can be rescheduled", locks_at)

    if day_date == tomorrow:
        if now < locks_at:
            return ScheduleWindow(
                True, f"Tomorrow's delivery can be changed until {cutoff.strftime('%H:%M')} today", locks_at
            )
        return ScheduleWindow(
            False,
            f"Tomorrow's delivery was locked at {cutoff.strftime('%H:%M')} today and can no longer be changed",
            locks_at,
        )

    if day_date == today:
        return ScheduleWindow(False, "Today's delivery is already being prepared and cannot be changed", locks_at)

    return ScheduleWindow(False, "This delivery date has already passed", locks_at)


def ensure_editable(day_date: date, now: datetime, cutoff: time = DEFAULT_CUTOFF) -> ScheduleWindow:
    """Raise ScheduleLocked unless the day is still editable"""
    window = editability(day_date, now, cutoff)
    if not window.editable:
        raise ScheduleLocked(
            f"Delivery on {day_date.isoformat()} can no longer be edited",
            reason=window.reason,
            locked_at=window.locks_at,
        )
    return window
