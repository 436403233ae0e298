"""
Time-Slot Calendar

A fixed, ordered catalog of delivery windows plus the same-day booking rule.
Everything here is pure: the answer depends only on ``now`` and the catalog.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional

from ...config import MIN_LEAD_HOURS, SAME_DAY_CUTOFF_HOUR
from ...errors import InvalidRequest


@dataclass(frozen=True)
class TimeSlot:
    id: str
    range: str
    type: str  # morning, evening
    start_hour: int

    def starts_at(self, on: date) -> datetime:
        return datetime.combine(on, time(hour=self.start_hour))


@dataclass(frozen=True)
class SlotConfig:
    same_day_cutoff_hour: int = SAME_DAY_CUTOFF_HOUR
    min_lead_hours: float = MIN_LEAD_HOURS


def parse_start_hour(label: str) -> int:
    """
    Parse the 24h start hour out of a label like "7-8 AM" or "11 AM-12 PM".

    A start without its own meridiem inherits the end's.
    """
    try:
        start_part, end_part = (part.strip().upper() for part in label.split("-"))
    except ValueError as e:
        raise ValueError(f"Invalid time slot label: {label}") from e

    if "AM" in start_part or "PM" in start_part:
        meridiem = "AM" if "AM" in start_part else "PM"
    else:
        meridiem = "AM" if "AM" in end_part else "PM"

    digits = re.sub(r"[^\d]", "", start_part)
    if not digits:
        raise ValueError(f"Invalid time slot label: {label}")
    hour = int(digits)
    if not 1 <= hour <= 12:
        raise ValueError(f"Invalid time slot label: {label}")

    if meridiem == "PM" and hour != 12:
        hour += 12
    if meridiem == "AM" and hour == 12:
        hour = 0
    return hour


def _slot(slot_id: str, label: str, slot_type: str) -> TimeSlot:
    return TimeSlot(id=slot_id, range=label, type=slot_type, start_hour=parse_start_hour(label))


TIME_SLOTS: tuple[TimeSlot, ...] = (
    _slot("1", "7-8 AM", "morning"),
    _slot("2", "8-9 AM", "morning"),
    _slot("3", "9-10 AM", "morning"),
    _slot("4", "10-11 AM", "morning"),
    _slot("5", "3-4 PM", "evening"),
    _slot("6", "4-5 PM", "evening"),
    _slot("7", "5-6 PM", "evening"),
    _slot("8", "6-7 PM", "evening"),
)


def _validate_catalog(slots: tuple[TimeSlot, ...]) -> None:
    """Catalog order must follow the clock and ids must be unique"""
    if len({slot.id for slot in slots}) != len(slots):
        raise ValueError("Duplicate time slot id in catalog")
    for earlier, later in zip(slots, slots[1:]):
        if earlier.start_hour >= later.start_hour:
            raise ValueError(f"Time slot {later.range} is out of order")


_validate_catalog(TIME_SLOTS)


def all_slots() -> tuple[TimeSlot, ...]:
    """The full static catalog in delivery order"""
    return tuple(TIME_SLOTS)


def available_slots_for_today(now: datetime, config: Optional[SlotConfig] = None) -> list[TimeSlot]:
    """Slots still bookable for delivery later on ``now``'s date"""
    config = config or SlotConfig()
    if now.time() >= time(hour=config.same_day_cutoff_hour):
        return []

    earliest_start = now + timedelta(hours=config.min_lead_hours)
    return [slot for slot in TIME_SLOTS if slot.starts_at(now.date()) >= earliest_start]


def available_slots(for_date: date, now: datetime, config: Optional[SlotConfig] = None) -> list[TimeSlot]:
    """Bookable slots for any date: filtered today, full catalog later, none in the past"""
    today = now.date()
    if for_date < today:
        return []
    if for_date == today:
        return available_slots_for_today(now, config)
    return list(TIME_SLOTS)


def find_slot(value: str) -> TimeSlot:
    """Resolve a slot by id or by its range label"""
    needle = (value or "").strip()
    for slot in TIME_SLOTS:
        if needle == slot.id or needle.upper() == slot.range.upper():
            return slot
    raise InvalidRequest(f"Unknown time slot: {value}")
