"""
Time Slot API Routes

Read-only access to the delivery window catalog.
"""

import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from ..clock import Clock, get_clock
from ..domain.scheduling.time_slots import TimeSlot, all_slots, available_slots

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/time-slots", tags=["time-slots"])


class TimeSlotResponse(BaseModel):
    id: str
    range: str
    type: str


class AvailableSlotsResponse(BaseModel):
    date: date
    slots: List[TimeSlotResponse]


def _to_response(slot: TimeSlot) -> TimeSlotResponse:
    return TimeSlotResponse(id=slot.id, range=slot.range, type=slot.type)


@router.get("", response_model=List[TimeSlotResponse])
async def list_time_slots():
    return [_to_response(slot) for slot in all_slots()]


@router.get("/available", response_model=AvailableSlotsResponse)
async def list_available_time_slots(
    on: Optional[date] = Query(None, alias="date"),
    clock: Clock = Depends(get_clock),
):
    """Slots still bookable on a date (today by default)"""
    now = clock.now()
    for_date = on or now.date()
    return AvailableSlotsResponse(date=for_date, slots=[_to_response(s) for s in available_slots(for_date, now)])
