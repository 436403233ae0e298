"""FreshPlan domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field

from ..orders.schemas import CustomerDetails, LineItem, Location


class PlanDayDraft(BaseModel):
    """One scheduled day of a plan; every item of the day ships in ``timeSlot``"""

    date: date
    timeSlot: str
    items: list[LineItem] = Field(..., min_length=1)


class FreshPlanCreate(BaseModel):
    startDate: date
    days: int
    schedule: list[PlanDayDraft] = []


class PlanCheckout(BaseModel):
    customerDetails: CustomerDetails
    location: Location
    walletAmount: int = Field(0, ge=0)


class DaySlotUpdate(BaseModel):
    timeSlot: str


class FreshPlanResponse(BaseModel):
    id: int
    publicId: str
    days: int
    startDate: date
    endDate: date
    schedule: list[dict]
    paymentComplete: bool
    paidAt: Optional[datetime] = None
    orderId: Optional[int] = None
    createdAt: Optional[datetime] = None


class EarliestStartResponse(BaseModel):
    earliestStartDate: date
    activePlanEndDate: Optional[date] = None


class EditabilityResponse(BaseModel):
    dayId: int
    date: date
    editable: bool
    reason: str
    locksAt: Optional[datetime] = None
