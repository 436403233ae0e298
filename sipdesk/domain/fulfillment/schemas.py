"""Fulfillment domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator


class KitchenStatusUpdate(BaseModel):
    """Chef moving a unit through the kitchen"""

    orderId: int
    dayId: Optional[int] = None
    status: Literal["received", "done"]
    clientTime: Optional[datetime] = None


class CourierStatusUpdate(BaseModel):
    """Courier picking up or closing a unit"""

    orderId: int
    dayId: Optional[int] = None
    status: Literal["picked", "delivered", "not-delivered"]
    reason: Optional[str] = None
    clientTime: Optional[datetime] = None


class CancelRequest(BaseModel):
    orderId: int
    dayId: Optional[int] = None
    reason: str = Field(..., max_length=500)
    force: bool = False

    @field_validator("reason")
    @classmethod
    def validate_reason(cls, v):
        if not v or not v.strip():
            raise ValueError("A cancellation reason is required")
        return v.strip()


class UnitItem(BaseModel):
    productId: str
    productName: Optional[str] = None
    category: str
    quantity: int
    unitPrice: int
    customization: dict


class UnitResponse(BaseModel):
    orderId: int
    orderPublicId: str
    orderType: str
    dayId: Optional[int] = None
    key: str
    scheduledDate: Optional[date] = None
    timeSlot: Optional[str] = None
    status: str
    kitchenStatus: str
    courierStatus: str
    orderStatus: str
    customerName: str
    customerPhone: str
    customerAddress: str
    customerAddressExtra: Optional[str] = None
    receivedTime: Optional[datetime] = None
    doneTime: Optional[datetime] = None
    pickedTime: Optional[datetime] = None
    deliveredTime: Optional[datetime] = None
    notDeliveredTime: Optional[datetime] = None
    notDeliveredReason: Optional[str] = None
    cancelledAt: Optional[datetime] = None
    cancellationReason: Optional[str] = None
    items: list[UnitItem] = []


class TransitionResponse(BaseModel):
    changed: bool
    unit: UnitResponse


class CancelResponse(BaseModel):
    changed: bool
    refundedAmount: int
    unit: UnitResponse


class ChefQueue(BaseModel):
    date: date
    pending: list[UnitResponse]
    received: list[UnitResponse]
    done: list[UnitResponse]


class CourierQueue(BaseModel):
    date: date
    readyToPick: list[UnitResponse]
    picked: list[UnitResponse]
    delivered: list[UnitResponse]
    notDelivered: list[UnitResponse]
