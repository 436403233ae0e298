"""Order domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from ...shared.validators import validate_in_phone, validate_non_blank
from ..fulfillment.schemas import UnitResponse

SIZE_VOLUMES = {"Regular": "250mL", "Large": "350mL", "Jumbo": "500mL"}

IceLevel = Literal["No Ice", "Less Ice", "Normal Ice", "More Ice"]
SugarLevel = Literal["No Sugar", "Less Sugar", "Normal Sugar"]
Dilution = Literal["Normal", "Concentrated", "Diluted"]
Size = Literal["Regular", "Large", "Jumbo"]


class _CustomizationBase(BaseModel):
    size: Size = "Regular"
    quantity: Optional[str] = None
    ice: IceLevel = "Normal Ice"

    @model_validator(mode="after")
    def match_volume(self):
        expected = SIZE_VOLUMES[self.size]
        if self.quantity is None:
            self.quantity = expected
        elif self.quantity.replace(" ", "").lower() != expected.lower():
            raise ValueError(f"{self.size} is {expected}, not {self.quantity}")
        else:
            self.quantity = expected
        return self


class JuiceCustomization(_CustomizationBase):
    category: Literal["juice"]
    fibre: bool = False


class ShakeCustomization(_CustomizationBase):
    category: Literal["shake"]
    sugar: SugarLevel = "Normal Sugar"
    dilution: Dilution = "Normal"


Customization = Annotated[Union[JuiceCustomization, ShakeCustomization], Field(discriminator="category")]


class LineItem(BaseModel):
    """One product line; price is the per-unit final price for the chosen customization"""

    productId: str = Field(..., min_length=1, max_length=64)
    productName: Optional[str] = None
    quantity: int = Field(..., ge=1, le=20)
    price: int = Field(..., ge=0)
    customization: Customization

    @property
    def line_total(self) -> int:
        return self.price * self.quantity


class CustomerDetails(BaseModel):
    name: str
    phone: str
    address: str
    additionalAddressInfo: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        return validate_non_blank(v, "Name")

    @field_validator("address")
    @classmethod
    def validate_address(cls, v):
        return validate_non_blank(v, "Address")

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        return validate_in_phone(validate_non_blank(v, "Phone"))


class Location(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class QuickSipOrderCreate(BaseModel):
    """Schema for a same-day QuickSip checkout"""

    customerDetails: CustomerDetails
    location: Location
    items: list[LineItem] = Field(..., min_length=1)
    timeSlot: str
    walletAmount: int = Field(0, ge=0)


class OrderItemResponse(BaseModel):
    id: int
    dayId: Optional[int] = None
    productId: str
    productName: Optional[str] = None
    category: str
    quantity: int
    price: int
    customization: dict
    timeSlot: Optional[str] = None


class OrderResponse(BaseModel):
    id: int
    publicId: str
    orderType: str
    status: str
    customerDetails: CustomerDetails
    subtotalAmount: int
    deliveryCharge: int
    calculatedDeliveryCharge: int
    walletAmountUsed: int
    totalAmount: int
    distanceKm: Optional[float] = None
    deliveryDate: Optional[date] = None
    deliveryTimeSlot: Optional[str] = None
    freshPlanId: Optional[int] = None
    isCompletePlanCheckout: bool = False
    items: list[OrderItemResponse]
    units: list[UnitResponse]
    createdAt: Optional[datetime] = None
