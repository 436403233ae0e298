"""
Delivery Pricing API Routes

Quotes delivery charges for a customer location and manages the tier table.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..auth import Actor, require_roles
from ..config import FREE_DELIVERY_THRESHOLD
from ..database import get_db
from ..services.delivery_zone import Coordinate, DeliveryZoneConfig, DeliveryZoneService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/delivery", tags=["delivery-pricing"])


class QuoteRequest(BaseModel):
    """Request model for a delivery quote."""
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    subtotal: int = Field(0, ge=0, description="Sum of line items, excluding delivery")


class QuoteResponse(BaseModel):
    distanceKm: float
    serviceable: bool
    calculatedCharge: int
    appliedCharge: int
    freeDelivery: bool
    freeDeliveryThreshold: int


class Tier(BaseModel):
    upToKm: float = Field(..., gt=0)
    charge: int = Field(..., ge=0)


class DeliverySettings(BaseModel):
    """Tier table; tiers may arrive in any order and are returned ascending."""
    maxRangeKm: float = Field(..., gt=0)
    tiers: List[Tier] = Field(..., min_length=1)


def get_zone_service(db: Session = Depends(get_db)) -> DeliveryZoneService:
    return DeliveryZoneService(db)


def _to_settings(config: DeliveryZoneConfig) -> DeliverySettings:
    return DeliverySettings(
        maxRangeKm=config.max_range_km,
        tiers=[Tier(upToKm=t.up_to_km, charge=t.charge) for t in config.tiers],
    )


@router.post("/quote", response_model=QuoteResponse)
async def quote_delivery(data: QuoteRequest, service: DeliveryZoneService = Depends(get_zone_service)):
    """Distance, tier charge and applied charge; out-of-range locations get a 422"""
    quote = service.quote(Coordinate(lat=data.lat, lng=data.lng), data.subtotal)
    return QuoteResponse(
        distanceKm=quote.distance_km,
        serviceable=quote.serviceable,
        calculatedCharge=quote.calculated_charge,
        appliedCharge=quote.applied_charge,
        freeDelivery=quote.free_delivery,
        freeDeliveryThreshold=FREE_DELIVERY_THRESHOLD,
    )


@router.get("/settings", response_model=DeliverySettings)
async def get_delivery_settings(service: DeliveryZoneService = Depends(get_zone_service)):
    return _to_settings(service.get_config())


@router.put("/settings", response_model=DeliverySettings)
async def update_delivery_settings(
    data: DeliverySettings,
    actor: Actor = Depends(require_roles("admin")),
    service: DeliveryZoneService = Depends(get_zone_service),
):
    config = service.update_config(
        data.maxRangeKm, [{"up_to_km": t.upToKm, "charge": t.charge} for t in data.tiers]
    )
    logger.info(f"Delivery settings replaced by admin {actor.user_id}")
    return _to_settings(config)
