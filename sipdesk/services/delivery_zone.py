"""
Delivery Zone Service

Turns a customer coordinate into a distance-tiered delivery charge.
The shop is the origin; beyond the configured maximum range we don't deliver.
Tier tables come from the latest admin-managed DeliverySetting row and fall
back to the environment defaults.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional, Sequence

from sqlalchemy.orm import Session

from ..config import (
    DEFAULT_DELIVERY_TIERS,
    DEFAULT_MAX_RANGE_KM,
    FREE_DELIVERY_THRESHOLD,
    SHOP_LAT,
    SHOP_LNG,
    parse_delivery_tiers,
)
from ..errors import InvalidRequest, OutOfServiceRange
from ..models import DeliverySetting

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371


@dataclass(frozen=True)
class Coordinate:
    lat: float
    lng: float


SHOP_LOCATION = Coordinate(lat=SHOP_LAT, lng=SHOP_LNG)


@dataclass(frozen=True)
class DeliveryTier:
    up_to_km: float
    charge: int


@dataclass(frozen=True)
class DeliveryZoneConfig:
    """Validated tier table; tiers are always held in ascending ``up_to_km`` order"""

    max_range_km: float
    tiers: tuple[DeliveryTier, ...]

    @classmethod
    def build(cls, max_range_km: float, tiers: Sequence) -> "DeliveryZoneConfig":
        parsed = []
        for tier in tiers:
            if isinstance(tier, DeliveryTier):
                parsed.append(tier)
            else:
                parsed.append(DeliveryTier(up_to_km=float(tier["up_to_km"]), charge=int(tier["charge"])))

        if not parsed:
            raise InvalidRequest("At least one delivery tier is required")
        parsed.sort(key=lambda t: t.up_to_km)

        for tier in parsed:
            if tier.up_to_km <= 0:
                raise InvalidRequest("Tier distance must be greater than 0")
            if tier.charge < 0:
                raise InvalidRequest("Tier charge cannot be negative")
        if len({t.up_to_km for t in parsed}) != len(parsed):
            raise InvalidRequest("Duplicate tier distance")
        if max_range_km <= 0:
            raise InvalidRequest("Maximum range must be greater than 0")
        if max_range_km > parsed[-1].up_to_km:
            raise InvalidRequest(
                f"Maximum range {max_range_km} km is not covered by the last tier ({parsed[-1].up_to_km} km)"
            )

        return cls(max_range_km=float(max_range_km), tiers=tuple(parsed))


@dataclass(frozen=True)
class DeliveryQuote:
    distance_km: float
    serviceable: bool
    calculated_charge: int
    applied_charge: int
    free_delivery: bool


def haversine_distance(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance in km, rounded to 2 decimals"""
    d_lat = math.radians(b.lat - a.lat)
    d_lng = math.radians(b.lng - a.lng)
    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(a.lat)) * math.cos(math.radians(b.lat)) * math.sin(d_lng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return round(EARTH_RADIUS_KM * c, 2)


def delivery_charge(distance_km: float, tiers: Sequence[DeliveryTier]) -> int:
    """Charge of the first tier (ascending) whose upper bound covers the distance"""
    for tier in tiers:
        if distance_km <= tier.up_to_km:
            return tier.charge
    raise OutOfServiceRange(
        f"No delivery tier covers {distance_km} km",
        distance_km=distance_km,
        max_range_km=tiers[-1].up_to_km if tiers else None,
    )


def is_serviceable(distance_km: float, max_range_km: float) -> bool:
    return distance_km <= max_range_km


def quote_delivery(
    customer: Coordinate,
    subtotal: int,
    config: DeliveryZoneConfig,
    shop: Coordinate = SHOP_LOCATION,
    free_threshold: int = FREE_DELIVERY_THRESHOLD,
) -> DeliveryQuote:
    """
    Price delivery to ``customer``.

    Raises OutOfServiceRange when the customer is beyond the maximum range.
    Orders at or above ``free_threshold`` ship free, but the tier charge is
    still reported as ``calculated_charge``.
    """
    distance = haversine_distance(shop, customer)
    if not is_serviceable(distance, config.max_range_km):
        raise OutOfServiceRange(
            f"Sorry, we don't deliver to your location yet ({distance} km away, "
            f"maximum {config.max_range_km} km)",
            distance_km=distance,
            max_range_km=config.max_range_km,
        )

    calculated = delivery_charge(distance, config.tiers)
    free = subtotal >= free_threshold
    return DeliveryQuote(
        distance_km=distance,
        serviceable=True,
        calculated_charge=calculated,
        applied_charge=0 if free else calculated,
        free_delivery=free,
    )


def default_zone_config() -> DeliveryZoneConfig:
    return DeliveryZoneConfig.build(DEFAULT_MAX_RANGE_KM, parse_delivery_tiers(DEFAULT_DELIVERY_TIERS))


class DeliveryZoneService:
    """Loads and updates the active delivery zone configuration."""

    def __init__(self, db: Session):
        self.db = db

    def get_config(self) -> DeliveryZoneConfig:
        setting = self._latest_setting()
        if not setting:
            return default_zone_config()
        return DeliveryZoneConfig.build(setting.max_range_km, setting.charges or [])

    def quote(self, customer: Coordinate, subtotal: int) -> DeliveryQuote:
        quote = quote_delivery(customer, subtotal, self.get_config())
        logger.debug(
            f"Delivery quote: {quote.distance_km} km, charge {quote.calculated_charge} "
            f"(applied {quote.applied_charge})"
        )
        return quote

    def update_config(self, max_range_km: float, tiers: Sequence) -> DeliveryZoneConfig:
        """Validate and store a new tier table (replaces the active one)"""
        config = DeliveryZoneConfig.build(max_range_km, tiers)
        try:
            setting = DeliverySetting(
                max_range_km=config.max_range_km,
                charges=[{"up_to_km": t.up_to_km, "charge": t.charge} for t in config.tiers],
            )
            self.db.add(setting)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info(f"✅ Delivery settings updated: max {config.max_range_km} km, {len(config.tiers)} tiers")
        return config

    def _latest_setting(self) -> Optional[DeliverySetting]:
        return self.db.query(DeliverySetting).order_by(DeliverySetting.id.desc()).first()
