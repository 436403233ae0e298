"""
Fulfillment units

A unit is the thing the kitchen prepares and the courier delivers: a whole
QuickSip order, or one day of a FreshPlan order. Both carry the same
FulfillmentMixin columns, so callers work against ``unit.record`` without
caring which shape they hold.
"""

from datetime import date
from typing import Optional, Protocol

from ...errors import InvalidRequest, NotFound
from ...models import Order, OrderItem, PlanDay


class FulfillmentUnit(Protocol):
    kind: str
    order: Order

    @property
    def record(self): ...

    @property
    def key(self) -> str: ...

    @property
    def scheduled_date(self) -> Optional[date]: ...

    @property
    def time_slot(self) -> Optional[str]: ...

    @property
    def items(self) -> list[OrderItem]: ...


class WholeOrderUnit:
    """A QuickSip order fulfilled in one delivery"""

    kind = "order"

    def __init__(self, order: Order):
        self.order = order

    @property
    def record(self) -> Order:
        return self.order

    @property
    def key(self) -> str:
        return f"order:{self.order.id}"

    @property
    def scheduled_date(self) -> Optional[date]:
        return self.order.delivery_date

    @property
    def time_slot(self) -> Optional[str]:
        return self.order.delivery_time_slot

    @property
    def items(self) -> list[OrderItem]:
        return list(self.order.items)


class DayUnit:
    """One delivery day inside a FreshPlan order"""

    kind = "day"

    def __init__(self, day: PlanDay):
        self.day = day
        self.order = day.order

    @property
    def record(self) -> PlanDay:
        return self.day

    @property
    def key(self) -> str:
        return f"day:{self.day.id}"

    @property
    def scheduled_date(self) -> date:
        return self.day.date

    @property
    def time_slot(self) -> Optional[str]:
        # Items of one day always share a slot
        return self.day.items[0].time_slot if self.day.items else None

    @property
    def items(self) -> list[OrderItem]:
        return list(self.day.items)


def resolve_unit(order: Order, day_id: Optional[int] = None) -> FulfillmentUnit:
    """Pick the unit addressed by (order, day) for either order type"""
    if order.order_type == "quicksip":
        if day_id is not None:
            raise InvalidRequest("QuickSip orders have no plan days")
        return WholeOrderUnit(order)

    if day_id is None:
        raise InvalidRequest("dayId is required for FreshPlan orders")
    for day in order.days:
        if day.id == day_id:
            return DayUnit(day)
    raise NotFound("Day not found in order")


def units_of(order: Order) -> list[FulfillmentUnit]:
    if order.order_type == "quicksip":
        return [WholeOrderUnit(order)]
    return [DayUnit(day) for day in order.days]
