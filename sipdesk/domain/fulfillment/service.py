"""Fulfillment service - kitchen, courier and cancellation transitions"""

import logging
from datetime import date, datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...auth import Actor
from ...errors import FulfillmentError, NotFound
from ...models import Order
from ..wallet.coordinator import CancellationCoordinator
from .repository import FulfillmentRepository
from .schemas import ChefQueue, CourierQueue, UnitItem, UnitResponse
from .state_machine import (
    CourierStatus,
    KitchenStatus,
    advance_courier,
    advance_kitchen,
    cancel_unit,
    is_cancelled,
    rollup_order_status,
    unit_status,
)
from .units import DayUnit, FulfillmentUnit, WholeOrderUnit, resolve_unit

logger = logging.getLogger(__name__)


def serialize_unit(unit: FulfillmentUnit) -> UnitResponse:
    record = unit.record
    order = unit.order
    return UnitResponse(
        orderId=order.id,
        orderPublicId=order.public_id,
        orderType=order.order_type,
        dayId=record.id if unit.kind == "day" else None,
        key=unit.key,
        scheduledDate=unit.scheduled_date,
        timeSlot=unit.time_slot,
        status=unit_status(record),
        kitchenStatus=record.kitchen_status,
        courierStatus=record.courier_status,
        orderStatus=order.status,
        customerName=order.customer_name,
        customerPhone=order.customer_phone,
        customerAddress=order.customer_address,
        customerAddressExtra=order.customer_address_extra,
        receivedTime=record.received_time,
        doneTime=record.done_time,
        pickedTime=record.picked_time,
        deliveredTime=record.delivered_time,
        notDeliveredTime=record.not_delivered_time,
        notDeliveredReason=record.not_delivered_reason,
        cancelledAt=record.cancelled_at,
        cancellationReason=record.cancellation_reason,
        items=[
            UnitItem(
                productId=item.product_id,
                productName=item.product_name,
                category=item.category,
                quantity=item.quantity,
                unitPrice=item.unit_price,
                customization=item.customization or {},
            )
            for item in unit.items
        ],
    )


class FulfillmentService:
    """Service layer for the kitchen and courier state machines"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = FulfillmentRepository()
        self.coordinator = CancellationCoordinator(db)

    def _locked_unit(self, order_id: int, day_id: Optional[int]) -> tuple[Order, FulfillmentUnit]:
        order = self.repo.lock_order(self.db, order_id)
        if not order:
            raise NotFound("Order not found")
        return order, resolve_unit(order, day_id)

    def _commit_transition(self, order: Order) -> None:
        order.status = rollup_order_status(order)
        self.db.commit()
        self.db.refresh(order)

    def update_kitchen_status(
        self,
        actor: Actor,
        order_id: int,
        day_id: Optional[int],
        status: str,
        now: datetime,
        client_time: Optional[datetime] = None,
    ) -> tuple[FulfillmentUnit, bool]:
        """Chef marks a unit received or done. Returns (unit, changed)."""
        try:
            order, unit = self._locked_unit(order_id, day_id)
            changed = advance_kitchen(unit, KitchenStatus(status), actor.user_id, now, client_time)
            self._commit_transition(order)
        except FulfillmentError as e:
            self.db.rollback()
            logger.warning(f"⚠️ Kitchen {status} refused for order {order_id} day {day_id}: {e.detail}")
            raise
        except Exception:
            self.db.rollback()
            raise

        if changed:
            logger.info(f"🧃 {unit.key} kitchen → {status} by chef {actor.user_id}")
        return unit, changed

    def update_courier_status(
        self,
        actor: Actor,
        order_id: int,
        day_id: Optional[int],
        status: str,
        now: datetime,
        reason: Optional[str] = None,
        client_time: Optional[datetime] = None,
    ) -> tuple[FulfillmentUnit, bool]:
        """Courier picks up or closes a unit. Returns (unit, changed)."""
        try:
            order, unit = self._locked_unit(order_id, day_id)
            changed = advance_courier(
                unit,
                CourierStatus(status),
                actor.user_id,
                now,
                reason=reason,
                client_time=client_time,
                enforce_owner=not actor.is_admin,
            )
            self._commit_transition(order)
        except FulfillmentError as e:
            self.db.rollback()
            logger.warning(f"⚠️ Courier {status} refused for order {order_id} day {day_id}: {e.detail}")
            raise
        except Exception:
            self.db.rollback()
            raise

        if changed:
            logger.info(f"🛵 {unit.key} courier → {status} by {actor.role} {actor.user_id}")
        return unit, changed

    def cancel(
        self,
        actor: Actor,
        order_id: int,
        day_id: Optional[int],
        reason: str,
        now: datetime,
        force: bool = False,
    ) -> tuple[FulfillmentUnit, bool, int]:
        """
        Cancel a unit and refund its wallet share in one transaction.

        Returns (unit, changed, refunded_amount). If the refund cannot be
        written the cancellation is rolled back with it.
        """
        try:
            order, unit = self._locked_unit(order_id, day_id)
            changed = cancel_unit(unit, actor.user_id, actor.role, reason, now, force=force)
            refunded = self.coordinator.on_unit_cancelled(unit, now) if changed else 0
            self._commit_transition(order)
        except FulfillmentError as e:
            self.db.rollback()
            logger.warning(f"⚠️ Cancellation refused for order {order_id} day {day_id}: {e.detail}")
            raise
        except Exception:
            self.db.rollback()
            raise

        if changed:
            logger.info(f"🚫 {unit.key} cancelled by {actor.role} {actor.user_id} (refunded {refunded})")
        return unit, changed, refunded

    def _units_for_date(self, delivery_date: date) -> list[FulfillmentUnit]:
        units: list[FulfillmentUnit] = [
            WholeOrderUnit(order) for order in self.repo.get_quicksip_orders_for_date(self.db, delivery_date)
        ]
        units.extend(DayUnit(day) for day in self.repo.get_paid_plan_days_for_date(self.db, delivery_date))
        return units

    def chef_queue(self, delivery_date: date) -> ChefQueue:
        """Live units due on a date, grouped by kitchen status"""
        groups = {status.value: [] for status in KitchenStatus}
        for unit in self._units_for_date(delivery_date):
            if is_cancelled(unit.record):
                continue
            groups[unit.record.kitchen_status].append(serialize_unit(unit))
        return ChefQueue(
            date=delivery_date,
            pending=groups["pending"],
            received=groups["received"],
            done=groups["done"],
        )

    def courier_queue(self, delivery_date: date) -> CourierQueue:
        """Units the kitchen has finished, grouped by courier status"""
        groups = {status.value: [] for status in CourierStatus}
        for unit in self._units_for_date(delivery_date):
            record = unit.record
            if is_cancelled(record) or record.kitchen_status != KitchenStatus.DONE.value:
                continue
            groups[record.courier_status].append(serialize_unit(unit))
        return CourierQueue(
            date=delivery_date,
            readyToPick=groups["not-yet-picked"],
            picked=groups["picked"],
            delivered=groups["delivered"],
            notDelivered=groups["not-delivered"],
        )
