"""Plan schedule service - rescheduling FreshPlan delivery days"""

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from ...auth import Actor
from ...errors import FulfillmentError, InvalidRequest, InvalidStateTransition, NotFound
from ...models import Order, PlanDay
from ..fulfillment.state_machine import KitchenStatus, is_cancelled
from ..fulfillment.units import DayUnit, resolve_unit
from ..scheduling.mutation_guard import ScheduleWindow, editability, ensure_editable
from ..scheduling.time_slots import find_slot
from .repository import PlanRepository

logger = logging.getLogger(__name__)


class PlanScheduleService:
    """Applies the schedule mutation guard to FreshPlan days"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = PlanRepository()

    def _owned_day(self, actor: Actor, order: Order, day_id: int) -> DayUnit:
        if not order or (order.user_id != actor.user_id and not actor.is_admin):
            raise NotFound("Order not found")
        if order.order_type != "freshplan":
            raise InvalidRequest("Only FreshPlan deliveries can be rescheduled")
        return resolve_unit(order, day_id)

    def day_editability(self, actor: Actor, order_id: int, day_id: int, now: datetime) -> tuple[PlanDay, ScheduleWindow]:
        order = self.db.query(Order).filter(Order.id == order_id).first()
        unit = self._owned_day(actor, order, day_id)
        return unit.day, editability(unit.day.date, now)

    def edit_day_slot(self, actor: Actor, order_id: int, day_id: int, time_slot: str, now: datetime) -> PlanDay:
        """Move every item of one day to a new slot, or raise ScheduleLocked"""
        try:
            order = self.repo.lock_order(self.db, order_id)
            unit = self._owned_day(actor, order, day_id)
            day = unit.day

            ensure_editable(day.date, now)
            if is_cancelled(day):
                raise InvalidStateTransition("This delivery was cancelled")
            if day.kitchen_status != KitchenStatus.PENDING.value:
                raise InvalidStateTransition("The kitchen has already started this delivery")

            slot = find_slot(time_slot)
            for item in day.items:
                item.time_slot = slot.range

            self.db.commit()
            self.db.refresh(day)
        except FulfillmentError as e:
            self.db.rollback()
            logger.warning(f"⚠️ Slot change for order {order_id} day {day_id} refused: {e.detail}")
            raise
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"🕒 Order {order_id} day {day.date.isoformat()} moved to {slot.range} by user {actor.user_id}")
        return day
