"""
FreshPlan service - plan sequencing and checkout

A customer may have at most one active (paid, not yet finished) plan at a
time; the next plan starts the day after the last one ends. The start-date
check is repeated inside the write transaction, guarded by a check-and-set on
``users.plan_version``, so two racing requests cannot both book overlapping
windows.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...auth import Actor
from ...config import PLAN_MAX_DAYS, PLAN_MIN_DAYS
from ...errors import (
    ConcurrentUpdate,
    FulfillmentError,
    InvalidDuration,
    InvalidRequest,
    InvalidStateTransition,
    NotFound,
    StartDateConflict,
)
from ...models import FreshPlan, Order, OrderItem, PlanDay
from ...services.delivery_zone import Coordinate, DeliveryZoneService, quote_delivery
from ..orders.schemas import LineItem
from ..orders.service import item_columns, subtotal_of
from ..scheduling.time_slots import available_slots, available_slots_for_today, find_slot
from ..wallet.ledger import apply_movement
from .repository import PlanRepository
from .schemas import FreshPlanCreate, FreshPlanResponse, PlanCheckout, PlanDayDraft

logger = logging.getLogger(__name__)


def plan_end_date(start_date: date, days: int) -> date:
    return start_date + timedelta(days=days - 1)


def validate_duration(days: int) -> None:
    if not PLAN_MIN_DAYS <= days <= PLAN_MAX_DAYS:
        raise InvalidDuration(f"Plan duration must be between {PLAN_MIN_DAYS} and {PLAN_MAX_DAYS} days")


def first_bookable_date(now: datetime) -> date:
    """Today while same-day slots remain, else tomorrow"""
    if available_slots_for_today(now):
        return now.date()
    return now.date() + timedelta(days=1)


def serialize_plan(plan: FreshPlan) -> FreshPlanResponse:
    return FreshPlanResponse(
        id=plan.id,
        publicId=plan.public_id,
        days=plan.days,
        startDate=plan.start_date,
        endDate=plan.end_date,
        schedule=plan.schedule or [],
        paymentComplete=plan.payment_complete,
        paidAt=plan.paid_at,
        orderId=plan.order.id if plan.order else None,
        createdAt=plan.created_at,
    )


class PlanService:
    """Service layer for FreshPlan business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = PlanRepository()

    # ------------------------------------------------------------------
    # Sequencing
    # ------------------------------------------------------------------

    def latest_active_end_date(self, user_id: int, now: datetime, exclude_id: Optional[int] = None) -> Optional[date]:
        active = self.repo.active_plans(self.db, user_id, now.date(), exclude_id)
        return max((p.end_date for p in active), default=None)

    def earliest_allowed_start_date(self, user_id: int, now: datetime, exclude_id: Optional[int] = None) -> date:
        """
        Day after the last active plan ends.

        With no active plan: today while same-day slots remain, else tomorrow.
        """
        latest_end = self.latest_active_end_date(user_id, now, exclude_id)
        if latest_end is not None:
            return latest_end + timedelta(days=1)
        return first_bookable_date(now)

    def _validate_schedule(self, schedule: list[PlanDayDraft], start: date, end: date, now: datetime) -> list[dict]:
        seen = set()
        drafts = []
        for day in sorted(schedule, key=lambda d: d.date):
            if day.date in seen:
                raise InvalidRequest(f"{day.date.isoformat()} is scheduled more than once")
            seen.add(day.date)
            if not start <= day.date <= end:
                raise InvalidRequest(
                    f"{day.date.isoformat()} is outside the plan window {start.isoformat()} to {end.isoformat()}"
                )
            slot = find_slot(day.timeSlot)
            if slot not in available_slots(day.date, now):
                raise InvalidRequest(f"Time slot {slot.range} is not available on {day.date.isoformat()}")
            drafts.append(
                {
                    "date": day.date.isoformat(),
                    "timeSlot": slot.range,
                    "items": [item.model_dump() for item in day.items],
                }
            )
        return drafts

    def create_plan(self, actor: Actor, data: FreshPlanCreate, now: datetime) -> FreshPlan:
        """Create an unpaid plan starting no earlier than the customer's earliest allowed date"""
        validate_duration(data.days)
        end = plan_end_date(data.startDate, data.days)
        schedule = self._validate_schedule(data.schedule, data.startDate, end, now)

        try:
            user = self.repo.lock_user(self.db, actor.user_id)
            if not user:
                raise NotFound("User not found")
            version = user.plan_version or 0

            earliest = self.earliest_allowed_start_date(user.id, now)
            if data.startDate < earliest:
                raise StartDateConflict(
                    f"Plan cannot start before {earliest.isoformat()}", earliest_start_date=earliest
                )

            if not self.repo.bump_plan_version(self.db, user.id, version):
                raise ConcurrentUpdate("Another plan change for this customer is in progress; please retry")

            plan = FreshPlan(
                user_id=user.id,
                days=data.days,
                start_date=data.startDate,
                schedule=schedule,
                payment_complete=False,
            )
            self.db.add(plan)
            self.db.commit()
            self.db.refresh(plan)
        except FulfillmentError as e:
            self.db.rollback()
            logger.warning(f"⚠️ Plan creation for user {actor.user_id} rejected: {e.detail}")
            raise
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"✅ FreshPlan {plan.id} created for user {actor.user_id}: "
            f"{plan.start_date.isoformat()} → {plan.end_date.isoformat()} ({plan.days} days)"
        )
        return plan

    def get_plan(self, actor: Actor, plan_id: int) -> FreshPlan:
        plan = self.repo.get_plan(self.db, plan_id)
        if not plan or (plan.user_id != actor.user_id and not actor.is_admin):
            raise NotFound("Plan not found")
        return plan

    def list_plans(self, actor: Actor) -> list[FreshPlan]:
        return self.repo.get_plans_for_user(self.db, actor.user_id)

    def delete_plan(self, actor: Actor, plan_id: int) -> None:
        plan = self.get_plan(actor, plan_id)
        if plan.payment_complete:
            raise InvalidStateTransition("Paid plans cannot be deleted")
        if plan.order:
            raise InvalidStateTransition("Plan has already been checked out")
        try:
            self.db.delete(plan)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info(f"🗑️ FreshPlan {plan_id} deleted by user {actor.user_id}")

    def update_plan(self, actor: Actor, plan_id: int, data: FreshPlanCreate, now: datetime) -> FreshPlan:
        """
        Replace the window and schedule of a plan that is not yet paid for.

        Runs the same duration, start-date and schedule checks as creation.
        Once paid or checked out, the plan is frozen and edits go through
        day rescheduling instead.
        """
        plan = self.get_plan(actor, plan_id)
        validate_duration(data.days)
        end = plan_end_date(data.startDate, data.days)
        schedule = self._validate_schedule(data.schedule, data.startDate, end, now)

        try:
            user = self.repo.lock_user(self.db, plan.user_id)
            version = user.plan_version or 0
            self.db.refresh(plan)
            if plan.payment_complete:
                raise InvalidStateTransition("Paid plans cannot be edited")
            if self.repo.get_plan_order(self.db, plan.id):
                raise InvalidStateTransition("Plan has already been checked out")

            earliest = self.earliest_allowed_start_date(plan.user_id, now, exclude_id=plan.id)
            if data.startDate < earliest:
                raise StartDateConflict(
                    f"Plan cannot start before {earliest.isoformat()}", earliest_start_date=earliest
                )

            if not self.repo.bump_plan_version(self.db, plan.user_id, version):
                raise ConcurrentUpdate("Another plan change for this customer is in progress; please retry")

            plan.days = data.days
            plan.start_date = data.startDate
            plan.schedule = schedule
            self.db.commit()
            self.db.refresh(plan)
        except FulfillmentError as e:
            self.db.rollback()
            logger.warning(f"⚠️ Update of plan {plan_id} rejected: {e.detail}")
            raise
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"✏️ FreshPlan {plan.id} updated: {plan.start_date.isoformat()} → {plan.end_date.isoformat()} "
            f"({len(plan.schedule)} scheduled days)"
        )
        return plan

    def mark_payment_complete(self, actor: Actor, plan_id: int, now: datetime) -> tuple[FreshPlan, bool]:
        """
        Record the payment signal for a plan. Returns (plan, changed).

        The plan's window is re-checked against the customer's other paid
        plans, since an unpaid plan does not reserve its dates.
        """
        plan = self.get_plan(actor, plan_id)
        if plan.payment_complete:
            return plan, False

        try:
            user = self.repo.lock_user(self.db, plan.user_id)
            version = user.plan_version or 0

            overlapping = [
                other
                for other in self.repo.get_paid_plans(self.db, plan.user_id, exclude_id=plan.id)
                if other.start_date <= plan.end_date and plan.start_date <= other.end_date
            ]
            if overlapping:
                earliest = max(other.end_date for other in overlapping) + timedelta(days=1)
                raise StartDateConflict(
                    f"Plan overlaps an active plan; it cannot start before {earliest.isoformat()}",
                    earliest_start_date=earliest,
                )

            # A plan whose first day has gone by could never be checked out
            earliest = first_bookable_date(now)
            if plan.start_date < earliest:
                raise StartDateConflict(
                    f"Plan start {plan.start_date.isoformat()} has passed; it cannot start before "
                    f"{earliest.isoformat()}",
                    earliest_start_date=earliest,
                )

            if not self.repo.bump_plan_version(self.db, plan.user_id, version):
                raise ConcurrentUpdate("Another plan change for this customer is in progress; please retry")

            plan.payment_complete = True
            plan.paid_at = now
            self.db.commit()
            self.db.refresh(plan)
        except FulfillmentError as e:
            self.db.rollback()
            logger.warning(f"⚠️ Payment for plan {plan_id} not recorded: {e.detail}")
            raise
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"💳 FreshPlan {plan.id} payment complete")
        return plan, True

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    def checkout_plan(self, actor: Actor, plan_id: int, data: PlanCheckout, now: datetime) -> tuple[Order, bool]:
        """
        Materialise a plan into a FreshPlan order with one PlanDay per scheduled date.

        Delivery is priced per delivery day, with the free-delivery threshold
        applied to each day's subtotal. Returns (order, created); checking out
        a plan twice returns the existing order.
        """
        plan = self.get_plan(actor, plan_id)
        existing = self.repo.get_plan_order(self.db, plan.id)
        if existing:
            return existing, False
        if not plan.schedule:
            raise InvalidRequest("Plan has no scheduled deliveries")

        days = []
        for draft in plan.schedule:
            day_date = date.fromisoformat(draft["date"])
            slot = find_slot(draft["timeSlot"])
            if slot not in available_slots(day_date, now):
                raise InvalidRequest(f"Time slot {slot.range} is no longer available on {day_date.isoformat()}")
            items = [LineItem.model_validate(item) for item in draft["items"]]
            days.append((day_date, slot, items))

        coordinate = Coordinate(lat=data.location.lat, lng=data.location.lng)
        zone = DeliveryZoneService(self.db).get_config()
        subtotal = 0
        applied_charge = 0
        calculated_charge = 0
        distance = None
        for _day_date, _slot, items in days:
            day_subtotal = subtotal_of(items)
            quote = quote_delivery(coordinate, day_subtotal, zone)
            subtotal += day_subtotal
            applied_charge += quote.applied_charge
            calculated_charge += quote.calculated_charge
            distance = quote.distance_km

        wallet_amount = data.walletAmount
        if wallet_amount > subtotal + applied_charge:
            raise InvalidRequest("Wallet amount cannot exceed the order total")

        details = data.customerDetails
        try:
            user = self.repo.lock_user(self.db, plan.user_id)
            version = user.plan_version or 0
            # A concurrent checkout may have committed while this one was pricing
            existing = self.repo.get_plan_order(self.db, plan.id)
            if existing:
                self.db.rollback()
                logger.info(f"FreshPlan {plan.id} already checked out as order {existing.id}")
                return existing, False

            order = Order(
                user_id=plan.user_id,
                order_type="freshplan",
                status="pending",
                customer_name=details.name,
                customer_phone=details.phone,
                customer_address=details.address,
                customer_address_extra=details.additionalAddressInfo,
                customer_lat=coordinate.lat,
                customer_lng=coordinate.lng,
                subtotal_amount=subtotal,
                delivery_charge=applied_charge,
                calculated_delivery_charge=calculated_charge,
                wallet_amount_used=wallet_amount,
                total_amount=subtotal + applied_charge - wallet_amount,
                distance_km=distance,
                fresh_plan_id=plan.id,
                is_complete_plan_checkout=True,
            )
            self.db.add(order)
            self.db.flush()

            for day_date, slot, items in days:
                day = PlanDay(order=order, date=day_date)
                self.db.add(day)
                for item in items:
                    order.items.append(OrderItem(day=day, **item_columns(item, slot.range)))

            if wallet_amount:
                apply_movement(
                    self.db,
                    user_id=plan.user_id,
                    amount=-wallet_amount,
                    kind="order_debit",
                    reference=f"order:{order.id}:wallet",
                    now=now,
                    order_id=order.id,
                )

            if not self.repo.bump_plan_version(self.db, plan.user_id, version):
                raise ConcurrentUpdate("Another plan change for this customer is in progress; please retry")

            self.db.commit()
            self.db.refresh(order)
        except FulfillmentError as e:
            self.db.rollback()
            logger.warning(f"⚠️ Checkout of plan {plan_id} rejected: {e.detail}")
            raise
        except IntegrityError:
            # Lost the race on the one-order-per-plan constraint
            self.db.rollback()
            existing = self.repo.get_plan_order(self.db, plan.id)
            if not existing:
                raise
            logger.info(f"FreshPlan {plan.id} checked out concurrently as order {existing.id}")
            return existing, False
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"✅ FreshPlan {plan.id} checked out as order {order.id} with {len(days)} days")
        return order, True
