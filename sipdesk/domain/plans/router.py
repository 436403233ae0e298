"""FreshPlan router - plan lifecycle and day rescheduling endpoints"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from ...auth import Actor, get_current_actor
from ...clock import Clock, get_clock
from ...database import get_db
from ...email_service import send_order_confirmation
from ..orders.schemas import OrderResponse
from ..orders.service import serialize_order
from .schemas import (
    DaySlotUpdate,
    EarliestStartResponse,
    EditabilityResponse,
    FreshPlanCreate,
    FreshPlanResponse,
    PlanCheckout,
)
from .schedule_service import PlanScheduleService
from .service import PlanService, serialize_plan

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/plans", tags=["FreshPlan"])


def get_plan_service(db: Session = Depends(get_db)) -> PlanService:
    """Dependency injection for PlanService"""
    return PlanService(db)


def get_schedule_service(db: Session = Depends(get_db)) -> PlanScheduleService:
    """Dependency injection for PlanScheduleService"""
    return PlanScheduleService(db)


@router.get("/earliest-start", response_model=EarliestStartResponse)
async def get_earliest_start(
    actor: Actor = Depends(get_current_actor),
    service: PlanService = Depends(get_plan_service),
    clock: Clock = Depends(get_clock),
):
    now = clock.now()
    return EarliestStartResponse(
        earliestStartDate=service.earliest_allowed_start_date(actor.user_id, now),
        activePlanEndDate=service.latest_active_end_date(actor.user_id, now),
    )


@router.post("", response_model=FreshPlanResponse, status_code=201)
async def create_plan(
    data: FreshPlanCreate,
    actor: Actor = Depends(get_current_actor),
    service: PlanService = Depends(get_plan_service),
    clock: Clock = Depends(get_clock),
):
    return serialize_plan(service.create_plan(actor, data, clock.now()))


@router.get("", response_model=list[FreshPlanResponse])
async def list_plans(
    actor: Actor = Depends(get_current_actor),
    service: PlanService = Depends(get_plan_service),
):
    return [serialize_plan(p) for p in service.list_plans(actor)]


@router.put("/{plan_id}", response_model=FreshPlanResponse)
async def update_plan(
    plan_id: int,
    data: FreshPlanCreate,
    actor: Actor = Depends(get_current_actor),
    service: PlanService = Depends(get_plan_service),
    clock: Clock = Depends(get_clock),
):
    """Change the dates or schedule of a plan before it is paid for"""
    return serialize_plan(service.update_plan(actor, plan_id, data, clock.now()))


@router.delete("/{plan_id}", status_code=204)
async def delete_plan(
    plan_id: int,
    actor: Actor = Depends(get_current_actor),
    service: PlanService = Depends(get_plan_service),
):
    """Delete a plan that has not been paid for"""
    service.delete_plan(actor, plan_id)


@router.post("/{plan_id}/payment-complete", response_model=FreshPlanResponse)
async def mark_payment_complete(
    plan_id: int,
    actor: Actor = Depends(get_current_actor),
    service: PlanService = Depends(get_plan_service),
    clock: Clock = Depends(get_clock),
):
    """Payment signal from the payment provider callback; repeating it is harmless"""
    plan, _changed = service.mark_payment_complete(actor, plan_id, clock.now())
    return serialize_plan(plan)


@router.post("/{plan_id}/checkout", response_model=OrderResponse)
async def checkout_plan(
    plan_id: int,
    data: PlanCheckout,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_current_actor),
    service: PlanService = Depends(get_plan_service),
    clock: Clock = Depends(get_clock),
):
    order, created = service.checkout_plan(actor, plan_id, data, clock.now())

    if created:
        days = order.days
        background_tasks.add_task(
            send_order_confirmation,
            to=order.user.email if order.user else None,
            customer_name=order.customer_name,
            order_public_id=order.public_id,
            order_type=order.order_type,
            total_amount=order.total_amount,
            delivery_summary=(
                f"{len(days)} deliveries, {days[0].date.strftime('%d %b')} to {days[-1].date.strftime('%d %b %Y')}"
            ),
            delivery_charge=order.delivery_charge,
            wallet_amount_used=order.wallet_amount_used,
        )
    return serialize_order(order)


# ============================================================================
# DAY RESCHEDULING
# ============================================================================


@router.get("/orders/{order_id}/days/{day_id}/editability", response_model=EditabilityResponse)
async def get_day_editability(
    order_id: int,
    day_id: int,
    actor: Actor = Depends(get_current_actor),
    service: PlanScheduleService = Depends(get_schedule_service),
    clock: Clock = Depends(get_clock),
):
    day, window = service.day_editability(actor, order_id, day_id, clock.now())
    return EditabilityResponse(
        dayId=day.id, date=day.date, editable=window.editable, reason=window.reason, locksAt=window.locks_at
    )


@router.put("/orders/{order_id}/days/{day_id}/time-slot", response_model=OrderResponse)
async def edit_day_time_slot(
    order_id: int,
    day_id: int,
    data: DaySlotUpdate,
    actor: Actor = Depends(get_current_actor),
    service: PlanScheduleService = Depends(get_schedule_service),
    clock: Clock = Depends(get_clock),
):
    """Move one delivery day to another slot (locked from the cutoff the day before)"""
    day = service.edit_day_slot(actor, order_id, day_id, data.timeSlot, clock.now())
    return serialize_order(day.order)
