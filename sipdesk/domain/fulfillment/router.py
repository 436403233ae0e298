"""Fulfillment router - chef, courier and cancellation endpoints"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from ...auth import Actor, require_roles
from ...clock import Clock, get_clock
from ...database import get_db
from ...email_service import send_unit_cancelled
from .schemas import (
    CancelRequest,
    CancelResponse,
    ChefQueue,
    CourierQueue,
    CourierStatusUpdate,
    KitchenStatusUpdate,
    TransitionResponse,
)
from .service import FulfillmentService, serialize_unit

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Fulfillment"])


def get_fulfillment_service(db: Session = Depends(get_db)) -> FulfillmentService:
    """Dependency injection for FulfillmentService"""
    return FulfillmentService(db)


# ============================================================================
# KITCHEN
# ============================================================================


@router.post("/chef/units/status", response_model=TransitionResponse)
async def update_kitchen_status(
    data: KitchenStatusUpdate,
    actor: Actor = Depends(require_roles("chef", "admin")),
    service: FulfillmentService = Depends(get_fulfillment_service),
    clock: Clock = Depends(get_clock),
):
    unit, changed = service.update_kitchen_status(
        actor, data.orderId, data.dayId, data.status, clock.now(), data.clientTime
    )
    return TransitionResponse(changed=changed, unit=serialize_unit(unit))


@router.get("/chef/queue", response_model=ChefQueue)
async def get_chef_queue(
    on: Optional[date] = Query(None, alias="date"),
    actor: Actor = Depends(require_roles("chef", "admin")),
    service: FulfillmentService = Depends(get_fulfillment_service),
    clock: Clock = Depends(get_clock),
):
    """Units due on a date (today by default) grouped by kitchen status"""
    return service.chef_queue(on or clock.now().date())


# ============================================================================
# COURIER
# ============================================================================


@router.post("/delivery/units/status", response_model=TransitionResponse)
async def update_courier_status(
    data: CourierStatusUpdate,
    actor: Actor = Depends(require_roles("delivery", "admin")),
    service: FulfillmentService = Depends(get_fulfillment_service),
    clock: Clock = Depends(get_clock),
):
    unit, changed = service.update_courier_status(
        actor, data.orderId, data.dayId, data.status, clock.now(), data.reason, data.clientTime
    )
    return TransitionResponse(changed=changed, unit=serialize_unit(unit))


@router.get("/delivery/queue", response_model=CourierQueue)
async def get_courier_queue(
    on: Optional[date] = Query(None, alias="date"),
    actor: Actor = Depends(require_roles("delivery", "admin")),
    service: FulfillmentService = Depends(get_fulfillment_service),
    clock: Clock = Depends(get_clock),
):
    return service.courier_queue(on or clock.now().date())


# ============================================================================
# CANCELLATION
# ============================================================================


@router.post("/orders/cancel", response_model=CancelResponse)
async def cancel_unit(
    data: CancelRequest,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(require_roles("chef", "admin")),
    service: FulfillmentService = Depends(get_fulfillment_service),
    clock: Clock = Depends(get_clock),
):
    """Cancel a QuickSip order or one FreshPlan day, refunding any wallet spend"""
    unit, changed, refunded = service.cancel(
        actor, data.orderId, data.dayId, data.reason, clock.now(), force=data.force
    )

    if changed:
        order = unit.order
        scheduled = unit.scheduled_date
        background_tasks.add_task(
            send_unit_cancelled,
            to=order.user.email if order.user else None,
            customer_name=order.customer_name,
            order_public_id=order.public_id,
            delivery_date=scheduled.strftime("%d %b %Y") if scheduled else "your order",
            reason=data.reason,
            refunded_amount=refunded,
        )
    return CancelResponse(changed=changed, refundedAmount=refunded, unit=serialize_unit(unit))
