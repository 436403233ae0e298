"""Order router - QuickSip checkout and order lookup endpoints"""

import logging
from datetime import date
from typing import Literal, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from ...auth import Actor, get_current_actor, require_roles
from ...clock import Clock, get_clock
from ...database import get_db
from ...email_service import send_order_confirmation
from .schemas import OrderResponse, QuickSipOrderCreate
from .service import OrderService, serialize_order

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["Orders"])
admin_router = APIRouter(prefix="/admin", tags=["Admin Orders"])


def get_order_service(db: Session = Depends(get_db)) -> OrderService:
    """Dependency injection for OrderService"""
    return OrderService(db)


@router.post("/quicksip", response_model=OrderResponse, status_code=201)
async def create_quicksip_order(
    data: QuickSipOrderCreate,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_current_actor),
    service: OrderService = Depends(get_order_service),
    clock: Clock = Depends(get_clock),
):
    order = service.create_quicksip_order(actor, data, clock.now())

    background_tasks.add_task(
        send_order_confirmation,
        to=order.user.email if order.user else None,
        customer_name=order.customer_name,
        order_public_id=order.public_id,
        order_type=order.order_type,
        total_amount=order.total_amount,
        delivery_summary=f"Today, {order.delivery_time_slot}",
        delivery_charge=order.delivery_charge,
        wallet_amount_used=order.wallet_amount_used,
    )
    return serialize_order(order)


@router.get("", response_model=list[OrderResponse])
async def list_orders(
    actor: Actor = Depends(get_current_actor),
    service: OrderService = Depends(get_order_service),
):
    """Orders of the current user, newest first"""
    return [serialize_order(o) for o in service.list_orders(actor)]


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: int,
    actor: Actor = Depends(get_current_actor),
    service: OrderService = Depends(get_order_service),
):
    return serialize_order(service.get_order(actor, order_id))


# ============================================================================
# ADMIN
# ============================================================================


@admin_router.get("/orders", response_model=list[OrderResponse])
async def list_all_orders(
    status: Optional[str] = Query(None),
    order_type: Optional[Literal["quicksip", "freshplan"]] = Query(None, alias="orderType"),
    on: Optional[date] = Query(None, alias="date"),
    actor: Actor = Depends(require_roles("admin")),
    service: OrderService = Depends(get_order_service),
):
    """Every customer's orders, newest first, optionally filtered by status, type or delivery date"""
    orders = service.list_all_orders(status=status, order_type=order_type, delivery_date=on)
    return [serialize_order(o) for o in orders]
