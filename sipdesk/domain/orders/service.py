"""Order service - QuickSip checkout and order lookup"""

import logging
from datetime import date, datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...auth import Actor
from ...errors import FulfillmentError, InvalidRequest, NotFound
from ...models import Order
from ...services.delivery_zone import Coordinate, DeliveryZoneService
from ..fulfillment.service import serialize_unit
from ..fulfillment.units import units_of
from ..scheduling.time_slots import available_slots_for_today, find_slot
from ..wallet.ledger import apply_movement
from .repository import OrderRepository
from .schemas import CustomerDetails, LineItem, OrderItemResponse, OrderResponse, QuickSipOrderCreate

logger = logging.getLogger(__name__)

STAFF_ROLES = ("chef", "delivery", "admin")


def subtotal_of(items: list[LineItem]) -> int:
    return sum(item.line_total for item in items)


def item_columns(item: LineItem, time_slot: str) -> dict:
    """Column values for an OrderItem built from a validated line item"""
    customization = item.customization.model_dump()
    return {
        "product_id": item.productId,
        "product_name": item.productName,
        "category": customization["category"],
        "quantity": item.quantity,
        "unit_price": item.price,
        "customization": customization,
        "time_slot": time_slot,
    }


def serialize_order(order: Order) -> OrderResponse:
    return OrderResponse(
        id=order.id,
        publicId=order.public_id,
        orderType=order.order_type,
        status=order.status,
        customerDetails=CustomerDetails(
            name=order.customer_name,
            phone=order.customer_phone,
            address=order.customer_address,
            additionalAddressInfo=order.customer_address_extra,
        ),
        subtotalAmount=order.subtotal_amount,
        deliveryCharge=order.delivery_charge,
        calculatedDeliveryCharge=order.calculated_delivery_charge,
        walletAmountUsed=order.wallet_amount_used,
        totalAmount=order.total_amount,
        distanceKm=order.distance_km,
        deliveryDate=order.delivery_date,
        deliveryTimeSlot=order.delivery_time_slot,
        freshPlanId=order.fresh_plan_id,
        isCompletePlanCheckout=order.is_complete_plan_checkout,
        items=[
            OrderItemResponse(
                id=item.id,
                dayId=item.day_id,
                productId=item.product_id,
                productName=item.product_name,
                category=item.category,
                quantity=item.quantity,
                price=item.unit_price,
                customization=item.customization or {},
                timeSlot=item.time_slot,
            )
            for item in order.items
        ],
        units=[serialize_unit(unit) for unit in units_of(order)],
        createdAt=order.created_at,
    )


class OrderService:
    """Service layer for order business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = OrderRepository()

    def create_quicksip_order(self, actor: Actor, data: QuickSipOrderCreate, now: datetime) -> Order:
        """
        Place a same-day QuickSip order.

        The slot must still be bookable at ``now`` and the address must be
        inside the delivery range. Wallet spend is debited from the referral
        wallet in the same transaction as the order insert.
        """
        logger.info(f"📥 Creating QuickSip order for user_id: {actor.user_id}")

        slot = find_slot(data.timeSlot)
        if slot not in available_slots_for_today(now):
            raise InvalidRequest(f"Time slot {slot.range} is no longer available today")

        subtotal = subtotal_of(data.items)
        quote = DeliveryZoneService(self.db).quote(
            Coordinate(lat=data.location.lat, lng=data.location.lng), subtotal
        )

        wallet_amount = data.walletAmount
        if wallet_amount > subtotal + quote.applied_charge:
            raise InvalidRequest("Wallet amount cannot exceed the order total")

        details = data.customerDetails
        try:
            order = self.repo.add_order(
                self.db,
                user_id=actor.user_id,
                order_type="quicksip",
                status="pending",
                customer_name=details.name,
                customer_phone=details.phone,
                customer_address=details.address,
                customer_address_extra=details.additionalAddressInfo,
                customer_lat=data.location.lat,
                customer_lng=data.location.lng,
                subtotal_amount=subtotal,
                delivery_charge=quote.applied_charge,
                calculated_delivery_charge=quote.calculated_charge,
                wallet_amount_used=wallet_amount,
                total_amount=subtotal + quote.applied_charge - wallet_amount,
                distance_km=quote.distance_km,
                delivery_date=now.date(),
                delivery_time_slot=slot.range,
            )
            for item in data.items:
                self.repo.add_item(self.db, order, **item_columns(item, slot.range))

            if wallet_amount:
                apply_movement(
                    self.db,
                    user_id=actor.user_id,
                    amount=-wallet_amount,
                    kind="order_debit",
                    reference=f"order:{order.id}:wallet",
                    now=now,
                    order_id=order.id,
                )

            self.db.commit()
            self.db.refresh(order)
        except FulfillmentError as e:
            self.db.rollback()
            logger.warning(f"⚠️ QuickSip order for user {actor.user_id} rejected: {e.detail}")
            raise
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"✅ QuickSip order {order.id} created for user {actor.user_id}: "
            f"{slot.range}, total {order.total_amount}"
        )
        return order

    def get_order(self, actor: Actor, order_id: int) -> Order:
        order = self.repo.get_order(self.db, order_id)
        # Customers only see their own orders; a foreign id looks like a missing one
        if not order or (actor.role not in STAFF_ROLES and order.user_id != actor.user_id):
            raise NotFound("Order not found")
        return order

    def list_orders(self, actor: Actor) -> list[Order]:
        return self.repo.get_orders_for_user(self.db, actor.user_id)

    def list_all_orders(
        self,
        status: Optional[str] = None,
        order_type: Optional[str] = None,
        delivery_date: Optional[date] = None,
    ) -> list[Order]:
        return self.repo.get_orders(self.db, status=status, order_type=order_type, delivery_date=delivery_date)
