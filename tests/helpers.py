"""Payload builders and fixtures-in-code shared by the test modules"""

from datetime import timedelta

from sipdesk.models import FreshPlan, Order, OrderItem, PlanDay

# About 4 km due north of the shop
NEAR_SHOP = {"lat": 28.717500, "lng": 77.206712}
# About 11 km due north, beyond the default 5 km range
FAR_FROM_SHOP = {"lat": 28.780000, "lng": 77.206712}

CUSTOMER_DETAILS = {
    "name": "Asha Verma",
    "phone": "98765 43210",
    "address": "12 Chandni Chowk, Delhi",
}


def juice(price=60, quantity=1, **customization):
    return {
        "productId": "orange-juice",
        "productName": "Orange Juice",
        "quantity": quantity,
        "price": price,
        "customization": {"category": "juice", "size": "Regular", **customization},
    }


def shake(price=80, quantity=1, **customization):
    return {
        "productId": "banana-shake",
        "productName": "Banana Shake",
        "quantity": quantity,
        "price": price,
        "customization": {"category": "shake", "size": "Large", **customization},
    }


def add_quicksip_order(db, user, delivery_date, subtotal=120, wallet_used=0, slot="3-4 PM"):
    """Persist a QuickSip order directly, bypassing checkout"""
    order = Order(
        user_id=user.id,
        order_type="quicksip",
        customer_name="Asha Verma",
        customer_phone="+919876543210",
        customer_address="12 Chandni Chowk, Delhi",
        subtotal_amount=subtotal,
        wallet_amount_used=wallet_used,
        total_amount=subtotal - wallet_used,
        delivery_date=delivery_date,
        delivery_time_slot=slot,
    )
    db.add(order)
    db.add(
        OrderItem(
            order=order,
            product_id="orange-juice",
            category="juice",
            quantity=2,
            unit_price=subtotal // 2,
            customization={"category": "juice", "size": "Regular", "quantity": "250mL", "ice": "Normal Ice"},
            time_slot=slot,
        )
    )
    db.commit()
    db.refresh(order)
    return order


def add_plan_order(db, user, day_prices, start_date, wallet_used=0, slot="7-8 AM", paid=True):
    """Persist a checked-out FreshPlan order with one day per entry of ``day_prices``"""
    plan = FreshPlan(
        user_id=user.id,
        days=max(len(day_prices), 3),
        start_date=start_date,
        schedule=[],
        payment_complete=paid,
    )
    db.add(plan)
    db.flush()

    subtotal = sum(day_prices)
    order = Order(
        user_id=user.id,
        order_type="freshplan",
        customer_name="Asha Verma",
        customer_phone="+919876543210",
        customer_address="12 Chandni Chowk, Delhi",
        subtotal_amount=subtotal,
        wallet_amount_used=wallet_used,
        total_amount=subtotal - wallet_used,
        fresh_plan_id=plan.id,
        is_complete_plan_checkout=True,
    )
    db.add(order)
    for offset, price in enumerate(day_prices):
        day = PlanDay(order=order, date=start_date + timedelta(days=offset))
        order.items.append(
            OrderItem(
                day=day,
                product_id="banana-shake",
                category="shake",
                quantity=1,
                unit_price=price,
                customization={"category": "shake", "size": "Large", "quantity": "350mL"},
                time_slot=slot,
            )
        )
    db.commit()
    db.refresh(order)
    return order
