"""Order repository - Database operations for orders"""

from datetime import date
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload

from ...models import Order, OrderItem, PlanDay


class OrderRepository:
    """Repository for order database operations"""

    @staticmethod
    def get_order(db: Session, order_id: int) -> Optional[Order]:
        return (
            db.query(Order)
            .options(selectinload(Order.items), selectinload(Order.days))
            .filter(Order.id == order_id)
            .first()
        )

    @staticmethod
    def get_orders_for_user(db: Session, user_id: int) -> list[Order]:
        return (
            db.query(Order)
            .options(selectinload(Order.items), selectinload(Order.days))
            .filter(Order.user_id == user_id)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .all()
        )

    @staticmethod
    def add_order(db: Session, **kwargs) -> Order:
        """Stage an order and assign its id; the caller commits"""
        order = Order(**kwargs)
        db.add(order)
        db.flush()
        return order

    @staticmethod
    def add_item(db: Session, order: Order, **kwargs) -> OrderItem:
        item = OrderItem(order=order, **kwargs)
        db.add(item)
        return item

    @staticmethod
    def get_orders(
        db: Session,
        status: Optional[str] = None,
        order_type: Optional[str] = None,
        delivery_date: Optional[date] = None,
        limit: int = 200,
    ) -> list[Order]:
        """All orders for staff, newest first; a date matches a QuickSip date or any plan day"""
        query = db.query(Order).options(selectinload(Order.items), selectinload(Order.days))
        if status:
            query = query.filter(Order.status == status)
        if order_type:
            query = query.filter(Order.order_type == order_type)
        if delivery_date:
            query = query.filter(
                or_(Order.delivery_date == delivery_date, Order.days.any(PlanDay.date == delivery_date))
            )
        return query.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).all()
