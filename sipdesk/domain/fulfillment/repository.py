"""Fulfillment repository - Database operations for kitchen and courier work"""

from datetime import date
from typing import Optional

from sqlalchemy.orm import Session, selectinload

from ...models import FreshPlan, Order, PlanDay


class FulfillmentRepository:
    """Repository for fulfillment database operations"""

    @staticmethod
    def get_order(db: Session, order_id: int) -> Optional[Order]:
        return db.query(Order).filter(Order.id == order_id).first()

    @staticmethod
    def lock_order(db: Session, order_id: int) -> Optional[Order]:
        """Load an order for update; every unit transition on it serializes here"""
        return db.query(Order).filter(Order.id == order_id).with_for_update().first()

    @staticmethod
    def get_quicksip_orders_for_date(db: Session, delivery_date: date) -> list[Order]:
        return (
            db.query(Order)
            .options(selectinload(Order.items))
            .filter(Order.order_type == "quicksip", Order.delivery_date == delivery_date)
            .order_by(Order.id)
            .all()
        )

    @staticmethod
    def get_paid_plan_days_for_date(db: Session, delivery_date: date) -> list[PlanDay]:
        """FreshPlan days due on a date whose plan has been paid for"""
        return (
            db.query(PlanDay)
            .join(Order, PlanDay.order_id == Order.id)
            .join(FreshPlan, Order.fresh_plan_id == FreshPlan.id)
            .options(selectinload(PlanDay.items))
            .filter(PlanDay.date == delivery_date, FreshPlan.payment_complete.is_(True))
            .order_by(PlanDay.id)
            .all()
        )
