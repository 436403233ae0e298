"""FreshPlan repository - Database operations for plans"""

from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from ...models import FreshPlan, Order, User


class PlanRepository:
    """Repository for FreshPlan database operations"""

    @staticmethod
    def get_plan(db: Session, plan_id: int) -> Optional[FreshPlan]:
        return db.query(FreshPlan).filter(FreshPlan.id == plan_id).first()

    @staticmethod
    def get_plans_for_user(db: Session, user_id: int) -> list[FreshPlan]:
        return (
            db.query(FreshPlan)
            .filter(FreshPlan.user_id == user_id)
            .order_by(FreshPlan.start_date.desc(), FreshPlan.id.desc())
            .all()
        )

    @staticmethod
    def get_paid_plans(db: Session, user_id: int, exclude_id: Optional[int] = None) -> list[FreshPlan]:
        query = db.query(FreshPlan).filter(FreshPlan.user_id == user_id, FreshPlan.payment_complete.is_(True))
        if exclude_id is not None:
            query = query.filter(FreshPlan.id != exclude_id)
        return query.all()

    @staticmethod
    def active_plans(db: Session, user_id: int, today: date, exclude_id: Optional[int] = None) -> list[FreshPlan]:
        """Paid plans still delivering on or after ``today``"""
        # end_date is derived, so the window test runs in Python
        plans = PlanRepository.get_paid_plans(db, user_id, exclude_id)
        return [p for p in plans if p.end_date >= today]

    @staticmethod
    def lock_user(db: Session, user_id: int) -> Optional[User]:
        return db.query(User).filter(User.id == user_id).with_for_update().populate_existing().first()

    @staticmethod
    def bump_plan_version(db: Session, user_id: int, expected_version: int) -> bool:
        """Check-and-set on the customer's plan window; False if another writer got there first"""
        updated = (
            db.query(User)
            .filter(User.id == user_id, User.plan_version == expected_version)
            .update({User.plan_version: expected_version + 1}, synchronize_session=False)
        )
        return updated == 1

    @staticmethod
    def lock_order(db: Session, order_id: int) -> Optional[Order]:
        return db.query(Order).filter(Order.id == order_id).with_for_update().first()

    @staticmethod
    def get_plan_order(db: Session, plan_id: int) -> Optional[Order]:
        """The order a plan was checked out into, read from the database rather than the session"""
        return db.query(Order).filter(Order.fresh_plan_id == plan_id).populate_existing().first()
