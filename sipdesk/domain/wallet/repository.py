"""Wallet repository - Database operations for the referral wallet"""

from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models import User, WalletTransaction, Withdrawal


class WalletRepository:
    """Repository for wallet database operations"""

    @staticmethod
    def get_user(db: Session, user_id: int) -> Optional[User]:
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def lock_user(db: Session, user_id: int) -> Optional[User]:
        """Load a user row for update so balance changes serialize"""
        return db.query(User).filter(User.id == user_id).with_for_update().first()

    @staticmethod
    def get_transaction_by_reference(db: Session, reference: str) -> Optional[WalletTransaction]:
        return db.query(WalletTransaction).filter(WalletTransaction.reference == reference).first()

    @staticmethod
    def get_transactions(db: Session, user_id: int, limit: int = 100) -> list[WalletTransaction]:
        return (
            db.query(WalletTransaction)
            .filter(WalletTransaction.user_id == user_id)
            .order_by(WalletTransaction.created_at.desc(), WalletTransaction.id.desc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def total_by_kind(db: Session, user_id: int, kind: str) -> int:
        return (
            db.query(func.sum(WalletTransaction.amount))
            .filter(WalletTransaction.user_id == user_id, WalletTransaction.kind == kind)
            .scalar()
            or 0
        )

    @staticmethod
    def lock_withdrawal(db: Session, withdrawal_id: int) -> Optional[Withdrawal]:
        return db.query(Withdrawal).filter(Withdrawal.id == withdrawal_id).with_for_update().first()

    @staticmethod
    def get_withdrawals(
        db: Session, user_id: Optional[int] = None, status: Optional[str] = None
    ) -> list[Withdrawal]:
        query = db.query(Withdrawal)
        if user_id is not None:
            query = query.filter(Withdrawal.user_id == user_id)
        if status:
            query = query.filter(Withdrawal.status == status)
        return query.order_by(Withdrawal.requested_at.desc(), Withdrawal.id.desc()).all()

    @staticmethod
    def total_for_order(db: Session, order_id: int, kind: str) -> int:
        return (
            db.query(func.sum(WalletTransaction.amount))
            .filter(WalletTransaction.order_id == order_id, WalletTransaction.kind == kind)
            .scalar()
            or 0
        )
