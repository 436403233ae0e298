"""Wallet service - Business logic for referral wallet and withdrawals"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...auth import Actor
from ...errors import FulfillmentError, InsufficientBalance, InvalidRequest, InvalidStateTransition, NotFound
from ...models import Withdrawal
from .ledger import apply_movement
from .repository import WalletRepository
from .schemas import WalletSummary, WalletTransactionResponse, WithdrawalResponse

logger = logging.getLogger(__name__)

WITHDRAWAL_OUTCOMES = ("approved", "rejected")


class WalletService:
    """Service layer for wallet business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = WalletRepository()

    def get_summary(self, user_id: int) -> WalletSummary:
        user = self.repo.get_user(self.db, user_id)
        if not user:
            raise NotFound("User not found")

        transactions = self.repo.get_transactions(self.db, user_id)
        withdrawn = -self.repo.total_by_kind(self.db, user_id, "withdrawal_hold") - self.repo.total_by_kind(
            self.db, user_id, "withdrawal_refund"
        )
        return WalletSummary(
            currentBalance=user.referral_wallet or 0,
            totalEarned=self.repo.total_by_kind(self.db, user_id, "referral_credit"),
            totalWithdrawn=withdrawn,
            transactions=[
                WalletTransactionResponse(
                    id=t.id,
                    amount=t.amount,
                    kind=t.kind,
                    reference=t.reference,
                    orderId=t.order_id,
                    withdrawalId=t.withdrawal_id,
                    note=t.note,
                    createdAt=t.created_at,
                )
                for t in transactions
            ],
        )

    def credit_referral(
        self, user_id: int, amount: int, reference: str, now: datetime, order_id: Optional[int] = None
    ) -> bool:
        """Credit a referral reward; replaying the same reference is a no-op"""
        if amount <= 0:
            raise InvalidRequest("Referral credit must be positive")
        try:
            applied = apply_movement(
                self.db,
                user_id=user_id,
                amount=amount,
                kind="referral_credit",
                reference=f"referral:{reference}",
                now=now,
                order_id=order_id,
            )
            self.db.commit()
            return applied
        except Exception:
            self.db.rollback()
            raise

    def request_withdrawal(self, actor: Actor, amount: int, upi_id: str, now: datetime) -> Withdrawal:
        """Hold ``amount`` from the wallet and open a pending withdrawal"""
        if amount <= 0:
            raise InvalidRequest("Invalid amount")
        if not upi_id or not upi_id.strip():
            raise InvalidRequest("UPI ID is required")

        try:
            user = self.repo.lock_user(self.db, actor.user_id)
            if not user:
                raise NotFound("User not found")
            if amount > (user.referral_wallet or 0):
                raise InsufficientBalance("Insufficient referral wallet balance")

            withdrawal = Withdrawal(
                user_id=user.id,
                amount=amount,
                upi_id=upi_id.strip(),
                status="pending",
                requested_at=now,
            )
            self.db.add(withdrawal)
            self.db.flush()

            apply_movement(
                self.db,
                user_id=user.id,
                amount=-amount,
                kind="withdrawal_hold",
                reference=f"withdrawal:{withdrawal.id}:hold",
                now=now,
                withdrawal_id=withdrawal.id,
            )
            self.db.commit()
            self.db.refresh(withdrawal)
        except FulfillmentError as e:
            self.db.rollback()
            logger.warning(f"⚠️ Withdrawal request by user {actor.user_id} rejected: {e.detail}")
            raise
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"✅ Withdrawal {withdrawal.id} of {amount} requested by user {actor.user_id}")
        return withdrawal

    def set_withdrawal_status(
        self,
        withdrawal_id: int,
        status: str,
        admin: Actor,
        now: datetime,
        transfer_note: Optional[str] = None,
    ) -> tuple[Withdrawal, bool]:
        """
        Approve or reject a pending withdrawal.

        Rejection credits the amount back in the same transaction that records
        the status. Repeating the call with the status already recorded is a
        no-op; returns (withdrawal, changed).
        """
        if status not in WITHDRAWAL_OUTCOMES:
            raise InvalidRequest("Status must be approved or rejected")

        try:
            withdrawal = self.repo.lock_withdrawal(self.db, withdrawal_id)
            if not withdrawal:
                raise NotFound("Withdrawal request not found")

            if withdrawal.status == status:
                self.db.rollback()
                logger.info(f"Withdrawal {withdrawal_id} already {status}; nothing to do")
                return withdrawal, False
            if withdrawal.status != "pending":
                raise InvalidStateTransition(f"Withdrawal {withdrawal_id} was already {withdrawal.status}")

            withdrawal.status = status
            withdrawal.processed_at = now
            withdrawal.processed_by_id = admin.user_id
            withdrawal.transfer_note = transfer_note

            if status == "rejected":
                apply_movement(
                    self.db,
                    user_id=withdrawal.user_id,
                    amount=withdrawal.amount,
                    kind="withdrawal_refund",
                    reference=f"withdrawal:{withdrawal.id}:rejected",
                    now=now,
                    withdrawal_id=withdrawal.id,
                    note=transfer_note,
                )

            self.db.commit()
            self.db.refresh(withdrawal)
        except FulfillmentError as e:
            self.db.rollback()
            logger.warning(f"⚠️ Withdrawal {withdrawal_id} status change refused: {e.detail}")
            raise
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"✅ Withdrawal {withdrawal_id} {status} by admin {admin.user_id}")
        return withdrawal, True

    def list_withdrawals(self, user_id: Optional[int] = None, status: Optional[str] = None) -> list[Withdrawal]:
        return self.repo.get_withdrawals(self.db, user_id, status)


def to_withdrawal_response(w: Withdrawal) -> WithdrawalResponse:
    return WithdrawalResponse(
        id=w.id,
        userId=w.user_id,
        amount=w.amount,
        upiId=w.upi_id,
        status=w.status,
        requestedAt=w.requested_at,
        processedAt=w.processed_at,
        transferNote=w.transfer_note,
    )
