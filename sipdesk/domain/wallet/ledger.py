"""
Wallet ledger

The only place that changes ``User.referral_wallet``. Each movement is keyed
by a unique reference, so replaying the same movement is a no-op. Callers own
the transaction: nothing here commits.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...errors import InsufficientBalance, NotFound
from ...models import WalletTransaction
from .repository import WalletRepository

logger = logging.getLogger(__name__)


def apply_movement(
    db: Session,
    user_id: int,
    amount: int,
    kind: str,
    reference: str,
    now: datetime,
    order_id: Optional[int] = None,
    withdrawal_id: Optional[int] = None,
    note: Optional[str] = None,
) -> bool:
    """
    Apply a signed balance change exactly once.

    Returns False if a movement with ``reference`` already exists.
    Raises InsufficientBalance if a debit would take the balance below zero.
    """
    repo = WalletRepository()
    user = repo.lock_user(db, user_id)
    if not user:
        raise NotFound("User not found")

    if repo.get_transaction_by_reference(db, reference):
        logger.info(f"Wallet movement {reference} already applied; skipping")
        return False

    balance = user.referral_wallet or 0
    if balance + amount < 0:
        raise InsufficientBalance(f"Insufficient referral wallet balance ({balance} available)")

    user.referral_wallet = balance + amount
    db.add(
        WalletTransaction(
            user_id=user_id,
            amount=amount,
            kind=kind,
            reference=reference,
            order_id=order_id,
            withdrawal_id=withdrawal_id,
            note=note,
            created_at=now,
        )
    )
    # Surface a duplicate reference from a racing writer now, inside the caller's transaction
    db.flush()
    logger.info(f"💰 Wallet {kind} of {amount} for user {user_id} ({reference}); balance {user.referral_wallet}")
    return True
