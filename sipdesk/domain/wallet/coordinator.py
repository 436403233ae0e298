"""
Cancellation / Refund Coordinator

Reverses wallet money tied to a unit when that unit is cancelled. Runs inside
the cancellation transaction: if the refund cannot be written, the
cancellation fails with it.
"""

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from .ledger import apply_movement
from .repository import WalletRepository

if TYPE_CHECKING:
    from ..fulfillment.units import FulfillmentUnit

logger = logging.getLogger(__name__)


def wallet_share(unit: "FulfillmentUnit") -> int:
    """Portion of the order's wallet spend attributable to ``unit``"""
    order = unit.order
    spent = order.wallet_amount_used or 0
    if spent <= 0:
        return 0
    if unit.kind == "order":
        return spent

    order_subtotal = order.subtotal_amount or 0
    if order_subtotal <= 0:
        return 0
    day_subtotal = sum(item.line_total for item in unit.items)
    return spent * day_subtotal // order_subtotal


class CancellationCoordinator:
    """Refunds wallet debits for cancelled units, once per unit"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = WalletRepository()

    def _unrefunded_remainder(self, order) -> int:
        """Wallet spend of ``order`` not yet given back by earlier cancellations"""
        refunded = self.repo.total_for_order(self.db, order.id, "cancellation_refund")
        return max((order.wallet_amount_used or 0) - refunded, 0)

    def on_unit_cancelled(self, unit: "FulfillmentUnit", now: datetime) -> int:
        """Returns the amount credited back (0 if nothing to reverse or already reversed)"""
        amount = wallet_share(unit)
        if unit.kind == "day" and all(day.cancelled_at is not None for day in unit.order.days):
            # Last live day: pay back whatever the floored shares of earlier days left behind
            amount = self._unrefunded_remainder(unit.order)
        if amount <= 0:
            return 0

        applied = apply_movement(
            self.db,
            user_id=unit.order.user_id,
            amount=amount,
            kind="cancellation_refund",
            reference=f"{unit.key}:cancelled",
            now=now,
            order_id=unit.order.id,
            note=f"Refund for cancelled {unit.kind} {unit.key}",
        )
        if not applied:
            return 0
        logger.info(f"↩️ Refunded {amount} to user {unit.order.user_id} for cancelled {unit.key}")
        return amount
