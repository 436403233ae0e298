"""Wallet router - referral wallet and withdrawal endpoints"""

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from ...auth import Actor, get_current_actor, require_roles
from ...clock import Clock, get_clock
from ...database import get_db
from ...email_service import send_withdrawal_processed, send_withdrawal_requested
from .schemas import (
    ReferralCreditCreate,
    WalletSummary,
    WithdrawalCreate,
    WithdrawalResponse,
    WithdrawalStatusUpdate,
)
from .service import WalletService, to_withdrawal_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/wallet", tags=["Wallet"])
admin_router = APIRouter(prefix="/admin", tags=["Admin Wallet"])


def get_wallet_service(db: Session = Depends(get_db)) -> WalletService:
    """Dependency injection for WalletService"""
    return WalletService(db)


@router.get("", response_model=WalletSummary)
async def get_wallet(
    actor: Actor = Depends(get_current_actor),
    service: WalletService = Depends(get_wallet_service),
):
    """Current balance, lifetime earnings and recent ledger entries"""
    return service.get_summary(actor.user_id)


@router.get("/withdrawals", response_model=list[WithdrawalResponse])
async def list_my_withdrawals(
    actor: Actor = Depends(get_current_actor),
    service: WalletService = Depends(get_wallet_service),
):
    return [to_withdrawal_response(w) for w in service.list_withdrawals(user_id=actor.user_id)]


@router.post("/withdrawals", response_model=WithdrawalResponse, status_code=201)
async def request_withdrawal(
    data: WithdrawalCreate,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_current_actor),
    service: WalletService = Depends(get_wallet_service),
    clock: Clock = Depends(get_clock),
):
    """Hold an amount from the referral wallet for payout to a UPI ID"""
    withdrawal = service.request_withdrawal(actor, data.amount, data.upiId, clock.now())

    user = withdrawal.user
    background_tasks.add_task(
        send_withdrawal_requested,
        to=user.email,
        user_name=user.full_name or "there",
        amount=withdrawal.amount,
        upi_id=withdrawal.upi_id,
    )
    return to_withdrawal_response(withdrawal)


@admin_router.get("/withdrawals", response_model=list[WithdrawalResponse])
async def list_withdrawals(
    status: Optional[str] = Query(None),
    actor: Actor = Depends(require_roles("admin")),
    service: WalletService = Depends(get_wallet_service),
):
    return [to_withdrawal_response(w) for w in service.list_withdrawals(status=status)]


@admin_router.post("/withdrawals/{withdrawal_id}/status", response_model=WithdrawalResponse)
async def update_withdrawal_status(
    withdrawal_id: int,
    data: WithdrawalStatusUpdate,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(require_roles("admin")),
    service: WalletService = Depends(get_wallet_service),
    clock: Clock = Depends(get_clock),
):
    """Approve or reject a withdrawal; rejection returns the amount to the wallet"""
    withdrawal, changed = service.set_withdrawal_status(
        withdrawal_id, data.status, actor, clock.now(), data.transferNote
    )

    if changed:
        user = withdrawal.user
        background_tasks.add_task(
            send_withdrawal_processed,
            to=user.email,
            user_name=user.full_name or "there",
            amount=withdrawal.amount,
            upi_id=withdrawal.upi_id,
            status=withdrawal.status,
            transfer_note=withdrawal.transfer_note,
        )
    return to_withdrawal_response(withdrawal)


@admin_router.post("/wallet/credits")
async def credit_referral(
    data: ReferralCreditCreate,
    actor: Actor = Depends(require_roles("admin")),
    service: WalletService = Depends(get_wallet_service),
    clock: Clock = Depends(get_clock),
):
    """Credit a referral reward; the reference makes retries safe"""
    applied = service.credit_referral(data.userId, data.amount, data.reference, clock.now(), data.orderId)
    return {"applied": applied, "summary": service.get_summary(data.userId)}
