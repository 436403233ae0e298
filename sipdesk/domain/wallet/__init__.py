"""Wallet domain - referral wallet ledger, withdrawals and cancellation refunds"""

from .router import admin_router, router

__all__ = ["router", "admin_router"]
