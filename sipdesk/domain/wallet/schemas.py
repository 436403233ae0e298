"""Wallet domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator


class WithdrawalCreate(BaseModel):
    """Schema for a withdrawal request from the referral wallet"""

    amount: int = Field(..., gt=0)
    upiId: str

    @field_validator("upiId")
    @classmethod
    def validate_upi(cls, v):
        if not v or not v.strip():
            raise ValueError("UPI ID is required")
        if "@" not in v:
            raise ValueError("UPI ID must look like name@bank")
        return v.strip()


class WithdrawalStatusUpdate(BaseModel):
    """Schema for an admin approving or rejecting a withdrawal"""

    status: Literal["approved", "rejected"]
    transferNote: Optional[str] = None


class ReferralCreditCreate(BaseModel):
    """Schema for crediting a referral reward"""

    userId: int
    amount: int = Field(..., gt=0)
    reference: str = Field(..., min_length=1, max_length=80)
    orderId: Optional[int] = None


class WithdrawalResponse(BaseModel):
    id: int
    userId: int
    amount: int
    upiId: str
    status: str
    requestedAt: datetime
    processedAt: Optional[datetime] = None
    transferNote: Optional[str] = None


class WalletTransactionResponse(BaseModel):
    id: int
    amount: int
    kind: str
    reference: str
    orderId: Optional[int] = None
    withdrawalId: Optional[int] = None
    note: Optional[str] = None
    createdAt: datetime


class WalletSummary(BaseModel):
    currentBalance: int
    totalEarned: int
    totalWithdrawn: int
    transactions: list[WalletTransactionResponse]
