"""
Payout, payout settings, wallet and earnings schemas.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from marketplace_payouts.models.payout import PayoutStatus
from marketplace_payouts.models.vendor import PayoutFrequency, WalletTransactionType


class PayoutRecordResponse(BaseModel):
    """One payout attempt."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    vendor_id: str
    amount: Decimal
    wallet_addition: Decimal
    currency: str
    status: PayoutStatus
    period_start: date
    period_end: date
    created_at: datetime
    processed_at: Optional[datetime] = None
    transaction_id: Optional[str] = None
    failure_reason: Optional[str] = None


class PayoutSettingsBase(BaseModel):
    """Bank details and payout preferences."""
    bank_name: str = Field(min_length=1, max_length=120)
    account_number: str = Field(min_length=4, max_length=64)
    account_name: str = Field(min_length=1, max_length=200)
    routing_number: Optional[str] = Field(default=None, max_length=64)
    swift_code: Optional[str] = Field(default=None, max_length=11)
    payout_frequency: PayoutFrequency = PayoutFrequency.MONTHLY
    minimum_payout: Decimal = Field(default=Decimal("0"), ge=0)

    @field_validator("bank_name", "account_number", "account_name")
    @classmethod
    def strip_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Field cannot be blank")
        return v


class PayoutSettingsUpdate(PayoutSettingsBase):
    """Request body to create or replace payout settings."""


class PayoutSettingsResponse(PayoutSettingsBase):
    """Stored payout settings; the account number is masked."""
    model_config = ConfigDict(from_attributes=True)

    vendor_id: str
    account_number: str

    @model_validator(mode="after")
    def mask_account_number(self):
        number = self.account_number
        if len(number) > 4:
            self.account_number = "*" * (len(number) - 4) + number[-4:]
        return self


class WalletTransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: WalletTransactionType
    amount: Decimal
    balance_after: Decimal
    description: str
    payout_id: Optional[str] = None
    created_at: datetime


class WalletResponse(BaseModel):
    vendor_id: str
    balance: Decimal
    transactions: List[WalletTransactionResponse] = Field(default_factory=list)


class EarningsResponse(BaseModel):
    vendor_id: str
    period_start: date
    period_end: date
    total_earnings: Decimal
    wallet_addition: Decimal
    platform_fee: Decimal
    order_count: int


class PayoutRunResponse(BaseModel):
    run_date: date
    started_at: datetime
    completed_at: Optional[datetime] = None
    vendors_checked: int
    payouts_completed: int
    payouts_failed: int
    skipped_not_due: int
    skipped_below_minimum: int
    skipped_already_paid: int
    errors: int
    total_disbursed: Decimal
    success_rate: float
