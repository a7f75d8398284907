"""
Database models for the marketplace payouts backend.

Vendors, orders and the payout audit trail, plus the vendor wallet ledger.
"""

from .base import Base, BaseModel, TimestampMixin
from .vendor import (
    Vendor, VendorPayoutSettings, VendorWalletTransaction,
    PayoutFrequency, WalletTransactionType
)
from .order import Order, OrderItem, PaymentStatus
from .payout import PayoutRecord, PayoutStatus, PAYOUT_TRANSITIONS

__all__ = [
    "Base",
    "BaseModel",
    "TimestampMixin",
    "Vendor",
    "VendorPayoutSettings",
    "VendorWalletTransaction",
    "PayoutFrequency",
    "WalletTransactionType",
    "Order",
    "OrderItem",
    "PaymentStatus",
    "PayoutRecord",
    "PayoutStatus",
    "PAYOUT_TRANSITIONS",
]
