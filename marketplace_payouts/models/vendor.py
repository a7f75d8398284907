"""
Vendor models: seller accounts, their payout settings and wallet ledger.
"""

from decimal import Decimal
from enum import Enum
from typing import List, Optional

from sqlalchemy import (
    String, Integer, Boolean, ForeignKey, Index, Text,
    Enum as SQLEnum
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import BaseModel, TimestampMixin, MONEY, enum_values


class PayoutFrequency(str, Enum):
    """How often a vendor is paid out."""
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"


class WalletTransactionType(str, Enum):
    """Direction of a wallet ledger entry."""
    CREDIT = "credit"
    DEBIT = "debit"


class Vendor(BaseModel, TimestampMixin):
    """A seller account on the marketplace."""

    __tablename__ = "vendors"

    id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        comment="Vendor identifier"
    )

    owner_id: Mapped[Optional[str]] = mapped_column(
        String(64),
        index=True,
        comment="Account that owns the store"
    )

    shop_name: Mapped[str] = mapped_column(
        String(200),
        comment="Public store name"
    )

    contact_email: Mapped[Optional[str]] = mapped_column(
        String(255),
        comment="Store contact email"
    )

    currency: Mapped[Optional[str]] = mapped_column(
        String(3),
        comment="ISO currency code for payouts; platform default when empty"
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        comment="Whether the store is active"
    )

    # Running gross sales accrued at disbursement time
    wallet_balance: Mapped[Decimal] = mapped_column(
        MONEY,
        default=Decimal("0"),
        comment="Accrued gross sales balance"
    )

    payout_settings: Mapped[Optional["VendorPayoutSettings"]] = relationship(
        "VendorPayoutSettings",
        back_populates="vendor",
        uselist=False,
        lazy="selectin",
        cascade="all, delete-orphan"
    )

    wallet_transactions: Mapped[List["VendorWalletTransaction"]] = relationship(
        "VendorWalletTransaction",
        back_populates="vendor",
        lazy="raise",
        cascade="all, delete-orphan",
        passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"<Vendor(id={self.id}, shop={self.shop_name}, balance={self.wallet_balance})>"

    @property
    def has_payout_settings(self) -> bool:
        return self.payout_settings is not None


class VendorPayoutSettings(BaseModel, TimestampMixin):
    """Bank details and payout preferences of a vendor."""

    __tablename__ = "vendor_payout_settings"

    vendor_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("vendors.id", ondelete="CASCADE"),
        primary_key=True
    )

    bank_name: Mapped[str] = mapped_column(String(120))
    account_number: Mapped[str] = mapped_column(String(64))
    account_name: Mapped[str] = mapped_column(String(200))
    routing_number: Mapped[Optional[str]] = mapped_column(String(64))
    swift_code: Mapped[Optional[str]] = mapped_column(String(11))

    payout_frequency: Mapped[PayoutFrequency] = mapped_column(
        SQLEnum(
            PayoutFrequency,
            native_enum=False,
            length=20,
            values_callable=enum_values
        ),
        default=PayoutFrequency.MONTHLY,
        comment="weekly, biweekly or monthly"
    )

    minimum_payout: Mapped[Decimal] = mapped_column(
        MONEY,
        default=Decimal("0"),
        comment="Net earnings threshold below which no payout is made"
    )

    vendor: Mapped["Vendor"] = relationship(
        "Vendor",
        back_populates="payout_settings"
    )

    def __repr__(self) -> str:
        return (
            f"<VendorPayoutSettings(vendor={self.vendor_id}, "
            f"frequency={self.payout_frequency.value}, minimum={self.minimum_payout})>"
        )

    @property
    def bank_account(self):
        """Bank details in the shape the payment provider expects."""
        from marketplace_payouts.services.payment_provider import BankAccount

        return BankAccount(
            bank_name=self.bank_name,
            account_number=self.account_number,
            account_name=self.account_name,
            routing_number=self.routing_number,
            swift_code=self.swift_code,
        )


class VendorWalletTransaction(BaseModel, TimestampMixin):
    """Ledger entry for every wallet balance change."""

    __tablename__ = "vendor_wallet_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    vendor_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("vendors.id", ondelete="CASCADE"),
        comment="Vendor whose wallet changed"
    )

    type: Mapped[WalletTransactionType] = mapped_column(
        SQLEnum(
            WalletTransactionType,
            native_enum=False,
            length=10,
            values_callable=enum_values
        )
    )

    amount: Mapped[Decimal] = mapped_column(MONEY, comment="Absolute amount")

    balance_after: Mapped[Decimal] = mapped_column(MONEY, comment="Balance after this entry")

    description: Mapped[str] = mapped_column(Text, default="")

    payout_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("payouts.id", ondelete="SET NULL"),
        comment="Payout that produced this entry"
    )

    vendor: Mapped["Vendor"] = relationship(
        "Vendor",
        back_populates="wallet_transactions"
    )

    __table_args__ = (
        Index("idx_wallet_tx_vendor_time", "vendor_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<VendorWalletTransaction(vendor={self.vendor_id}, type={self.type.value}, amount={self.amount})>"
