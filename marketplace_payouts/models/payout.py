"""
Payout records: one row per disbursement attempt.

Rows are never deleted; the history is the audit trail. Status only moves
forward: pending -> processing -> completed | failed.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, FrozenSet, Optional

from sqlalchemy import (
    String, Date, DateTime, ForeignKey, Index, Text, Enum as SQLEnum
)
from sqlalchemy.orm import Mapped, mapped_column

from marketplace_payouts.core.exceptions import InvalidPayoutTransitionError
from .base import BaseModel, TimestampMixin, MONEY, enum_values, utc_now


class PayoutStatus(str, Enum):
    """Lifecycle of a payout attempt."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (PayoutStatus.COMPLETED, PayoutStatus.FAILED)

    def can_transition_to(self, target: "PayoutStatus") -> bool:
        return target in PAYOUT_TRANSITIONS[self]


PAYOUT_TRANSITIONS: Dict[PayoutStatus, FrozenSet[PayoutStatus]] = {
    PayoutStatus.PENDING: frozenset({PayoutStatus.PROCESSING, PayoutStatus.FAILED}),
    PayoutStatus.PROCESSING: frozenset({PayoutStatus.COMPLETED, PayoutStatus.FAILED}),
    PayoutStatus.COMPLETED: frozenset(),
    PayoutStatus.FAILED: frozenset(),
}


def _new_payout_id() -> str:
    return str(uuid.uuid4())


class PayoutRecord(BaseModel, TimestampMixin):
    """Snapshot of one vendor disbursement for a payout period."""

    __tablename__ = "payouts"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=_new_payout_id
    )

    vendor_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("vendors.id", ondelete="RESTRICT"),
        comment="Vendor being paid"
    )

    amount: Mapped[Decimal] = mapped_column(
        MONEY,
        comment="Net earnings transferred (after platform fee)"
    )

    wallet_addition: Mapped[Decimal] = mapped_column(
        MONEY,
        default=Decimal("0"),
        comment="Gross sales credited to the vendor wallet"
    )

    currency: Mapped[str] = mapped_column(String(3))

    status: Mapped[PayoutStatus] = mapped_column(
        SQLEnum(
            PayoutStatus,
            native_enum=False,
            length=20,
            values_callable=enum_values
        ),
        default=PayoutStatus.PENDING
    )

    period_start: Mapped[date] = mapped_column(Date)
    period_end: Mapped[date] = mapped_column(Date)

    processed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        comment="Time of the last status change"
    )

    transaction_id: Mapped[Optional[str]] = mapped_column(
        String(128),
        comment="Provider transaction id, set on success"
    )

    provider_payout_id: Mapped[Optional[str]] = mapped_column(
        String(128),
        comment="Payout id echoed by the provider"
    )

    failure_reason: Mapped[Optional[str]] = mapped_column(
        Text,
        comment="Provider or error message, set on failure"
    )

    __table_args__ = (
        Index("idx_payouts_vendor_period", "vendor_id", "period_start", "period_end"),
        Index("idx_payouts_vendor_created", "vendor_id", "created_at"),
        Index("idx_payouts_status", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<PayoutRecord(id={self.id}, vendor={self.vendor_id}, "
            f"amount={self.amount}, status={self.status.value})>"
        )

    @staticmethod
    def new_id() -> str:
        return _new_payout_id()

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def transition_to(
        self,
        status: PayoutStatus,
        transaction_id: Optional[str] = None,
        failure_reason: Optional[str] = None
    ) -> None:
        """Move to ``status``, rejecting backward or skipped transitions."""
        if not self.status.can_transition_to(status):
            raise InvalidPayoutTransitionError(self.id, self.status.value, status.value)

        self.status = status
        self.processed_at = utc_now()
        if transaction_id:
            self.transaction_id = transaction_id
        if failure_reason:
            self.failure_reason = failure_reason
