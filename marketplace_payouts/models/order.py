"""
Order models. Orders are written by the storefront; payouts only read them.
"""

from decimal import Decimal
from enum import Enum
from typing import List, Optional

from sqlalchemy import (
    String, Integer, ForeignKey, Index, Enum as SQLEnum
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import BaseModel, TimestampMixin, MONEY, enum_values


class PaymentStatus(str, Enum):
    """Payment state of an order."""
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class Order(BaseModel, TimestampMixin):
    """A customer purchase that may span several vendors."""

    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)

    customer_id: Mapped[Optional[str]] = mapped_column(
        String(64),
        index=True,
        comment="Purchasing customer"
    )

    payment_status: Mapped[PaymentStatus] = mapped_column(
        SQLEnum(
            PaymentStatus,
            native_enum=False,
            length=20,
            values_callable=enum_values
        ),
        default=PaymentStatus.PENDING,
        comment="Only paid orders count toward vendor earnings"
    )

    items: Mapped[List["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order",
        lazy="selectin",
        cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("idx_orders_payment_created", "payment_status", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Order(id={self.id}, status={self.payment_status.value}, items={len(self.items)})>"

    def vendor_total(self, vendor_id: str) -> Decimal:
        """Gross value of the line items sold by ``vendor_id``."""
        return sum(
            (item.line_total for item in self.items if item.vendor_id == vendor_id),
            Decimal("0")
        )


class OrderItem(BaseModel):
    """One line of an order."""

    __tablename__ = "order_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    order_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("orders.id", ondelete="CASCADE")
    )

    vendor_id: Mapped[str] = mapped_column(String(64), index=True)

    product_id: Mapped[Optional[str]] = mapped_column(String(64))

    price: Mapped[Decimal] = mapped_column(MONEY, comment="Unit price")

    quantity: Mapped[int] = mapped_column(Integer, default=1)

    order: Mapped["Order"] = relationship("Order", back_populates="items")

    @property
    def line_total(self) -> Decimal:
        return Decimal(self.price) * self.quantity
