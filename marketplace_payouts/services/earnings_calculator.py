"""
Vendor earnings from paid orders, net of the platform fee.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace_payouts.core.config import settings
from marketplace_payouts.core.exceptions import InvalidPayoutPeriodError
from marketplace_payouts.models.order import Order, PaymentStatus


logger = structlog.get_logger(__name__)

PLATFORM_FEE_RATE = Decimal("0.10")


@dataclass(frozen=True)
class VendorEarnings:
    """Earnings of one vendor over one period."""
    total_earnings: Decimal
    wallet_addition: Decimal
    order_count: int = 0

    @property
    def platform_fee(self) -> Decimal:
        return self.wallet_addition - self.total_earnings


def current_fee_rate() -> Decimal:
    return Decimal(str(settings.platform_fee_rate))


def period_bounds(period_start: date, period_end: date) -> tuple:
    """Datetime bounds covering whole days: [start 00:00, end + 1 day 00:00)."""
    if period_start > period_end:
        raise InvalidPayoutPeriodError(period_start, period_end)
    lower = datetime.combine(period_start, time.min)
    upper = datetime.combine(period_end + timedelta(days=1), time.min)
    return lower, upper


async def calculate_vendor_earnings(
    session: AsyncSession,
    vendor_id: str,
    period_start: date,
    period_end: date,
    fee_rate: Optional[Decimal] = None
) -> VendorEarnings:
    """
    Sum a vendor's share of paid orders created within the period.

    Args:
        session: Database session
        vendor_id: Vendor to calculate for
        period_start: First day of the period (inclusive)
        period_end: Last day of the period (inclusive)
        fee_rate: Platform fee fraction, defaults to the configured rate

    Returns:
        VendorEarnings where total_earnings is net of the fee and
        wallet_addition is the gross amount
    """
    lower, upper = period_bounds(period_start, period_end)
    fee_rate = current_fee_rate() if fee_rate is None else Decimal(fee_rate)
    payout_share = Decimal("1") - fee_rate

    result = await session.execute(
        select(Order)
        .where(Order.payment_status == PaymentStatus.PAID)
        .where(Order.created_at >= lower)
        .where(Order.created_at < upper)
        .execution_options(populate_existing=True)
    )
    orders = result.scalars().all()

    total_earnings = Decimal("0")
    wallet_addition = Decimal("0")
    order_count = 0

    for order in orders:
        order_earnings = order.vendor_total(vendor_id)
        if not order_earnings:
            continue

        total_earnings += order_earnings * payout_share
        wallet_addition += order_earnings
        order_count += 1

    logger.debug(
        "Vendor earnings calculated",
        vendor_id=vendor_id,
        period_start=period_start.isoformat(),
        period_end=period_end.isoformat(),
        orders_scanned=len(orders),
        orders_matched=order_count,
        total_earnings=str(total_earnings),
        wallet_addition=str(wallet_addition)
    )

    return VendorEarnings(
        total_earnings=total_earnings,
        wallet_addition=wallet_addition,
        order_count=order_count
    )
