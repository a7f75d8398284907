"""
Shared fixtures: in-memory database, factories and a scripted payment provider.
"""

import asyncio
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

import pytest

from marketplace_payouts.core.database import (
    DatabaseManager,
    close_database,
    get_async_session,
    init_database,
)
from marketplace_payouts.models import (
    Order,
    OrderItem,
    PaymentStatus,
    PayoutFrequency,
    Vendor,
    VendorPayoutSettings,
)
from marketplace_payouts.services.payment_provider import (
    BankAccount,
    PaymentProvider,
    PayoutRequest,
    PayoutResponse,
)


class ScriptedProvider(PaymentProvider):
    """Provider double whose answer is fixed per test."""

    name = "scripted"

    def __init__(
        self,
        response: Optional[PayoutResponse] = None,
        error: Optional[Exception] = None,
        delay: float = 0,
        fail_vendors: Optional[Dict[str, str]] = None
    ):
        self.response = response
        self.error = error
        self.delay = delay
        self.fail_vendors = fail_vendors or {}
        self.requests: List[PayoutRequest] = []
        self.closed = False

    async def process_payout(self, request: PayoutRequest) -> PayoutResponse:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error

        payout_id = request.metadata.get("payout_id", request.vendor_id)
        if request.vendor_id in self.fail_vendors:
            return PayoutResponse(
                success=False,
                payout_id=payout_id,
                error_message=self.fail_vendors[request.vendor_id]
            )
        if self.response is not None:
            return self.response
        return PayoutResponse(
            success=True,
            payout_id=payout_id,
            transaction_id=f"txn_test_{len(self.requests)}"
        )

    async def get_payout_status(self, transaction_id: str):
        return {"transaction_id": transaction_id, "status": "completed"}

    async def validate_bank_account(self, bank_account: BankAccount) -> bool:
        return bank_account.is_complete

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
async def database():
    """Fresh in-memory schema per test."""
    await init_database("sqlite+aiosqlite://")
    await DatabaseManager.create_tables()
    yield
    await close_database()


@pytest.fixture
async def session(database):
    async with get_async_session() as session:
        yield session


@pytest.fixture
def provider():
    return ScriptedProvider()


@pytest.fixture
def make_vendor(session):
    """Create a vendor, with payout settings unless ``frequency`` is None."""

    async def _make_vendor(
        vendor_id: str = "vendor-1",
        frequency: Optional[PayoutFrequency] = PayoutFrequency.MONTHLY,
        minimum_payout: Decimal = Decimal("5000"),
        currency: Optional[str] = None,
        wallet_balance: Decimal = Decimal("0")
    ) -> Vendor:
        vendor = Vendor(
            id=vendor_id,
            owner_id=f"owner-{vendor_id}",
            shop_name=f"Shop {vendor_id}",
            contact_email=f"{vendor_id}@example.com",
            currency=currency,
            wallet_balance=wallet_balance,
        )
        if frequency is not None:
            vendor.payout_settings = VendorPayoutSettings(
                vendor_id=vendor_id,
                bank_name="First Bank",
                account_number="0123456789",
                account_name=f"Shop {vendor_id} Ltd",
                payout_frequency=frequency,
                minimum_payout=minimum_payout,
            )
        session.add(vendor)
        await session.commit()
        return vendor

    return _make_vendor


@pytest.fixture
def make_order(session):
    """Create an order with one line item per ``(vendor_id, price, quantity)``."""
    counter = {"n": 0}

    async def _make_order(
        lines,
        created_at: datetime,
        payment_status: PaymentStatus = PaymentStatus.PAID
    ) -> Order:
        counter["n"] += 1
        order = Order(
            id=f"order-{counter['n']}",
            customer_id="customer-1",
            payment_status=payment_status,
            created_at=created_at,
            items=[
                OrderItem(
                    vendor_id=vendor_id,
                    product_id=f"product-{index}",
                    price=Decimal(price),
                    quantity=quantity
                )
                for index, (vendor_id, price, quantity) in enumerate(lines)
            ],
        )
        session.add(order)
        await session.commit()
        return order

    return _make_order
