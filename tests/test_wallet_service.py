"""
Test vendor wallet credits and the ledger.
"""

from decimal import Decimal

import pytest
from sqlalchemy.exc import InvalidRequestError

from marketplace_payouts.core.database import get_async_session
from marketplace_payouts.core.exceptions import ValidationError, VendorNotFoundError
from marketplace_payouts.models import Vendor, WalletTransactionType
from marketplace_payouts.services.wallet_service import WalletService


@pytest.mark.asyncio
async def test_credit_increments_balance_and_writes_ledger(session, make_vendor):
    await make_vendor("vendor-1", wallet_balance=Decimal("250"))
    wallet = WalletService(session)

    balance = await wallet.credit("vendor-1", Decimal("1000"), description="Sales")

    assert balance == Decimal("1250")
    assert await wallet.get_balance("vendor-1") == Decimal("1250")

    entries = await wallet.get_transactions("vendor-1")
    assert len(entries) == 1
    assert entries[0].type == WalletTransactionType.CREDIT
    assert entries[0].amount == Decimal("1000")
    assert entries[0].balance_after == Decimal("1250")


@pytest.mark.asyncio
async def test_successive_credits_accumulate(session, make_vendor):
    await make_vendor("vendor-1")
    wallet = WalletService(session)

    for _ in range(5):
        await wallet.add_sale_to_wallet("vendor-1", Decimal("10.50"))

    assert await wallet.get_balance("vendor-1") == Decimal("52.50")
    assert len(await wallet.get_transactions("vendor-1", limit=3)) == 3


@pytest.mark.asyncio
async def test_credits_from_separate_sessions_are_not_lost(session, make_vendor):
    await make_vendor("vendor-1")

    async def credit_once():
        async with get_async_session() as db:
            await WalletService(db).credit("vendor-1", Decimal("100"), description="Sales")

    for _ in range(3):
        await credit_once()

    assert await WalletService(session).get_balance("vendor-1") == Decimal("300")


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-1")])
async def test_non_positive_credit_rejected(session, make_vendor, amount):
    await make_vendor("vendor-1")
    with pytest.raises(ValidationError):
        await WalletService(session).credit("vendor-1", amount, description="Sales")


@pytest.mark.asyncio
async def test_unknown_vendor_rejected(session):
    wallet = WalletService(session)
    with pytest.raises(VendorNotFoundError):
        await wallet.credit("missing", Decimal("5"), description="Sales")
    with pytest.raises(VendorNotFoundError):
        await wallet.get_balance("missing")


@pytest.mark.asyncio
async def test_ledger_is_not_lazy_loaded_from_vendor(session, make_vendor):
    await make_vendor("vendor-1")
    await WalletService(session).add_sale_to_wallet("vendor-1", Decimal("10"))
    await session.commit()

    vendor = await session.get(Vendor, "vendor-1", populate_existing=True)

    with pytest.raises(InvalidRequestError):
        vendor.wallet_transactions
