"""
Vendor wallet accounting.

Balance changes are single atomic ``UPDATE ... SET wallet_balance =
wallet_balance + :amount`` statements, so overlapping writers cannot lose
each other's increments. Every change is also written to the ledger.
"""

from decimal import Decimal
from typing import List, Optional

import structlog
from sqlalchemy import select, update, desc
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace_payouts.core.exceptions import ValidationError, VendorNotFoundError
from marketplace_payouts.models.vendor import (
    Vendor,
    VendorWalletTransaction,
    WalletTransactionType,
)


logger = structlog.get_logger(__name__)


class WalletService:
    """Credits vendor wallets and keeps the ledger."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.logger = logger.bind(service="wallet_service")

    async def credit(
        self,
        vendor_id: str,
        amount: Decimal,
        description: str,
        payout_id: Optional[str] = None
    ) -> Decimal:
        """
        Add ``amount`` to the vendor wallet.

        Returns:
            The balance after the credit

        Raises:
            ValidationError: amount is not positive
            VendorNotFoundError: vendor does not exist
        """
        amount = Decimal(amount)
        if amount <= 0:
            raise ValidationError(
                "Wallet credit must be greater than zero",
                {"vendor_id": vendor_id, "amount": str(amount)}
            )

        result = await self.db.execute(
            update(Vendor)
            .where(Vendor.id == vendor_id)
            .values(wallet_balance=Vendor.wallet_balance + amount)
            .returning(Vendor.wallet_balance)
            .execution_options(synchronize_session=False)
        )
        new_balance = result.scalar_one_or_none()
        if new_balance is None:
            raise VendorNotFoundError(vendor_id)

        self.db.add(VendorWalletTransaction(
            vendor_id=vendor_id,
            type=WalletTransactionType.CREDIT,
            amount=amount,
            balance_after=new_balance,
            description=description,
            payout_id=payout_id
        ))
        await self.db.flush()

        self.logger.info(
            "Vendor wallet credited",
            vendor_id=vendor_id,
            amount=str(amount),
            balance=str(new_balance),
            payout_id=payout_id
        )
        return Decimal(new_balance)

    async def add_sale_to_wallet(self, vendor_id: str, amount: Decimal) -> Decimal:
        """Credit a completed sale straight to the wallet."""
        return await self.credit(vendor_id, amount, description="Sale proceeds")

    async def get_balance(self, vendor_id: str) -> Decimal:
        balance = await self.db.scalar(
            select(Vendor.wallet_balance).where(Vendor.id == vendor_id)
        )
        if balance is None:
            raise VendorNotFoundError(vendor_id)
        return Decimal(balance)

    async def get_transactions(
        self,
        vendor_id: str,
        limit: int = 10
    ) -> List[VendorWalletTransaction]:
        result = await self.db.execute(
            select(VendorWalletTransaction)
            .where(VendorWalletTransaction.vendor_id == vendor_id)
            .order_by(desc(VendorWalletTransaction.created_at), desc(VendorWalletTransaction.id))
            .limit(limit)
        )
        return list(result.scalars().all())
