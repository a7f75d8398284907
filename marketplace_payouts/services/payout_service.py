"""
Payout Service - pays vendors their net earnings on their payout schedule.

Flow per vendor (sequential, one vendor at a time):
1. Skip unless the vendor's frequency makes today a payout day
2. Work out the payout period and skip if it was already paid
3. Calculate earnings; skip if below the vendor's minimum payout
4. Disburse: pending record -> wallet credit -> processing -> provider call
   -> completed | failed

A failure for one vendor is logged and the batch moves on to the next.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Tuple, Union

import structlog
from sqlalchemy import select, func, desc
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace_payouts.core.config import settings
from marketplace_payouts.core.database import get_async_session
from marketplace_payouts.core.logging import payout_run_context
from marketplace_payouts.core.exceptions import (
    PaymentProviderError,
    PayoutNotFoundError,
    PayoutSettingsMissingError,
    VendorNotFoundError,
)
from marketplace_payouts.models.base import utc_now, utc_today
from marketplace_payouts.models.payout import PayoutRecord, PayoutStatus
from marketplace_payouts.models.vendor import (
    Vendor,
    VendorPayoutSettings,
    VendorWalletTransaction,
    WalletTransactionType,
)
from marketplace_payouts.services.earnings_calculator import (
    VendorEarnings,
    calculate_vendor_earnings,
    current_fee_rate,
)
from marketplace_payouts.services.payment_provider import (
    PaymentProvider,
    PayoutRequest,
    PayoutResponse,
    get_payment_provider,
)
from marketplace_payouts.services.payout_schedule import (
    PayoutPeriod,
    calculate_payout_period,
    should_process_payout_today,
)
from marketplace_payouts.services.wallet_service import WalletService


logger = structlog.get_logger(__name__)


class WalletCreditPolicy(str, Enum):
    """When the gross sales amount lands in the vendor wallet."""
    ON_ATTEMPT = "on_attempt"  # before the provider call, kept if it fails
    ON_CONFIRMATION = "on_confirmation"  # only after the provider succeeds


class PayoutOutcome(str, Enum):
    """What happened to one vendor in a payout run."""
    NO_SETTINGS = "no_settings"
    NOT_DUE = "not_due"
    ALREADY_PAID = "already_paid"
    NO_EARNINGS = "no_earnings"
    BELOW_MINIMUM = "below_minimum"
    COMPLETED = "completed"
    FAILED = "failed"
    ERROR = "error"


@dataclass
class VendorPayoutOutcome:
    """Result of processing one vendor."""
    vendor_id: str
    outcome: PayoutOutcome
    period: Optional[PayoutPeriod] = None
    earnings: Optional[VendorEarnings] = None
    payout_id: Optional[str] = None
    error: Optional[str] = None


@dataclass
class PayoutRunSummary:
    """Statistics for one batch run."""
    run_date: date
    started_at: datetime = field(default_factory=utc_now)
    completed_at: Optional[datetime] = None
    vendors_checked: int = 0
    payouts_completed: int = 0
    payouts_failed: int = 0
    skipped_not_due: int = 0
    skipped_below_minimum: int = 0
    skipped_already_paid: int = 0
    errors: int = 0
    total_disbursed: Decimal = Decimal("0")
    outcomes: List[VendorPayoutOutcome] = field(default_factory=list)

    @property
    def payouts_attempted(self) -> int:
        return self.payouts_completed + self.payouts_failed

    @property
    def success_rate(self) -> float:
        if self.payouts_attempted == 0:
            return 0.0
        return self.payouts_completed / self.payouts_attempted * 100

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()

    def record(self, outcome: VendorPayoutOutcome) -> None:
        self.vendors_checked += 1
        self.outcomes.append(outcome)

        if outcome.outcome is PayoutOutcome.COMPLETED:
            self.payouts_completed += 1
            self.total_disbursed += outcome.earnings.total_earnings
        elif outcome.outcome is PayoutOutcome.FAILED:
            self.payouts_failed += 1
        elif outcome.outcome is PayoutOutcome.NOT_DUE:
            self.skipped_not_due += 1
        elif outcome.outcome in (PayoutOutcome.BELOW_MINIMUM, PayoutOutcome.NO_EARNINGS):
            self.skipped_below_minimum += 1
        elif outcome.outcome is PayoutOutcome.ALREADY_PAID:
            self.skipped_already_paid += 1
        elif outcome.outcome is PayoutOutcome.ERROR:
            self.errors += 1

    def to_dict(self) -> dict:
        return {
            "run_date": self.run_date.isoformat(),
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "vendors_checked": self.vendors_checked,
            "payouts_completed": self.payouts_completed,
            "payouts_failed": self.payouts_failed,
            "skipped_not_due": self.skipped_not_due,
            "skipped_below_minimum": self.skipped_below_minimum,
            "skipped_already_paid": self.skipped_already_paid,
            "errors": self.errors,
            "total_disbursed": str(self.total_disbursed),
            "success_rate": round(self.success_rate, 1),
        }


class PayoutService:
    """Calculates, schedules and disburses vendor payouts."""

    def __init__(
        self,
        db: AsyncSession,
        provider: Optional[PaymentProvider] = None,
        fee_rate: Optional[Decimal] = None,
        wallet_credit_policy: Optional[Union[WalletCreditPolicy, str]] = None,
        provider_timeout: Optional[float] = None,
        default_currency: Optional[str] = None
    ):
        self.db = db
        self.provider = provider or get_payment_provider()
        self.fee_rate = current_fee_rate() if fee_rate is None else Decimal(fee_rate)
        self.wallet_credit_policy = WalletCreditPolicy(
            wallet_credit_policy or settings.wallet_credit_policy
        )
        self.provider_timeout = (
            settings.payment_provider_timeout if provider_timeout is None else provider_timeout
        )
        self.default_currency = default_currency or settings.default_payout_currency
        self.wallet = WalletService(db)
        self.logger = logger.bind(service="payout_service")

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    async def get_vendor_ids_with_payout_settings(self) -> List[str]:
        result = await self.db.execute(
            select(VendorPayoutSettings.vendor_id).order_by(VendorPayoutSettings.vendor_id)
        )
        return list(result.scalars().all())

    async def process_scheduled_payouts(self, today: Optional[date] = None) -> PayoutRunSummary:
        """
        Run one payout batch for every vendor with payout settings.

        Args:
            today: Run date, defaults to the current UTC date

        Returns:
            PayoutRunSummary with per-vendor outcomes
        """
        today = today or utc_today()
        with payout_run_context(today):
            return await self._run_batch(today)

    async def _run_batch(self, today: date) -> PayoutRunSummary:
        summary = PayoutRunSummary(run_date=today)

        vendor_ids = await self.get_vendor_ids_with_payout_settings()
        self.logger.info(
            "Starting scheduled payout run",
            run_date=today.isoformat(),
            vendors=len(vendor_ids),
            provider=self.provider.name,
            wallet_credit_policy=self.wallet_credit_policy.value
        )

        for vendor_id in vendor_ids:
            try:
                outcome = await self.process_vendor(vendor_id, today)
                await self.db.commit()
            except Exception as e:
                await self.db.rollback()
                self.logger.error(
                    "Failed to process vendor payout",
                    vendor_id=vendor_id,
                    run_date=today.isoformat(),
                    error=str(e),
                    exc_info=True
                )
                outcome = VendorPayoutOutcome(
                    vendor_id=vendor_id,
                    outcome=PayoutOutcome.ERROR,
                    error=str(e)
                )
            summary.record(outcome)

        summary.completed_at = utc_now()
        self.logger.info("Scheduled payout run completed", **summary.to_dict())

        if summary.payouts_failed or summary.errors:
            self.logger.warning(
                "Some vendor payouts did not complete - manual review needed",
                run_date=today.isoformat(),
                failed=summary.payouts_failed,
                errors=summary.errors,
                vendors=[
                    o.vendor_id for o in summary.outcomes
                    if o.outcome in (PayoutOutcome.FAILED, PayoutOutcome.ERROR)
                ][:10]
            )
        return summary

    async def process_vendor(self, vendor_id: str, today: date) -> VendorPayoutOutcome:
        """Decide whether ``vendor_id`` is paid today and pay if so."""
        vendor = await self.get_vendor(vendor_id)
        if not vendor.has_payout_settings:
            return VendorPayoutOutcome(vendor_id=vendor_id, outcome=PayoutOutcome.NO_SETTINGS)

        payout_settings = vendor.payout_settings

        frequency = payout_settings.payout_frequency
        if not should_process_payout_today(frequency, today):
            return VendorPayoutOutcome(vendor_id=vendor_id, outcome=PayoutOutcome.NOT_DUE)

        period = calculate_payout_period(frequency, today)

        existing = await self.find_active_payout_for_period(vendor_id, period)
        if existing is not None:
            self.logger.info(
                "Payout period already paid, skipping",
                vendor_id=vendor_id,
                period=str(period),
                payout_id=existing.id,
                status=existing.status.value
            )
            return VendorPayoutOutcome(
                vendor_id=vendor_id,
                outcome=PayoutOutcome.ALREADY_PAID,
                period=period,
                payout_id=existing.id
            )

        earnings = await calculate_vendor_earnings(
            self.db, vendor_id, period.start, period.end, fee_rate=self.fee_rate
        )

        if earnings.total_earnings <= 0:
            return VendorPayoutOutcome(
                vendor_id=vendor_id,
                outcome=PayoutOutcome.NO_EARNINGS,
                period=period,
                earnings=earnings
            )

        if earnings.total_earnings < payout_settings.minimum_payout:
            self.logger.info(
                "Earnings below minimum payout, skipping",
                vendor_id=vendor_id,
                period=str(period),
                total_earnings=str(earnings.total_earnings),
                minimum_payout=str(payout_settings.minimum_payout)
            )
            return VendorPayoutOutcome(
                vendor_id=vendor_id,
                outcome=PayoutOutcome.BELOW_MINIMUM,
                period=period,
                earnings=earnings
            )

        payout = await self.disburse(vendor, earnings, period)
        return VendorPayoutOutcome(
            vendor_id=vendor_id,
            outcome=(
                PayoutOutcome.COMPLETED
                if payout.status is PayoutStatus.COMPLETED
                else PayoutOutcome.FAILED
            ),
            period=period,
            earnings=earnings,
            payout_id=payout.id,
            error=payout.failure_reason
        )

    # ------------------------------------------------------------------
    # Disbursement
    # ------------------------------------------------------------------

    async def disburse(
        self,
        vendor: Vendor,
        earnings: VendorEarnings,
        period: PayoutPeriod
    ) -> PayoutRecord:
        """
        Execute one disbursement attempt end to end.

        The returned record is always in a terminal state. Under the
        ``on_attempt`` wallet policy the wallet credit made before the
        provider call stays applied when the payout fails, and a later attempt
        for the same period does not credit it again.
        """
        payout_settings = vendor.payout_settings
        if payout_settings is None:
            raise PayoutSettingsMissingError(vendor.id)

        vendor_id = vendor.id
        request = PayoutRequest(
            vendor_id=vendor_id,
            amount=earnings.total_earnings,
            currency=vendor.currency or self.default_currency,
            bank_account=payout_settings.bank_account,
            description=f"Payout for {vendor.shop_name}",
        )

        payout = await self.create_payout_record(
            vendor_id, earnings, period, currency=request.currency
        )
        await self.db.commit()
        request.metadata = {
            "vendor_id": vendor_id,
            "payout_id": payout.id,
            "period_start": period.start.isoformat(),
            "period_end": period.end.isoformat(),
        }

        log = self.logger.bind(vendor_id=vendor_id, payout_id=payout.id, period=str(period))

        try:
            if self.wallet_credit_policy is WalletCreditPolicy.ON_ATTEMPT:
                await self._credit_wallet(payout, earnings, period)

            payout.transition_to(PayoutStatus.PROCESSING)
            await self.db.commit()

            response = await self._call_provider(request)

            if response.success:
                if self.wallet_credit_policy is WalletCreditPolicy.ON_CONFIRMATION:
                    await self._credit_wallet(payout, earnings, period)
                payout.provider_payout_id = response.payout_id
                payout.transition_to(PayoutStatus.COMPLETED, transaction_id=response.transaction_id)
                await self.db.commit()
                log.info(
                    "Payout completed",
                    amount=str(payout.amount),
                    currency=payout.currency,
                    transaction_id=response.transaction_id
                )
            else:
                payout.provider_payout_id = response.payout_id
                payout.transition_to(
                    PayoutStatus.FAILED,
                    failure_reason=response.error_message or "Payout was declined by the provider"
                )
                await self.db.commit()
                log.error("Payout declined by provider", reason=payout.failure_reason)

        except Exception as e:
            reason = str(e) or e.__class__.__name__
            log.error("Payout attempt failed", error=reason, exc_info=True)

            await self.db.rollback()
            await self.db.refresh(payout)
            if not payout.is_terminal:
                payout.transition_to(PayoutStatus.FAILED, failure_reason=reason)
                await self.db.commit()

        return payout

    async def _credit_wallet(
        self,
        payout: PayoutRecord,
        earnings: VendorEarnings,
        period: PayoutPeriod
    ) -> None:
        if earnings.wallet_addition <= 0:
            return
        if await self.period_sales_credited(payout.vendor_id, period):
            self.logger.info(
                "Period sales already credited, skipping wallet credit",
                vendor_id=payout.vendor_id,
                payout_id=payout.id,
                period=str(period)
            )
            return
        await self.wallet.credit(
            payout.vendor_id,
            earnings.wallet_addition,
            description=f"Sales for payout period {payout.period_start}..{payout.period_end}",
            payout_id=payout.id
        )

    async def _call_provider(self, request: PayoutRequest) -> PayoutResponse:
        try:
            return await asyncio.wait_for(
                self.provider.process_payout(request),
                timeout=self.provider_timeout
            )
        except asyncio.TimeoutError:
            raise PaymentProviderError(
                f"Payment provider timed out after {self.provider_timeout:g}s",
                {"vendor_id": request.vendor_id}
            ) from None

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    async def get_vendor(self, vendor_id: str) -> Vendor:
        vendor = await self.db.get(Vendor, vendor_id, populate_existing=True)
        if vendor is None:
            raise VendorNotFoundError(vendor_id)
        return vendor

    async def save_payout_settings(self, vendor_id: str, **fields) -> VendorPayoutSettings:
        """Create or replace a vendor's bank details and payout preferences."""
        vendor = await self.get_vendor(vendor_id)

        if vendor.payout_settings is None:
            vendor.payout_settings = VendorPayoutSettings(vendor_id=vendor_id, **fields)
        else:
            for name, value in fields.items():
                setattr(vendor.payout_settings, name, value)

        await self.db.flush()
        self.logger.info(
            "Payout settings saved",
            vendor_id=vendor_id,
            frequency=vendor.payout_settings.payout_frequency.value,
            minimum_payout=str(vendor.payout_settings.minimum_payout)
        )
        return vendor.payout_settings

    async def create_payout_record(
        self,
        vendor_id: str,
        earnings: VendorEarnings,
        period: PayoutPeriod,
        currency: Optional[str] = None
    ) -> PayoutRecord:
        """Insert a ``pending`` record whose amount snapshots the net earnings."""
        payout = PayoutRecord(
            id=PayoutRecord.new_id(),
            vendor_id=vendor_id,
            amount=earnings.total_earnings,
            wallet_addition=earnings.wallet_addition,
            currency=currency or self.default_currency,
            status=PayoutStatus.PENDING,
            period_start=period.start,
            period_end=period.end,
            created_at=utc_now(),
        )
        self.db.add(payout)
        await self.db.flush()

        self.logger.info(
            "Payout record created",
            vendor_id=vendor_id,
            payout_id=payout.id,
            amount=str(payout.amount),
            period=str(period)
        )
        return payout

    async def update_payout_status(
        self,
        payout_id: str,
        status: PayoutStatus,
        transaction_id: Optional[str] = None,
        failure_reason: Optional[str] = None
    ) -> PayoutRecord:
        payout = await self.get_payout(payout_id)
        payout.transition_to(
            PayoutStatus(status),
            transaction_id=transaction_id,
            failure_reason=failure_reason
        )
        await self.db.flush()
        return payout

    async def get_payout(self, payout_id: str) -> PayoutRecord:
        payout = await self.db.get(PayoutRecord, payout_id)
        if payout is None:
            raise PayoutNotFoundError(payout_id)
        return payout

    async def find_active_payout_for_period(
        self,
        vendor_id: str,
        period: PayoutPeriod
    ) -> Optional[PayoutRecord]:
        """Non-failed payout for exactly this vendor and period, if any."""
        result = await self.db.execute(
            select(PayoutRecord)
            .where(PayoutRecord.vendor_id == vendor_id)
            .where(PayoutRecord.period_start == period.start)
            .where(PayoutRecord.period_end == period.end)
            .where(PayoutRecord.status != PayoutStatus.FAILED)
            .limit(1)
        )
        return result.scalars().first()

    async def period_sales_credited(self, vendor_id: str, period: PayoutPeriod) -> bool:
        """True when an earlier payout attempt for this period already credited the wallet."""
        credit_id = await self.db.scalar(
            select(VendorWalletTransaction.id)
            .join(PayoutRecord, VendorWalletTransaction.payout_id == PayoutRecord.id)
            .where(PayoutRecord.vendor_id == vendor_id)
            .where(PayoutRecord.period_start == period.start)
            .where(PayoutRecord.period_end == period.end)
            .where(VendorWalletTransaction.type == WalletTransactionType.CREDIT)
            .limit(1)
        )
        return credit_id is not None

    async def get_vendor_payout_history(self, vendor_id: str) -> List[PayoutRecord]:
        result = await self.db.execute(
            select(PayoutRecord)
            .where(PayoutRecord.vendor_id == vendor_id)
            .order_by(desc(PayoutRecord.created_at))
        )
        return list(result.scalars().all())

    async def list_payouts(
        self,
        status: Optional[PayoutStatus] = None,
        limit: int = 50,
        offset: int = 0
    ) -> Tuple[List[PayoutRecord], int]:
        """Page through all payouts, newest first, with the total count."""
        query = select(PayoutRecord)
        count_query = select(func.count()).select_from(PayoutRecord)
        if status is not None:
            query = query.where(PayoutRecord.status == status)
            count_query = count_query.where(PayoutRecord.status == status)

        total = await self.db.scalar(count_query)
        result = await self.db.execute(
            query.order_by(desc(PayoutRecord.created_at)).limit(limit).offset(offset)
        )
        return list(result.scalars().all()), int(total or 0)


async def process_scheduled_payouts(
    today: Optional[date] = None,
    provider: Optional[PaymentProvider] = None
) -> PayoutRunSummary:
    """Run a payout batch in its own database session."""
    owns_provider = provider is None
    provider = provider or get_payment_provider()
    try:
        async with get_async_session() as db:
            service = PayoutService(db, provider=provider)
            return await service.process_scheduled_payouts(today)
    finally:
        if owns_provider:
            await provider.aclose()
