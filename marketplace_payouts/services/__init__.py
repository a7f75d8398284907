"""
Payout services: earnings calculation, scheduling, wallet accounting and
disbursement through a payment provider.
"""

from .earnings_calculator import VendorEarnings, calculate_vendor_earnings, PLATFORM_FEE_RATE
from .payout_schedule import PayoutPeriod, calculate_payout_period, should_process_payout_today
from .payment_provider import (
    BankAccount, PayoutRequest, PayoutResponse, PaymentProvider,
    MockPaymentProvider, HttpPaymentProvider, get_payment_provider
)
from .wallet_service import WalletService
from .payout_service import (
    PayoutService, PayoutOutcome, PayoutRunSummary, VendorPayoutOutcome,
    WalletCreditPolicy, process_scheduled_payouts
)

__all__ = [
    "VendorEarnings",
    "calculate_vendor_earnings",
    "PLATFORM_FEE_RATE",
    "PayoutPeriod",
    "calculate_payout_period",
    "should_process_payout_today",
    "BankAccount",
    "PayoutRequest",
    "PayoutResponse",
    "PaymentProvider",
    "MockPaymentProvider",
    "HttpPaymentProvider",
    "get_payment_provider",
    "WalletService",
    "PayoutService",
    "PayoutOutcome",
    "PayoutRunSummary",
    "VendorPayoutOutcome",
    "WalletCreditPolicy",
    "process_scheduled_payouts",
]
