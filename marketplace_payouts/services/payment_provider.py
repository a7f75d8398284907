"""
Payment provider integration for vendor payouts.

``PaymentProvider`` is the contract the disbursement flow depends on. Two
implementations ship:

- ``MockPaymentProvider`` simulates latency and random bank-side rejections
- ``HttpPaymentProvider`` talks JSON to a payout gateway over HTTP

``get_payment_provider()`` picks one from settings.
"""

import asyncio
import random
import string
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, asdict
from decimal import Decimal
from typing import Any, Dict, Optional

import httpx
import structlog

from marketplace_payouts.core.config import settings
from marketplace_payouts.core.exceptions import (
    ConfigurationError,
    PaymentProviderError,
    ValidationError,
)


logger = structlog.get_logger(__name__)


@dataclass
class BankAccount:
    """Destination account of a payout."""
    bank_name: str
    account_number: str
    account_name: str
    routing_number: Optional[str] = None
    swift_code: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return bool(self.bank_name and self.account_number and self.account_name)

    @property
    def masked_account_number(self) -> str:
        if len(self.account_number) <= 4:
            return self.account_number
        return "*" * (len(self.account_number) - 4) + self.account_number[-4:]


@dataclass
class PayoutRequest:
    """Instruction to transfer ``amount`` to a vendor's bank account."""
    vendor_id: str
    amount: Decimal
    currency: str
    bank_account: BankAccount
    description: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["amount"] = str(self.amount)
        return payload


@dataclass
class PayoutResponse:
    """Provider answer; ``transaction_id`` iff success, ``error_message`` iff failure."""
    success: bool
    payout_id: str
    transaction_id: Optional[str] = None
    error_message: Optional[str] = None


def validate_payout_request(request: PayoutRequest) -> None:
    """
    Reject malformed requests before any I/O.

    Raises:
        ValidationError: missing vendor id, non-positive amount or
            incomplete bank account
    """
    if not request.vendor_id:
        raise ValidationError("Vendor ID is required")

    if request.amount is None or Decimal(request.amount) <= 0:
        raise ValidationError(
            "Payout amount must be greater than zero",
            {"vendor_id": request.vendor_id, "amount": str(request.amount)}
        )

    if request.bank_account is None or not request.bank_account.is_complete:
        raise ValidationError(
            "Bank account information is incomplete",
            {"vendor_id": request.vendor_id}
        )


class PaymentProvider(ABC):
    """Capability interface for executing payouts."""

    name: str = "abstract"

    @abstractmethod
    async def process_payout(self, request: PayoutRequest) -> PayoutResponse:
        """Send money; declines come back as ``success=False``, not exceptions."""

    @abstractmethod
    async def get_payout_status(self, transaction_id: str) -> Dict[str, Any]:
        """Look up a previously submitted transaction."""

    @abstractmethod
    async def validate_bank_account(self, bank_account: BankAccount) -> bool:
        """Check that the provider accepts the account details."""

    async def aclose(self) -> None:
        """Release provider resources."""


class MockPaymentProvider(PaymentProvider):
    """
    Stand-in provider for development and tests.

    Waits ``delay`` seconds and rejects a ``failure_rate`` share of payouts
    the way a bank verification failure would.
    """

    name = "mock"
    FAILURE_MESSAGE = "Bank account verification failed. Please check account details."

    def __init__(
        self,
        delay: Optional[float] = None,
        failure_rate: Optional[float] = None,
        rng: Optional[random.Random] = None
    ):
        self.delay = settings.mock_provider_delay if delay is None else delay
        self.failure_rate = (
            settings.mock_provider_failure_rate if failure_rate is None else failure_rate
        )
        self.rng = rng or random.Random()
        self.logger = logger.bind(service="mock_payment_provider")

    def _transaction_id(self) -> str:
        suffix = "".join(self.rng.choices(string.ascii_lowercase + string.digits, k=9))
        return f"txn_{int(time.time() * 1000)}_{suffix}"

    async def process_payout(self, request: PayoutRequest) -> PayoutResponse:
        validate_payout_request(request)

        if self.delay > 0:
            await asyncio.sleep(self.delay)

        payout_id = str(request.metadata.get("payout_id") or request.vendor_id)

        if self.rng.random() < self.failure_rate:
            self.logger.warning(
                "Simulated payout rejection",
                vendor_id=request.vendor_id,
                payout_id=payout_id
            )
            return PayoutResponse(
                success=False,
                payout_id=payout_id,
                error_message=self.FAILURE_MESSAGE
            )

        transaction_id = self._transaction_id()
        self.logger.info(
            "Simulated payout sent",
            vendor_id=request.vendor_id,
            payout_id=payout_id,
            amount=str(request.amount),
            currency=request.currency,
            account=request.bank_account.masked_account_number,
            transaction_id=transaction_id
        )
        return PayoutResponse(success=True, payout_id=payout_id, transaction_id=transaction_id)

    async def get_payout_status(self, transaction_id: str) -> Dict[str, Any]:
        if self.delay > 0:
            await asyncio.sleep(self.delay / 2)
        return {"transaction_id": transaction_id, "status": "completed"}

    async def validate_bank_account(self, bank_account: BankAccount) -> bool:
        if self.delay > 0:
            await asyncio.sleep(self.delay * 0.8)
        return bank_account.is_complete


class HttpPaymentProvider(PaymentProvider):
    """
    Adapter for a JSON payout gateway.

    POST {base_url}/payouts with the request payload; the gateway answers
    with ``success``/``transaction_id``/``error_message``/``payout_id``.
    """

    name = "http"

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None
    ):
        if not base_url:
            raise ConfigurationError("Payment provider URL is not configured")

        headers = {"Accept": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"

        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout or settings.payment_provider_timeout
        )
        self.logger = logger.bind(service="http_payment_provider")

    async def process_payout(self, request: PayoutRequest) -> PayoutResponse:
        validate_payout_request(request)
        fallback_id = str(request.metadata.get("payout_id") or request.vendor_id)

        try:
            response = await self.client.post("/payouts", json=request.to_payload())
        except httpx.HTTPError as e:
            self.logger.error(
                "Payment provider request failed",
                vendor_id=request.vendor_id,
                error=str(e)
            )
            raise PaymentProviderError(
                f"Payment provider request failed: {e}",
                {"vendor_id": request.vendor_id}
            ) from e

        body = self._json_body(response)

        if response.is_success:
            if body.get("success", True) and body.get("transaction_id"):
                return PayoutResponse(
                    success=True,
                    payout_id=str(body.get("payout_id") or fallback_id),
                    transaction_id=str(body["transaction_id"])
                )
            return PayoutResponse(
                success=False,
                payout_id=str(body.get("payout_id") or fallback_id),
                error_message=body.get("error_message") or "Payout was not accepted by the provider"
            )

        self.logger.warning(
            "Payment provider rejected payout",
            vendor_id=request.vendor_id,
            status_code=response.status_code
        )
        return PayoutResponse(
            success=False,
            payout_id=str(body.get("payout_id") or fallback_id),
            error_message=(
                body.get("error_message")
                or body.get("message")
                or f"Payment provider returned HTTP {response.status_code}"
            )
        )

    async def get_payout_status(self, transaction_id: str) -> Dict[str, Any]:
        try:
            response = await self.client.get(f"/payouts/{transaction_id}")
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise PaymentProviderError(
                f"Could not fetch payout status: {e}",
                {"transaction_id": transaction_id}
            ) from e
        return self._json_body(response)

    async def validate_bank_account(self, bank_account: BankAccount) -> bool:
        if not bank_account.is_complete:
            return False
        try:
            response = await self.client.post("/bank-accounts/validate", json=asdict(bank_account))
        except httpx.HTTPError as e:
            raise PaymentProviderError(f"Bank account validation failed: {e}") from e
        return response.is_success and bool(self._json_body(response).get("valid", False))

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    @staticmethod
    def _json_body(response: httpx.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}


def get_payment_provider() -> PaymentProvider:
    """Build the provider selected by ``settings.payment_provider``."""
    if settings.payment_provider == "http":
        return HttpPaymentProvider(
            base_url=settings.payment_provider_url,
            api_key=settings.payment_provider_api_key,
            timeout=settings.payment_provider_timeout
        )
    return MockPaymentProvider()
