"""
Test payment provider implementations and request validation.
"""

import json
import random
from decimal import Decimal

import httpx
import pytest

from marketplace_payouts.core.exceptions import (
    ConfigurationError,
    PaymentProviderError,
    ValidationError,
)
from marketplace_payouts.services.payment_provider import (
    BankAccount,
    HttpPaymentProvider,
    MockPaymentProvider,
    PayoutRequest,
    validate_payout_request,
)


def _request(**overrides) -> PayoutRequest:
    fields = dict(
        vendor_id="vendor-1",
        amount=Decimal("9000"),
        currency="NGN",
        bank_account=BankAccount(
            bank_name="First Bank",
            account_number="0123456789",
            account_name="Shop Ltd"
        ),
        description="Payout for Shop",
        metadata={"payout_id": "payout-1"},
    )
    fields.update(overrides)
    return PayoutRequest(**fields)


def test_valid_request_passes():
    validate_payout_request(_request())


@pytest.mark.parametrize("overrides, message", [
    ({"vendor_id": ""}, "Vendor ID is required"),
    ({"amount": Decimal("0")}, "Payout amount must be greater than zero"),
    ({"amount": Decimal("-5")}, "Payout amount must be greater than zero"),
    (
        {"bank_account": BankAccount(bank_name="", account_number="1", account_name="x")},
        "Bank account information is incomplete"
    ),
])
def test_invalid_request_rejected(overrides, message):
    with pytest.raises(ValidationError) as exc_info:
        validate_payout_request(_request(**overrides))
    assert exc_info.value.message == message


def test_masked_account_number():
    account = BankAccount(bank_name="b", account_number="0123456789", account_name="n")
    assert account.masked_account_number == "******6789"


@pytest.mark.asyncio
async def test_mock_provider_success():
    provider = MockPaymentProvider(delay=0, failure_rate=0)

    response = await provider.process_payout(_request())

    assert response.success
    assert response.payout_id == "payout-1"
    assert response.transaction_id.startswith("txn_")
    assert response.error_message is None


@pytest.mark.asyncio
async def test_mock_provider_failure():
    provider = MockPaymentProvider(delay=0, failure_rate=1)

    response = await provider.process_payout(_request())

    assert not response.success
    assert response.transaction_id is None
    assert response.error_message == MockPaymentProvider.FAILURE_MESSAGE


@pytest.mark.asyncio
async def test_mock_provider_failure_rate_is_a_share_of_payouts():
    provider = MockPaymentProvider(delay=0, failure_rate=0.5, rng=random.Random(42))

    results = [(await provider.process_payout(_request())).success for _ in range(200)]

    assert 0 < results.count(False) < 200


@pytest.mark.asyncio
async def test_mock_provider_validates_before_sending():
    provider = MockPaymentProvider(delay=0, failure_rate=0)
    with pytest.raises(ValidationError):
        await provider.process_payout(_request(amount=Decimal("0")))


def _http_provider(handler) -> HttpPaymentProvider:
    client = httpx.AsyncClient(
        base_url="https://payouts.example.com",
        transport=httpx.MockTransport(handler)
    )
    return HttpPaymentProvider("https://payouts.example.com", client=client)


@pytest.mark.asyncio
async def test_http_provider_success():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"success": True, "transaction_id": "gw-123"})

    provider = _http_provider(handler)
    response = await provider.process_payout(_request())

    assert response.success
    assert response.transaction_id == "gw-123"
    assert response.payout_id == "payout-1"
    assert seen["path"] == "/payouts"
    assert seen["body"]["amount"] == "9000"
    assert seen["body"]["bank_account"]["account_number"] == "0123456789"


@pytest.mark.asyncio
async def test_http_provider_decline_in_body():
    def handler(request):
        return httpx.Response(200, json={"success": False, "error_message": "Account closed"})

    response = await _http_provider(handler).process_payout(_request())

    assert not response.success
    assert response.error_message == "Account closed"
    assert response.transaction_id is None


@pytest.mark.asyncio
async def test_http_provider_error_status():
    def handler(request):
        return httpx.Response(502, text="bad gateway")

    response = await _http_provider(handler).process_payout(_request())

    assert not response.success
    assert response.error_message == "Payment provider returned HTTP 502"


@pytest.mark.asyncio
async def test_http_provider_transport_error_raises():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(PaymentProviderError):
        await _http_provider(handler).process_payout(_request())


def test_http_provider_requires_url():
    with pytest.raises(ConfigurationError):
        HttpPaymentProvider("")
