"""
Test the HTTP API with the database and provider overridden.
"""

from datetime import date, datetime
from decimal import Decimal

import httpx
import pytest

from marketplace_payouts.api.dependencies import get_database, get_provider
from marketplace_payouts.api.main import create_app
from marketplace_payouts.core.config import settings
from marketplace_payouts.scheduler import payout_scheduler as scheduler_module
from marketplace_payouts.scheduler.payout_scheduler import PayoutScheduler
from marketplace_payouts.services.payout_service import PayoutService, WalletCreditPolicy


ADMIN_KEY = "admin-secret"
PREFIX = settings.api_v1_prefix


def _service(session, provider) -> PayoutService:
    return PayoutService(
        session,
        provider=provider,
        fee_rate=Decimal("0.10"),
        wallet_credit_policy=WalletCreditPolicy.ON_ATTEMPT
    )


@pytest.fixture
def scheduler(session, provider, monkeypatch):
    async def runner(today):
        return await _service(session, provider).process_scheduled_payouts(today)

    payout_scheduler = PayoutScheduler(runner=runner, enabled=False)
    monkeypatch.setattr(scheduler_module, "_payout_scheduler", payout_scheduler)
    return payout_scheduler


@pytest.fixture
async def client(session, provider, scheduler, monkeypatch):
    monkeypatch.setattr(settings, "admin_api_key", ADMIN_KEY)
    app = create_app(use_lifespan=False)

    async def override_database():
        yield session

    async def override_provider():
        yield provider

    app.dependency_overrides[get_database] = override_database
    app.dependency_overrides[get_provider] = override_provider

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


def _admin_headers(key: str = ADMIN_KEY) -> dict:
    return {"Authorization": f"Bearer {key}"}


async def _paid_vendor(session, make_vendor, make_order, provider, vendor_id="vendor-1"):
    await make_vendor(vendor_id)
    await make_order([(vendor_id, "10000", 1)], datetime(2024, 2, 14, 12, 0))
    await _service(session, provider).process_scheduled_payouts(date(2024, 3, 1))


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["database"] is True
    assert body["scheduler"]["status"] == "stopped"


@pytest.mark.asyncio
async def test_vendor_payout_history(client, session, make_vendor, make_order, provider):
    await _paid_vendor(session, make_vendor, make_order, provider)

    response = await client.get(f"{PREFIX}/vendors/vendor-1/payouts")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert len(body["data"]) == 1
    payout = body["data"][0]
    assert payout["status"] == "completed"
    assert Decimal(payout["amount"]) == Decimal("9000")
    assert payout["period_start"] == "2024-02-01"
    assert payout["period_end"] == "2024-02-29"
    assert payout["transaction_id"] == "txn_test_1"


@pytest.mark.asyncio
async def test_unknown_vendor_is_404(client):
    response = await client.get(f"{PREFIX}/vendors/nobody/payouts")

    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert body["error_code"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_save_and_read_payout_settings(client, make_vendor):
    await make_vendor("vendor-1", frequency=None)

    response = await client.get(f"{PREFIX}/vendors/vendor-1/payout-settings")
    assert response.status_code == 200
    assert response.json()["data"] is None

    response = await client.put(
        f"{PREFIX}/vendors/vendor-1/payout-settings",
        json={
            "bank_name": "GT Bank",
            "account_number": "9876543210",
            "account_name": "Shop Ltd",
            "payout_frequency": "weekly",
            "minimum_payout": "2500"
        }
    )
    assert response.status_code == 200
    saved = response.json()["data"]
    assert saved["account_number"] == "******3210"
    assert saved["payout_frequency"] == "weekly"

    response = await client.get(f"{PREFIX}/vendors/vendor-1/payout-settings")
    data = response.json()["data"]
    assert data["bank_name"] == "GT Bank"
    assert Decimal(data["minimum_payout"]) == Decimal("2500")


@pytest.mark.asyncio
async def test_invalid_payout_settings_rejected(client, make_vendor):
    await make_vendor("vendor-1", frequency=None)

    response = await client.put(
        f"{PREFIX}/vendors/vendor-1/payout-settings",
        json={
            "bank_name": "GT Bank",
            "account_number": "9876543210",
            "account_name": "Shop Ltd",
            "minimum_payout": "-1"
        }
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_wallet(client, session, make_vendor, make_order, provider):
    await _paid_vendor(session, make_vendor, make_order, provider)

    response = await client.get(f"{PREFIX}/vendors/vendor-1/wallet")

    assert response.status_code == 200
    wallet = response.json()["data"]
    assert Decimal(wallet["balance"]) == Decimal("10000")
    assert len(wallet["transactions"]) == 1
    assert wallet["transactions"][0]["type"] == "credit"


@pytest.mark.asyncio
async def test_earnings_preview(client, make_vendor, make_order):
    await make_vendor("vendor-1")
    await make_order([("vendor-1", "2000", 1)], datetime(2024, 2, 3, 8, 0))

    response = await client.get(
        f"{PREFIX}/vendors/vendor-1/earnings",
        params={"period_start": "2024-02-01", "period_end": "2024-02-29"}
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert Decimal(data["total_earnings"]) == Decimal("1800")
    assert Decimal(data["wallet_addition"]) == Decimal("2000")
    assert Decimal(data["platform_fee"]) == Decimal("200")
    assert data["order_count"] == 1


@pytest.mark.asyncio
async def test_reversed_earnings_period_is_400(client, make_vendor):
    await make_vendor("vendor-1")

    response = await client.get(
        f"{PREFIX}/vendors/vendor-1/earnings",
        params={"period_start": "2024-02-29", "period_end": "2024-02-01"}
    )

    assert response.status_code == 400
    assert response.json()["error_code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_admin_requires_token(client):
    response = await client.get(f"{PREFIX}/admin/payouts")
    assert response.status_code == 401

    response = await client.get(f"{PREFIX}/admin/payouts", headers=_admin_headers("wrong"))
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_admin_disabled_without_key(client, monkeypatch):
    monkeypatch.setattr(settings, "admin_api_key", None)

    response = await client.get(f"{PREFIX}/admin/payouts", headers=_admin_headers())

    assert response.status_code == 503


@pytest.mark.asyncio
async def test_admin_list_payouts(client, session, make_vendor, make_order, provider):
    await _paid_vendor(session, make_vendor, make_order, provider, "vendor-a")
    await _paid_vendor(session, make_vendor, make_order, provider, "vendor-b")

    response = await client.get(
        f"{PREFIX}/admin/payouts",
        params={"status": "completed", "limit": 1},
        headers=_admin_headers()
    )

    assert response.status_code == 200
    body = response.json()
    assert body["pagination"]["total"] == 2
    assert len(body["data"]) == 1

    payout_id = body["data"][0]["id"]
    response = await client.get(f"{PREFIX}/admin/payouts/{payout_id}", headers=_admin_headers())
    assert response.status_code == 200
    assert response.json()["data"]["id"] == payout_id


@pytest.mark.asyncio
async def test_admin_missing_payout_is_404(client):
    response = await client.get(f"{PREFIX}/admin/payouts/nope", headers=_admin_headers())
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_admin_trigger_run(client, make_vendor, make_order, provider):
    await make_vendor("vendor-1")
    await make_order([("vendor-1", "10000", 1)], datetime(2024, 2, 14, 12, 0))

    response = await client.post(
        f"{PREFIX}/admin/payouts/run",
        params={"date": "2024-03-01"},
        headers=_admin_headers()
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["run_date"] == "2024-03-01"
    assert data["payouts_completed"] == 1
    assert Decimal(data["total_disbursed"]) == Decimal("9000")
    assert len(provider.requests) == 1


@pytest.mark.asyncio
async def test_admin_scheduler_status(client, scheduler):
    response = await client.get(f"{PREFIX}/admin/scheduler", headers=_admin_headers())

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "stopped"
    assert data["enabled"] is False


@pytest.mark.asyncio
async def test_request_id_is_echoed(client):
    response = await client.get("/health", headers={"X-Request-ID": "req-42"})
    assert response.headers["X-Request-ID"] == "req-42"

    response = await client.get("/health")
    assert len(response.headers["X-Request-ID"]) == 32
