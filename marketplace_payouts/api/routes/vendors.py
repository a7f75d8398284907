"""
Vendor payout routes: payout history, payout settings, wallet and earnings.
"""

from datetime import date

from fastapi import APIRouter, Depends, Query

import structlog

from marketplace_payouts.api.dependencies import get_payout_service, validate_vendor_id_param
from marketplace_payouts.api.schemas.common import SuccessResponse, create_success_response
from marketplace_payouts.api.schemas.payouts import (
    EarningsResponse,
    PayoutRecordResponse,
    PayoutSettingsResponse,
    PayoutSettingsUpdate,
    WalletResponse,
    WalletTransactionResponse,
)
from marketplace_payouts.services.earnings_calculator import calculate_vendor_earnings
from marketplace_payouts.services.payout_service import PayoutService


logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get(
    "/{vendor_id}/payouts",
    response_model=SuccessResponse,
    summary="Get Payout History",
    description="All payout attempts for a vendor, newest first"
)
async def get_vendor_payouts(
    vendor_id: str = Depends(validate_vendor_id_param),
    service: PayoutService = Depends(get_payout_service)
):
    await service.get_vendor(vendor_id)
    payouts = await service.get_vendor_payout_history(vendor_id)
    return create_success_response(
        data=[PayoutRecordResponse.model_validate(p).model_dump(mode="json") for p in payouts],
        message=f"Found {len(payouts)} payouts"
    )


@router.get(
    "/{vendor_id}/payout-settings",
    response_model=SuccessResponse,
    summary="Get Payout Settings"
)
async def get_payout_settings(
    vendor_id: str = Depends(validate_vendor_id_param),
    service: PayoutService = Depends(get_payout_service)
):
    vendor = await service.get_vendor(vendor_id)
    if vendor.payout_settings is None:
        return create_success_response(data=None, message="Payout settings not configured")

    return create_success_response(
        data=PayoutSettingsResponse.model_validate(vendor.payout_settings).model_dump(mode="json")
    )


@router.put(
    "/{vendor_id}/payout-settings",
    response_model=SuccessResponse,
    summary="Update Payout Settings",
    description="Create or replace bank details, payout frequency and minimum payout"
)
async def update_payout_settings(
    body: PayoutSettingsUpdate,
    vendor_id: str = Depends(validate_vendor_id_param),
    service: PayoutService = Depends(get_payout_service)
):
    payout_settings = await service.save_payout_settings(vendor_id, **body.model_dump())
    return create_success_response(
        data=PayoutSettingsResponse.model_validate(payout_settings).model_dump(mode="json"),
        message="Payout settings saved"
    )


@router.get(
    "/{vendor_id}/wallet",
    response_model=SuccessResponse,
    summary="Get Wallet"
)
async def get_wallet(
    vendor_id: str = Depends(validate_vendor_id_param),
    limit: int = Query(10, ge=1, le=100),
    service: PayoutService = Depends(get_payout_service)
):
    balance = await service.wallet.get_balance(vendor_id)
    transactions = await service.wallet.get_transactions(vendor_id, limit=limit)
    wallet = WalletResponse(
        vendor_id=vendor_id,
        balance=balance,
        transactions=[WalletTransactionResponse.model_validate(t) for t in transactions]
    )
    return create_success_response(data=wallet.model_dump(mode="json"))


@router.get(
    "/{vendor_id}/earnings",
    response_model=SuccessResponse,
    summary="Preview Earnings",
    description="Net and gross earnings from paid orders in a date range"
)
async def get_earnings(
    period_start: date,
    period_end: date,
    vendor_id: str = Depends(validate_vendor_id_param),
    service: PayoutService = Depends(get_payout_service)
):
    await service.get_vendor(vendor_id)
    earnings = await calculate_vendor_earnings(
        service.db, vendor_id, period_start, period_end, fee_rate=service.fee_rate
    )
    response = EarningsResponse(
        vendor_id=vendor_id,
        period_start=period_start,
        period_end=period_end,
        total_earnings=earnings.total_earnings,
        wallet_addition=earnings.wallet_addition,
        platform_fee=earnings.platform_fee,
        order_count=earnings.order_count
    )
    return create_success_response(data=response.model_dump(mode="json"))
