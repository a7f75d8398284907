"""
Admin payout routes: list all payouts and trigger a payout run.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

import structlog

from marketplace_payouts.api.dependencies import get_payout_service, require_admin
from marketplace_payouts.api.schemas.common import (
    PaginatedResponse,
    SuccessResponse,
    create_paginated_response,
    create_success_response,
)
from marketplace_payouts.api.schemas.payouts import PayoutRecordResponse, PayoutRunResponse
from marketplace_payouts.core.exceptions import SchedulerError
from marketplace_payouts.models.payout import PayoutStatus
from marketplace_payouts.scheduler.payout_scheduler import get_payout_scheduler
from marketplace_payouts.services.payout_service import PayoutService


logger = structlog.get_logger(__name__)

router = APIRouter(dependencies=[Depends(require_admin)])


@router.get(
    "/payouts",
    response_model=PaginatedResponse,
    summary="List Payouts",
    description="All payout records across vendors, newest first"
)
async def list_payouts(
    payout_status: Optional[PayoutStatus] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    service: PayoutService = Depends(get_payout_service)
):
    payouts, total = await service.list_payouts(status=payout_status, limit=limit, offset=offset)
    return create_paginated_response(
        data=[PayoutRecordResponse.model_validate(p).model_dump(mode="json") for p in payouts],
        total=total,
        limit=limit,
        offset=offset
    )


@router.get(
    "/payouts/{payout_id}",
    response_model=SuccessResponse,
    summary="Get Payout"
)
async def get_payout(
    payout_id: str,
    service: PayoutService = Depends(get_payout_service)
):
    payout = await service.get_payout(payout_id)
    return create_success_response(
        data=PayoutRecordResponse.model_validate(payout).model_dump(mode="json")
    )


@router.post(
    "/payouts/run",
    response_model=SuccessResponse,
    summary="Run Payouts",
    description="Run the scheduled payout batch now, optionally as of another date"
)
async def run_payouts(run_date: Optional[date] = Query(None, alias="date")):
    scheduler = await get_payout_scheduler()
    try:
        summary = await scheduler.trigger_manual_run(run_date)
    except SchedulerError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"error": e.code, "message": e.message}
        )

    return create_success_response(
        data=PayoutRunResponse(**summary.to_dict()).model_dump(mode="json"),
        message="Payout run completed"
    )


@router.get(
    "/scheduler",
    response_model=SuccessResponse,
    summary="Scheduler Status"
)
async def scheduler_status():
    scheduler = await get_payout_scheduler()
    return create_success_response(data=await scheduler.health_check())
