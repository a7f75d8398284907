"""
Main FastAPI application for the marketplace payouts backend.
Configures the API server with routes, middleware, and error handling.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

import structlog

from marketplace_payouts.core.config import settings
from marketplace_payouts.core.database import init_database, close_database, DatabaseManager
from marketplace_payouts.core.exceptions import (
    AuthenticationError,
    MarketplacePayoutsException,
    NotFoundError,
    ValidationError,
)
from marketplace_payouts.core.logging import setup_logging
from marketplace_payouts.api.middleware import add_middleware
from marketplace_payouts.api.routes import admin, vendors
from marketplace_payouts.api.schemas.common import HealthCheckResponse, create_error_response
from marketplace_payouts.scheduler.payout_scheduler import (
    get_payout_scheduler,
    start_payout_scheduler,
    stop_payout_scheduler,
)


logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting marketplace payouts API", version=settings.app_version)

    await init_database()

    if settings.is_production:
        try:
            await start_payout_scheduler()
            logger.info("Payout scheduler started")
        except Exception as e:
            logger.error("Failed to start payout scheduler", error=str(e))

    yield

    logger.info("Shutting down marketplace payouts API")
    try:
        await stop_payout_scheduler()
    except Exception as e:
        logger.error("Error stopping payout scheduler", error=str(e))
    await close_database()


def _status_for(exc: MarketplacePayoutsException) -> int:
    if isinstance(exc, ValidationError):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(exc, NotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, AuthenticationError):
        return status.HTTP_401_UNAUTHORIZED
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def create_app(use_lifespan: bool = True) -> FastAPI:
    """Create and configure FastAPI application."""
    setup_logging()

    app = FastAPI(
        title="Marketplace Payouts API",
        description="""
        Vendor payout backend for the marketplace.

        * **Payout history** - every disbursement attempt per vendor
        * **Payout settings** - bank details, frequency, minimum payout
        * **Wallet** - accrued gross sales and ledger
        * **Admin** - list payouts and trigger a payout run
        """,
        version=settings.app_version,
        lifespan=lifespan if use_lifespan else None,
    )

    add_middleware(app)

    @app.exception_handler(MarketplacePayoutsException)
    async def domain_exception_handler(request: Request, exc: MarketplacePayoutsException):
        status_code = _status_for(exc)
        log = logger.warning if status_code < 500 else logger.error
        log(
            "Request raised domain error",
            path=request.url.path,
            code=exc.code,
            error=exc.message
        )
        body = create_error_response(exc.message, error_code=exc.code, details=exc.details)
        return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))

    @app.get("/health", response_model=HealthCheckResponse, tags=["health"])
    async def health():
        database_ok = await DatabaseManager.health_check()
        scheduler = await get_payout_scheduler()
        return HealthCheckResponse(
            status="healthy" if database_ok else "degraded",
            version=settings.app_version,
            database=database_ok,
            scheduler=scheduler.get_status()
        )

    app.include_router(vendors.router, prefix=f"{settings.api_v1_prefix}/vendors", tags=["vendors"])
    app.include_router(admin.router, prefix=f"{settings.api_v1_prefix}/admin", tags=["admin"])

    return app


app = create_app()
