"""
API dependencies for FastAPI endpoints.
Provides database sessions, the payment provider and admin authentication.
"""

from typing import AsyncGenerator, Optional

from fastapi import Depends, HTTPException, Path, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

import structlog

from marketplace_payouts.core.config import settings
from marketplace_payouts.core.database import get_async_session
from marketplace_payouts.services.payment_provider import PaymentProvider, get_payment_provider
from marketplace_payouts.services.payout_service import PayoutService


logger = structlog.get_logger(__name__)

admin_auth_scheme = HTTPBearer(auto_error=False)


async def get_database() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    async with get_async_session() as session:
        yield session


async def get_provider() -> AsyncGenerator[PaymentProvider, None]:
    """Payment provider for the duration of one request."""
    provider = get_payment_provider()
    try:
        yield provider
    finally:
        await provider.aclose()


async def get_payout_service(
    db: AsyncSession = Depends(get_database),
    provider: PaymentProvider = Depends(get_provider)
) -> PayoutService:
    return PayoutService(db, provider=provider)


async def validate_vendor_id_param(
    vendor_id: str = Path(..., description="Vendor identifier")
) -> str:
    """Validate vendor ID path parameter."""
    vendor_id = vendor_id.strip()
    if not vendor_id or len(vendor_id) > 64:
        logger.warning("Invalid vendor ID provided", vendor_id=vendor_id)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "INVALID_VENDOR_ID",
                "message": "Vendor ID must be 1-64 characters"
            }
        )
    return vendor_id


async def require_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(admin_auth_scheme)
) -> dict:
    """Bearer-token check against the configured admin API key."""
    if not settings.admin_api_key:
        logger.warning("Admin endpoint called but no admin API key is configured")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"error": "ADMIN_DISABLED", "message": "Admin access is not configured"}
        )

    if credentials is None or credentials.credentials.strip() != settings.admin_api_key:
        logger.warning("Admin authentication failed")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "ADMIN_AUTH_REQUIRED", "message": "Valid admin credentials required"},
            headers={"WWW-Authenticate": "Bearer"}
        )

    return {"auth_type": "api_key", "admin": True}
