"""
Response envelopes shared by the vendor and admin routes.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, computed_field

from marketplace_payouts.models.base import utc_now


class APIResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
    timestamp: datetime = Field(default_factory=utc_now)


class SuccessResponse(APIResponse):
    data: Optional[Any] = None


class ErrorResponse(APIResponse):
    """Body returned for domain errors; ``error_code`` is the exception code."""
    success: bool = False
    error_code: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


class Pagination(BaseModel):
    total: int
    limit: int
    offset: int

    @computed_field
    @property
    def has_next(self) -> bool:
        return self.offset + self.limit < self.total

    @computed_field
    @property
    def has_previous(self) -> bool:
        return self.offset > 0


class PaginatedResponse(SuccessResponse):
    data: List[Any]
    pagination: Pagination


class HealthCheckResponse(BaseModel):
    """Liveness of the database and the payout scheduler."""
    status: str = "healthy"
    timestamp: datetime = Field(default_factory=utc_now)
    version: str
    database: bool
    scheduler: Optional[Dict[str, Any]] = None


def create_success_response(data: Any = None, message: Optional[str] = None) -> SuccessResponse:
    return SuccessResponse(data=data, message=message)


def create_error_response(
    message: str,
    error_code: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None
) -> ErrorResponse:
    return ErrorResponse(message=message, error_code=error_code, details=details)


def create_paginated_response(data: List[Any], total: int, limit: int, offset: int) -> PaginatedResponse:
    return PaginatedResponse(
        data=data,
        pagination=Pagination(total=total, limit=limit, offset=offset)
    )
