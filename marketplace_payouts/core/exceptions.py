"""
Custom exception classes for the payout backend.
Provides structured error handling across all modules.
"""

from datetime import date
from typing import Any, Optional, Dict


class MarketplacePayoutsException(Exception):
    """Base exception class for the marketplace payouts backend."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationError(MarketplacePayoutsException):
    """Raised when there's a configuration error."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "CONFIGURATION_ERROR", details)


class DatabaseError(MarketplacePayoutsException):
    """Raised when there's a database error."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "DATABASE_ERROR", details)


class SchedulerError(MarketplacePayoutsException):
    """Raised when there's a scheduler error."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "SCHEDULER_ERROR", details)


class ValidationError(MarketplacePayoutsException):
    """Raised when data validation fails."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "VALIDATION_ERROR", details)


class NotFoundError(MarketplacePayoutsException):
    """Raised when a requested resource is not found."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "NOT_FOUND", details)


class AuthenticationError(MarketplacePayoutsException):
    """Raised when authentication fails."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "AUTHENTICATION_ERROR", details)


class PaymentProviderError(MarketplacePayoutsException):
    """Raised when the payment provider cannot be reached or answers garbage."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "PAYMENT_PROVIDER_ERROR", details)


# Resource lookups
class VendorNotFoundError(NotFoundError):
    """Raised when a vendor is not found."""

    def __init__(self, vendor_id: str):
        super().__init__(
            f"Vendor not found: {vendor_id}",
            {"vendor_id": vendor_id}
        )


class PayoutNotFoundError(NotFoundError):
    """Raised when a payout record is not found."""

    def __init__(self, payout_id: str):
        super().__init__(
            f"Payout not found: {payout_id}",
            {"payout_id": payout_id}
        )


# Business logic exceptions
class PayoutSettingsMissingError(ValidationError):
    """Raised when a vendor has no payout settings configured."""

    def __init__(self, vendor_id: str):
        super().__init__(
            "Vendor payout settings are missing",
            {"vendor_id": vendor_id}
        )


class InvalidPayoutTransitionError(ValidationError):
    """Raised when a payout status change would move backwards or skip a state."""

    def __init__(self, payout_id: Optional[str], current: str, target: str):
        super().__init__(
            f"Invalid payout status transition: {current} -> {target}",
            {"payout_id": payout_id, "current": current, "target": target}
        )


class InvalidPayoutPeriodError(ValidationError):
    """Raised when a payout period starts after it ends."""

    def __init__(self, period_start: date, period_end: date):
        super().__init__(
            f"Invalid payout period: {period_start.isoformat()} is after {period_end.isoformat()}",
            {"period_start": period_start.isoformat(), "period_end": period_end.isoformat()}
        )
