"""
Base exception classes for application-wide error handling.

This module provides the root of the exception hierarchy that enables:
- Consistent error payloads across the application
- Machine-readable error codes for client handling
- Detailed error information for debugging

Exception Hierarchy:
    BaseApplicationError (base)
    └── billing.exceptions.BillingError - Billing and payment processor failures

Usage:
    from core.exceptions import BaseApplicationError

    # Raise with message only
    raise BaseApplicationError("Something went wrong")

    # Raise with error code and additional details
    raise BaseApplicationError(
        "Charge failed",
        error_code="CHARGE_FAILED",
        details={"amount": 1500},
    )

    # Convert to dict for an API response
    try:
        ...
    except BaseApplicationError as e:
        return JsonResponse(e.to_dict(), status=400)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Provides a consistent interface for error handling across the application.
    All custom exceptions should inherit from this class.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (field errors, metadata, etc.)

    Example:
        try:
            billable.charge(1500)
        except BaseApplicationError as e:
            logger.warning(f"Charge failed: {e.error_code}")
            return JsonResponse(e.to_dict(), status=402)
    """

    default_error_code: str = "APPLICATION_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        """
        Initialize the exception.

        Args:
            message: Human-readable error description
            error_code: Machine-readable error code (defaults to class default)
            details: Additional error context
        """
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API response.

        Returns:
            Dict with error, error_code, and details keys

        Example:
            {
                "error": "Your card was declined.",
                "error_code": "CARD_DECLINED",
                "details": {"stripe_code": "card_declined"}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        """Return string representation with error code."""
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        """Return detailed representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )
