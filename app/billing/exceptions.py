"""
Billing exceptions.

Every failure a billable operation can surface is one of these types, so
callers never have to catch the Stripe SDK's own exception classes.

Exception Hierarchy:
    BillingError (base for billing domain)
    ├── ProcessorError - Any failure reported by the payment processor
    │   ├── CardDeclinedError - Card declined (permanent)
    │   ├── InsufficientFundsError - Insufficient funds (permanent)
    │   ├── InvalidRequestError - Invalid request params / missing resource (permanent)
    │   ├── AuthenticationError - Bad API key (permanent)
    │   ├── RateLimitError - Rate limited (transient, retry)
    │   └── APIUnavailableError - Network or processor outage (transient, retry)
    └── PaymentError - Payment needs the customer's attention
        ├── ActionRequiredError - SCA / 3-D Secure confirmation required
        └── InvalidPaymentMethodError - Payment method was rejected

Usage:
    from billing.exceptions import ActionRequiredError, ProcessorError

    try:
        billable.charge(1500)
    except ActionRequiredError as e:
        redirect_to(reverse("billing:payment", args=[e.payment.id]))
    except ProcessorError as e:
        logger.warning("Charge failed", extra={"error_code": e.error_code})
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import BaseApplicationError

if TYPE_CHECKING:
    from typing import Any

    from billing.payment import Payment


class BillingError(BaseApplicationError):
    """Base exception for all billing operations."""

    default_error_code: str = "BILLING_ERROR"


# =============================================================================
# Processor Errors
# =============================================================================


class ProcessorError(BillingError):
    """
    Failure reported by the payment processor.

    Wraps the processor SDK's exception. The original exception is kept
    as ``cause`` and is also chained as ``__cause__`` by the adapter.

    Attributes:
        code: Local machine-readable code (alias of ``error_code``)
        stripe_code: Stripe's own error code, if any
        decline_code: Card decline code, if any
        cause: The original SDK exception
        is_retryable: Whether the operation can be retried with backoff

    Example:
        except ProcessorError as e:
            if e.is_retryable:
                send_billing_email.apply_async(countdown=backoff_delay(attempt))
    """

    default_error_code: str = "PROCESSOR_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        stripe_code: str | None = None,
        decline_code: str | None = None,
        cause: BaseException | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if stripe_code:
            details["stripe_code"] = stripe_code
        if decline_code:
            details["decline_code"] = decline_code
        super().__init__(message, error_code=error_code, details=details)
        self.stripe_code = stripe_code
        self.decline_code = decline_code
        self.cause = cause

    @property
    def code(self) -> str:
        return self.error_code


# -----------------------------------------------------------------------------
# Permanent Errors (do not retry)
# -----------------------------------------------------------------------------


class CardDeclinedError(ProcessorError):
    """
    Card was declined by the issuing bank.

    The decline_code attribute contains the specific reason
    (generic_decline, lost_card, expired_card, incorrect_cvc, ...).
    """

    default_error_code: str = "CARD_DECLINED"


class InsufficientFundsError(ProcessorError):
    """Insufficient funds on the payment method. User action is required."""

    default_error_code: str = "INSUFFICIENT_FUNDS"


class InvalidRequestError(ProcessorError):
    """
    Invalid request to the processor.

    Raised for:
    - Missing or malformed parameters
    - Resources that do not exist (customer, price, payment method)
    - Invalid webhook signatures
    """

    default_error_code: str = "INVALID_REQUEST"


class AuthenticationError(ProcessorError):
    """The processor rejected our API key. Operational issue, never retried."""

    default_error_code: str = "PROCESSOR_AUTHENTICATION_ERROR"


# -----------------------------------------------------------------------------
# Transient Errors (safe to retry with backoff)
# -----------------------------------------------------------------------------


class RateLimitError(ProcessorError):
    """Too many requests hit the processor API too quickly."""

    default_error_code: str = "PROCESSOR_RATE_LIMITED"
    is_retryable: bool = True


class APIUnavailableError(ProcessorError):
    """
    The processor could not be reached or returned a server error.

    Also used to wrap unexpected exceptions raised by the SDK.
    """

    default_error_code: str = "PROCESSOR_UNAVAILABLE"
    is_retryable: bool = True


# =============================================================================
# Payment Errors
# =============================================================================


class PaymentError(BillingError):
    """
    A payment was created but cannot complete without the customer.

    Attributes:
        payment: The Payment whose status triggered the error
    """

    default_error_code: str = "PAYMENT_ERROR"
    default_message: str = "Payment could not be completed."

    def __init__(
        self,
        payment: Payment,
        message: str | None = None,
        error_code: str | None = None,
    ):
        self.payment = payment
        super().__init__(
            message or self.default_message,
            error_code=error_code,
            details={
                "payment_intent_id": payment.id,
                "status": payment.status,
            },
        )


class ActionRequiredError(PaymentError):
    """
    The payment needs an extra confirmation step (SCA / 3-D Secure).

    Send the customer to the payment confirmation page for ``payment.id``.
    """

    default_error_code: str = "ACTION_REQUIRED"
    default_message: str = (
        "This payment attempt failed because additional action is required "
        "before it can be completed."
    )


class InvalidPaymentMethodError(PaymentError):
    """The payment method was rejected. Ask the customer for a new one."""

    default_error_code: str = "INVALID_PAYMENT_METHOD"
    default_message: str = (
        "This payment attempt failed because of an invalid payment method."
    )
