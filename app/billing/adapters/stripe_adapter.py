"""
Stripe API adapter for billing operations.

This module provides the StripeAdapter class which encapsulates all
Stripe API interactions made on behalf of a billable customer. Every
call goes through this adapter so that timeouts, Connect account
routing, logging and error translation are applied consistently.

Features:
- Configurable timeouts and network retries on all API calls
- Automatic error translation to billing exceptions (ProcessorError)
- Structured logging with timing metrics
- Optional Stripe Connect account (``stripe_account``) on every call
- Normalized result dataclasses instead of raw StripeObjects

Configuration (via settings):
- STRIPE_SECRET_KEY: Stripe API secret key
- STRIPE_API_VERSION: Pinned API version (default: 2023-10-16)
- STRIPE_API_TIMEOUT_SECONDS: API call timeout (default: 10)
- STRIPE_MAX_RETRIES: Network retries performed by the SDK (default: 3)

Usage:
    from billing.adapters import StripeAdapter, CreatePaymentIntentParams

    result = StripeAdapter.create_payment_intent(
        CreatePaymentIntentParams(
            amount_cents=1500,
            customer_id="cus_123",
            payment_method_id="pm_123",
        )
    )
    result.status  # "succeeded"
"""

from __future__ import annotations

import hashlib
import logging
import random
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import stripe
from django.conf import settings

from billing.exceptions import (
    APIUnavailableError,
    AuthenticationError,
    CardDeclinedError,
    InsufficientFundsError,
    InvalidRequestError,
    ProcessorError,
    RateLimitError,
)

if TYPE_CHECKING:
    from collections.abc import Iterator


CHECKOUT_MODES = ("payment", "setup", "subscription")

SUBSCRIPTION_EXPAND = [
    "pending_setup_intent",
    "latest_invoice.payment_intent",
    "latest_invoice.charge.invoice",
]


# =============================================================================
# Request Types
# =============================================================================


@dataclass
class CreateCustomerParams:
    """
    Parameters for creating a Stripe Customer.

    Attributes:
        email: Customer email address
        name: Customer display name
        metadata: Key-value pairs to attach to the Customer
        stripe_account: Connect account to create the customer on
        idempotency_key: Key making retries of the same creation safe
    """

    email: str
    name: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)
    stripe_account: str | None = None
    idempotency_key: str | None = None

    def __post_init__(self) -> None:
        if not self.email:
            raise ValueError("email is required")


@dataclass
class CreatePaymentIntentParams:
    """
    Parameters for a confirmed, one-off PaymentIntent.

    Attributes:
        amount_cents: Amount in smallest currency unit (e.g., cents)
        customer_id: Stripe Customer ID (cus_xxx)
        payment_method_id: Payment method to charge; None lets Stripe decide
        currency: ISO 4217 currency code (default: 'usd')
        options: Extra Stripe parameters, merged last (they win)
        stripe_account: Connect account
        idempotency_key: Optional key for idempotent creation
    """

    amount_cents: int
    customer_id: str
    payment_method_id: str | None = None
    currency: str = "usd"
    options: dict[str, Any] = field(default_factory=dict)
    stripe_account: str | None = None
    idempotency_key: str | None = None

    def __post_init__(self) -> None:
        if self.amount_cents <= 0:
            raise ValueError("amount_cents must be positive")
        if not self.currency:
            raise ValueError("currency is required")
        if not self.customer_id:
            raise ValueError("customer_id is required")


@dataclass
class CreateSubscriptionParams:
    """
    Parameters for creating a Stripe Subscription.

    The plan's own trial applies unless ``trial_period_days`` is given,
    either here or in ``options``.

    Attributes:
        customer_id: Stripe Customer ID (cus_xxx)
        price_id: Stripe Price / Plan ID
        quantity: Seats or units (default: 1)
        trial_period_days: Explicit trial override
        options: Extra Stripe parameters, merged last
        stripe_account: Connect account
        idempotency_key: Optional key for idempotent creation
    """

    customer_id: str
    price_id: str
    quantity: int = 1
    trial_period_days: int | None = None
    options: dict[str, Any] = field(default_factory=dict)
    stripe_account: str | None = None
    idempotency_key: str | None = None

    def __post_init__(self) -> None:
        if not self.customer_id:
            raise ValueError("customer_id is required")
        if not self.price_id:
            raise ValueError("price_id is required")
        if self.quantity < 1:
            raise ValueError("quantity must be at least 1")


@dataclass
class CreateCheckoutSessionParams:
    """
    Parameters for a Stripe Checkout Session.

    Attributes:
        customer_id: Stripe Customer ID, or None for guest checkout
        success_url: Where Stripe redirects after payment
        cancel_url: Where Stripe redirects when the customer backs out
        mode: 'payment', 'setup' or 'subscription'
        payment_method_types: Allowed payment method types
        line_items: Normalized line item dicts (price / price_data + quantity)
        options: Extra Stripe parameters, merged last
        stripe_account: Connect account
    """

    customer_id: str | None
    success_url: str
    cancel_url: str
    mode: str = "payment"
    payment_method_types: list[str] = field(default_factory=lambda: ["card"])
    line_items: list[dict[str, Any]] | None = None
    options: dict[str, Any] = field(default_factory=dict)
    stripe_account: str | None = None

    def __post_init__(self) -> None:
        if not self.success_url:
            raise ValueError("success_url is required")
        if not self.cancel_url:
            raise ValueError("cancel_url is required")
        if self.mode not in CHECKOUT_MODES:
            raise ValueError(f"mode must be one of {', '.join(CHECKOUT_MODES)}")


# =============================================================================
# Result Types
# =============================================================================


@dataclass
class CustomerResult:
    """
    Result from Stripe Customer operations.

    Attributes:
        id: Customer ID (cus_xxx)
        email: Email on file at Stripe
        name: Name on file at Stripe
        default_payment_method: invoice_settings.default_payment_method ID
        metadata: Attached metadata
        raw_response: Full Stripe response dict (for debugging)
    """

    id: str
    email: str | None = None
    name: str | None = None
    default_payment_method: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class PaymentMethodResult:
    """
    Result from Stripe PaymentMethod operations.

    Card-like details are read from the sub-object named after the
    payment method type (``card``, ``link``, ``sepa_debit``, ...).

    Attributes:
        id: PaymentMethod ID (pm_xxx)
        type: Payment method type
        customer: Customer the method is attached to
        brand: Capitalized card brand ("Visa")
        last4 / exp_month / exp_year: Stored as strings, "" when absent
        email: Email for wallet-style methods (Link, PayPal)
        bank: Bank name for bank-based methods
    """

    id: str
    type: str
    customer: str | None = None
    brand: str | None = None
    last4: str = ""
    exp_month: str = ""
    exp_year: str = ""
    email: str | None = None
    bank: str | None = None
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class ChargeResult:
    """
    Result describing a Stripe Charge.

    Attributes:
        id: Charge ID (ch_xxx)
        amount_cents: Charged amount in cents
        amount_refunded_cents: Refunded amount in cents
        currency: Currency code
        created: When Stripe created the charge (UTC)
        payment_intent: PaymentIntent the charge belongs to
        invoice: Invoice ID when the charge paid an invoice
        payment_method_type / brand / last4 / exp_month / exp_year / bank:
            Payment method snapshot from payment_method_details
        receipt_url: Stripe-hosted receipt
    """

    id: str
    amount_cents: int
    currency: str
    amount_refunded_cents: int = 0
    created: datetime | None = None
    customer: str | None = None
    payment_intent: str | None = None
    invoice: str | None = None
    payment_method_type: str | None = None
    brand: str | None = None
    last4: str = ""
    exp_month: str = ""
    exp_year: str = ""
    bank: str | None = None
    receipt_url: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class PaymentIntentResult:
    """
    Result from Stripe PaymentIntent operations.

    Attributes:
        id: PaymentIntent ID (pi_xxx)
        status: succeeded, requires_action, requires_payment_method, ...
        amount_cents: Amount in cents
        currency: Currency code
        client_secret: Secret for client-side confirmation
        customer: Customer ID
        payment_method: PaymentMethod ID
        latest_charge: Charge details when expanded
    """

    id: str
    status: str
    amount_cents: int
    currency: str
    client_secret: str | None = None
    customer: str | None = None
    payment_method: str | None = None
    latest_charge: ChargeResult | None = None
    metadata: dict[str, str] = field(default_factory=dict)
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class SubscriptionResult:
    """
    Result from Stripe Subscription operations.

    Attributes:
        id: Subscription ID (sub_xxx)
        status: incomplete, trialing, active, past_due, canceled, ...
        customer: Customer ID
        plan_id: Price / Plan ID of the first item
        quantity: Quantity of the first item
        trial_start / trial_end: Trial window (UTC), None without trial
        current_period_start / current_period_end: Billing period (UTC)
        cancel_at_period_end: Whether cancellation is scheduled
        canceled_at / ended_at: Cancellation timestamps (UTC)
        latest_payment_intent: PaymentIntent of the latest invoice, when expanded
        pending_setup_intent: SetupIntent ID awaiting confirmation
    """

    id: str
    status: str
    customer: str | None = None
    plan_id: str | None = None
    quantity: int = 1
    trial_start: datetime | None = None
    trial_end: datetime | None = None
    current_period_start: datetime | None = None
    current_period_end: datetime | None = None
    cancel_at_period_end: bool = False
    canceled_at: datetime | None = None
    ended_at: datetime | None = None
    application_fee_percent: float | None = None
    latest_payment_intent: PaymentIntentResult | None = None
    pending_setup_intent: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class CheckoutSessionResult:
    """Result from Stripe Checkout Session creation."""

    id: str
    url: str | None
    mode: str
    customer: str | None = None
    status: str | None = None
    payment_status: str | None = None
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class BillingPortalSessionResult:
    """Result from Stripe Billing Portal Session creation."""

    id: str
    url: str
    customer: str
    return_url: str | None = None
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class SetupIntentResult:
    """Result from Stripe SetupIntent creation."""

    id: str
    status: str
    client_secret: str | None = None
    customer: str | None = None
    usage: str | None = None
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class InvoiceResult:
    """
    Result from Stripe Invoice operations.

    ``id`` is None for upcoming invoice previews.
    """

    id: str | None
    status: str | None
    customer: str | None
    amount_due_cents: int = 0
    amount_paid_cents: int = 0
    total_cents: int = 0
    currency: str | None = None
    hosted_invoice_url: str | None = None
    invoice_pdf: str | None = None
    next_payment_attempt: datetime | None = None
    raw_response: dict[str, Any] = field(default_factory=dict)


# =============================================================================
# Idempotency Key Generator
# =============================================================================


class IdempotencyKeyGenerator:
    """
    Generate idempotency keys for Stripe API calls.

    Format: "{operation}:{entity_id}:{attempt}:{hash}"

    Example:
        key = IdempotencyKeyGenerator.generate(
            operation="create_customer",
            entity_id=customer.id,
        )
        # "create_customer:550e8400-e29b-41d4-a716-446655440000:1:a1b2c3d4"
    """

    @staticmethod
    def generate(
        operation: str,
        entity_id: uuid.UUID | str,
        attempt: int = 1,
    ) -> str:
        """
        Generate a deterministic idempotency key.

        Args:
            operation: The Stripe operation (create_customer, charge, ...)
            entity_id: The local record ID
            attempt: Attempt number for retries (default: 1)

        Returns:
            Formatted idempotency key string
        """
        entity_str = str(entity_id)
        hash_input = f"{operation}:{entity_str}:{attempt}:{settings.SECRET_KEY}"
        short_hash = hashlib.sha256(hash_input.encode()).hexdigest()[:8]

        return f"{operation}:{entity_str}:{attempt}:{short_hash}"


# =============================================================================
# Retry Logic Helpers
# =============================================================================


def is_retryable_processor_error(error: Exception) -> bool:
    """
    Check if a processor error is transient and safe to retry.

    Use this in Celery tasks to decide whether to retry:

        except ProcessorError as e:
            if is_retryable_processor_error(e):
                raise self.retry(exc=e, countdown=backoff_delay(self.request.retries))
            raise
    """
    if isinstance(error, ProcessorError):
        return getattr(error, "is_retryable", False)
    return False


def backoff_delay(attempt: int, base: float = 1.0, max_delay: float = 60.0) -> float:
    """
    Calculate exponential backoff delay with jitter.

    Args:
        attempt: Current attempt number (0-indexed)
        base: Base delay in seconds (default: 1.0)
        max_delay: Maximum delay in seconds (default: 60.0)

    Returns:
        Delay in seconds with 0-25% jitter added
    """
    delay = min(base * (2**attempt), max_delay)
    jitter = delay * random.uniform(0, 0.25)
    return delay + jitter


# =============================================================================
# Response Normalization
# =============================================================================


def _to_datetime(timestamp: int | None) -> datetime | None:
    """Stripe timestamps are Unix seconds in UTC."""
    if not timestamp:
        return None
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


def _object_id(value: Any) -> str | None:
    """Return the ID of an expandable field, expanded or not."""
    if value is None or isinstance(value, str):
        return value
    return value.get("id")


def _expanded(value: Any) -> Any | None:
    """Return an expandable field only if Stripe expanded it."""
    if value is None or isinstance(value, str):
        return None
    return value


def _to_dict(obj: Any) -> dict[str, Any]:
    to_dict = getattr(obj, "to_dict", None)
    return to_dict() if callable(to_dict) else dict(obj)


def _as_string(value: Any) -> str:
    return "" if value is None else str(value)


def _decline_code(error: Exception) -> str | None:
    """Card decline reason, read from the error body Stripe returned."""
    decline_code = getattr(error, "decline_code", None)
    if decline_code:
        return decline_code
    error_object = getattr(error, "error", None)
    return error_object.get("decline_code") if error_object else None


def _request_options(
    stripe_account: str | None = None,
    idempotency_key: str | None = None,
) -> dict[str, str]:
    """Per-request options; empty values are left out."""
    options = {}
    if stripe_account:
        options["stripe_account"] = stripe_account
    if idempotency_key:
        options["idempotency_key"] = idempotency_key
    return options


def _compact(params: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in params.items() if value is not None}


def customer_result(customer: Any) -> CustomerResult:
    invoice_settings = customer.get("invoice_settings") or {}
    return CustomerResult(
        id=customer.id,
        email=customer.get("email"),
        name=customer.get("name"),
        default_payment_method=_object_id(
            invoice_settings.get("default_payment_method")
        ),
        metadata=dict(customer.get("metadata") or {}),
        raw_response=_to_dict(customer),
    )


def payment_method_result(payment_method: Any) -> PaymentMethodResult:
    method_type = payment_method.get("type")
    details = payment_method.get(method_type) or {}
    brand = details.get("brand")
    return PaymentMethodResult(
        id=payment_method.id,
        type=method_type,
        customer=_object_id(payment_method.get("customer")),
        brand=brand.capitalize() if brand else None,
        last4=_as_string(details.get("last4")),
        exp_month=_as_string(details.get("exp_month")),
        exp_year=_as_string(details.get("exp_year")),
        email=details.get("email"),
        bank=details.get("bank_name") or details.get("bank"),
        raw_response=_to_dict(payment_method),
    )


def charge_result(charge: Any) -> ChargeResult:
    method_details = charge.get("payment_method_details") or {}
    method_type = method_details.get("type")
    details = method_details.get(method_type) or {} if method_type else {}
    brand = details.get("brand")
    return ChargeResult(
        id=charge.id,
        amount_cents=charge.amount,
        currency=charge.currency,
        amount_refunded_cents=charge.get("amount_refunded") or 0,
        created=_to_datetime(charge.get("created")),
        customer=_object_id(charge.get("customer")),
        payment_intent=_object_id(charge.get("payment_intent")),
        invoice=_object_id(charge.get("invoice")),
        payment_method_type=method_type,
        brand=brand.capitalize() if brand else None,
        last4=_as_string(details.get("last4")),
        exp_month=_as_string(details.get("exp_month")),
        exp_year=_as_string(details.get("exp_year")),
        bank=details.get("bank_name") or details.get("bank"),
        receipt_url=charge.get("receipt_url"),
        metadata=dict(charge.get("metadata") or {}),
        raw_response=_to_dict(charge),
    )


def payment_intent_result(intent: Any) -> PaymentIntentResult:
    latest_charge = _expanded(intent.get("latest_charge"))
    return PaymentIntentResult(
        id=intent.id,
        status=intent.status,
        amount_cents=intent.amount,
        currency=intent.currency,
        client_secret=intent.get("client_secret"),
        customer=_object_id(intent.get("customer")),
        payment_method=_object_id(intent.get("payment_method")),
        latest_charge=charge_result(latest_charge) if latest_charge else None,
        metadata=dict(intent.get("metadata") or {}),
        raw_response=_to_dict(intent),
    )


def subscription_result(subscription: Any) -> SubscriptionResult:
    items = (subscription.get("items") or {}).get("data") or []
    first_item = items[0] if items else {}
    price = first_item.get("price") or first_item.get("plan") or {}
    if not price:
        price = subscription.get("plan") or {}

    latest_invoice = _expanded(subscription.get("latest_invoice"))
    payment_intent = (
        _expanded(latest_invoice.get("payment_intent")) if latest_invoice else None
    )

    return SubscriptionResult(
        id=subscription.id,
        status=subscription.status,
        customer=_object_id(subscription.get("customer")),
        plan_id=price.get("id"),
        quantity=first_item.get("quantity") or subscription.get("quantity") or 1,
        trial_start=_to_datetime(subscription.get("trial_start")),
        trial_end=_to_datetime(subscription.get("trial_end")),
        current_period_start=_to_datetime(subscription.get("current_period_start")),
        current_period_end=_to_datetime(subscription.get("current_period_end")),
        cancel_at_period_end=bool(subscription.get("cancel_at_period_end")),
        canceled_at=_to_datetime(subscription.get("canceled_at")),
        ended_at=_to_datetime(subscription.get("ended_at")),
        application_fee_percent=subscription.get("application_fee_percent"),
        latest_payment_intent=(
            payment_intent_result(payment_intent) if payment_intent else None
        ),
        pending_setup_intent=_object_id(subscription.get("pending_setup_intent")),
        metadata=dict(subscription.get("metadata") or {}),
        raw_response=_to_dict(subscription),
    )


def invoice_result(invoice: Any) -> InvoiceResult:
    return InvoiceResult(
        id=invoice.get("id"),
        status=invoice.get("status"),
        customer=_object_id(invoice.get("customer")),
        amount_due_cents=invoice.get("amount_due") or 0,
        amount_paid_cents=invoice.get("amount_paid") or 0,
        total_cents=invoice.get("total") or 0,
        currency=invoice.get("currency"),
        hosted_invoice_url=invoice.get("hosted_invoice_url"),
        invoice_pdf=invoice.get("invoice_pdf"),
        next_payment_attempt=_to_datetime(invoice.get("next_payment_attempt")),
        raw_response=_to_dict(invoice),
    )


# =============================================================================
# Stripe Adapter
# =============================================================================


class StripeAdapter:
    """
    Adapter for Stripe API operations.

    All methods are class methods - no instance state is maintained.
    Thread-safe for use from Celery workers.

    Every operation:
    - configures the SDK (key, API version, timeout, retries)
    - logs start and completion with ``duration_ms``
    - returns a result dataclass
    - raises a ProcessorError subclass on any failure

    Usage:
        customer = StripeAdapter.create_customer(
            CreateCustomerParams(email="user@example.com", name="Ada")
        )
        StripeAdapter.attach_payment_method("pm_123", customer.id)
    """

    # =========================================================================
    # Configuration
    # =========================================================================

    @staticmethod
    def _configure_stripe() -> None:
        """Configure Stripe client with API key, version and timeout."""
        stripe.api_key = settings.STRIPE_SECRET_KEY
        stripe.api_version = getattr(settings, "STRIPE_API_VERSION", None)
        stripe.max_network_retries = getattr(settings, "STRIPE_MAX_RETRIES", 3)
        timeout = getattr(settings, "STRIPE_API_TIMEOUT_SECONDS", 10)
        stripe.default_http_client = stripe.RequestsClient(timeout=timeout)

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Get logger for this adapter."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def _operation(cls, operation: str, **context: Any) -> Iterator[dict[str, Any]]:
        """
        Run one Stripe call with logging, timing and error translation.

        Yields the log context so the caller can add result identifiers
        before the completion line is written.
        """
        cls._configure_stripe()
        logger = cls.get_logger()

        log_context = {"operation": operation, **context}
        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            yield log_context
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            "Stripe operation completed",
            extra={**log_context, "duration_ms": duration_ms},
        )

    # =========================================================================
    # Customers
    # =========================================================================

    @classmethod
    def create_customer(cls, params: CreateCustomerParams) -> CustomerResult:
        """
        Create a Stripe Customer.

        Raises:
            InvalidRequestError: Invalid parameters
            APIUnavailableError: Stripe service unavailable
        """
        with cls._operation(
            "create_customer",
            stripe_account=params.stripe_account,
            idempotency_key=params.idempotency_key,
        ) as log_context:
            customer = stripe.Customer.create(
                **_compact(
                    {
                        "email": params.email,
                        "name": params.name,
                        "metadata": params.metadata or None,
                    }
                ),
                **_request_options(params.stripe_account, params.idempotency_key),
            )
            log_context["customer_id"] = customer.id

        return customer_result(customer)

    @classmethod
    def retrieve_customer(
        cls,
        customer_id: str,
        stripe_account: str | None = None,
    ) -> CustomerResult:
        """
        Retrieve a Stripe Customer by ID.

        Raises:
            InvalidRequestError: Customer not found
        """
        with cls._operation(
            "retrieve_customer",
            customer_id=customer_id,
            stripe_account=stripe_account,
        ):
            customer = stripe.Customer.retrieve(
                customer_id, **_request_options(stripe_account)
            )

        return customer_result(customer)

    @classmethod
    def update_customer(
        cls,
        customer_id: str,
        stripe_account: str | None = None,
        **params: Any,
    ) -> CustomerResult:
        """
        Update a Stripe Customer.

        Args:
            customer_id: Customer ID (cus_xxx)
            stripe_account: Connect account
            **params: Stripe fields to change (email, name, invoice_settings, ...)
        """
        with cls._operation(
            "update_customer",
            customer_id=customer_id,
            fields=sorted(params),
            stripe_account=stripe_account,
        ):
            customer = stripe.Customer.modify(
                customer_id, **params, **_request_options(stripe_account)
            )

        return customer_result(customer)

    # =========================================================================
    # Payment Methods
    # =========================================================================

    @classmethod
    def attach_payment_method(
        cls,
        payment_method_id: str,
        customer_id: str,
        stripe_account: str | None = None,
    ) -> PaymentMethodResult:
        """
        Attach a PaymentMethod to a Customer.

        Raises:
            CardDeclinedError: Card failed the attach-time check
            InvalidRequestError: PaymentMethod or Customer not found
        """
        with cls._operation(
            "attach_payment_method",
            payment_method_id=payment_method_id,
            customer_id=customer_id,
            stripe_account=stripe_account,
        ):
            payment_method = stripe.PaymentMethod.attach(
                payment_method_id,
                customer=customer_id,
                **_request_options(stripe_account),
            )

        return payment_method_result(payment_method)

    @classmethod
    def set_default_payment_method(
        cls,
        customer_id: str,
        payment_method_id: str,
        stripe_account: str | None = None,
    ) -> CustomerResult:
        """Make a PaymentMethod the customer's invoice default."""
        return cls.update_customer(
            customer_id,
            stripe_account=stripe_account,
            invoice_settings={"default_payment_method": payment_method_id},
        )

    # =========================================================================
    # Payments
    # =========================================================================

    @classmethod
    def create_payment_intent(
        cls,
        params: CreatePaymentIntentParams,
    ) -> PaymentIntentResult:
        """
        Create and confirm a PaymentIntent in one call.

        The returned status may be ``requires_action`` (SCA) or
        ``requires_payment_method``; callers validate it with Payment.

        Raises:
            CardDeclinedError: Card was declined
            InsufficientFundsError: Insufficient funds
            InvalidRequestError: Invalid parameters
            APIUnavailableError: Stripe service unavailable
        """
        with cls._operation(
            "create_payment_intent",
            amount_cents=params.amount_cents,
            currency=params.currency,
            customer_id=params.customer_id,
            stripe_account=params.stripe_account,
        ) as log_context:
            args = {
                "amount": params.amount_cents,
                "confirm": True,
                "confirmation_method": "automatic",
                "currency": params.currency,
                "customer": params.customer_id,
                "payment_method": params.payment_method_id,
                "expand": ["latest_charge"],
            }
            args.update(params.options)

            intent = stripe.PaymentIntent.create(
                **_compact(args),
                **_request_options(params.stripe_account, params.idempotency_key),
            )
            log_context.update(payment_intent_id=intent.id, status=intent.status)

        return payment_intent_result(intent)

    @classmethod
    def retrieve_payment_intent(
        cls,
        payment_intent_id: str,
        stripe_account: str | None = None,
    ) -> PaymentIntentResult:
        """
        Retrieve a PaymentIntent by ID.

        Raises:
            InvalidRequestError: PaymentIntent not found
        """
        with cls._operation(
            "retrieve_payment_intent",
            payment_intent_id=payment_intent_id,
            stripe_account=stripe_account,
        ) as log_context:
            intent = stripe.PaymentIntent.retrieve(
                payment_intent_id, **_request_options(stripe_account)
            )
            log_context["status"] = intent.status

        return payment_intent_result(intent)

    # =========================================================================
    # Subscriptions
    # =========================================================================

    @classmethod
    def create_subscription(
        cls,
        params: CreateSubscriptionParams,
    ) -> SubscriptionResult:
        """
        Create a Subscription billed off-session.

        The latest invoice's PaymentIntent and any pending SetupIntent are
        expanded so SCA requirements can be detected without another call.

        Raises:
            CardDeclinedError: First payment was declined
            InvalidRequestError: Unknown price or customer
        """
        with cls._operation(
            "create_subscription",
            customer_id=params.customer_id,
            price_id=params.price_id,
            quantity=params.quantity,
            stripe_account=params.stripe_account,
        ) as log_context:
            args: dict[str, Any] = {
                "expand": list(SUBSCRIPTION_EXPAND),
                "items": [{"price": params.price_id, "quantity": params.quantity}],
                "off_session": True,
            }
            if params.trial_period_days is not None:
                args["trial_period_days"] = params.trial_period_days
            args.update(params.options)

            if args.get("trial_period_days") is None:
                args["trial_from_plan"] = True

            args["customer"] = params.customer_id

            subscription = stripe.Subscription.create(
                **args,
                **_request_options(params.stripe_account, params.idempotency_key),
            )
            log_context.update(
                subscription_id=subscription.id, status=subscription.status
            )

        return subscription_result(subscription)

    @classmethod
    def retrieve_subscription(
        cls,
        subscription_id: str,
        stripe_account: str | None = None,
        **options: Any,
    ) -> SubscriptionResult:
        """
        Retrieve a Subscription by ID.

        Args:
            subscription_id: Subscription ID (sub_xxx)
            stripe_account: Connect account
            **options: Extra retrieve params, such as ``expand``
        """
        with cls._operation(
            "retrieve_subscription",
            subscription_id=subscription_id,
            stripe_account=stripe_account,
        ):
            subscription = stripe.Subscription.retrieve(
                subscription_id, **options, **_request_options(stripe_account)
            )

        return subscription_result(subscription)

    @classmethod
    def list_subscriptions(
        cls,
        customer_id: str,
        stripe_account: str | None = None,
    ) -> list[SubscriptionResult]:
        """List every subscription of a customer, canceled ones included."""
        with cls._operation(
            "list_subscriptions",
            customer_id=customer_id,
            stripe_account=stripe_account,
        ) as log_context:
            subscriptions = stripe.Subscription.list(
                customer=customer_id,
                status="all",
                **_request_options(stripe_account),
            )
            results = [
                subscription_result(subscription)
                for subscription in subscriptions.auto_paging_iter()
            ]
            log_context["count"] = len(results)

        return results

    # =========================================================================
    # Checkout & Billing Portal
    # =========================================================================

    @classmethod
    def create_checkout_session(
        cls,
        params: CreateCheckoutSessionParams,
    ) -> CheckoutSessionResult:
        """
        Create a Stripe Checkout Session.

        Raises:
            InvalidRequestError: Invalid line items or mode
        """
        with cls._operation(
            "create_checkout_session",
            customer_id=params.customer_id,
            mode=params.mode,
            stripe_account=params.stripe_account,
        ) as log_context:
            args: dict[str, Any] = {
                "customer": params.customer_id,
                "payment_method_types": params.payment_method_types,
                "mode": params.mode,
                "success_url": params.success_url,
                "cancel_url": params.cancel_url,
            }
            if params.line_items is not None:
                args["line_items"] = params.line_items
            args.update(params.options)

            session = stripe.checkout.Session.create(
                **_compact(args), **_request_options(params.stripe_account)
            )
            log_context["checkout_session_id"] = session.id

        return CheckoutSessionResult(
            id=session.id,
            url=session.get("url"),
            mode=session.get("mode") or params.mode,
            customer=_object_id(session.get("customer")),
            status=session.get("status"),
            payment_status=session.get("payment_status"),
            raw_response=_to_dict(session),
        )

    @classmethod
    def create_billing_portal_session(
        cls,
        customer_id: str,
        return_url: str,
        stripe_account: str | None = None,
        **options: Any,
    ) -> BillingPortalSessionResult:
        """
        Create a Stripe Billing Portal Session.

        Args:
            customer_id: Customer ID (cus_xxx)
            return_url: Where the portal's "back" link goes
            stripe_account: Connect account
            **options: Extra Stripe parameters (configuration, locale, ...)
        """
        with cls._operation(
            "create_billing_portal_session",
            customer_id=customer_id,
            stripe_account=stripe_account,
        ):
            session = stripe.billing_portal.Session.create(
                customer=customer_id,
                return_url=return_url,
                **options,
                **_request_options(stripe_account),
            )

        return BillingPortalSessionResult(
            id=session.id,
            url=session.url,
            customer=_object_id(session.get("customer")) or customer_id,
            return_url=session.get("return_url"),
            raw_response=_to_dict(session),
        )

    # =========================================================================
    # Setup Intents & Invoices
    # =========================================================================

    @classmethod
    def create_setup_intent(
        cls,
        customer_id: str | None,
        stripe_account: str | None = None,
    ) -> SetupIntentResult:
        """Create a SetupIntent for saving a payment method for off-session use."""
        with cls._operation(
            "create_setup_intent",
            customer_id=customer_id,
            stripe_account=stripe_account,
        ):
            setup_intent = stripe.SetupIntent.create(
                **_compact({"customer": customer_id, "usage": "off_session"}),
                **_request_options(stripe_account),
            )

        return SetupIntentResult(
            id=setup_intent.id,
            status=setup_intent.status,
            client_secret=setup_intent.get("client_secret"),
            customer=_object_id(setup_intent.get("customer")),
            usage=setup_intent.get("usage"),
            raw_response=_to_dict(setup_intent),
        )

    @classmethod
    def create_invoice(
        cls,
        customer_id: str,
        stripe_account: str | None = None,
        **options: Any,
    ) -> InvoiceResult:
        """Create an invoice from the customer's pending invoice items."""
        with cls._operation(
            "create_invoice",
            customer_id=customer_id,
            stripe_account=stripe_account,
        ) as log_context:
            invoice = stripe.Invoice.create(
                **{**options, "customer": customer_id},
                **_request_options(stripe_account),
            )
            log_context["invoice_id"] = invoice.id

        return invoice_result(invoice)

    @classmethod
    def pay_invoice(
        cls,
        invoice_id: str,
        stripe_account: str | None = None,
    ) -> InvoiceResult:
        """
        Attempt to pay an open invoice right away.

        Raises:
            CardDeclinedError: Payment was declined
        """
        with cls._operation(
            "pay_invoice",
            invoice_id=invoice_id,
            stripe_account=stripe_account,
        ) as log_context:
            invoice = stripe.Invoice.pay(invoice_id, **_request_options(stripe_account))
            log_context["status"] = invoice.get("status")

        return invoice_result(invoice)

    @classmethod
    def retrieve_upcoming_invoice(
        cls,
        customer_id: str,
        stripe_account: str | None = None,
    ) -> InvoiceResult:
        """
        Preview the customer's next invoice.

        Raises:
            InvalidRequestError: The customer has nothing upcoming
        """
        with cls._operation(
            "retrieve_upcoming_invoice",
            customer_id=customer_id,
            stripe_account=stripe_account,
        ):
            invoice = stripe.Invoice.create_preview(
                customer=customer_id, **_request_options(stripe_account)
            )

        return invoice_result(invoice)

    # =========================================================================
    # Error Handling
    # =========================================================================

    @classmethod
    def _handle_stripe_error(
        cls,
        error: Exception,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """
        Translate Stripe exceptions to billing exceptions.

        The original exception is kept as ``cause`` and chained.

        Raises:
            CardDeclinedError: Card was declined
            InsufficientFundsError: Insufficient funds
            InvalidRequestError: Invalid request parameters
            AuthenticationError: Invalid API key
            RateLimitError: Rate limited
            APIUnavailableError: API unavailable or unexpected failure
            ProcessorError: Any other Stripe error
        """
        logger = cls.get_logger()

        log_context = {**log_context, "duration_ms": duration_ms}

        if isinstance(error, stripe.CardError):
            decline_code = _decline_code(error)
            logger.warning(
                "Card error from Stripe",
                extra={**log_context, "decline_code": decline_code},
            )

            if decline_code == "insufficient_funds":
                raise InsufficientFundsError(
                    str(error.user_message or error),
                    stripe_code=error.code,
                    decline_code=decline_code,
                    cause=error,
                ) from error

            raise CardDeclinedError(
                str(error.user_message or error),
                stripe_code=error.code,
                decline_code=decline_code,
                cause=error,
            ) from error

        elif isinstance(error, stripe.InvalidRequestError):
            logger.error(
                "Invalid request to Stripe",
                extra={**log_context, "stripe_code": error.code},
            )
            raise InvalidRequestError(
                str(error.user_message or error),
                stripe_code=error.code,
                cause=error,
            ) from error

        elif isinstance(error, stripe.RateLimitError):
            logger.warning("Rate limited by Stripe", extra=log_context)
            raise RateLimitError(
                "Stripe rate limit exceeded. Please retry.",
                stripe_code="rate_limit",
                cause=error,
            ) from error

        elif isinstance(error, stripe.APIConnectionError):
            logger.error(
                "Connection error to Stripe",
                extra=log_context,
                exc_info=True,
            )
            raise APIUnavailableError(
                "Could not connect to Stripe. Please retry.",
                stripe_code="api_connection_error",
                cause=error,
            ) from error

        elif isinstance(error, stripe.APIError):
            logger.error("Stripe API error", extra=log_context, exc_info=True)
            raise APIUnavailableError(
                "Stripe service error. Please retry.",
                stripe_code="api_error",
                cause=error,
            ) from error

        elif isinstance(error, stripe.AuthenticationError):
            logger.critical(
                "Stripe authentication failed - check API key",
                extra=log_context,
            )
            raise AuthenticationError(
                "Stripe authentication failed",
                stripe_code="authentication_error",
                cause=error,
            ) from error

        elif isinstance(error, stripe.StripeError):
            logger.error(
                f"Stripe error: {type(error).__name__}",
                extra={**log_context, "stripe_code": error.code},
            )
            raise ProcessorError(
                str(error.user_message or error),
                stripe_code=error.code,
                cause=error,
            ) from error

        else:
            logger.error(
                f"Unexpected error from Stripe: {type(error).__name__}",
                extra=log_context,
                exc_info=True,
            )
            raise APIUnavailableError(
                f"Unexpected Stripe error: {error}",
                stripe_code="unknown_error",
                cause=error,
            ) from error
