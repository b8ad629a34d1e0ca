"""
Billing adapters for external services.

All payment processor calls go through these adapters so that timeouts,
Connect account routing, logging and error translation are applied the
same way everywhere.

Usage:
    from billing.adapters import StripeAdapter, CreateCustomerParams

    customer = StripeAdapter.create_customer(
        CreateCustomerParams(email="user@example.com", name="Ada Lovelace")
    )
"""

from billing.adapters.stripe_adapter import (
    BillingPortalSessionResult,
    ChargeResult,
    CheckoutSessionResult,
    CreateCheckoutSessionParams,
    CreateCustomerParams,
    CreatePaymentIntentParams,
    CreateSubscriptionParams,
    CustomerResult,
    IdempotencyKeyGenerator,
    InvoiceResult,
    PaymentIntentResult,
    PaymentMethodResult,
    SetupIntentResult,
    StripeAdapter,
    SubscriptionResult,
    backoff_delay,
    is_retryable_processor_error,
)

__all__ = [
    "BillingPortalSessionResult",
    "ChargeResult",
    "CheckoutSessionResult",
    "CreateCheckoutSessionParams",
    "CreateCustomerParams",
    "CreatePaymentIntentParams",
    "CreateSubscriptionParams",
    "CustomerResult",
    "IdempotencyKeyGenerator",
    "InvoiceResult",
    "PaymentIntentResult",
    "PaymentMethodResult",
    "SetupIntentResult",
    "StripeAdapter",
    "SubscriptionResult",
    "backoff_delay",
    "is_retryable_processor_error",
]
