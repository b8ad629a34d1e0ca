"""
Pytest fixtures for billing tests.

This module provides fixtures for testing the billing app without
talking to Stripe: mock Stripe API responses, patched SDK resources,
error conditions, and database records.

Sections:
    - Mock Stripe Objects
    - Mock Stripe Response Fixtures
    - Mock Stripe Error Fixtures
    - Patched Stripe Resources
    - Database Fixtures
"""

from typing import Any
from unittest.mock import patch

import pytest
import stripe

from billing.tests.factories import CustomerFactory


# =============================================================================
# Mock Stripe Objects
# =============================================================================


def _wrap(value: Any) -> Any:
    if isinstance(value, dict) and not isinstance(value, MockStripeObject):
        return MockStripeObject(value)
    if isinstance(value, list):
        return [_wrap(item) for item in value]
    return value


class MockStripeObject(dict):
    """
    Mock Stripe API object.

    Like stripe.StripeObject it is a dict that also supports attribute
    access, with nested dicts wrapped the same way.
    """

    def __init__(self, data: dict[str, Any]):
        super().__init__({key: _wrap(value) for key, value in data.items()})

    def __getattr__(self, name: str) -> Any:
        try:
            return self[name]
        except KeyError:
            raise AttributeError(name) from None

    def to_dict(self) -> dict[str, Any]:
        return {
            key: value.to_dict() if isinstance(value, MockStripeObject) else value
            for key, value in self.items()
        }


class MockStripeList:
    """Mock Stripe list response supporting auto-pagination."""

    def __init__(self, items: list[MockStripeObject], has_more: bool = False):
        self.items = items
        self.has_more = has_more

    @property
    def data(self) -> list[MockStripeObject]:
        return self.items

    def auto_paging_iter(self):
        return iter(self.items)


# =============================================================================
# Mock Stripe Response Fixtures
# =============================================================================


@pytest.fixture
def mock_customer():
    """Create a mock Customer response."""

    def _create(
        id: str = "cus_test123",
        email: str = "user@example.com",
        name: str | None = "Ada Lovelace",
        default_payment_method: str | None = None,
        metadata: dict | None = None,
    ) -> MockStripeObject:
        return MockStripeObject(
            {
                "id": id,
                "object": "customer",
                "email": email,
                "name": name,
                "invoice_settings": {"default_payment_method": default_payment_method},
                "metadata": metadata or {},
            }
        )

    return _create


@pytest.fixture
def mock_payment_method():
    """Create a mock card PaymentMethod response."""

    def _create(
        id: str = "pm_test123",
        customer: str | None = "cus_test123",
        brand: str = "visa",
        last4: str = "4242",
        exp_month: int = 12,
        exp_year: int = 2030,
    ) -> MockStripeObject:
        return MockStripeObject(
            {
                "id": id,
                "object": "payment_method",
                "type": "card",
                "customer": customer,
                "card": {
                    "brand": brand,
                    "last4": last4,
                    "exp_month": exp_month,
                    "exp_year": exp_year,
                },
            }
        )

    return _create


@pytest.fixture
def mock_charge():
    """Create a mock Charge response paid by card."""

    def _create(
        id: str = "ch_test123",
        amount: int = 1500,
        amount_refunded: int = 0,
        currency: str = "usd",
        created: int = 1709294400,  # 2024-03-01 12:00:00 UTC
        payment_intent: str | None = "pi_test123",
        receipt_url: str | None = "https://pay.stripe.com/receipts/ch_test123",
        metadata: dict | None = None,
    ) -> MockStripeObject:
        return MockStripeObject(
            {
                "id": id,
                "object": "charge",
                "amount": amount,
                "amount_refunded": amount_refunded,
                "currency": currency,
                "created": created,
                "customer": "cus_test123",
                "payment_intent": payment_intent,
                "invoice": None,
                "payment_method_details": {
                    "type": "card",
                    "card": {
                        "brand": "visa",
                        "last4": "4242",
                        "exp_month": 12,
                        "exp_year": 2030,
                    },
                },
                "receipt_url": receipt_url,
                "metadata": metadata or {},
            }
        )

    return _create


@pytest.fixture
def mock_payment_intent(mock_charge):
    """Create a mock PaymentIntent response with an expanded latest_charge."""

    def _create(
        id: str = "pi_test123",
        status: str = "succeeded",
        amount: int = 1500,
        currency: str = "usd",
        client_secret: str = "pi_test123_secret_abc",
        latest_charge: Any = "default",
    ) -> MockStripeObject:
        if latest_charge == "default":
            latest_charge = mock_charge(amount=amount, currency=currency, payment_intent=id)
        return MockStripeObject(
            {
                "id": id,
                "object": "payment_intent",
                "status": status,
                "amount": amount,
                "currency": currency,
                "client_secret": client_secret,
                "customer": "cus_test123",
                "payment_method": "pm_test123",
                "latest_charge": latest_charge,
                "metadata": {},
            }
        )

    return _create


@pytest.fixture
def mock_subscription():
    """Create a mock Subscription response."""

    def _create(
        id: str = "sub_test123",
        status: str = "active",
        price_id: str = "price_test123",
        quantity: int = 1,
        trial_end: int | None = None,
        current_period_start: int = 1709294400,  # 2024-03-01
        current_period_end: int = 1711972800,  # 2024-04-01
        cancel_at_period_end: bool = False,
        ended_at: int | None = None,
        latest_invoice: Any = None,
        metadata: dict | None = None,
    ) -> MockStripeObject:
        return MockStripeObject(
            {
                "id": id,
                "object": "subscription",
                "status": status,
                "customer": "cus_test123",
                "items": {
                    "object": "list",
                    "data": [
                        {
                            "id": "si_test123",
                            "price": {"id": price_id, "object": "price"},
                            "quantity": quantity,
                        }
                    ],
                },
                "trial_start": current_period_start if trial_end else None,
                "trial_end": trial_end,
                "current_period_start": current_period_start,
                "current_period_end": current_period_end,
                "cancel_at_period_end": cancel_at_period_end,
                "canceled_at": None,
                "ended_at": ended_at,
                "application_fee_percent": None,
                "latest_invoice": latest_invoice,
                "pending_setup_intent": None,
                "metadata": metadata or {},
            }
        )

    return _create


@pytest.fixture
def mock_invoice():
    """Create a mock Invoice response."""

    def _create(
        id: str | None = "in_test123",
        status: str = "draft",
        amount_due: int = 2000,
        amount_paid: int = 0,
    ) -> MockStripeObject:
        return MockStripeObject(
            {
                "id": id,
                "object": "invoice",
                "status": status,
                "customer": "cus_test123",
                "amount_due": amount_due,
                "amount_paid": amount_paid,
                "total": amount_due,
                "currency": "usd",
                "hosted_invoice_url": "https://invoice.stripe.com/i/in_test123",
                "invoice_pdf": "https://pay.stripe.com/invoice/in_test123/pdf",
                "next_payment_attempt": None,
            }
        )

    return _create


# =============================================================================
# Mock Stripe Error Fixtures
# =============================================================================


@pytest.fixture
def card_error():
    """Create a Stripe CardError."""

    def _create(
        message: str = "Your card was declined.",
        code: str = "card_declined",
        decline_code: str | None = "generic_decline",
    ) -> stripe.CardError:
        return stripe.CardError(
            message,
            None,
            code,
            json_body={
                "error": {
                    "type": "card_error",
                    "code": code,
                    "decline_code": decline_code,
                    "message": message,
                }
            },
        )

    return _create


@pytest.fixture
def invalid_request_error():
    """Create a Stripe InvalidRequestError."""

    def _create(
        message: str = "No such customer: 'cus_missing'",
        param: str | None = "customer",
        code: str = "resource_missing",
    ) -> stripe.InvalidRequestError:
        return stripe.InvalidRequestError(message, param, code=code)

    return _create


@pytest.fixture
def rate_limit_error():
    return stripe.RateLimitError("Too many requests")


@pytest.fixture
def api_connection_error():
    return stripe.APIConnectionError("Network error")


@pytest.fixture
def api_error():
    return stripe.APIError("Internal server error")


@pytest.fixture
def authentication_error():
    return stripe.AuthenticationError("Invalid API Key provided")


# =============================================================================
# Patched Stripe Resources
# =============================================================================


@pytest.fixture(autouse=True)
def mock_stripe_http_client():
    """Keep the adapter from building a real HTTP client."""
    with patch("stripe.RequestsClient") as mock:
        yield mock


@pytest.fixture
def mock_stripe_customer():
    with patch("stripe.Customer") as mock:
        yield mock


@pytest.fixture
def mock_stripe_payment_method():
    with patch("stripe.PaymentMethod") as mock:
        yield mock


@pytest.fixture
def mock_stripe_payment_intent():
    with patch("stripe.PaymentIntent") as mock:
        yield mock


@pytest.fixture
def mock_stripe_subscription():
    with patch("stripe.Subscription") as mock:
        yield mock


@pytest.fixture
def mock_stripe_checkout_session():
    with patch("stripe.checkout.Session") as mock:
        yield mock


@pytest.fixture
def mock_stripe_portal_session():
    with patch("stripe.billing_portal.Session") as mock:
        yield mock


@pytest.fixture
def mock_stripe_setup_intent():
    with patch("stripe.SetupIntent") as mock:
        yield mock


@pytest.fixture
def mock_stripe_invoice():
    with patch("stripe.Invoice") as mock:
        yield mock


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def billing_customer(db):
    """A billing customer not yet created on Stripe."""
    return CustomerFactory(processor_id="")


@pytest.fixture
def stripe_customer(db):
    """A billing customer that already exists on Stripe."""
    return CustomerFactory(processor_id="cus_test123")
