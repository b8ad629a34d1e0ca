"""
Tests for StripeBillable.

The adapter is replaced with a mock returning real result dataclasses, so
these tests cover what the billable layer does with processor results:
customer creation, payment method bookkeeping, charge and subscription
syncing, SCA handling and the notices that follow.
"""

from datetime import datetime, timezone as dt_timezone
from unittest.mock import patch

import pytest
from django.core import mail
from django.core.mail import EmailMultiAlternatives
from django.test import override_settings

from billing.adapters import (
    BillingPortalSessionResult,
    ChargeResult,
    CheckoutSessionResult,
    CustomerResult,
    InvoiceResult,
    PaymentIntentResult,
    PaymentMethodResult,
    SetupIntentResult,
    SubscriptionResult,
)
from billing.billable import StripeBillable
from billing.exceptions import (
    ActionRequiredError,
    CardDeclinedError,
    InvalidPaymentMethodError,
)
from billing.models import Charge, PaymentMethod, Subscription
from billing.tests.factories import PaymentMethodFactory

PERIOD_START = datetime(2024, 3, 1, tzinfo=dt_timezone.utc)
PERIOD_END = datetime(2024, 4, 1, tzinfo=dt_timezone.utc)


def _customer(id="cus_test123", default_payment_method=None):
    return CustomerResult(
        id=id,
        email="user@example.com",
        default_payment_method=default_payment_method,
    )


def _card(id="pm_test123"):
    return PaymentMethodResult(
        id=id,
        type="card",
        customer="cus_test123",
        brand="Visa",
        last4="4242",
        exp_month="12",
        exp_year="2030",
    )


def _charge(id="ch_test123", amount=1500):
    return ChargeResult(
        id=id,
        amount_cents=amount,
        currency="usd",
        created=PERIOD_START,
        payment_method_type="card",
        brand="Visa",
        last4="4242",
    )


def _intent(status="succeeded", latest_charge="default", amount=1500):
    if latest_charge == "default":
        latest_charge = _charge(amount=amount)
    return PaymentIntentResult(
        id="pi_test123",
        status=status,
        amount_cents=amount,
        currency="usd",
        client_secret="pi_test123_secret_abc",
        latest_charge=latest_charge,
    )


def _subscription(status="active", latest_payment_intent=None, **overrides):
    values = {
        "id": "sub_test123",
        "status": status,
        "customer": "cus_test123",
        "plan_id": "price_test123",
        "current_period_start": PERIOD_START,
        "current_period_end": PERIOD_END,
        "latest_payment_intent": latest_payment_intent,
    }
    values.update(overrides)
    return SubscriptionResult(**values)


@pytest.fixture
def mock_adapter():
    """Replace the adapter used by the billable layer."""
    with patch("billing.billable.StripeAdapter") as mock:
        mock.retrieve_customer.return_value = _customer(
            default_payment_method="pm_test123"
        )
        mock.create_customer.return_value = _customer()
        yield mock


# =============================================================================
# Customer
# =============================================================================


class TestCustomer:
    def test_creates_stripe_customer_on_first_use(self, billing_customer, mock_adapter):
        result = StripeBillable(billing_customer).customer()

        assert result.id == "cus_test123"
        params = mock_adapter.create_customer.call_args.args[0]
        assert params.email == billing_customer.email
        assert params.name == billing_customer.customer_name
        assert params.metadata == {"customer_id": str(billing_customer.pk)}
        assert params.idempotency_key.startswith(
            f"create_customer:{billing_customer.pk}:1:"
        )
        billing_customer.refresh_from_db()
        assert billing_customer.processor_id == "cus_test123"
        mock_adapter.retrieve_customer.assert_not_called()

    def test_retrieves_existing_customer(self, stripe_customer, mock_adapter):
        result = StripeBillable(stripe_customer).customer()

        assert result.default_payment_method == "pm_test123"
        mock_adapter.retrieve_customer.assert_called_once_with(
            "cus_test123", stripe_account=None
        )
        mock_adapter.create_customer.assert_not_called()

    def test_uses_connect_account(self, stripe_customer, mock_adapter):
        stripe_customer.stripe_account = "acct_123"

        StripeBillable(stripe_customer).customer()

        mock_adapter.retrieve_customer.assert_called_once_with(
            "cus_test123", stripe_account="acct_123"
        )

    def test_pending_payment_method_token_becomes_default(
        self, billing_customer, mock_adapter
    ):
        mock_adapter.attach_payment_method.return_value = _card("pm_token")
        mock_adapter.set_default_payment_method.return_value = _customer(
            default_payment_method="pm_token"
        )
        billing_customer.payment_method_token = "pm_token"

        result = StripeBillable(billing_customer).customer()

        assert result.default_payment_method == "pm_token"
        mock_adapter.attach_payment_method.assert_called_once_with(
            "pm_token", "cus_test123", stripe_account=None
        )
        mock_adapter.set_default_payment_method.assert_called_once_with(
            "cus_test123", "pm_token", stripe_account=None
        )
        assert billing_customer.default_payment_method.processor_id == "pm_token"
        assert billing_customer.payment_method_token is None

    def test_token_replaces_previous_local_default(self, stripe_customer, mock_adapter):
        previous = PaymentMethodFactory(customer=stripe_customer, default=True)
        mock_adapter.attach_payment_method.return_value = _card("pm_token")
        mock_adapter.set_default_payment_method.return_value = _customer(
            default_payment_method="pm_token"
        )
        stripe_customer.payment_method_token = "pm_token"

        StripeBillable(stripe_customer).customer()

        previous.refresh_from_db()
        assert previous.default is False
        assert PaymentMethod.objects.filter(
            customer=stripe_customer, default=True
        ).count() == 1

    def test_update_email_pushes_owner_details(self, stripe_customer, mock_adapter):
        StripeBillable(stripe_customer).update_email()

        mock_adapter.update_customer.assert_called_once_with(
            "cus_test123",
            stripe_account=None,
            email=stripe_customer.email,
            name=stripe_customer.customer_name,
        )

    def test_update_email_creates_missing_customer(self, billing_customer, mock_adapter):
        StripeBillable(billing_customer).update_email()

        mock_adapter.create_customer.assert_called_once()
        mock_adapter.update_customer.assert_not_called()


# =============================================================================
# Charges
# =============================================================================


class TestCharge:
    def test_charges_default_payment_method(self, stripe_customer, mock_adapter):
        mock_adapter.create_payment_intent.return_value = _intent()

        charge = StripeBillable(stripe_customer).charge(1500, description="T-shirt")

        params = mock_adapter.create_payment_intent.call_args.args[0]
        assert params.amount_cents == 1500
        assert params.customer_id == "cus_test123"
        assert params.payment_method_id == "pm_test123"
        assert params.currency == "usd"
        assert params.options == {"description": "T-shirt"}
        assert isinstance(charge, Charge)
        assert charge.customer == stripe_customer
        assert charge.processor_id == "ch_test123"
        assert charge.amount == 1500

    @override_settings(BILLING_DEFAULT_CURRENCY="eur")
    def test_currency_option(self, stripe_customer, mock_adapter):
        mock_adapter.create_payment_intent.return_value = _intent()
        billable = StripeBillable(stripe_customer)

        billable.charge(1500)
        assert mock_adapter.create_payment_intent.call_args.args[0].currency == "eur"

        billable.charge(1500, currency="gbp")
        params = mock_adapter.create_payment_intent.call_args.args[0]
        assert params.currency == "gbp"
        assert "currency" not in params.options

    def test_sends_receipt(self, stripe_customer, mock_adapter):
        mock_adapter.create_payment_intent.return_value = _intent()

        StripeBillable(stripe_customer).charge(1500)

        assert len(mail.outbox) == 1
        assert mail.outbox[0].to == [stripe_customer.email]
        assert mail.outbox[0].subject == "Payment receipt"

    def test_failing_email_backend_does_not_lose_charge(
        self, stripe_customer, mock_adapter
    ):
        mock_adapter.create_payment_intent.return_value = _intent()

        with patch.object(
            EmailMultiAlternatives,
            "send",
            side_effect=ConnectionRefusedError("SMTP server down"),
        ):
            charge = StripeBillable(stripe_customer).charge(1500)

        assert charge == Charge.objects.get(processor_id="ch_test123")
        assert mail.outbox == []

    @override_settings(BILLING_EMAILS_ASYNC=True)
    def test_unreachable_broker_does_not_lose_charge(
        self, stripe_customer, mock_adapter, mocker
    ):
        mock_adapter.create_payment_intent.return_value = _intent()
        delay = mocker.patch(
            "billing.tasks.send_billing_email.delay",
            side_effect=ConnectionError("broker unreachable"),
        )

        charge = StripeBillable(stripe_customer).charge(1500)

        assert charge.processor_id == "ch_test123"
        delay.assert_called_once()

    def test_requires_action_raises_with_payment(self, stripe_customer, mock_adapter):
        mock_adapter.create_payment_intent.return_value = _intent(
            status="requires_action", latest_charge=None
        )

        with pytest.raises(ActionRequiredError) as exc_info:
            StripeBillable(stripe_customer).charge(1500)

        assert exc_info.value.payment.id == "pi_test123"
        assert Charge.objects.count() == 0
        assert mail.outbox == []

    def test_rejected_payment_method_raises(self, stripe_customer, mock_adapter):
        mock_adapter.create_payment_intent.return_value = _intent(
            status="requires_payment_method", latest_charge=None
        )

        with pytest.raises(InvalidPaymentMethodError):
            StripeBillable(stripe_customer).charge(1500)

    def test_processor_error_propagates(self, stripe_customer, mock_adapter):
        mock_adapter.create_payment_intent.side_effect = CardDeclinedError(
            "Your card was declined.", decline_code="generic_decline"
        )

        with pytest.raises(CardDeclinedError):
            StripeBillable(stripe_customer).charge(1500)

        assert Charge.objects.count() == 0

    def test_no_charge_yet_returns_none(self, stripe_customer, mock_adapter):
        mock_adapter.create_payment_intent.return_value = _intent(
            status="processing", latest_charge=None
        )

        assert StripeBillable(stripe_customer).charge(1500) is None
        assert mail.outbox == []

    def test_non_positive_amount_is_rejected(self, stripe_customer, mock_adapter):
        with pytest.raises(ValueError, match="amount_cents must be positive"):
            StripeBillable(stripe_customer).charge(0)

        mock_adapter.create_payment_intent.assert_not_called()


# =============================================================================
# Subscriptions
# =============================================================================


class TestSubscribe:
    def test_subscribes_with_plan_trial(self, stripe_customer, mock_adapter):
        mock_adapter.create_subscription.return_value = _subscription(quantity=2)

        subscription = StripeBillable(stripe_customer).subscribe(
            name="pro", plan="price_test123", quantity=2
        )

        params = mock_adapter.create_subscription.call_args.args[0]
        assert params.customer_id == "cus_test123"
        assert params.price_id == "price_test123"
        assert params.quantity == 2
        assert params.trial_period_days is None
        assert isinstance(subscription, Subscription)
        assert subscription.name == "pro"
        assert subscription.quantity == 2
        assert subscription.active() is True

    @override_settings(
        BILLING_DEFAULT_PRODUCT_NAME="default", BILLING_DEFAULT_PLAN_NAME="price_basic"
    )
    def test_defaults_name_and_plan(self, stripe_customer, mock_adapter):
        mock_adapter.create_subscription.return_value = _subscription()

        subscription = StripeBillable(stripe_customer).subscribe()

        assert mock_adapter.create_subscription.call_args.args[0].price_id == "price_basic"
        assert subscription.name == "default"

    def test_trial_period_days_option(self, stripe_customer, mock_adapter):
        mock_adapter.create_subscription.return_value = _subscription(
            status="trialing", trial_end=PERIOD_END
        )

        StripeBillable(stripe_customer).subscribe(
            plan="price_test123", trial_period_days=14, coupon="LAUNCH"
        )

        params = mock_adapter.create_subscription.call_args.args[0]
        assert params.trial_period_days == 14
        assert params.options == {"coupon": "LAUNCH"}

    def test_incomplete_subscription_requiring_action(
        self, stripe_customer, mock_adapter
    ):
        mock_adapter.create_subscription.return_value = _subscription(
            status="incomplete",
            latest_payment_intent=_intent(status="requires_action", latest_charge=None),
        )

        with pytest.raises(ActionRequiredError) as exc_info:
            StripeBillable(stripe_customer).subscribe(plan="price_test123")

        assert exc_info.value.payment.id == "pi_test123"
        subscription = Subscription.objects.get(processor_id="sub_test123")
        assert subscription.incomplete() is True
        assert len(mail.outbox) == 1
        assert mail.outbox[0].subject == "Confirm your payment"
        assert "/billing/payments/pi_test123/" in mail.outbox[0].body

    def test_failing_email_backend_still_raises_action_required(
        self, stripe_customer, mock_adapter
    ):
        mock_adapter.create_subscription.return_value = _subscription(
            status="incomplete",
            latest_payment_intent=_intent(status="requires_action", latest_charge=None),
        )

        with patch.object(
            EmailMultiAlternatives,
            "send",
            side_effect=ConnectionRefusedError("SMTP server down"),
        ):
            with pytest.raises(ActionRequiredError):
                StripeBillable(stripe_customer).subscribe(plan="price_test123")

        assert Subscription.objects.filter(processor_id="sub_test123").exists()

    def test_incomplete_subscription_with_rejected_card(
        self, stripe_customer, mock_adapter
    ):
        mock_adapter.create_subscription.return_value = _subscription(
            status="incomplete",
            latest_payment_intent=_intent(
                status="requires_payment_method", latest_charge=None
            ),
        )

        with pytest.raises(InvalidPaymentMethodError):
            StripeBillable(stripe_customer).subscribe(plan="price_test123")

        assert mail.outbox == []

    def test_sync_subscriptions(self, stripe_customer, mock_adapter):
        mock_adapter.list_subscriptions.return_value = [
            _subscription(id="sub_1"),
            _subscription(id="sub_2", status="canceled", ended_at=PERIOD_START),
        ]

        subscriptions = StripeBillable(stripe_customer).sync_subscriptions()

        assert [s.processor_id for s in subscriptions] == ["sub_1", "sub_2"]
        assert stripe_customer.subscriptions.count() == 2
        assert subscriptions[1].canceled() is True

    def test_processor_subscription(self, stripe_customer, mock_adapter):
        mock_adapter.retrieve_subscription.return_value = _subscription()

        result = StripeBillable(stripe_customer).processor_subscription(
            "sub_test123", expand=["latest_invoice"]
        )

        assert result.id == "sub_test123"
        mock_adapter.retrieve_subscription.assert_called_once_with(
            "sub_test123", stripe_account=None, expand=["latest_invoice"]
        )

    def test_trial_end_date(self):
        assert StripeBillable.trial_end_date(_subscription(trial_end=PERIOD_END)) == PERIOD_END
        assert StripeBillable.trial_end_date(_subscription()) is None


# =============================================================================
# Payment Methods
# =============================================================================


class TestPaymentMethods:
    def test_add_payment_method(self, stripe_customer, mock_adapter):
        mock_adapter.attach_payment_method.return_value = _card("pm_new")

        payment_method = StripeBillable(stripe_customer).add_payment_method(
            "pm_new", default=True
        )

        mock_adapter.set_default_payment_method.assert_called_once_with(
            "cus_test123", "pm_new", stripe_account=None
        )
        assert payment_method.processor_id == "pm_new"
        assert payment_method.default is True

    def test_add_payment_method_not_default_locally(self, stripe_customer, mock_adapter):
        mock_adapter.attach_payment_method.return_value = _card("pm_new")

        payment_method = StripeBillable(stripe_customer).add_payment_method("pm_new")

        assert payment_method.default is False

    def test_add_current_default_is_a_no_op(self, stripe_customer, mock_adapter):
        result = StripeBillable(stripe_customer).add_payment_method("pm_test123")

        assert result is True
        mock_adapter.attach_payment_method.assert_not_called()

    def test_create_setup_intent(self, stripe_customer, mock_adapter):
        mock_adapter.create_setup_intent.return_value = SetupIntentResult(
            id="seti_test123", status="requires_payment_method"
        )

        result = StripeBillable(stripe_customer).create_setup_intent()

        assert result.id == "seti_test123"
        mock_adapter.create_setup_intent.assert_called_once_with(
            "cus_test123", stripe_account=None
        )


# =============================================================================
# Invoices
# =============================================================================


class TestInvoices:
    def test_invoice_creates_and_pays(self, stripe_customer, mock_adapter):
        mock_adapter.create_invoice.return_value = InvoiceResult(
            id="in_test123", status="draft", customer="cus_test123"
        )
        mock_adapter.pay_invoice.return_value = InvoiceResult(
            id="in_test123", status="paid", customer="cus_test123"
        )

        result = StripeBillable(stripe_customer).invoice(description="Overage")

        assert result.status == "paid"
        mock_adapter.create_invoice.assert_called_once_with(
            "cus_test123", stripe_account=None, description="Overage"
        )
        mock_adapter.pay_invoice.assert_called_once_with(
            "in_test123", stripe_account=None
        )

    def test_invoice_without_stripe_customer(self, billing_customer, mock_adapter):
        assert StripeBillable(billing_customer).invoice() is None
        mock_adapter.create_invoice.assert_not_called()

    def test_upcoming_invoice(self, stripe_customer, mock_adapter):
        mock_adapter.retrieve_upcoming_invoice.return_value = InvoiceResult(
            id=None, status="draft", customer="cus_test123", amount_due_cents=2000
        )

        result = StripeBillable(stripe_customer).upcoming_invoice()

        assert result.amount_due_cents == 2000


# =============================================================================
# Checkout & Billing Portal
# =============================================================================


class TestCheckout:
    @pytest.fixture(autouse=True)
    def session(self, mock_adapter):
        mock_adapter.create_checkout_session.return_value = CheckoutSessionResult(
            id="cs_test123", url="https://checkout.stripe.com/c/pay/cs_test123", mode="payment"
        )

    def test_defaults(self, stripe_customer, mock_adapter):
        result = StripeBillable(stripe_customer).checkout()

        assert result.id == "cs_test123"
        params = mock_adapter.create_checkout_session.call_args.args[0]
        assert params.customer_id == "cus_test123"
        assert params.mode == "payment"
        assert params.payment_method_types == ["card"]
        assert params.success_url == "https://billing.example.com/"
        assert params.cancel_url == "https://billing.example.com/"
        assert params.line_items is None
        assert params.options == {}

    def test_price_id_gets_quantity(self, stripe_customer, mock_adapter):
        StripeBillable(stripe_customer).checkout(line_items="price_tshirt", quantity=2)

        params = mock_adapter.create_checkout_session.call_args.args[0]
        assert params.line_items == [{"price": "price_tshirt", "quantity": 2}]
        assert "quantity" not in params.options

    def test_mixed_line_items(self, stripe_customer, mock_adapter):
        StripeBillable(stripe_customer).checkout(
            mode="subscription",
            line_items=[{"price": "price_a", "quantity": 3}, "price_b"],
            allow_promotion_codes=True,
            success_url="https://example.com/thanks",
        )

        params = mock_adapter.create_checkout_session.call_args.args[0]
        assert params.mode == "subscription"
        assert params.line_items == [
            {"price": "price_a", "quantity": 3},
            {"price": "price_b", "quantity": 1},
        ]
        assert params.success_url == "https://example.com/thanks"
        assert params.options == {"allow_promotion_codes": True}

    def test_guest_checkout(self, billing_customer, mock_adapter):
        StripeBillable(billing_customer).checkout(mode="setup")

        params = mock_adapter.create_checkout_session.call_args.args[0]
        assert params.customer_id is None

    @override_settings(BILLING_DEFAULT_CURRENCY="eur")
    def test_checkout_charge(self, stripe_customer, mock_adapter):
        StripeBillable(stripe_customer).checkout_charge(
            amount=1500, name="T-shirt", quantity=2
        )

        params = mock_adapter.create_checkout_session.call_args.args[0]
        assert params.line_items == [
            {
                "price_data": {
                    "currency": "eur",
                    "product_data": {"name": "T-shirt"},
                    "unit_amount": 1500,
                },
                "quantity": 2,
            }
        ]


class TestBillingPortal:
    def test_billing_portal(self, stripe_customer, mock_adapter):
        mock_adapter.create_billing_portal_session.return_value = (
            BillingPortalSessionResult(
                id="bps_test123",
                url="https://billing.stripe.com/session/bps_test123",
                customer="cus_test123",
            )
        )

        result = StripeBillable(stripe_customer).billing_portal()

        assert result.url == "https://billing.stripe.com/session/bps_test123"
        mock_adapter.create_billing_portal_session.assert_called_once_with(
            "cus_test123",
            "https://billing.example.com/",
            stripe_account=None,
        )

    def test_billing_portal_return_url(self, stripe_customer, mock_adapter):
        StripeBillable(stripe_customer).billing_portal(
            return_url="https://example.com/account", locale="fr"
        )

        mock_adapter.create_billing_portal_session.assert_called_once_with(
            "cus_test123",
            "https://example.com/account",
            stripe_account=None,
            locale="fr",
        )
