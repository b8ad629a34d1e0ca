"""
Billable customers backed by Stripe.

StripeBillable wraps one local Customer row and performs processor
operations on its behalf: it creates the Stripe customer on first use,
charges and subscribes it, manages its payment methods, and writes the
results back through billing.services.records.

Every processor failure surfaces as a billing.exceptions.ProcessorError
subclass. Payments that need the customer (SCA / 3-D Secure, rejected
card) raise ActionRequiredError / InvalidPaymentMethodError carrying the
Payment, so the caller can send them to the confirmation page.

Usage:
    from billing.billable import StripeBillable

    billable = StripeBillable(customer)
    charge = billable.charge(15_00)
    subscription = billable.subscribe(name="pro", plan="price_pro_monthly")
    session = billable.checkout(line_items="price_tshirt", quantity=2)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from django.conf import settings

from billing.adapters import (
    CreateCheckoutSessionParams,
    CreateCustomerParams,
    CreatePaymentIntentParams,
    CreateSubscriptionParams,
    IdempotencyKeyGenerator,
    StripeAdapter,
)
from billing.mailers import notify
from billing.payment import Payment
from billing.services import records
from toolkit.helpers import absolute_url

if TYPE_CHECKING:
    from datetime import datetime

    from billing.adapters import (
        BillingPortalSessionResult,
        CheckoutSessionResult,
        CustomerResult,
        InvoiceResult,
        PaymentMethodResult,
        SetupIntentResult,
        SubscriptionResult,
    )
    from billing.models import Charge, Customer, PaymentMethod, Subscription

logger = logging.getLogger(__name__)


class StripeBillable:
    """
    Stripe operations for a single billing customer.

    Attributes:
        billing_customer: The local Customer row being billed
    """

    def __init__(self, billing_customer: Customer):
        self.billing_customer = billing_customer

    # =========================================================================
    # Customer delegation
    # =========================================================================

    @property
    def processor_id(self) -> str:
        return self.billing_customer.processor_id

    @property
    def email(self) -> str:
        return self.billing_customer.email

    @property
    def customer_name(self) -> str:
        return self.billing_customer.customer_name

    @property
    def payment_method_token(self) -> str | None:
        return self.billing_customer.payment_method_token

    @property
    def stripe_account(self) -> str | None:
        return self.billing_customer.stripe_account or None

    def _send_notice(self, notice: str, **kwargs: Any) -> None:
        """
        Send a notice about a payment that already went through.

        Mail or broker failures are logged and swallowed: the charge or
        subscription exists at Stripe by now and must reach the caller.
        """
        try:
            notify(self.billing_customer, notice, **kwargs)
        except Exception as e:
            logger.error(
                f"Failed to send billing notice: {type(e).__name__}",
                extra={
                    "customer_id": str(self.billing_customer.pk),
                    "notice": notice,
                },
                exc_info=True,
            )

    # =========================================================================
    # Customer
    # =========================================================================

    def customer(self) -> CustomerResult:
        """
        Fetch the Stripe customer, creating it on first use.

        A pending ``payment_method_token`` on the record is attached,
        saved and made the default (locally and on Stripe), then cleared.

        Returns:
            The Stripe customer, reflecting any new default payment method

        Raises:
            ProcessorError: Stripe rejected or failed a call
        """
        if self.billing_customer.has_processor_id():
            stripe_customer = StripeAdapter.retrieve_customer(
                self.processor_id, stripe_account=self.stripe_account
            )
        else:
            stripe_customer = StripeAdapter.create_customer(
                CreateCustomerParams(
                    email=self.email,
                    name=self.customer_name,
                    metadata={"customer_id": str(self.billing_customer.pk)},
                    stripe_account=self.stripe_account,
                    idempotency_key=IdempotencyKeyGenerator.generate(
                        operation="create_customer",
                        entity_id=self.billing_customer.pk,
                    ),
                )
            )
            self.billing_customer.processor_id = stripe_customer.id
            self.billing_customer.save(
                update_fields=["processor_id", "stripe_account", "updated_at"]
            )
            logger.info(
                "Stripe customer created",
                extra={
                    "customer_id": str(self.billing_customer.pk),
                    "processor_id": stripe_customer.id,
                },
            )

        if self.payment_method_token:
            payment_method = StripeAdapter.attach_payment_method(
                self.payment_method_token,
                stripe_customer.id,
                stripe_account=self.stripe_account,
            )
            local_payment_method = self.save_payment_method(
                payment_method, default=False
            )
            stripe_customer = StripeAdapter.set_default_payment_method(
                stripe_customer.id,
                payment_method.id,
                stripe_account=self.stripe_account,
            )
            records.mark_default_payment_method(local_payment_method)

            self.billing_customer.payment_method_token = None

        return stripe_customer

    def update_email(self) -> CustomerResult:
        """Push the owner's current email and name to Stripe."""
        if not self.billing_customer.has_processor_id():
            return self.customer()

        return StripeAdapter.update_customer(
            self.processor_id,
            stripe_account=self.stripe_account,
            email=self.email,
            name=self.customer_name,
        )

    # =========================================================================
    # Charges & Subscriptions
    # =========================================================================

    def charge(self, amount: int, **options: Any) -> Charge | None:
        """
        Charge the customer's default payment method.

        The synced charge gets a receipt notice (see billing.mailers.notify).

        Args:
            amount: Amount in smallest currency unit
            **options: Extra PaymentIntent parameters (currency,
                payment_method, description, metadata, ...)

        Returns:
            The synced Charge, or None if Stripe has not created one yet

        Raises:
            ValueError: amount is not positive
            ActionRequiredError: The payment needs SCA confirmation
            InvalidPaymentMethodError: The payment method was rejected
            ProcessorError: Stripe rejected or failed the call
        """
        stripe_customer = self.customer()
        currency = options.pop("currency", settings.BILLING_DEFAULT_CURRENCY)

        intent = StripeAdapter.create_payment_intent(
            CreatePaymentIntentParams(
                amount_cents=amount,
                customer_id=stripe_customer.id,
                payment_method_id=stripe_customer.default_payment_method,
                currency=currency,
                options=options,
                stripe_account=self.stripe_account,
            )
        )
        Payment(intent).validate()

        if intent.latest_charge is None:
            logger.warning(
                "PaymentIntent has no charge yet",
                extra={"payment_intent_id": intent.id, "status": intent.status},
            )
            return None

        charge = records.upsert_charge(self.billing_customer, intent.latest_charge)
        self._send_notice("receipt", charge=charge)
        return charge

    def subscribe(
        self,
        name: str | None = None,
        plan: str | None = None,
        quantity: int = 1,
        **options: Any,
    ) -> Subscription:
        """
        Subscribe the customer to a plan.

        The plan's trial applies unless ``trial_period_days`` is passed.

        Args:
            name: Local subscription name (default: BILLING_DEFAULT_PRODUCT_NAME)
            plan: Stripe price ID (default: BILLING_DEFAULT_PLAN_NAME)
            quantity: Seats or units
            **options: Extra Subscription parameters

        Returns:
            The synced Subscription

        Raises:
            ActionRequiredError: The first payment needs SCA confirmation
            InvalidPaymentMethodError: The first payment was rejected
            ProcessorError: Stripe rejected or failed the call
        """
        name = name or settings.BILLING_DEFAULT_PRODUCT_NAME
        plan = plan or settings.BILLING_DEFAULT_PLAN_NAME
        trial_period_days = options.pop("trial_period_days", None)

        stripe_customer = self.customer()

        result = StripeAdapter.create_subscription(
            CreateSubscriptionParams(
                customer_id=stripe_customer.id,
                price_id=plan,
                quantity=quantity,
                trial_period_days=trial_period_days,
                options=options,
                stripe_account=self.stripe_account,
            )
        )

        subscription = records.upsert_subscription(
            self.billing_customer, result, name=name
        )

        # No trial and the first invoice could not be paid off-session
        if subscription.incomplete() and result.latest_payment_intent is not None:
            payment = Payment(result.latest_payment_intent)
            if payment.requires_action():
                self._send_notice(
                    "payment_action_required",
                    subscription=subscription,
                    payment_intent_id=payment.id,
                )
            payment.validate()

        return subscription

    def processor_subscription(
        self, subscription_id: str, **options: Any
    ) -> SubscriptionResult:
        return StripeAdapter.retrieve_subscription(
            subscription_id, stripe_account=self.stripe_account, **options
        )

    def sync_subscriptions(self) -> list[Subscription]:
        """Copy every Stripe subscription of this customer into the database."""
        stripe_customer = self.customer()
        results = StripeAdapter.list_subscriptions(
            stripe_customer.id, stripe_account=self.stripe_account
        )
        return [
            records.upsert_subscription(self.billing_customer, result)
            for result in results
        ]

    @staticmethod
    def trial_end_date(subscription: SubscriptionResult) -> datetime | None:
        """Trial end in UTC, or None without a trial."""
        return subscription.trial_end

    # =========================================================================
    # Payment Methods
    # =========================================================================

    def add_payment_method(
        self, payment_method_id: str, default: bool = False
    ) -> PaymentMethod | bool:
        """
        Attach a payment method and make it the Stripe invoice default.

        Returns:
            True if it already was the invoice default, else the saved
            PaymentMethod (local default only when ``default``)
        """
        stripe_customer = self.customer()

        if payment_method_id == stripe_customer.default_payment_method:
            return True

        payment_method = StripeAdapter.attach_payment_method(
            payment_method_id,
            stripe_customer.id,
            stripe_account=self.stripe_account,
        )
        StripeAdapter.set_default_payment_method(
            stripe_customer.id,
            payment_method.id,
            stripe_account=self.stripe_account,
        )

        return self.save_payment_method(payment_method, default=default)

    def save_payment_method(
        self, payment_method: PaymentMethodResult, default: bool = False
    ) -> PaymentMethod:
        """Save a Stripe payment method to the database."""
        return records.save_payment_method(
            self.billing_customer, payment_method, default=default
        )

    def create_setup_intent(self) -> SetupIntentResult:
        return StripeAdapter.create_setup_intent(
            self.processor_id or None, stripe_account=self.stripe_account
        )

    # =========================================================================
    # Invoices
    # =========================================================================

    def invoice(self, **options: Any) -> InvoiceResult | None:
        """
        Invoice pending items now and pay the invoice.

        Returns None when the customer does not exist on Stripe yet.
        """
        if not self.billing_customer.has_processor_id():
            return None

        invoice = StripeAdapter.create_invoice(
            self.processor_id, stripe_account=self.stripe_account, **options
        )
        return StripeAdapter.pay_invoice(invoice.id, stripe_account=self.stripe_account)

    def upcoming_invoice(self) -> InvoiceResult:
        return StripeAdapter.retrieve_upcoming_invoice(
            self.processor_id, stripe_account=self.stripe_account
        )

    # =========================================================================
    # Checkout & Billing Portal
    # =========================================================================

    def checkout(self, **options: Any) -> CheckoutSessionResult:
        """
        Create a Stripe Checkout Session for this customer.

        ``line_items`` may be a price ID, a line item dict, or a list of
        either. Bare price IDs get ``quantity`` (default 1).

        Examples:
            billable.checkout(mode="setup")
            billable.checkout(line_items="price_123", quantity=2)
            billable.checkout(
                mode="subscription",
                line_items=[{"price": "price_123"}, "price_456"],
                allow_promotion_codes=True,
            )
        """
        success_url = options.pop("success_url", None) or absolute_url()
        cancel_url = options.pop("cancel_url", None) or absolute_url()
        mode = options.pop("mode", "payment")
        payment_method_types = options.pop("payment_method_types", ["card"])
        quantity = options.pop("quantity", 1)

        line_items = options.pop("line_items", None)
        if line_items is not None:
            if not isinstance(line_items, (list, tuple)):
                line_items = [line_items]
            line_items = [
                item if isinstance(item, dict) else {"price": item, "quantity": quantity}
                for item in line_items
            ]

        return StripeAdapter.create_checkout_session(
            CreateCheckoutSessionParams(
                customer_id=self.processor_id or None,
                success_url=success_url,
                cancel_url=cancel_url,
                mode=mode,
                payment_method_types=payment_method_types,
                line_items=line_items,
                options=options,
                stripe_account=self.stripe_account,
            )
        )

    def checkout_charge(
        self,
        amount: int,
        name: str,
        quantity: int = 1,
        currency: str | None = None,
        **options: Any,
    ) -> CheckoutSessionResult:
        """
        Checkout for a one-off amount without a Stripe Price.

        Example:
            billable.checkout_charge(amount=15_00, name="T-shirt", quantity=2)
        """
        return self.checkout(
            line_items={
                "price_data": {
                    "currency": currency or settings.BILLING_DEFAULT_CURRENCY,
                    "product_data": {"name": name},
                    "unit_amount": amount,
                },
                "quantity": quantity,
            },
            **options,
        )

    def billing_portal(self, **options: Any) -> BillingPortalSessionResult:
        """Create a Billing Portal session returning to ``return_url`` (default: site root)."""
        return_url = options.pop("return_url", None) or absolute_url()
        return StripeAdapter.create_billing_portal_session(
            self.processor_id,
            return_url,
            stripe_account=self.stripe_account,
            **options,
        )
