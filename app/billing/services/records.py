"""
Persistence of processor results.

These functions are the only place billing rows are written from
processor data. They are idempotent: syncing the same processor object
twice updates the existing row.

Usage:
    from billing.services import records

    payment_method = records.save_payment_method(customer, result, default=True)
    subscription = records.upsert_subscription(customer, sub_result, name="pro")
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import transaction

from billing.models import Charge, PaymentMethod, Subscription

if TYPE_CHECKING:
    from billing.adapters import ChargeResult, PaymentMethodResult, SubscriptionResult
    from billing.models import Customer

logger = logging.getLogger(__name__)


def find_or_create_payment_method(
    customer: Customer, processor_id: str
) -> PaymentMethod:
    """Return the customer's payment method with this processor ID, creating it if new."""
    payment_method, created = PaymentMethod.objects.get_or_create(
        customer=customer,
        processor_id=processor_id,
    )
    if created:
        logger.info(
            "Payment method created",
            extra={"customer_id": str(customer.pk), "payment_method": processor_id},
        )
    return payment_method


@transaction.atomic
def mark_default_payment_method(payment_method: PaymentMethod) -> PaymentMethod:
    """
    Make this the customer's only default payment method.

    Other defaults are cleared first so the one-default constraint
    holds at every point of the transaction.
    """
    PaymentMethod.objects.filter(
        customer_id=payment_method.customer_id,
        default=True,
    ).exclude(pk=payment_method.pk).update(default=False)

    if not payment_method.default:
        payment_method.default = True
        payment_method.save(update_fields=["default", "updated_at"])

    return payment_method


@transaction.atomic
def save_payment_method(
    customer: Customer,
    result: PaymentMethodResult,
    default: bool = False,
) -> PaymentMethod:
    """
    Store a processor payment method on the customer.

    Args:
        customer: Owning billing customer
        result: PaymentMethod returned by the adapter
        default: Make it the customer's default (clears the others)
    """
    payment_method = find_or_create_payment_method(customer, result.id)

    payment_method.payment_method_type = result.type or ""
    payment_method.brand = result.brand or ""
    payment_method.last4 = result.last4
    payment_method.exp_month = result.exp_month
    payment_method.exp_year = result.exp_year
    payment_method.email = result.email or ""
    payment_method.bank = result.bank or ""
    if not default:
        payment_method.default = False
    payment_method.save()

    if default:
        mark_default_payment_method(payment_method)

    return payment_method


def upsert_charge(customer: Customer, result: ChargeResult) -> Charge:
    """Create or update the local Charge for a processor charge."""
    charge, created = Charge.objects.update_or_create(
        processor_id=result.id,
        defaults={
            "customer": customer,
            "amount": result.amount_cents,
            "amount_refunded": result.amount_refunded_cents,
            "currency": result.currency,
            "charged_at": result.created,
            "payment_method_type": result.payment_method_type or "",
            "brand": result.brand or "",
            "last4": result.last4,
            "exp_month": result.exp_month,
            "exp_year": result.exp_year,
            "bank": result.bank or "",
            "receipt_url": result.receipt_url or "",
            "metadata": result.metadata,
            "stripe_account": customer.stripe_account,
        },
    )

    logger.info(
        "Charge synced",
        extra={
            "customer_id": str(customer.pk),
            "charge_id": result.id,
            "was_created": created,
        },
    )
    return charge


@transaction.atomic
def upsert_subscription(
    customer: Customer,
    result: SubscriptionResult,
    name: str | None = None,
) -> Subscription:
    """
    Create or update the local Subscription for a processor subscription.

    ``ends_at`` is the period end when cancellation is scheduled for the
    period end, else the time the subscription ended (None while running).

    Args:
        customer: Subscribed billing customer
        result: Subscription returned by the adapter
        name: Local subscription name. Existing names are only replaced
            when given; new rows default to BILLING_DEFAULT_PRODUCT_NAME.
    """
    subscription = (
        Subscription.objects.select_for_update()
        .filter(processor_id=result.id)
        .first()
    )
    created = subscription is None
    if created:
        subscription = Subscription(
            processor_id=result.id,
            name=name or settings.BILLING_DEFAULT_PRODUCT_NAME,
        )
    elif name:
        subscription.name = name

    if result.cancel_at_period_end:
        ends_at = result.current_period_end
    else:
        ends_at = result.ended_at

    subscription.customer = customer
    subscription.processor_plan = result.plan_id or ""
    subscription.quantity = result.quantity
    subscription.status = result.status
    subscription.trial_ends_at = result.trial_end
    subscription.ends_at = ends_at
    subscription.current_period_start = result.current_period_start
    subscription.current_period_end = result.current_period_end
    subscription.application_fee_percent = result.application_fee_percent
    subscription.metadata = result.metadata
    subscription.stripe_account = customer.stripe_account
    subscription.save()

    logger.info(
        "Subscription synced",
        extra={
            "customer_id": str(customer.pk),
            "subscription_id": result.id,
            "status": result.status,
            "was_created": created,
        },
    )
    return subscription
