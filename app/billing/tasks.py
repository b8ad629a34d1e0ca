"""
Celery tasks for billing.

This module defines async tasks for:
- Sending billing notices (receipt, refund, renewal, action required)
- Syncing a customer's subscriptions from Stripe

Related files:
    - mailers.py: BillingMailer that renders the notices
    - billable.py: StripeBillable.sync_subscriptions

Usage:
    from billing.tasks import send_billing_email
    send_billing_email.delay(str(customer.id), "receipt", charge_id=str(charge.id))
"""

import logging
from datetime import date

from celery import shared_task

from billing.adapters import backoff_delay, is_retryable_processor_error
from billing.exceptions import ProcessorError

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    autoretry_for=(ConnectionError,),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
)
def send_billing_email(
    self,
    customer_id: str,
    notice: str,
    charge_id: str | None = None,
    subscription_id: str | None = None,
    renewal_date: str | None = None,
    payment_intent_id: str | None = None,
) -> int:
    """
    Send a billing notice to a customer.

    Records are passed by ID so the task arguments stay JSON-serializable.

    Args:
        customer_id: Billing customer UUID
        notice: receipt, refund, subscription_renewing or payment_action_required
        charge_id: Charge UUID (receipt, refund)
        subscription_id: Subscription UUID (renewal, action required)
        renewal_date: ISO date (subscription_renewing)
        payment_intent_id: Stripe PaymentIntent ID (payment_action_required)

    Returns:
        Number of messages sent
    """
    from billing.mailers import BillingMailer, notice_args
    from billing.models import Charge, Customer, Subscription

    customer = Customer.objects.select_related("owner").get(pk=customer_id)

    charge = Charge.objects.get(pk=charge_id) if charge_id else None
    subscription = (
        Subscription.objects.get(pk=subscription_id) if subscription_id else None
    )

    args = notice_args(
        notice,
        charge=charge,
        subscription=subscription,
        renewal_date=date.fromisoformat(renewal_date) if renewal_date else None,
        payment_intent_id=payment_intent_id,
    )
    return BillingMailer(customer).deliver(notice, *args)


@shared_task(bind=True, max_retries=5)
def sync_customer_subscriptions(self, customer_id: str) -> int:
    """
    Copy a customer's Stripe subscriptions into the database.

    Transient processor errors (rate limits, outages) are retried with
    exponential backoff; permanent ones fail the task.

    Args:
        customer_id: Billing customer UUID

    Returns:
        Number of subscriptions synced
    """
    from billing.billable import StripeBillable
    from billing.models import Customer

    customer = Customer.objects.select_related("owner").get(pk=customer_id)

    try:
        subscriptions = StripeBillable(customer).sync_subscriptions()
    except ProcessorError as e:
        if is_retryable_processor_error(e):
            logger.warning(
                "Subscription sync failed, retrying",
                extra={
                    "customer_id": customer_id,
                    "error_code": e.error_code,
                    "attempt": self.request.retries,
                },
            )
            raise self.retry(exc=e, countdown=backoff_delay(self.request.retries))
        raise

    logger.info(
        "Subscriptions synced",
        extra={"customer_id": customer_id, "count": len(subscriptions)},
    )
    return len(subscriptions)
