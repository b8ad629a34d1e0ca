"""
Billing email notices.

BillingMailer renders the transactional emails for one billing customer
in the owner's preferred language:
- receipt: payment receipt with the PDF attached
- refund: refunded amount
- subscription_renewing: upcoming renewal reminder
- payment_action_required: link to confirm an SCA payment

Related files:
    - templates/billing/email/: HTML and text templates per notice
    - services/receipts.py: Receipt PDF
    - tasks.py: send_billing_email for async delivery

Usage:
    from billing.mailers import BillingMailer

    mailer = BillingMailer(customer)
    mailer.deliver("receipt", charge)

    # Or build without sending
    message = mailer.subscription_renewing(subscription, renewal_date)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.conf import settings
from django.urls import reverse
from django.utils import translation
from django.utils.translation import gettext_lazy as _

from toolkit.helpers import absolute_url, long_date, mask_email
from toolkit.services.email import EmailService

if TYPE_CHECKING:
    from datetime import date
    from typing import Any

    from django.core.mail import EmailMultiAlternatives

    from billing.models import Charge, Customer, Subscription

logger = logging.getLogger(__name__)

NOTICES = (
    "receipt",
    "refund",
    "subscription_renewing",
    "payment_action_required",
)

SUBJECTS = {
    "receipt": _("Payment receipt"),
    "refund": _("Payment refunded"),
    "subscription_renewing": _("Your upcoming subscription renewal"),
    "payment_action_required": _("Confirm your payment"),
}


class BillingMailer:
    """
    Email implementation of BillingNotifier for one customer.

    Attributes:
        customer: Billing customer whose owner receives the notices
    """

    def __init__(self, customer: Customer):
        self.customer = customer

    def _compose(
        self,
        notice: str,
        context: dict[str, Any],
        attachments: list[tuple] | None = None,
    ) -> EmailMultiAlternatives:
        context = {
            "customer": self.customer,
            "owner": self.customer.owner,
            "business_name": settings.BILLING_BUSINESS_NAME,
            "support_email": settings.BILLING_SUPPORT_EMAIL,
            "site_url": absolute_url(),
            **context,
        }
        return EmailService.render(
            to=self.customer.email,
            subject=str(SUBJECTS[notice]),
            template_name=f"billing/email/{notice}",
            context=context,
            reply_to=settings.BILLING_SUPPORT_EMAIL or None,
            attachments=attachments,
        )

    def receipt(self, charge: Charge) -> EmailMultiAlternatives:
        with translation.override(self.customer.locale):
            attachments = [(charge.receipt_filename(), charge.receipt(), "application/pdf")]
            return self._compose(
                "receipt",
                {
                    "charge": charge,
                    "amount": charge.amount_with_currency(),
                    "charged_at": long_date(charge.receipt_date()),
                    "charged_to": charge.charged_to(),
                    "extra_billing_info": self.customer.extra_billing_info,
                },
                attachments=attachments,
            )

    def refund(self, charge: Charge) -> EmailMultiAlternatives:
        with translation.override(self.customer.locale):
            return self._compose(
                "refund",
                {
                    "charge": charge,
                    "amount_refunded": charge.amount_refunded_with_currency(),
                    "charged_to": charge.charged_to(),
                },
            )

    def subscription_renewing(
        self, subscription: Subscription, date: date
    ) -> EmailMultiAlternatives:
        """The renewal date uses the locale's DATE_FORMAT with the full month name."""
        with translation.override(self.customer.locale):
            return self._compose(
                "subscription_renewing",
                {
                    "subscription": subscription,
                    "renewal_date": long_date(date),
                },
            )

    def payment_action_required(
        self, subscription: Subscription | None, payment_intent_id: str
    ) -> EmailMultiAlternatives:
        with translation.override(self.customer.locale):
            payment_path = reverse("billing:payment", args=[payment_intent_id])
            return self._compose(
                "payment_action_required",
                {
                    "subscription": subscription,
                    "payment_intent_id": payment_intent_id,
                    "payment_url": absolute_url(payment_path),
                },
            )

    def deliver(self, notice: str, *args: Any) -> int:
        """
        Build and send a notice.

        Does nothing when BILLING_SEND_EMAILS is off.

        Args:
            notice: One of NOTICES
            *args: Arguments of the notice method

        Returns:
            Number of messages sent (0 or 1)

        Example:
            BillingMailer(customer).deliver("payment_action_required", subscription, "pi_123")
        """
        if notice not in NOTICES:
            raise ValueError(f"Unknown billing notice: {notice}")

        if not settings.BILLING_SEND_EMAILS:
            logger.info(
                "Billing emails disabled, skipping notice",
                extra={"notice": notice, "customer_id": str(self.customer.pk)},
            )
            return 0

        message = getattr(self, notice)(*args)
        sent = EmailService.deliver(message)

        logger.info(
            "Billing notice delivered",
            extra={
                "notice": notice,
                "customer_id": str(self.customer.pk),
                "recipient": mask_email(self.customer.email),
            },
        )
        return sent


def notice_args(
    notice: str,
    *,
    charge: Charge | None = None,
    subscription: Subscription | None = None,
    renewal_date: date | None = None,
    payment_intent_id: str | None = None,
) -> tuple:
    """Positional arguments of the BillingMailer method for a notice."""
    if notice in ("receipt", "refund"):
        return (charge,)
    if notice == "subscription_renewing":
        return (subscription, renewal_date)
    if notice == "payment_action_required":
        return (subscription, payment_intent_id)
    raise ValueError(f"Unknown billing notice: {notice}")


def notify(
    customer: Customer,
    notice: str,
    *,
    charge: Charge | None = None,
    subscription: Subscription | None = None,
    renewal_date: date | None = None,
    payment_intent_id: str | None = None,
) -> None:
    """
    Send a billing notice now, or queue it when BILLING_EMAILS_ASYNC is on.

    Example:
        notify(customer, "receipt", charge=charge)
    """
    if settings.BILLING_EMAILS_ASYNC:
        from billing.tasks import send_billing_email

        send_billing_email.delay(
            str(customer.pk),
            notice,
            charge_id=str(charge.pk) if charge else None,
            subscription_id=str(subscription.pk) if subscription else None,
            renewal_date=renewal_date.isoformat() if renewal_date else None,
            payment_intent_id=payment_intent_id,
        )
        return

    BillingMailer(customer).deliver(
        notice,
        *notice_args(
            notice,
            charge=charge,
            subscription=subscription,
            renewal_date=renewal_date,
            payment_intent_id=payment_intent_id,
        ),
    )
