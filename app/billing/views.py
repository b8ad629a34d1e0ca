"""
Billing views.

The payment page lets a customer finish a payment that needs SCA / 3-D
Secure. Links to it are sent by the payment_action_required notice and
returned to callers through ActionRequiredError.payment.id.
"""

import logging
from urllib.parse import urlsplit

from django.conf import settings
from django.http import Http404
from django.shortcuts import render
from django.utils.http import url_has_allowed_host_and_scheme
from django.views.decorators.http import require_GET

from billing.adapters import StripeAdapter
from billing.exceptions import InvalidRequestError
from billing.payment import Payment
from toolkit.helpers import absolute_url

logger = logging.getLogger(__name__)


def _return_url(request) -> str:
    """The ``back`` parameter when it stays on this site, else the root url."""
    url = request.GET.get("back")
    allowed_hosts = {request.get_host(), urlsplit(settings.BILLING_BASE_URL).netloc}
    if url and url_has_allowed_host_and_scheme(
        url, allowed_hosts=allowed_hosts, require_https=request.is_secure()
    ):
        return url
    return absolute_url()


@require_GET
def payment(request, payment_intent_id: str):
    """
    Show a PaymentIntent so the customer can confirm it with Stripe.js.

    Returns:
        200 with the payment page, 404 if Stripe does not know the intent
    """
    try:
        intent = StripeAdapter.retrieve_payment_intent(payment_intent_id)
    except InvalidRequestError as e:
        logger.info(
            "Payment page requested for unknown PaymentIntent",
            extra={"payment_intent_id": payment_intent_id, "stripe_code": e.stripe_code},
        )
        raise Http404("Payment not found") from e

    return render(
        request,
        "billing/payment.html",
        {
            "payment": Payment(intent),
            "stripe_publishable_key": settings.STRIPE_PUBLISHABLE_KEY,
            "return_url": _return_url(request),
        },
    )
