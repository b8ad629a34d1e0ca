"""
Tests for the payment confirmation page.
"""

from unittest.mock import patch

import pytest
from django.urls import reverse

from billing.adapters import PaymentIntentResult
from billing.exceptions import InvalidRequestError

pytestmark = pytest.mark.django_db


def _intent(status="requires_action"):
    return PaymentIntentResult(
        id="pi_test123",
        status=status,
        amount_cents=1500,
        currency="usd",
        client_secret="pi_test123_secret_abc",
    )


@pytest.fixture
def mock_adapter():
    with patch("billing.views.StripeAdapter") as mock:
        yield mock


class TestPaymentView:
    url = "/billing/payments/pi_test123/"

    def test_url(self):
        assert reverse("billing:payment", args=["pi_test123"]) == self.url

    def test_requires_action_page(self, client, mock_adapter):
        mock_adapter.retrieve_payment_intent.return_value = _intent()

        response = client.get(self.url)

        assert response.status_code == 200
        assert "billing/payment.html" in [t.name for t in response.templates]
        content = response.content.decode()
        assert "$15.00" in content
        assert "pi_test123_secret_abc" in content
        assert "pk_test_123" in content
        assert 'id="confirm-payment"' in content
        mock_adapter.retrieve_payment_intent.assert_called_once_with("pi_test123")

    def test_succeeded_payment_has_no_form(self, client, mock_adapter):
        mock_adapter.retrieve_payment_intent.return_value = _intent("succeeded")

        response = client.get(self.url)

        content = response.content.decode()
        assert "This payment has already been completed." in content
        assert 'id="confirm-payment"' not in content
        assert "pi_test123_secret_abc" not in content

    def test_back_link(self, client, mock_adapter):
        mock_adapter.retrieve_payment_intent.return_value = _intent()

        response = client.get(self.url, {"back": "/account/"})

        assert response.context["return_url"] == "/account/"

    def test_back_link_on_billing_site(self, client, mock_adapter):
        mock_adapter.retrieve_payment_intent.return_value = _intent()

        response = client.get(
            self.url, {"back": "https://billing.example.com/account/"}
        )

        assert response.context["return_url"] == "https://billing.example.com/account/"

    @pytest.mark.parametrize(
        "back",
        [
            "javascript:alert(document.cookie)",
            "https://evil.example.com/phish/",
            "//evil.example.com/",
        ],
    )
    def test_unsafe_back_link_falls_back_to_root(self, client, mock_adapter, back):
        mock_adapter.retrieve_payment_intent.return_value = _intent()

        response = client.get(self.url, {"back": back})

        assert response.context["return_url"] == "https://billing.example.com/"
        content = response.content.decode()
        assert '<a href="https://billing.example.com/">' in content
        assert "evil.example.com" not in content
        assert "javascript:" not in content

    def test_default_back_link(self, client, mock_adapter):
        mock_adapter.retrieve_payment_intent.return_value = _intent()

        response = client.get(self.url)

        assert response.context["return_url"] == "https://billing.example.com/"

    def test_unknown_payment_intent(self, client, mock_adapter):
        mock_adapter.retrieve_payment_intent.side_effect = InvalidRequestError(
            "No such payment_intent", stripe_code="resource_missing"
        )

        response = client.get(self.url)

        assert response.status_code == 404

    def test_post_not_allowed(self, client, mock_adapter):
        response = client.post(self.url)

        assert response.status_code == 405
