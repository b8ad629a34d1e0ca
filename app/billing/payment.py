"""
Payment status checks.

Payment wraps a PaymentIntentResult returned by the adapter and turns the
statuses that need the customer's attention into PaymentError exceptions.

Usage:
    from billing.payment import Payment

    payment = Payment(StripeAdapter.create_payment_intent(params)).validate()
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from billing.currency import format_amount
from billing.exceptions import ActionRequiredError, InvalidPaymentMethodError

if TYPE_CHECKING:
    from billing.adapters import PaymentIntentResult


class Payment:
    """
    A PaymentIntent as seen by the billable layer.

    Attributes:
        intent: The normalized PaymentIntent
    """

    def __init__(self, intent: PaymentIntentResult):
        self.intent = intent

    def __repr__(self) -> str:
        return f"Payment(id={self.id!r}, status={self.status!r})"

    @property
    def id(self) -> str:
        return self.intent.id

    @property
    def status(self) -> str:
        return self.intent.status

    @property
    def amount(self) -> int:
        return self.intent.amount_cents

    @property
    def currency(self) -> str:
        return self.intent.currency

    @property
    def client_secret(self) -> str | None:
        return self.intent.client_secret

    def requires_payment_method(self) -> bool:
        return self.status == "requires_payment_method"

    def requires_action(self) -> bool:
        return self.status == "requires_action"

    def succeeded(self) -> bool:
        return self.status == "succeeded"

    def canceled(self) -> bool:
        return self.status == "canceled"

    def amount_with_currency(self) -> str:
        return format_amount(self.amount, self.currency)

    def validate(self) -> Payment:
        """
        Raise if the payment needs the customer before it can complete.

        Returns:
            self, for chaining

        Raises:
            InvalidPaymentMethodError: status is requires_payment_method
            ActionRequiredError: status is requires_action
        """
        if self.requires_payment_method():
            raise InvalidPaymentMethodError(self)
        if self.requires_action():
            raise ActionRequiredError(self)
        return self
