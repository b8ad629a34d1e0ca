"""
Protocol definitions (interfaces) for billing collaborators.

Protocols define contracts that services must fulfill, enabling:
- Duck typing with static type checking
- Swapping the email mailer for another channel
- Easy mocking in tests

Available Protocols:
    BillingNotifier: One method per billing notice

Usage:
    from billing.protocols import BillingNotifier

    def notify_receipt(notifier: BillingNotifier, charge: Charge) -> None:
        notifier.receipt(charge).send()

Note:
    - @runtime_checkable allows isinstance() checks
    - BillingMailer (billing.mailers) is the email implementation
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from datetime import date

    from django.core.mail import EmailMessage

    from billing.models import Charge, Subscription


@runtime_checkable
class BillingNotifier(Protocol):
    """
    Protocol for billing notices sent to a customer.

    Each method builds the notice without sending it.

    Example:
        class SlackBillingNotifier:
            def receipt(self, charge): ...
            def refund(self, charge): ...
            def subscription_renewing(self, subscription, date): ...
            def payment_action_required(self, subscription, payment_intent_id): ...
    """

    def receipt(self, charge: Charge) -> EmailMessage:
        """Payment receipt with the PDF attached."""
        ...

    def refund(self, charge: Charge) -> EmailMessage:
        """Notice that (part of) a charge was refunded."""
        ...

    def subscription_renewing(
        self, subscription: Subscription, date: date
    ) -> EmailMessage:
        """Reminder that a subscription renews on ``date``."""
        ...

    def payment_action_required(
        self, subscription: Subscription | None, payment_intent_id: str
    ) -> EmailMessage:
        """Link to confirm a payment that needs SCA / 3-D Secure."""
        ...
