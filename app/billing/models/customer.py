"""
Customer model linking a user to their payment processor account.

A Customer row exists before the processor knows about it; ``processor_id``
stays blank until StripeBillable.customer() creates the remote customer.

Usage:
    from billing.models import Customer

    customer = Customer.objects.create(owner=user, default=True)
    customer.payment_method_token = "pm_card_visa"
    StripeBillable(customer).customer()
    customer.processor_id  # "cus_xxx"
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.conf import settings
from django.db import models
from django.db.models import Q

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

if TYPE_CHECKING:
    from billing.models.payment_method import PaymentMethod


class Processor(models.TextChoices):
    """Supported payment processors."""

    STRIPE = "stripe", "Stripe"


class Customer(UUIDPrimaryKeyMixin, BaseModel):
    """
    A user's customer record at a payment processor.

    Fields:
        owner: User the customer belongs to
        processor: Payment processor name
        processor_id: Processor customer ID (cus_xxx), blank until created
        default: Whether this is the owner's default customer
        stripe_account: Stripe Connect account the customer lives on

    Attributes:
        payment_method_token: Transient payment method ID that
            StripeBillable.customer() attaches and clears. Not stored.
    """

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="billing_customers",
        help_text="User this customer belongs to",
    )

    processor = models.CharField(
        max_length=30,
        choices=Processor.choices,
        default=Processor.STRIPE,
        help_text="Payment processor",
    )

    processor_id = models.CharField(
        max_length=255,
        blank=True,
        default="",
        db_index=True,
        help_text="Processor customer ID (cus_xxx)",
    )

    default = models.BooleanField(
        default=False,
        help_text="Whether this is the owner's default customer",
    )

    stripe_account = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Stripe Connect account ID (acct_xxx)",
    )

    payment_method_token: str | None = None

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["owner"],
                condition=Q(default=True),
                name="billing_customer_one_default_per_owner",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.owner} ({self.processor}: {self.processor_id or 'pending'})"

    @property
    def email(self) -> str:
        return self.owner.email

    @property
    def customer_name(self) -> str:
        """Name sent to the processor."""
        return self.owner.get_full_name()

    @property
    def extra_billing_info(self) -> str:
        return getattr(self.owner, "extra_billing_info", "") or ""

    @property
    def locale(self) -> str:
        """Language for billing notices, falling back to LANGUAGE_CODE."""
        return getattr(self.owner, "preferred_locale", "") or settings.LANGUAGE_CODE

    def has_processor_id(self) -> bool:
        return bool(self.processor_id)

    @property
    def default_payment_method(self) -> PaymentMethod | None:
        return self.payment_methods.filter(default=True).first()
