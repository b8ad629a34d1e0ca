"""
PaymentMethod model for saved cards, wallets and bank accounts.
"""

from __future__ import annotations

from django.db import models
from django.db.models import Q

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class PaymentMethod(UUIDPrimaryKeyMixin, BaseModel):
    """
    A payment method saved on a processor customer.

    Only one payment method per customer may be the default; use
    billing.services.records.mark_default_payment_method to switch.

    Fields:
        customer: Owning billing customer
        processor_id: Processor payment method ID (pm_xxx)
        default: Whether this is the customer's default method
        payment_method_type: card, link, sepa_debit, us_bank_account, ...
        brand / last4 / exp_month / exp_year: Card details, as strings
        email: Account email for wallet-style methods
        bank: Bank name for bank-based methods
    """

    customer = models.ForeignKey(
        "billing.Customer",
        on_delete=models.CASCADE,
        related_name="payment_methods",
    )

    processor_id = models.CharField(
        max_length=255,
        db_index=True,
        help_text="Processor payment method ID (pm_xxx)",
    )

    default = models.BooleanField(default=False)

    payment_method_type = models.CharField(max_length=50, blank=True, default="")
    brand = models.CharField(max_length=50, blank=True, default="")
    last4 = models.CharField(max_length=4, blank=True, default="")
    exp_month = models.CharField(max_length=2, blank=True, default="")
    exp_year = models.CharField(max_length=4, blank=True, default="")
    email = models.EmailField(blank=True, default="")
    bank = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["customer", "processor_id"],
                name="billing_payment_method_unique_per_customer",
            ),
            models.UniqueConstraint(
                fields=["customer"],
                condition=Q(default=True),
                name="billing_payment_method_one_default_per_customer",
            ),
        ]

    def __str__(self) -> str:
        if self.brand and self.last4:
            return f"{self.brand} ending in {self.last4}"
        return f"{self.payment_method_type or 'payment method'} {self.processor_id}"
