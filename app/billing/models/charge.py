"""
Charge model for payments collected from a customer.

Charges are upserted from the processor's Charge object after a
successful payment; ``amount_refunded`` is updated when refunds sync.

Usage:
    from billing.models import Charge

    charge = Charge.objects.get(processor_id="ch_xxx")
    charge.amount_with_currency()  # "$15.00"
    charge.receipt_filename()      # "receipt-2024-03-01.pdf"
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from billing.currency import format_amount
from core.model_mixins import MetadataMixin, UUIDPrimaryKeyMixin
from core.models import BaseModel


class Charge(UUIDPrimaryKeyMixin, MetadataMixin, BaseModel):
    """
    A charge made against a billing customer.

    Fields:
        customer: Billing customer that was charged
        processor_id: Processor charge ID (ch_xxx / py_xxx)
        amount: Amount in smallest currency unit
        amount_refunded: Refunded amount in smallest currency unit
        currency: ISO 4217 currency code (lowercase)
        charged_at: When the processor created the charge
        payment_method_type / brand / last4 / exp_month / exp_year / bank:
            Snapshot of the payment method used
        receipt_url: Processor-hosted receipt
        stripe_account: Stripe Connect account
        metadata: Processor metadata
    """

    customer = models.ForeignKey(
        "billing.Customer",
        on_delete=models.CASCADE,
        related_name="charges",
    )

    processor_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Processor charge ID (ch_xxx)",
    )

    amount = models.PositiveBigIntegerField(
        help_text="Amount in smallest currency unit (e.g., cents)",
    )
    amount_refunded = models.PositiveBigIntegerField(default=0)
    currency = models.CharField(max_length=3, default="usd")

    charged_at = models.DateTimeField(null=True, blank=True)

    payment_method_type = models.CharField(max_length=50, blank=True, default="")
    brand = models.CharField(max_length=50, blank=True, default="")
    last4 = models.CharField(max_length=4, blank=True, default="")
    exp_month = models.CharField(max_length=2, blank=True, default="")
    exp_year = models.CharField(max_length=4, blank=True, default="")
    bank = models.CharField(max_length=255, blank=True, default="")

    receipt_url = models.URLField(max_length=500, blank=True, default="")
    stripe_account = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"Charge {self.processor_id} ({self.amount_with_currency()})"

    def amount_with_currency(self) -> str:
        return format_amount(self.amount, self.currency)

    def amount_refunded_with_currency(self) -> str:
        return format_amount(self.amount_refunded, self.currency)

    def refunded(self) -> bool:
        return self.amount_refunded > 0

    def full_refund(self) -> bool:
        return self.amount_refunded >= self.amount

    def charged_to(self) -> str:
        """
        Describe the payment method for receipts.

        Examples:
            "Visa (**** **** **** 4242)"
            "Link (ada@example.com)"
        """
        if self.brand and self.last4:
            return f"{self.brand} (**** **** **** {self.last4})"
        label = (self.payment_method_type or "").replace("_", " ").title()
        if self.bank:
            return f"{label} ({self.bank})".strip()
        return label

    def receipt_date(self):
        return timezone.localdate(self.charged_at or self.created_at)

    def receipt_filename(self) -> str:
        return f"receipt-{self.receipt_date():%Y-%m-%d}.pdf"

    def receipt(self) -> bytes:
        """Render the receipt PDF."""
        from billing.services.receipts import render_receipt

        return render_receipt(self)
