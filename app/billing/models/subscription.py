"""
Subscription model mirroring the processor's subscription.

Status is whatever the processor reports; this model never transitions it
locally. Records are written by billing.services.records.upsert_subscription.

Usage:
    from billing.models import Subscription

    subscription = customer.subscriptions.get(name="default")
    if subscription.active():
        ...
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from core.model_mixins import MetadataMixin, UUIDPrimaryKeyMixin
from core.models import BaseModel


class SubscriptionStatus(models.TextChoices):
    """Subscription statuses as reported by Stripe."""

    INCOMPLETE = "incomplete", "Incomplete"
    INCOMPLETE_EXPIRED = "incomplete_expired", "Incomplete expired"
    TRIALING = "trialing", "Trialing"
    ACTIVE = "active", "Active"
    PAST_DUE = "past_due", "Past due"
    CANCELED = "canceled", "Canceled"
    UNPAID = "unpaid", "Unpaid"
    PAUSED = "paused", "Paused"


class Subscription(UUIDPrimaryKeyMixin, MetadataMixin, BaseModel):
    """
    A customer's subscription to a plan.

    Fields:
        customer: Subscribed billing customer
        name: Local name of the subscription ("default", "pro", ...)
        processor_id: Processor subscription ID (sub_xxx)
        processor_plan: Processor price / plan ID
        quantity: Seats or units
        status: Last status reported by the processor
        trial_ends_at: End of the trial, if any
        ends_at: When access ends (period end for scheduled cancellations)
        current_period_start / current_period_end: Current billing period
        application_fee_percent: Connect application fee
        stripe_account: Stripe Connect account
        metadata: Processor metadata
    """

    customer = models.ForeignKey(
        "billing.Customer",
        on_delete=models.CASCADE,
        related_name="subscriptions",
    )

    name = models.CharField(max_length=255)

    processor_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Processor subscription ID (sub_xxx)",
    )
    processor_plan = models.CharField(
        max_length=255,
        help_text="Processor price / plan ID",
    )
    quantity = models.PositiveIntegerField(default=1)

    status = models.CharField(
        max_length=30,
        choices=SubscriptionStatus.choices,
        db_index=True,
    )

    trial_ends_at = models.DateTimeField(null=True, blank=True)
    ends_at = models.DateTimeField(null=True, blank=True)
    current_period_start = models.DateTimeField(null=True, blank=True)
    current_period_end = models.DateTimeField(null=True, blank=True)

    application_fee_percent = models.DecimalField(
        max_digits=8,
        decimal_places=2,
        null=True,
        blank=True,
    )
    stripe_account = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.name} ({self.processor_id}, {self.status})"

    def incomplete(self) -> bool:
        return self.status == SubscriptionStatus.INCOMPLETE

    def past_due(self) -> bool:
        return self.status == SubscriptionStatus.PAST_DUE

    def canceled(self) -> bool:
        return self.ends_at is not None

    def on_trial(self) -> bool:
        return self.trial_ends_at is not None and self.trial_ends_at > timezone.now()

    def on_grace_period(self) -> bool:
        """Canceled, but the paid period has not ended yet."""
        return self.ends_at is not None and self.ends_at > timezone.now()

    def active(self) -> bool:
        """
        Whether the customer currently has access.

        Trialing and active subscriptions count, unless they have already
        ended.
        """
        if self.status not in (SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIALING):
            return False
        return self.ends_at is None or self.on_grace_period() or self.on_trial()
