"""
Model mixins providing reusable functionality for Django models.

This module contains abstract mixin classes that can be combined with
BaseModel to add specific functionality. These are generic infrastructure
classes with no billing-specific logic.

Available Mixins:
    UUIDPrimaryKeyMixin: Use UUID as primary key
    MetadataMixin: Flexible JSON metadata storage

Usage:
    from core.models import BaseModel
    from core.model_mixins import MetadataMixin, UUIDPrimaryKeyMixin

    class Charge(UUIDPrimaryKeyMixin, MetadataMixin, BaseModel):
        amount = models.PositiveBigIntegerField()

Note:
    - Always list mixins before BaseModel in inheritance
    - Mixins are abstract and don't create database tables
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from django.db import models

if TYPE_CHECKING:
    from typing import Any


class UUIDPrimaryKeyMixin(models.Model):
    """
    Use UUID as primary key instead of auto-increment integer.

    Fields:
        id: UUIDField as primary key (auto-generated)

    Usage:
        class Customer(UUIDPrimaryKeyMixin, BaseModel):
            processor_id = models.CharField(max_length=255)

        customer = Customer.objects.create(processor_id="cus_123")
        print(customer.id)  # UUID like: 550e8400-e29b-41d4-a716-446655440000
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this record",
    )

    class Meta:
        abstract = True


class MetadataMixin(models.Model):
    """
    Flexible JSON metadata storage.

    Mirrors the free-form ``metadata`` hash that Stripe attaches to its
    objects, so it can be stored next to the synced record.

    Fields:
        metadata: JSONField for arbitrary key-value data

    Usage:
        charge.set_meta("order_id", "123")
        charge.get_meta("order_id")  # "123"
    """

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Flexible key-value metadata storage",
    )

    class Meta:
        abstract = True

    def get_meta(self, key: str, default: Any = None) -> Any:
        """Get metadata value by key, or ``default`` if missing."""
        return (self.metadata or {}).get(key, default)

    def set_meta(self, key: str, value: Any, save: bool = True) -> None:
        """
        Set metadata value and optionally save.

        Args:
            key: Metadata key
            value: Value to store (must be JSON-serializable)
            save: Whether to save the model (default True)
        """
        self.metadata = {**(self.metadata or {}), key: value}
        if save:
            self.save(update_fields=["metadata", "updated_at"])

    def has_meta(self, key: str) -> bool:
        """Check if metadata key exists."""
        return key in (self.metadata or {})
