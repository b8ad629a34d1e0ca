"""
Billing admin configuration.

Registers billing models with the Django admin. Rows are copies of
processor objects, so processor fields are read-only.
"""

from django.contrib import admin

from billing.models import Charge, Customer, PaymentMethod, Subscription


class PaymentMethodInline(admin.TabularInline):
    model = PaymentMethod
    extra = 0
    fields = ["processor_id", "payment_method_type", "brand", "last4", "default"]
    readonly_fields = ["processor_id", "payment_method_type", "brand", "last4"]


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    """Admin configuration for billing customers."""

    list_display = ["id", "owner", "processor", "processor_id", "default", "created_at"]
    list_filter = ["processor", "default"]
    search_fields = ["id", "processor_id", "owner__email"]
    readonly_fields = ["id", "created_at", "updated_at"]
    raw_id_fields = ["owner"]
    inlines = [PaymentMethodInline]
    ordering = ["-created_at"]


@admin.register(Charge)
class ChargeAdmin(admin.ModelAdmin):
    """
    Admin configuration for Charge.

    Provides visibility into amounts, refunds and the card used.
    """

    list_display = [
        "processor_id",
        "customer",
        "amount",
        "amount_refunded",
        "currency",
        "brand",
        "last4",
        "charged_at",
    ]
    list_filter = ["currency", "payment_method_type"]
    search_fields = ["processor_id", "customer__processor_id", "customer__owner__email"]
    readonly_fields = ["id", "created_at", "updated_at"]
    ordering = ["-created_at"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "customer", "processor_id", "receipt_url"),
            },
        ),
        (
            "Amount",
            {
                "fields": ("amount", "amount_refunded", "currency", "charged_at"),
            },
        ),
        (
            "Payment Method",
            {
                "fields": (
                    "payment_method_type",
                    "brand",
                    "last4",
                    "exp_month",
                    "exp_year",
                    "bank",
                ),
            },
        ),
        (
            "Metadata",
            {
                "fields": ("metadata", "stripe_account", "created_at", "updated_at"),
                "classes": ("collapse",),
            },
        ),
    )


@admin.register(Subscription)
class SubscriptionAdmin(admin.ModelAdmin):
    """Admin configuration for Subscription."""

    list_display = [
        "processor_id",
        "customer",
        "name",
        "processor_plan",
        "quantity",
        "status",
        "trial_ends_at",
        "ends_at",
    ]
    list_filter = ["status", "name"]
    search_fields = ["processor_id", "processor_plan", "customer__owner__email"]
    readonly_fields = ["id", "created_at", "updated_at"]
    ordering = ["-created_at"]
