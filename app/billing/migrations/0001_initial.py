# Generated manually - Initial billing models

import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


def timestamps():
    return [
        (
            "created_at",
            models.DateTimeField(
                auto_now_add=True,
                db_index=True,
                help_text="Timestamp when this record was created",
            ),
        ),
        (
            "updated_at",
            models.DateTimeField(
                auto_now=True,
                help_text="Timestamp when this record was last modified",
            ),
        ),
    ]


def uuid_pk():
    return (
        "id",
        models.UUIDField(
            default=uuid.uuid4,
            editable=False,
            help_text="Unique identifier for this record",
            primary_key=True,
            serialize=False,
        ),
    )


def metadata():
    return (
        "metadata",
        models.JSONField(
            blank=True,
            default=dict,
            help_text="Flexible key-value metadata storage",
        ),
    )


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Customer",
            fields=[
                *timestamps(),
                uuid_pk(),
                (
                    "processor",
                    models.CharField(
                        choices=[("stripe", "Stripe")],
                        default="stripe",
                        help_text="Payment processor",
                        max_length=30,
                    ),
                ),
                (
                    "processor_id",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        default="",
                        help_text="Processor customer ID (cus_xxx)",
                        max_length=255,
                    ),
                ),
                (
                    "default",
                    models.BooleanField(
                        default=False,
                        help_text="Whether this is the owner's default customer",
                    ),
                ),
                (
                    "stripe_account",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Stripe Connect account ID (acct_xxx)",
                        max_length=255,
                    ),
                ),
                (
                    "owner",
                    models.ForeignKey(
                        help_text="User this customer belongs to",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="billing_customers",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.AddConstraint(
            model_name="customer",
            constraint=models.UniqueConstraint(
                condition=models.Q(("default", True)),
                fields=("owner",),
                name="billing_customer_one_default_per_owner",
            ),
        ),
        migrations.CreateModel(
            name="PaymentMethod",
            fields=[
                *timestamps(),
                uuid_pk(),
                (
                    "processor_id",
                    models.CharField(
                        db_index=True,
                        help_text="Processor payment method ID (pm_xxx)",
                        max_length=255,
                    ),
                ),
                ("default", models.BooleanField(default=False)),
                (
                    "payment_method_type",
                    models.CharField(blank=True, default="", max_length=50),
                ),
                ("brand", models.CharField(blank=True, default="", max_length=50)),
                ("last4", models.CharField(blank=True, default="", max_length=4)),
                ("exp_month", models.CharField(blank=True, default="", max_length=2)),
                ("exp_year", models.CharField(blank=True, default="", max_length=4)),
                ("email", models.EmailField(blank=True, default="", max_length=254)),
                ("bank", models.CharField(blank=True, default="", max_length=255)),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="payment_methods",
                        to="billing.customer",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.AddConstraint(
            model_name="paymentmethod",
            constraint=models.UniqueConstraint(
                fields=("customer", "processor_id"),
                name="billing_payment_method_unique_per_customer",
            ),
        ),
        migrations.AddConstraint(
            model_name="paymentmethod",
            constraint=models.UniqueConstraint(
                condition=models.Q(("default", True)),
                fields=("customer",),
                name="billing_payment_method_one_default_per_customer",
            ),
        ),
        migrations.CreateModel(
            name="Charge",
            fields=[
                *timestamps(),
                metadata(),
                uuid_pk(),
                (
                    "processor_id",
                    models.CharField(
                        help_text="Processor charge ID (ch_xxx)",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "amount",
                    models.PositiveBigIntegerField(
                        help_text="Amount in smallest currency unit (e.g., cents)",
                    ),
                ),
                ("amount_refunded", models.PositiveBigIntegerField(default=0)),
                ("currency", models.CharField(default="usd", max_length=3)),
                ("charged_at", models.DateTimeField(blank=True, null=True)),
                (
                    "payment_method_type",
                    models.CharField(blank=True, default="", max_length=50),
                ),
                ("brand", models.CharField(blank=True, default="", max_length=50)),
                ("last4", models.CharField(blank=True, default="", max_length=4)),
                ("exp_month", models.CharField(blank=True, default="", max_length=2)),
                ("exp_year", models.CharField(blank=True, default="", max_length=4)),
                ("bank", models.CharField(blank=True, default="", max_length=255)),
                (
                    "receipt_url",
                    models.URLField(blank=True, default="", max_length=500),
                ),
                (
                    "stripe_account",
                    models.CharField(blank=True, default="", max_length=255),
                ),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="charges",
                        to="billing.customer",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="Subscription",
            fields=[
                *timestamps(),
                metadata(),
                uuid_pk(),
                ("name", models.CharField(max_length=255)),
                (
                    "processor_id",
                    models.CharField(
                        help_text="Processor subscription ID (sub_xxx)",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "processor_plan",
                    models.CharField(
                        help_text="Processor price / plan ID",
                        max_length=255,
                    ),
                ),
                ("quantity", models.PositiveIntegerField(default=1)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("incomplete", "Incomplete"),
                            ("incomplete_expired", "Incomplete expired"),
                            ("trialing", "Trialing"),
                            ("active", "Active"),
                            ("past_due", "Past due"),
                            ("canceled", "Canceled"),
                            ("unpaid", "Unpaid"),
                            ("paused", "Paused"),
                        ],
                        db_index=True,
                        max_length=30,
                    ),
                ),
                ("trial_ends_at", models.DateTimeField(blank=True, null=True)),
                ("ends_at", models.DateTimeField(blank=True, null=True)),
                ("current_period_start", models.DateTimeField(blank=True, null=True)),
                ("current_period_end", models.DateTimeField(blank=True, null=True)),
                (
                    "application_fee_percent",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        max_digits=8,
                        null=True,
                    ),
                ),
                (
                    "stripe_account",
                    models.CharField(blank=True, default="", max_length=255),
                ),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="subscriptions",
                        to="billing.customer",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
    ]
