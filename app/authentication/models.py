"""
Authentication models.

This module defines the User model: email-based authentication plus the
few profile fields billing notices are rendered from.

Related files:
    - managers.py: Custom user manager for email-based creation
    - billing/models/customer.py: Billing customer owned by a User
"""

from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.db import models

from authentication.managers import UserManager


class User(AbstractBaseUser, PermissionsMixin):
    """
    Custom User model using email as the primary identifier.

    Fields:
        email: Primary identifier, unique, used for login and billing notices
        first_name / last_name: Name sent to the payment processor
        extra_billing_info: Free-form text printed on receipts (VAT id, address)
        preferred_locale: Language code used to render billing notices
        is_active: Whether the user account is active
        is_staff: Whether the user can access Django admin
        date_joined: When the user account was created
        updated_at: When the user record was last modified
    """

    email = models.EmailField(
        unique=True,
        db_index=True,
        max_length=254,
        help_text="User's email address (primary identifier)",
    )
    first_name = models.CharField(max_length=150, blank=True)
    last_name = models.CharField(max_length=150, blank=True)

    extra_billing_info = models.TextField(
        blank=True,
        default="",
        help_text="Extra information printed on receipts (tax id, address, ...)",
    )
    preferred_locale = models.CharField(
        max_length=10,
        blank=True,
        default="",
        help_text="Language code for billing emails. Blank uses LANGUAGE_CODE.",
    )

    is_active = models.BooleanField(
        default=True,
        help_text="Whether this user account is active. Deselect instead of deleting.",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether the user can access the admin site.",
    )

    date_joined = models.DateTimeField(
        auto_now_add=True,
        help_text="When the user account was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the user record was last modified",
    )

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"
        ordering = ["-date_joined"]

    def __str__(self):
        return self.email

    def get_full_name(self):
        """
        Return the user's full name.

        Returns:
            str: "first last" when set, otherwise the email address.
        """
        full_name = f"{self.first_name} {self.last_name}".strip()
        return full_name or self.email

    def get_short_name(self):
        """Return the first name, or the email local part if not set."""
        return self.first_name or self.email.split("@")[0]
