"""
Helper functions for user-facing operations.

This module provides:
- Absolute URL building for links sent outside the site (emails, Stripe)
- Long localized dates for emails and receipts
- Data masking (email - PII handling in logs)

Usage:
    from toolkit.helpers import absolute_url, mask_email

    absolute_url("/billing/payments/pi_123/")  # "https://example.com/billing/payments/pi_123/"
    masked = mask_email("user@example.com")      # u***@example.com
"""

from __future__ import annotations

from datetime import date

from django.conf import settings
from django.utils import formats


def absolute_url(path: str = "/") -> str:
    """
    Join a site-relative path onto BILLING_BASE_URL.

    Args:
        path: Path starting with "/" (e.g., from reverse())

    Returns:
        Absolute URL

    Example:
        absolute_url()                 # "http://localhost:8000/"
        absolute_url(reverse("admin:index"))
    """
    base = settings.BILLING_BASE_URL.rstrip("/")
    return f"{base}/{path.lstrip('/')}"


def long_date(value: date) -> str:
    """
    Format a date in the active locale with the month spelled out.

    English DATE_FORMAT abbreviates some months ("Oct. 18, 2026"); swapping
    N for F gives "October 18, 2026" and leaves other locales unchanged.
    """
    return formats.date_format(
        value, formats.get_format("DATE_FORMAT").replace("N", "F")
    )


def mask_email(email: str) -> str:
    """
    Mask email for display.

    Keeps first character, domain, and TLD visible.

    Args:
        email: Email address to mask

    Returns:
        Masked email (e.g., "j***@example.com")

    Example:
        masked = mask_email("john.doe@example.com")  # "j***@example.com"
    """
    if not email or "@" not in email:
        return "***"

    local, domain = email.rsplit("@", 1)

    if len(local) > 1:
        masked_local = local[0] + "***"
    else:
        masked_local = "***"

    return f"{masked_local}@{domain}"
