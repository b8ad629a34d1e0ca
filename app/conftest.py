"""
Root pytest configuration for the Django project.

This module configures pytest-django and provides project-wide fixtures.
App-specific fixtures are defined in each app's tests/conftest.py.
"""

import os

import django
import pytest

# Ensure Django settings are configured before any tests run
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")


def pytest_configure():
    """Configure Django settings before tests run."""
    django.setup()

    from django.conf import settings

    # Use fast password hasher for tests (PBKDF2 is too slow with 870K iterations)
    settings.PASSWORD_HASHERS = [
        "django.contrib.auth.hashers.MD5PasswordHasher",
    ]

    # Plain HTTP test client requests must not be redirected to HTTPS
    settings.SECURE_SSL_REDIRECT = False

    # Never talk to Stripe or a broker from tests
    settings.STRIPE_SECRET_KEY = "sk_test_123"
    settings.STRIPE_PUBLISHABLE_KEY = "pk_test_123"
    settings.CELERY_TASK_ALWAYS_EAGER = True
    settings.CELERY_TASK_EAGER_PROPAGATES = True

    # Deliver billing notices inline so mail.outbox sees them
    settings.BILLING_SEND_EMAILS = True
    settings.BILLING_EMAILS_ASYNC = False
    settings.BILLING_BASE_URL = "https://billing.example.com"
    settings.BILLING_BUSINESS_NAME = "Example, Inc."
    settings.BILLING_SUPPORT_EMAIL = "support@example.com"


def pytest_collection_modifyitems(items):
    """
    Auto-mark tests based on filename patterns.

    Mapping:
    - test_integration.py → e2e (full customer billing workflows)
    - test_views.py, test_tasks.py, test_billable.py, etc. → integration
    - test_models.py, test_payment.py, test_stripe_adapter.py, etc. → unit
    - Unmatched files → integration (safe default for Django)

    Explicit markers on test functions/classes take precedence.
    """
    # Filename patterns for each category
    e2e_patterns = ["test_integration.py"]

    integration_patterns = [
        "test_views.py",
        "test_services.py",
        "test_tasks.py",
        "test_billable.py",
        "test_mailers.py",
        "test_records.py",
        "test_email.py",
    ]

    unit_patterns = [
        "test_models.py",
        "test_managers.py",
        "test_exceptions.py",
        "test_payment.py",
        "test_currency.py",
        "test_helpers.py",
        "test_stripe_adapter.py",
        "test_receipts.py",
    ]

    for item in items:
        # Skip if test already has unit/integration/e2e marker
        existing_markers = {m.name for m in item.iter_markers()}
        if existing_markers & {"unit", "integration", "e2e"}:
            continue

        filepath = str(item.fspath)
        filename = filepath.split("/")[-1]

        # Check patterns in priority order
        if any(pattern in filename for pattern in e2e_patterns):
            item.add_marker(pytest.mark.e2e)
        elif any(pattern in filename for pattern in integration_patterns):
            item.add_marker(pytest.mark.integration)
        elif any(pattern in filename for pattern in unit_patterns):
            item.add_marker(pytest.mark.unit)
        else:
            # Default: integration (safe for Django where most tests hit DB)
            item.add_marker(pytest.mark.integration)
