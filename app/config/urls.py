"""
URL configuration for the Django application.

The `urlpatterns` list routes URLs to views. This is the root URL configuration
that includes all app-specific routes.

URL Structure:
    /admin/                               - Django admin interface
    /billing/                             - Billing pages
        payments/{payment_intent_id}/     - SCA payment confirmation

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    # Admin
    path("admin/", admin.site.urls),
    # Billing
    path("billing/", include("billing.urls")),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Billing Admin"
admin.site.site_title = "Billing Admin Portal"
admin.site.index_title = "Customers, charges and subscriptions"
