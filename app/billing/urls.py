"""
URL configuration for billing app.

URL Structure:
    /billing/payments/<payment_intent_id>/ - SCA payment confirmation page
"""

from django.urls import path

from billing import views

app_name = "billing"

urlpatterns = [
    path(
        "payments/<str:payment_intent_id>/",
        views.payment,
        name="payment",
    ),
]
