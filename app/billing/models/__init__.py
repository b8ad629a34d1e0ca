"""
Billing domain models.

Local copies of the processor's objects:
- Customer: A user's account at the payment processor
- PaymentMethod: Saved cards, wallets and bank accounts
- Charge: One-off and invoice payments
- Subscription: Recurring plans, mirrored from the processor
"""

from billing.models.charge import Charge
from billing.models.customer import Customer, Processor
from billing.models.payment_method import PaymentMethod
from billing.models.subscription import Subscription, SubscriptionStatus

__all__ = [
    "Charge",
    "Customer",
    "PaymentMethod",
    "Processor",
    "Subscription",
    "SubscriptionStatus",
]
