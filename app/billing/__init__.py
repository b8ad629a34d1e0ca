"""
Billing app: Stripe-backed billable customers.

This app handles:
- Stripe customer creation and lookup for local users
- One-off charges and subscriptions, including SCA / 3-D Secure
- Payment methods, checkout and billing portal sessions
- Local copies of charges and subscriptions
- Transactional billing emails (receipt, refund, renewal, action required)

Related apps:
    - authentication: User model that owns billing customers
    - toolkit: EmailService used by the billing mailer

Usage:
    from billing.billable import StripeBillable

    customer = user.billing_customers.get(default=True)
    charge = StripeBillable(customer).charge(1500)
"""
