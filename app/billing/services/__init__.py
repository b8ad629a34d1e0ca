"""
Billing services.

- records: Persist processor results as local Customer / PaymentMethod /
  Charge / Subscription rows
- receipts: Render receipt PDFs for charges
"""
