"""
Amount formatting for billing notices and receipts.

Stripe amounts are integers in the currency's smallest unit. Zero-decimal
currencies (JPY, KRW, ...) are already whole units.
"""

from __future__ import annotations

from decimal import Decimal

ZERO_DECIMAL_CURRENCIES = frozenset(
    {
        "bif", "clp", "djf", "gnf", "jpy", "kmf", "krw", "mga",
        "pyg", "rwf", "ugx", "vnd", "vuv", "xaf", "xof", "xpf",
    }
)  # fmt: skip

CURRENCY_SYMBOLS = {
    "usd": "$",
    "cad": "CA$",
    "aud": "A$",
    "eur": "€",
    "gbp": "£",
    "jpy": "¥",
    "inr": "₹",
}


def to_decimal(amount: int, currency: str) -> Decimal:
    """Convert a smallest-unit amount to a Decimal in major units."""
    if currency.lower() in ZERO_DECIMAL_CURRENCIES:
        return Decimal(amount)
    return (Decimal(amount) / 100).quantize(Decimal("0.01"))


def format_amount(amount: int, currency: str = "usd") -> str:
    """
    Format an amount for display.

    Examples:
        format_amount(1500, "usd")  # "$15.00"
        format_amount(500, "jpy")   # "¥500"
        format_amount(1999, "chf")  # "19.99 CHF"
    """
    currency = (currency or "usd").lower()
    value = to_decimal(amount, currency)
    number = f"{value:,}"

    symbol = CURRENCY_SYMBOLS.get(currency)
    if symbol:
        return f"-{symbol}{number[1:]}" if value < 0 else f"{symbol}{number}"
    return f"{number} {currency.upper()}"
