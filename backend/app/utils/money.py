"""
Money helpers.

All storefront amounts are Decimal, quantized to 2 places with half-up
rounding at the points where a currency amount is produced (tax, totals).
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict

from app.core.config import settings

TWOPLACES = Decimal("0.01")

CURRENCY_SYMBOLS = {
    "PHP": "₱",
    "USD": "$",
    "EUR": "€",
}


def to_decimal(value: Any) -> Decimal:
    """Convert a number or numeric string to Decimal without float drift."""
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError("boolean is not a valid amount")
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {value!r}")


def to_money(value: Any) -> Decimal:
    """Quantize an amount to currency precision (2dp, half-up)."""
    return to_decimal(value).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def compute_totals(subtotal: Any, shipping_fee: Any, tax_rate: Any) -> Dict[str, Decimal]:
    """
    Compute the order summary amounts.

    tax = subtotal * tax_rate (rounded to currency precision)
    total = subtotal + shipping_fee + tax
    """
    subtotal = to_money(subtotal)
    shipping_fee = to_money(shipping_fee)
    tax = to_money(subtotal * to_decimal(tax_rate))
    total = to_money(subtotal + shipping_fee + tax)
    return {
        "subtotal": subtotal,
        "shipping_fee": shipping_fee,
        "tax": tax,
        "total": total,
    }


def format_currency(value: Any = 0, currency: str = None) -> str:
    """Format an amount for display, e.g. ₱1,234.50."""
    currency = currency or settings.CURRENCY
    try:
        amount = to_money(value)
    except ValueError:
        amount = to_money(0)
    symbol = CURRENCY_SYMBOLS.get(currency, f"{currency} ")
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(amount):,.2f}"
