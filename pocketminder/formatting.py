# pocketminder/formatting.py
"""Money helpers: scale-2 Decimals and en-US style currency strings."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Union

CENT = Decimal("0.01")

# symbols as rendered by en-US currency formatting; others fall back to the code
CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "INR": "₹",
    "JPY": "¥",
    "KRW": "₩",
    "NGN": "₦",
    "CAD": "CA$",
    "AUD": "A$",
}

ZERO_DECIMAL_CURRENCIES = {"JPY", "KRW"}


def to_money(value: Union[Decimal, int, float, str]) -> Decimal:
    """Coerce to a Decimal with exactly two places (floats go through str first)."""
    if isinstance(value, float):
        value = repr(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def format_amount(value: Decimal) -> str:
    """Plain 2-place amount used in bill copy: Decimal('7') -> '7.00'."""
    return f"{to_money(value):.2f}"


def format_currency(value: Union[Decimal, int, float, str], currency: str = "USD") -> str:
    """
    Examples:
        format_currency(Decimal("1000"), "USD") -> "$1,000.00"
        format_currency(Decimal("12.5"), "EUR") -> "€12.50"
        format_currency(Decimal("1500"), "JPY") -> "¥1,500"
        format_currency(Decimal("10"), "CHF")   -> "CHF 10.00"
    """
    code = (currency or "USD").upper()
    amount = to_money(value)
    sign = "-" if amount < 0 else ""
    amount = abs(amount)

    if code in ZERO_DECIMAL_CURRENCIES:
        number = f"{amount.quantize(Decimal('1'), rounding=ROUND_HALF_UP):,}"
    else:
        number = f"{amount:,.2f}"

    symbol = CURRENCY_SYMBOLS.get(code)
    if symbol is None:
        return f"{sign}{code} {number}"
    return f"{sign}{symbol}{number}"


def signed_amount(value: Union[Decimal, int, float, str], txn_type: str) -> Decimal:
    """Expenses are stored negative, income positive, whatever sign the input had."""
    amount = abs(to_money(value))
    return -amount if str(getattr(txn_type, "value", txn_type)) == "expense" else amount
