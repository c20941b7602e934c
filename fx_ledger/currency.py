"""
Currency Support Module

Currency codes traded against Tanzanian shillings, the seed exchange rates,
and Decimal helpers for parsing and displaying amounts. NEVER uses float for
monetary values; floats are only accepted at the JSON boundary and converted
through their string form.
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation, getcontext
from typing import Any, Dict, Union
import re

from .errors import ValidationError

# Set global decimal context for financial precision
getcontext().prec = 28

TZS = "TZS"  # Home currency, always the "received" side
CNY = "CNY"
USDT = "USDT"

# Seed rates in TZS per unit of foreign currency
DEFAULT_RATES: Dict[str, Decimal] = {
    CNY: Decimal("376"),
    USDT: Decimal("2380"),
}
FALLBACK_RATE = Decimal("1")

_CENT = Decimal("0.01")

# Optional currency code on either side of the number
_AMOUNT_PATTERN = re.compile(
    r"^\s*(?:[A-Za-z]{3,4}\s+)?(?P<number>[^\s]+?)(?:\s+[A-Za-z]{3,4})?\s*$"
)


def normalize_currency(code: str) -> str:
    """Canonical (trimmed, upper-cased) form of a currency code"""
    if not code or not code.strip():
        raise ValidationError("Currency code cannot be empty", field="currency")
    return code.strip().upper()


def seed_rate(currency: str) -> Decimal:
    """Built-in rate for a currency, 1 for currencies we know nothing about"""
    return DEFAULT_RATES.get(normalize_currency(currency), FALLBACK_RATE)


def to_decimal(value: Union[Decimal, int, float, str, None]) -> Decimal:
    """
    Convert a number from any boundary representation to Decimal.

    Floats go through str() so 0.1 stays 0.1 instead of its binary expansion.
    """
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError("Boolean is not a valid amount")
    if isinstance(value, (int, float)):
        return decimal_from_string(str(value))
    return decimal_from_string(value)


def decimal_from_string(value: str) -> Decimal:
    """
    Safely convert string to Decimal, handling display formats

    Commas are always thousands separators here ("1,000,000.50"), matching
    how amounts are typed and shown throughout the ledger. A currency code
    may precede or follow the number ("TZS 2,380"). Scientific notation is
    accepted and expanded ("1e6" is 1000000).

    Args:
        value: String representation of number

    Returns:
        Decimal value

    Raises:
        ValueError: If string cannot be converted to valid Decimal
    """
    if not value or not isinstance(value, str):
        raise ValueError("Value must be a non-empty string")

    match = _AMOUNT_PATTERN.match(value.replace(',', ''))
    if not match:
        raise ValueError(f"Cannot convert '{value}' to Decimal")

    try:
        result = Decimal(match.group("number"))
        if result.is_finite() and result.as_tuple().exponent > 0:
            result = result.quantize(Decimal("1"))
    except InvalidOperation:
        raise ValueError(f"Cannot convert '{value}' to Decimal")
    if not result.is_finite():
        raise ValueError(f"Cannot convert '{value}' to Decimal")
    return result


def parse_amount_or_zero(value: Any) -> Decimal:
    """Lenient parse used for free-form settings input; garbage reads as 0"""
    try:
        return to_decimal(value)
    except ValueError:
        return Decimal("0")


def format_amount(value: Union[Decimal, int, float, str]) -> str:
    """
    Format for display: 2 decimals, thousands separators, sign preserved.

    >>> format_amount(Decimal("-1234567.891"))
    '-1,234,567.89'
    """
    amount = to_decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP)
    return f"{amount:,.2f}"
