"""
Money Utilities - Safe Decimal operations for monetary values.

Avoids float precision issues by using Decimal throughout.
"""
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Union

Numeric = Union[str, int, float, Decimal, None]

# Default precision for money operations (2 decimal places)
MONEY_PRECISION = Decimal("0.01")

DEFAULT_CURRENCY = "KES"


def to_decimal(value: Numeric) -> Decimal:
    """
    Convert any value to Decimal safely.

    Args:
        value: Value to convert (str, int, float, Decimal, or None)

    Returns:
        Decimal representation of the value, or Decimal("0") if None/invalid
    """
    if value is None:
        return Decimal("0")

    if isinstance(value, Decimal):
        return value

    try:
        if isinstance(value, float):
            # Go through str so 0.1 stays 0.1
            return Decimal(str(value))
        return Decimal(value)
    except (InvalidOperation, ValueError, TypeError):
        return Decimal("0")


def parse_money(value: Numeric) -> Decimal:
    """
    Strict conversion for prices coming from records or callers.

    Unlike to_decimal, missing, non-numeric and non-finite values raise
    ValueError instead of becoming zero.
    """
    if value is None or isinstance(value, bool):
        raise ValueError(f"price must be a number, got {value!r}")
    if isinstance(value, float):
        value = str(value)
    if isinstance(value, str):
        value = value.strip()
    try:
        result = value if isinstance(value, Decimal) else Decimal(value)
    except (InvalidOperation, ValueError, TypeError):
        raise ValueError(f"price must be a number, got {value!r}") from None
    if not result.is_finite():
        raise ValueError(f"price must be finite, got {value!r}")
    return result


def round_money(value: Numeric) -> Decimal:
    """Round a monetary value to cents."""
    return to_decimal(value).quantize(MONEY_PRECISION, rounding=ROUND_HALF_UP)


def to_float(value: Numeric) -> float:
    """
    Convert Decimal to float for JSON serialization.

    Use only at boundaries, not for internal calculations.
    """
    return float(to_decimal(value))


def multiply(value: Numeric, factor: Numeric) -> Decimal:
    """Safe multiplication of monetary value by a factor."""
    return to_decimal(value) * to_decimal(factor)


def divide(value: Numeric, divisor: Numeric) -> Decimal:
    """Safe division of monetary value; dividing by zero yields zero."""
    d = to_decimal(divisor)
    if d == 0:
        return Decimal("0")
    return to_decimal(value) / d


def percent(value: Numeric, percent_value: Numeric) -> Decimal:
    """Calculate percentage of a monetary value."""
    return multiply(value, divide(percent_value, 100))


def format_money(value: Numeric, currency: str = DEFAULT_CURRENCY) -> str:
    """
    Format a monetary value the way the storefront displays prices.

    >>> format_money(Decimal("1500"))
    'KES 1,500'
    >>> format_money(Decimal("99.5"))
    'KES 99.50'
    """
    rounded = round_money(value)
    if rounded == rounded.to_integral_value():
        return f"{currency} {int(rounded):,}"
    return f"{currency} {rounded:,.2f}"
