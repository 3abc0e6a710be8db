"""
Money Utilities - Safe Decimal operations for cart prices.

Wire payloads carry prices as JSON numbers; everything inside the
cart core works on Decimal so totals never pick up float drift.
"""
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Union

Number = Union[str, int, float, Decimal, None]

# Cart prices are kept to cents
MONEY_PRECISION = Decimal("0.01")


def to_decimal(value: Number) -> Decimal:
    """
    Convert any value to Decimal safely.

    Args:
        value: Value to convert (str, int, float, Decimal, or None)

    Returns:
        Decimal representation of the value, or Decimal("0") if None/invalid/non-finite
    """
    if value is None or isinstance(value, bool):
        return Decimal("0")

    try:
        if isinstance(value, Decimal):
            result = value
        elif isinstance(value, float):
            # Go through str() so 0.1 stays 0.1
            result = Decimal(str(value))
        else:
            result = Decimal(value)
    except (InvalidOperation, ValueError, TypeError):
        return Decimal("0")

    # JSON allows Infinity/NaN; neither can be quantized
    if not result.is_finite():
        return Decimal("0")
    return result


def to_optional_decimal(value: Number) -> Decimal | None:
    """Like to_decimal, but keeps None (absent previous price) as None."""
    if value is None:
        return None
    return to_decimal(value)


def round_money(value: Number) -> Decimal:
    """Round monetary value to cents."""
    return to_decimal(value).quantize(MONEY_PRECISION, rounding=ROUND_HALF_UP)


def to_wire(value: Number) -> int | float:
    """JSON number for a price: whole amounts stay integers."""
    decimal_value = to_decimal(value)
    if decimal_value == decimal_value.to_integral_value():
        return int(decimal_value)
    return float(decimal_value)


def multiply(value: Number, factor: Number) -> Decimal:
    """Safe multiplication of monetary value by a factor."""
    return to_decimal(value) * to_decimal(factor)


def percent(value: Number, percent_value: Number) -> Decimal:
    """Calculate percentage of a monetary value."""
    return multiply(value, to_decimal(percent_value) / Decimal(100))
