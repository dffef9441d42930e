"""
Decimal helpers for monetary values.

Amounts and rates are Decimal everywhere; NEVER float. Rounding happens only
where a value is stored or compared at display precision.
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation, getcontext
from typing import Any, Optional

# Set global decimal context for financial precision
getcontext().prec = 28

ZERO = Decimal('0')
CENTS = 2


def to_decimal(value: Any) -> Decimal:
    """
    Convert a number-like value to Decimal.
    
    Raises:
        ValueError: if the value is not numeric, NaN or infinite
    """
    if isinstance(value, bool) or value is None:
        raise ValueError(f"Not a numeric amount: {value!r}")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise ValueError(f"Not a numeric amount: {value!r}")
    if not result.is_finite():
        raise ValueError(f"Not a numeric amount: {value!r}")
    return result


def optional_decimal(value: Any) -> Optional[Decimal]:
    """Like to_decimal, but passes None through"""
    if value is None:
        return None
    return to_decimal(value)


def round_money(amount: Decimal, places: int = CENTS) -> Decimal:
    """Round to display precision (half-up)"""
    return amount.quantize(Decimal('0.1') ** places, rounding=ROUND_HALF_UP)
