"""
Money helpers.

Stored records carry two-decimal amounts, but every sum and comparison in
the engine happens on integer cents. Decimals only come back out at the
model and formatting boundaries.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable, Optional, Union


Number = Union[int, float, str, Decimal]

CENT = Decimal("0.01")

# Equality tolerance: one minor unit.
TOLERANCE_CENTS = 1


def to_decimal(value: Optional[Number]) -> Decimal:
    """Convert any numeric input to a Decimal rounded to cents."""
    if value is None or value == "":
        return Decimal("0.00")
    try:
        # str() keeps floats like 0.1 from dragging binary noise along
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Invalid money amount: {value!r}")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(value: Optional[Number]) -> int:
    return int(to_decimal(value) * 100)


def from_cents(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(CENT)


def sum_cents(values: Iterable[Optional[Number]]) -> int:
    return sum(to_cents(v) for v in values)


def covers(paid_cents: int, amount_cents: int) -> bool:
    """True when paid reaches the amount within the tolerance."""
    return paid_cents >= amount_cents - TOLERANCE_CENTS
