"""Shared date and money utilities."""

from household_ledger.utils.dates import (
    MONTH_PATTERN,
    add_months,
    clamp_due_date,
    current_month,
    days_in_month,
    format_month,
    month_of,
    parse_month,
)
from household_ledger.utils.ids import new_id
from household_ledger.utils.money import (
    TOLERANCE_CENTS,
    covers,
    from_cents,
    sum_cents,
    to_cents,
    to_decimal,
)

__all__ = [
    "MONTH_PATTERN",
    "TOLERANCE_CENTS",
    "add_months",
    "clamp_due_date",
    "covers",
    "current_month",
    "days_in_month",
    "format_month",
    "from_cents",
    "month_of",
    "new_id",
    "parse_month",
    "sum_cents",
    "to_cents",
    "to_decimal",
]
