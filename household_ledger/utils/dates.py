"""
Month and due-date helpers.

Months travel through the system as "YYYY-MM" strings and dates as ISO
"YYYY-MM-DD". Every generated due date goes through clamp_due_date so a
due day of 31 never produces an impossible date such as Feb 30.
"""

import calendar
import re
from datetime import date
from typing import Optional


MONTH_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"

_MONTH_RE = re.compile(MONTH_PATTERN)


def parse_month(month: str) -> tuple[int, int]:
    """Split a "YYYY-MM" string into (year, month)."""
    if not isinstance(month, str) or not _MONTH_RE.match(month):
        raise ValueError(f"Invalid month: {month!r} (expected YYYY-MM)")
    year, mon = month.split("-")
    return int(year), int(mon)


def format_month(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def month_of(day: date) -> str:
    """Return the "YYYY-MM" month a date belongs to."""
    return format_month(day.year, day.month)


def current_month(today: Optional[date] = None) -> str:
    return month_of(today or date.today())


def add_months(month: str, delta: int) -> str:
    """Shift a "YYYY-MM" month by delta months (negative allowed)."""
    year, mon = parse_month(month)
    index = year * 12 + (mon - 1) + delta
    return format_month(index // 12, index % 12 + 1)


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def clamp_due_date(month: str, due_day: int) -> date:
    """
    Build the due date for a month, clamping the day to the month length.

    finalDay = min(dueDay, daysInMonth(year, month))
    """
    year, mon = parse_month(month)
    if due_day < 1:
        raise ValueError(f"Due day must be at least 1, got {due_day}")
    final_day = min(due_day, days_in_month(year, mon))
    return date(year, mon, final_day)
