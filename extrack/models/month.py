"""
Month Keys

A month is addressed everywhere by the literal string "YYYY-MM".

Date range rule, shared by every aggregate in the package:
- start = first day of the month at local midnight
- end   = first day of the following month at local midnight
- filters are always `>= start AND < end`

Stored transaction dates are naive local datetimes, so the boundaries
are naive local datetimes too.
"""

import re
from datetime import date, datetime

from extrack.errors import InputValidationError


MONTH_KEY_PATTERN = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")

# The month after the last valid key must still be a representable date
MIN_YEAR = 1
MAX_YEAR = 9998


def parse_month_key(month_key: str) -> tuple[int, int]:
    """Split a month key into (year, month), rejecting anything malformed."""
    if not isinstance(month_key, str):
        raise InputValidationError("Month must be formatted as YYYY-MM", field="month_key")
    match = MONTH_KEY_PATTERN.match(month_key)
    if match is None:
        raise InputValidationError(
            f"Invalid month '{month_key}'. Expected YYYY-MM",
            field="month_key",
        )
    year, month = int(match.group(1)), int(match.group(2))
    if not MIN_YEAR <= year <= MAX_YEAR:
        raise InputValidationError(
            f"Month '{month_key}' is out of range",
            field="month_key",
        )
    return year, month


def make_month_key(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def month_key_for(value: date) -> str:
    """Month key of a date or datetime."""
    return make_month_key(value.year, value.month)


def first_of_month(month_key: str) -> date:
    year, month = parse_month_key(month_key)
    return date(year, month, 1)


def shift_month_key(month_key: str, months: int) -> str:
    """Move a month key forward (positive) or backward (negative)."""
    year, month = parse_month_key(month_key)
    index = year * 12 + (month - 1) + months
    return make_month_key(index // 12, index % 12 + 1)


def month_date_range(month_key: str) -> tuple[datetime, datetime]:
    """
    Half-open [start, end) boundaries of a month.

    Returns:
        (start, end) as naive local datetimes
    """
    year, month = parse_month_key(month_key)
    next_year, next_month = (year + 1, 1) if month == 12 else (year, month + 1)
    return datetime(year, month, 1), datetime(next_year, next_month, 1)


def is_current_or_future(month_key: str, today: date) -> bool:
    """True when the month is not strictly before the month of `today`."""
    return first_of_month(month_key) >= date(today.year, today.month, 1)
