# companion_lifecycle/utils/time_utils.py
"""
Timestamp helpers.

All stored timestamps are naive UTC, matching the DateTime columns.
"""

import calendar
from datetime import UTC, datetime


def utcnow() -> datetime:
    """Current time as naive UTC."""
    return datetime.now(UTC).replace(tzinfo=None)


def add_months(value: datetime, months: int) -> datetime:
    """
    Add calendar months, clamping the day to the target month's length.

    2024-01-31 + 1 month -> 2024-02-29
    """
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def add_years(value: datetime, years: int) -> datetime:
    return add_months(value, years * 12)


def format_deletion_date(value: datetime) -> str:
    """Human date for warning messages, e.g. '16 December 2026'."""
    return f"{value.day} {value.strftime('%B %Y')}"
