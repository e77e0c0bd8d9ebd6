"""
Time-to-Expiry Utilities

Converts calendar expiry dates into annualized time fractions for the
pricing kernel.

All arithmetic works on whole UTC calendar days. Timezone-aware datetimes
are converted to UTC before the time of day is dropped; naive datetimes are
taken to be UTC already. Mixing local time with UTC shifts expiries by a day
around midnight, so nothing in the package calls date.today().

Usage:
    from options_journal.core.expiry import time_to_expiry, days_to_expiry

    t = time_to_expiry(date(2025, 1, 15), date(2025, 3, 21))   # 65 / 365
    expired = days_to_expiry(now, expiry) < 0
"""

import logging
from datetime import date, datetime, timezone
from typing import Union

import pandas as pd

from options_journal.core.exceptions import InvalidDateError

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Calendar days for annualization
DAYS_PER_YEAR = 365

# Roughly one hour, for callers that need a strictly positive time
MIN_TIME_TO_EXPIRY = 1.0 / DAYS_PER_YEAR / 24.0

DateLike = Union[date, datetime, str, pd.Timestamp]


# =============================================================================
# Date Conversion
# =============================================================================

def utc_today() -> date:
    """Return the current calendar day in UTC."""
    return datetime.now(timezone.utc).date()


def to_calendar_date(value: DateLike) -> date:
    """
    Normalize a date-like value to a UTC calendar day.

    Args:
        value: date, datetime, pandas Timestamp or ISO-8601 string
               ('2025-03-21' or '2025-03-21T16:00:00Z').

    Returns:
        The calendar date in UTC.

    Raises:
        InvalidDateError: If the value is missing or cannot be parsed.
    """
    if value is None:
        raise InvalidDateError("date cannot be None")

    # NaT is a datetime subclass, check it first
    if value is pd.NaT:
        raise InvalidDateError("date cannot be NaT")

    if isinstance(value, pd.Timestamp):
        value = value.to_pydatetime()

    # datetime is a subclass of date
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()

    if isinstance(value, date):
        return value

    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise InvalidDateError("date string cannot be empty")
        try:
            parsed = datetime.fromisoformat(text.replace('Z', '+00:00'))
        except ValueError as e:
            raise InvalidDateError(f"Malformed date: {value!r}") from e
        return to_calendar_date(parsed)

    raise InvalidDateError(
        f"Expected date, datetime or ISO string, got {type(value).__name__}"
    )


# =============================================================================
# Time to Expiry
# =============================================================================

def days_to_expiry(now: DateLike, expiry: DateLike) -> int:
    """
    Signed whole calendar days from now until expiry.

    Negative once the expiry day has passed. Use this, not time_to_expiry(),
    to decide whether an option has genuinely expired.
    """
    return (to_calendar_date(expiry) - to_calendar_date(now)).days


def time_to_expiry(now: DateLike, expiry: DateLike) -> float:
    """
    Annualized time to expiry, floored at zero.

    Formula:
        T = max(0, days_to_expiry / 365)

    Args:
        now: Valuation date
        expiry: Option expiry date

    Returns:
        Time to expiry in years, never negative.

    Example:
        >>> time_to_expiry(date(2025, 1, 1), date(2025, 3, 2))
        0.1643835616438356
    """
    days = days_to_expiry(now, expiry)
    if days <= 0:
        return 0.0
    return days / DAYS_PER_YEAR


__all__ = [
    'DAYS_PER_YEAR',
    'MIN_TIME_TO_EXPIRY',
    'DateLike',
    'utc_today',
    'to_calendar_date',
    'days_to_expiry',
    'time_to_expiry',
]
