"""
Datetime utilities for consistent time handling across the application.

All lifecycle timestamps come from ``business_now()``, a single clock that
tests patch per service module. Wall-clock values for scheduling (slot
windows, booking ranges) are plain ``datetime.time`` values on a calendar
date; no timezone conversion is applied to them.
"""

import logging
from datetime import datetime, timezone, timedelta, date, time
from typing import Optional

from core.config import BUSINESS_UTC_OFFSET_HOURS

logger = logging.getLogger(__name__)

BUSINESS_TZ = timezone(timedelta(hours=BUSINESS_UTC_OFFSET_HOURS))

DAY_NAMES = ['Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday']


def business_now() -> datetime:
    """
    Get the current timezone-aware datetime in the business timezone.

    Returns:
        Current datetime with the configured fixed UTC offset
    """
    return datetime.now(BUSINESS_TZ)


def ensure_business_tz(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Ensure a datetime is timezone-aware in the business timezone.

    Naive datetimes are assumed to already be business time (SQLite returns
    naive values for timezone-aware columns).
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=BUSINESS_TZ)
    return dt.astimezone(BUSINESS_TZ)


def minutes_between(start: Optional[datetime], end: datetime) -> Optional[int]:
    """Whole minutes elapsed between two datetimes, or None when start is unknown."""
    if start is None:
        return None
    start_aware = ensure_business_tz(start)
    end_aware = ensure_business_tz(end)
    assert start_aware is not None and end_aware is not None
    return int((end_aware - start_aware).total_seconds() // 60)


def parse_date_string(date_str: str) -> date:
    """
    Parse a YYYY-MM-DD string into a date object.

    Raises:
        ValueError: If the string is not a valid ISO date
    """
    return datetime.strptime(date_str, '%Y-%m-%d').date()


def parse_time_string(time_str: str) -> time:
    """
    Parse "HH:MM" or "HH:MM:SS" into a time object.

    Raises:
        ValueError: If the string is not a valid time
    """
    fmt = '%H:%M:%S' if time_str.count(':') == 2 else '%H:%M'
    return datetime.strptime(time_str, fmt).time()


def format_time(time_obj: time) -> str:
    """Format a time as HH:MM."""
    return f"{time_obj.hour:02d}:{time_obj.minute:02d}"


def day_name(day_of_week: int) -> str:
    """Name of a weekday index (0=Monday)."""
    return DAY_NAMES[day_of_week]
