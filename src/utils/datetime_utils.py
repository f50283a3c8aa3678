"""Datetime utilities for timezone-aware UTC timestamps and expiration windows.

Usage:
    from src.utils.datetime_utils import utc_now, utc_today

    # For SQLAlchemy Column defaults
    created_at = Column(DateTime, default=utc_now)

    # Batch expiration checks compare calendar dates
    expired = batch.expiration_date < utc_today()
"""

from datetime import date, datetime, timedelta, timezone
from typing import Optional, Tuple


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def utc_today() -> date:
    """Return the current UTC calendar date."""
    return utc_now().date()


def expiration_window(within_days: int, today: Optional[date] = None) -> Tuple[date, date]:
    """
    Compute the inclusive date window used for expiring-batch queries.

    Args:
        within_days: Number of days ahead to look (0 = only today)
        today: Reference date (defaults to utc_today())

    Returns:
        Tuple of (start, end) dates, both inclusive

    Raises:
        ValueError: If within_days is negative
    """
    if within_days < 0:
        raise ValueError("within_days must be >= 0")
    start = today or utc_today()
    return start, start + timedelta(days=within_days)


def to_date(value) -> Optional[date]:
    """Normalize a datetime/date/ISO string to a date (None passes through)."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def batch_timestamp(moment: Optional[datetime] = None) -> str:
    """Compact timestamp used in generated batch numbers (YYYYMMDDHHMMSS)."""
    return (moment or utc_now()).strftime("%Y%m%d%H%M%S")
