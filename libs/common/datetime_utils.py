"""Timezone-aware UTC helpers used for audit columns and reporting windows.

Usage:
    from libs.common.datetime_utils import utc_now

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
"""

from datetime import date, datetime, timedelta, timezone


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def days_ago(days: int) -> datetime:
    """Return the aware UTC instant ``days`` days before now."""
    return utc_now() - timedelta(days=days)


def start_of_day(day: date) -> datetime:
    """Return midnight UTC at the start of ``day``."""
    return datetime(day.year, day.month, day.day, tzinfo=timezone.utc)


def end_of_day(day: date) -> datetime:
    """Return the last representable instant of ``day`` in UTC."""
    return start_of_day(day) + timedelta(days=1) - timedelta(microseconds=1)
