"""
Time utility functions.
"""

from datetime import datetime, date, timezone


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


def utc_today() -> date:
    """Get current UTC date."""
    return utc_now().date()


def timestamp_millis() -> int:
    """Milliseconds since the epoch, used to prefix stored file names."""
    return int(utc_now().timestamp() * 1000)
