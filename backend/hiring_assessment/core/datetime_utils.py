"""
Datetime utility functions and the injectable clock used by the session engine.
"""
from datetime import datetime, timezone
from typing import Optional, Protocol


def utc_now() -> datetime:
    """
    Return the current datetime in UTC timezone.

    Returns:
        A timezone-aware datetime object representing the current time in UTC.

    Example:
        >>> from hiring_assessment.core.datetime_utils import utc_now
        >>> current_time = utc_now()
        >>> current_time.tzinfo == timezone.utc
        True
    """
    return datetime.now(timezone.utc)


def ensure_timezone_aware(dt: Optional[datetime]) -> datetime:
    """
    Ensure a datetime object is timezone-aware (UTC).
    SQLite may return timezone-naive datetimes even when stored as timezone-aware.

    Args:
        dt: The datetime to ensure is timezone-aware

    Returns:
        A timezone-aware datetime object in UTC

    Raises:
        ValueError: If dt is None
    """
    if dt is None:
        raise ValueError("datetime cannot be None")
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


class Clock(Protocol):
    """Source of the current time for deadline checks."""

    def now(self) -> datetime:
        ...


class SystemClock:
    """Clock backed by the wall clock."""

    def now(self) -> datetime:
        return utc_now()


system_clock = SystemClock()


def get_clock() -> Clock:
    """
    FastAPI dependency returning the clock used by session endpoints.

    Tests override this dependency to simulate time passing.
    """
    return system_clock
