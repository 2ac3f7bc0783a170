"""
Timezone-aware datetime utilities.

This module provides utilities for working with timezone-aware datetimes,
ensuring consistent handling across the application.
"""

import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

# UTC timezone constant
UTC = timezone.utc

_FRACTION_RE = re.compile(r"\.(\d{6})\d+")


def now_utc() -> datetime:
    """
    Get current UTC datetime (timezone-aware).

    Replaces datetime.utcnow() which is deprecated in Python 3.12+.

    Returns:
        datetime: Current UTC time with tzinfo set to UTC
    """
    return datetime.now(UTC)


def get_user_today(user_timezone: str, now: Optional[datetime] = None) -> date:
    """
    Get today's date in the user's timezone.

    Args:
        user_timezone: IANA timezone name (e.g., "Asia/Tokyo", "America/New_York")
        now: Reference instant (defaults to the current time)

    Returns:
        date: Today's date in the user's timezone

    Example:
        >>> get_user_today("Asia/Tokyo")  # When UTC is 2024-01-19 23:00
        date(2024, 1, 20)  # JST is 2024-01-20 08:00
    """
    tz = ZoneInfo(user_timezone)
    return (now or now_utc()).astimezone(tz).date()


def parse_iso_to_utc(iso_string: str) -> datetime:
    """
    Parse ISO datetime string to UTC timezone-aware datetime.

    Handles:
    - ISO strings with 'Z' suffix (UTC): "2024-01-20T09:00:00Z"
    - ISO strings with timezone offset: "2024-01-20T09:00:00+09:00"
    - Naive ISO strings (assumes UTC): "2024-01-20T09:00:00"
    - More than six fractional digits (Microsoft Graph): "2024-01-20T09:00:00.0000000"

    Raises:
        ValueError: If the string cannot be parsed
    """
    normalized = _FRACTION_RE.sub(r".\1", iso_string.replace("Z", "+00:00"))

    dt = datetime.fromisoformat(normalized)

    # If naive (no timezone info), assume UTC
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)

    return dt.astimezone(UTC)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Ensure datetime is timezone-aware and in UTC.

    Args:
        dt: datetime to convert (can be None, naive, or timezone-aware)

    Returns:
        Optional[datetime]: UTC timezone-aware datetime, or None if input is None
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        # Naive datetime - assume UTC
        return dt.replace(tzinfo=UTC)

    return dt.astimezone(UTC)


def to_naive_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Convert to a naive UTC datetime for SQLite DateTime columns."""
    if dt is None:
        return None
    return ensure_utc(dt).replace(tzinfo=None)


def local_minutes_to_utc(day: date, minutes: int, user_timezone: str) -> datetime:
    """
    Instant at ``minutes`` past local midnight of ``day`` in the user's timezone.

    Example:
        >>> local_minutes_to_utc(date(2024, 1, 20), 540, "Asia/Tokyo")
        datetime(2024, 1, 20, 0, 0, tzinfo=timezone.utc)  # 09:00 JST
    """
    tz = ZoneInfo(user_timezone)
    midnight = datetime.combine(day, time.min, tzinfo=tz)
    # Wall-clock arithmetic keeps 09:00 at 09:00 across DST changes
    local = (midnight.replace(tzinfo=None) + timedelta(minutes=minutes)).replace(tzinfo=tz)
    return local.astimezone(UTC)


def local_day_bounds(day: date, user_timezone: str) -> tuple[datetime, datetime]:
    """UTC [start, end) of a calendar day in the user's timezone."""
    tz = ZoneInfo(user_timezone)
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return start.astimezone(UTC), end.astimezone(UTC)


def format_local(dt: datetime, user_timezone: str, fmt: str = "%b %d, %Y %H:%M") -> str:
    """Render an instant in the user's timezone."""
    return ensure_utc(dt).astimezone(ZoneInfo(user_timezone)).strftime(fmt)
