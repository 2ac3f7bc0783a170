"""
Working-hours resolution.

Turns a user's stored workday boundaries (minutes from midnight) into the
effective [start, end) window of one calendar date.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from app.models.schedule import WorkWindow
from app.models.user import WorkingHours
from app.utils.datetime_utils import ensure_utc, local_minutes_to_utc


def resolve_work_window(
    hours: WorkingHours,
    day: date,
    user_timezone: str,
    now: datetime,
    earliest_start: Optional[datetime] = None,
    end_reserve_minutes: int = 0,
) -> WorkWindow:
    """
    Effective working window of ``day`` in the user's timezone.

    Args:
        hours: Configured workday boundaries
        day: Target calendar date (user-local)
        user_timezone: IANA timezone name
        now: Current instant; the window never starts in the past
        earliest_start: Instant the window must not start before when it
            falls on ``day`` (a task's creation time)
        end_reserve_minutes: Minutes cut from the end of the day

    Returns:
        WorkWindow; ``is_empty`` when nothing of the day remains
    """
    tz = ZoneInfo(user_timezone)
    start = local_minutes_to_utc(day, hours.workday_start_min, user_timezone)
    end = local_minutes_to_utc(day, hours.workday_end_min, user_timezone)
    if end_reserve_minutes:
        end -= timedelta(minutes=end_reserve_minutes)

    now = ensure_utc(now)
    if now.astimezone(tz).date() == day and now > start:
        start = now

    if earliest_start is not None:
        earliest_start = ensure_utc(earliest_start)
        if earliest_start.astimezone(tz).date() == day and earliest_start > start:
            start = earliest_start

    return WorkWindow(start=start, end=end)
