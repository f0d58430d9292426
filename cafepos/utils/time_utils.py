"""
Cafe wall-clock time.

Timestamps are stored as naive datetimes in the cafe's local zone
(``APP_TIMEZONE``) and reports bucket them by local calendar day, so every
"today" and every date range goes through here.
"""

import os
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from typing import Optional, Tuple

APP_TIMEZONE = os.getenv("APP_TIMEZONE", "Asia/Ho_Chi_Minh")

try:
    LOCAL_TZ = ZoneInfo(APP_TIMEZONE)
except (ZoneInfoNotFoundError, ValueError):
    # No tzdata for the configured zone: use the host zone
    LOCAL_TZ = datetime.now().astimezone().tzinfo


def now_local() -> datetime:
    return datetime.now(LOCAL_TZ)


def now_local_naive() -> datetime:
    """Current local wall-clock time without tzinfo, as stored in the DB."""
    return now_local().replace(tzinfo=None)


def today_local() -> date:
    return now_local().date()


def iso_local() -> str:
    return now_local().isoformat()


def isoformat_local(dt: Optional[datetime]) -> Optional[str]:
    """
    ISO string with the local offset for a stored timestamp.

    Naive values are taken to be local already; aware values are converted.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=LOCAL_TZ)
    else:
        dt = dt.astimezone(LOCAL_TZ)
    return dt.isoformat()


def local_day_bounds(start: Optional[date], end: Optional[date]) -> Tuple[Optional[datetime], Optional[datetime]]:
    """
    Half-open naive range [start 00:00, day after end 00:00) for filtering
    stored timestamps by whole local days. Either side may be None (open).
    """
    lower = datetime.combine(start, time.min) if start is not None else None
    upper = datetime.combine(end + timedelta(days=1), time.min) if end is not None else None
    return lower, upper
