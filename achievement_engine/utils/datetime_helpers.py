"""
Standardized Date/Time Handling Utilities

Centralized functions for date/time operations so that:
1. All stored timestamps are timezone-aware UTC
2. Calendar questions (which day is "today", when does the peak season
   start) are answered in the engine timezone
3. Naive datetimes coming from callers are treated as UTC

CRITICAL RULES:
- Always store datetimes as UTC (use to_utc())
- Always derive calendar dates with local_date()
- Never mix naive and aware datetimes
"""

import logging
from datetime import date, datetime, time, timezone
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from achievement_engine.config import ENGINE_TIMEZONE, PEAK_SEASON_END, PEAK_SEASON_START, parse_month_day

logger = logging.getLogger(__name__)

# Injected wherever "now" matters so tests can pin it
Clock = Callable[[], datetime]


def now_utc() -> datetime:
    """
    Get current datetime in UTC (timezone-aware)

    Returns:
        Current datetime in UTC with timezone info
    """
    return datetime.now(timezone.utc)


def get_engine_timezone(tz_name: Optional[str] = None) -> ZoneInfo:
    """ZoneInfo for the configured engine timezone (or tz_name)"""
    return ZoneInfo(tz_name or ENGINE_TIMEZONE)


def to_utc(dt: datetime) -> datetime:
    """
    Convert a datetime to UTC

    Naive datetimes are assumed to already be UTC.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_local(dt: datetime, tz: Optional[ZoneInfo] = None) -> datetime:
    """Convert a datetime to the engine timezone"""
    return to_utc(dt).astimezone(tz or get_engine_timezone())


def local_date(dt: datetime, tz: Optional[ZoneInfo] = None) -> date:
    """Calendar date of dt in the engine timezone"""
    return to_local(dt, tz).date()


def start_of_local_day(dt: datetime, tz: Optional[ZoneInfo] = None) -> datetime:
    """
    Local midnight of the day containing dt, returned in UTC

    Example:
        >>> start_of_local_day(datetime(2025, 3, 10, 2, 0, tzinfo=timezone.utc), ZoneInfo("America/New_York"))
        datetime.datetime(2025, 3, 9, 5, 0, tzinfo=datetime.timezone.utc)
    """
    tz = tz or get_engine_timezone()
    midnight = datetime.combine(local_date(dt, tz), time.min, tzinfo=tz)
    return midnight.astimezone(timezone.utc)


def peak_season_window(
    dt: datetime,
    tz: Optional[ZoneInfo] = None,
    start: str = PEAK_SEASON_START,
    end: str = PEAK_SEASON_END,
) -> tuple[datetime, datetime]:
    """
    Peak filing season of dt's (local) year as a UTC [since, until] range

    Both ends are inclusive: since is local midnight of the start day,
    until is the last microsecond of the end day.
    """
    tz = tz or get_engine_timezone()
    year = local_date(dt, tz).year
    start_month, start_day = parse_month_day(start)
    end_month, end_day = parse_month_day(end)

    since = datetime.combine(date(year, start_month, start_day), time.min, tzinfo=tz)
    until = datetime.combine(date(year, end_month, end_day), time.max, tzinfo=tz)
    return since.astimezone(timezone.utc), until.astimezone(timezone.utc)
