"""Date manipulation utilities"""

import calendar
from datetime import date, datetime, timezone


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last day of a calendar month (inclusive)"""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
