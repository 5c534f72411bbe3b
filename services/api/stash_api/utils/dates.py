from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta
from typing import Dict, Optional, Tuple, Union

WEEKDAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


def parse_date(value: Union[str, date, datetime]) -> date:
    """Accepts ISO dates, ISO datetimes (with or without 'Z') and date objects."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def tx_date(tx: Dict) -> date:
    return parse_date(tx["date"])


def parse_datetime(value: Union[str, datetime]) -> datetime:
    if isinstance(value, datetime):
        return value
    raw = str(value).replace("Z", "+00:00")
    dt = datetime.fromisoformat(raw)
    return dt.replace(tzinfo=None)


def window_start(today: date, days: int) -> date:
    """First day of the `days`-day window that ends today (inclusive)."""
    return today - timedelta(days=days - 1)


def within_days(tx: Dict, today: date, days: int) -> bool:
    return window_start(today, days) <= tx_date(tx) <= today


def now_iso(now: Optional[datetime] = None) -> str:
    """Local wall-clock timestamp for stored `created_at` values."""
    return (now or datetime.now()).isoformat(timespec="seconds")


def month_bounds(today: date) -> Tuple[date, date]:
    last_day = calendar.monthrange(today.year, today.month)[1]
    return today.replace(day=1), today.replace(day=last_day)


def days_remaining_in_month(today: date) -> int:
    return month_bounds(today)[1].day - today.day


def months_back(today: date, months: int) -> date:
    year, month = today.year, today.month - months
    while month <= 0:
        month += 12
        year -= 1
    # clamp day for short months
    for day in (today.day, 30, 29, 28):
        try:
            return date(year, month, day)
        except ValueError:
            continue
    return date(year, month, 28)
