from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from config import get_settings


@dataclass(frozen=True)
class Period:
    slug: str
    start: date
    end: date


def local_today() -> date:
    return datetime.now(ZoneInfo(get_settings().timezone)).date()


def month_start(d: date) -> date:
    return d.replace(day=1)


def month_end(d: date) -> date:
    first = month_start(d)
    if first.month == 12:
        next_month = first.replace(year=first.year + 1, month=1)
    else:
        next_month = first.replace(month=first.month + 1)
    return next_month - date.resolution


def add_months(d: date, count: int) -> date:
    month_index = (d.year * 12) + (d.month - 1) + count
    year = month_index // 12
    month = (month_index % 12) + 1
    return date(year, month, 1)


def current_month(today: Optional[date] = None) -> Period:
    today = today or local_today()
    return Period("this_month", month_start(today), month_end(today))


def trailing_months(count: int, *, today: Optional[date] = None) -> list[Period]:
    """Calendar months ending with the current one, oldest first."""
    today = today or local_today()
    periods = []
    for offset in range(count - 1, -1, -1):
        first = add_months(today, -offset)
        periods.append(Period(first.strftime("%Y-%m"), first, month_end(first)))
    return periods


def trailing_days(count: int, *, today: Optional[date] = None) -> list[date]:
    today = today or local_today()
    return [today - timedelta(days=offset) for offset in range(count - 1, -1, -1)]
