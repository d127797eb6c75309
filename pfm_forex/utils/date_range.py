"""Date helpers used by the query layer and the historical backfill."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Iterator


def parse_date(value: str | date) -> date:
    """Parse a date string in ISO format to :class:`date`."""

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(value, "%Y-%m-%d").date()


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def start_of_day(day: date) -> datetime:
    """Return midnight UTC for ``day``."""

    return datetime(day.year, day.month, day.day, tzinfo=timezone.utc)


def all_days(start: str | date, end: str | date) -> Iterator[date]:
    """Yield every calendar day in the inclusive window."""

    start_date = parse_date(start)
    end_date = parse_date(end)
    if start_date > end_date:
        raise ValueError("start date must not be after end date")

    current = start_date
    while current <= end_date:
        yield current
        current += timedelta(days=1)


def weekdays(start: str | date, end: str | date) -> list[date]:
    """Return the Monday-to-Friday days of the inclusive window in order."""

    return [day for day in all_days(start, end) if day.weekday() < 5]
