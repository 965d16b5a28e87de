"""Event date parsing and display formatting.

Events carry one or more ISO calendar dates. Two dates read as a range;
three or more read as a range labelled with the number of dates.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Iterable

NO_DATE_LABEL = "No date set"


def parse_event_dates(value: str | Iterable[str] | None) -> list[str]:
    """Accept a single date, a comma-separated string or a list."""
    if not value:
        return []
    if isinstance(value, str):
        if ',' in value:
            return [part.strip() for part in value.split(',') if part.strip()]
        return [value.strip()] if value.strip() else []
    return [str(item).strip() for item in value if item and str(item).strip()]


def to_date(value: str | date) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value.strip()[:10])


def normalize_event_dates(value: str | Iterable[str] | None) -> list[str]:
    """Parse and validate dates into ISO strings, keeping the given order.

    Raises ValueError for anything that is not a calendar date.
    """
    return [to_date(item).isoformat() for item in parse_event_dates(value)]


def _month_day(value: date) -> str:
    return f"{value:%b} {value.day}"


def _short(value: date) -> str:
    return f"{value:%b} {value.day}, {value.year}"


def _long(value: date) -> str:
    return f"{value:%B} {value.day}, {value.year}"


def format_event_dates(dates: str | Iterable[str] | None, style: str = 'long') -> str:
    parsed = [to_date(item) for item in parse_event_dates(dates)]
    if not parsed:
        return NO_DATE_LABEL
    if len(parsed) == 1:
        return _short(parsed[0]) if style == 'short' else _long(parsed[0])

    span = f"{_month_day(parsed[0])} - {_short(parsed[-1])}"
    if len(parsed) == 2:
        return span
    return f"{span} ({len(parsed)} dates)"


def first_event_date(dates) -> date | None:
    parsed = sorted(to_date(item) for item in parse_event_dates(dates))
    return parsed[0] if parsed else None


def last_event_date(dates) -> date | None:
    parsed = sorted(to_date(item) for item in parse_event_dates(dates))
    return parsed[-1] if parsed else None


def has_event_passed(dates, today: date | None = None) -> bool:
    """True when every date is before today."""
    parsed = [to_date(item) for item in parse_event_dates(dates)]
    if not parsed:
        return False
    today = today or date.today()
    return all(item < today for item in parsed)


def is_event_upcoming(dates, today: date | None = None) -> bool:
    """True when any date is today or later."""
    parsed = [to_date(item) for item in parse_event_dates(dates)]
    if not parsed:
        return False
    today = today or date.today()
    return any(item >= today for item in parsed)


__all__ = [
    "NO_DATE_LABEL",
    "parse_event_dates",
    "normalize_event_dates",
    "format_event_dates",
    "first_event_date",
    "last_event_date",
    "has_event_passed",
    "is_event_upcoming",
]
