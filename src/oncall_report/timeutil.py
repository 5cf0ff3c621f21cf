"""Timestamp, calendar and sprint-capacity helpers."""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from typing import Iterable

from .calendars import CALENDAR_CODES, HolidayCalendar, default_calendars, select_calendars
from .errors import ParseError

DEFAULT_LAYOUT = "%Y-%m-%d %H:%M"
DATE_LAYOUT = "%Y-%m-%d"

# Story points per sprint day: an ideal 5-day week is worth 7 points.
STORY_POINTS_PER_DAY = 1.4

WEEKDAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")

_RFC3339 = re.compile(
    r"(?P<base>\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<frac>\d+))?"
    r"(?P<tz>Z|[+-]\d{2}:\d{2})"
)
_DATE = re.compile(r"\d{4}-\d{2}-\d{2}")


def parse_timestamp(value: str) -> datetime:
    """Parse an RFC 3339 timestamp such as ``2006-01-02T15:04:05Z07:00``.

    The UTC offset of the string is kept on the returned datetime.
    """
    match = _RFC3339.fullmatch(value or "")
    if not match:
        raise ParseError(value, "RFC 3339 timestamp")
    frac = (match.group("frac") or "")[:6].ljust(6, "0")
    tz = match.group("tz")
    tz = "+00:00" if tz == "Z" else tz
    try:
        return datetime.fromisoformat(f"{match.group('base')}.{frac}{tz}")
    except ValueError:
        raise ParseError(value, "RFC 3339 timestamp") from None


def format_timestamp(value: datetime, layout: str = "") -> str:
    return value.strftime(layout or DEFAULT_LAYOUT)


def convert_timestamp(value: str, layout: str = "") -> str:
    """Re-render a wire timestamp with ``layout`` (default ``YYYY-MM-DD HH:MM``)."""
    return format_timestamp(parse_timestamp(value), layout)


def weekday_index(value: date) -> int:
    # 0=Sunday .. 6=Saturday
    return value.isoweekday() % 7


def weekday_of(value: str) -> int:
    """Day of week of a wire timestamp, 0=Sunday .. 6=Saturday."""
    return weekday_index(parse_timestamp(value))


def weekday_name(index: int) -> str:
    return WEEKDAY_NAMES[index]


def is_weekend(index: int) -> bool:
    return index in (0, 6)


def holidays_of(
    value: str, calendars: dict[str, HolidayCalendar] | None = None
) -> list[str]:
    """Codes of the calendars (UK, US, SG order) where the timestamp's local date is a holiday."""
    day = parse_timestamp(value).date()
    calendars = calendars if calendars is not None else default_calendars()
    codes = [code for code in CALENDAR_CODES if code in calendars]
    codes += [code for code in calendars if code not in CALENDAR_CODES]
    return [code for code in codes if calendars[code].is_holiday(day)]


def parse_date(value: str) -> date:
    """Parse a strict ``YYYY-MM-DD`` calendar date."""
    if not _DATE.fullmatch(value or ""):
        raise ParseError(value, "date (YYYY-MM-DD)")
    try:
        return datetime.strptime(value, DATE_LAYOUT).date()
    except ValueError:
        raise ParseError(value, "date (YYYY-MM-DD)") from None


def count_business_days(
    start: str,
    end: str,
    calendars: Iterable[str] = ("UK",),
    available: dict[str, HolidayCalendar] | None = None,
) -> int:
    """Count days in ``[start, end]`` that are neither weekends nor holidays.

    Only the calendars named in ``calendars`` are consulted. Returns 0 when
    ``end`` is before ``start``.
    """
    first, last = parse_date(start), parse_date(end)
    excluded = select_calendars(tuple(calendars), available)

    count = 0
    day = first
    while day <= last:
        if not is_weekend(weekday_index(day)) and not any(c.is_holiday(day) for c in excluded):
            count += 1
        day += timedelta(days=1)
    return count


def estimate_story_points(off_shift_days: int) -> int:
    """Suggest sprint story points for the days an engineer spends off shift.

    Story points are not time, but estimation needs a starting value: one
    tactical day in a week leaves four sprint days, roughly five points.
    """
    if off_shift_days <= 0:
        return 0
    return int(off_shift_days * STORY_POINTS_PER_DAY)
