"""Holiday calendars used to flag on-call days and count business days.

UK and US come from the ``holidays`` rule sets. Singapore has no stable rule
set for its lunar and religious holidays, so it is a static table loaded from
versioned JSON data (bundled in ``data/holidays_sg.json`` or injected with
``ONCALL_SG_HOLIDAYS_FILE``).
"""

from __future__ import annotations

import json
import logging
from datetime import date
from functools import lru_cache
from pathlib import Path
from typing import Any, Protocol

import holidays
from dateutil.easter import easter

from .errors import ConfigError

logger = logging.getLogger(__name__)

CALENDAR_CODES = ("UK", "US", "SG")
SG_TABLE_PATH = Path(__file__).parent / "data" / "holidays_sg.json"


class HolidayCalendar(Protocol):
    code: str

    def is_holiday(self, day: date) -> bool: ...


class RuleCalendar:
    """A calendar backed by a ``holidays`` country rule set."""

    def __init__(self, code: str, country: str, subdiv: str | None = None):
        self.code = code
        self._holidays = holidays.country_holidays(country, subdiv=subdiv)

    def is_holiday(self, day: date) -> bool:
        return day in self._holidays

    def __repr__(self) -> str:
        return f"RuleCalendar({self.code!r})"


class StaticHolidayCalendar:
    """A hand-maintained table of month/day holidays plus Easter-relative days."""

    def __init__(
        self,
        code: str,
        fixed: set[tuple[int, int]],
        easter_offsets: set[int] | None = None,
        version: str = "",
    ):
        self.code = code
        self.version = version
        self._fixed = fixed
        self._easter_offsets = easter_offsets or set()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StaticHolidayCalendar:
        try:
            fixed = set()
            for item in data.get("fixed", []):
                month, day = item["date"].split("-")
                fixed.add((int(month), int(day)))
            offsets = {int(item["offset"]) for item in data.get("easter_relative", [])}
            return cls(data["code"], fixed, offsets, str(data.get("version", "")))
        except (KeyError, ValueError, AttributeError, TypeError) as e:
            raise ConfigError(f"Invalid holiday table: {e}") from e

    @classmethod
    def from_file(cls, path: str | Path) -> StaticHolidayCalendar:
        path = Path(path)
        if not path.is_file():
            raise ConfigError(f"Holiday table not found at {path}")
        try:
            with open(path, "r") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Holiday table {path} is not valid JSON: {e}") from e
        calendar = cls.from_dict(data)
        logger.debug(f"Loaded {calendar.code} holiday table version {calendar.version} from {path}")
        return calendar

    def is_holiday(self, day: date) -> bool:
        if (day.month, day.day) in self._fixed:
            return True
        if self._easter_offsets:
            return (day - easter(day.year)).days in self._easter_offsets
        return False

    def __repr__(self) -> str:
        return f"StaticHolidayCalendar({self.code!r}, version={self.version!r})"


def build_calendars(sg_file: str | Path | None = None) -> dict[str, HolidayCalendar]:
    """Build the UK, US and SG calendars, in that order."""
    return {
        # England and Wales bank holidays
        "UK": RuleCalendar("UK", "GB", subdiv="ENG"),
        "US": RuleCalendar("US", "US"),
        "SG": StaticHolidayCalendar.from_file(sg_file or SG_TABLE_PATH),
    }


@lru_cache(maxsize=None)
def default_calendars(sg_file: str | None = None) -> dict[str, HolidayCalendar]:
    return build_calendars(sg_file)


def select_calendars(
    codes: tuple[str, ...] | list[str],
    calendars: dict[str, HolidayCalendar] | None = None,
) -> list[HolidayCalendar]:
    """Pick calendars by code, rejecting codes that are not known."""
    calendars = calendars if calendars is not None else default_calendars()
    unknown = [code for code in codes if code not in calendars]
    if unknown:
        raise ConfigError(
            f"Unknown holiday calendar(s): {', '.join(unknown)} "
            f"(known: {', '.join(calendars)})"
        )
    return [calendars[code] for code in codes]
