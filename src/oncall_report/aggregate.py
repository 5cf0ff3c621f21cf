"""Fan-out schedule fetching and the merges behind every report.

Fetching returns one ``ShiftResult`` per shift. The merge functions are pure
and single-threaded: they only run once every fetch has completed, and they
impose their own ordering so the output never depends on which shift
answered first.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Protocol

from .calendars import HolidayCalendar
from .errors import FetchError, ParseError, categorize_error
from .models import Schedule, ScheduleEntry, UserRef
from .timeutil import (
    DATE_LAYOUT,
    convert_timestamp,
    estimate_story_points,
    holidays_of,
    is_weekend,
    weekday_name,
    weekday_of,
)

logger = logging.getLogger(__name__)

OPS_SHIFT = "OPS"
BAU = "BAU"


class ScheduleFetcher(Protocol):
    async def fetch_schedule(
        self, shift_id: str, start_date: str = "", end_date: str = ""
    ) -> Schedule: ...


@dataclass(frozen=True)
class ShiftResult:
    """The outcome of fetching one shift: a schedule or the error that prevented it."""

    shift: str
    shift_id: str
    schedule: Schedule | None = None
    error: FetchError | None = None

    @property
    def ok(self) -> bool:
        return self.schedule is not None


@dataclass(frozen=True)
class EntryView:
    """Display projection of one entry; ``parse_failed`` marks a raw-string fallback."""

    start: str
    weekday: int | None
    holidays: tuple[str, ...]
    parse_failed: bool = False

    @property
    def day(self) -> str:
        return weekday_name(self.weekday) if self.weekday is not None else ""


@dataclass(frozen=True)
class ScheduleRow:
    start: str
    day: str
    engineer: str
    shift: str
    holidays: str


@dataclass(frozen=True)
class UserReportRow:
    engineer: str
    shift: str
    weekends: int
    holidays: int
    oncall: int


@dataclass(frozen=True)
class NowRow:
    shift: str
    engineer: str


@dataclass(frozen=True)
class Roster:
    shifts: list[str]
    rows: list[tuple[str, str, dict[str, str]]]

    def table(self) -> list[list[str]]:
        return [[start, day] + [cells.get(s, "") for s in self.shifts] for start, day, cells in self.rows]


@dataclass(frozen=True)
class UserSchedule:
    name: str
    rows: list[tuple[str, str, str]]


@dataclass(frozen=True)
class SprintRow:
    engineer: str
    oncall_days: int
    off_shift_days: int
    tactical_percent: str
    story_points: int


@dataclass(frozen=True)
class OpsSummaryRow:
    engineer: str
    ops: int
    ops_percent: str
    bau: int
    bau_percent: str
    tactical: int
    tactical_percent: str


@dataclass(frozen=True)
class OpsRoster:
    engineers: list[str]
    rows: list[tuple[str, str, dict[str, str]]]
    summary: list[OpsSummaryRow] = field(default_factory=list)

    def table(self) -> list[list[str]]:
        return [
            [day_str, day] + [cells.get(e, "") for e in self.engineers]
            for day_str, day, cells in self.rows
        ]


# ---------------------------------------------------------------------------
# Fetching


async def _fetch_one(
    client: ScheduleFetcher, shift: str, shift_id: str, start: str, end: str
) -> ShiftResult:
    try:
        schedule = await client.fetch_schedule(shift_id, start, end)
    except FetchError as e:
        logger.warning(f"Failed to get schedule for {shift}: {e} ({e.category})")
        return ShiftResult(shift, shift_id, error=e)
    return ShiftResult(shift, shift_id, schedule=schedule)


async def fetch_shifts(
    client: ScheduleFetcher,
    shifts: Mapping[str, str],
    start: str = "",
    end: str = "",
    concurrent: bool = True,
) -> list[ShiftResult]:
    """Fetch every shift, concurrently or one after another, sorted by shift name."""
    names = sorted(shifts)
    if concurrent:
        outcomes = await asyncio.gather(
            *[_fetch_one(client, name, shifts[name], start, end) for name in names],
            return_exceptions=True,
        )
    else:
        outcomes = []
        for name in names:
            try:
                outcomes.append(await _fetch_one(client, name, shifts[name], start, end))
            except Exception as e:
                outcomes.append(e)

    results = []
    for name, outcome in zip(names, outcomes):
        if isinstance(outcome, BaseException):
            if not isinstance(outcome, Exception):
                raise outcome
            # Anything the client did not wrap is still only this shift's failure
            error = FetchError(
                f"{type(outcome).__name__}: {outcome}",
                shift_id=shifts[name],
                category=categorize_error(outcome)[0],
            )
            logger.warning(f"Failed to get schedule for {name}: {error} ({error.category})")
            outcome = ShiftResult(name, shifts[name], error=error)
        results.append(outcome)
    return results


def failed_shifts(results: Iterable[ShiftResult]) -> list[str]:
    return [r.shift for r in results if not r.ok]


def _successful(results: Iterable[ShiftResult]) -> list[tuple[str, Schedule]]:
    return [(r.shift, r.schedule) for r in results if r.schedule is not None]


# ---------------------------------------------------------------------------
# Entry projection


def entry_view(
    entry: ScheduleEntry,
    layout: str = "",
    calendars: dict[str, HolidayCalendar] | None = None,
) -> EntryView:
    """Format an entry's start, weekday and holidays, falling back to the raw start string."""
    try:
        return EntryView(
            start=convert_timestamp(entry.start, layout),
            weekday=weekday_of(entry.start),
            holidays=tuple(holidays_of(entry.start, calendars)),
        )
    except ParseError as e:
        logger.warning(f"Unparsable start time for {entry.user.name}: {e}; showing raw value")
        return EntryView(start=entry.start, weekday=None, holidays=(), parse_failed=True)


# ---------------------------------------------------------------------------
# Merges


def schedule_listing(
    schedule: Schedule, shift: str, calendars: dict[str, HolidayCalendar] | None = None
) -> list[ScheduleRow]:
    rows = []
    for entry in schedule.entries:
        view = entry_view(entry, calendars=calendars)
        rows.append(
            ScheduleRow(view.start, view.day, entry.user.name, shift, ", ".join(view.holidays))
        )
    return rows


def user_report(
    schedule: Schedule, shift: str, calendars: dict[str, HolidayCalendar] | None = None
) -> list[UserReportRow]:
    """Count on-call, weekend and holiday days per engineer, busiest first."""
    counters: dict[str, dict[str, int]] = defaultdict(
        lambda: {"oncall": 0, "weekends": 0, "holidays": 0}
    )
    for entry in schedule.entries:
        counts = counters[entry.user.name]
        counts["oncall"] += 1
        view = entry_view(entry, calendars=calendars)
        if view.weekday is not None and is_weekend(view.weekday):
            counts["weekends"] += 1
        if view.holidays:
            counts["holidays"] += 1

    rows = [
        UserReportRow(name, shift, c["weekends"], c["holidays"], c["oncall"])
        for name, c in counters.items()
    ]
    rows.sort(key=lambda r: (-r.oncall, r.engineer))
    return rows


def current_on_call(results: Iterable[ShiftResult]) -> list[NowRow]:
    rows = [
        NowRow(shift, schedule.current_on_call.name if schedule.current_on_call else "")
        for shift, schedule in _successful(results)
    ]
    rows.sort(key=lambda r: r.shift)
    return rows


def merge_roster(
    results: Iterable[ShiftResult], calendars: dict[str, HolidayCalendar] | None = None
) -> Roster:
    """One row per start time with a column per shift."""
    successful = _successful(results)
    by_start: dict[str, dict[str, str]] = {}
    days: dict[str, str] = {}
    for shift, schedule in successful:
        for entry in schedule.entries:
            view = entry_view(entry, calendars=calendars)
            days[view.start] = view.day
            by_start.setdefault(view.start, {})[shift] = entry.user.name

    shifts = sorted(shift for shift, _ in successful)
    rows = [(start, days[start], by_start[start]) for start in sorted(by_start)]
    return Roster(shifts=shifts, rows=rows)


def find_user(users: Iterable[UserRef], fragment: str) -> UserRef | None:
    """First user whose name contains ``fragment``, ignoring case."""
    needle = fragment.lower()
    for user in users:
        if needle in user.name.lower():
            return user
    return None


def lookup_user(
    results: Iterable[ShiftResult],
    fragment: str,
    calendars: dict[str, HolidayCalendar] | None = None,
) -> UserSchedule:
    """Collect one engineer's entries across shifts.

    Each shift resolves the fragment against its own user list; the display
    name is the first match in shift-name order.
    """
    name = ""
    rows = []
    for shift, schedule in sorted(_successful(results), key=lambda item: item[0]):
        user = find_user(schedule.users, fragment)
        if user is None:
            continue
        if not name:
            name = user.name
        elif user.name != name:
            logger.warning(f"{fragment!r} matches {user.name} in {shift} but {name} elsewhere")
        for entry in schedule.entries:
            if entry.user.id == user.id:
                view = entry_view(entry, calendars=calendars)
                rows.append((view.start, view.day, shift))
    rows.sort(key=lambda r: (r[0], r[2]))
    return UserSchedule(name=name, rows=rows)


def _percent(part: float, whole: float, digits: int = 1) -> str:
    if not whole:
        return f"{0:.{digits}f}"
    return f"{part * 100 / whole:.{digits}f}"


def sprint_points(
    results: Iterable[ShiftResult], allowed_ids: Iterable[str], sprint_days: int
) -> list[SprintRow]:
    """Suggested story points per team member from their on-call load."""
    allowed = set(allowed_ids)
    oncall: dict[str, int] = defaultdict(int)
    for _, schedule in _successful(results):
        for entry in schedule.entries:
            if entry.user.id not in allowed:
                continue
            oncall[entry.user.name] += 1

    rows = []
    for engineer in sorted(oncall):
        days = oncall[engineer]
        off_shift = max(sprint_days - days, 0)
        rows.append(
            SprintRow(
                engineer=engineer,
                oncall_days=days,
                off_shift_days=off_shift,
                tactical_percent=_percent(days, sprint_days),
                story_points=estimate_story_points(off_shift),
            )
        )
    return rows


def shift_category(shift: str) -> str:
    return OPS_SHIFT if shift == OPS_SHIFT else BAU


def ops_roster(
    results: Iterable[ShiftResult],
    allowed_ids: Iterable[str],
    calendars: dict[str, HolidayCalendar] | None = None,
) -> OpsRoster:
    """Date by engineer matrix of held shifts plus an OPS/BAU load summary."""
    allowed = set(allowed_ids)
    cells: dict[str, dict[str, list[str]]] = defaultdict(lambda: defaultdict(list))
    days: dict[str, str] = {}
    per_user: dict[str, dict[str, int]] = defaultdict(lambda: {OPS_SHIFT: 0, BAU: 0})
    totals = {OPS_SHIFT: 0, BAU: 0}

    for shift, schedule in sorted(_successful(results), key=lambda item: item[0]):
        category = shift_category(shift)
        for entry in schedule.entries:
            if entry.user.id not in allowed:
                continue
            name = entry.user.name
            per_user[name][category] += 1
            totals[category] += 1

            view = entry_view(entry, layout=DATE_LAYOUT, calendars=calendars)
            days[view.start] = view.day
            held = cells[view.start][name]
            if shift not in held:
                held.append(shift)

    engineers = sorted(per_user)
    rows = [
        (day_str, days[day_str], {name: ", ".join(held) for name, held in cells[day_str].items()})
        for day_str in sorted(cells)
    ]

    total = totals[OPS_SHIFT] + totals[BAU]
    summary = []
    for name in engineers:
        ops, bau = per_user[name][OPS_SHIFT], per_user[name][BAU]
        summary.append(
            OpsSummaryRow(
                engineer=name,
                ops=ops,
                ops_percent=_percent(ops, totals[OPS_SHIFT]),
                bau=bau,
                bau_percent=_percent(bau, totals[BAU]),
                tactical=ops + bau,
                tactical_percent=_percent(ops + bau, total),
            )
        )
    return OpsRoster(engineers=engineers, rows=rows, summary=summary)
