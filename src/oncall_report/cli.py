"""Command line interface: one command per report."""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from datetime import date, timedelta
from typing import Optional

import typer

from . import __version__
from .aggregate import (
    ShiftResult,
    current_on_call,
    failed_shifts,
    fetch_shifts,
    lookup_user,
    merge_roster,
    ops_roster,
    schedule_listing,
    sprint_points,
    user_report,
)
from .calendars import HolidayCalendar, default_calendars
from .client import PagerDutyClient
from .config import Settings, get_api_token, get_log_level, load_settings
from .errors import ConfigError, OnCallReportError
from .models import Schedule
from .render import TableStyle, print_line, print_table
from .timeutil import DATE_LAYOUT, count_business_days, parse_date

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="oncall",
    help="Information about oncall shift",
    add_completion=False,
    no_args_is_help=True,
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"oncall {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show version and exit"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output to stderr"),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else get_log_level(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


SHIFT_OPTION = typer.Option("", "--shift", help="Shift name from ONCALL_SHIFTS")
START_OPTION = typer.Option(None, "--start", help="start date, YYYY-MM-DD (default: today)")
END_OPTION = typer.Option(None, "--end", help="end date, YYYY-MM-DD (default: today + 7 days)")
STYLE_OPTION = typer.Option(TableStyle.rounded, "--table-style", help="rounded, box, colored")


@contextmanager
def cli_errors() -> Iterator[None]:
    """Turn library errors into a message on stderr and exit code 1."""
    try:
        yield
    except OnCallReportError as e:
        logger.debug("Command failed", exc_info=True)
        typer.secho(str(e), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from e


def make_client(settings: Settings) -> PagerDutyClient:
    return PagerDutyClient(get_api_token(), base_url=settings.api_url, timeout=settings.timeout)


def _date_range(start: str | None, end: str | None) -> tuple[str, str]:
    today = date.today()
    start = start or today.strftime(DATE_LAYOUT)
    end = end or (today + timedelta(days=7)).strftime(DATE_LAYOUT)
    return parse_date(start).strftime(DATE_LAYOUT), parse_date(end).strftime(DATE_LAYOUT)


def _calendars(settings: Settings) -> dict[str, HolidayCalendar]:
    return default_calendars(settings.sg_holidays_file)


async def _fetch_single(settings: Settings, shift_id: str, start: str, end: str) -> Schedule:
    async with make_client(settings) as client:
        return await client.fetch_schedule(shift_id, start, end)


async def _fetch_all(
    settings: Settings,
    shifts: Mapping[str, str],
    start: str = "",
    end: str = "",
    concurrent: bool = True,
) -> list[ShiftResult]:
    async with make_client(settings) as client:
        return await fetch_shifts(client, shifts, start, end, concurrent=concurrent)


def _report_partial(results: list[ShiftResult]) -> None:
    failed = failed_shifts(results)
    if failed:
        typer.secho(
            f"Partial data: could not fetch {', '.join(failed)}",
            fg=typer.colors.YELLOW,
            err=True,
        )


@app.command()
def schedule(
    shift: str = SHIFT_OPTION,
    start: Optional[str] = START_OPTION,
    end: Optional[str] = END_OPTION,
    table_style: TableStyle = STYLE_OPTION,
) -> None:
    """Oncall schedule information"""
    with cli_errors():
        settings = load_settings()
        shift_id = settings.shift_id(shift)
        since, until = _date_range(start, end)
        result = asyncio.run(_fetch_single(settings, shift_id, since, until))
        rows = schedule_listing(result, shift, _calendars(settings))
        print_table(
            ["START", "DAY", "ENGINEER", "SHIFT", "HOLIDAY"],
            [[r.start, r.day, r.engineer, r.shift, r.holidays] for r in rows],
            table_style,
        )


@app.command()
def report(
    shift: str = SHIFT_OPTION,
    start: Optional[str] = START_OPTION,
    end: Optional[str] = END_OPTION,
    table_style: TableStyle = STYLE_OPTION,
) -> None:
    """Generates report"""
    with cli_errors():
        settings = load_settings()
        shift_id = settings.shift_id(shift)
        since, until = _date_range(start, end)
        result = asyncio.run(_fetch_single(settings, shift_id, since, until))
        rows = user_report(result, shift, _calendars(settings))
        print_table(
            ["ENGINEER", "SHIFT", "WEEKEND", "HOLIDAY", "TOTAL"],
            [[r.engineer, r.shift, r.weekends, r.holidays, r.oncall] for r in rows],
            table_style,
        )


@app.command()
def now(table_style: TableStyle = STYLE_OPTION) -> None:
    """List currently oncall"""
    with cli_errors():
        settings = load_settings()
        results = asyncio.run(_fetch_all(settings, settings.shifts))
        _report_partial(results)
        print_table(
            ["SHIFT", "ENGINEER"],
            [[r.shift, r.engineer] for r in current_on_call(results)],
            table_style,
        )


@app.command()
def roster(
    start: Optional[str] = START_OPTION,
    end: Optional[str] = END_OPTION,
    table_style: TableStyle = STYLE_OPTION,
) -> None:
    """Shows roster for all known shifts"""
    with cli_errors():
        settings = load_settings()
        since, until = _date_range(start, end)
        results = asyncio.run(_fetch_all(settings, settings.shifts, since, until))
        _report_partial(results)
        merged = merge_roster(results, _calendars(settings))
        print_table(["START", "DAY"] + merged.shifts, merged.table(), table_style)


@app.command()
def user(
    start: Optional[str] = START_OPTION,
    end: Optional[str] = END_OPTION,
    table_style: TableStyle = STYLE_OPTION,
    name: str = typer.Option("", "--name", help="Firstname Lastname or Firstname or Lastname"),
) -> None:
    """Oncall schedule for user"""
    if not name.strip():
        typer.echo("Please specify a user name", err=True)
        raise typer.Exit(code=1)

    with cli_errors():
        settings = load_settings()
        since, until = _date_range(start, end)
        results = asyncio.run(_fetch_all(settings, settings.shifts, since, until))
        _report_partial(results)
        found = lookup_user(results, name.strip(), _calendars(settings))
        print_line(f"Schedule for {found.name or name}")
        print_table(["START", "DAY", "SHIFT"], found.rows, table_style)


@app.command()
def sprint(
    start: Optional[str] = START_OPTION,
    end: Optional[str] = END_OPTION,
    table_style: TableStyle = STYLE_OPTION,
) -> None:
    """Count and show story points for sprint between dates"""
    with cli_errors():
        settings = load_settings()
        team = settings.require_team()
        since, until = _date_range(start, end)
        calendars = _calendars(settings)
        sprint_days = count_business_days(
            since, until, settings.business_day_calendars, calendars
        )
        results = asyncio.run(
            _fetch_all(settings, settings.shifts, since, until, concurrent=False)
        )
        _report_partial(results)
        rows = sprint_points(results, team, sprint_days)
        print_line(f" # of business days: {sprint_days}")
        print_table(
            ["ENGINEER", "ONCALL DAYS", "OFF SHIFT DAYS", "TACTICAL %", "SUGGESTED SP"],
            [
                [r.engineer, r.oncall_days, r.off_shift_days, r.tactical_percent, r.story_points]
                for r in rows
            ],
            table_style,
        )


@app.command("ops-roster")
def ops_roster_command(
    start: Optional[str] = START_OPTION,
    end: Optional[str] = END_OPTION,
    table_style: TableStyle = STYLE_OPTION,
) -> None:
    """Ops roster with OPS/BAU load per engineer"""
    with cli_errors():
        settings = load_settings()
        team = settings.require_team()
        if not settings.ops_shifts:
            raise ConfigError("Environment variable ONCALL_OPS_SHIFTS must list the ops shifts")
        since, until = _date_range(start, end)
        results = asyncio.run(
            _fetch_all(settings, settings.ops_shifts, since, until, concurrent=False)
        )
        _report_partial(results)
        merged = ops_roster(results, team, _calendars(settings))
        print_table(["DATE", "DAY"] + merged.engineers, merged.table(), table_style)
        print_table(
            ["USER", "# OPS", "% OPS", "# BAU", "% BAU", "# TACTICAL", "% TACTICAL"],
            [
                [s.engineer, s.ops, s.ops_percent, s.bau, s.bau_percent, s.tactical, s.tactical_percent]
                for s in merged.summary
            ],
            table_style,
        )


def main() -> None:
    app()
