"""
Integration tests for the oncall command line.

Each command runs end to end against an httpx.MockTransport standing in
for the PagerDuty API.
"""

import os

import httpx
import pytest
from typer.testing import CliRunner

from conftest import ALICE, BOB, CAROL, TEST_TOKEN, make_entry, make_payload
from oncall_report import __version__, cli
from oncall_report.cli import app
from oncall_report.client import PagerDutyClient

runner = CliRunner()

SRE_PAYLOAD = make_payload(
    [
        make_entry("2024-12-21T09:00:00Z", ALICE),
        make_entry("2024-12-23T09:00:00Z", ALICE),
        make_entry("2024-12-25T09:00:00Z", ALICE),
        make_entry("2024-12-27T09:00:00Z", BOB),
    ],
    users=[ALICE, BOB],
    oncall=ALICE,
)

DBA_PAYLOAD = make_payload(
    [
        make_entry("2024-12-23T09:00:00Z", CAROL),
        make_entry("2024-12-24T09:00:00Z", ALICE),
    ],
    users=[CAROL, ALICE],
    oncall=CAROL,
)


def row_cells(output: str, needle: str, column: int | None = None) -> list[str]:
    """Non-empty cells of the first table row with a cell equal to ``needle``."""
    for line in output.splitlines():
        cells = [c.strip() for c in line.split("│") if c.strip()]
        if column is None and needle in cells:
            return cells
        if column is not None and len(cells) > column and cells[column] == needle:
            return cells
    raise AssertionError(f"{needle!r} not found in output:\n{output}")


@pytest.fixture
def api(monkeypatch, mock_transport_factory):
    """Point the CLI at a mock API and return the list of captured requests."""
    captured = []

    def configure(payloads, statuses=None):
        transport = mock_transport_factory(payloads, statuses, captured)
        monkeypatch.setattr(
            cli, "make_client", lambda settings: PagerDutyClient(TEST_TOKEN, transport=transport)
        )
        return captured

    os.environ.update(
        {
            "PAGERDUTY_API_TOKEN": TEST_TOKEN,
            "ONCALL_SHIFTS": "SRE=PSRE,DBA=PDBA",
            "ONCALL_TEAM_USER_IDS": "PALICE1,PBOB001",
            "COLUMNS": "200",
        }
    )
    os.environ.pop("FORCE_COLOR", None)
    return configure


@pytest.mark.integration
class TestGlobalOptions:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"oncall {__version__}" in result.output

    def test_help_lists_commands(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ["schedule", "report", "now", "roster", "user", "sprint", "ops-roster"]:
            assert command in result.output


@pytest.mark.integration
class TestSingleShiftCommands:
    def test_schedule(self, api):
        captured = api({"PSRE": SRE_PAYLOAD})
        result = runner.invoke(
            app, ["schedule", "--shift", "SRE", "--start", "2024-12-21", "--end", "2024-12-28"]
        )
        assert result.exit_code == 0, result.output
        assert "HOLIDAY" in result.output
        assert row_cells(result.output, "2024-12-25 09:00") == [
            "2024-12-25 09:00",
            "Wednesday",
            "Alice Archer",
            "SRE",
            "UK, US, SG",
        ]
        assert captured[0].url.params["since"] == "2024-12-21"
        assert captured[0].url.params["until"] == "2024-12-28"

    def test_report(self, api):
        api({"PSRE": SRE_PAYLOAD})
        result = runner.invoke(
            app, ["report", "--shift", "SRE", "--start", "2024-12-21", "--end", "2024-12-28"]
        )
        assert result.exit_code == 0, result.output
        assert row_cells(result.output, "Alice Archer") == ["Alice Archer", "SRE", "1", "1", "3"]
        assert row_cells(result.output, "Bob Baker") == ["Bob Baker", "SRE", "0", "0", "1"]

    def test_missing_shift(self, api):
        api({})
        result = runner.invoke(app, ["schedule"])
        assert result.exit_code == 1
        assert "Please specify a shift with --shift" in result.output

    def test_unknown_shift(self, api):
        api({})
        result = runner.invoke(app, ["report", "--shift", "WEB"])
        assert result.exit_code == 1
        assert "Unknown shift 'WEB'" in result.output

    def test_bad_date(self, api):
        api({"PSRE": SRE_PAYLOAD})
        result = runner.invoke(app, ["schedule", "--shift", "SRE", "--start", "21/12/2024"])
        assert result.exit_code == 1
        assert "cannot parse '21/12/2024'" in result.output

    def test_fetch_failure_exits(self, api):
        api({}, statuses={"PSRE": 500})
        result = runner.invoke(app, ["schedule", "--shift", "SRE"])
        assert result.exit_code == 1
        assert "500 Internal Server Error" in result.output

    def test_undecodable_body_exits(self, api, monkeypatch):
        api({})
        transport = httpx.MockTransport(
            lambda request: httpx.Response(200, content=b'{"schedule": "\xff"}')
        )
        monkeypatch.setattr(
            cli, "make_client", lambda settings: PagerDutyClient(TEST_TOKEN, transport=transport)
        )
        result = runner.invoke(app, ["schedule", "--shift", "SRE"])
        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert "Could not decode schedule PSRE" in result.output

    def test_missing_token(self):
        os.environ["ONCALL_SHIFTS"] = "SRE=PSRE"
        result = runner.invoke(app, ["schedule", "--shift", "SRE"])
        assert result.exit_code == 1
        assert "PAGERDUTY_API_TOKEN must be set" in result.output


@pytest.mark.integration
class TestMultiShiftCommands:
    def test_now(self, api):
        api({"PSRE": SRE_PAYLOAD, "PDBA": DBA_PAYLOAD})
        result = runner.invoke(app, ["now"])
        assert result.exit_code == 0, result.output
        assert row_cells(result.output, "Carol Chen") == ["DBA", "Carol Chen"]
        assert row_cells(result.output, "Alice Archer") == ["SRE", "Alice Archer"]
        assert "Partial data" not in result.output

    def test_now_partial(self, api):
        api({"PSRE": SRE_PAYLOAD})
        result = runner.invoke(app, ["now"])
        assert result.exit_code == 0, result.output
        assert "Partial data: could not fetch DBA" in result.output
        assert row_cells(result.output, "Alice Archer") == ["SRE", "Alice Archer"]

    def test_roster_has_a_column_per_shift(self, api):
        api({"PSRE": SRE_PAYLOAD, "PDBA": DBA_PAYLOAD})
        result = runner.invoke(app, ["roster", "--start", "2024-12-21", "--end", "2024-12-28"])
        assert result.exit_code == 0, result.output
        assert row_cells(result.output, "START") == ["START", "DAY", "DBA", "SRE"]
        assert row_cells(result.output, "2024-12-23 09:00") == [
            "2024-12-23 09:00",
            "Monday",
            "Carol Chen",
            "Alice Archer",
        ]

    def test_user(self, api):
        api({"PSRE": SRE_PAYLOAD, "PDBA": DBA_PAYLOAD})
        result = runner.invoke(
            app, ["user", "--name", "alice", "--start", "2024-12-21", "--end", "2024-12-28"]
        )
        assert result.exit_code == 0, result.output
        assert "Schedule for Alice Archer" in result.output
        assert row_cells(result.output, "2024-12-24 09:00") == ["2024-12-24 09:00", "Tuesday", "DBA"]
        assert row_cells(result.output, "2024-12-25 09:00") == [
            "2024-12-25 09:00",
            "Wednesday",
            "SRE",
        ]

    def test_user_requires_name(self, api):
        api({})
        result = runner.invoke(app, ["user"])
        assert result.exit_code == 1
        assert "Please specify a user name" in result.output

    def test_sprint(self, api):
        api({"PSRE": SRE_PAYLOAD, "PDBA": DBA_PAYLOAD})
        result = runner.invoke(app, ["sprint", "--start", "2024-12-23", "--end", "2024-12-31"])
        assert result.exit_code == 0, result.output
        assert " # of business days: 5" in result.output
        # Alice: three SRE days and one DBA day; Carol is not on the team
        assert row_cells(result.output, "Alice Archer") == ["Alice Archer", "4", "1", "80.0", "1"]
        assert row_cells(result.output, "Bob Baker") == ["Bob Baker", "1", "4", "20.0", "5"]
        assert "Carol Chen" not in result.output

    def test_sprint_requires_team(self, api):
        api({})
        del os.environ["ONCALL_TEAM_USER_IDS"]
        result = runner.invoke(app, ["sprint"])
        assert result.exit_code == 1
        assert "ONCALL_TEAM_USER_IDS" in result.output

    def test_ops_roster(self, api):
        os.environ["ONCALL_OPS_SHIFTS"] = "OPS=POPS,BAU=PBAU"
        ops = make_payload(
            [
                make_entry("2024-12-23T09:00:00Z", ALICE),
                make_entry("2024-12-24T09:00:00Z", BOB),
            ]
        )
        bau = make_payload([make_entry("2024-12-24T09:00:00Z", ALICE)])
        api({"POPS": ops, "PBAU": bau})

        result = runner.invoke(app, ["ops-roster", "--start", "2024-12-23", "--end", "2024-12-25"])
        assert result.exit_code == 0, result.output
        assert row_cells(result.output, "DATE") == ["DATE", "DAY", "Alice Archer", "Bob Baker"]
        assert row_cells(result.output, "2024-12-24") == ["2024-12-24", "Tuesday", "BAU", "OPS"]
        assert row_cells(result.output, "USER") == [
            "USER",
            "# OPS",
            "% OPS",
            "# BAU",
            "% BAU",
            "# TACTICAL",
            "% TACTICAL",
        ]
        assert row_cells(result.output, "Bob Baker", column=0) == [
            "Bob Baker",
            "1",
            "50.0",
            "0",
            "0.0",
            "1",
            "33.3",
        ]

    def test_ops_roster_requires_ops_shifts(self, api):
        api({})
        result = runner.invoke(app, ["ops-roster"])
        assert result.exit_code == 1
        assert "ONCALL_OPS_SHIFTS" in result.output
