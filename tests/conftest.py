"""
Pytest configuration and fixtures for oncall-report tests.
"""

import os
from typing import Any, Callable

import httpx
import pytest

from oncall_report.calendars import default_calendars
from oncall_report.models import Schedule

TEST_TOKEN = "test-api-token"

ALICE = {"id": "PALICE1", "summary": "Alice Archer"}
BOB = {"id": "PBOB001", "summary": "Bob Baker"}
CAROL = {"id": "PCAROL1", "summary": "Carol Chen"}


def make_entry(start: str, user: dict, end: str | None = None) -> dict:
    return {"start": start, "end": end or start, "user": user}


def make_payload(
    entries: list[dict],
    users: list[dict] | None = None,
    oncall: dict | None = None,
) -> dict[str, Any]:
    """Build a ``GET /schedules/{id}`` response body."""
    schedule: dict[str, Any] = {
        "final_schedule": {"rendered_schedule_entries": entries},
        "users": users if users is not None else [],
    }
    if oncall is not None:
        schedule["oncall"] = {"user": oncall}
    return {"schedule": schedule}


@pytest.fixture
def calendars():
    """The bundled UK, US and SG calendars."""
    return default_calendars()


@pytest.fixture
def december_payload():
    """Alice: Saturday, Monday and Christmas Day; Bob: the Friday after."""
    return make_payload(
        [
            make_entry("2024-12-21T09:00:00Z", ALICE, "2024-12-22T09:00:00Z"),
            make_entry("2024-12-23T09:00:00Z", ALICE, "2024-12-24T09:00:00Z"),
            make_entry("2024-12-25T09:00:00Z", ALICE, "2024-12-26T09:00:00Z"),
            make_entry("2024-12-27T09:00:00Z", BOB, "2024-12-28T09:00:00Z"),
        ],
        users=[ALICE, BOB],
        oncall=ALICE,
    )


@pytest.fixture
def december_schedule(december_payload):
    return Schedule.from_payload(december_payload)


@pytest.fixture
def mock_transport_factory() -> Callable[..., httpx.MockTransport]:
    """Build an ``httpx.MockTransport`` answering ``schedules/{id}`` from a dict of payloads.

    IDs missing from ``payloads`` answer 404; IDs in ``statuses`` answer that status.
    Every request is appended to ``captured``.
    """

    def factory(
        payloads: dict[str, dict],
        statuses: dict[str, int] | None = None,
        captured: list[httpx.Request] | None = None,
    ) -> httpx.MockTransport:
        statuses = statuses or {}

        def handler(request: httpx.Request) -> httpx.Response:
            if captured is not None:
                captured.append(request)
            shift_id = request.url.path.rsplit("/", 1)[-1]
            if shift_id in statuses:
                return httpx.Response(statuses[shift_id], json={"error": {"message": "nope"}})
            if shift_id not in payloads:
                return httpx.Response(404, json={"error": {"message": "Not Found"}})
            return httpx.Response(200, json=payloads[shift_id])

        return httpx.MockTransport(handler)

    return factory


@pytest.fixture
def mock_env_token():
    """Mock environment with API token."""
    os.environ["PAGERDUTY_API_TOKEN"] = TEST_TOKEN
    yield TEST_TOKEN


@pytest.fixture(autouse=True)
def clean_environment():
    """Ensure clean environment for each test."""
    # Store original environment
    original_env = os.environ.copy()
    for key in list(os.environ):
        if key.startswith(("PAGERDUTY_", "ONCALL_")):
            del os.environ[key]

    yield

    # Restore original environment
    os.environ.clear()
    os.environ.update(original_env)
