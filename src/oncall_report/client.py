"""PagerDuty schedule client."""

from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError

from . import __version__
from .config import DEFAULT_API_URL, DEFAULT_TIMEOUT
from .errors import FetchError, categorize_error
from .models import Schedule

logger = logging.getLogger(__name__)

ACCEPT_HEADER = "application/vnd.pagerduty+json;version=2"


class PagerDutyClient:
    """Fetches one schedule per call; safe to share across concurrent fetches."""

    def __init__(
        self,
        token: str,
        base_url: str = DEFAULT_API_URL,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url if base_url.endswith("/") else f"{base_url}/"
        headers = {
            "Accept": ACCEPT_HEADER,
            "Authorization": f"Token token={token}",
            "User-Agent": f"oncall-report/{__version__}",
        }
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.client.aclose()

    async def fetch_schedule(
        self, shift_id: str, start_date: str = "", end_date: str = ""
    ) -> Schedule:
        """Fetch the rendered schedule and current on-call of one shift.

        Args:
            shift_id: PagerDuty schedule ID.
            start_date: ``since`` query value, omitted when empty.
            end_date: ``until`` query value, omitted when empty.

        Raises:
            FetchError: on transport failure, timeout, a non-200 status or a
                body that does not decode into a schedule.
        """
        params = {"include_oncall": "true"}
        if start_date:
            params["since"] = start_date
        if end_date:
            params["until"] = end_date

        logger.debug(f"Request: GET schedules/{shift_id} params={params}")
        try:
            response = await self.client.get(f"schedules/{shift_id}", params=params)
        except httpx.HTTPError as e:
            raise FetchError(
                f"{type(e).__name__}: {e}",
                shift_id=shift_id,
                category=categorize_error(e)[0],
            ) from e
        logger.debug(f"Response: GET schedules/{shift_id} -> {response.status_code}")

        if response.status_code != 200:
            raise FetchError(
                f"{response.status_code} {response.reason_phrase}".strip(),
                shift_id=shift_id,
                status_code=response.status_code,
            )

        try:
            return Schedule.from_payload(response.json())
        except (ValueError, ValidationError, TypeError, AttributeError) as e:
            raise FetchError(
                f"Could not decode schedule {shift_id}: {e}",
                shift_id=shift_id,
                status_code=response.status_code,
                category="validation_error",
            ) from e
