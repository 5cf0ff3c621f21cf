"""Environment driven settings for oncall-report."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

from .errors import ConfigError

logger = logging.getLogger(__name__)

TOKEN_ENV = "PAGERDUTY_API_TOKEN"
DEFAULT_API_URL = "https://api.pagerduty.com/"
DEFAULT_TIMEOUT = 10.0


def parse_shift_map(raw: str | None, env_name: str = "ONCALL_SHIFTS") -> dict[str, str]:
    """Parse ``NAME=SCHEDULE_ID`` pairs separated by commas."""
    shifts: dict[str, str] = {}
    if not raw:
        return shifts
    for pair in raw.split(","):
        pair = pair.strip()
        if not pair:
            continue
        name, sep, schedule_id = pair.partition("=")
        name, schedule_id = name.strip(), schedule_id.strip()
        if not sep or not name or not schedule_id:
            raise ConfigError(f"{env_name}: expected NAME=SCHEDULE_ID, got {pair!r}")
        shifts[name] = schedule_id
    return shifts


def parse_list(raw: str | None) -> list[str]:
    """Parse a comma-separated list, dropping blanks."""
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass(frozen=True)
class Settings:
    api_url: str = DEFAULT_API_URL
    timeout: float = DEFAULT_TIMEOUT
    shifts: dict[str, str] = field(default_factory=dict)
    ops_shifts: dict[str, str] = field(default_factory=dict)
    team_user_ids: frozenset[str] = frozenset()
    business_day_calendars: tuple[str, ...] = ("UK",)
    sg_holidays_file: str | None = None

    def shift_id(self, shift: str) -> str:
        """Resolve a configured shift name to its schedule ID."""
        if not shift:
            raise ConfigError("Please specify a shift with --shift")
        try:
            return self.shifts[shift]
        except KeyError:
            known = ", ".join(sorted(self.shifts)) or "none configured"
            raise ConfigError(f"Unknown shift {shift!r} (known shifts: {known})") from None

    def require_team(self) -> frozenset[str]:
        """Return the team allow-list, which sprint and ops reports cannot run without."""
        if not self.team_user_ids:
            raise ConfigError(
                "Environment variable ONCALL_TEAM_USER_IDS must list the team's user IDs"
            )
        return self.team_user_ids


def get_log_level() -> str:
    """Log level from ONCALL_LOG_LEVEL, falling back to WARNING when unknown."""
    level = os.getenv("ONCALL_LOG_LEVEL", "WARNING").upper()
    if level not in logging.getLevelNamesMapping():
        logger.warning(f"Invalid ONCALL_LOG_LEVEL {level!r}, using WARNING")
        return "WARNING"
    return level


def load_settings() -> Settings:
    """Read settings from environment variables."""
    timeout_raw = os.getenv("PAGERDUTY_TIMEOUT", str(DEFAULT_TIMEOUT))
    try:
        timeout = float(timeout_raw)
    except ValueError:
        raise ConfigError(f"PAGERDUTY_TIMEOUT must be a number, got {timeout_raw!r}") from None

    calendars = tuple(c.upper() for c in parse_list(os.getenv("ONCALL_BUSINESS_DAY_CALENDARS")))

    settings = Settings(
        api_url=os.getenv("PAGERDUTY_API_URL", DEFAULT_API_URL),
        timeout=timeout,
        shifts=parse_shift_map(os.getenv("ONCALL_SHIFTS"), "ONCALL_SHIFTS"),
        ops_shifts=parse_shift_map(os.getenv("ONCALL_OPS_SHIFTS"), "ONCALL_OPS_SHIFTS"),
        team_user_ids=frozenset(parse_list(os.getenv("ONCALL_TEAM_USER_IDS"))),
        business_day_calendars=calendars or ("UK",),
        sg_holidays_file=os.getenv("ONCALL_SG_HOLIDAYS_FILE") or None,
    )
    logger.debug(
        f"Loaded settings: {len(settings.shifts)} shifts, {len(settings.ops_shifts)} ops shifts, "
        f"{len(settings.team_user_ids)} team members"
    )
    return settings


def get_api_token() -> str:
    """Get the API token from the environment."""
    token = os.getenv(TOKEN_ENV)
    if not token:
        raise ConfigError(f"Environment variable {TOKEN_ENV} must be set")
    return token
