"""Schedule models decoded from the PagerDuty ``GET /schedules/{id}`` payload."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class UserRef(BaseModel):
    """An engineer; ``id`` is the stable key, ``name`` is for display and search."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    name: str = Field(default="", alias="summary")


class ScheduleEntry(BaseModel):
    """One rendered on-call slot.

    ``start`` and ``end`` stay as the wire strings; rendering parses them and
    records a fallback when they do not parse.
    """

    model_config = ConfigDict(frozen=True)

    start: str
    end: str
    user: UserRef


class Schedule(BaseModel):
    """The schedule of one shift over one ``[since, until)`` window."""

    model_config = ConfigDict(frozen=True)

    entries: tuple[ScheduleEntry, ...] = ()
    current_on_call: UserRef | None = None
    users: tuple[UserRef, ...] = ()

    @classmethod
    def from_payload(cls, payload: Any) -> Schedule:
        """Build a schedule from the nested wire shape.

        Raises ``pydantic.ValidationError`` when the shape is wrong.
        """
        if not isinstance(payload, dict):
            raise TypeError(f"expected a JSON object, got {type(payload).__name__}")
        schedule = payload.get("schedule") or {}
        final_schedule = schedule.get("final_schedule") or {}
        oncall = schedule.get("oncall") or {}

        users: list[dict[str, Any]] = []
        seen: set[str] = set()
        for user in schedule.get("users") or []:
            user_id = user.get("id") if isinstance(user, dict) else None
            if user_id in seen:
                continue
            seen.add(user_id)
            users.append(user)

        return cls.model_validate(
            {
                "entries": final_schedule.get("rendered_schedule_entries") or [],
                "current_on_call": oncall.get("user"),
                "users": users,
            }
        )
