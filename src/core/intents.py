"""
HomeSync — Structured Intents.

The command layer (a language-model parser, a form, a test) hands the
engine already-structured intents. Each action is its own pydantic model;
`Intent` is the tagged union of all of them, discriminated on `action`.

JSON example:
{
    "action": "create_event",
    "title": "Take out the trash",
    "assignees": ["Dad"],
    "priority": "Medium",
    "anchor_date": "2025-02-11",
    "recurrence": {"frequency": "weekly", "by_weekday": ["Tuesday"]},
    "reminder_at": "2025-02-11T19:00"
}
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import (
    BaseModel,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)

from src.core.household import HouseholdError, normalize_time, normalize_weekdays
from src.data.models import Frequency, Priority, RecurrenceRule

logger = logging.getLogger(__name__)


class IntentError(Exception):
    """Raised when an intent payload is malformed."""


class View(Enum):
    AGENT = "agent"
    CHORES = "chores"
    CALENDAR = "calendar"
    TIMERS = "timers"
    ALARMS = "alarms"


def _check_weekdays(days: list[str]) -> list[str]:
    try:
        return normalize_weekdays(days)
    except HouseholdError as exc:
        raise ValueError(str(exc)) from exc


def _check_time(value: str) -> str:
    try:
        return normalize_time(value)
    except HouseholdError as exc:
        raise ValueError(str(exc)) from exc


class RecurrenceSpec(BaseModel):
    frequency: Frequency
    by_weekday: list[str] = []
    until: date | None = None

    @field_validator("by_weekday")
    @classmethod
    def _weekdays(cls, v: list[str]) -> list[str]:
        return _check_weekdays(v)

    def to_rule(self) -> RecurrenceRule:
        return RecurrenceRule(
            frequency=self.frequency,
            by_weekday=list(self.by_weekday),
            until=self.until,
        )


class CreateEvent(BaseModel):
    action: Literal["create_event"] = "create_event"
    title: str = Field(min_length=1)
    assignees: list[int | str] = []
    priority: Priority = Priority.MEDIUM
    anchor_date: date | None = None
    recurrence: RecurrenceSpec | None = None
    reminder_at: datetime | None = None


class EditEvent(BaseModel):
    """Fields left as None keep their current value.

    Fields named in `clear` are reset to None instead.
    """

    action: Literal["edit_event"] = "edit_event"
    event_id: int
    title: str | None = Field(default=None, min_length=1)
    assignees: list[int | str] | None = None
    priority: Priority | None = None
    anchor_date: date | None = None
    recurrence: RecurrenceSpec | None = None
    reminder_at: datetime | None = None
    clear: list[Literal["anchor_date", "recurrence", "reminder_at"]] = []

    @model_validator(mode="after")
    def _set_or_clear(self) -> EditEvent:
        both = [name for name in self.clear if getattr(self, name) is not None]
        if both:
            raise ValueError(f"Fields both set and cleared: {both}")
        return self


class DeleteEvent(BaseModel):
    action: Literal["delete_event"] = "delete_event"
    event_id: int


class CreateAlarm(BaseModel):
    action: Literal["create_alarm"] = "create_alarm"
    time: str
    label: str = Field(min_length=1)
    repeat_days: list[str] = []

    @field_validator("time")
    @classmethod
    def _time(cls, v: str) -> str:
        return _check_time(v)

    @field_validator("repeat_days")
    @classmethod
    def _days(cls, v: list[str]) -> list[str]:
        return _check_weekdays(v)


class CreateTimer(BaseModel):
    action: Literal["create_timer"] = "create_timer"
    label: str = Field(min_length=1)
    duration_seconds: int = Field(gt=0)


class Navigate(BaseModel):
    action: Literal["navigate"] = "navigate"
    view: View
    month: str | None = None   # YYYY-MM, calendar view only

    @field_validator("month")
    @classmethod
    def _month(cls, v: str | None) -> str | None:
        if v is None:
            return v
        try:
            datetime.strptime(v, "%Y-%m")
        except ValueError as exc:
            raise ValueError(f"Invalid month {v!r}, expected YYYY-MM") from exc
        return v


Intent = Annotated[
    Union[CreateEvent, EditEvent, DeleteEvent, CreateAlarm, CreateTimer, Navigate],
    Field(discriminator="action"),
]

_INTENT_ADAPTER: TypeAdapter[Intent] = TypeAdapter(Intent)


def parse_intent(data: dict) -> Intent:
    """Validate a raw intent dict into its typed model.

    Raises IntentError for unknown actions or malformed fields.
    """
    if not isinstance(data, dict):
        raise IntentError(f"Intent must be an object, got {type(data).__name__}")
    try:
        intent = _INTENT_ADAPTER.validate_python(data)
    except ValidationError as exc:
        logger.warning("Rejected malformed intent %r: %s", data.get("action"), exc)
        raise IntentError(_summarize(exc)) from exc
    logger.debug("Parsed intent %s", intent.action)
    return intent


def _summarize(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        where = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{where}: {err.get('msg')}" if where else err.get("msg", ""))
    return "; ".join(parts)
