"""
HomeSync — UI-Agnostic Action Service.

Applies structured intents to the household and returns structured
response objects. Each UI adapter (Telegram, web, voice) calls this
service and renders the responses in its own way.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, assert_never

from src.core.calendar_index import parse_month
from src.core.household import HouseholdError
from src.core.intents import (
    CreateAlarm,
    CreateEvent,
    CreateTimer,
    DeleteEvent,
    EditEvent,
    IntentError,
    Navigate,
    View,
    parse_intent,
)

if TYPE_CHECKING:
    from src.core.intents import Intent
    from src.core.scheduler import Scheduler

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Response types
# ---------------------------------------------------------------------------


class ResponseKind(Enum):
    SUCCESS = "success"
    ERROR = "error"
    NAVIGATE = "navigate"


@dataclass
class ServiceResponse:
    kind: ResponseKind
    message: str


@dataclass
class SuccessResponse(ServiceResponse):
    entity_kind: str = ""    # "event" | "alarm" | "timer"
    entity_id: int | None = None


@dataclass
class ErrorResponse(ServiceResponse):
    pass


@dataclass
class NavigateResponse(ServiceResponse):
    view: View = View.AGENT
    month: str | None = None


# ---------------------------------------------------------------------------
# ActionService
# ---------------------------------------------------------------------------


class ActionService:
    """Turns intents into household mutations.

    Returns structured response objects — never sends messages directly.
    Rejected intents leave the household untouched.
    """

    def __init__(self, scheduler: Scheduler) -> None:
        self._scheduler = scheduler

    @property
    def _household(self):
        return self._scheduler.household

    def apply_raw(self, data: dict) -> ServiceResponse:
        """Validate a raw intent dict, then apply it."""
        try:
            intent = parse_intent(data)
        except IntentError as exc:
            return ErrorResponse(
                kind=ResponseKind.ERROR,
                message=f"Sorry, I couldn't understand that request: {exc}",
            )
        return self.apply(intent)

    def apply(self, intent: Intent) -> ServiceResponse:
        try:
            with self._scheduler.lock:
                return self._dispatch(intent)
        except HouseholdError as exc:
            logger.warning("Rejected %s: %s", intent.action, exc)
            return ErrorResponse(kind=ResponseKind.ERROR, message=str(exc))

    def _dispatch(self, intent: Intent) -> ServiceResponse:
        if isinstance(intent, CreateEvent):
            return self._create_event(intent)
        if isinstance(intent, EditEvent):
            return self._edit_event(intent)
        if isinstance(intent, DeleteEvent):
            return self._delete_event(intent)
        if isinstance(intent, CreateAlarm):
            return self._create_alarm(intent)
        if isinstance(intent, CreateTimer):
            return self._create_timer(intent)
        if isinstance(intent, Navigate):
            return self._navigate(intent)
        assert_never(intent)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _create_event(self, intent: CreateEvent) -> ServiceResponse:
        event = self._household.add_event(
            title=intent.title,
            assignees=intent.assignees,
            priority=intent.priority,
            anchor_date=intent.anchor_date,
            recurrence=intent.recurrence.to_rule() if intent.recurrence else None,
            reminder_at=intent.reminder_at,
        )
        when = f" on {event.anchor_date.isoformat()}" if event.anchor_date else ""
        return SuccessResponse(
            kind=ResponseKind.SUCCESS,
            message=f"Added '{event.title}'{when}.",
            entity_kind="event",
            entity_id=event.id,
        )

    def _edit_event(self, intent: EditEvent) -> ServiceResponse:
        changes: dict = {}
        if intent.title is not None:
            changes["title"] = intent.title
        if intent.assignees is not None:
            resolved = self._household.resolve_assignees(intent.assignees)
            # Nothing resolvable keeps the current assignees.
            if resolved:
                changes["assignee_ids"] = resolved
        if intent.priority is not None:
            changes["priority"] = intent.priority
        if intent.anchor_date is not None:
            changes["anchor_date"] = intent.anchor_date
        if intent.recurrence is not None:
            changes["recurrence"] = intent.recurrence.to_rule()
        if intent.reminder_at is not None:
            changes["reminder_at"] = intent.reminder_at
        for name in intent.clear:
            changes[name] = None

        event = self._household.edit_event(intent.event_id, **changes)
        return SuccessResponse(
            kind=ResponseKind.SUCCESS,
            message=f"Updated '{event.title}'.",
            entity_kind="event",
            entity_id=event.id,
        )

    def _delete_event(self, intent: DeleteEvent) -> ServiceResponse:
        title = self._household.get_event(intent.event_id).title
        self._household.delete_event(intent.event_id)
        return SuccessResponse(
            kind=ResponseKind.SUCCESS,
            message=f"Deleted '{title}'.",
            entity_kind="event",
            entity_id=intent.event_id,
        )

    def _create_alarm(self, intent: CreateAlarm) -> ServiceResponse:
        alarm = self._household.add_alarm(intent.time, intent.label, intent.repeat_days)
        days = ", ".join(alarm.repeat_days) if alarm.repeat_days else "once"
        return SuccessResponse(
            kind=ResponseKind.SUCCESS,
            message=f"Alarm '{alarm.label}' set for {alarm.time} ({days}).",
            entity_kind="alarm",
            entity_id=alarm.id,
        )

    def _create_timer(self, intent: CreateTimer) -> ServiceResponse:
        timer = self._household.add_timer(intent.label, intent.duration_seconds)
        return SuccessResponse(
            kind=ResponseKind.SUCCESS,
            message=f"Timer '{timer.label}' started for {format_duration(timer.duration_seconds)}.",
            entity_kind="timer",
            entity_id=timer.id,
        )

    def _navigate(self, intent: Navigate) -> ServiceResponse:
        if intent.month is not None:
            self._scheduler.calendar.navigate(parse_month(intent.month))
        return NavigateResponse(
            kind=ResponseKind.NAVIGATE,
            message=f"Opening {intent.view.value}.",
            view=intent.view,
            month=intent.month,
        )


def format_duration(seconds: int) -> str:
    """Render 90 as "1:30" and 3725 as "1:02:05"."""
    hours, rest = divmod(max(seconds, 0), 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"
