"""
HomeSync — Household state.

The in-memory source of truth for people, events, alarms and timers, plus
every mutating operation the UI or command layer may perform. Malformed
input is rejected here with HouseholdError and never enters the sets.
"""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from datetime import date, datetime
from typing import Iterable

from src.data.models import (
    Alarm,
    Event,
    Frequency,
    Person,
    Priority,
    RecurrenceRule,
    Timer,
    normalize_weekday,
)

logger = logging.getLogger(__name__)

_HHMM = re.compile(r"^(\d{1,2}):(\d{2})$")

_EVENT_FIELDS = {
    "title", "assignee_ids", "priority", "anchor_date",
    "recurrence", "reminder_at",
}
_ALARM_FIELDS = {"time", "label", "repeat_days", "enabled"}


class HouseholdError(Exception):
    """Raised when a mutation is rejected; the state is left unchanged."""


def normalize_time(text: str) -> str:
    """Validate a 24h time and return it zero-padded as HH:MM."""
    match = _HHMM.match(text.strip()) if isinstance(text, str) else None
    if match is None:
        raise HouseholdError(f"Invalid time {text!r}, expected HH:MM")
    hour, minute = int(match.group(1)), int(match.group(2))
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise HouseholdError(f"Time out of range: {text!r}")
    return f"{hour:02d}:{minute:02d}"


def normalize_weekdays(days: Iterable[str] | None) -> list[str]:
    """Validate weekday names, de-duplicate, keep first-seen order."""
    result: list[str] = []
    for name in days or []:
        try:
            day = normalize_weekday(name)
        except ValueError as exc:
            raise HouseholdError(str(exc)) from exc
        if day not in result:
            result.append(day)
    return result


def _max_id(items: Iterable) -> int:
    return max((item.id for item in items), default=0)


class Household:
    """Entity sets and their explicit edit operations."""

    def __init__(
        self,
        people: list[Person] | None = None,
        events: list[Event] | None = None,
        alarms: list[Alarm] | None = None,
        timers: list[Timer] | None = None,
        id_counters: dict[str, int] | None = None,
    ) -> None:
        self.people: list[Person] = list(people or [])
        self.events: list[Event] = list(events or [])
        self.alarms: list[Alarm] = list(alarms or [])
        self.timers: list[Timer] = list(timers or [])
        self.revision = 0   # bumped on every event-set change
        # Highest id ever issued per kind; ids are never reused after a delete.
        stored = id_counters or {}
        self.id_counters: dict[str, int] = {
            "person": max(stored.get("person", 0), _max_id(self.people)),
            "event": max(stored.get("event", 0), _max_id(self.events)),
            "alarm": max(stored.get("alarm", 0), _max_id(self.alarms)),
            "timer": max(stored.get("timer", 0), _max_id(self.timers)),
        }

    def _next_id(self, kind: str) -> int:
        return self.id_counters[kind] + 1

    def _claim_id(self, kind: str, item_id: int) -> None:
        self.id_counters[kind] = max(self.id_counters[kind], item_id)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_person(self, person_id: int) -> Person:
        return self._find(self.people, person_id, "person")

    def get_event(self, event_id: int) -> Event:
        return self._find(self.events, event_id, "event")

    def get_alarm(self, alarm_id: int) -> Alarm:
        return self._find(self.alarms, alarm_id, "alarm")

    def get_timer(self, timer_id: int) -> Timer:
        return self._find(self.timers, timer_id, "timer")

    @staticmethod
    def _find(items, item_id: int, kind: str):
        for item in items:
            if item.id == item_id:
                return item
        raise HouseholdError(f"No {kind} with id {item_id}")

    def resolve_assignees(self, refs: Iterable[int | str] | None) -> list[int]:
        """Map person ids or names (case-insensitive) to known person ids.

        Unknown references are dropped silently; the result may be empty.
        """
        by_id = {p.id: p.id for p in self.people}
        by_name = {p.name.strip().lower(): p.id for p in self.people}
        resolved: list[int] = []
        for ref in refs or []:
            if isinstance(ref, int):
                person_id = by_id.get(ref)
            else:
                person_id = by_name.get(str(ref).strip().lower())
            if person_id is None:
                logger.debug("Dropping unknown assignee reference %r", ref)
                continue
            if person_id not in resolved:
                resolved.append(person_id)
        return resolved

    # ------------------------------------------------------------------
    # People
    # ------------------------------------------------------------------

    def add_person(self, name: str, is_adult: bool = True) -> Person:
        if not name or not name.strip():
            raise HouseholdError("Person name must not be empty")
        person = Person(id=self._next_id("person"), name=name.strip(), is_adult=is_adult)
        self.people.append(person)
        self._claim_id("person", person.id)
        logger.info("Added person %d '%s'", person.id, person.name)
        return person

    def delete_person(self, person_id: int) -> None:
        """Remove a person and unassign them everywhere; events are kept."""
        person = self.get_person(person_id)
        if len(self.people) <= 1:
            raise HouseholdError("Cannot delete the last person")
        if person.is_adult and sum(1 for p in self.people if p.is_adult) <= 1:
            raise HouseholdError("Cannot delete the last remaining adult")

        self.people = [p for p in self.people if p.id != person_id]
        for event in self.events:
            if person_id in event.assignee_ids:
                event.assignee_ids = [i for i in event.assignee_ids if i != person_id]
        self.revision += 1
        logger.info("Deleted person %d '%s'", person.id, person.name)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def add_event(
        self,
        title: str,
        assignees: Iterable[int | str] | None = None,
        priority: Priority = Priority.MEDIUM,
        anchor_date: date | None = None,
        recurrence: RecurrenceRule | None = None,
        reminder_at: datetime | None = None,
    ) -> Event:
        event = Event(
            id=self._next_id("event"),
            title=title.strip() if title else "",
            assignee_ids=self.resolve_assignees(assignees),
            priority=priority,
            anchor_date=anchor_date,
            recurrence=recurrence,
            reminder_at=reminder_at,
        )
        self._validate_event(event)
        self.events.append(event)
        self._claim_id("event", event.id)
        self.revision += 1
        logger.info("Added event %d '%s' on %s", event.id, event.title, event.anchor_date)
        return event

    def edit_event(self, event_id: int, **changes) -> Event:
        """Replace the given fields of an event. Unknown fields are rejected."""
        current = self.get_event(event_id)
        unknown = set(changes) - _EVENT_FIELDS
        if unknown:
            raise HouseholdError(f"Cannot edit event fields: {sorted(unknown)}")

        if "assignee_ids" in changes:
            changes["assignee_ids"] = self.resolve_assignees(changes["assignee_ids"])
        updated = replace(current, **changes)
        self._validate_event(updated)

        self.events = [updated if e.id == event_id else e for e in self.events]
        self.revision += 1
        logger.info("Edited event %d (%s)", event_id, ", ".join(sorted(changes)))
        return updated

    def delete_event(self, event_id: int) -> None:
        self.get_event(event_id)
        self.events = [e for e in self.events if e.id != event_id]
        self.revision += 1
        logger.info("Deleted event %d", event_id)

    def toggle_event(self, event_id: int, now: datetime) -> Event:
        """Flip completion; completed_at is set on false→true and cleared on true→false."""
        event = self.get_event(event_id)
        event.completed = not event.completed
        event.completed_at = now if event.completed else None
        self.revision += 1
        logger.info("Event %d completed=%s", event_id, event.completed)
        return event

    @staticmethod
    def _validate_event(event: Event) -> None:
        if not event.title:
            raise HouseholdError("Event title must not be empty")
        rule = event.recurrence
        if rule is None:
            return
        if not isinstance(rule.frequency, Frequency):
            raise HouseholdError("Recurrence rule needs a frequency")
        if event.anchor_date is None:
            raise HouseholdError("A recurring event needs an anchor date")
        if rule.until is not None and rule.until < event.anchor_date:
            raise HouseholdError("Recurrence 'until' is before the anchor date")
        rule.by_weekday = normalize_weekdays(rule.by_weekday)

    # ------------------------------------------------------------------
    # Alarms
    # ------------------------------------------------------------------

    def add_alarm(
        self, time: str, label: str, repeat_days: Iterable[str] | None = None,
    ) -> Alarm:
        alarm = Alarm(
            id=self._next_id("alarm"),
            time=normalize_time(time),
            label=label,
            repeat_days=normalize_weekdays(repeat_days),
        )
        self.alarms.append(alarm)
        self._claim_id("alarm", alarm.id)
        logger.info("Added alarm %d '%s' at %s", alarm.id, alarm.label, alarm.time)
        return alarm

    def edit_alarm(self, alarm_id: int, **changes) -> Alarm:
        alarm = self.get_alarm(alarm_id)
        unknown = set(changes) - _ALARM_FIELDS
        if unknown:
            raise HouseholdError(f"Cannot edit alarm fields: {sorted(unknown)}")
        if "time" in changes:
            changes["time"] = normalize_time(changes["time"])
        if "repeat_days" in changes:
            changes["repeat_days"] = normalize_weekdays(changes["repeat_days"])
        for name, value in changes.items():
            setattr(alarm, name, value)
        logger.info("Edited alarm %d (%s)", alarm_id, ", ".join(sorted(changes)))
        return alarm

    def delete_alarm(self, alarm_id: int) -> None:
        self.get_alarm(alarm_id)
        self.alarms = [a for a in self.alarms if a.id != alarm_id]
        logger.info("Deleted alarm %d", alarm_id)

    def toggle_alarm(self, alarm_id: int) -> Alarm:
        alarm = self.get_alarm(alarm_id)
        alarm.enabled = not alarm.enabled
        if not alarm.enabled:
            alarm.ringing = False
        logger.info("Alarm %d enabled=%s", alarm_id, alarm.enabled)
        return alarm

    def dismiss_alarm(self, alarm_id: int) -> Alarm:
        """Stop ringing. One-time alarms are disabled so they do not re-arm."""
        alarm = self.get_alarm(alarm_id)
        alarm.ringing = False
        if alarm.is_one_time:
            alarm.enabled = False
        logger.info("Alarm %d dismissed (enabled=%s)", alarm_id, alarm.enabled)
        return alarm

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    def add_timer(self, label: str, duration_seconds: int) -> Timer:
        if duration_seconds <= 0:
            raise HouseholdError("Timer duration must be positive")
        timer = Timer.start(self._next_id("timer"), label, duration_seconds)
        self.timers.append(timer)
        self._claim_id("timer", timer.id)
        logger.info("Started timer %d '%s' for %ds", timer.id, label, duration_seconds)
        return timer

    def delete_timer(self, timer_id: int) -> None:
        self.get_timer(timer_id)
        self.timers = [t for t in self.timers if t.id != timer_id]
        logger.info("Deleted timer %d", timer_id)

    def dismiss_timer(self, timer_id: int) -> None:
        """Acknowledge a timer; it is removed from the set."""
        self.delete_timer(timer_id)
