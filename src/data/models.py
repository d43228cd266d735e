"""
HomeSync — Data Models.

Plain dataclasses for everything the household engine schedules: people,
events (chores), alarms and timers. All dates and times are naive local
wall-clock values.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum

WEEKDAYS = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)


def weekday_name(day: date) -> str:
    """Return the English weekday name for a date (locale independent)."""
    return WEEKDAYS[day.weekday()]


def normalize_weekday(name: str) -> str:
    """Map "monday" / " MONDAY " to "Monday".

    Raises ValueError for anything that is not a weekday name.
    """
    candidate = name.strip().capitalize()
    if candidate not in WEEKDAYS:
        raise ValueError(f"Unknown weekday: {name!r}")
    return candidate


class Priority(Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"

    @property
    def rank(self) -> int:
        """Sort key for display ordering (High first)."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {Priority.HIGH: 0, Priority.MEDIUM: 1, Priority.LOW: 2}


class Frequency(Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


@dataclass
class Person:
    """A household member that events can be assigned to."""

    id: int
    name: str
    is_adult: bool = True

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "is_adult": self.is_adult}

    @classmethod
    def from_dict(cls, data: dict) -> Person:
        return cls(id=data["id"], name=data["name"], is_adult=data.get("is_adult", True))


@dataclass
class RecurrenceRule:
    """How an event repeats after its anchor date.

    by_weekday only matters for weekly rules; an empty list means
    "the weekday of the anchor date".
    """

    frequency: Frequency
    by_weekday: list[str] = field(default_factory=list)
    until: date | None = None

    def weekdays_for(self, anchor: date) -> set[str]:
        if self.by_weekday:
            return set(self.by_weekday)
        return {weekday_name(anchor)}

    def to_dict(self) -> dict:
        return {
            "frequency": self.frequency.value,
            "by_weekday": list(self.by_weekday),
            "until": self.until.isoformat() if self.until else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> RecurrenceRule:
        until = data.get("until")
        return cls(
            frequency=Frequency(data["frequency"]),
            by_weekday=list(data.get("by_weekday") or []),
            until=date.fromisoformat(until) if until else None,
        )


@dataclass
class Event:
    """A schedulable household item (a chore, an appointment, a movie night).

    anchor_date is the first (or only) occurrence. Expanded occurrences are
    shallow copies with anchor_date rewritten to the occurrence date.
    """

    id: int
    title: str
    assignee_ids: list[int] = field(default_factory=list)
    priority: Priority = Priority.MEDIUM
    anchor_date: date | None = None
    recurrence: RecurrenceRule | None = None
    reminder_at: datetime | None = None   # one-shot reminder, naive local
    completed: bool = False
    completed_at: datetime | None = None

    @property
    def is_recurring(self) -> bool:
        return self.recurrence is not None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "assignee_ids": list(self.assignee_ids),
            "priority": self.priority.value,
            "anchor_date": self.anchor_date.isoformat() if self.anchor_date else None,
            "recurrence": self.recurrence.to_dict() if self.recurrence else None,
            "reminder_at": self.reminder_at.isoformat() if self.reminder_at else None,
            "completed": self.completed,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Event:
        anchor = data.get("anchor_date")
        recurrence = data.get("recurrence")
        reminder = data.get("reminder_at")
        completed_at = data.get("completed_at")
        return cls(
            id=data["id"],
            title=data["title"],
            assignee_ids=list(data.get("assignee_ids") or []),
            priority=Priority(data.get("priority", Priority.MEDIUM.value)),
            anchor_date=date.fromisoformat(anchor) if anchor else None,
            recurrence=RecurrenceRule.from_dict(recurrence) if recurrence else None,
            reminder_at=datetime.fromisoformat(reminder) if reminder else None,
            completed=bool(data.get("completed", False)),
            completed_at=datetime.fromisoformat(completed_at) if completed_at else None,
        )


@dataclass
class Alarm:
    """A wall-clock alarm. Empty repeat_days means one-time."""

    id: int
    time: str                 # HH:MM, 24h
    label: str
    enabled: bool = True
    ringing: bool = False     # transient, never persisted as True
    repeat_days: list[str] = field(default_factory=list)

    @property
    def is_one_time(self) -> bool:
        return not self.repeat_days

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "time": self.time,
            "label": self.label,
            "enabled": self.enabled,
            "repeat_days": list(self.repeat_days),
        }

    @classmethod
    def from_dict(cls, data: dict) -> Alarm:
        return cls(
            id=data["id"],
            time=data["time"],
            label=data["label"],
            enabled=bool(data.get("enabled", True)),
            repeat_days=list(data.get("repeat_days") or []),
        )


@dataclass
class Timer:
    """A countdown timer, ticked down one second per scheduler tick."""

    id: int
    label: str
    duration_seconds: int
    remaining_seconds: int
    is_running: bool = True
    finished: bool = False

    @classmethod
    def start(cls, timer_id: int, label: str, duration_seconds: int) -> Timer:
        """Create a timer that is already running from its full duration."""
        return cls(
            id=timer_id,
            label=label,
            duration_seconds=duration_seconds,
            remaining_seconds=duration_seconds,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "label": self.label,
            "duration_seconds": self.duration_seconds,
            "remaining_seconds": self.remaining_seconds,
            "is_running": self.is_running,
            "finished": self.finished,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Timer:
        return cls(
            id=data["id"],
            label=data["label"],
            duration_seconds=data["duration_seconds"],
            remaining_seconds=data["remaining_seconds"],
            is_running=bool(data.get("is_running", True)),
            finished=bool(data.get("finished", False)),
        )
