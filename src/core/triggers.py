"""Trigger evaluation — one tick's worth of alarm, timer and reminder checks.

Each function looks at a snapshot of one entity set at a fixed `now` and
returns the triggers that fire. The only mutations are the ones the engine
owns: timer countdown fields and Alarm.ringing.

Known limitation: alarms match on exact minute-of-day equality, so an
alarm whose minute passes while the host is not ticking is missed.
Reminders use now >= reminder_at and fire late instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable

from src.core.ledger import DedupeLedger, alarm_key, reminder_key
from src.data.models import Alarm, Event, Timer, weekday_name

logger = logging.getLogger(__name__)


class TriggerKind(Enum):
    ALARM_RINGING = "alarm"
    TIMER_FINISHED = "timer"
    EVENT_REMINDER = "reminder"


@dataclass(frozen=True)
class Trigger:
    """A notification-worthy moment produced by a tick."""

    kind: TriggerKind
    fired_at: datetime
    payload: Alarm | Timer | Event

    @property
    def entity_id(self) -> int:
        return self.payload.id


def countdown_timers(timers: Iterable[Timer], now: datetime) -> list[Trigger]:
    """Decrement every running timer by one second.

    A timer reaching zero stops, is marked finished and yields exactly one
    TIMER_FINISHED trigger; that transition is its own dedupe. Timers already
    at zero are left untouched. Missed seconds are never caught up.
    """
    fired: list[Trigger] = []
    for timer in timers:
        if not timer.is_running or timer.remaining_seconds <= 0:
            continue
        timer.remaining_seconds -= 1
        if timer.remaining_seconds == 0:
            timer.is_running = False
            timer.finished = True
            logger.info("Timer %d '%s' finished", timer.id, timer.label)
            fired.append(Trigger(TriggerKind.TIMER_FINISHED, now, timer))
    return fired


def alarm_matches(alarm: Alarm, now: datetime) -> bool:
    """True when `now` falls in the alarm's minute on one of its days."""
    if alarm.time != now.strftime("%H:%M"):
        return False
    return alarm.is_one_time or weekday_name(now.date()) in alarm.repeat_days


def match_alarms(
    alarms: Iterable[Alarm], now: datetime, ledger: DedupeLedger,
) -> list[Trigger]:
    """Start ringing every armed alarm whose minute is now, once per day."""
    fired: list[Trigger] = []
    for alarm in alarms:
        if not alarm.enabled or alarm.ringing:
            continue
        if not alarm_matches(alarm, now):
            continue
        if not ledger.record(alarm_key(alarm.id, now.date()), now):
            continue
        alarm.ringing = True
        logger.info("Alarm %d '%s' ringing at %s", alarm.id, alarm.label, alarm.time)
        fired.append(Trigger(TriggerKind.ALARM_RINGING, now, alarm))
    return fired


def match_reminders(
    events: Iterable[Event], now: datetime, ledger: DedupeLedger,
) -> list[Trigger]:
    """Fire each event's reminder on the first tick at or after reminder_at.

    A reminder on a recurring event belongs to the series, so it fires once
    for the whole series rather than once per occurrence.
    """
    fired: list[Trigger] = []
    for event in events:
        if event.reminder_at is None or now < event.reminder_at:
            continue
        if not ledger.record(reminder_key(event.id), now, permanent=True):
            continue
        logger.info("Reminder for event %d '%s' due", event.id, event.title)
        fired.append(Trigger(TriggerKind.EVENT_REMINDER, now, event))
    return fired
