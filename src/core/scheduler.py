"""
HomeSync — Tick Scheduler.

Drives the engine from a 1-second heartbeat. Every tick reads one `now`
from the injected clock and runs, in order: timer countdown, alarm
matching, reminder matching. Fired triggers go to registered listeners.

This module is host-agnostic: the Telegram bot drives `tick()` from its
JobQueue, while `run()` offers a plain asyncio loop for headless use.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import TYPE_CHECKING, Callable

from src.core.calendar_index import CalendarIndex
from src.core.ledger import DedupeLedger
from src.core.triggers import (
    Trigger,
    countdown_timers,
    match_alarms,
    match_reminders,
)

if TYPE_CHECKING:
    from src.core.household import Household
    from src.data.models import Alarm, Event
    from src.ports.clock_port import Clock

logger = logging.getLogger(__name__)

TriggerListener = Callable[[Trigger], None]


class Scheduler:
    """Owns the dedupe ledger and evaluates triggers once per tick."""

    def __init__(
        self,
        household: Household,
        clock: Clock,
        ledger: DedupeLedger | None = None,
        retention_days: int = 2,
    ) -> None:
        self.household = household
        self.clock = clock
        self.ledger = ledger if ledger is not None else DedupeLedger()
        self.retention_days = retention_days
        self.calendar = CalendarIndex(household, clock.now().date())
        self.active_reminders: dict[int, Event] = {}
        self._listeners: list[TriggerListener] = []
        self._lock = threading.RLock()
        self._stopped = asyncio.Event()
        self._ticks = 0

    @property
    def lock(self) -> threading.RLock:
        """Serializes ticks with external mutations in threaded hosts."""
        return self._lock

    @property
    def tick_count(self) -> int:
        return self._ticks

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: TriggerListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: TriggerListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _dispatch(self, trigger: Trigger) -> None:
        for listener in list(self._listeners):
            try:
                listener(trigger)
            except Exception as exc:
                logger.error(
                    "Trigger listener failed for %s %d: %s",
                    trigger.kind.value, trigger.entity_id, exc,
                )

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def tick(self) -> list[Trigger]:
        """Run one evaluation cycle and return the triggers it fired."""
        with self._lock:
            now = self.clock.now()
            # Snapshot the sets so all phases see the same membership.
            timers = list(self.household.timers)
            alarms = list(self.household.alarms)
            events = list(self.household.events)

            fired = countdown_timers(timers, now)
            fired += match_alarms(alarms, now, self.ledger)
            reminders = match_reminders(events, now, self.ledger)
            for trigger in reminders:
                self.active_reminders[trigger.entity_id] = trigger.payload
            fired += reminders

            self.ledger.prune(now, self.retention_days)
            self._ticks += 1

        for trigger in fired:
            self._dispatch(trigger)
        return fired

    async def run(self, interval_seconds: float = 1.0) -> None:
        """Tick every `interval_seconds` until stop() is called."""
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._stopped.clear()
        logger.info("Scheduler started (interval %.2fs)", interval_seconds)
        while not self._stopped.is_set():
            self.tick()
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=interval_seconds)
            except asyncio.TimeoutError:
                continue
        logger.info("Scheduler stopped after %d ticks", self._ticks)

    def stop(self) -> None:
        self._stopped.set()

    # ------------------------------------------------------------------
    # Dismissals
    # ------------------------------------------------------------------

    def dismiss_alarm(self, alarm_id: int) -> Alarm:
        with self._lock:
            return self.household.dismiss_alarm(alarm_id)

    def dismiss_timer(self, timer_id: int) -> None:
        with self._lock:
            self.household.dismiss_timer(timer_id)

    def dismiss_reminder(self, event_id: int) -> bool:
        """Hide an active reminder. Returns False when none was showing."""
        with self._lock:
            return self.active_reminders.pop(event_id, None) is not None

    def ringing_alarms(self) -> list[Alarm]:
        return [a for a in self.household.alarms if a.ringing]
