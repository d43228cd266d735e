"""Tests for src.core.scheduler — tick pipeline driven by a fake clock."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest

from src.core.ledger import DedupeLedger, alarm_key
from src.core.scheduler import Scheduler
from src.core.triggers import TriggerKind
from src.ports.clock_port import FakeClock


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run_ticks(scheduler: Scheduler, clock: FakeClock, count: int, step: float = 1) -> list:
    fired = []
    for _ in range(count):
        fired += scheduler.tick()
        clock.advance(step)
    return fired


def _kinds(triggers) -> list[TriggerKind]:
    return [t.kind for t in triggers]


# ---------------------------------------------------------------------------
# Alarms
# ---------------------------------------------------------------------------


class TestAlarmTicks:
    def test_fires_once_across_120_ticks(self, scheduler, fake_clock, household):
        # Clock starts at Monday 06:59:00; 120 ticks straddle 07:00:00.
        household.add_alarm("07:00", "School", ["Monday"])
        fired = _run_ticks(scheduler, fake_clock, 120)
        assert _kinds(fired) == [TriggerKind.ALARM_RINGING]
        assert fired[0].fired_at == datetime(2025, 3, 3, 7, 0, 0)

    def test_dismissed_repeating_alarm_refires_next_week(self, scheduler, fake_clock, household):
        alarm = household.add_alarm("07:00", "School", ["Monday"])
        assert len(_run_ticks(scheduler, fake_clock, 61)) == 1

        fake_clock.set(datetime(2025, 3, 3, 7, 0, 30))
        scheduler.dismiss_alarm(alarm.id)
        assert alarm.enabled is True
        assert alarm.ringing is False

        # Rest of that minute on the same Monday: no re-fire.
        assert _run_ticks(scheduler, fake_clock, 30) == []

        # Following Monday.
        fake_clock.set(datetime(2025, 3, 10, 6, 59, 58))
        fired = _run_ticks(scheduler, fake_clock, 5)
        assert _kinds(fired) == [TriggerKind.ALARM_RINGING]

    def test_one_time_alarm_disabled_on_dismiss(self, scheduler, fake_clock, household):
        alarm = household.add_alarm("07:00", "Flight")
        _run_ticks(scheduler, fake_clock, 61)
        assert alarm.ringing is True

        scheduler.dismiss_alarm(alarm.id)
        assert alarm.enabled is False
        assert alarm.ringing is False

        fake_clock.set(datetime(2025, 3, 4, 7, 0, 0))
        assert scheduler.tick() == []

    def test_wrong_weekday_never_fires(self, scheduler, fake_clock, household):
        household.add_alarm("07:00", "Weekend", ["Saturday", "Sunday"])
        assert _run_ticks(scheduler, fake_clock, 120) == []

    def test_missed_minute_is_not_caught_up(self, scheduler, fake_clock, household):
        household.add_alarm("07:00", "Wake")
        fake_clock.set(datetime(2025, 3, 3, 7, 1, 0))
        assert scheduler.tick() == []

    def test_new_alarm_after_delete_rings_same_day(self, scheduler, fake_clock, household):
        old = household.add_alarm("06:59", "Old")
        assert len(scheduler.tick()) == 1
        household.delete_alarm(old.id)

        household.add_alarm("07:30", "New")
        fake_clock.set(datetime(2025, 3, 3, 7, 30, 0))
        assert [t.payload.label for t in scheduler.tick()] == ["New"]

    def test_persisted_ledger_blocks_refire_after_restart(self, household, fake_clock):
        household.add_alarm("07:00", "Wake", ["Monday"])
        ledger = DedupeLedger()
        ledger.record(alarm_key(1, fake_clock.now().date()), fake_clock.now())
        scheduler = Scheduler(household, fake_clock, ledger=ledger)
        assert _run_ticks(scheduler, fake_clock, 120) == []


# ---------------------------------------------------------------------------
# Reminders
# ---------------------------------------------------------------------------


class TestReminderTicks:
    def test_fires_once_even_when_tick_is_late(self, scheduler, fake_clock, household):
        due = fake_clock.now() + timedelta(seconds=5)
        event = household.add_event("Movie night", reminder_at=due)

        fired = _run_ticks(scheduler, fake_clock, 4)
        assert fired == []

        # Loop stalls: the first tick to see now >= due is 2 seconds late.
        fake_clock.set(due + timedelta(seconds=2))
        fired = _run_ticks(scheduler, fake_clock, 10)
        assert _kinds(fired) == [TriggerKind.EVENT_REMINDER]
        assert fired[0].payload is event

    def test_active_until_dismissed(self, scheduler, fake_clock, household):
        event = household.add_event("Call grandma", reminder_at=fake_clock.now())
        scheduler.tick()
        assert event.id in scheduler.active_reminders

        assert scheduler.dismiss_reminder(event.id) is True
        assert event.id not in scheduler.active_reminders
        assert scheduler.dismiss_reminder(event.id) is False

        fake_clock.advance(60)
        assert scheduler.tick() == []

    def test_new_event_after_delete_gets_its_own_reminder(self, scheduler, fake_clock, household):
        old = household.add_event("Old", reminder_at=fake_clock.now())
        assert len(scheduler.tick()) == 1
        household.delete_event(old.id)

        household.add_event("New", reminder_at=fake_clock.now() + timedelta(seconds=2))
        fired = _run_ticks(scheduler, fake_clock, 5)
        assert [t.payload.title for t in fired] == ["New"]

    def test_recurring_event_reminder_fires_once_per_series(self, scheduler, fake_clock, household):
        from src.data.models import Frequency, RecurrenceRule

        household.add_event(
            "Trash",
            anchor_date=fake_clock.now().date(),
            recurrence=RecurrenceRule(frequency=Frequency.DAILY),
            reminder_at=fake_clock.now(),
        )
        assert len(scheduler.tick()) == 1
        fake_clock.advance(86400)
        assert scheduler.tick() == []


# ---------------------------------------------------------------------------
# Timers
# ---------------------------------------------------------------------------


class TestTimerTicks:
    def test_three_second_timer(self, scheduler, fake_clock, household):
        timer = household.add_timer("Tea", 3)

        fired = _run_ticks(scheduler, fake_clock, 3)
        assert _kinds(fired) == [TriggerKind.TIMER_FINISHED]
        assert timer.remaining_seconds == 0
        assert timer.is_running is False
        assert timer.finished is True

        assert scheduler.tick() == []
        assert (timer.remaining_seconds, timer.is_running, timer.finished) == (0, False, True)

    def test_late_ticks_do_not_fast_forward(self, scheduler, fake_clock, household):
        timer = household.add_timer("Tea", 10)
        _run_ticks(scheduler, fake_clock, 2, step=30)
        assert timer.remaining_seconds == 8

    def test_dismiss_removes_timer(self, scheduler, fake_clock, household):
        timer = household.add_timer("Tea", 1)
        scheduler.tick()
        scheduler.dismiss_timer(timer.id)
        assert household.timers == []


# ---------------------------------------------------------------------------
# Pipeline behaviour
# ---------------------------------------------------------------------------


class TestTickPipeline:
    def test_phase_order_within_one_tick(self, scheduler, fake_clock, household):
        fake_clock.set(datetime(2025, 3, 3, 7, 0, 0))
        household.add_timer("Tea", 1)
        household.add_alarm("07:00", "Wake")
        household.add_event("Call", reminder_at=fake_clock.now())

        fired = scheduler.tick()
        assert _kinds(fired) == [
            TriggerKind.TIMER_FINISHED,
            TriggerKind.ALARM_RINGING,
            TriggerKind.EVENT_REMINDER,
        ]
        assert len({t.fired_at for t in fired}) == 1

    def test_listeners_receive_triggers(self, scheduler, fake_clock, household):
        listener = MagicMock()
        scheduler.add_listener(listener)
        household.add_timer("Tea", 1)
        scheduler.tick()
        listener.assert_called_once()
        assert listener.call_args[0][0].kind is TriggerKind.TIMER_FINISHED

        scheduler.remove_listener(listener)
        household.add_timer("Toast", 1)
        scheduler.tick()
        listener.assert_called_once()

    def test_failing_listener_does_not_block_others(self, scheduler, household):
        broken = MagicMock(side_effect=RuntimeError("boom"))
        healthy = MagicMock()
        scheduler.add_listener(broken)
        scheduler.add_listener(healthy)
        household.add_timer("Tea", 1)

        fired = scheduler.tick()
        assert len(fired) == 1
        healthy.assert_called_once()

    def test_prunes_old_alarm_keys(self, household, fake_clock):
        ledger = DedupeLedger()
        ledger.record("alarm-9-2025-02-01", datetime(2025, 2, 1, 7, 0))
        scheduler = Scheduler(household, fake_clock, ledger=ledger, retention_days=2)
        scheduler.tick()
        assert len(ledger) == 0

    def test_tick_count(self, scheduler, fake_clock):
        _run_ticks(scheduler, fake_clock, 5)
        assert scheduler.tick_count == 5

    def test_calendar_bound_to_household(self, scheduler, household, fake_clock):
        household.add_event("Dentist", anchor_date=fake_clock.now().date())
        assert [e.title for e in scheduler.calendar.occurrences_on(fake_clock.now().date())] == ["Dentist"]


class TestRunLoop:
    @pytest.mark.asyncio
    async def test_run_ticks_until_stopped(self, scheduler):
        task = asyncio.create_task(scheduler.run(interval_seconds=0.01))
        while scheduler.tick_count < 3:
            await asyncio.sleep(0.01)
        scheduler.stop()
        await asyncio.wait_for(task, timeout=1)
        assert task.done()
        assert scheduler.tick_count >= 3

    @pytest.mark.asyncio
    async def test_rejects_non_positive_interval(self, scheduler):
        with pytest.raises(ValueError):
            await scheduler.run(interval_seconds=0)
