"""Tests for src.core.calendar_index — month index building and caching."""

from datetime import date
from unittest.mock import patch

import pytest

from src.core.calendar_index import CalendarIndex, build_index, month_bounds, parse_month
from src.core.household import Household
from src.data.models import Event, Frequency, RecurrenceRule


def _weekly(event_id, title, anchor, days):
    return Event(
        id=event_id,
        title=title,
        anchor_date=anchor,
        recurrence=RecurrenceRule(frequency=Frequency.WEEKLY, by_weekday=days),
    )


class TestMonthHelpers:
    def test_month_bounds(self):
        assert month_bounds(date(2025, 2, 14)) == (date(2025, 2, 1), date(2025, 2, 28))
        assert month_bounds(date(2024, 2, 1)) == (date(2024, 2, 1), date(2024, 2, 29))
        assert month_bounds(date(2025, 12, 31)) == (date(2025, 12, 1), date(2025, 12, 31))

    def test_parse_month(self):
        assert parse_month("2025-03") == date(2025, 3, 1)
        assert parse_month(" 2025-11 ") == date(2025, 11, 1)

    def test_parse_month_invalid(self):
        with pytest.raises(ValueError):
            parse_month("March")
        with pytest.raises(ValueError):
            parse_month("2025-13")


class TestBuildIndex:
    def test_groups_by_date_in_order(self):
        events = [
            Event(id=1, title="Dentist", anchor_date=date(2025, 3, 10)),
            _weekly(2, "Trash", date(2025, 3, 4), ["Tuesday"]),
            Event(id=3, title="Outside", anchor_date=date(2025, 4, 2)),
        ]
        index = build_index(events, date(2025, 3, 1))
        assert list(index) == sorted(index)
        assert [e.title for e in index[date(2025, 3, 10)]] == ["Dentist"]
        assert [d for d, evs in index.items() if evs[0].title == "Trash"] == [
            date(2025, 3, 4), date(2025, 3, 11), date(2025, 3, 18), date(2025, 3, 25),
        ]
        assert date(2025, 4, 2) not in index

    def test_same_day_preserves_event_order(self):
        events = [
            Event(id=5, title="B", anchor_date=date(2025, 3, 10)),
            Event(id=2, title="A", anchor_date=date(2025, 3, 10)),
            _weekly(9, "C", date(2025, 3, 3), ["Monday"]),
        ]
        index = build_index(events, date(2025, 3, 15))
        assert [e.title for e in index[date(2025, 3, 10)]] == ["B", "A", "C"]

    def test_window_clipped_to_month(self):
        daily = Event(
            id=1, title="Plants", anchor_date=date(2025, 1, 20),
            recurrence=RecurrenceRule(frequency=Frequency.DAILY),
        )
        index = build_index([daily], date(2025, 2, 1))
        assert len(index) == 28
        assert min(index) == date(2025, 2, 1)
        assert max(index) == date(2025, 2, 28)

    def test_empty(self):
        assert build_index([], date(2025, 3, 1)) == {}


class TestCalendarIndex:
    def test_rebuilds_after_event_mutation(self):
        home = Household()
        cal = CalendarIndex(home, date(2025, 3, 1))
        assert cal.index() == {}

        home.add_event("Dentist", anchor_date=date(2025, 3, 10))
        assert date(2025, 3, 10) in cal.index()

        home.delete_event(1)
        assert cal.index() == {}

    def test_cached_between_calls(self):
        home = Household()
        home.add_event("Dentist", anchor_date=date(2025, 3, 10))
        cal = CalendarIndex(home, date(2025, 3, 1))
        with patch("src.core.calendar_index.build_index", wraps=build_index) as spy:
            first = cal.index()
            second = cal.index()
        assert spy.call_count == 1
        assert first == second
        assert first is not second

    def test_mutating_result_leaves_cache_intact(self):
        home = Household()
        home.add_event("Dentist", anchor_date=date(2025, 3, 10))
        cal = CalendarIndex(home, date(2025, 3, 1))

        result = cal.index()
        result[date(2025, 3, 10)].clear()
        result[date(2025, 3, 11)] = []

        fresh = cal.index()
        assert [e.title for e in fresh[date(2025, 3, 10)]] == ["Dentist"]
        assert date(2025, 3, 11) not in fresh

    def test_navigation(self):
        home = Household()
        home.add_event("Party", anchor_date=date(2025, 4, 5))
        cal = CalendarIndex(home, date(2025, 3, 20))
        assert cal.visible_month == date(2025, 3, 1)
        assert cal.index() == {}

        cal.next_month()
        assert cal.visible_month == date(2025, 4, 1)
        assert date(2025, 4, 5) in cal.index()

        cal.previous_month()
        cal.previous_month()
        assert cal.visible_month == date(2025, 2, 1)

        cal.navigate(date(2025, 12, 25))
        cal.next_month()
        assert cal.visible_month == date(2026, 1, 1)

    def test_occurrences_on_outside_visible_month(self):
        home = Household()
        home.add_event(
            "Trash", anchor_date=date(2025, 3, 4),
            recurrence=RecurrenceRule(frequency=Frequency.WEEKLY),
        )
        cal = CalendarIndex(home, date(2025, 3, 1))
        assert [e.title for e in cal.occurrences_on(date(2025, 3, 11))] == ["Trash"]
        assert [e.anchor_date for e in cal.occurrences_on(date(2025, 6, 3))] == [date(2025, 6, 3)]
        assert cal.occurrences_on(date(2025, 6, 4)) == []
