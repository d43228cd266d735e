"""Calendar index — date → occurrences lookup for one visible month.

The index is a derived view: it is always recomputable from the event set
and can be thrown away at any time.
"""

from __future__ import annotations

import calendar
import logging
from datetime import date
from typing import TYPE_CHECKING, Iterable

from src.core.recurrence import expand

if TYPE_CHECKING:
    from src.core.household import Household
    from src.data.models import Event

logger = logging.getLogger(__name__)


def month_bounds(month: date) -> tuple[date, date]:
    """Return the first and last calendar day of the month containing `month`."""
    last_day = calendar.monthrange(month.year, month.month)[1]
    return month.replace(day=1), month.replace(day=last_day)


def parse_month(text: str) -> date:
    """Parse "YYYY-MM" into the first day of that month.

    Raises ValueError on malformed input.
    """
    year, month = text.strip().split("-")
    return date(int(year), int(month), 1)


def build_index(events: Iterable[Event], visible_month: date) -> dict[date, list[Event]]:
    """Expand every event over the visible month and group by date.

    Keys are in ascending date order. Within a date, occurrences keep the
    relative order of `events`.
    """
    first, last = month_bounds(visible_month)
    index: dict[date, list[Event]] = {}
    for event in events:
        for day, occurrence in expand(event, first, last):
            index.setdefault(day, []).append(occurrence)
    return dict(sorted(index.items()))


class CalendarIndex:
    """Cached build_index() for a household, rebuilt on month or event changes."""

    def __init__(self, household: Household, visible_month: date | None = None) -> None:
        self._household = household
        self._month = (visible_month or date.today()).replace(day=1)
        self._cached: dict[date, list[Event]] | None = None
        self._cached_key: tuple[date, int] | None = None

    @property
    def visible_month(self) -> date:
        return self._month

    def navigate(self, month: date) -> None:
        """Switch the visible month (any day within it)."""
        self._month = month.replace(day=1)

    def next_month(self) -> None:
        _, last = month_bounds(self._month)
        self._month = date.fromordinal(last.toordinal() + 1)

    def previous_month(self) -> None:
        self._month = date.fromordinal(self._month.toordinal() - 1).replace(day=1)

    def index(self) -> dict[date, list[Event]]:
        """Day -> occurrences for the visible month.

        Rebuilt only when the month or household revision changes. The result
        is a fresh copy, so callers may mutate it without touching the cache.
        """
        key = (self._month, self._household.revision)
        if self._cached is None or self._cached_key != key:
            self._cached = build_index(self._household.events, self._month)
            self._cached_key = key
            logger.debug(
                "Calendar index rebuilt for %s (%d days with events)",
                self._month.strftime("%Y-%m"), len(self._cached),
            )
        return {day: list(events) for day, events in self._cached.items()}

    def occurrences_on(self, day: date) -> list[Event]:
        """Occurrences on a single day, even outside the visible month."""
        if (day.year, day.month) == (self._month.year, self._month.month):
            return self.index().get(day, [])
        return [occurrence for _, occurrence in _expand_all(self._household.events, day)]

    def invalidate(self) -> None:
        self._cached = None
        self._cached_key = None


def _expand_all(events: Iterable[Event], day: date):
    for event in events:
        yield from expand(event, day, day)
