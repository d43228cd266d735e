"""Recurrence expander — pure business logic.

Maps an event and an inclusive date window to the concrete dates the event
occupies. Expansion is delegated to `dateutil.rrule`: monthly and yearly
rules keep the anchor's day (and month), and a month or year lacking that
day is skipped, never clamped.

No I/O: this module only transforms data.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime, time

from dateutil.rrule import DAILY, FR, MO, MONTHLY, SA, SU, TH, TU, WE, WEEKLY, YEARLY, rrule

from src.data.models import Event, Frequency, RecurrenceRule

logger = logging.getLogger(__name__)

Occurrence = tuple[date, Event]

_RRULE_FREQ = {
    Frequency.DAILY: DAILY,
    Frequency.WEEKLY: WEEKLY,
    Frequency.MONTHLY: MONTHLY,
    Frequency.YEARLY: YEARLY,
}

_RRULE_WEEKDAY = {
    "Monday": MO,
    "Tuesday": TU,
    "Wednesday": WE,
    "Thursday": TH,
    "Friday": FR,
    "Saturday": SA,
    "Sunday": SU,
}


def expand(event: Event, window_start: date, window_end: date) -> list[Occurrence]:
    """Return (occurrence_date, materialized_event) pairs inside the window.

    Both window bounds are inclusive and window_start must not be after
    window_end. Output is ascending by date and identical across calls.
    Each materialized event is a shallow copy of `event` with anchor_date
    set to the occurrence date; list fields are shared with the original,
    so callers must treat them as read-only.
    """
    anchor = event.anchor_date
    if anchor is None:
        return []

    rule = event.recurrence
    if rule is None:
        if window_start <= anchor <= window_end:
            return [(anchor, replace(event, anchor_date=anchor))]
        return []

    stop = window_end if rule.until is None else min(rule.until, window_end)
    start = max(anchor, window_start)
    if start > stop:
        return []

    return [
        (day, replace(event, anchor_date=day))
        for day in occurrence_dates(rule, anchor, start, stop)
    ]


def occurrence_dates(
    rule: RecurrenceRule, anchor: date, start: date, stop: date,
) -> list[date]:
    """Dates in [start, stop] produced by `rule` anchored at `anchor`."""
    freq = _RRULE_FREQ.get(rule.frequency)
    if freq is None:
        logger.warning("Unsupported recurrence frequency: %s", rule.frequency)
        return []

    kwargs: dict = {}
    if rule.frequency is Frequency.WEEKLY:
        kwargs["byweekday"] = [_RRULE_WEEKDAY[d] for d in sorted(
            rule.weekdays_for(anchor), key=list(_RRULE_WEEKDAY).index,
        )]
    elif rule.frequency is Frequency.MONTHLY:
        kwargs["bymonthday"] = anchor.day
    elif rule.frequency is Frequency.YEARLY:
        kwargs["bymonth"] = anchor.month
        kwargs["bymonthday"] = anchor.day

    dtstart = datetime.combine(anchor, time.min)
    series = rrule(freq, dtstart=dtstart, **kwargs)
    return [
        moment.date()
        for moment in series.between(
            datetime.combine(start, time.min), datetime.combine(stop, time.min), inc=True,
        )
    ]
