"""Clock port — the engine's only source of "now".

Core modules read time through this protocol so tests can drive virtual
time deterministically instead of waiting on real seconds.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Protocol


class Clock(Protocol):
    """Naive local wall-clock time source."""

    def now(self) -> datetime: ...


class SystemClock:
    """Host wall clock, naive local time, truncated to whole seconds."""

    def now(self) -> datetime:
        return datetime.now().replace(microsecond=0)


class FakeClock:
    """Manually advanced clock for tests and simulations."""

    def __init__(self, start: datetime) -> None:
        self._now = start

    def now(self) -> datetime:
        return self._now

    def advance(self, seconds: float = 1) -> datetime:
        self._now += timedelta(seconds=seconds)
        return self._now

    def set(self, moment: datetime) -> None:
        self._now = moment
