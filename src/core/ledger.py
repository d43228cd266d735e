"""Notification dedupe ledger.

A write-once set of trigger keys. Keys are namespaced by trigger kind so
alarm keys and reminder keys can never collide.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta

logger = logging.getLogger(__name__)


def alarm_key(alarm_id: int, day: date) -> str:
    """Date-scoped: an alarm fires at most once per calendar day."""
    return f"alarm-{alarm_id}-{day.isoformat()}"


def reminder_key(event_id: int) -> str:
    """Not date-scoped: a reminder fires at most once per event, ever."""
    return f"event-{event_id}"


@dataclass(frozen=True)
class LedgerEntry:
    key: str
    fired_at: datetime
    permanent: bool = False   # permanent entries survive pruning


class DedupeLedger:
    """Records which triggers already fired.

    Date-scoped entries may be pruned after `retention_days`; permanent
    entries (one-shot reminders) stay for the lifetime of the ledger.
    """

    def __init__(self, entries: list[LedgerEntry] | None = None) -> None:
        self._entries: dict[str, LedgerEntry] = {}
        for entry in entries or []:
            self._entries[entry.key] = entry

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def record(self, key: str, fired_at: datetime, permanent: bool = False) -> bool:
        """Insert `key` unless present. Returns True only on first insert."""
        if key in self._entries:
            logger.debug("Ledger hit for %s", key)
            return False
        self._entries[key] = LedgerEntry(key=key, fired_at=fired_at, permanent=permanent)
        return True

    def entries(self) -> list[LedgerEntry]:
        return list(self._entries.values())

    def prune(self, now: datetime, retention_days: int) -> int:
        """Drop non-permanent entries fired more than retention_days ago.

        retention_days <= 0 disables pruning. Returns the number removed.
        """
        if retention_days <= 0:
            return 0
        cutoff = now.date() - timedelta(days=retention_days)
        stale = [
            key for key, entry in self._entries.items()
            if not entry.permanent and entry.fired_at.date() < cutoff
        ]
        for key in stale:
            del self._entries[key]
        if stale:
            logger.debug("Pruned %d ledger entries older than %s", len(stale), cutoff)
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()
