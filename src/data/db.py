"""
HomeSync — State Database.

Optional durability for the in-memory household: entity sets are stored
as JSON records in SQLite, and the dedupe ledger alongside them so a
restart does not re-fire reminders or alarms that already rang today.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path

from src.core.household import Household
from src.core.ledger import DedupeLedger, LedgerEntry
from src.data.models import Alarm, Event, Person, Timer

logger = logging.getLogger(__name__)

_KINDS = {
    "person": Person,
    "event": Event,
    "alarm": Alarm,
    "timer": Timer,
}


class StorageError(Exception):
    """Raised when the state database cannot be read or written."""


class StateDB:
    """SQLite-backed snapshot storage for a Household and its ledger."""

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from src.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._memory_conn = sqlite3.connect(db_path) if db_path == ":memory:" else None
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        if self._memory_conn is not None:
            return self._memory_conn
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        """Create the tables if they don't exist."""
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS entities (
                    kind     TEXT    NOT NULL,
                    id       INTEGER NOT NULL,
                    payload  TEXT    NOT NULL,
                    PRIMARY KEY (kind, id)
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS id_counters (
                    kind        TEXT    PRIMARY KEY,
                    high_water  INTEGER NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS ledger (
                    key        TEXT    PRIMARY KEY,
                    fired_at   TEXT    NOT NULL,
                    permanent  INTEGER NOT NULL DEFAULT 0
                )
            """)
        logger.debug("State tables initialized at %s", self._db_path)

    # ------------------------------------------------------------------
    # Household
    # ------------------------------------------------------------------

    def save_household(self, household: Household) -> None:
        """Replace the stored snapshot with the household's current sets."""
        rows = [
            (kind, item.id, json.dumps(item.to_dict()))
            for kind, items in (
                ("person", household.people),
                ("event", household.events),
                ("alarm", household.alarms),
                ("timer", household.timers),
            )
            for item in items
        ]
        try:
            with self._connect() as conn:
                conn.execute("DELETE FROM entities")
                conn.executemany(
                    "INSERT INTO entities (kind, id, payload) VALUES (?, ?, ?)", rows,
                )
                conn.execute("DELETE FROM id_counters")
                conn.executemany(
                    "INSERT INTO id_counters (kind, high_water) VALUES (?, ?)",
                    list(household.id_counters.items()),
                )
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to save household: {exc}") from exc
        logger.debug("Saved %d entities", len(rows))

    def load_household(self) -> Household:
        """Rebuild a Household from the stored snapshot (empty when none)."""
        loaded: dict[str, list] = {kind: [] for kind in _KINDS}
        try:
            with self._connect() as conn:
                cursor = conn.execute(
                    "SELECT kind, payload FROM entities ORDER BY kind, id"
                )
                for kind, payload in cursor.fetchall():
                    model = _KINDS.get(kind)
                    if model is None:
                        logger.warning("Skipping unknown entity kind %r", kind)
                        continue
                    loaded[kind].append(model.from_dict(json.loads(payload)))
                counters = {
                    kind: high_water
                    for kind, high_water in conn.execute(
                        "SELECT kind, high_water FROM id_counters"
                    ).fetchall()
                }
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to load household: {exc}") from exc

        household = Household(
            people=loaded["person"],
            events=loaded["event"],
            alarms=loaded["alarm"],
            timers=loaded["timer"],
            id_counters=counters,
        )
        logger.info(
            "Loaded household: %d people, %d events, %d alarms, %d timers",
            len(household.people), len(household.events),
            len(household.alarms), len(household.timers),
        )
        return household

    # ------------------------------------------------------------------
    # Ledger
    # ------------------------------------------------------------------

    def save_ledger(self, ledger: DedupeLedger) -> None:
        rows = [
            (entry.key, entry.fired_at.isoformat(), int(entry.permanent))
            for entry in ledger.entries()
        ]
        try:
            with self._connect() as conn:
                conn.execute("DELETE FROM ledger")
                conn.executemany(
                    "INSERT INTO ledger (key, fired_at, permanent) VALUES (?, ?, ?)", rows,
                )
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to save ledger: {exc}") from exc

    def load_ledger(self) -> DedupeLedger:
        try:
            with self._connect() as conn:
                cursor = conn.execute("SELECT key, fired_at, permanent FROM ledger")
                entries = [
                    LedgerEntry(
                        key=key,
                        fired_at=datetime.fromisoformat(fired_at),
                        permanent=bool(permanent),
                    )
                    for key, fired_at, permanent in cursor.fetchall()
                ]
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to load ledger: {exc}") from exc
        return DedupeLedger(entries)
