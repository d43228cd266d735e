"""Tests for src.core.ledger — the notification dedupe ledger."""

from datetime import date, datetime

from src.core.ledger import DedupeLedger, LedgerEntry, alarm_key, reminder_key


class TestKeys:
    def test_alarm_key_is_date_scoped(self):
        assert alarm_key(3, date(2025, 3, 3)) == "alarm-3-2025-03-03"
        assert alarm_key(3, date(2025, 3, 3)) != alarm_key(3, date(2025, 3, 4))

    def test_reminder_key(self):
        assert reminder_key(7) == "event-7"

    def test_namespaces_do_not_collide(self):
        assert alarm_key(7, date(2025, 3, 3)) != reminder_key(7)


class TestRecord:
    def test_first_insert_only(self):
        ledger = DedupeLedger()
        now = datetime(2025, 3, 3, 7, 0)
        assert ledger.record("event-1", now) is True
        assert ledger.record("event-1", now) is False
        assert "event-1" in ledger
        assert len(ledger) == 1

    def test_seeded_entries(self):
        entry = LedgerEntry("event-1", datetime(2025, 3, 3, 7, 0), permanent=True)
        ledger = DedupeLedger([entry])
        assert "event-1" in ledger
        assert ledger.entries() == [entry]


class TestPrune:
    def test_drops_old_scoped_entries(self):
        ledger = DedupeLedger()
        ledger.record("alarm-1-2025-03-01", datetime(2025, 3, 1, 7, 0))
        ledger.record("alarm-1-2025-03-03", datetime(2025, 3, 3, 7, 0))
        removed = ledger.prune(datetime(2025, 3, 4, 0, 0), retention_days=2)
        assert removed == 1
        assert "alarm-1-2025-03-01" not in ledger
        assert "alarm-1-2025-03-03" in ledger

    def test_keeps_permanent_entries(self):
        ledger = DedupeLedger()
        ledger.record("event-1", datetime(2024, 1, 1, 9, 0), permanent=True)
        assert ledger.prune(datetime(2025, 3, 4), retention_days=2) == 0
        assert "event-1" in ledger

    def test_zero_retention_never_prunes(self):
        ledger = DedupeLedger()
        ledger.record("alarm-1-2020-01-01", datetime(2020, 1, 1, 7, 0))
        assert ledger.prune(datetime(2025, 3, 4), retention_days=0) == 0
        assert len(ledger) == 1

    def test_clear(self):
        ledger = DedupeLedger()
        ledger.record("event-1", datetime(2025, 3, 3), permanent=True)
        ledger.clear()
        assert len(ledger) == 0
