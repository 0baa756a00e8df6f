"""Tests for the undo orchestrator."""

from datetime import datetime, timezone

import pytest

from clients import ApiError
from ledger import Ledger
from models import DayGroup, LedgerEntry, Provenance, UnifiedWorklogView, WorklogRecord
from storage import MemoryStorage
from undo import UndoOrchestrator, UndoStatus

STARTED = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def record(id, secondary=None, provenance=Provenance.TEMPO, hour=9) -> WorklogRecord:
    return WorklogRecord(
        id=id,
        secondary_id=secondary,
        time_spent_seconds=5400,
        started=STARTED.replace(hour=hour),
        issue_id="10001",
        issue_key="PROJ-1",
        issue_summary="Summary",
        provenance=provenance,
    )


def view_of(*records) -> UnifiedWorklogView:
    if not records:
        return UnifiedWorklogView()
    return UnifiedWorklogView(days=[DayGroup(day=STARTED.date(), records=list(records))])


def ledger_entry(id, secondary=None) -> LedgerEntry:
    return LedgerEntry(
        id=id,
        secondary_id=secondary,
        issue_key="PROJ-1",
        issue_id="10001",
        issue_summary="Summary",
        time_spent_seconds=5400,
        started=STARTED.isoformat(),
        created_at=datetime.now(timezone.utc).isoformat(),
    )


class Harness:
    """Wires an UndoOrchestrator to in-memory collaborators and records calls."""

    def __init__(self, today=(), week=(), confirm=True, choice=0, delete_error=None):
        self.ledger = Ledger(MemoryStorage())
        self.views = {0: view_of(*today), 7: view_of(*week)}
        self.view_calls = []
        self.deleted = []
        self.offered = None
        self.confirm_answer = confirm
        self.choice = choice
        self.delete_error = delete_error
        self.lines = []

    def load_view(self, days, newest_first):
        self.view_calls.append((days, newest_first))
        return self.views[days]

    def delete(self, rec):
        self.deleted.append(rec.id)
        if self.delete_error:
            raise self.delete_error

    def choose(self, records):
        self.offered = records
        return None if self.choice is None else records[self.choice]

    def orchestrator(self) -> UndoOrchestrator:
        return UndoOrchestrator(
            self.ledger,
            load_view=self.load_view,
            delete=self.delete,
            confirm=lambda rec: self.confirm_answer,
            choose=self.choose,
            out=self.lines.append,
        )


# ---------------------------------------------------------------------------
# By ID
# ---------------------------------------------------------------------------

class TestUndoById:

    def test_not_found_never_deletes(self):
        h = Harness()
        result = h.orchestrator().undo("999")
        assert result.status == UndoStatus.NOT_FOUND
        assert h.deleted == []
        assert h.view_calls == [(0, True), (7, True)]
        assert "999" in result.message

    def test_ledger_hit_needs_no_remote_lookup(self):
        h = Harness()
        h.ledger.record(ledger_entry("1001"))
        result = h.orchestrator().undo("1001")
        assert result.status == UndoStatus.DELETED
        assert h.view_calls == []
        assert h.deleted == ["1001"]
        assert h.ledger.find_by_id("1001") is None

    def test_found_in_today(self):
        h = Harness(today=[record("1001")])
        result = h.orchestrator().undo("1001")
        assert result.ok
        assert h.view_calls == [(0, True)]

    def test_found_in_wide_window_by_secondary_id(self):
        h = Harness(week=[record("1001", secondary="2001")])
        result = h.orchestrator().undo("2001")
        assert result.status == UndoStatus.DELETED
        assert h.deleted == ["1001"]

    def test_details_shown_before_confirm(self):
        h = Harness(today=[record("1001")])
        h.orchestrator().undo("1001")
        text = "\n".join(h.lines)
        assert "PROJ-1" in text
        assert "1h 30m" in text

    def test_declined_has_no_side_effects(self):
        h = Harness(confirm=False)
        h.ledger.record(ledger_entry("1001"))
        result = h.orchestrator().undo("1001")
        assert result.status == UndoStatus.CANCELLED
        assert h.deleted == []
        assert h.ledger.find_by_id("1001") is not None

    def test_already_gone_prunes_ledger(self):
        h = Harness(delete_error=ApiError("Tempo: Resource not found.", 404))
        h.ledger.record(ledger_entry("1001", secondary="2001"))
        result = h.orchestrator().undo("1001")
        assert result.status == UndoStatus.ALREADY_GONE
        assert result.ok
        assert h.ledger.entries() == []
        assert h.ledger.find_last() is None

    @pytest.mark.parametrize("status", [401, 403, 500, None])
    def test_other_failures_keep_ledger(self, status):
        h = Harness(delete_error=ApiError("Tempo: Access denied.", status))
        h.ledger.record(ledger_entry("1001"))
        result = h.orchestrator().undo("1001")
        assert result.status == UndoStatus.FAILED
        assert "Tempo: Access denied." in result.message
        assert h.ledger.find_by_id("1001") is not None

    def test_remote_lookup_failure_is_reported(self):
        h = Harness()

        def broken(days, newest_first):
            raise ApiError("Tempo: Cannot connect.")

        h.load_view = broken
        result = h.orchestrator().undo("1001")
        assert result.status == UndoStatus.FAILED
        assert h.deleted == []


# ---------------------------------------------------------------------------
# Last pointer and selection
# ---------------------------------------------------------------------------

class TestUndoLastAndPick:

    def test_no_id_uses_last_pointer(self):
        h = Harness()
        h.ledger.record(ledger_entry("1"))
        h.ledger.record(ledger_entry("2"))
        h.orchestrator().undo()
        assert h.deleted == ["2"]
        assert h.ledger.find_last() is None
        assert h.ledger.find_by_id("1") is not None

    @pytest.mark.parametrize(
        "started",
        ["15.01.2024 09:30", "2024-03-01T09:00:00.000+0000", "2024-03-01T09:00:00Z", ""],
    )
    def test_pointer_with_odd_start_time(self, started):
        h = Harness()
        entry = ledger_entry("1001")
        entry.started = started
        h.ledger.record(entry)
        result = h.orchestrator().undo()
        assert result.status == UndoStatus.DELETED
        assert h.deleted == ["1001"]
        assert h.ledger.find_last() is None

    def test_last_without_pointer(self):
        h = Harness(today=[record("1001")])
        result = h.orchestrator().undo("last")
        assert result.status == UndoStatus.NOTHING
        assert h.view_calls == []

    def test_no_pointer_falls_back_to_selection(self):
        h = Harness(today=[record("a", hour=8), record("b", hour=11)], choice=1)
        result = h.orchestrator().undo()
        assert result.status == UndoStatus.DELETED
        assert h.deleted == ["b"]
        assert h.view_calls == [(0, True)]

    def test_pick_ignores_pointer(self):
        h = Harness(today=[record("a")])
        h.ledger.record(ledger_entry("1"))
        h.orchestrator().undo(pick=True)
        assert h.deleted == ["a"]

    def test_empty_today_widens_window(self):
        h = Harness(week=[record("w")])
        h.orchestrator().undo(pick=True)
        assert h.view_calls == [(0, True), (7, True)]
        assert [r.id for r in h.offered] == ["w"]

    def test_selection_cancel(self):
        h = Harness(today=[record("a")], choice=None)
        result = h.orchestrator().undo(pick=True)
        assert result.status == UndoStatus.CANCELLED
        assert h.deleted == []

    def test_nothing_to_select(self):
        h = Harness()
        result = h.orchestrator().undo(pick=True)
        assert result.status == UndoStatus.NOTHING
        assert h.offered is None
