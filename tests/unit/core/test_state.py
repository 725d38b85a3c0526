"""Unit tests for HistoryLedger.

Tests for the bounded operation ledger, its status state machine and
JSON persistence.
"""

import json
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from fileledger.core.state import HistoryLedger
from fileledger.models.errors import (
    FileOperationError,
    FileOperationErrorType,
    InvalidTransitionError,
    OperationNotFoundError,
)
from fileledger.models.operation import (
    CopyPayload,
    CreatePayload,
    MovePayload,
    OperationRecord,
    OperationStatus,
    RenamePayload,
)


def _completed(ledger: HistoryLedger, path: str) -> OperationRecord:
    record = ledger.create(CreatePayload(path))
    return ledger.set_status(record.id, OperationStatus.COMPLETED)


class TestHistoryLedgerInit:
    """Tests for HistoryLedger initialization."""

    def test_rejects_zero_capacity(self) -> None:
        """Capacity must be at least one."""
        with pytest.raises(ValueError, match="max_history_size"):
            HistoryLedger(max_history_size=0)

    def test_starts_empty(self) -> None:
        """A new in-memory ledger has no records."""
        ledger = HistoryLedger()
        assert len(ledger) == 0
        assert ledger.list() == []
        assert ledger.state_path is None


class TestCreateAndLookup:
    """Tests for creating and finding records."""

    def test_create_returns_pending_record(self, ledger: HistoryLedger) -> None:
        """New records are pending and findable by ID."""
        record = ledger.create(CreatePayload("/tmp/a.txt"))

        assert record.status == OperationStatus.PENDING
        assert record.id in ledger
        assert ledger.get(record.id) is record

    def test_create_with_preassigned_id(self, ledger: HistoryLedger) -> None:
        """A pre-assigned ID is used as-is."""
        record = ledger.create(CreatePayload("/a"), "op_fixed000001")
        assert record.id == "op_fixed000001"

    def test_create_rejects_duplicate_id(self, ledger: HistoryLedger) -> None:
        """IDs are never reused."""
        ledger.create(CreatePayload("/a"), "op_fixed000001")
        with pytest.raises(ValueError, match="already in use"):
            ledger.create(CreatePayload("/b"), "op_fixed000001")

    def test_ids_are_unique(self, ledger: HistoryLedger) -> None:
        """Each record gets its own ID."""
        ids = {ledger.create(CreatePayload(f"/f{i}")).id for i in range(5)}
        assert len(ids) == 5

    def test_get_unknown_returns_none(self, ledger: HistoryLedger) -> None:
        """get returns None for unknown IDs."""
        assert ledger.get("op_missing") is None

    def test_require_unknown_raises(self, ledger: HistoryLedger) -> None:
        """require raises for unknown IDs."""
        with pytest.raises(OperationNotFoundError):
            ledger.require("op_missing")

    def test_list_is_newest_first(self, ledger: HistoryLedger) -> None:
        """list returns records in reverse creation order."""
        first = ledger.create(CreatePayload("/1"))
        second = ledger.create(CreatePayload("/2"))
        third = ledger.create(CreatePayload("/3"))

        assert [r.id for r in ledger.list()] == [third.id, second.id, first.id]
        assert [r.id for r in ledger.list(limit=2)] == [third.id, second.id]


class TestStatusTransitions:
    """Tests for the status state machine."""

    def test_happy_path(self, ledger: HistoryLedger) -> None:
        """PENDING -> IN_PROGRESS -> COMPLETED -> UNDONE is allowed."""
        record = ledger.create(CreatePayload("/a"))
        for status in (
            OperationStatus.IN_PROGRESS,
            OperationStatus.COMPLETED,
            OperationStatus.UNDONE,
        ):
            ledger.set_status(record.id, status)
        assert record.status == OperationStatus.UNDONE

    def test_pending_can_complete_directly(self, ledger: HistoryLedger) -> None:
        """Manually recorded operations can finalize without IN_PROGRESS."""
        record = ledger.create(CreatePayload("/a"))
        ledger.set_status(record.id, OperationStatus.COMPLETED)
        assert record.can_undo

    @pytest.mark.parametrize(
        ("path", "requested"),
        [
            ([OperationStatus.FAILED], OperationStatus.COMPLETED),
            ([OperationStatus.COMPLETED, OperationStatus.UNDONE], OperationStatus.COMPLETED),
            ([OperationStatus.COMPLETED], OperationStatus.IN_PROGRESS),
            ([], OperationStatus.UNDONE),
            ([OperationStatus.IN_PROGRESS], OperationStatus.PENDING),
        ],
    )
    def test_forbidden_transitions(
        self,
        ledger: HistoryLedger,
        path: list[OperationStatus],
        requested: OperationStatus,
    ) -> None:
        """Transitions outside the state machine raise and change nothing."""
        record = ledger.create(CreatePayload("/a"))
        for status in path:
            ledger.set_status(record.id, status)
        before = record.status

        with pytest.raises(InvalidTransitionError):
            ledger.set_status(record.id, requested)
        assert record.status == before

    def test_failed_records_error(self, ledger: HistoryLedger) -> None:
        """FAILED stores the classified error."""
        record = ledger.create(CreatePayload("/a"))
        error = FileOperationError(FileOperationErrorType.PERMISSION_DENIED, "/a", "nope")

        ledger.set_status(record.id, OperationStatus.FAILED, error)

        assert record.error is error
        assert not record.can_undo

    def test_failed_without_error_gets_generic_one(self, ledger: HistoryLedger) -> None:
        """A FAILED record always carries an error."""
        record = ledger.create(CreatePayload("/a"))
        ledger.set_status(record.id, OperationStatus.FAILED)

        assert record.error is not None
        assert record.error.error_type == FileOperationErrorType.UNKNOWN_ERROR

    def test_error_only_with_failed(self, ledger: HistoryLedger) -> None:
        """An error cannot be attached to a non-failed status."""
        record = ledger.create(CreatePayload("/a"))
        error = FileOperationError(FileOperationErrorType.UNKNOWN_ERROR, "/a", "x")
        with pytest.raises(ValueError, match="only be recorded with status failed"):
            ledger.set_status(record.id, OperationStatus.COMPLETED, error)

    def test_unknown_id_raises(self, ledger: HistoryLedger) -> None:
        """Status changes on unknown IDs raise."""
        with pytest.raises(OperationNotFoundError):
            ledger.set_status("op_missing", OperationStatus.COMPLETED)


class TestMarkFilesCreated:
    """Tests for HistoryLedger.mark_files_created."""

    def test_copy_records_created_files(self, ledger: HistoryLedger) -> None:
        """Copies store their destinations in created_files."""
        record = ledger.create(CopyPayload(["/a"], "/t"))
        ledger.mark_files_created(record.id, ["/t/a"])
        assert isinstance(record.payload, CopyPayload)
        assert record.payload.created_files == ["/t/a"]

    def test_move_records_moved_files(self, ledger: HistoryLedger) -> None:
        """Moves store their destinations in moved_files."""
        record = ledger.create(MovePayload(["/a"], "/t"))
        ledger.mark_files_created(record.id, ["/t/a"])
        assert isinstance(record.payload, MovePayload)
        assert record.payload.moved_files == ["/t/a"]

    def test_other_types_rejected(self, ledger: HistoryLedger) -> None:
        """Only copies and moves have destination files."""
        record = ledger.create(RenamePayload("/a", "/b"))
        with pytest.raises(ValueError, match="not a copy or move"):
            ledger.mark_files_created(record.id, ["/b"])


class TestBound:
    """Tests for eviction and pruning."""

    def test_history_bound_evicts_oldest(self) -> None:
        """Inserting capacity + 1 terminal records drops the earliest one."""
        ledger = HistoryLedger(max_history_size=3)
        records = [_completed(ledger, f"/f{i}") for i in range(4)]

        assert len(ledger) == 3
        listed = [r.id for r in ledger.list()]
        assert records[0].id not in listed
        assert records[1].id in listed

    def test_in_flight_records_are_not_evicted(self) -> None:
        """Pending records survive eviction, the ledger may overflow."""
        ledger = HistoryLedger(max_history_size=2)
        pending = [ledger.create(CreatePayload(f"/p{i}")) for i in range(3)]

        assert len(ledger) == 3
        assert all(r.id in ledger for r in pending)

    def test_evicts_terminal_before_pending(self) -> None:
        """The oldest terminal record goes first, even if a pending one is older."""
        ledger = HistoryLedger(max_history_size=2)
        pending = ledger.create(CreatePayload("/pending"))
        done = _completed(ledger, "/done")
        newest = ledger.create(CreatePayload("/newest"))

        assert pending.id in ledger
        assert newest.id in ledger
        assert done.id not in ledger

    def test_on_evict_called(self) -> None:
        """The eviction callback receives each evicted record."""
        evicted: list[OperationRecord] = []
        ledger = HistoryLedger(max_history_size=1, on_evict=evicted.append)
        first = _completed(ledger, "/a")
        _completed(ledger, "/b")

        assert [r.id for r in evicted] == [first.id]

    def test_prune_removes_old_terminal_records(self, ledger: HistoryLedger) -> None:
        """prune drops terminal records created before the cutoff."""
        old = _completed(ledger, "/old")
        old.created_at = datetime.now(UTC) - timedelta(days=10)
        stale_pending = ledger.create(CreatePayload("/pending"))
        stale_pending.created_at = datetime.now(UTC) - timedelta(days=10)
        fresh = _completed(ledger, "/fresh")

        removed = ledger.prune(datetime.now(UTC) - timedelta(days=7))

        assert [r.id for r in removed] == [old.id]
        assert stale_pending.id in ledger
        assert fresh.id in ledger

    def test_clear(self, ledger: HistoryLedger) -> None:
        """clear removes every record."""
        _completed(ledger, "/a")
        ledger.clear()
        assert len(ledger) == 0


class TestUndoableView:
    """Tests for HistoryLedger.list_undoable."""

    def test_only_completed_reversible(self, ledger: HistoryLedger) -> None:
        """Only completed records with reversal data are listed."""
        done = _completed(ledger, "/done")
        failed = ledger.create(CreatePayload("/failed"))
        ledger.set_status(failed.id, OperationStatus.FAILED)
        ledger.create(CreatePayload("/pending"))

        assert [r.id for r in ledger.list_undoable()] == [done.id]


class TestPersistence:
    """Tests for the JSON state file."""

    def test_state_file_written(self, tmp_path: Path) -> None:
        """Changes are written to the state file."""
        state_path = tmp_path / "state" / "history.json"
        ledger = HistoryLedger(state_path=state_path)
        record = _completed(ledger, "/a")

        data = json.loads(state_path.read_text(encoding="utf-8"))
        assert data["version"] == 1
        assert data["operations"][0]["id"] == record.id
        assert data["operations"][0]["status"] == "completed"

    def test_reload_restores_records(self, tmp_path: Path) -> None:
        """A new ledger on the same file sees earlier records in order."""
        state_path = tmp_path / "history.json"
        ledger = HistoryLedger(state_path=state_path)
        first = _completed(ledger, "/a")
        second = ledger.create(CopyPayload(["/b"], "/t"))
        ledger.mark_files_created(second.id, ["/t/b"])

        reloaded = HistoryLedger(state_path=state_path)

        assert [r.id for r in reloaded.list()] == [second.id, first.id]
        copied = reloaded.require(second.id).payload
        assert isinstance(copied, CopyPayload)
        assert copied.created_files == ["/t/b"]

    def test_corrupt_records_skipped(self, tmp_path: Path) -> None:
        """Malformed records are skipped, valid ones kept."""
        state_path = tmp_path / "history.json"
        good = HistoryLedger(state_path=state_path)
        record = _completed(good, "/a")

        data = json.loads(state_path.read_text(encoding="utf-8"))
        data["operations"].append({"id": "op_bad", "type": "teleport"})
        state_path.write_text(json.dumps(data), encoding="utf-8")

        reloaded = HistoryLedger(state_path=state_path)
        assert len(reloaded) == 1
        assert record.id in reloaded

    def test_unreadable_file_starts_empty(self, tmp_path: Path) -> None:
        """A file that is not JSON yields an empty ledger."""
        state_path = tmp_path / "history.json"
        state_path.write_text("{not json", encoding="utf-8")

        assert len(HistoryLedger(state_path=state_path)) == 0

    def test_no_temp_files_left(self, tmp_path: Path) -> None:
        """Atomic writes leave no temporary files behind."""
        ledger = HistoryLedger(state_path=tmp_path / "history.json")
        _completed(ledger, "/a")
        assert list(tmp_path.glob("*.tmp")) == []
