"""Unit tests for operation records and payloads."""

from datetime import UTC, datetime

import pytest
from fileledger.models.backup import BackupEntry, BackupHandle
from fileledger.models.errors import FileOperationError, FileOperationErrorType
from fileledger.models.operation import (
    CopyPayload,
    CreateFolderPayload,
    CreatePayload,
    DeletePayload,
    MovePayload,
    OperationRecord,
    OperationStatus,
    OperationType,
    RenamePayload,
    generate_operation_id,
)


@pytest.fixture
def backup_handle() -> BackupHandle:
    """A snapshot holding one file."""
    return BackupHandle(
        operation_id="op_abc",
        location="/backups/op_abc",
        created_at=datetime(2026, 1, 1, tzinfo=UTC),
        entries=(BackupEntry("/data/a.txt", "/backups/op_abc/0/a.txt"),),
    )


class TestOperationStatus:
    """Tests for OperationStatus."""

    @pytest.mark.parametrize(
        ("status", "terminal"),
        [
            (OperationStatus.PENDING, False),
            (OperationStatus.IN_PROGRESS, False),
            (OperationStatus.COMPLETED, True),
            (OperationStatus.FAILED, True),
            (OperationStatus.UNDONE, True),
        ],
    )
    def test_is_terminal(self, status: OperationStatus, terminal: bool) -> None:
        """Only settled statuses are terminal."""
        assert status.is_terminal is terminal


class TestPayloads:
    """Tests for payload helpers."""

    def test_operation_types(self) -> None:
        """Each payload reports its operation type."""
        assert CopyPayload(["/a"], "/t").operation_type == OperationType.COPY
        assert MovePayload(["/a"], "/t").operation_type == OperationType.MOVE
        assert DeletePayload(["/a"]).operation_type == OperationType.DELETE
        assert RenamePayload("/a", "/b").operation_type == OperationType.RENAME
        assert CreatePayload("/a").operation_type == OperationType.CREATE
        assert CreateFolderPayload("/a").operation_type == OperationType.CREATE_FOLDER

    def test_move_keeps_original_paths(self) -> None:
        """Move payloads copy the sources for reversal."""
        payload = MovePayload(["/a", "/b"], "/t")
        assert payload.original_paths == ["/a", "/b"]
        assert payload.original_paths is not payload.source_paths

    def test_describe(self) -> None:
        """Descriptions use basenames and counts."""
        assert CopyPayload(["/a", "/b"], "/dest/photos").describe() == (
            "Copy 2 item(s) to photos"
        )
        assert RenamePayload("/x/old.txt", "/x/new.txt").describe() == (
            "Rename old.txt to new.txt"
        )

    def test_copy_without_created_files_has_no_reversal_data(self) -> None:
        """A copy is only reversible once its destinations are recorded."""
        assert not CopyPayload(["/a"], "/t").has_reversal_data()
        assert CopyPayload(["/a"], "/t", ["/t/a"]).has_reversal_data()

    def test_delete_without_backup_has_no_reversal_data(self) -> None:
        """A delete is only reversible with a non-empty backup."""
        assert not DeletePayload(["/a"]).has_reversal_data()

    def test_delete_with_empty_backup_has_no_reversal_data(self) -> None:
        """An empty snapshot does not make a delete reversible."""
        empty = BackupHandle("op_1", "/b/op_1", datetime.now(UTC))
        assert not DeletePayload(["/a"], empty).has_reversal_data()

    def test_delete_with_backup_has_reversal_data(self, backup_handle: BackupHandle) -> None:
        """A delete with snapshot content is reversible."""
        assert DeletePayload(["/data/a.txt"], backup_handle).has_reversal_data()


class TestOperationRecord:
    """Tests for OperationRecord."""

    def test_defaults(self) -> None:
        """New records are pending, timestamped and error-free."""
        record = OperationRecord(id="op_1", payload=CreatePayload("/a"))
        assert record.status == OperationStatus.PENDING
        assert record.created_at.tzinfo is not None
        assert record.error is None

    def test_empty_id_rejected(self) -> None:
        """Records require an ID."""
        with pytest.raises(ValueError, match="cannot be empty"):
            OperationRecord(id="", payload=CreatePayload("/a"))

    @pytest.mark.parametrize(
        "status",
        [
            OperationStatus.PENDING,
            OperationStatus.IN_PROGRESS,
            OperationStatus.FAILED,
            OperationStatus.UNDONE,
        ],
    )
    def test_can_undo_requires_completed(self, status: OperationStatus) -> None:
        """Only completed records can be undone."""
        record = OperationRecord(id="op_1", payload=CreatePayload("/a"), status=status)
        assert not record.can_undo

    def test_can_undo_when_completed(self) -> None:
        """Completed records with reversal data can be undone."""
        record = OperationRecord(
            id="op_1", payload=CreatePayload("/a"), status=OperationStatus.COMPLETED
        )
        assert record.can_undo

    def test_round_trip_with_backup_and_error(self, backup_handle: BackupHandle) -> None:
        """to_dict/from_dict preserve payload, backup and error."""
        record = OperationRecord(
            id="op_abc",
            payload=DeletePayload(["/data/a.txt"], backup_handle),
            status=OperationStatus.FAILED,
            error=FileOperationError(FileOperationErrorType.NETWORK_ERROR, "/data/a.txt", "x"),
        )

        restored = OperationRecord.from_dict(record.to_dict())

        assert restored.id == "op_abc"
        assert restored.status == OperationStatus.FAILED
        assert restored.created_at == record.created_at
        assert isinstance(restored.payload, DeletePayload)
        assert restored.payload.backup == backup_handle
        assert restored.error is not None
        assert restored.error.error_type == FileOperationErrorType.NETWORK_ERROR

    def test_to_dict_includes_derived_fields(self) -> None:
        """Serialized records carry description and can_undo for readers."""
        record = OperationRecord(
            id="op_1",
            payload=MovePayload(["/a"], "/t", moved_files=["/t/a"]),
            status=OperationStatus.COMPLETED,
        )
        data = record.to_dict()

        assert data["type"] == "move"
        assert data["can_undo"] is True
        assert data["description"] == "Move 1 item(s) to t"
        assert data["payload"]["moved_files"] == ["/t/a"]

    def test_from_dict_rejects_unknown_type(self) -> None:
        """Unknown operation types are invalid."""
        data = OperationRecord(id="op_1", payload=CreatePayload("/a")).to_dict()
        data["type"] = "teleport"
        with pytest.raises(ValueError):
            OperationRecord.from_dict(data)


def test_generate_operation_id_format() -> None:
    """IDs are prefixed and unique."""
    first = generate_operation_id()
    second = generate_operation_id()
    assert first.startswith("op_")
    assert len(first) == len("op_") + 12
    assert first != second
