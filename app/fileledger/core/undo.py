"""Undo engine for recorded file operations.

Reverses a completed operation using the data captured in its record:

- create / create folder -> delete the created path
- delete -> restore every deleted path from its backup
- rename -> rename the new path back
- copy -> delete the copies (sources were never touched)
- move -> move every moved item back to its original path

A failed reversal returns False and leaves the record untouched, so the
undo can be retried or the discrepancy inspected.
"""

import logging
import os
import shutil
from pathlib import Path

from fileledger.core.backup import BackupVault
from fileledger.core.state import HistoryLedger
from fileledger.models.errors import (
    FileOperationError,
    OperationAlreadyUndoneError,
    OperationNotUndoableError,
)
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
)

logger = logging.getLogger(__name__)

INVERSE_NAMES: dict[OperationType, str] = {
    OperationType.COPY: "delete copies",
    OperationType.MOVE: "move back",
    OperationType.DELETE: "restore from backup",
    OperationType.RENAME: "rename back",
    OperationType.CREATE: "delete file",
    OperationType.CREATE_FOLDER: "delete folder",
}


class UndoError(OSError):
    """Raised internally when a reversal step cannot be performed."""


def describe_inverse(record: OperationRecord) -> str:
    """Get the name of the action that reverses a record.

    Args:
        record: The record to describe.

    Returns:
        Human-readable name of the inverse action.
    """
    return INVERSE_NAMES.get(record.operation_type, "unknown")


class UndoEngine:
    """Reverses completed operations recorded in a HistoryLedger.

    Reversal I/O is blocking; async callers should run :meth:`undo` on a
    worker thread.
    """

    def __init__(self, ledger: HistoryLedger, vault: BackupVault | None = None) -> None:
        """Initialize the UndoEngine.

        Args:
            ledger: Ledger holding the records to reverse.
            vault: Backup vault used to restore deletes. Without one,
                deletes cannot be undone.
        """
        self._ledger = ledger
        self._vault = vault

    def undo(self, operation_id: str) -> bool:
        """Reverse a completed operation.

        Args:
            operation_id: The operation to reverse.

        Returns:
            True if the reversal succeeded and the record is now UNDONE,
            False if reversal I/O failed (record status unchanged).

        Raises:
            OperationNotFoundError: If no record has this ID.
            OperationAlreadyUndoneError: If the record was already undone.
            OperationNotUndoableError: If the record is not completed or has
                lost its reversal data.
        """
        record = self._ledger.require(operation_id)
        if record.status == OperationStatus.UNDONE:
            raise OperationAlreadyUndoneError(operation_id)
        if not record.can_undo:
            raise OperationNotUndoableError(operation_id)

        try:
            self._reverse(record)
        except (OSError, FileOperationError) as e:
            logger.error("Undo of %s failed: %s", operation_id, e)
            return False

        self._ledger.set_status(operation_id, OperationStatus.UNDONE)
        logger.info("Undid %s operation %s", record.operation_type.value, operation_id)
        return True

    def _reverse(self, record: OperationRecord) -> None:
        payload = record.payload
        if isinstance(payload, CreatePayload | CreateFolderPayload):
            _remove_path(payload.created_path)
        elif isinstance(payload, DeletePayload):
            self._restore(payload)
        elif isinstance(payload, RenamePayload):
            _move_back(payload.new_path, payload.original_path)
        elif isinstance(payload, CopyPayload):
            for path in payload.created_files:
                _remove_path(path)
        elif isinstance(payload, MovePayload):
            for current, original in zip(_moved_locations(payload), payload.original_paths):
                _move_back(current, original)
        else:
            msg = f"Unsupported operation type: {record.operation_type.value}"
            raise UndoError(msg)

    def _restore(self, payload: DeletePayload) -> None:
        if self._vault is None or payload.backup is None:
            msg = "No backup available to restore from"
            raise UndoError(msg)
        if not self._vault.restore(payload.backup, payload.deleted_paths):
            msg = f"Backup {payload.backup.location} is incomplete"
            raise UndoError(msg)


def _moved_locations(payload: MovePayload) -> list[str]:
    """Get the current location of each moved item, index-aligned with originals."""
    if payload.moved_files:
        return payload.moved_files
    return [
        str(Path(payload.target_directory) / Path(original).name)
        for original in payload.original_paths
    ]


def _remove_path(path: str) -> None:
    target = Path(path)
    if target.is_dir() and not target.is_symlink():
        shutil.rmtree(target)
    else:
        target.unlink()
    logger.debug("Removed %s", path)


def _move_back(current: str, original: str) -> None:
    if os.path.lexists(original):
        msg = f"Cannot move {current} back: {original} already exists"
        raise UndoError(msg)
    if not os.path.lexists(current):
        msg = f"Cannot move back, {current} no longer exists"
        raise UndoError(msg)
    Path(original).parent.mkdir(parents=True, exist_ok=True)
    shutil.move(current, original)
    logger.debug("Moved %s back to %s", current, original)
