"""History ledger for file operations.

This module provides the HistoryLedger class: a size-bounded sequence of
operation records with a status state machine, lookup by ID and filtered
views. The ledger can optionally persist itself to a JSON file so that
history survives across processes.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any

from fileledger.models.errors import (
    FileOperationError,
    FileOperationErrorType,
    InvalidTransitionError,
    OperationNotFoundError,
)
from fileledger.models.operation import (
    CopyPayload,
    DeletePayload,
    MovePayload,
    OperationPayload,
    OperationRecord,
    OperationStatus,
    generate_operation_id,
)

logger = logging.getLogger(__name__)

STATE_VERSION = 1

# Allowed status transitions. PENDING may finalize directly for callers that
# perform the mutation themselves and only record it.
TRANSITIONS: dict[OperationStatus, frozenset[OperationStatus]] = {
    OperationStatus.PENDING: frozenset(
        {OperationStatus.IN_PROGRESS, OperationStatus.COMPLETED, OperationStatus.FAILED}
    ),
    OperationStatus.IN_PROGRESS: frozenset({OperationStatus.COMPLETED, OperationStatus.FAILED}),
    OperationStatus.COMPLETED: frozenset({OperationStatus.UNDONE}),
    OperationStatus.FAILED: frozenset(),
    OperationStatus.UNDONE: frozenset(),
}


class HistoryLedger:
    """Bounded, thread-safe history of operation records.

    Records are kept in creation order. When the ledger grows beyond
    ``max_history_size`` the oldest terminal record is evicted; records
    that are still in flight are never evicted, so the ledger may
    temporarily exceed its bound.

    Storage location (when persistent): ~/.local/state/fileledger/history.json

    Attributes:
        max_history_size: Number of records the ledger aims to keep.
    """

    def __init__(
        self,
        max_history_size: int = 100,
        state_path: Path | None = None,
        on_evict: Callable[[OperationRecord], None] | None = None,
    ) -> None:
        """Initialize HistoryLedger.

        Args:
            max_history_size: Capacity of the ledger (must be >= 1).
            state_path: Optional JSON file to load from and persist to.
            on_evict: Called with each record removed by eviction or pruning.

        Raises:
            ValueError: If max_history_size is below 1.
        """
        if max_history_size < 1:
            msg = f"max_history_size must be >= 1, got {max_history_size}"
            raise ValueError(msg)

        self.max_history_size = max_history_size
        self._state_path = state_path
        self._on_evict = on_evict
        self._records: dict[str, OperationRecord] = {}
        self._lock = threading.RLock()

        if state_path is not None:
            self._load()

    @property
    def state_path(self) -> Path | None:
        return self._state_path

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, operation_id: object) -> bool:
        with self._lock:
            return operation_id in self._records

    def create(
        self,
        payload: OperationPayload,
        operation_id: str | None = None,
    ) -> OperationRecord:
        """Append a new PENDING record.

        Args:
            payload: Type-specific data of the operation.
            operation_id: Pre-assigned ID (e.g. one a backup was taken
                under). Generated when None.

        Returns:
            The newly created record.

        Raises:
            ValueError: If the pre-assigned ID is already in use.
        """
        with self._lock:
            if operation_id is None:
                operation_id = self.new_id()
            elif operation_id in self._records:
                msg = f"Operation ID already in use: {operation_id}"
                raise ValueError(msg)

            record = OperationRecord(id=operation_id, payload=payload)
            self._records[operation_id] = record
            evicted = self._evict_overflow()
            self._save()

        logger.info("Recorded %s operation: %s", record.operation_type.value, record.id)
        self._notify_evicted(evicted)
        return record

    def new_id(self) -> str:
        """Generate an operation ID not used by any current record."""
        with self._lock:
            operation_id = generate_operation_id()
            while operation_id in self._records:
                operation_id = generate_operation_id()
            return operation_id

    def get(self, operation_id: str) -> OperationRecord | None:
        """Find a record by ID.

        Args:
            operation_id: The operation ID to find.

        Returns:
            OperationRecord if found, None otherwise.
        """
        with self._lock:
            return self._records.get(operation_id)

    def require(self, operation_id: str) -> OperationRecord:
        """Find a record by ID or fail.

        Raises:
            OperationNotFoundError: If no record has this ID.
        """
        record = self.get(operation_id)
        if record is None:
            raise OperationNotFoundError(operation_id)
        return record

    def set_status(
        self,
        operation_id: str,
        status: OperationStatus,
        error: FileOperationError | None = None,
    ) -> OperationRecord:
        """Transition a record to a new status.

        Args:
            operation_id: The record to update.
            status: Requested status.
            error: Classified failure; only allowed with FAILED. A FAILED
                transition without an error records a generic one.

        Returns:
            The updated record.

        Raises:
            OperationNotFoundError: If no record has this ID.
            InvalidTransitionError: If the state machine forbids the change.
            ValueError: If an error is passed with a non-FAILED status.
        """
        if error is not None and status != OperationStatus.FAILED:
            msg = f"An error can only be recorded with status failed, not {status.value}"
            raise ValueError(msg)

        with self._lock:
            record = self.require(operation_id)
            if status not in TRANSITIONS[record.status]:
                raise InvalidTransitionError(operation_id, record.status.value, status.value)

            if status == OperationStatus.FAILED and error is None:
                error = FileOperationError(
                    FileOperationErrorType.UNKNOWN_ERROR,
                    record.payload.primary_path,
                    "Operation failed",
                )

            record.status = status
            record.error = error
            self._save()

        logger.info("Updated operation %s status to %s", operation_id, status.value)
        return record

    def mark_files_created(self, operation_id: str, paths: list[str]) -> OperationRecord:
        """Record destination paths written by a copy or move.

        Args:
            operation_id: The copy or move record to update.
            paths: Destination paths, in source order for moves.

        Returns:
            The updated record.

        Raises:
            OperationNotFoundError: If no record has this ID.
            ValueError: If the record is not a copy or move.
        """
        with self._lock:
            record = self.require(operation_id)
            payload = record.payload
            if isinstance(payload, CopyPayload):
                payload.created_files.extend(paths)
            elif isinstance(payload, MovePayload):
                payload.moved_files.extend(paths)
            else:
                kind = record.operation_type.value
                msg = f"Operation {operation_id} is a {kind}, not a copy or move"
                raise ValueError(msg)
            self._save()

        logger.debug("Marked %d file(s) created for %s", len(paths), operation_id)
        return record

    def invalidate_backup(self, operation_id: str) -> None:
        """Drop the backup handle of a delete record.

        Called when the snapshot content is gone, so the record stops
        reporting itself as undoable.

        Args:
            operation_id: The delete record to update.
        """
        with self._lock:
            record = self._records.get(operation_id)
            if record is None or not isinstance(record.payload, DeletePayload):
                return
            record.payload.backup = None
            self._save()

    def list(self, limit: int | None = None) -> list[OperationRecord]:
        """Get records, most recent first.

        Args:
            limit: Maximum number of records to return.
                  If None, returns all records.

        Returns:
            List of OperationRecord, newest first.
        """
        with self._lock:
            records = list(reversed(self._records.values()))

        if limit is not None:
            return records[:limit]
        return records

    def list_undoable(self) -> list[OperationRecord]:
        """Get completed records that can still be undone, newest first."""
        return [
            record
            for record in self.list()
            if record.status == OperationStatus.COMPLETED and record.can_undo
        ]

    def clear(self) -> None:
        """Remove every record."""
        with self._lock:
            self._records.clear()
            self._save()
        logger.info("Cleared operation history")

    def prune(self, older_than: datetime) -> list[OperationRecord]:
        """Remove terminal records created before a cutoff.

        Args:
            older_than: Records created before this moment are removed.

        Returns:
            The removed records.
        """
        with self._lock:
            stale = [
                record
                for record in self._records.values()
                if record.status.is_terminal and record.created_at < older_than
            ]
            for record in stale:
                del self._records[record.id]
            if stale:
                self._save()

        if stale:
            logger.info("Pruned %d old operation(s)", len(stale))
        self._notify_evicted(stale)
        return stale

    def _evict_overflow(self) -> list[OperationRecord]:
        """Evict oldest terminal records until the ledger fits its bound.

        Must be called with the lock held.

        Returns:
            The evicted records.
        """
        evicted: list[OperationRecord] = []
        while len(self._records) > self.max_history_size:
            oldest = next(
                (record for record in self._records.values() if record.status.is_terminal),
                None,
            )
            if oldest is None:
                logger.warning(
                    "History holds %d in-flight operations, exceeding limit %d",
                    len(self._records),
                    self.max_history_size,
                )
                break
            del self._records[oldest.id]
            evicted.append(oldest)
            logger.debug("Evicted operation %s from history", oldest.id)
        return evicted

    def _notify_evicted(self, records: list[OperationRecord]) -> None:
        if self._on_evict is None:
            return
        for record in records:
            self._on_evict(record)

    def _load(self) -> None:
        """Load records from the state file, skipping corrupt entries."""
        assert self._state_path is not None
        if not self._state_path.exists():
            return

        try:
            data = json.loads(self._state_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Could not read history %s, starting empty: %s", self._state_path, e)
            return

        for index, item in enumerate(data.get("operations", []), start=1):
            try:
                record = OperationRecord.from_dict(item)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping corrupt history record %d: %s", index, str(e))
                continue
            self._records[record.id] = record

    def _save(self) -> None:
        """Atomically rewrite the state file. Must be called with the lock held."""
        if self._state_path is None:
            return

        payload: dict[str, Any] = {
            "version": STATE_VERSION,
            "operations": [record.to_dict() for record in self._records.values()],
        }
        self._state_path.parent.mkdir(parents=True, exist_ok=True)

        tmp_path: Path | None = None
        try:
            with NamedTemporaryFile(
                mode="w",
                encoding="utf-8",
                dir=self._state_path.parent,
                delete=False,
                suffix=".tmp",
            ) as f:
                tmp_path = Path(f.name)
                json.dump(payload, f, indent=2)
            os.replace(str(tmp_path), str(self._state_path))
        except OSError:
            if tmp_path is not None and tmp_path.exists():
                tmp_path.unlink()
            raise
