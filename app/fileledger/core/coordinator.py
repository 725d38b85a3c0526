"""Recovery coordinator.

Binds the history ledger, backup vault and retry orchestrator into one
lifecycle for a file operation:

    PENDING -> IN_PROGRESS -> (retries) -> COMPLETED | FAILED

Every failure is recorded on the operation record before it propagates to
the caller.
"""

import dataclasses
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, TypeVar

from fileledger.core.backup import BackupVault
from fileledger.core.state import HistoryLedger
from fileledger.models.errors import FileOperationError, FileOperationErrorType
from fileledger.models.operation import (
    CopyPayload,
    DeletePayload,
    MovePayload,
    OperationPayload,
    OperationStatus,
)
from fileledger.recovery.retry import RetryConfig, RetryOrchestrator

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RecoveryCoordinator:
    """Runs file operations under retry while keeping the ledger current.

    Multi-item units of work track their own partial progress; the
    coordinator never rolls back partial effects.

    Attributes:
        ledger: History ledger receiving the records.
        orchestrator: Retry orchestrator executing units of work.
        vault: Backup vault snapshotting deletes (None disables backups).
        enable_backups: Whether deletes are snapshotted before running.
    """

    def __init__(
        self,
        ledger: HistoryLedger,
        orchestrator: RetryOrchestrator,
        vault: BackupVault | None = None,
        enable_backups: bool = True,
    ) -> None:
        self.ledger = ledger
        self.orchestrator = orchestrator
        self.vault = vault
        self.enable_backups = enable_backups

    def record(self, payload: OperationPayload) -> str:
        """Create a PENDING record, snapshotting deleted paths first.

        Args:
            payload: Type-specific operation data.

        Returns:
            The new operation ID.
        """
        operation_id = self.ledger.new_id()
        payload = self._with_backup(payload, operation_id)
        return self.ledger.create(payload, operation_id).id

    async def run(
        self,
        payload: OperationPayload,
        unit_of_work: Callable[[], T | Awaitable[T]],
        config: RetryConfig | Mapping[str, Any] | None = None,
        operation_id: str | None = None,
    ) -> T:
        """Record an operation and execute it with retries.

        For copies and moves the unit of work must return the destination
        paths it wrote; they are stored on the record.

        Args:
            payload: Type-specific operation data.
            unit_of_work: Zero-argument callable performing the mutation.
            config: Retry policy or overrides for this call.
            operation_id: Existing PENDING record to run instead of creating
                a new one.

        Returns:
            The unit of work's result.

        Raises:
            Exception: Whatever the unit of work finally raised, after the
                record has been marked FAILED.
            asyncio.CancelledError: If the run is cancelled, after the record
                has been marked FAILED.
        """
        if operation_id is None:
            operation_id = self.record(payload)
        record = self.ledger.require(operation_id)
        name = f"{record.operation_type.value}:{operation_id}"

        self.ledger.set_status(operation_id, OperationStatus.IN_PROGRESS)
        try:
            result = await self.orchestrator.execute_with_retry(name, unit_of_work, config)
        except Exception as e:
            error = FileOperationError.from_error(
                e, record.payload.primary_path, context=record.operation_type.value
            )
            self.ledger.set_status(operation_id, OperationStatus.FAILED, error)
            logger.error("Operation %s failed: %s", operation_id, error.message)
            raise
        except BaseException:
            error = FileOperationError(
                FileOperationErrorType.UNKNOWN_ERROR,
                record.payload.primary_path,
                "Operation was interrupted",
                context="cancelled",
            )
            self.ledger.set_status(operation_id, OperationStatus.FAILED, error)
            logger.warning("Operation %s interrupted", operation_id)
            raise

        if isinstance(record.payload, CopyPayload | MovePayload) and result:
            self.ledger.mark_files_created(operation_id, list(result))  # type: ignore[call-overload]
        self.ledger.set_status(operation_id, OperationStatus.COMPLETED)
        return result

    def _with_backup(self, payload: OperationPayload, operation_id: str) -> OperationPayload:
        if not isinstance(payload, DeletePayload) or payload.backup is not None:
            return payload
        if not self.enable_backups or self.vault is None:
            logger.debug("Backups disabled, delete will not be undoable")
            return payload

        handle = self.vault.snapshot(operation_id, payload.deleted_paths)
        if handle is None or handle.is_empty:
            if handle is not None:
                self.vault.discard(handle)
            logger.warning("No backup taken for delete of %s", payload.primary_path)
            return payload
        return dataclasses.replace(payload, backup=handle)
