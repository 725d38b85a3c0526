"""Ledger service.

This module provides LedgerService, the single object collaborators use to
record, execute, inspect and undo file operations. One instance is built at
startup (usually via :meth:`LedgerService.from_settings`) and passed to
whoever needs it; there is no module-level instance.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import shutil
from collections.abc import Awaitable, Callable, Mapping
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any, NamedTuple, TypeVar

from fileledger.core.backup import BackupVault
from fileledger.core.coordinator import RecoveryCoordinator
from fileledger.core.paths import get_history_path
from fileledger.core.settings import LedgerSettings
from fileledger.core.state import HistoryLedger
from fileledger.core.undo import UndoEngine
from fileledger.filesystem.operator import FileOperator
from fileledger.models.errors import FileOperationError
from fileledger.models.operation import (
    CopyPayload,
    CreateFolderPayload,
    CreatePayload,
    DeletePayload,
    MovePayload,
    OperationRecord,
    OperationStatus,
    RenamePayload,
)
from fileledger.recovery.classifier import is_retryable_error
from fileledger.recovery.retry import (
    RetryConfig,
    RetryContext,
    RetryOrchestrator,
    RetryStatistics,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

RetryPolicy = RetryConfig | Mapping[str, Any] | None


class CleanupResult(NamedTuple):
    """Outcome of a housekeeping sweep."""

    records_removed: int
    backups_removed: int


class LedgerService:
    """Facade over the ledger, backups, retries and undo.

    Attributes:
        settings: Active configuration.
        ledger: History ledger.
        vault: Backup vault for deletes.
        orchestrator: Retry orchestrator.
        operator: Filesystem operator used by the high-level mutations.
    """

    def __init__(
        self,
        settings: LedgerSettings | None = None,
        *,
        state_dir: Path | None = None,
        history_path: Path | None = None,
        ledger: HistoryLedger | None = None,
        vault: BackupVault | None = None,
        orchestrator: RetryOrchestrator | None = None,
        operator: FileOperator | None = None,
    ) -> None:
        """Initialize the LedgerService.

        Components that are not passed in are built from ``settings``.

        Args:
            settings: Configuration (defaults if None).
            state_dir: Override for the state directory (backups live below it).
            history_path: JSON file persisting the ledger (None = in-memory).
            ledger: Pre-built history ledger.
            vault: Pre-built backup vault.
            orchestrator: Pre-built retry orchestrator.
            operator: Filesystem operator.
        """
        self.settings = settings or LedgerSettings()
        self.vault = vault or BackupVault(self.settings.effective_backup_dir(state_dir))
        if ledger is None:
            ledger = HistoryLedger(
                max_history_size=self.settings.max_history_size,
                state_path=history_path,
                on_evict=self._discard_backup,
            )
        self.ledger = ledger
        self.orchestrator = orchestrator or RetryOrchestrator(
            RetryConfig.from_settings(self.settings)
        )
        self.operator = operator or FileOperator()

        self._coordinator = RecoveryCoordinator(
            self.ledger,
            self.orchestrator,
            self.vault,
            enable_backups=self.settings.enable_backups,
        )
        self._undo = UndoEngine(self.ledger, self.vault)
        self._cleanup_task: asyncio.Task[None] | None = None

    @classmethod
    def from_settings(
        cls,
        settings: LedgerSettings,
        state_dir: Path | None = None,
    ) -> LedgerService:
        """Build a service whose history is persisted under the state directory.

        Args:
            settings: Configuration to use.
            state_dir: Override for the state directory.

        Returns:
            A ready-to-use LedgerService.
        """
        return cls(settings, state_dir=state_dir, history_path=get_history_path(state_dir))

    # Recording

    def record_copy_operation(self, source_paths: list[str], target_directory: str) -> str:
        """Record a copy performed by the caller. Returns the operation ID."""
        return self._coordinator.record(CopyPayload(list(source_paths), target_directory))

    def record_move_operation(self, source_paths: list[str], target_directory: str) -> str:
        """Record a move performed by the caller. Returns the operation ID."""
        return self._coordinator.record(MovePayload(list(source_paths), target_directory))

    def record_delete_operation(self, paths: list[str]) -> str:
        """Record a delete about to be performed by the caller.

        Must be called before the paths are removed: the backup is taken
        here when backups are enabled.

        Args:
            paths: Paths that will be deleted.

        Returns:
            The operation ID.
        """
        return self._coordinator.record(DeletePayload(list(paths)))

    def record_rename_operation(self, original_path: str, new_path: str) -> str:
        """Record a rename performed by the caller. Returns the operation ID."""
        return self._coordinator.record(RenamePayload(original_path, new_path))

    def record_create_operation(self, path: str, content: str | None = None) -> str:
        """Record a file creation performed by the caller. Returns the operation ID."""
        return self._coordinator.record(CreatePayload(path, content))

    def record_create_folder_operation(self, path: str) -> str:
        """Record a folder creation performed by the caller. Returns the operation ID."""
        return self._coordinator.record(CreateFolderPayload(path))

    def update_operation_status(
        self,
        operation_id: str,
        status: OperationStatus,
        error: FileOperationError | None = None,
    ) -> OperationRecord:
        """Transition a record. See :meth:`HistoryLedger.set_status`."""
        return self.ledger.set_status(operation_id, status, error)

    def mark_files_created(self, operation_id: str, paths: list[str]) -> OperationRecord:
        """Store the destination paths of a copy or move."""
        return self.ledger.mark_files_created(operation_id, paths)

    # Queries

    def get_operation(self, operation_id: str) -> OperationRecord | None:
        return self.ledger.get(operation_id)

    def get_operation_history(self, limit: int | None = None) -> list[OperationRecord]:
        return self.ledger.list(limit)

    def get_undoable_operations(self) -> list[OperationRecord]:
        return self.ledger.list_undoable()

    def clear_history(self) -> None:
        """Remove every record and the backups they own."""
        for record in self.ledger.list():
            self._discard_backup(record)
        self.ledger.clear()

    # Undo

    def undo_operation(self, operation_id: str) -> bool:
        """Reverse a completed operation.

        Blocking; see :meth:`undo_operation_async` for async callers.

        Returns:
            True on success, False if reversal I/O failed.

        Raises:
            OperationNotFoundError: If no record has this ID.
            OperationAlreadyUndoneError: If the record was already undone.
            OperationNotUndoableError: If the record cannot be undone.
        """
        return self._undo.undo(operation_id)

    async def undo_operation_async(self, operation_id: str) -> bool:
        """Reverse a completed operation on a worker thread."""
        return await asyncio.to_thread(self._undo.undo, operation_id)

    # Retry

    async def execute_with_retry(
        self,
        name: str,
        unit_of_work: Callable[[], T | Awaitable[T]],
        config: RetryPolicy = None,
    ) -> T:
        """Run a unit of work under the retry policy without recording it."""
        return await self.orchestrator.execute_with_retry(name, unit_of_work, config)

    def is_retryable_error(self, error: BaseException) -> bool:
        return is_retryable_error(error)

    def get_retry_statistics(self) -> RetryStatistics:
        return self.orchestrator.get_retry_statistics()

    def get_active_retries(self) -> list[RetryContext]:
        return self.orchestrator.get_active_retries()

    def cancel_all_retries(self) -> None:
        self.orchestrator.cancel_all_retries()

    # High-level mutations

    async def copy_files(
        self,
        sources: list[str],
        target_directory: str,
        config: RetryPolicy = None,
        rollback_on_failure: bool = False,
    ) -> str:
        """Copy items into a directory as one recorded operation.

        Args:
            sources: Files or directories to copy.
            target_directory: Existing destination directory.
            config: Retry policy or overrides.
            rollback_on_failure: Delete partially written copies if the
                operation finally fails.

        Returns:
            The operation ID.

        Raises:
            FileOperationError: If the copy finally fails.
        """
        progress: list[str] = []
        payload = CopyPayload(list(sources), target_directory)
        operation_id = self._coordinator.record(payload)
        try:
            await self._coordinator.run(
                payload,
                lambda: asyncio.to_thread(self.operator.copy, sources, target_directory, progress),
                config,
                operation_id=operation_id,
            )
        except Exception:
            if rollback_on_failure and progress:
                await asyncio.to_thread(self._rollback_copy, progress)
            raise
        return operation_id

    async def move_files(
        self,
        sources: list[str],
        target_directory: str,
        config: RetryPolicy = None,
        rollback_on_failure: bool = False,
    ) -> str:
        """Move items into a directory as one recorded operation.

        Args:
            sources: Files or directories to move.
            target_directory: Existing destination directory.
            config: Retry policy or overrides.
            rollback_on_failure: Move already moved items back if the
                operation finally fails.

        Returns:
            The operation ID.

        Raises:
            FileOperationError: If the move finally fails.
        """
        progress: list[str] = []
        payload = MovePayload(list(sources), target_directory)
        operation_id = self._coordinator.record(payload)
        try:
            await self._coordinator.run(
                payload,
                lambda: asyncio.to_thread(self.operator.move, sources, target_directory, progress),
                config,
                operation_id=operation_id,
            )
        except Exception:
            if rollback_on_failure and progress:
                await asyncio.to_thread(self._rollback_move, progress, list(sources))
            raise
        return operation_id

    async def delete_paths(self, paths: list[str], config: RetryPolicy = None) -> str:
        """Back up and delete items as one recorded operation.

        Returns:
            The operation ID.

        Raises:
            FileOperationError: If the delete finally fails.
        """
        progress: list[str] = []
        payload = DeletePayload(list(paths))
        operation_id = await asyncio.to_thread(self._coordinator.record, payload)
        await self._coordinator.run(
            payload,
            lambda: asyncio.to_thread(self.operator.delete, paths, progress),
            config,
            operation_id=operation_id,
        )
        return operation_id

    async def rename_path(self, old_path: str, new_path: str, config: RetryPolicy = None) -> str:
        """Rename an item as one recorded operation. Returns the operation ID."""
        payload = RenamePayload(old_path, new_path)
        operation_id = self._coordinator.record(payload)
        await self._coordinator.run(
            payload,
            lambda: asyncio.to_thread(self.operator.rename, old_path, new_path),
            config,
            operation_id=operation_id,
        )
        return operation_id

    async def create_file(
        self,
        path: str,
        content: str | None = None,
        config: RetryPolicy = None,
    ) -> str:
        """Create a file as one recorded operation. Returns the operation ID."""
        payload = CreatePayload(path, content)
        operation_id = self._coordinator.record(payload)
        await self._coordinator.run(
            payload,
            lambda: asyncio.to_thread(self.operator.create_file, path, content),
            config,
            operation_id=operation_id,
        )
        return operation_id

    async def create_folder(self, path: str, config: RetryPolicy = None) -> str:
        """Create a directory as one recorded operation. Returns the operation ID."""
        payload = CreateFolderPayload(path)
        operation_id = self._coordinator.record(payload)
        await self._coordinator.run(
            payload,
            lambda: asyncio.to_thread(self.operator.create_folder, path),
            config,
            operation_id=operation_id,
        )
        return operation_id

    # Housekeeping

    def cleanup_old_operations(self) -> CleanupResult:
        """Remove records and backups older than ``auto_cleanup_age``.

        Best-effort: backups that cannot be removed stay on disk.

        Returns:
            CleanupResult with the number of records and backup directories
            removed.
        """
        cutoff = datetime.now(UTC) - timedelta(seconds=self.settings.auto_cleanup_age)
        removed = self.ledger.prune(cutoff)
        keep = [record.id for record in self.ledger.list()]
        purged = self.vault.purge_older_than(cutoff, keep=keep)
        if removed or purged:
            logger.info(
                "Cleanup removed %d record(s) and %d backup(s)", len(removed), purged
            )
        return CleanupResult(len(removed), purged)

    def start_cleanup_task(self, interval: float = 3600.0) -> asyncio.Task[None]:
        """Run :meth:`cleanup_old_operations` periodically in the background.

        Must be called from a running event loop.

        Args:
            interval: Seconds between sweeps.

        Returns:
            The background task (also cancelled by :meth:`aclose`).
        """
        if self._cleanup_task is None or self._cleanup_task.done():
            self._cleanup_task = asyncio.create_task(self._cleanup_loop(interval))
        return self._cleanup_task

    async def aclose(self) -> None:
        """Stop the cleanup task and forget active retries."""
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._cleanup_task
            self._cleanup_task = None
        self.orchestrator.cancel_all_retries()

    async def _cleanup_loop(self, interval: float) -> None:
        while True:
            try:
                await asyncio.to_thread(self.cleanup_old_operations)
            except OSError as e:
                logger.warning("Cleanup sweep failed: %s", e)
            await asyncio.sleep(interval)

    def _discard_backup(self, record: OperationRecord) -> None:
        payload = record.payload
        if isinstance(payload, DeletePayload) and payload.backup is not None:
            self.vault.discard(payload.backup)

    def _rollback_copy(self, written: list[str]) -> None:
        for path in reversed(written):
            try:
                self.operator.delete([path])
            except FileOperationError as e:
                logger.warning("Rollback could not remove %s: %s", path, e.message)

    def _rollback_move(self, written: list[str], sources: list[str]) -> None:
        # progress lists destinations in source order
        for dest, source in reversed(list(zip(written, sources, strict=False))):
            try:
                shutil.move(dest, source)
            except OSError as e:
                logger.warning("Rollback could not move %s back: %s", dest, e)
