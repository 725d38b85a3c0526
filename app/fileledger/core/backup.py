"""Backup vault for destructive operations.

Copies items into a side location before they are deleted so the delete
can be reversed later. Snapshots are laid out as::

    <backup_dir>/<operation_id>/<index>/<basename>

which keeps every copy traceable to its operation and original name,
even when two deleted items share a basename.
"""

import logging
import shutil
from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path

from fileledger.models.backup import BackupEntry, BackupHandle

logger = logging.getLogger(__name__)


class BackupVault:
    """Snapshots and restores file and directory trees.

    Concurrent calls for disjoint path sets are safe. Snapshot and restore
    on overlapping paths must not run concurrently.

    Attributes:
        _backup_dir: Root of the backup area.
    """

    def __init__(self, backup_dir: Path) -> None:
        """Initialize the BackupVault.

        Args:
            backup_dir: Root of the backup area. Created lazily.
        """
        self._backup_dir = backup_dir

    @property
    def backup_dir(self) -> Path:
        return self._backup_dir

    def snapshot(self, operation_id: str, paths: list[str]) -> BackupHandle | None:
        """Copy each path into the backup area.

        Per-path failures are logged and skipped; the returned handle only
        lists the paths that were copied.

        Args:
            operation_id: Operation the snapshot belongs to.
            paths: Paths about to be destroyed.

        Returns:
            Handle for the snapshot, or None if the snapshot directory
            itself could not be created.
        """
        location = self._backup_dir / operation_id
        try:
            location.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning("Could not create backup directory %s: %s", location, e)
            return None

        entries: list[BackupEntry] = []
        for index, path in enumerate(paths):
            backup_path = self._copy_in(path, location / str(index))
            if backup_path is not None:
                entries.append(BackupEntry(original_path=path, backup_path=backup_path))

        logger.info(
            "Snapshot for %s: %d of %d item(s) backed up",
            operation_id,
            len(entries),
            len(paths),
        )
        return BackupHandle(
            operation_id=operation_id,
            location=str(location),
            created_at=datetime.now(UTC),
            entries=tuple(entries),
        )

    def restore(self, handle: BackupHandle, original_paths: Iterable[str] | None = None) -> bool:
        """Copy snapshot content back to the original locations.

        Parent directories are recreated as needed. Restored directories are
        merged into any directory already present at the original path.

        Args:
            handle: Snapshot to restore from.
            original_paths: Paths to restore. Defaults to every entry.

        Returns:
            True if every requested path was restored, False if any of them
            has no backup (those are skipped, the rest are still restored).

        Raises:
            OSError: If copying content back fails.
        """
        requested = list(original_paths) if original_paths is not None else [
            entry.original_path for entry in handle.entries
        ]

        complete = True
        for original in requested:
            entry = handle.entry_for(original)
            if entry is None:
                logger.warning("No backup of %s in %s", original, handle.location)
                complete = False
                continue

            source = Path(entry.backup_path)
            if not source.exists() and not source.is_symlink():
                logger.warning("Backup content missing: %s", source)
                complete = False
                continue

            target = Path(original)
            target.parent.mkdir(parents=True, exist_ok=True)
            if source.is_dir() and not source.is_symlink():
                shutil.copytree(source, target, symlinks=True, dirs_exist_ok=True)
            else:
                shutil.copy2(source, target, follow_symlinks=False)
            logger.debug("Restored %s from %s", original, source)

        return complete

    def discard(self, handle: BackupHandle) -> bool:
        """Remove a snapshot from the backup area.

        Args:
            handle: Snapshot to remove.

        Returns:
            True if the snapshot is gone, False if removal failed.
        """
        return self._remove(Path(handle.location))

    def purge_older_than(self, cutoff: datetime, keep: Iterable[str] = ()) -> int:
        """Remove snapshot directories last modified before a cutoff.

        Best-effort: failures are logged and leave the directory in place.

        Args:
            cutoff: Snapshots modified before this moment are removed.
            keep: Operation IDs whose snapshots must be kept.

        Returns:
            Number of snapshot directories removed.
        """
        if not self._backup_dir.is_dir():
            return 0

        protected = set(keep)
        removed = 0
        for child in self._backup_dir.iterdir():
            if not child.is_dir() or child.name in protected:
                continue
            try:
                mtime = datetime.fromtimestamp(child.stat().st_mtime, UTC)
            except OSError as e:
                logger.warning("Could not stat backup %s: %s", child, e)
                continue
            if mtime < cutoff and self._remove(child):
                removed += 1

        if removed:
            logger.info("Purged %d stale backup(s) from %s", removed, self._backup_dir)
        return removed

    def _copy_in(self, path: str, slot: Path) -> str | None:
        """Copy a single path into its snapshot slot.

        Args:
            path: Live path to back up.
            slot: Per-entry directory inside the snapshot.

        Returns:
            Backup path as string if successful, None on failure.
        """
        source = Path(path)
        if not source.exists() and not source.is_symlink():
            logger.warning("Nothing to back up, path does not exist: %s", path)
            return None

        try:
            slot.mkdir(parents=True, exist_ok=True)
            dest = slot / (source.name or "root")
            if source.is_dir() and not source.is_symlink():
                shutil.copytree(source, dest, symlinks=True)
            else:
                shutil.copy2(source, dest, follow_symlinks=False)
            return str(dest)
        except OSError as e:
            logger.warning("Backup failed for %s: %s", path, e)
            return None

    def _remove(self, location: Path) -> bool:
        if not location.exists():
            return True
        try:
            shutil.rmtree(location)
            return True
        except OSError as e:
            logger.warning("Could not remove backup %s: %s", location, e)
            return False
