"""Filesystem mutation operator.

Performs the raw copy, move, delete, rename and create calls. Every
``OSError`` is re-raised as a typed FileOperationError so callers and the
retry orchestrator see a classified failure.

Multi-item methods take a caller-owned ``progress`` list. Each completed
destination is appended to it, and sources whose destination is already
listed are skipped, so a retried call resumes instead of colliding with
its own earlier output. An item whose copy fails part-way has its partial
destination removed before the error is raised.
"""

import errno
import logging
import os
import shutil
from pathlib import Path

from fileledger.models.errors import FileOperationError, FileOperationErrorType

logger = logging.getLogger(__name__)


class FileOperator:
    """Executes single filesystem mutations.

    Stateless: the operator never records history; the recovery
    coordinator wraps its calls.
    """

    def copy(
        self,
        sources: list[str],
        target_directory: str,
        progress: list[str] | None = None,
    ) -> list[str]:
        """Copy items into a directory.

        Args:
            sources: Files or directories to copy.
            target_directory: Existing destination directory.
            progress: Caller-owned list of destinations already written.

        Returns:
            Destination paths, in source order.

        Raises:
            FileOperationError: If the target is missing, a destination
                already exists or copying fails.
        """
        written = progress if progress is not None else []
        self._require_directory(target_directory)

        for source in sources:
            dest = self._destination(source, target_directory)
            if dest in written:
                continue
            self._require_absent(dest)
            self._copy_item(source, dest, context="copy")
            written.append(dest)
            logger.debug("Copied %s -> %s", source, dest)

        return list(written)

    def move(
        self,
        sources: list[str],
        target_directory: str,
        progress: list[str] | None = None,
    ) -> list[str]:
        """Move items into a directory.

        Args:
            sources: Files or directories to move.
            target_directory: Existing destination directory.
            progress: Caller-owned list of destinations already written.

        Returns:
            Destination paths, in source order.

        Raises:
            FileOperationError: If the target is missing, a destination
                already exists or moving fails.
        """
        written = progress if progress is not None else []
        self._require_directory(target_directory)

        for source in sources:
            dest = self._destination(source, target_directory)
            if dest in written:
                # A cross-device move may have stopped before removing the source.
                self._remove(source, context="move")
                continue
            self._require_absent(dest)
            try:
                os.rename(source, dest)
            except OSError as e:
                if e.errno != errno.EXDEV:
                    raise FileOperationError.from_error(e, source, context="move") from e
                self._copy_item(source, dest, context="move")
                written.append(dest)
                self._remove(source, context="move")
            else:
                written.append(dest)
            logger.debug("Moved %s -> %s", source, dest)

        return list(written)

    def delete(self, paths: list[str], progress: list[str] | None = None) -> list[str]:
        """Delete files and directories.

        Directories (but not symlinks to directories) are removed
        recursively.

        Args:
            paths: Paths to delete.
            progress: Caller-owned list of paths already deleted.

        Returns:
            Deleted paths.

        Raises:
            FileOperationError: If a path does not exist or removal fails.
        """
        done = progress if progress is not None else []

        for path in paths:
            if path in done:
                continue
            target = Path(path)
            try:
                if target.is_dir() and not target.is_symlink():
                    shutil.rmtree(target)
                else:
                    target.unlink()
            except OSError as e:
                raise FileOperationError.from_error(e, path, context="delete") from e
            done.append(path)
            logger.debug("Deleted %s", path)

        return list(done)

    def rename(self, old_path: str, new_path: str) -> str:
        """Rename an item without overwriting.

        Args:
            old_path: Existing path.
            new_path: New path.

        Returns:
            The new path.

        Raises:
            FileOperationError: If the new name is invalid or taken, or the
                rename fails.
        """
        self._validate_name(Path(new_path).name, new_path)
        self._require_absent(new_path)
        try:
            os.rename(old_path, new_path)
        except OSError as e:
            raise FileOperationError.from_error(e, old_path, context="rename") from e
        logger.debug("Renamed %s -> %s", old_path, new_path)
        return new_path

    def create_file(self, path: str, content: str | None = None) -> str:
        """Create a new file, failing if it exists.

        Args:
            path: File to create.
            content: Optional initial text content.

        Returns:
            The created path.

        Raises:
            FileOperationError: If the name is invalid, the file exists or
                writing fails.
        """
        self._validate_name(Path(path).name, path)
        try:
            with open(path, "x", encoding="utf-8") as f:
                if content:
                    f.write(content)
        except OSError as e:
            raise FileOperationError.from_error(e, path, context="create") from e
        logger.debug("Created file %s", path)
        return path

    def create_folder(self, path: str) -> str:
        """Create a new directory, failing if it exists.

        Missing parents are created.

        Args:
            path: Directory to create.

        Returns:
            The created path.

        Raises:
            FileOperationError: If the name is invalid, the directory
                exists or creation fails.
        """
        self._validate_name(Path(path).name, path)
        try:
            Path(path).mkdir(parents=True, exist_ok=False)
        except OSError as e:
            raise FileOperationError.from_error(e, path, context="create_folder") from e
        logger.debug("Created folder %s", path)
        return path

    @staticmethod
    def _copy_item(source: str, dest: str, context: str) -> None:
        src = Path(source)
        try:
            if src.is_dir() and not src.is_symlink():
                shutil.copytree(src, dest, symlinks=True)
            else:
                shutil.copy2(src, dest, follow_symlinks=False)
        except OSError as e:
            # dest was absent before the call, so anything there is partial output.
            FileOperator._discard_partial(dest)
            raise FileOperationError.from_error(e, source, context=context) from e

    @staticmethod
    def _discard_partial(dest: str) -> None:
        target = Path(dest)
        try:
            if target.is_dir() and not target.is_symlink():
                shutil.rmtree(target)
            else:
                target.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Could not remove partial copy %s: %s", dest, e)

    @staticmethod
    def _remove(path: str, context: str) -> None:
        target = Path(path)
        if not (target.exists() or target.is_symlink()):
            return
        try:
            if target.is_dir() and not target.is_symlink():
                shutil.rmtree(target)
            else:
                target.unlink()
        except OSError as e:
            raise FileOperationError.from_error(e, path, context=context) from e

    @staticmethod
    def _destination(source: str, target_directory: str) -> str:
        return str(Path(target_directory) / Path(source).name)

    @staticmethod
    def _require_directory(path: str) -> None:
        if not Path(path).is_dir():
            raise FileOperationError(
                FileOperationErrorType.FILE_NOT_FOUND,
                path,
                f"Destination directory does not exist: {path}",
            )

    @staticmethod
    def _require_absent(path: str) -> None:
        target = Path(path)
        if target.exists() or target.is_symlink():
            raise FileOperationError(
                FileOperationErrorType.FILE_ALREADY_EXISTS,
                path,
                f"Path already exists: {path}",
            )

    @staticmethod
    def _validate_name(name: str, path: str) -> None:
        if not name or name in (".", "..") or "\x00" in name:
            raise FileOperationError(
                FileOperationErrorType.INVALID_FILE_NAME,
                path,
                f"Invalid file name: {name!r}",
            )
