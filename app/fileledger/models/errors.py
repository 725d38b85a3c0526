"""Error taxonomy for file operations.

This module defines the typed errors raised by filesystem mutations and
by the operation ledger. Every error carries the affected path, a human
message, an optional wrapped native error and an optional context string.
"""

from __future__ import annotations

import errno
from datetime import UTC, datetime
from enum import Enum
from pathlib import PurePath
from typing import Any


class FileOperationErrorType(str, Enum):
    """Kind of failure reported by a file operation.

    Attributes:
        FILE_NOT_FOUND: The file or folder does not exist.
        PERMISSION_DENIED: The process lacks access rights.
        FILE_ALREADY_EXISTS: The destination is already taken.
        INVALID_FILE_NAME: The name is rejected by the filesystem.
        DISK_SPACE_INSUFFICIENT: The device ran out of space.
        NETWORK_ERROR: A network-backed filesystem failed transiently.
        UNKNOWN_ERROR: Anything else.
    """

    FILE_NOT_FOUND = "file_not_found"
    PERMISSION_DENIED = "permission_denied"
    FILE_ALREADY_EXISTS = "file_already_exists"
    INVALID_FILE_NAME = "invalid_file_name"
    DISK_SPACE_INSUFFICIENT = "disk_space_insufficient"
    NETWORK_ERROR = "network_error"
    UNKNOWN_ERROR = "unknown_error"


RECOVERABLE_TYPES: frozenset[FileOperationErrorType] = frozenset(
    {
        FileOperationErrorType.NETWORK_ERROR,
        FileOperationErrorType.DISK_SPACE_INSUFFICIENT,
    }
)

# errno -> error type, checked before any message matching
ERRNO_TYPES: dict[int, FileOperationErrorType] = {
    errno.ENOENT: FileOperationErrorType.FILE_NOT_FOUND,
    errno.EACCES: FileOperationErrorType.PERMISSION_DENIED,
    errno.EPERM: FileOperationErrorType.PERMISSION_DENIED,
    errno.EEXIST: FileOperationErrorType.FILE_ALREADY_EXISTS,
    errno.ENOTEMPTY: FileOperationErrorType.FILE_ALREADY_EXISTS,
    errno.ENAMETOOLONG: FileOperationErrorType.INVALID_FILE_NAME,
    errno.ENOSPC: FileOperationErrorType.DISK_SPACE_INSUFFICIENT,
    errno.EDQUOT: FileOperationErrorType.DISK_SPACE_INSUFFICIENT,
    errno.ENETDOWN: FileOperationErrorType.NETWORK_ERROR,
    errno.ENETUNREACH: FileOperationErrorType.NETWORK_ERROR,
    errno.EHOSTUNREACH: FileOperationErrorType.NETWORK_ERROR,
    errno.ESTALE: FileOperationErrorType.NETWORK_ERROR,
}

MESSAGE_TYPES: list[tuple[tuple[str, ...], FileOperationErrorType]] = [
    (("enoent", "no such file"), FileOperationErrorType.FILE_NOT_FOUND),
    (("eacces", "permission denied"), FileOperationErrorType.PERMISSION_DENIED),
    (("eexist", "already exists"), FileOperationErrorType.FILE_ALREADY_EXISTS),
    (("enospc", "no space left"), FileOperationErrorType.DISK_SPACE_INSUFFICIENT),
]

USER_MESSAGES: dict[FileOperationErrorType, str] = {
    FileOperationErrorType.FILE_NOT_FOUND: "File or folder not found: {name}",
    FileOperationErrorType.PERMISSION_DENIED: "Permission denied: {name}",
    FileOperationErrorType.FILE_ALREADY_EXISTS: "File or folder already exists: {name}",
    FileOperationErrorType.INVALID_FILE_NAME: "Invalid file name: {name}",
    FileOperationErrorType.DISK_SPACE_INSUFFICIENT: "Not enough disk space",
    FileOperationErrorType.NETWORK_ERROR: "A network error occurred",
    FileOperationErrorType.UNKNOWN_ERROR: "Unexpected error: {message}",
}

RECOVERY_SUGGESTIONS: dict[FileOperationErrorType, tuple[str, ...]] = {
    FileOperationErrorType.FILE_NOT_FOUND: (
        "Check that the path is correct",
        "Check whether the file was moved or deleted",
    ),
    FileOperationErrorType.PERMISSION_DENIED: (
        "Check the file permissions",
        "Run with elevated privileges",
        "Check whether another program is using the file",
    ),
    FileOperationErrorType.FILE_ALREADY_EXISTS: (
        "Use a different name",
        "Delete or move the existing file",
    ),
    FileOperationErrorType.INVALID_FILE_NAME: (
        'Remove unsupported characters (< > : " | ? * / \\)',
        "Check the length of the file name",
    ),
    FileOperationErrorType.DISK_SPACE_INSUFFICIENT: (
        "Free up disk space",
        "Delete files you no longer need",
    ),
    FileOperationErrorType.NETWORK_ERROR: (
        "Check your network connection",
        "Wait a moment and try again",
    ),
    FileOperationErrorType.UNKNOWN_ERROR: (
        "Wait a moment and try again",
        "Contact your administrator if the problem persists",
    ),
}


class FileOperationError(Exception):
    """Typed failure of a file operation.

    Attributes:
        error_type: Classified kind of the failure.
        file_path: Path the failure relates to (may be empty).
        message: Human-readable description.
        original_error: The native exception this error wraps, if any.
        context: Free-text context (e.g. the operation name).
        timestamp: When the error was created.
    """

    def __init__(
        self,
        error_type: FileOperationErrorType,
        file_path: str,
        message: str,
        original_error: BaseException | None = None,
        context: str | None = None,
    ) -> None:
        super().__init__(message)
        self.error_type = error_type
        self.file_path = file_path
        self.message = message
        self.original_error = original_error
        self.context = context
        self.timestamp = datetime.now(UTC)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}({self.error_type.value!r}, "
            f"{self.file_path!r}, {self.message!r})"
        )

    def is_recoverable(self) -> bool:
        """Whether retrying the operation later may succeed.

        Returns:
            True for network and disk-space failures, False otherwise.
        """
        return self.error_type in RECOVERABLE_TYPES

    def user_message(self) -> str:
        """Get a user-facing description of the failure."""
        name = PurePath(self.file_path).name if self.file_path else ""
        return USER_MESSAGES[self.error_type].format(name=name, message=self.message)

    def recovery_suggestions(self) -> list[str]:
        """Get suggested next steps for the user."""
        return list(RECOVERY_SUGGESTIONS[self.error_type])

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON storage.

        The wrapped native error is flattened to its name and message.

        Returns:
            Dictionary representation of the error.
        """
        result: dict[str, Any] = {
            "type": self.error_type.value,
            "path": self.file_path,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.context is not None:
            result["context"] = self.context
        if self.original_error is not None:
            result["original_error"] = {
                "name": type(self.original_error).__name__,
                "message": str(self.original_error),
            }
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FileOperationError:
        """Deserialize from dictionary.

        Args:
            data: Dictionary produced by :meth:`to_dict`.

        Returns:
            FileOperationError instance (without the native error object).

        Raises:
            KeyError: If required fields are missing.
            ValueError: If the error type is invalid.
        """
        error = cls(
            error_type=FileOperationErrorType(data["type"]),
            file_path=data["path"],
            message=data["message"],
            context=data.get("context"),
        )
        if "timestamp" in data:
            error.timestamp = datetime.fromisoformat(data["timestamp"])
        return error

    @classmethod
    def from_error(
        cls,
        error: BaseException,
        file_path: str,
        context: str | None = None,
    ) -> FileOperationError:
        """Wrap a native exception in a typed error.

        ``errno`` is consulted first; the message is matched against a
        small vocabulary as a fallback. Unmatched errors become
        ``UNKNOWN_ERROR`` with the native error attached.

        Args:
            error: The exception to wrap.
            file_path: Path the failure relates to.
            context: Optional free-text context.

        Returns:
            A new FileOperationError. Errors that already are
            FileOperationError instances are returned unchanged.
        """
        if isinstance(error, FileOperationError):
            return error

        error_type = FileOperationErrorType.UNKNOWN_ERROR
        code = getattr(error, "errno", None)
        if isinstance(code, int) and code in ERRNO_TYPES:
            error_type = ERRNO_TYPES[code]
        else:
            lowered = str(error).lower()
            for needles, candidate in MESSAGE_TYPES:
                if any(needle in lowered for needle in needles):
                    error_type = candidate
                    break

        path = getattr(error, "filename", None) or file_path
        return cls(error_type, str(path), str(error) or type(error).__name__, error, context)


class LedgerError(FileOperationError):
    """Base class for operation ledger and undo failures."""

    def __init__(self, message: str, operation_id: str) -> None:
        super().__init__(FileOperationErrorType.UNKNOWN_ERROR, "", message)
        self.operation_id = operation_id


class OperationNotFoundError(LedgerError):
    """Raised when an operation ID is not in the ledger."""

    def __init__(self, operation_id: str) -> None:
        super().__init__(f"Operation {operation_id} not found", operation_id)


class OperationAlreadyUndoneError(LedgerError):
    """Raised when undoing an operation that was already undone."""

    def __init__(self, operation_id: str) -> None:
        super().__init__(f"Operation {operation_id} has already been undone", operation_id)


class OperationNotUndoableError(LedgerError):
    """Raised when an operation is not completed or lost its reversal data."""

    def __init__(self, operation_id: str) -> None:
        super().__init__(f"Operation {operation_id} cannot be undone", operation_id)


class InvalidTransitionError(LedgerError):
    """Raised when a status change violates the operation state machine."""

    def __init__(self, operation_id: str, current: str, requested: str) -> None:
        super().__init__(
            f"Operation {operation_id}: invalid transition {current} -> {requested}",
            operation_id,
        )
        self.current = current
        self.requested = requested
