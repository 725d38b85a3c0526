"""Operation record model for the history ledger.

This module defines the data structures describing one user-initiated
file mutation: its type, its lifecycle status and the type-specific
payload needed to reverse it.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import PurePath
from typing import Any

from fileledger.models.backup import BackupHandle
from fileledger.models.errors import FileOperationError


class OperationType(str, Enum):
    """Kind of mutation recorded in the ledger.

    Attributes:
        COPY: Items copied into a target directory.
        MOVE: Items moved into a target directory.
        DELETE: Items removed from the filesystem.
        RENAME: A single item renamed in place.
        CREATE: A new file created.
        CREATE_FOLDER: A new directory created.
    """

    COPY = "copy"
    MOVE = "move"
    DELETE = "delete"
    RENAME = "rename"
    CREATE = "create"
    CREATE_FOLDER = "create_folder"


class OperationStatus(str, Enum):
    """Lifecycle status of an operation record.

    Attributes:
        PENDING: Recorded, no I/O started yet.
        IN_PROGRESS: The mutation is being executed.
        COMPLETED: The mutation succeeded.
        FAILED: The mutation failed (terminal).
        UNDONE: The mutation was reversed (terminal).
    """

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    UNDONE = "undone"

    @property
    def is_terminal(self) -> bool:
        """True for statuses that can be evicted from the ledger."""
        return self not in (OperationStatus.PENDING, OperationStatus.IN_PROGRESS)


def _name(path: str) -> str:
    return PurePath(path).name or path


@dataclass(slots=True)
class CopyPayload:
    """Items copied into a target directory.

    Attributes:
        source_paths: Original paths, in request order.
        target_directory: Directory the copies were written to.
        created_files: Destination paths written, filled in on success.
    """

    source_paths: list[str]
    target_directory: str
    created_files: list[str] = field(default_factory=list)

    operation_type = OperationType.COPY

    @property
    def primary_path(self) -> str:
        return self.source_paths[0] if self.source_paths else self.target_directory

    def describe(self) -> str:
        return f"Copy {len(self.source_paths)} item(s) to {_name(self.target_directory)}"

    def has_reversal_data(self) -> bool:
        return bool(self.created_files)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_paths": list(self.source_paths),
            "target_directory": self.target_directory,
            "created_files": list(self.created_files),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CopyPayload:
        return cls(
            source_paths=list(data["source_paths"]),
            target_directory=data["target_directory"],
            created_files=list(data.get("created_files", [])),
        )


@dataclass(slots=True)
class MovePayload:
    """Items moved into a target directory.

    Attributes:
        source_paths: Original paths, in request order.
        target_directory: Directory the items were moved to.
        original_paths: Copy of ``source_paths`` kept for reversal.
        moved_files: Destination paths, index-aligned with ``original_paths``.
    """

    source_paths: list[str]
    target_directory: str
    original_paths: list[str] = field(default_factory=list)
    moved_files: list[str] = field(default_factory=list)

    operation_type = OperationType.MOVE

    def __post_init__(self) -> None:
        if not self.original_paths:
            self.original_paths = list(self.source_paths)

    @property
    def primary_path(self) -> str:
        return self.source_paths[0] if self.source_paths else self.target_directory

    def describe(self) -> str:
        return f"Move {len(self.source_paths)} item(s) to {_name(self.target_directory)}"

    def has_reversal_data(self) -> bool:
        return bool(self.original_paths)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_paths": list(self.source_paths),
            "target_directory": self.target_directory,
            "original_paths": list(self.original_paths),
            "moved_files": list(self.moved_files),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MovePayload:
        return cls(
            source_paths=list(data["source_paths"]),
            target_directory=data["target_directory"],
            original_paths=list(data.get("original_paths", [])),
            moved_files=list(data.get("moved_files", [])),
        )


@dataclass(slots=True)
class DeletePayload:
    """Items removed from the filesystem.

    Attributes:
        deleted_paths: Paths removed by the operation.
        backup: Snapshot taken before removal, None if backups were disabled,
            failed entirely, or were purged since.
    """

    deleted_paths: list[str]
    backup: BackupHandle | None = None

    operation_type = OperationType.DELETE

    @property
    def primary_path(self) -> str:
        return self.deleted_paths[0] if self.deleted_paths else ""

    def describe(self) -> str:
        return f"Delete {len(self.deleted_paths)} item(s)"

    def has_reversal_data(self) -> bool:
        return self.backup is not None and not self.backup.is_empty

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"deleted_paths": list(self.deleted_paths)}
        if self.backup is not None:
            result["backup"] = self.backup.to_dict()
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DeletePayload:
        backup = data.get("backup")
        return cls(
            deleted_paths=list(data["deleted_paths"]),
            backup=BackupHandle.from_dict(backup) if backup else None,
        )


@dataclass(slots=True)
class RenamePayload:
    """A single item renamed in place.

    Attributes:
        original_path: Path before the rename.
        new_path: Path after the rename.
    """

    original_path: str
    new_path: str

    operation_type = OperationType.RENAME

    @property
    def primary_path(self) -> str:
        return self.original_path

    def describe(self) -> str:
        return f"Rename {_name(self.original_path)} to {_name(self.new_path)}"

    def has_reversal_data(self) -> bool:
        return bool(self.original_path and self.new_path)

    def to_dict(self) -> dict[str, Any]:
        return {"original_path": self.original_path, "new_path": self.new_path}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RenamePayload:
        return cls(original_path=data["original_path"], new_path=data["new_path"])


@dataclass(slots=True)
class CreatePayload:
    """A new file.

    Attributes:
        created_path: Path of the created file.
        initial_content: Text written on creation, if any.
    """

    created_path: str
    initial_content: str | None = None

    operation_type = OperationType.CREATE

    @property
    def primary_path(self) -> str:
        return self.created_path

    def describe(self) -> str:
        return f"Create {_name(self.created_path)}"

    def has_reversal_data(self) -> bool:
        return bool(self.created_path)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"created_path": self.created_path}
        if self.initial_content is not None:
            result["initial_content"] = self.initial_content
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CreatePayload:
        return cls(created_path=data["created_path"], initial_content=data.get("initial_content"))


@dataclass(slots=True)
class CreateFolderPayload:
    """A new directory.

    Attributes:
        created_path: Path of the created directory.
    """

    created_path: str

    operation_type = OperationType.CREATE_FOLDER

    @property
    def primary_path(self) -> str:
        return self.created_path

    def describe(self) -> str:
        return f"Create folder {_name(self.created_path)}"

    def has_reversal_data(self) -> bool:
        return bool(self.created_path)

    def to_dict(self) -> dict[str, Any]:
        return {"created_path": self.created_path}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CreateFolderPayload:
        return cls(created_path=data["created_path"])


OperationPayload = (
    CopyPayload | MovePayload | DeletePayload | RenamePayload | CreatePayload | CreateFolderPayload
)

PAYLOAD_TYPES: dict[OperationType, type[OperationPayload]] = {
    OperationType.COPY: CopyPayload,
    OperationType.MOVE: MovePayload,
    OperationType.DELETE: DeletePayload,
    OperationType.RENAME: RenamePayload,
    OperationType.CREATE: CreatePayload,
    OperationType.CREATE_FOLDER: CreateFolderPayload,
}


def generate_operation_id() -> str:
    """Generate a unique operation ID (``op_`` + 12 hex characters)."""
    return f"op_{uuid.uuid4().hex[:12]}"


@dataclass(slots=True)
class OperationRecord:
    """Ledger entry for one user-initiated mutation.

    The record is mutated in place as the operation progresses; only the
    ledger changes ``status`` and ``error``.

    Attributes:
        id: Unique identifier, never reused.
        payload: Type-specific data needed to describe and reverse the mutation.
        status: Current lifecycle status.
        created_at: When the record was created.
        error: Classified failure, present only when status is FAILED.
    """

    id: str
    payload: OperationPayload
    status: OperationStatus = OperationStatus.PENDING
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    error: FileOperationError | None = None

    def __post_init__(self) -> None:
        """Validate record data after initialization."""
        if not self.id:
            msg = "Operation ID cannot be empty"
            raise ValueError(msg)

    @property
    def operation_type(self) -> OperationType:
        return self.payload.operation_type

    @property
    def description(self) -> str:
        return self.payload.describe()

    @property
    def can_undo(self) -> bool:
        """True only while completed and the reversal data is intact."""
        return self.status == OperationStatus.COMPLETED and self.payload.has_reversal_data()

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON storage.

        Returns:
            Dictionary representation of the record.
        """
        result: dict[str, Any] = {
            "id": self.id,
            "type": self.operation_type.value,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "description": self.description,
            "can_undo": self.can_undo,
            "payload": self.payload.to_dict(),
        }
        if self.error is not None:
            result["error"] = self.error.to_dict()
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OperationRecord:
        """Deserialize from dictionary.

        Derived fields (``description``, ``can_undo``) are ignored.

        Args:
            data: Dictionary containing record data.

        Returns:
            OperationRecord instance.

        Raises:
            KeyError: If required fields are missing.
            ValueError: If type, status or payload data is invalid.
        """
        operation_type = OperationType(data["type"])
        payload = PAYLOAD_TYPES[operation_type].from_dict(data["payload"])
        error = data.get("error")
        return cls(
            id=data["id"],
            payload=payload,
            status=OperationStatus(data["status"]),
            created_at=datetime.fromisoformat(data["created_at"]),
            error=FileOperationError.from_dict(error) if error else None,
        )
