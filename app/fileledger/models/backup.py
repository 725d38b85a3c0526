"""Backup handle model.

A backup handle references a point-in-time copy of files that were about
to be destroyed. Handles are immutable once created.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any


@dataclass(frozen=True, slots=True)
class BackupEntry:
    """One snapshotted path.

    Attributes:
        original_path: Live path the content was copied from.
        backup_path: Location of the copy inside the backup area.
    """

    original_path: str
    backup_path: str

    def to_dict(self) -> dict[str, str]:
        return {"original_path": self.original_path, "backup_path": self.backup_path}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BackupEntry:
        return cls(original_path=data["original_path"], backup_path=data["backup_path"])


@dataclass(frozen=True, slots=True)
class BackupHandle:
    """Opaque reference to a snapshot taken for one operation.

    Paths whose snapshot failed are simply absent from ``entries``.

    Attributes:
        operation_id: ID of the operation the snapshot belongs to.
        location: Directory holding the snapshot content.
        created_at: When the snapshot was taken.
        entries: Snapshotted paths, in the order they were requested.
    """

    operation_id: str
    location: str
    created_at: datetime
    entries: tuple[BackupEntry, ...] = ()

    def entry_for(self, original_path: str) -> BackupEntry | None:
        """Find the entry for an original path.

        Args:
            original_path: Path as passed to the snapshot.

        Returns:
            Matching BackupEntry, or None if that path was not backed up.
        """
        for entry in self.entries:
            if entry.original_path == original_path:
                return entry
        return None

    @property
    def is_empty(self) -> bool:
        """True when no path could be snapshotted."""
        return not self.entries

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON storage."""
        return {
            "operation_id": self.operation_id,
            "location": self.location,
            "created_at": self.created_at.isoformat(),
            "entries": [entry.to_dict() for entry in self.entries],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BackupHandle:
        """Deserialize from dictionary.

        Raises:
            KeyError: If required fields are missing.
            ValueError: If the timestamp is malformed.
        """
        return cls(
            operation_id=data["operation_id"],
            location=data["location"],
            created_at=datetime.fromisoformat(data["created_at"]),
            entries=tuple(BackupEntry.from_dict(e) for e in data.get("entries", [])),
        )
