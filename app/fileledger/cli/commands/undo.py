"""Undo command for reversing a recorded operation.

This module provides the `fileledger undo` command. Without an ID it
reverses the most recent operation that can still be undone.
"""

from typing import Annotated

import typer
from rich.markup import escape

from fileledger.cli.context import get_service
from fileledger.core.undo import describe_inverse
from fileledger.models.errors import LedgerError
from fileledger.models.operation import (
    CopyPayload,
    CreateFolderPayload,
    CreatePayload,
    DeletePayload,
    MovePayload,
    OperationRecord,
    RenamePayload,
)
from fileledger.utils.formatting import (
    console,
    format_timestamp,
    print_error,
    print_info,
    print_success,
)

MAX_PREVIEW_PATHS = 10


def undo(
    ctx: typer.Context,
    operation_id: Annotated[
        str | None,
        typer.Argument(help="Operation to undo (default: most recent undoable)."),
    ] = None,
    dry_run: Annotated[
        bool,
        typer.Option(
            "--dry-run",
            "-n",
            help="Show what would be undone without executing.",
        ),
    ] = False,
    yes: Annotated[
        bool,
        typer.Option(
            "--yes",
            "-y",
            help="Skip confirmation prompt.",
        ),
    ] = False,
) -> None:
    """Undo a recorded operation.

    Reverses a completed operation:
    - create / mkdir -> delete
    - rm -> restore from backup
    - rename -> rename back
    - cp -> delete the copies
    - mv -> move back

    Examples:
        fileledger undo                  # Undo the latest operation
        fileledger undo op_1a2b3c4d5e6f  # Undo a specific operation
        fileledger undo --dry-run        # Preview only
    """
    service = get_service(ctx)

    if operation_id is None:
        undoable = service.get_undoable_operations()
        if not undoable:
            print_info("No undoable operations in history.")
            return
        record = undoable[0]
    else:
        found = service.get_operation(operation_id)
        if found is None:
            print_error(f"Operation {operation_id} not found.")
            raise typer.Exit(code=1)
        record = found

    _show_undo_preview(record)

    if dry_run:
        print_info("\\[dry-run] No changes made.")
        return

    if not yes:
        confirm = typer.confirm("Do you want to undo this operation?")
        if not confirm:
            print_info("Cancelled.")
            return

    try:
        success = service.undo_operation(record.id)
    except LedgerError as e:
        print_error(e.message)
        raise typer.Exit(code=1) from e

    if success:
        print_success("Operation undone successfully.")
    else:
        print_error("Failed to undo operation. The files may have changed since.")
        raise typer.Exit(code=1)


def _show_undo_preview(record: OperationRecord) -> None:
    """Display what undoing a record will do.

    Args:
        record: The record to preview.
    """
    console.print(
        f"\n[bold]Undo: {record.operation_type.value} -> {describe_inverse(record)}[/bold]"
    )
    console.print(f"  ID: {record.id}")
    console.print(f"  Date: {format_timestamp(record.created_at)}")
    console.print(f"  Status: {record.status.value}")

    paths = _affected_paths(record)
    console.print(f"  Paths ({len(paths)}):")
    for path in paths[:MAX_PREVIEW_PATHS]:
        console.print(f"    - {escape(path)}")
    if len(paths) > MAX_PREVIEW_PATHS:
        console.print(f"    ... and {len(paths) - MAX_PREVIEW_PATHS} more")
    console.print()


def _affected_paths(record: OperationRecord) -> list[str]:
    """Get the paths undoing a record will touch."""
    payload = record.payload
    if isinstance(payload, CopyPayload):
        return list(payload.created_files)
    if isinstance(payload, MovePayload):
        return list(payload.original_paths)
    if isinstance(payload, DeletePayload):
        return list(payload.deleted_paths)
    if isinstance(payload, RenamePayload):
        return [payload.original_path]
    if isinstance(payload, CreatePayload | CreateFolderPayload):
        return [payload.created_path]
    return []
