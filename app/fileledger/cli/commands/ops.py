"""File operation commands.

Provides `fileledger cp`, `mv`, `rm`, `rename`, `touch` and `mkdir`. Each
command runs as one recorded operation with automatic retries and prints
the operation ID that `fileledger undo` accepts.
"""

from pathlib import Path
from typing import Annotated

import typer

from fileledger.cli.context import absolute, get_service, run_operation
from fileledger.utils.formatting import console, print_success, print_warning


def copy(
    ctx: typer.Context,
    sources: Annotated[
        list[Path],
        typer.Argument(help="Files or directories to copy."),
    ],
    destination: Annotated[
        Path,
        typer.Argument(help="Existing destination directory."),
    ],
    rollback: Annotated[
        bool,
        typer.Option(
            "--rollback/--no-rollback",
            help="Remove partial copies if the operation fails.",
        ),
    ] = True,
) -> None:
    """Copy files or directories into a directory.

    Examples:
        fileledger cp notes.txt photos/ ~/backup
    """
    service = get_service(ctx)
    operation_id = run_operation(
        service.copy_files(
            [absolute(source) for source in sources],
            absolute(destination),
            rollback_on_failure=rollback,
        )
    )
    print_success(f"Copied {len(sources)} item(s) to {destination}")
    _print_operation_id(operation_id)


def move(
    ctx: typer.Context,
    sources: Annotated[
        list[Path],
        typer.Argument(help="Files or directories to move."),
    ],
    destination: Annotated[
        Path,
        typer.Argument(help="Existing destination directory."),
    ],
    rollback: Annotated[
        bool,
        typer.Option(
            "--rollback/--no-rollback",
            help="Move items back if the operation fails part-way.",
        ),
    ] = True,
) -> None:
    """Move files or directories into a directory.

    Examples:
        fileledger mv draft.md archive/
    """
    service = get_service(ctx)
    operation_id = run_operation(
        service.move_files(
            [absolute(source) for source in sources],
            absolute(destination),
            rollback_on_failure=rollback,
        )
    )
    print_success(f"Moved {len(sources)} item(s) to {destination}")
    _print_operation_id(operation_id)


def remove(
    ctx: typer.Context,
    paths: Annotated[
        list[Path],
        typer.Argument(help="Files or directories to delete."),
    ],
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
) -> None:
    """Delete files or directories (recursively), keeping a backup for undo.

    Examples:
        fileledger rm old.log build/
        fileledger rm -y tmp/
    """
    if not yes:
        confirmed = typer.confirm(f"Delete {len(paths)} item(s)?")
        if not confirmed:
            console.print("Cancelled.")
            return

    service = get_service(ctx)
    if not service.settings.enable_backups:
        print_warning("Backups are disabled; this delete cannot be undone.")

    operation_id = run_operation(service.delete_paths([absolute(path) for path in paths]))
    print_success(f"Deleted {len(paths)} item(s)")

    record = service.get_operation(operation_id)
    if record is not None and not record.can_undo:
        print_warning("No backup could be taken; this delete cannot be undone.")
    _print_operation_id(operation_id)


def rename(
    ctx: typer.Context,
    old: Annotated[Path, typer.Argument(help="Existing path.")],
    new: Annotated[
        str,
        typer.Argument(help="New name, or a path in the same directory."),
    ],
) -> None:
    """Rename a file or directory without overwriting.

    Examples:
        fileledger rename report.txt report-2026.txt
    """
    old_path = absolute(old)
    if Path(new).parent == Path("."):
        new_path = str(Path(old_path).parent / new)
    else:
        new_path = absolute(Path(new))

    service = get_service(ctx)
    operation_id = run_operation(service.rename_path(old_path, new_path))
    print_success(f"Renamed {old.name} to {Path(new_path).name}")
    _print_operation_id(operation_id)


def touch(
    ctx: typer.Context,
    path: Annotated[Path, typer.Argument(help="File to create.")],
    content: Annotated[
        str | None,
        typer.Option("--content", "-m", help="Initial text content."),
    ] = None,
) -> None:
    """Create a new file (fails if it exists).

    Examples:
        fileledger touch todo.txt --content "buy milk"
    """
    service = get_service(ctx)
    operation_id = run_operation(service.create_file(absolute(path), content))
    print_success(f"Created {path}")
    _print_operation_id(operation_id)


def mkdir(
    ctx: typer.Context,
    path: Annotated[Path, typer.Argument(help="Directory to create.")],
) -> None:
    """Create a new directory, including missing parents.

    Examples:
        fileledger mkdir projects/new
    """
    service = get_service(ctx)
    operation_id = run_operation(service.create_folder(absolute(path)))
    print_success(f"Created folder {path}")
    _print_operation_id(operation_id)


def _print_operation_id(operation_id: str) -> None:
    console.print(f"[muted]Operation {operation_id} (undo with: fileledger undo {operation_id})[/]")
