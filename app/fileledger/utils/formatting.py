"""Rich console formatting utilities.

Provides consistent formatting for CLI output using Rich.
"""

from __future__ import annotations

import sys
from datetime import datetime
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from fileledger.core.theme import get_theme

if TYPE_CHECKING:
    from fileledger.models.errors import FileOperationError
    from fileledger.models.operation import OperationRecord


def _detect_color_system() -> str | None:
    """Detect the best color system for the current terminal.

    Returns "truecolor" for interactive terminals to enable full hex color support,
    None otherwise to let Rich auto-detect.
    """
    if sys.stdout.isatty():
        return "truecolor"
    return None


# Shared console instances (theme loaded once at import)
console = Console(theme=get_theme(), color_system=_detect_color_system())
err_console = Console(theme=get_theme(), stderr=True, color_system=_detect_color_system())


def create_history_table(title: str = "Operation History") -> Table:
    """Create a pre-configured table for displaying operation records.

    Args:
        title: Table title.

    Returns:
        Rich Table configured for record display.
    """
    table = Table(
        title=title,
        show_header=True,
        header_style="bold_header",
        border_style="border",
        row_styles=["", "on grey7"],
    )
    table.add_column("ID", style="muted", no_wrap=True)
    table.add_column("Created", style="info")
    table.add_column("Type", no_wrap=True)
    table.add_column("Description", style="text", overflow="ellipsis")
    table.add_column("Status", no_wrap=True)
    table.add_column("Undo?", justify="center")
    return table


def format_record_row(record: OperationRecord) -> tuple[str, str, str, str, str, str]:
    """Format an operation record as a table row with styling.

    Args:
        record: The record to format.

    Returns:
        Tuple of (id, created, type, description, status, undo) with Rich markup.
    """
    status = record.status.value
    return (
        record.id,
        format_timestamp(record.created_at),
        record.operation_type.value,
        escape(record.description),
        f"[status.{status}]{status}[/]",
        "[success]yes[/]" if record.can_undo else "[muted]no[/]",
    )


def format_timestamp(moment: datetime) -> str:
    """Format a timestamp as local time for display."""
    return moment.astimezone().strftime("%Y-%m-%d %H:%M:%S")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[info]{message}[/]")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[success]{message}[/]")


def print_warning(message: str) -> None:
    """Print a warning message."""
    err_console.print(f"[warning]Warning:[/] {message}")


def print_error(message: str) -> None:
    """Print an error message."""
    err_console.print(f"[error]Error:[/] {message}")


def print_operation_error(error: FileOperationError) -> None:
    """Print a file operation failure with its recovery suggestions."""
    print_error(escape(error.user_message()))
    for suggestion in error.recovery_suggestions():
        err_console.print(f"  [muted]-[/] {suggestion}")
