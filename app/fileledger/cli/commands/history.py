"""History command for viewing recorded operations.

This module provides the `fileledger history` command for listing the
operation ledger and `fileledger history clear` for emptying it.
"""

import json
from typing import Annotated

import typer

from fileledger.cli.context import get_service
from fileledger.models.operation import OperationRecord
from fileledger.utils.formatting import (
    console,
    create_history_table,
    format_record_row,
    print_info,
    print_success,
)

app = typer.Typer(
    name="history",
    help="View recorded file operations.",
    invoke_without_command=True,
)


@app.callback(invoke_without_command=True)
def history(
    ctx: typer.Context,
    limit: Annotated[
        int,
        typer.Option(
            "--limit",
            "-n",
            min=1,
            help="Maximum number of entries to show.",
        ),
    ] = 20,
    undoable: Annotated[
        bool,
        typer.Option(
            "--undoable",
            "-u",
            help="Only show operations that can be undone.",
        ),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output as JSON.",
        ),
    ] = False,
) -> None:
    """Show recorded file operations, most recent first.

    Examples:
        fileledger history              # Show last 20 entries
        fileledger history -n 50        # Show last 50 entries
        fileledger history --undoable   # Only undoable operations
        fileledger history --json       # JSON output for scripting
    """
    if ctx.invoked_subcommand is not None:
        return

    service = get_service(ctx)
    if undoable:
        records = service.get_undoable_operations()[:limit]
    else:
        records = service.get_operation_history(limit=limit)

    if json_output:
        _print_json(records)
        return

    if not records:
        print_info("No operations recorded.")
        return

    _print_table(records)


@app.command()
def clear(
    ctx: typer.Context,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
) -> None:
    """Remove every record and its backups. Cleared operations cannot be undone."""
    if not yes:
        confirmed = typer.confirm("Clear the whole operation history?")
        if not confirmed:
            print_info("Cancelled.")
            return

    service = get_service(ctx)
    service.clear_history()
    print_success("History cleared.")


def _print_table(records: list[OperationRecord]) -> None:
    """Print records as a Rich table.

    Args:
        records: Records to display.
    """
    table = create_history_table()
    for record in records:
        table.add_row(*format_record_row(record))
    console.print(table)


def _print_json(records: list[OperationRecord]) -> None:
    """Print records as JSON for scripting.

    Args:
        records: Records to output.
    """
    output = [record.to_dict() for record in records]
    typer.echo(json.dumps(output, indent=2))
