"""Main CLI application entry point.

Defines the Typer application and global options.
"""

import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.logging import RichHandler

from fileledger import __version__
from fileledger.cli.commands import config, history, ops, undo
from fileledger.utils.formatting import err_console

# Create main Typer app
app = typer.Typer(
    name="fileledger",
    help="File operations with history, automatic retries and undo.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"fileledger version {__version__}")
        raise typer.Exit()


def configure_logging(verbose: bool) -> None:
    """Route log records to stderr through Rich.

    Args:
        verbose: Log at DEBUG level instead of WARNING.
    """
    handler = RichHandler(console=err_console, show_path=False, rich_tracebacks=True)
    root = logging.getLogger("fileledger")
    root.handlers = [handler]
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)


@app.callback()
def main(
    ctx: typer.Context,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable debug logging.",
        ),
    ] = False,
    state_dir: Annotated[
        Path | None,
        typer.Option(
            "--state-dir",
            envvar="FILELEDGER_STATE_DIR",
            help="Directory holding history and backups.",
        ),
    ] = None,
    config_path: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            envvar="FILELEDGER_CONFIG",
            help="Settings file to use.",
        ),
    ] = None,
) -> None:
    """fileledger - recoverable file operations.

    Every copy, move, delete, rename and create is recorded in a history
    ledger, retried on transient failures and can be undone later.
    """
    configure_logging(verbose)

    # Store options in context for subcommands
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["state_dir"] = state_dir
    ctx.obj["config_path"] = config_path


# Register commands
app.command(name="cp")(ops.copy)
app.command(name="mv")(ops.move)
app.command(name="rm")(ops.remove)
app.command(name="rename")(ops.rename)
app.command(name="touch")(ops.touch)
app.command(name="mkdir")(ops.mkdir)
app.command(name="undo")(undo.undo)
app.add_typer(history.app, name="history")
app.add_typer(config.app, name="config")


if __name__ == "__main__":
    app()
