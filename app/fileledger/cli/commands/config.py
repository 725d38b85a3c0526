"""Settings commands.

Provides `fileledger config show`, `config init` and `config path` for
inspecting and creating the TOML settings file.
"""

from typing import Annotated

import typer
from rich.markup import escape
from rich.table import Table

from fileledger.cli.context import get_config_path, get_state_dir
from fileledger.core.paths import get_history_path, get_settings_path
from fileledger.core.settings import (
    LedgerSettings,
    SettingsError,
    load_settings_or_default,
    save_settings,
)
from fileledger.utils.formatting import console, print_error, print_info, print_success

app = typer.Typer(
    help="Inspect and create the settings file.",
    no_args_is_help=True,
)


@app.command()
def show(ctx: typer.Context) -> None:
    """Show the effective settings (file values merged over defaults)."""
    path = get_config_path(ctx) or get_settings_path()
    try:
        settings = load_settings_or_default(path)
    except SettingsError as e:
        print_error(escape(str(e)))
        raise typer.Exit(code=1) from e

    table = Table(title="Settings", header_style="bold_header", border_style="border")
    table.add_column("Key", style="info", no_wrap=True)
    table.add_column("Value", style="text")

    for key, value in settings.model_dump().items():
        table.add_row(key, "-" if value is None else str(value))
    table.add_row("backup area", str(settings.effective_backup_dir(get_state_dir(ctx))))
    table.add_row("history file", str(get_history_path(get_state_dir(ctx))))

    console.print(table)
    if not path.exists():
        print_info(f"No settings file at {path}, showing defaults.")


@app.command()
def init(
    ctx: typer.Context,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Overwrite an existing settings file."),
    ] = False,
) -> None:
    """Write a settings file with the default values."""
    path = get_config_path(ctx) or get_settings_path()
    if path.exists() and not force:
        print_error(f"Settings file already exists: {path} (use --force to overwrite)")
        raise typer.Exit(code=1)

    try:
        saved = save_settings(LedgerSettings(), path)
    except SettingsError as e:
        print_error(escape(str(e)))
        raise typer.Exit(code=1) from e
    print_success(f"Settings written to {saved}")


@app.command()
def path(ctx: typer.Context) -> None:
    """Print the settings file path."""
    typer.echo(str(get_config_path(ctx) or get_settings_path()))
