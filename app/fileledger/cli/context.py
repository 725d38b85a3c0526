"""Shared helpers for CLI commands.

Builds the LedgerService from the global CLI options and runs async
service calls, translating failures into user-facing errors.
"""

import asyncio
import logging
from collections.abc import Coroutine
from pathlib import Path
from typing import Any, TypeVar

import typer
from rich.markup import escape

from fileledger.core.service import LedgerService
from fileledger.core.settings import SettingsError, load_settings_or_default
from fileledger.models.errors import FileOperationError
from fileledger.utils.formatting import print_error, print_operation_error

logger = logging.getLogger(__name__)

T = TypeVar("T")


def get_state_dir(ctx: typer.Context) -> Path | None:
    """Get the state directory override from the global options."""
    obj = ctx.ensure_object(dict)
    return obj.get("state_dir")


def get_config_path(ctx: typer.Context) -> Path | None:
    """Get the settings file override from the global options."""
    obj = ctx.ensure_object(dict)
    return obj.get("config_path")


def get_service(ctx: typer.Context) -> LedgerService:
    """Build the service for one CLI invocation.

    Runs the housekeeping sweep on access so stale records and backups are
    purged without a long-running process.

    Args:
        ctx: Typer context carrying the global options.

    Returns:
        A LedgerService with persistent history.

    Raises:
        typer.Exit: If the settings file is invalid.
    """
    try:
        settings = load_settings_or_default(get_config_path(ctx))
    except SettingsError as e:
        print_error(escape(str(e)))
        raise typer.Exit(code=1) from e

    service = LedgerService.from_settings(settings, get_state_dir(ctx))
    try:
        service.cleanup_old_operations()
    except OSError as e:
        logger.warning("Cleanup sweep failed: %s", e)
    return service


def run_operation(coro: Coroutine[Any, Any, T]) -> T:
    """Run an async service call to completion.

    Args:
        coro: The coroutine to run.

    Returns:
        The coroutine's result.

    Raises:
        typer.Exit: With code 1 if the operation failed.
    """
    try:
        return asyncio.run(coro)
    except FileOperationError as e:
        print_operation_error(e)
        raise typer.Exit(code=1) from e


def absolute(path: Path) -> str:
    """Make a CLI path absolute without resolving symlinks."""
    return str(path.expanduser().absolute())
