"""CLI package for fileledger.

This package contains the Typer application and all subcommands.
"""

from fileledger.cli.main import app

__all__ = ["app"]
