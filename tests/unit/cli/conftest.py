"""Fixtures for CLI tests.

Every invocation runs against a state directory and settings path under
tmp_path, so tests never touch the user's history.
"""

from collections.abc import Callable
from pathlib import Path

import pytest
from fileledger.cli.main import app
from fileledger.core.service import LedgerService
from fileledger.core.settings import load_settings_or_default
from fileledger.utils import formatting
from typer.testing import CliRunner, Result

runner = CliRunner()


@pytest.fixture(autouse=True)
def wide_console(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep Rich from wrapping long temporary paths and table columns."""
    monkeypatch.setattr(formatting.console, "width", 200)
    monkeypatch.setattr(formatting.err_console, "width", 200)


@pytest.fixture
def state_dir(tmp_path: Path) -> Path:
    return tmp_path / "state"


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    return tmp_path / "config.toml"


@pytest.fixture
def invoke(state_dir: Path, config_file: Path) -> Callable[..., Result]:
    """Run the CLI with isolated global options."""

    def _invoke(*args: str, input: str | None = None) -> Result:
        return runner.invoke(
            app,
            ["--state-dir", str(state_dir), "--config", str(config_file), *args],
            input=input,
        )

    return _invoke


@pytest.fixture
def open_service(state_dir: Path, config_file: Path) -> Callable[[], LedgerService]:
    """Open the persisted ledger the CLI writes to."""

    def _open() -> LedgerService:
        return LedgerService.from_settings(load_settings_or_default(config_file), state_dir)

    return _open
