"""Unit tests for the main CLI application."""

import logging
from collections.abc import Callable
from pathlib import Path

from fileledger.cli.main import app
from typer.testing import CliRunner, Result

runner = CliRunner()


class TestGlobalOptions:
    """Tests for options on the root command."""

    def test_version(self) -> None:
        """--version prints the version and exits."""
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "fileledger version 0.1.0" in result.stdout

    def test_help_lists_commands(self) -> None:
        """Help shows every command."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("cp", "mv", "rm", "rename", "touch", "mkdir", "undo", "history", "config"):
            assert command in result.stdout

    def test_verbose_enables_debug_logging(self, invoke: Callable[..., Result]) -> None:
        """-v raises the package log level to DEBUG."""
        result = invoke("-v", "history")
        assert result.exit_code == 0
        assert logging.getLogger("fileledger").level == logging.DEBUG

    def test_default_log_level(self, invoke: Callable[..., Result]) -> None:
        """Without -v only warnings are shown."""
        invoke("history")
        assert logging.getLogger("fileledger").level == logging.WARNING

    def test_state_dir_from_environment(self, tmp_path: Path) -> None:
        """FILELEDGER_STATE_DIR selects the state directory."""
        state_dir = tmp_path / "env-state"
        target = tmp_path / "made.txt"

        result = runner.invoke(
            app,
            ["touch", str(target)],
            env={
                "FILELEDGER_STATE_DIR": str(state_dir),
                "FILELEDGER_CONFIG": str(tmp_path / "none.toml"),
            },
        )

        assert result.exit_code == 0
        assert target.exists()
        assert (state_dir / "history.json").exists()

    def test_invalid_settings_file(
        self, invoke: Callable[..., Result], config_file: Path
    ) -> None:
        """A broken settings file is reported and exits with 1."""
        config_file.write_text("max_attempts = 0\n")

        result = invoke("history")

        assert result.exit_code == 1
        assert "Invalid settings content" in result.output
