"""Ledger settings.

This module provides the configuration model and I/O functions for the
operation ledger, the backup area and the retry orchestrator.

Settings are stored in ~/.config/fileledger/config.toml. Every key is
optional; missing keys fall back to the defaults below.
"""

import logging
import os
import tomllib
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Annotated

import tomli_w
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from fileledger.core.paths import get_backup_dir, get_settings_path

logger = logging.getLogger(__name__)

SEVEN_DAYS = 7 * 24 * 60 * 60


class LedgerSettings(BaseModel):
    """Configuration for the ledger, backups and automatic retries.

    Delays and ages are expressed in seconds.

    Attributes:
        max_attempts: Attempts per unit of work, including the first.
        base_delay: Delay before the second attempt.
        max_delay: Upper bound for any single backoff delay.
        backoff_multiplier: Growth factor between consecutive delays.
        jitter_enabled: Add up to 10% random delay to each backoff.
        max_history_size: Records kept in the history ledger.
        enable_backups: Snapshot items before deleting them.
        backup_directory: Backup area (None = <state dir>/backups).
        auto_cleanup_age: Age after which records and snapshots are purged.
    """

    model_config = ConfigDict(extra="forbid")

    max_attempts: Annotated[int, Field(ge=1, le=20, description="Attempts per operation")] = 3
    base_delay: Annotated[float, Field(ge=0, description="Initial backoff in seconds")] = 1.0
    max_delay: Annotated[float, Field(ge=0, description="Backoff cap in seconds")] = 30.0
    backoff_multiplier: Annotated[float, Field(ge=1, description="Backoff growth factor")] = 2.0
    jitter_enabled: bool = True
    max_history_size: Annotated[int, Field(ge=1, description="Ledger capacity")] = 100
    enable_backups: bool = True
    backup_directory: Path | None = None
    auto_cleanup_age: Annotated[
        float,
        Field(gt=0, description="Purge age in seconds"),
    ] = SEVEN_DAYS

    @model_validator(mode="after")
    def check_delays(self) -> "LedgerSettings":
        """Ensure the delay cap is not below the initial delay."""
        if self.max_delay < self.base_delay:
            msg = f"max_delay ({self.max_delay}) must be >= base_delay ({self.base_delay})"
            raise ValueError(msg)
        return self

    def effective_backup_dir(self, state_dir: Path | None = None) -> Path:
        """Get the backup directory to use.

        Args:
            state_dir: Optional override for the state directory.

        Returns:
            The configured backup directory, or the default under state_dir.
        """
        if self.backup_directory is not None:
            return self.backup_directory.expanduser()
        return get_backup_dir(state_dir)


class SettingsError(Exception):
    """Base exception for settings errors."""


class SettingsNotFoundError(SettingsError):
    """Raised when the settings file is not found."""


class SettingsParseError(SettingsError):
    """Raised when the settings file cannot be parsed."""


def load_settings(path: Path | None = None) -> LedgerSettings:
    """Load settings from a TOML file.

    Args:
        path: Path to the settings file. If None, uses the default path.

    Returns:
        Validated LedgerSettings object.

    Raises:
        SettingsNotFoundError: If the settings file doesn't exist.
        SettingsParseError: If the TOML syntax is invalid.
        SettingsError: If the content doesn't match the schema.
    """
    settings_path = path or get_settings_path()

    if not settings_path.exists():
        raise SettingsNotFoundError(f"Settings not found: {settings_path}")

    try:
        with open(settings_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise SettingsParseError(f"Invalid TOML syntax: {e}") from e
    except OSError as e:
        raise SettingsError(f"Failed to read settings: {e}") from e

    try:
        return LedgerSettings.model_validate(data)
    except (ValueError, ValidationError) as e:
        raise SettingsError(f"Invalid settings content: {e}") from e


def load_settings_or_default(path: Path | None = None) -> LedgerSettings:
    """Load settings, falling back to defaults when no file exists.

    Args:
        path: Path to the settings file. If None, uses the default path.

    Returns:
        LedgerSettings from the file, or the defaults.

    Raises:
        SettingsParseError: If the TOML syntax is invalid.
        SettingsError: If the content doesn't match the schema.
    """
    try:
        return load_settings(path)
    except SettingsNotFoundError:
        logger.debug("No settings file, using defaults")
        return LedgerSettings()


def save_settings(settings: LedgerSettings, path: Path | None = None) -> Path:
    """Save settings to a TOML file.

    The file is written atomically by first writing to a temporary file
    and then using os.replace() for atomic rename.

    Args:
        settings: The settings to save.
        path: Path to save to. If None, uses the default path.

    Returns:
        Path where the settings were saved.

    Raises:
        SettingsError: If the file cannot be written.
    """
    settings_path = path or get_settings_path()
    settings_path.parent.mkdir(parents=True, exist_ok=True)

    data = _settings_to_dict(settings)

    tmp_path: Path | None = None
    try:
        with NamedTemporaryFile(
            mode="wb",
            dir=settings_path.parent,
            delete=False,
            suffix=".tmp",
        ) as f:
            tmp_path = Path(f.name)
            tomli_w.dump(data, f)
        os.replace(str(tmp_path), str(settings_path))
    except OSError as e:
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink()
        raise SettingsError(f"Failed to write settings: {e}") from e

    return settings_path


def _settings_to_dict(settings: LedgerSettings) -> dict[str, object]:
    """Convert settings to a dictionary for TOML serialization.

    TOML has no null, so an unset backup directory is omitted.

    Args:
        settings: The settings to convert.

    Returns:
        Dictionary ready for TOML serialization.
    """
    data = settings.model_dump(exclude_none=True)
    if settings.backup_directory is not None:
        data["backup_directory"] = str(settings.backup_directory)
    return data
