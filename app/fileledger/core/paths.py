"""XDG-compliant path management for fileledger.

This module provides standardized paths following the XDG Base Directory
Specification for configuration and state storage.

XDG defaults:
- Config: ~/.config/fileledger/
- State: ~/.local/state/fileledger/
"""

import os
from pathlib import Path

# Application identifier for directory naming
APP_NAME = "fileledger"


def _get_xdg_dir(env_var: str, default_subdir: str) -> Path:
    """Get XDG directory respecting environment variable override.

    Args:
        env_var: XDG environment variable name (e.g., "XDG_CONFIG_HOME").
        default_subdir: Default subdirectory under home (e.g., ".config").

    Returns:
        Path to the application-specific directory.
    """
    base = os.environ.get(env_var)
    if base:
        return Path(base) / APP_NAME
    return Path.home() / default_subdir / APP_NAME


def get_config_dir() -> Path:
    """Get the configuration directory path.

    Returns:
        Path to ~/.config/fileledger/ (or XDG_CONFIG_HOME/fileledger/).
    """
    return _get_xdg_dir("XDG_CONFIG_HOME", ".config")


def get_state_dir() -> Path:
    """Get the state directory path.

    State data includes the operation history and the backup area.

    Returns:
        Path to ~/.local/state/fileledger/ (or XDG_STATE_HOME/fileledger/).
    """
    return _get_xdg_dir("XDG_STATE_HOME", ".local/state")


def get_settings_path() -> Path:
    """Get the settings file path.

    Returns:
        Path to ~/.config/fileledger/config.toml.
    """
    return get_config_dir() / "config.toml"


def get_history_path(state_dir: Path | None = None) -> Path:
    """Get the history file path.

    Args:
        state_dir: Optional override for the state directory.

    Returns:
        Path to ~/.local/state/fileledger/history.json.
    """
    return (state_dir or get_state_dir()) / "history.json"


def get_backup_dir(state_dir: Path | None = None) -> Path:
    """Get the default backup directory path.

    Each delete operation snapshots into its own subdirectory named after
    the operation ID.

    Args:
        state_dir: Optional override for the state directory.

    Returns:
        Path to ~/.local/state/fileledger/backups/.
    """
    return (state_dir or get_state_dir()) / "backups"
