"""Pytest configuration and shared fixtures.

This module contains fixtures used across all test modules.
"""

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest
from fileledger.core.backup import BackupVault
from fileledger.core.service import LedgerService
from fileledger.core.settings import LedgerSettings
from fileledger.core.state import HistoryLedger
from fileledger.recovery.retry import RetryConfig, RetryOrchestrator


class RecordingSleep:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture(autouse=True)
def isolate_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Point XDG directories into tmp_path and reset CLI logging config."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg-config"))
    monkeypatch.setenv("XDG_STATE_HOME", str(tmp_path / "xdg-state"))
    monkeypatch.delenv("FILELEDGER_STATE_DIR", raising=False)
    monkeypatch.delenv("FILELEDGER_CONFIG", raising=False)

    yield

    package_logger = logging.getLogger("fileledger")
    package_logger.handlers = []
    package_logger.setLevel(logging.NOTSET)


@pytest.fixture
def fake_sleep() -> RecordingSleep:
    """Sleep replacement that returns immediately."""
    return RecordingSleep()


@pytest.fixture
def fast_config() -> RetryConfig:
    """Retry policy without jitter and with short delays."""
    return RetryConfig(max_attempts=3, base_delay=0.1, max_delay=1.0, jitter_enabled=False)


@pytest.fixture
def orchestrator(fake_sleep: RecordingSleep, fast_config: RetryConfig) -> RetryOrchestrator:
    """Retry orchestrator that never actually waits."""
    return RetryOrchestrator(fast_config, sleep=fake_sleep)


@pytest.fixture
def ledger() -> HistoryLedger:
    """In-memory history ledger."""
    return HistoryLedger(max_history_size=10)


@pytest.fixture
def vault(tmp_path: Path) -> BackupVault:
    """Backup vault rooted in a temporary directory."""
    return BackupVault(tmp_path / "backups")


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Empty directory for file operations."""
    path = tmp_path / "workspace"
    path.mkdir()
    return path


@pytest.fixture
def settings(tmp_path: Path) -> LedgerSettings:
    """Settings with fast retries and a temporary backup area."""
    return LedgerSettings(
        max_attempts=3,
        base_delay=0.0,
        max_delay=0.0,
        jitter_enabled=False,
        max_history_size=10,
        backup_directory=tmp_path / "backups",
    )


@pytest.fixture
def service(
    tmp_path: Path,
    settings: LedgerSettings,
    orchestrator: RetryOrchestrator,
) -> LedgerService:
    """Service with persistent history under tmp_path and a non-waiting orchestrator."""
    return LedgerService(
        settings,
        state_dir=tmp_path / "state",
        history_path=tmp_path / "state" / "history.json",
        orchestrator=orchestrator,
    )
