"""Unit tests for history command.

Tests for the CLI history command implementation.
"""

import json
from collections.abc import Callable
from pathlib import Path

from fileledger.core.service import LedgerService
from fileledger.models.operation import OperationStatus
from typer.testing import Result

Invoker = Callable[..., Result]
ServiceFactory = Callable[[], LedgerService]


def _seed(open_service: ServiceFactory) -> tuple[str, str]:
    """Record one completed and one pending operation."""
    service = open_service()
    completed = service.record_create_operation("/tmp/done.txt")
    service.update_operation_status(completed, OperationStatus.COMPLETED)
    pending = service.record_create_folder_operation("/tmp/pending")
    return completed, pending


class TestHistoryCommand:
    """Tests for listing history."""

    def test_empty_history(self, invoke: Invoker) -> None:
        """An empty ledger prints a friendly message."""
        result = invoke("history")
        assert result.exit_code == 0
        assert "No operations recorded." in result.stdout

    def test_table_lists_records(self, invoke: Invoker, open_service: ServiceFactory) -> None:
        """Records appear in the table with their IDs."""
        completed, pending = _seed(open_service)

        result = invoke("history")

        assert result.exit_code == 0
        assert completed in result.stdout
        assert pending in result.stdout
        assert "Operation History" in result.stdout

    def test_limit(self, invoke: Invoker, open_service: ServiceFactory) -> None:
        """--limit shows only the newest records."""
        completed, pending = _seed(open_service)

        result = invoke("history", "-n", "1")

        assert pending in result.stdout
        assert completed not in result.stdout

    def test_undoable_filter(self, invoke: Invoker, open_service: ServiceFactory) -> None:
        """--undoable hides records that cannot be undone."""
        completed, pending = _seed(open_service)

        result = invoke("history", "--undoable")

        assert completed in result.stdout
        assert pending not in result.stdout

    def test_json_output(self, invoke: Invoker, open_service: ServiceFactory) -> None:
        """--json prints record dictionaries, newest first."""
        completed, pending = _seed(open_service)

        result = invoke("history", "--json")

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert [item["id"] for item in data] == [pending, completed]
        assert data[1]["type"] == "create"
        assert data[1]["status"] == "completed"
        assert data[1]["can_undo"] is True

    def test_json_empty(self, invoke: Invoker) -> None:
        """--json on an empty ledger prints an empty list."""
        result = invoke("history", "--json")
        assert json.loads(result.stdout) == []

    def test_invalid_limit(self, invoke: Invoker) -> None:
        """A limit below one is rejected."""
        result = invoke("history", "-n", "0")
        assert result.exit_code != 0


class TestHistoryClear:
    """Tests for history clear."""

    def test_clear_with_yes(
        self, invoke: Invoker, open_service: ServiceFactory, workspace: Path
    ) -> None:
        """clear -y empties the ledger and removes backups."""
        target = workspace / "f.txt"
        target.write_text("x")
        delete_result = invoke("rm", "-y", str(target))
        assert delete_result.exit_code == 0

        result = invoke("history", "clear", "-y")

        assert result.exit_code == 0
        assert "History cleared." in result.stdout
        service = open_service()
        assert service.get_operation_history() == []
        assert list(service.vault.backup_dir.iterdir()) == []

    def test_clear_cancelled(self, invoke: Invoker, open_service: ServiceFactory) -> None:
        """Declining keeps the history."""
        _seed(open_service)

        result = invoke("history", "clear", input="n\n")

        assert "Cancelled." in result.stdout
        assert len(open_service().get_operation_history()) == 2
