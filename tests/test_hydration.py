"""Tests for hydration from the remote."""

from datetime import date
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from paxjournal.domain import DailyLog, create_log_content, create_todo
from paxjournal.errors import RemoteUnavailableError
from paxjournal.local import LocalLogsRepository, LocalTodosRepository
from paxjournal.remote import InMemoryLogs, InMemoryTodos
from paxjournal.sync import EventLog, LocalProjection, hydrate, load_local_state


@pytest.fixture
def event_log():
    """Create an in-memory event log."""
    log = EventLog(":memory:")
    log.connect()
    yield log
    log.close()


@pytest.fixture
def projection():
    return LocalProjection()


@pytest.fixture
def todos(event_log, projection):
    return LocalTodosRepository(event_log, projection, MagicMock(), "device-a")


@pytest.fixture
def logs(event_log, projection):
    return LocalLogsRepository(event_log, projection, MagicMock(), "device-a")


@pytest.fixture
def remote_todos():
    remote = InMemoryTodos()
    remote.seed(create_todo("Remote A", id="r1"))
    remote.seed(create_todo("Remote B", id="r2", priority="Low"))
    return remote


@pytest.fixture
def remote_logs():
    remote = InMemoryLogs()
    remote.seed(DailyLog(date="2026-01-10", content=create_log_content("Recent")))
    remote.seed(DailyLog(date="2025-06-01", content=create_log_content("Too old")))
    return remote


TODAY = date(2026, 1, 15)


class TestHydrate:
    """Tests for hydrate()."""

    @pytest.mark.asyncio
    async def test_hydrate_loads_remote_state(
        self, event_log, projection, todos, logs, remote_todos, remote_logs
    ):
        """Test remote todos and logs within the window become local state."""
        ok = await hydrate(event_log, projection, remote_todos, remote_logs, today=TODAY)

        assert ok is True
        assert {t.id for t in todos.list_all()} == {"r1", "r2"}
        assert logs.find_by_date("2026-01-10").content.title == "Recent"
        assert logs.find_by_date("2025-06-01") is None
        assert len(event_log.load_snapshot().todos) == 2

    @pytest.mark.asyncio
    async def test_lookback_window(self, event_log, projection, todos, remote_todos, remote_logs):
        """Test the log window honours the lookback setting."""
        await hydrate(
            event_log, projection, remote_todos, remote_logs, lookback_days=365, today=TODAY
        )

        assert "2025-06-01" in projection.logs

    @pytest.mark.asyncio
    async def test_pending_writes_survive(
        self, event_log, projection, todos, remote_todos, remote_logs
    ):
        """Test unsynced local writes are replayed over fresh remote state."""
        await hydrate(event_log, projection, remote_todos, remote_logs, today=TODAY)
        local = todos.add(create_todo("Local only"))
        todos.update("r1", {"title": "Edited locally"})
        todos.delete("r2")

        await hydrate(event_log, projection, remote_todos, remote_logs, today=TODAY)

        assert todos.get(local.id).title == "Local only"
        assert todos.get("r1").title == "Edited locally"
        assert todos.get("r2") is None

    @pytest.mark.asyncio
    async def test_remote_deletion_propagates(
        self, event_log, projection, todos, remote_todos, remote_logs
    ):
        """Test a todo removed remotely disappears on the next hydration."""
        await hydrate(event_log, projection, remote_todos, remote_logs, today=TODAY)
        remote_todos.archived.add("r2")

        await hydrate(event_log, projection, remote_todos, remote_logs, today=TODAY)

        assert todos.get("r2") is None
        assert [t.id for t in event_log.load_snapshot().todos] == ["r1"]

    @pytest.mark.asyncio
    async def test_failure_keeps_snapshot(
        self, event_log, projection, todos, remote_todos, remote_logs
    ):
        """Test a failed fetch leaves the previous snapshot and projection intact."""
        await hydrate(event_log, projection, remote_todos, remote_logs, today=TODAY)
        local = todos.add(create_todo("Pending"))

        with patch.object(
            remote_todos, "list_all", new=AsyncMock(side_effect=RemoteUnavailableError("offline"))
        ):
            ok = await hydrate(event_log, projection, remote_todos, remote_logs, today=TODAY)

        assert ok is False
        assert {t.id for t in event_log.load_snapshot().todos} == {"r1", "r2"}
        assert todos.get(local.id) is not None
        assert todos.get("r1") is not None


class TestLoadLocalState:
    """Tests for rebuilding without the remote."""

    def test_load_local_state(self, event_log, projection, todos):
        """Test the snapshot plus pending events rebuild the projection."""
        event_log.save_snapshot([create_todo("Snapshot", id="r1")], [])
        event_log.persist_entity_id_mapping("local-9", "r1")
        pending = todos.add(create_todo("Pending"))

        fresh = LocalProjection()
        LocalTodosRepository(event_log, fresh, MagicMock(), "device-a")
        load_local_state(event_log, fresh)

        assert set(fresh.todos) == {"r1", pending.id}
        assert fresh.resolve_todo_id("local-9") == "r1"
