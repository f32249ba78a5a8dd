"""Tests for the local-first todo and log repositories."""

from unittest.mock import MagicMock

import pytest

from paxjournal.domain import DailyLog, create_log_content, create_todo
from paxjournal.local import LocalLogsRepository, LocalTodosRepository
from paxjournal.sync.event_log import EventLog
from paxjournal.sync.events import EventType
from paxjournal.sync.hydration import load_local_state
from paxjournal.sync.projection import LocalProjection


@pytest.fixture
def event_log():
    """Create an in-memory event log."""
    log = EventLog(":memory:")
    log.connect()
    yield log
    log.close()


@pytest.fixture
def sync():
    """Stand-in sync engine that only records nudges."""
    return MagicMock()


@pytest.fixture
def projection():
    return LocalProjection()


@pytest.fixture
def todos(event_log, projection, sync):
    return LocalTodosRepository(event_log, projection, sync, "device-a")


@pytest.fixture
def logs(event_log, projection, sync):
    return LocalLogsRepository(event_log, projection, sync, "device-a")


class TestLocalTodosRepository:
    """Tests for LocalTodosRepository."""

    def test_add_is_immediately_visible(self, todos, event_log, sync):
        """Test a new todo is readable, logged and nudges sync."""
        todo = todos.add(create_todo("Buy milk", due_date="2026-01-02"))

        assert todo.id
        assert todos.get(todo.id) == todo
        pending = event_log.pending_sync()
        assert len(pending) == 1
        assert pending[0].event_type == EventType.TODO_CREATED
        assert pending[0].entity_id == todo.id
        assert pending[0].device_id == "device-a"
        sync.nudge.assert_called_once()

    def test_add_ignores_caller_id(self, todos):
        """Test the repository mints its own local id."""
        todo = todos.add(create_todo("Task", id="caller-id"))
        assert todo.id != "caller-id"

    def test_update_complete_delete(self, todos, event_log, sync):
        """Test each write becomes one event in order."""
        todo = todos.add(create_todo("Task"))
        todos.update(todo.id, {"priority": "High"})
        todos.complete(todo.id)

        assert todos.get(todo.id).priority == "High"
        assert todos.get(todo.id).is_done

        todos.delete(todo.id)

        assert todos.get(todo.id) is None
        assert [e.event_type for e in event_log.pending_sync()] == [
            EventType.TODO_CREATED,
            EventType.TODO_UPDATED,
            EventType.TODO_COMPLETED,
            EventType.TODO_DELETED,
        ]
        assert sync.nudge.call_count == 4

    def test_writes_to_unknown_todo_raise(self, todos, event_log):
        """Test writes against unknown ids fail without logging anything."""
        with pytest.raises(KeyError):
            todos.update("ghost", {"title": "x"})
        with pytest.raises(KeyError):
            todos.complete("ghost")
        with pytest.raises(KeyError):
            todos.delete("ghost")

        assert event_log.pending_sync() == []

    def test_invalid_patch_raises(self, todos, event_log):
        """Test a bad patch is rejected before it is logged."""
        todo = todos.add(create_todo("Task"))

        with pytest.raises(ValueError):
            todos.update(todo.id, {"priority": "Urgent"})

        assert len(event_log.pending_sync()) == 1

    def test_empty_patch_is_noop(self, todos, event_log):
        """Test an empty patch writes nothing."""
        todo = todos.add(create_todo("Task"))
        todos.update(todo.id, {})

        assert len(event_log.pending_sync()) == 1

    def test_list_sorted_and_open(self, todos):
        """Test list ordering by due date and open filtering."""
        late = todos.add(create_todo("Late", due_date="2026-03-01"))
        undated = todos.add(create_todo("Someday"))
        early = todos.add(create_todo("Early", due_date="2026-01-01"))
        todos.complete(early.id)

        assert [t.id for t in todos.list_all()] == [early.id, late.id, undated.id]
        assert [t.id for t in todos.list_open()] == [late.id, undated.id]

    def test_storage_failure_surfaces(self, todos, projection):
        """Test an append failure propagates and leaves the projection unchanged."""
        todos.event_log.append = MagicMock(side_effect=RuntimeError("disk full"))

        with pytest.raises(RuntimeError, match="disk full"):
            todos.add(create_todo("Task"))

        assert projection.todos == {}

    def test_restart_rebuilds_from_log(self, todos, event_log, sync):
        """Test a new projection rebuilt from the log sees pending writes."""
        todo = todos.add(create_todo("Survives restart"))
        todos.update(todo.id, {"notes": "still here"})

        projection = LocalProjection()
        reopened = LocalTodosRepository(event_log, projection, sync, "device-a")
        load_local_state(event_log, projection)

        assert reopened.get(todo.id).notes == "still here"


class TestLocalLogsRepository:
    """Tests for LocalLogsRepository."""

    def test_save_and_find(self, logs, event_log):
        """Test a saved log is readable by date."""
        logs.save(DailyLog(date="2026-01-05T08:00:00Z", content=create_log_content("Good day")))

        log = logs.find_by_date("2026-01-05")
        assert log.content.title == "Good day"
        assert event_log.pending_sync()[0].entity_id == "2026-01-05"

    def test_save_replaces_content(self, logs):
        """Test saving the same date again replaces the content."""
        logs.save(DailyLog(date="2026-01-05", content=create_log_content("First")))
        logs.save(DailyLog(date="2026-01-05", content=create_log_content("Second", mood=5)))

        log = logs.find_by_date("2026-01-05")
        assert log.content.title == "Second"
        assert log.content.mood == 5

    def test_find_by_date_range(self, logs):
        """Test ranges are inclusive and sorted."""
        for day in ["2026-01-03", "2026-01-01", "2026-01-02", "2026-01-09"]:
            logs.save(DailyLog(date=day, content=create_log_content(day)))

        found = logs.find_by_date_range("2026-01-01", "2026-01-03")

        assert [log.date for log in found] == ["2026-01-01", "2026-01-02", "2026-01-03"]

    def test_find_missing(self, logs):
        """Test an unknown date returns None."""
        assert logs.find_by_date("2026-01-01") is None
