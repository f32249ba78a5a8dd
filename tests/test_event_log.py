"""Tests for the SQLite event log."""

import pytest

from paxjournal.domain import DailyLog, create_log_content, create_todo
from paxjournal.sync.event_log import EventLog
from paxjournal.sync.events import (
    EntityType,
    EventType,
    StoredEvent,
    TodoCompletedPayload,
    TodoCreatedPayload,
    build_event,
)


@pytest.fixture
def event_log():
    """Create an in-memory event log."""
    log = EventLog(":memory:")
    log.connect()
    yield log
    log.close()


def make_event(event_id: str, entity_id: str = "t1", timestamp: str = "2026-01-01T00:00:00.000Z"):
    return StoredEvent(
        id=event_id,
        entity_type=EntityType.TODO,
        entity_id=entity_id,
        event_type=EventType.TODO_COMPLETED,
        payload=TodoCompletedPayload(),
        timestamp=timestamp,
        device_id="device-a",
    )


class TestEvents:
    """Tests for appending and reading events."""

    def test_connect_idempotent(self, event_log):
        """Test connecting twice is harmless."""
        event_log.connect()
        assert event_log.get_stats()["total_events"] == 0

    def test_file_backed(self, tmp_path):
        """Test a file database is created with its parent directory."""
        log = EventLog(tmp_path / "nested" / "journal.db")
        log.connect()
        log.append(make_event("a"))
        log.close()

        reopened = EventLog(tmp_path / "nested" / "journal.db")
        assert [e.id for e in reopened.pending_sync()] == ["a"]
        assert "db_size_mb" in reopened.get_stats()
        reopened.close()

    def test_append_and_get(self, event_log):
        """Test an appended event reads back unchanged."""
        event = build_event(
            EntityType.TODO, "local-1", EventType.TODO_CREATED,
            TodoCreatedPayload.from_todo(create_todo("Call mum")), "device-a",
        )

        assert event_log.append(event) is True
        assert event_log.get_event(event.id) == event
        assert event_log.get_event("missing") is None

    def test_duplicate_append_is_noop(self, event_log):
        """Test appending an existing id changes nothing."""
        event_log.append(make_event("a", timestamp="2026-01-01T00:00:00.000Z"))
        assert event_log.append(make_event("a", timestamp="2026-02-02T00:00:00.000Z")) is False

        stored = event_log.get_event("a")
        assert stored.timestamp == "2026-01-01T00:00:00.000Z"
        assert event_log.get_stats()["total_events"] == 1

    def test_pending_ordered_by_id_not_timestamp(self, event_log):
        """Test pending events come back in id order even with equal timestamps."""
        for event_id in ["c", "a", "b"]:
            event_log.append(make_event(event_id))

        assert [e.id for e in event_log.pending_sync()] == ["a", "b", "c"]

    def test_mark_synced(self, event_log):
        """Test synced events leave the pending set."""
        event_log.append(make_event("a"))
        event_log.append(make_event("b"))

        assert event_log.mark_synced(["a"]) == 1
        assert [e.id for e in event_log.pending_sync()] == ["b"]
        assert event_log.get_event("a").synced is True

    def test_mark_synced_empty_and_repeated(self, event_log):
        """Test empty input and already-synced ids are no-ops."""
        event_log.append(make_event("a"))

        assert event_log.mark_synced([]) == 0
        event_log.mark_synced(["a"])
        assert event_log.mark_synced(["a", "unknown"]) == 0


class TestSnapshot:
    """Tests for snapshot storage."""

    def test_empty_snapshot(self, event_log):
        """Test a fresh log has an empty snapshot."""
        snapshot = event_log.load_snapshot()
        assert snapshot.todos == []
        assert snapshot.logs == []

    def test_save_and_load(self, event_log):
        """Test saved todos and logs load back."""
        todo = create_todo("Remote todo", id="r1", priority="High")
        log = DailyLog(date="2026-01-01", content=create_log_content("Day"), id="p1")

        event_log.save_snapshot([todo], [log])
        snapshot = event_log.load_snapshot()

        assert snapshot.todos == [todo]
        assert snapshot.logs == [log]

    def test_save_prunes_missing_entities(self, event_log):
        """Test entities absent from a new snapshot are removed."""
        event_log.save_snapshot(
            [create_todo("A", id="r1"), create_todo("B", id="r2")],
            [DailyLog(date="2026-01-01", content=create_log_content("Day"))],
        )
        event_log.save_snapshot([create_todo("B2", id="r2")], [])

        snapshot = event_log.load_snapshot()

        assert [t.id for t in snapshot.todos] == ["r2"]
        assert snapshot.todos[0].title == "B2"
        assert snapshot.logs == []

    def test_todo_without_id_rejected(self, event_log):
        """Test a todo without a remote id aborts the whole save."""
        event_log.save_snapshot([create_todo("A", id="r1")], [])

        with pytest.raises(ValueError, match="no remote id"):
            event_log.save_snapshot([create_todo("B")], [])

        assert [t.id for t in event_log.load_snapshot().todos] == ["r1"]


class TestEntityIdMap:
    """Tests for the persisted identity map."""

    def test_persist_and_read(self, event_log):
        """Test mappings are stored and read back."""
        event_log.persist_entity_id_mapping("local-1", "remote-1")

        id_map = event_log.get_entity_id_map()

        assert id_map.get("local-1") == "remote-1"
        assert "local-1" in id_map
        assert id_map.get("other") is None

    def test_persist_upserts(self, event_log):
        """Test re-persisting a local id replaces the remote id."""
        event_log.persist_entity_id_mapping("local-1", "remote-1")
        event_log.persist_entity_id_mapping("local-1", "remote-2")

        id_map = event_log.get_entity_id_map()

        assert id_map.get("local-1") == "remote-2"
        assert len(id_map) == 1


class TestStats:
    """Tests for log statistics."""

    def test_stats(self, event_log):
        """Test counts reflect events, mappings and snapshot rows."""
        event_log.append(make_event("a"))
        event_log.append(make_event("b"))
        event_log.mark_synced(["a"])
        event_log.persist_entity_id_mapping("l", "r")
        event_log.save_snapshot([create_todo("A", id="r")], [])

        stats = event_log.get_stats()

        assert stats["total_events"] == 2
        assert stats["pending_events"] == 1
        assert stats["events_by_type"] == {"todo.completed": 2}
        assert stats["id_mappings"] == 1
        assert stats["snapshot_todos"] == 1
        assert stats["snapshot_logs"] == 0
