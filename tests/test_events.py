"""Tests for the event model and id generation."""

import uuid
from unittest.mock import patch

from paxjournal.domain import create_log_content, create_todo
from paxjournal.sync.events import (
    DailyLogUpsertedPayload,
    EntityType,
    EventIdGenerator,
    EventType,
    StoredEvent,
    TodoCompletedPayload,
    TodoCreatedPayload,
    TodoUpdatedPayload,
    build_event,
    parse_timestamp,
    utc_now_iso,
)


class TestEventIdGenerator:
    """Tests for UUIDv7 event ids."""

    def test_ids_are_uuid_v7(self):
        """Test ids parse as version 7 UUIDs."""
        gen = EventIdGenerator()
        value = uuid.UUID(gen())
        assert value.version == 7

    def test_same_millisecond_ids_sort_in_order(self):
        """Test ids minted within one millisecond still increase."""
        gen = EventIdGenerator()
        with patch("paxjournal.sync.events.time.time_ns", return_value=1_700_000_000_000_000_000):
            ids = [gen() for _ in range(200)]

        assert ids == sorted(ids)
        assert len(set(ids)) == 200

    def test_clock_going_backwards(self):
        """Test a wall clock step back never produces a smaller id."""
        gen = EventIdGenerator()
        with patch("paxjournal.sync.events.time.time_ns", return_value=2_000_000_000_000_000_000):
            first = gen()
        with patch("paxjournal.sync.events.time.time_ns", return_value=1_000_000_000_000_000_000):
            second = gen()

        assert second > first

    def test_counter_overflow_keeps_order(self):
        """Test exhausting the counter rolls into the next millisecond."""
        gen = EventIdGenerator()
        with patch("paxjournal.sync.events.time.time_ns", return_value=1_700_000_000_000_000_000):
            ids = [gen() for _ in range(5000)]

        assert ids == sorted(ids)


class TestStoredEvent:
    """Tests for StoredEvent serialization."""

    def test_created_payload_to_dict_from_dict(self):
        """Test a created event survives dict conversion."""
        todo = create_todo("Write report", due_date="2026-01-05", priority="High")
        event = build_event(
            EntityType.TODO, "local-1", EventType.TODO_CREATED,
            TodoCreatedPayload.from_todo(todo), "device-a",
        )

        restored = StoredEvent.from_dict(event.to_dict())

        assert restored == event
        assert isinstance(restored.payload, TodoCreatedPayload)
        assert restored.payload.to_todo("local-1").priority == "High"

    def test_payload_decoded_by_tag(self):
        """Test each event type decodes to its payload class."""
        data = {
            "id": "e1",
            "entity_type": "todo",
            "entity_id": "t1",
            "event_type": "todo.updated",
            "payload": {"patch": {"title": "x"}},
            "timestamp": "2026-01-01T00:00:00.000Z",
            "device_id": "d",
        }
        event = StoredEvent.from_dict(data)

        assert event.event_type is EventType.TODO_UPDATED
        assert event.payload == TodoUpdatedPayload(patch={"title": "x"})
        assert event.synced is False

    def test_empty_payloads(self):
        """Test completed events carry an empty payload."""
        event = build_event(
            EntityType.TODO, "t1", EventType.TODO_COMPLETED, TodoCompletedPayload(), "d"
        )
        assert event.to_dict()["payload"] == {}

    def test_daily_log_payload_is_flat(self):
        """Test log payloads serialize the content fields directly."""
        payload = DailyLogUpsertedPayload(content=create_log_content("Day", mood=3))
        event = build_event(
            EntityType.DAILY_LOG, "2026-01-01", EventType.DAILY_LOG_UPSERTED, payload, "d"
        )

        data = event.to_dict()

        assert data["payload"]["title"] == "Day"
        assert data["payload"]["mood"] == 3
        assert StoredEvent.from_dict(data).payload == payload

    def test_unknown_event_type_kept_raw(self):
        """Test events from a newer version still load."""
        data = {
            "id": "e1",
            "entity_type": "habit",
            "entity_id": "h1",
            "event_type": "habit.tracked",
            "payload": {"streak": 3},
            "timestamp": "2026-01-01T00:00:00.000Z",
            "device_id": "d",
        }
        event = StoredEvent.from_dict(data)

        assert event.event_type == "habit.tracked"
        assert event.payload == {"streak": 3}
        assert event.to_dict()["event_type"] == "habit.tracked"


class TestTimestamps:
    """Tests for timestamp helpers."""

    def test_utc_now_iso_format(self):
        """Test timestamps carry milliseconds and a Z suffix."""
        value = utc_now_iso()
        assert value.endswith("Z")
        assert len(value) == len("2026-01-01T00:00:00.000Z")

    def test_parse_naive_as_utc(self):
        """Test naive timestamps compare as UTC."""
        assert parse_timestamp("2026-01-01T10:00:00") == parse_timestamp("2026-01-01T10:00:00Z")
        assert parse_timestamp("2026-01-01T10:00:00+02:00") < parse_timestamp("2026-01-01T10:00:00Z")
