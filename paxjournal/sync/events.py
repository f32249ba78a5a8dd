"""Event model for the local-first event log.

Every local mutation is recorded as one StoredEvent. Payloads form a tagged
union keyed by ``event_type``: each tag has exactly one payload dataclass.
"""

import secrets
import time
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Union

from ..domain import LogContent, Todo, create_todo


class EntityType(str, Enum):
    TODO = "todo"
    DAILY_LOG = "daily_log"


class EventType(str, Enum):
    TODO_CREATED = "todo.created"
    TODO_UPDATED = "todo.updated"
    TODO_COMPLETED = "todo.completed"
    TODO_DELETED = "todo.deleted"
    DAILY_LOG_UPSERTED = "daily_log.upserted"


@dataclass(frozen=True)
class TodoCreatedPayload:
    title: str
    due_date: str | None = None
    status: str = "Todo"
    category: str | None = None
    notes: str | None = None
    priority: str | None = None

    @classmethod
    def from_todo(cls, todo: Todo) -> "TodoCreatedPayload":
        return cls(
            title=todo.title,
            due_date=todo.due_date,
            status=todo.status,
            category=todo.category,
            notes=todo.notes,
            priority=todo.priority,
        )

    def to_todo(self, todo_id: str) -> Todo:
        return create_todo(
            title=self.title,
            due_date=self.due_date,
            id=todo_id,
            status=self.status,
            category=self.category,
            notes=self.notes,
            priority=self.priority,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TodoCreatedPayload":
        return cls(
            title=data["title"],
            due_date=data.get("due_date"),
            status=data.get("status", "Todo"),
            category=data.get("category"),
            notes=data.get("notes"),
            priority=data.get("priority"),
        )


@dataclass(frozen=True)
class TodoUpdatedPayload:
    patch: dict[str, Any] = field(default_factory=dict)  # only the provided fields

    def to_dict(self) -> dict[str, Any]:
        return {"patch": dict(self.patch)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TodoUpdatedPayload":
        return cls(patch=dict(data.get("patch") or {}))


@dataclass(frozen=True)
class TodoCompletedPayload:
    def to_dict(self) -> dict[str, Any]:
        return {}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TodoCompletedPayload":
        return cls()


@dataclass(frozen=True)
class TodoDeletedPayload:
    def to_dict(self) -> dict[str, Any]:
        return {}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TodoDeletedPayload":
        return cls()


@dataclass(frozen=True)
class DailyLogUpsertedPayload:
    content: LogContent

    def to_dict(self) -> dict[str, Any]:
        return self.content.to_dict()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DailyLogUpsertedPayload":
        return cls(content=LogContent.from_dict(data))


EventPayload = Union[
    TodoCreatedPayload,
    TodoUpdatedPayload,
    TodoCompletedPayload,
    TodoDeletedPayload,
    DailyLogUpsertedPayload,
]

PAYLOAD_TYPES: dict[EventType, type] = {
    EventType.TODO_CREATED: TodoCreatedPayload,
    EventType.TODO_UPDATED: TodoUpdatedPayload,
    EventType.TODO_COMPLETED: TodoCompletedPayload,
    EventType.TODO_DELETED: TodoDeletedPayload,
    EventType.DAILY_LOG_UPSERTED: DailyLogUpsertedPayload,
}


def payload_from_dict(event_type: "EventType | str", data: dict[str, Any]) -> Any:
    """Decode a payload by its tag.

    Unknown tags (written by a newer version) keep the raw dict.
    """
    payload_cls = PAYLOAD_TYPES.get(event_type)
    if payload_cls is None:
        return dict(data)
    return payload_cls.from_dict(data)


def payload_to_dict(payload: Any) -> dict[str, Any]:
    if isinstance(payload, dict):
        return dict(payload)
    return payload.to_dict()


def _coerce(enum_cls: type[Enum], value: str) -> Any:
    try:
        return enum_cls(value)
    except ValueError:
        return value


@dataclass
class StoredEvent:
    """A single entry in the event log.

    Immutable after append except for ``synced``.
    """

    id: str
    entity_type: EntityType
    entity_id: str  # local/remote todo id, or YYYY-MM-DD for daily logs
    event_type: EventType
    payload: EventPayload
    timestamp: str  # UTC ISO-8601 with milliseconds
    device_id: str
    synced: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "entity_type": str(getattr(self.entity_type, "value", self.entity_type)),
            "entity_id": self.entity_id,
            "event_type": str(getattr(self.event_type, "value", self.event_type)),
            "payload": payload_to_dict(self.payload),
            "timestamp": self.timestamp,
            "device_id": self.device_id,
            "synced": self.synced,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StoredEvent":
        """Create from dictionary."""
        event_type = _coerce(EventType, data["event_type"])
        return cls(
            id=data["id"],
            entity_type=_coerce(EntityType, data["entity_type"]),
            entity_id=data["entity_id"],
            event_type=event_type,
            payload=payload_from_dict(event_type, data.get("payload") or {}),
            timestamp=data["timestamp"],
            device_id=data["device_id"],
            synced=bool(data.get("synced", False)),
        )


class EventIdGenerator:
    """Mints UUIDv7 strings that sort in creation order.

    The 12 ``rand_a`` bits hold a counter that is reseeded each new
    millisecond and incremented within one, so ids minted in the same
    millisecond still compare in order. On counter overflow, or if the wall
    clock steps backwards, the generator keeps counting on its last
    millisecond instead of going back in time.
    """

    _COUNTER_MAX = 0xFFF

    def __init__(self) -> None:
        self._last_ms = -1
        self._counter = 0

    def __call__(self) -> str:
        now_ms = time.time_ns() // 1_000_000
        if now_ms > self._last_ms:
            self._last_ms = now_ms
            # Seed low so a burst has room before overflowing
            self._counter = secrets.randbits(10)
        else:
            self._counter += 1
            if self._counter > self._COUNTER_MAX:
                self._last_ms += 1
                self._counter = 0

        value = (
            (self._last_ms & 0xFFFF_FFFF_FFFF) << 80
            | 0x7 << 76
            | self._counter << 64
            | 0b10 << 62
            | secrets.randbits(62)
        )
        return str(uuid.UUID(int=value))


new_event_id = EventIdGenerator()


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 with millisecond precision and a Z suffix."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, treating naive values as UTC."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def build_event(
    entity_type: EntityType,
    entity_id: str,
    event_type: EventType,
    payload: EventPayload,
    device_id: str,
) -> StoredEvent:
    """Create a new, unsynced event stamped with a fresh id and the current time."""
    return StoredEvent(
        id=new_event_id(),
        entity_type=entity_type,
        entity_id=entity_id,
        event_type=event_type,
        payload=payload,
        timestamp=utc_now_iso(),
        device_id=device_id,
        synced=False,
    )
