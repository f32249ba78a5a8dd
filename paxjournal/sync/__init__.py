"""Local-first sync core.

Provides the append-only event log, the projection rebuilt from it, and the
engine that replays pending events against the remote page service.
"""

from .device_id import get_device_id
from .event_log import EventLog, Snapshot
from .events import (
    DailyLogUpsertedPayload,
    EntityType,
    EventType,
    StoredEvent,
    TodoCompletedPayload,
    TodoCreatedPayload,
    TodoDeletedPayload,
    TodoUpdatedPayload,
    build_event,
    new_event_id,
)
from .hydration import hydrate, load_local_state
from .identity_map import EntityIdMap
from .projection import LocalProjection
from .sync_engine import SyncEngine, SyncResult, SyncStatus

__all__ = [
    "get_device_id",
    "EventLog",
    "Snapshot",
    "DailyLogUpsertedPayload",
    "EntityType",
    "EventType",
    "StoredEvent",
    "TodoCompletedPayload",
    "TodoCreatedPayload",
    "TodoDeletedPayload",
    "TodoUpdatedPayload",
    "build_event",
    "new_event_id",
    "hydrate",
    "load_local_state",
    "EntityIdMap",
    "LocalProjection",
    "SyncEngine",
    "SyncResult",
    "SyncStatus",
]
