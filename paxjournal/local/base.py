"""Shared write path for the local repositories."""

import logging
from typing import Protocol

from ..sync.event_log import EventLog
from ..sync.events import EntityType, EventPayload, EventType, StoredEvent, build_event
from ..sync.projection import LocalProjection

logger = logging.getLogger(__name__)


class SyncTrigger(Protocol):
    def nudge(self) -> None: ...


class LocalAdapterBase:
    """Turns each mutation into one event: append, apply, then nudge sync.

    Append and apply run synchronously, so the caller's next read sees the
    write and storage failures surface to the caller immediately.
    """

    entity_type: EntityType

    def __init__(
        self,
        event_log: EventLog,
        projection: LocalProjection,
        sync: SyncTrigger,
        device_id: str,
    ):
        self.event_log = event_log
        self.projection = projection
        self.sync = sync
        self.device_id = device_id

    def write(self, entity_id: str, event_type: EventType, payload: EventPayload) -> StoredEvent:
        event = build_event(self.entity_type, entity_id, event_type, payload, self.device_id)
        self.event_log.append(event)
        self.projection.apply(event)
        self.sync.nudge()
        logger.debug(f"Wrote {event_type.value} for {entity_id}")
        return event
