"""In-memory read model rebuilt from the snapshot plus pending events."""

import logging
from collections.abc import Callable, Iterable

from ..domain import DailyLog, Todo
from .event_log import Snapshot
from .events import EventType, StoredEvent
from .identity_map import EntityIdMap

logger = logging.getLogger(__name__)

EventHandler = Callable[["LocalProjection", StoredEvent], None]


class LocalProjection:
    """Current todos and daily logs, derived only by applying events.

    Handlers are registered per event type by the local repositories. Nothing
    else writes into ``todos`` or ``logs``; the maps are a cache that can be
    rebuilt at any time from (snapshot, pending events).
    """

    def __init__(self) -> None:
        self.todos: dict[str, Todo] = {}
        self.logs: dict[str, DailyLog] = {}
        self._handlers: dict[str, EventHandler] = {}
        self._aliases = EntityIdMap()

    def register(self, event_type: EventType | str, handler: EventHandler) -> None:
        """Associate a reducer with an event type."""
        self._handlers[event_type] = handler

    def has_handler(self, event_type: EventType | str) -> bool:
        return event_type in self._handlers

    def apply(self, event: StoredEvent) -> None:
        """Apply one event. Event types without a handler are ignored."""
        handler = self._handlers.get(event.event_type)
        if handler is None:
            logger.debug(f"No projection handler for {event.event_type}, ignoring {event.id}")
            return
        handler(self, event)

    def apply_all(self, events: Iterable[StoredEvent]) -> None:
        """Apply events in the given order; callers pass them in id order."""
        for event in events:
            self.apply(event)

    def set_id_aliases(self, id_map: EntityIdMap) -> None:
        """Route events addressed by a local todo id to the entry the
        snapshot holds under its remote id.
        """
        self._aliases = id_map

    def resolve_todo_id(self, entity_id: str) -> str:
        """Key under which the todo for ``entity_id`` is stored."""
        if entity_id in self.todos:
            return entity_id
        return self._aliases.get(entity_id) or entity_id

    def load_from_snapshot(self, snapshot: Snapshot) -> None:
        """Discard current state and reseed from a snapshot."""
        self.todos.clear()
        self.logs.clear()
        for todo in snapshot.todos:
            self.todos[todo.id] = todo
        for log in snapshot.logs:
            self.logs[log.date] = log
