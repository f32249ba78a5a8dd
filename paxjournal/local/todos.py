"""Local-first todo repository backed by the event log and projection."""

from typing import Any

from ..domain import Todo, apply_patch, complete_todo, validate_patch
from ..sync.event_log import EventLog
from ..sync.events import (
    EntityType,
    EventType,
    StoredEvent,
    TodoCompletedPayload,
    TodoCreatedPayload,
    TodoDeletedPayload,
    TodoUpdatedPayload,
    new_event_id,
)
from ..sync.projection import LocalProjection
from .base import LocalAdapterBase, SyncTrigger


def apply_todo_created(projection: LocalProjection, event: StoredEvent) -> None:
    # Never overwrite: the id may already be present under its remote alias
    if projection.resolve_todo_id(event.entity_id) in projection.todos:
        return
    projection.todos[event.entity_id] = event.payload.to_todo(event.entity_id)


def apply_todo_updated(projection: LocalProjection, event: StoredEvent) -> None:
    key = projection.resolve_todo_id(event.entity_id)
    existing = projection.todos.get(key)
    if existing is None:
        return
    projection.todos[key] = apply_patch(existing, event.payload.patch)


def apply_todo_completed(projection: LocalProjection, event: StoredEvent) -> None:
    key = projection.resolve_todo_id(event.entity_id)
    existing = projection.todos.get(key)
    if existing is None:
        return
    projection.todos[key] = complete_todo(existing)


def apply_todo_deleted(projection: LocalProjection, event: StoredEvent) -> None:
    projection.todos.pop(projection.resolve_todo_id(event.entity_id), None)


def _due_sort_key(todo: Todo) -> tuple[bool, str]:
    return (todo.due_date is None, todo.due_date or "")


class LocalTodosRepository(LocalAdapterBase):
    """Todo reads come from the projection; writes become events."""

    entity_type = EntityType.TODO

    def __init__(
        self,
        event_log: EventLog,
        projection: LocalProjection,
        sync: SyncTrigger,
        device_id: str,
    ):
        super().__init__(event_log, projection, sync, device_id)
        projection.register(EventType.TODO_CREATED, apply_todo_created)
        projection.register(EventType.TODO_UPDATED, apply_todo_updated)
        projection.register(EventType.TODO_COMPLETED, apply_todo_completed)
        projection.register(EventType.TODO_DELETED, apply_todo_deleted)

    def get(self, todo_id: str) -> Todo | None:
        return self.projection.todos.get(self.projection.resolve_todo_id(todo_id))

    def list_all(self) -> list[Todo]:
        """All todos, earliest due date first, undated last."""
        return sorted(self.projection.todos.values(), key=_due_sort_key)

    def list_open(self) -> list[Todo]:
        return [todo for todo in self.list_all() if not todo.is_done]

    def add(self, todo: Todo) -> Todo:
        """Record a new todo under a freshly minted local id.

        Returns:
            The todo as projected, carrying its local id.
        """
        local_id = new_event_id()
        self.write(local_id, EventType.TODO_CREATED, TodoCreatedPayload.from_todo(todo))

        stored = self.projection.todos.get(local_id)
        if stored is None:
            raise RuntimeError("Projection missing todo after write, is the handler registered?")
        return stored

    def update(self, todo_id: str, patch: dict[str, Any]) -> None:
        """Apply a partial update.

        Raises:
            KeyError: If the todo is unknown.
            ValueError: If the patch has unknown fields or invalid values.
        """
        self._require(todo_id)
        clean = validate_patch(patch)
        if not clean:
            return
        self.write(todo_id, EventType.TODO_UPDATED, TodoUpdatedPayload(patch=clean))

    def complete(self, todo_id: str) -> None:
        self._require(todo_id)
        self.write(todo_id, EventType.TODO_COMPLETED, TodoCompletedPayload())

    def delete(self, todo_id: str) -> None:
        self._require(todo_id)
        self.write(todo_id, EventType.TODO_DELETED, TodoDeletedPayload())

    def _require(self, todo_id: str) -> None:
        if self.get(todo_id) is None:
            raise KeyError(f"Unknown todo: {todo_id}")
