"""Dict-backed remote repositories for offline runs and tests.

Every write stamps a last-edited time and is recorded in ``calls`` so the
order of remote operations can be inspected.
"""

import logging
import uuid
from dataclasses import replace
from typing import Any

from ..domain import STATUS_DONE, DailyLog, Todo, apply_patch
from ..errors import RemoteAPIError
from ..sync.events import utc_now_iso
from .base import RemoteLogs, RemoteTodos

logger = logging.getLogger(__name__)


class InMemoryTodos(RemoteTodos):
    """In-memory stand-in for the remote todos database."""

    def __init__(self) -> None:
        self.todos: dict[str, Todo] = {}
        self.last_edited: dict[str, str] = {}
        self.archived: set[str] = set()
        self.calls: list[tuple[Any, ...]] = []

    def seed(self, todo: Todo, last_edited_time: str | None = None) -> Todo:
        """Place a todo directly in the store, as if edited from another device."""
        if not todo.id:
            todo = replace(todo, id=str(uuid.uuid4()))
        self.todos[todo.id] = todo
        self.last_edited[todo.id] = last_edited_time or utc_now_iso()
        return todo

    def _get(self, todo_id: str) -> Todo:
        todo = self.todos.get(todo_id)
        if todo is None or todo_id in self.archived:
            raise RemoteAPIError(404, f"Could not find page with ID: {todo_id}")
        return todo

    def _touch(self, todo_id: str) -> None:
        self.last_edited[todo_id] = utc_now_iso()

    async def list_all(self) -> list[Todo]:
        return [t for tid, t in self.todos.items() if tid not in self.archived]

    async def list_open(self) -> list[Todo]:
        return [t for t in await self.list_all() if not t.is_done]

    async def add(self, todo: Todo) -> Todo:
        remote_id = str(uuid.uuid4())
        created = replace(todo, id=remote_id)
        self.todos[remote_id] = created
        self._touch(remote_id)
        self.calls.append(("add", todo.id, remote_id))
        logger.debug(f"Created todo {remote_id} ({todo.title})")
        return created

    async def update(self, todo_id: str, patch: dict[str, Any]) -> None:
        self.calls.append(("update", todo_id, dict(patch)))
        self.todos[todo_id] = apply_patch(self._get(todo_id), patch)
        self._touch(todo_id)

    async def complete(self, todo_id: str) -> None:
        self.calls.append(("complete", todo_id))
        self.todos[todo_id] = replace(self._get(todo_id), status=STATUS_DONE)
        self._touch(todo_id)

    async def delete(self, todo_id: str) -> None:
        self.calls.append(("delete", todo_id))
        self._get(todo_id)
        self.archived.add(todo_id)
        self._touch(todo_id)

    async def fetch_last_edited_time(self, todo_id: str) -> str | None:
        return self.last_edited.get(todo_id)


class InMemoryLogs(RemoteLogs):
    """In-memory stand-in for the remote daily logs database."""

    def __init__(self) -> None:
        self.logs: dict[str, DailyLog] = {}
        self.last_edited: dict[str, str] = {}
        self.calls: list[tuple[Any, ...]] = []

    def seed(self, log: DailyLog, last_edited_time: str | None = None) -> DailyLog:
        if not log.id:
            log = replace(log, id=str(uuid.uuid4()))
        self.logs[log.date] = log
        self.last_edited[log.id] = last_edited_time or utc_now_iso()
        return log

    async def find_by_date(self, log_date: str) -> DailyLog | None:
        return self.logs.get(log_date)

    async def find_by_date_range(self, start: str, end: str) -> list[DailyLog]:
        return sorted(
            (log for log in self.logs.values() if start <= log.date <= end),
            key=lambda log: log.date,
        )

    async def save(self, log: DailyLog) -> None:
        self.calls.append(("save", log.date))
        existing = self.logs.get(log.date)
        page_id = existing.id if existing else str(uuid.uuid4())
        self.logs[log.date] = DailyLog(date=log.date, content=log.content, id=page_id)
        self.last_edited[page_id] = utc_now_iso()

    async def fetch_last_edited_time(self, page_id: str) -> str | None:
        return self.last_edited.get(page_id)
