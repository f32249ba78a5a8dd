"""Abstract remote repositories the sync engine and hydration talk to."""

from abc import ABC, abstractmethod
from typing import Any

from ..domain import DailyLog, Todo


class RemoteTodos(ABC):
    """Todos as stored by the remote page service."""

    @abstractmethod
    async def list_all(self) -> list[Todo]:
        """Fetch every todo, done or not."""
        pass

    @abstractmethod
    async def list_open(self) -> list[Todo]:
        pass

    @abstractmethod
    async def add(self, todo: Todo) -> Todo:
        """Create a todo remotely.

        Returns:
            The created todo carrying its remote id.
        """
        pass

    @abstractmethod
    async def update(self, todo_id: str, patch: dict[str, Any]) -> None:
        """Write only the fields present in ``patch``."""
        pass

    @abstractmethod
    async def complete(self, todo_id: str) -> None:
        pass

    @abstractmethod
    async def delete(self, todo_id: str) -> None:
        """Archive the todo."""
        pass

    @abstractmethod
    async def fetch_last_edited_time(self, todo_id: str) -> str | None:
        """ISO-8601 time the todo was last modified remotely, if known."""
        pass


class RemoteLogs(ABC):
    """Daily logs as stored by the remote page service."""

    @abstractmethod
    async def find_by_date(self, log_date: str) -> DailyLog | None:
        pass

    @abstractmethod
    async def find_by_date_range(self, start: str, end: str) -> list[DailyLog]:
        """Logs dated within [start, end], inclusive."""
        pass

    @abstractmethod
    async def save(self, log: DailyLog) -> None:
        """Update the page for ``log.date`` if one exists, otherwise create it."""
        pass

    @abstractmethod
    async def fetch_last_edited_time(self, page_id: str) -> str | None:
        pass
