"""Remote page service ports and their implementations."""

from .base import RemoteLogs, RemoteTodos
from .memory import InMemoryLogs, InMemoryTodos
from .notion import NotionClient, NotionLogsAdapter, NotionTodosAdapter

__all__ = [
    "RemoteLogs",
    "RemoteTodos",
    "InMemoryLogs",
    "InMemoryTodos",
    "NotionClient",
    "NotionLogsAdapter",
    "NotionTodosAdapter",
]
