"""Local repositories: the write path used by the rest of the application."""

from .base import LocalAdapterBase
from .logs import LocalLogsRepository
from .todos import LocalTodosRepository

__all__ = ["LocalAdapterBase", "LocalLogsRepository", "LocalTodosRepository"]
