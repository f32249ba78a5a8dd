"""Composition root: wires storage, projection, remotes and sync together."""

import logging
from typing import Any

from .config import Config, validate_notion_config
from .local import LocalLogsRepository, LocalTodosRepository
from .remote import (
    InMemoryLogs,
    InMemoryTodos,
    NotionClient,
    NotionLogsAdapter,
    NotionTodosAdapter,
    RemoteLogs,
    RemoteTodos,
)
from .sync import (
    EventLog,
    LocalProjection,
    SyncEngine,
    SyncResult,
    SyncStatus,
    get_device_id,
    hydrate,
    load_local_state,
)

logger = logging.getLogger(__name__)


class JournalApp:
    """One local-first journal instance.

    Reads and writes go through ``todos`` and ``logs``; the sync engine
    pushes them to the remote in the background. In offline mode nothing
    is hydrated or flushed, so writes stay pending until an online run.
    """

    def __init__(
        self,
        config: Config,
        offline: bool = False,
        remote_todos: RemoteTodos | None = None,
        remote_logs: RemoteLogs | None = None,
    ):
        """Build the object graph. Nothing is opened until ``open()``.

        Args:
            config: Loaded configuration.
            offline: Never contact the remote.
            remote_todos: Override the remote todos repository.
            remote_logs: Override the remote logs repository.

        Raises:
            ConfigError: If online without complete Notion settings.
        """
        self.config = config
        self.offline = offline
        self._client: NotionClient | None = None

        if remote_todos is None or remote_logs is None:
            remote_todos, remote_logs = self._build_remotes()
        self.remote_todos = remote_todos
        self.remote_logs = remote_logs

        self.device_id = get_device_id(config.device.data_dir)
        self.event_log = EventLog(config.device.db_path)
        self.projection = LocalProjection()
        self.sync = SyncEngine(
            self.event_log,
            self.remote_todos,
            self.remote_logs,
            interval_seconds=config.sync.interval_seconds,
            nudge_debounce_seconds=config.sync.nudge_debounce_seconds,
            max_backoff_seconds=config.sync.max_backoff_seconds,
        )
        self.todos = LocalTodosRepository(
            self.event_log, self.projection, self.sync, self.device_id
        )
        self.logs = LocalLogsRepository(
            self.event_log, self.projection, self.sync, self.device_id
        )

    def _build_remotes(self) -> tuple[RemoteTodos, RemoteLogs]:
        if self.offline:
            return InMemoryTodos(), InMemoryLogs()

        validate_notion_config(self.config)
        notion = self.config.notion
        self._client = NotionClient.from_config(notion)
        return (
            NotionTodosAdapter(self._client, notion.todos_database_id, notion.todos_columns),
            NotionLogsAdapter(self._client, notion.logs_database_id, notion.logs_columns),
        )

    def open(self) -> None:
        """Open the event log and rebuild the projection from local state."""
        self.event_log.connect()
        load_local_state(self.event_log, self.projection)
        logger.debug(
            f"Loaded {len(self.projection.todos)} todos and "
            f"{len(self.projection.logs)} logs from local state"
        )

    async def hydrate(self) -> bool:
        if self.offline:
            return False
        return await hydrate(
            self.event_log,
            self.projection,
            self.remote_todos,
            self.remote_logs,
            lookback_days=self.config.sync.hydration_lookback_days,
        )

    async def flush(self) -> SyncResult:
        if self.offline:
            return SyncResult(status=SyncStatus.SKIPPED)
        return await self.sync.flush()

    async def load(self) -> bool:
        """Open local state, then refresh it from the remote.

        A failed or skipped hydration leaves the stored snapshot in place.
        """
        self.open()
        return await self.hydrate()

    async def start(self) -> None:
        """Open local state, hydrate, and start background sync if enabled."""
        await self.load()
        if self.config.sync.enabled and not self.offline:
            self.sync.start()

    async def stop(self) -> None:
        await self.sync.stop()
        if self._client:
            await self._client.close()
        self.event_log.close()
        logger.debug("Journal closed")

    def get_status(self) -> dict[str, Any]:
        """Device, storage and sync state for display."""
        return {
            "device_id": self.device_id,
            "db_path": str(self.config.device.db_path),
            "offline": self.offline,
            "sync": self.sync.get_sync_status(),
            "event_log": self.event_log.get_stats(),
        }
