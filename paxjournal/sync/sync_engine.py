"""Background reconciler that replays pending local events against the remote.

Events are drained strictly in id order. The first remote failure stops the
batch so a later event can never overtake an earlier one; the next tick or
nudge retries from the failed event.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from ..domain import DailyLog
from ..errors import RemoteAPIError
from ..remote.base import RemoteLogs, RemoteTodos
from .event_log import EventLog
from .events import EntityType, EventType, StoredEvent, parse_timestamp, utc_now_iso
from .identity_map import EntityIdMap

logger = logging.getLogger(__name__)

# Events that address an existing remote todo
_TARGETED_TODO_EVENTS = (
    EventType.TODO_UPDATED,
    EventType.TODO_COMPLETED,
    EventType.TODO_DELETED,
)


class SyncStatus(Enum):
    """Status of a flush."""

    SUCCESS = "success"
    PARTIAL = "partial"  # Batch stopped after some events synced
    FAILED = "failed"  # Batch stopped on its first event
    SKIPPED = "skipped"  # Another flush was already running


@dataclass
class SyncResult:
    """Result of a flush."""

    status: SyncStatus
    pushed: int = 0  # Applied to the remote
    discarded: int = 0  # Stale: remote was edited after the local write
    recovered: int = 0  # Creates already applied before a crash
    error: str | None = None
    timestamp: datetime | None = None

    @property
    def processed(self) -> int:
        return self.pushed + self.discarded + self.recovered


class SyncEngine:
    """Drains the event log to the remote service.

    Two triggers feed one consumer: ``nudge()`` after every local write and
    a periodic tick. Both go through a single-slot queue read by one worker
    task, so at most one flush runs at a time and a burst of writes
    coalesces into a single pending flush.
    """

    def __init__(
        self,
        event_log: EventLog,
        remote_todos: RemoteTodos,
        remote_logs: RemoteLogs,
        interval_seconds: float = 10.0,
        nudge_debounce_seconds: float = 0.0,
        max_backoff_seconds: float = 300.0,
    ):
        """Initialize the sync engine.

        Args:
            event_log: Local event log to drain.
            remote_todos: Remote todo repository.
            remote_logs: Remote daily-log repository.
            interval_seconds: Seconds between periodic flush attempts.
            nudge_debounce_seconds: Delay after a nudge so rapid writes share one flush.
            max_backoff_seconds: Cap on the periodic interval after repeated failures.
        """
        self.log = event_log
        self.remote_todos = remote_todos
        self.remote_logs = remote_logs
        self.interval_seconds = interval_seconds
        self.nudge_debounce_seconds = nudge_debounce_seconds
        self.max_backoff_seconds = max_backoff_seconds

        self._nudges: asyncio.Queue[None] = asyncio.Queue(maxsize=1)
        self._task: asyncio.Task | None = None
        self._flushing = False
        self._last_sync: datetime | None = None
        self._last_result: SyncResult | None = None
        self._consecutive_failures = 0
        # Remote id -> when this process last finished writing it
        self._own_writes: dict[str, str] = {}

    # ==================== Lifecycle ====================

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def flushing(self) -> bool:
        return self._flushing

    def start(self) -> None:
        """Start the background worker.

        The task is detached: nothing awaits it except ``stop()``, and the
        event loop cancels it on shutdown, so it never keeps the process alive.
        """
        if self.running:
            return
        self._task = asyncio.create_task(self._run_loop(), name="paxjournal-sync")
        logger.info(f"Sync engine started (interval={self.interval_seconds}s)")

    async def stop(self) -> None:
        """Stop the background worker. An in-flight flush is cancelled."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Sync engine stopped")

    def nudge(self) -> None:
        """Request a flush soon. Never blocks; repeated nudges coalesce."""
        try:
            self._nudges.put_nowait(None)
        except asyncio.QueueFull:
            pass

    def _next_wait(self) -> float:
        if self._consecutive_failures == 0:
            return self.interval_seconds
        return min(
            self.interval_seconds * (2 ** self._consecutive_failures),
            self.max_backoff_seconds,
        )

    async def _run_loop(self) -> None:
        """Single consumer of nudges and timer ticks."""
        while True:
            try:
                await asyncio.wait_for(self._nudges.get(), timeout=self._next_wait())
                if self.nudge_debounce_seconds > 0:
                    await asyncio.sleep(self.nudge_debounce_seconds)
                # Nudges that arrived during the debounce are served by this flush
                while not self._nudges.empty():
                    self._nudges.get_nowait()
            except asyncio.TimeoutError:
                pass

            try:
                result = await self.flush()
                if result.status in (SyncStatus.FAILED, SyncStatus.PARTIAL):
                    logger.warning(
                        f"Sync {result.status.value}: pushed={result.pushed} "
                        f"error={result.error}"
                    )
                elif result.processed:
                    logger.info(
                        f"Sync complete: pushed={result.pushed} "
                        f"discarded={result.discarded} recovered={result.recovered}"
                    )
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Sync loop error: {e}", exc_info=True)

    # ==================== Flush ====================

    async def flush(self) -> SyncResult:
        """Drain pending events once.

        Returns:
            SyncResult; SKIPPED if another flush is already running.
        """
        if self._flushing:
            logger.debug("Flush already in progress, skipping")
            return SyncResult(status=SyncStatus.SKIPPED, timestamp=datetime.now())

        self._flushing = True
        try:
            result = await self._process_pending_events()
        finally:
            self._flushing = False

        if result.status == SyncStatus.SUCCESS:
            self._consecutive_failures = 0
            self._last_sync = result.timestamp
        else:
            self._consecutive_failures += 1
        self._last_result = result
        return result

    async def _process_pending_events(self) -> SyncResult:
        result = SyncResult(status=SyncStatus.SUCCESS)
        pending = self.log.pending_sync()
        if not pending:
            result.timestamp = datetime.now()
            return result

        logger.debug(f"Flushing {len(pending)} pending events")
        id_map = self.log.get_entity_id_map()
        # Mappings created during this batch, ahead of the persisted ones
        batch = EntityIdMap()

        for event in pending:
            local_id = event.entity_id
            resolved_id = batch.get(local_id) or id_map.get(local_id) or local_id
            is_create = event.event_type == EventType.TODO_CREATED

            if is_create and (local_id in batch or local_id in id_map):
                # Applied remotely before a crash, mark_synced never ran
                logger.info(f"Create {event.id} already applied as {resolved_id}, recovering")
                self.log.mark_synced([event.id])
                result.recovered += 1
                continue

            try:
                if not is_create and await self._is_stale(event, resolved_id):
                    remote_id = None
                    stale = True
                else:
                    remote_id = await self._apply_to_remote(event, resolved_id)
                    stale = False
            except RemoteAPIError as e:
                if e.status_code == 404 and event.event_type in _TARGETED_TODO_EVENTS:
                    # Only remote error that does not stop the batch. The target was
                    # deleted remotely, so the write is superseded and retrying it
                    # would block every later event.
                    logger.warning(f"Todo {resolved_id} not found remotely, discarding {event.id}")
                    remote_id = None
                    stale = True
                else:
                    self._stop_batch(result, event, e)
                    break
            except Exception as e:
                self._stop_batch(result, event, e)
                break

            if remote_id is not None:
                self.log.persist_entity_id_mapping(local_id, remote_id)
                batch.set(local_id, remote_id)

            self.log.mark_synced([event.id])
            if stale:
                result.discarded += 1
            else:
                self._own_writes[remote_id or resolved_id] = utc_now_iso()
                result.pushed += 1

        result.timestamp = datetime.now()
        return result

    def _stop_batch(self, result: SyncResult, event: StoredEvent, error: Exception) -> None:
        logger.warning(f"Remote error on {event.event_type} {event.id}, stopping batch: {error}")
        result.error = str(error) or type(error).__name__
        result.status = SyncStatus.PARTIAL if result.processed else SyncStatus.FAILED

    async def _is_stale(self, event: StoredEvent, resolved_id: str) -> bool:
        """True when another device changed the remote entity after this event.

        A remote edit no newer than this process's own last write to the
        entity is that write, not a conflict.
        """
        remote_time = await self._fetch_last_edited_time(event.entity_type, resolved_id)
        if remote_time is None:
            return False

        try:
            remote_at = parse_timestamp(remote_time)
            stale = parse_timestamp(event.timestamp) < remote_at
            own_write = self._own_writes.get(resolved_id)
            if stale and own_write and remote_at <= parse_timestamp(own_write):
                stale = False
        except ValueError:
            logger.debug(f"Unparseable timestamps for {event.id}, applying")
            return False

        if stale:
            logger.info(
                f"Discarding stale {event.event_type} {event.id}: remote edited at "
                f"{remote_time}, local write at {event.timestamp}"
            )
        return stale

    async def _fetch_last_edited_time(
        self, entity_type: EntityType | str, resolved_id: str
    ) -> str | None:
        """Remote last-edited time, or None when unknown.

        Unknown state never blocks a write: any failure here means "apply".
        """
        try:
            if entity_type == EntityType.DAILY_LOG:
                # A log that doesn't exist remotely yet has nothing to conflict with
                log = await self.remote_logs.find_by_date(resolved_id)
                if log is None or not log.id:
                    return None
                return await self.remote_logs.fetch_last_edited_time(log.id)
            return await self.remote_todos.fetch_last_edited_time(resolved_id)
        except Exception as e:
            logger.debug(f"Could not fetch last edited time for {resolved_id}: {e}")
            return None

    async def _apply_to_remote(self, event: StoredEvent, resolved_id: str) -> str | None:
        """Apply one event remotely.

        Returns:
            The new remote id for a created todo, otherwise None.
        """
        payload = event.payload

        if event.event_type == EventType.TODO_CREATED:
            created = await self.remote_todos.add(payload.to_todo(event.entity_id))
            return created.id

        if event.event_type == EventType.TODO_UPDATED:
            await self.remote_todos.update(resolved_id, payload.patch)
        elif event.event_type == EventType.TODO_COMPLETED:
            await self.remote_todos.complete(resolved_id)
        elif event.event_type == EventType.TODO_DELETED:
            await self.remote_todos.delete(resolved_id)
        elif event.event_type == EventType.DAILY_LOG_UPSERTED:
            await self.remote_logs.save(DailyLog(date=event.entity_id, content=payload.content))
        else:
            logger.warning(f"Unknown event type {event.event_type} for {event.id}, skipping")
        return None

    # ==================== Status ====================

    @property
    def last_sync(self) -> datetime | None:
        """Timestamp of the last flush that finished without error."""
        return self._last_sync

    @property
    def last_result(self) -> SyncResult | None:
        return self._last_result

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    def get_sync_status(self) -> dict[str, Any]:
        """Get current sync status.

        Returns:
            Dictionary with sync statistics.
        """
        log_stats = self.log.get_stats()

        return {
            "running": self.running,
            "flushing": self._flushing,
            "last_sync": self._last_sync.isoformat() if self._last_sync else None,
            "consecutive_failures": self._consecutive_failures,
            "pending_events": log_stats["pending_events"],
            "total_events": log_stats["total_events"],
        }
