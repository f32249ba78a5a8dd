"""Durable append-only event log with snapshot and identity-map tables.

Every local mutation is appended here before it touches the in-memory
projection. Events are ordered by their UUIDv7 id, never by timestamp, so
events created within the same millisecond still replay in creation order.
"""

import json
import logging
import sqlite3
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ..domain import DailyLog, Todo
from .events import StoredEvent, utc_now_iso
from .identity_map import EntityIdMap

logger = logging.getLogger(__name__)

EVENT_LOG_SCHEMA = """
-- Append-only mutation log; only `synced` is ever updated in place
CREATE TABLE IF NOT EXISTS events (
    id TEXT PRIMARY KEY,
    entity_type TEXT NOT NULL,
    entity_id TEXT NOT NULL,
    event_type TEXT NOT NULL,
    payload TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    device_id TEXT NOT NULL,
    synced INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_events_pending ON events(id) WHERE synced = 0;
CREATE INDEX IF NOT EXISTS idx_events_entity ON events(entity_id);

-- Last known remote state, replaced wholesale on hydration
CREATE TABLE IF NOT EXISTS snapshot_todos (
    remote_id TEXT PRIMARY KEY,
    data TEXT NOT NULL,
    fetched_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS snapshot_logs (
    date TEXT PRIMARY KEY,
    data TEXT NOT NULL,
    fetched_at TEXT NOT NULL
);

-- Locally minted todo id -> remote page id
CREATE TABLE IF NOT EXISTS entity_id_map (
    local_id TEXT PRIMARY KEY,
    remote_id TEXT NOT NULL,
    created_at TEXT NOT NULL
);
"""


@dataclass
class Snapshot:
    """Bulk copy of remote state as of the last hydration."""

    todos: list[Todo] = field(default_factory=list)
    logs: list[DailyLog] = field(default_factory=list)


class EventLog:
    """SQLite-backed event log.

    Storage errors (``sqlite3.Error``) are never swallowed: every method
    either completes or raises, and the caller can retry the whole call.
    """

    def __init__(self, db_path: str | Path):
        """Initialize the event log.

        Args:
            db_path: Path to SQLite database file, or ":memory:".
        """
        self.db_path = Path(db_path).expanduser() if str(db_path) != ":memory:" else db_path
        self._conn: sqlite3.Connection | None = None

    def connect(self) -> None:
        """Initialize database connection and schema."""
        if self._conn is not None:
            return

        if isinstance(self.db_path, Path):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn = sqlite3.connect(str(self.db_path))
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")
        self._conn.executescript(EVENT_LOG_SCHEMA)
        self._conn.commit()

        logger.info(f"EventLog connected to {self.db_path}")

    def close(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def _ensure_connected(self) -> sqlite3.Connection:
        """Ensure database connection exists."""
        if self._conn is None:
            self.connect()
        return self._conn

    # ==================== Events ====================

    def append(self, event: StoredEvent) -> bool:
        """Persist an event. Appending an id that already exists is a no-op.

        Returns:
            True if the event was written, False if the id was already present.
        """
        conn = self._ensure_connected()
        record = event.to_dict()

        cursor = conn.execute(
            """
            INSERT OR IGNORE INTO events (
                id, entity_type, entity_id, event_type, payload, timestamp, device_id, synced
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record["id"],
                record["entity_type"],
                record["entity_id"],
                record["event_type"],
                json.dumps(record["payload"]),
                record["timestamp"],
                record["device_id"],
                1 if record["synced"] else 0,
            ),
        )
        conn.commit()

        added = cursor.rowcount == 1
        if added:
            logger.debug(f"Appended {record['event_type']} {event.id} for {event.entity_id}")
        else:
            logger.debug(f"Event {event.id} already present, append ignored")
        return added

    def pending_sync(self) -> list[StoredEvent]:
        """Get all unsynced events in creation (id) order."""
        conn = self._ensure_connected()

        cursor = conn.execute(
            """
            SELECT id, entity_type, entity_id, event_type, payload, timestamp, device_id, synced
            FROM events
            WHERE synced = 0
            ORDER BY id ASC
            """
        )
        return [_row_to_event(row) for row in cursor]

    def get_event(self, event_id: str) -> StoredEvent | None:
        conn = self._ensure_connected()

        row = conn.execute(
            """
            SELECT id, entity_type, entity_id, event_type, payload, timestamp, device_id, synced
            FROM events
            WHERE id = ?
            """,
            (event_id,),
        ).fetchone()
        return _row_to_event(row) if row else None

    def mark_synced(self, event_ids: list[str]) -> int:
        """Mark events as synced.

        Args:
            event_ids: Event ids to flip. Already-synced ids are ignored.

        Returns:
            Number of events updated.
        """
        if not event_ids:
            return 0

        conn = self._ensure_connected()
        placeholders = ",".join("?" * len(event_ids))

        cursor = conn.execute(
            f"""
            UPDATE events
            SET synced = 1
            WHERE id IN ({placeholders}) AND synced = 0
            """,
            tuple(event_ids),
        )
        conn.commit()

        count = cursor.rowcount
        logger.debug(f"Marked {count} events as synced")
        return count

    # ==================== Snapshot ====================

    def load_snapshot(self) -> Snapshot:
        """Read the stored remote snapshot."""
        conn = self._ensure_connected()

        todos = [
            Todo.from_dict(json.loads(row["data"]))
            for row in conn.execute("SELECT data FROM snapshot_todos ORDER BY remote_id")
        ]
        logs = [
            DailyLog.from_dict(json.loads(row["data"]))
            for row in conn.execute("SELECT data FROM snapshot_logs ORDER BY date")
        ]
        return Snapshot(todos=todos, logs=logs)

    def save_snapshot(self, todos: list[Todo], logs: list[DailyLog]) -> None:
        """Replace the stored snapshot with the given remote state.

        Upserts every entity, then deletes rows whose key is not in the given
        set so remote deletions propagate. Runs as one transaction.

        Raises:
            ValueError: If a todo has no id. Nothing is written.
        """
        for todo in todos:
            if not todo.id:
                raise ValueError(f"Snapshot todo {todo.title!r} has no remote id")

        conn = self._ensure_connected()
        now = utc_now_iso()

        with conn:
            conn.executemany(
                """
                INSERT INTO snapshot_todos (remote_id, data, fetched_at)
                VALUES (?, ?, ?)
                ON CONFLICT(remote_id) DO UPDATE SET
                    data = excluded.data, fetched_at = excluded.fetched_at
                """,
                [(t.id, json.dumps(t.to_dict()), now) for t in todos],
            )
            conn.executemany(
                """
                INSERT INTO snapshot_logs (date, data, fetched_at)
                VALUES (?, ?, ?)
                ON CONFLICT(date) DO UPDATE SET
                    data = excluded.data, fetched_at = excluded.fetched_at
                """,
                [(log.date, json.dumps(log.to_dict()), now) for log in logs],
            )

            keep_todos = {t.id for t in todos}
            stale_todos = [
                (row[0],)
                for row in conn.execute("SELECT remote_id FROM snapshot_todos")
                if row[0] not in keep_todos
            ]
            conn.executemany("DELETE FROM snapshot_todos WHERE remote_id = ?", stale_todos)

            keep_logs = {log.date for log in logs}
            stale_logs = [
                (row[0],)
                for row in conn.execute("SELECT date FROM snapshot_logs")
                if row[0] not in keep_logs
            ]
            conn.executemany("DELETE FROM snapshot_logs WHERE date = ?", stale_logs)

        logger.info(
            f"Snapshot saved: {len(todos)} todos, {len(logs)} logs "
            f"(pruned {len(stale_todos)} todos, {len(stale_logs)} logs)"
        )

    # ==================== Identity map ====================

    def get_entity_id_map(self) -> EntityIdMap:
        """Read every persisted local -> remote mapping."""
        conn = self._ensure_connected()

        cursor = conn.execute("SELECT local_id, remote_id FROM entity_id_map")
        return EntityIdMap({row["local_id"]: row["remote_id"] for row in cursor})

    def persist_entity_id_mapping(self, local_id: str, remote_id: str) -> None:
        """Record that a locally created todo now exists remotely (upsert)."""
        conn = self._ensure_connected()

        conn.execute(
            """
            INSERT INTO entity_id_map (local_id, remote_id, created_at)
            VALUES (?, ?, ?)
            ON CONFLICT(local_id) DO UPDATE SET remote_id = excluded.remote_id
            """,
            (local_id, remote_id, utc_now_iso()),
        )
        conn.commit()
        logger.debug(f"Mapped {local_id} -> {remote_id}")

    # ==================== Maintenance ====================

    def get_stats(self) -> dict[str, Any]:
        """Get log statistics.

        Returns:
            Dictionary with event counts and table sizes.
        """
        conn = self._ensure_connected()

        stats: dict[str, Any] = {}
        stats["total_events"] = conn.execute("SELECT COUNT(*) FROM events").fetchone()[0]
        stats["pending_events"] = conn.execute(
            "SELECT COUNT(*) FROM events WHERE synced = 0"
        ).fetchone()[0]

        cursor = conn.execute("SELECT event_type, COUNT(*) FROM events GROUP BY event_type")
        stats["events_by_type"] = {row[0]: row[1] for row in cursor}

        stats["id_mappings"] = conn.execute("SELECT COUNT(*) FROM entity_id_map").fetchone()[0]
        stats["snapshot_todos"] = conn.execute("SELECT COUNT(*) FROM snapshot_todos").fetchone()[0]
        stats["snapshot_logs"] = conn.execute("SELECT COUNT(*) FROM snapshot_logs").fetchone()[0]

        if isinstance(self.db_path, Path) and self.db_path.exists():
            stats["db_size_mb"] = round(self.db_path.stat().st_size / (1024 * 1024), 2)

        return stats


def _row_to_event(row: sqlite3.Row) -> StoredEvent:
    return StoredEvent.from_dict(
        {
            "id": row["id"],
            "entity_type": row["entity_type"],
            "entity_id": row["entity_id"],
            "event_type": row["event_type"],
            "payload": json.loads(row["payload"]),
            "timestamp": row["timestamp"],
            "device_id": row["device_id"],
            "synced": bool(row["synced"]),
        }
    )
