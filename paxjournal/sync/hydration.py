"""Seed the local snapshot from the remote and rebuild the projection."""

import asyncio
import logging
from datetime import date, timedelta

from ..remote.base import RemoteLogs, RemoteTodos
from .event_log import EventLog
from .projection import LocalProjection

logger = logging.getLogger(__name__)

DEFAULT_LOOKBACK_DAYS = 90


def load_local_state(event_log: EventLog, projection: LocalProjection) -> None:
    """Rebuild the projection from the stored snapshot plus pending events.

    Must run without any await: ``load_from_snapshot`` clears the projection
    and only the immediate replay restores local writes on top of it.
    """
    projection.load_from_snapshot(event_log.load_snapshot())
    projection.set_id_aliases(event_log.get_entity_id_map())
    projection.apply_all(event_log.pending_sync())


async def hydrate(
    event_log: EventLog,
    projection: LocalProjection,
    remote_todos: RemoteTodos,
    remote_logs: RemoteLogs,
    lookback_days: int = DEFAULT_LOOKBACK_DAYS,
    today: date | None = None,
) -> bool:
    """Pull all todos and recent logs, replace the snapshot, rebuild the projection.

    Args:
        event_log: Event log holding the snapshot tables.
        projection: Projection to rebuild.
        remote_todos: Remote todo repository.
        remote_logs: Remote daily-log repository.
        lookback_days: How many days of logs to fetch.
        today: End of the log window (defaults to the current date).

    Returns:
        True if the snapshot was refreshed, False if the remote fetch failed
        and the existing snapshot was kept.
    """
    end = today or date.today()
    start = end - timedelta(days=lookback_days)

    try:
        todos, logs = await asyncio.gather(
            remote_todos.list_all(),
            remote_logs.find_by_date_range(start.isoformat(), end.isoformat()),
        )
    except Exception as e:
        logger.error(f"Hydration failed to fetch remote state: {e}")
        return False

    event_log.save_snapshot(todos, logs)

    # No suspension point from here on
    load_local_state(event_log, projection)

    logger.info(
        f"Hydrated {len(todos)} todos and {len(logs)} logs "
        f"({start.isoformat()} to {end.isoformat()})"
    )
    return True
