"""Local-first daily log repository."""

from ..domain import DailyLog, create_log_date
from ..sync.event_log import EventLog
from ..sync.events import DailyLogUpsertedPayload, EntityType, EventType, StoredEvent
from ..sync.projection import LocalProjection
from .base import LocalAdapterBase, SyncTrigger


def apply_daily_log_upserted(projection: LocalProjection, event: StoredEvent) -> None:
    # Keep the last known remote id so a later save updates instead of creating
    existing = projection.logs.get(event.entity_id)
    projection.logs[event.entity_id] = DailyLog(
        date=event.entity_id,
        content=event.payload.content,
        id=existing.id if existing else None,
    )


class LocalLogsRepository(LocalAdapterBase):
    """Daily logs keyed by date; the date is the event's entity id."""

    entity_type = EntityType.DAILY_LOG

    def __init__(
        self,
        event_log: EventLog,
        projection: LocalProjection,
        sync: SyncTrigger,
        device_id: str,
    ):
        super().__init__(event_log, projection, sync, device_id)
        projection.register(EventType.DAILY_LOG_UPSERTED, apply_daily_log_upserted)

    def find_by_date(self, log_date: str) -> DailyLog | None:
        return self.projection.logs.get(create_log_date(log_date))

    def find_by_date_range(self, start: str, end: str) -> list[DailyLog]:
        """Logs dated within [start, end], oldest first."""
        start, end = create_log_date(start), create_log_date(end)
        return sorted(
            (log for log in self.projection.logs.values() if start <= log.date <= end),
            key=lambda log: log.date,
        )

    def save(self, log: DailyLog) -> None:
        self.write(
            create_log_date(log.date),
            EventType.DAILY_LOG_UPSERTED,
            DailyLogUpsertedPayload(content=log.content),
        )
