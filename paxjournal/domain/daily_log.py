"""Daily log records: one log per calendar date."""

from dataclasses import asdict, dataclass, fields
from datetime import date
from typing import Any


@dataclass(frozen=True)
class LogContent:
    """What was written for a day. Everything but the title is optional."""

    title: str
    notes: str | None = None
    score: float | None = None
    mood: float | None = None
    energy: float | None = None
    deep_work_hours: float | None = None
    workout: bool | None = None
    diet: bool | None = None
    reading_mins: float | None = None
    went_well: str | None = None
    improve: str | None = None
    gratitude: str | None = None
    tomorrow: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LogContent":
        known = {f.name for f in fields(cls)}
        extra = {k: v for k, v in data.items() if k in known and k not in ("title", "notes")}
        return create_log_content(data.get("title", ""), data.get("notes"), **extra)


def create_log_content(title: str, notes: str | None = None, **extra: Any) -> LogContent:
    """Build LogContent with a trimmed title and blank notes dropped."""
    notes = (notes or "").strip() or None
    return LogContent(title=(title or "").strip(), notes=notes, **extra)


@dataclass(frozen=True)
class DailyLog:
    """Aggregate for one day, identified by its date.

    ``id`` is the remote page id, set once the log is known remotely.
    """

    date: str  # YYYY-MM-DD
    content: LogContent
    id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"date": self.date, "content": self.content.to_dict(), "id": self.id}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DailyLog":
        return cls(
            date=create_log_date(data["date"]),
            content=LogContent.from_dict(data.get("content") or {}),
            id=data.get("id"),
        )


def create_log_date(value: str) -> str:
    """Normalize an ISO date or datetime string to YYYY-MM-DD."""
    day = (value or "")[:10]
    try:
        date.fromisoformat(day)
    except ValueError:
        raise ValueError(f"Invalid log date: {value}") from None
    return day


def today_log_date() -> str:
    return date.today().isoformat()
