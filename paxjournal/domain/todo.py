"""Todo records and the partial-update patch applied to them."""

from dataclasses import asdict, dataclass, replace
from datetime import date
from typing import Any

STATUS_OPEN = "Todo"
STATUS_IN_PROGRESS = "In Progress"
STATUS_DONE = "Done"
TODO_STATUSES = (STATUS_OPEN, STATUS_IN_PROGRESS, STATUS_DONE)

TODO_CATEGORIES = ("Work", "Health", "Personal", "Learning")
TODO_PRIORITIES = ("High", "Medium", "Low")

# Fields a TodoUpdated patch may carry
PATCH_FIELDS = ("title", "due_date", "status", "category", "notes", "priority")


@dataclass(frozen=True)
class Todo:
    """A single task.

    ``id`` is a locally minted id until the remote service confirms the
    todo, after which snapshots carry the remote page id.
    """

    id: str
    title: str
    due_date: str | None = None  # YYYY-MM-DD
    status: str = STATUS_OPEN
    category: str | None = None
    notes: str | None = None
    priority: str | None = None

    @property
    def is_done(self) -> bool:
        return self.status == STATUS_DONE

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Todo":
        """Create from dictionary."""
        return create_todo(
            title=data["title"],
            due_date=data.get("due_date"),
            id=data.get("id", ""),
            status=data.get("status", STATUS_OPEN),
            category=data.get("category"),
            notes=data.get("notes"),
            priority=data.get("priority"),
        )


def normalize_title(title: str) -> str:
    """Trim a title, rejecting empty ones."""
    title = (title or "").strip()
    if not title:
        raise ValueError("Todo title cannot be empty")
    return title


def normalize_due_date(value: str | None) -> str | None:
    """Normalize a due date to YYYY-MM-DD, or None when unset."""
    if value is None or value == "":
        return None
    day = value[:10]
    try:
        date.fromisoformat(day)
    except ValueError:
        raise ValueError(f"Invalid due date: {value}") from None
    return day


def _check_choice(name: str, value: str | None, choices: tuple[str, ...]) -> str | None:
    if value is not None and value not in choices:
        raise ValueError(f"Invalid {name} {value!r}, expected one of {', '.join(choices)}")
    return value


def create_todo(
    title: str,
    due_date: str | None = None,
    id: str = "",
    status: str = STATUS_OPEN,
    category: str | None = None,
    notes: str | None = None,
    priority: str | None = None,
) -> Todo:
    """Build a validated Todo.

    Raises:
        ValueError: If the title is empty or a field has an unknown value.
    """
    return Todo(
        id=id,
        title=normalize_title(title),
        due_date=normalize_due_date(due_date),
        status=_check_choice("status", status, TODO_STATUSES),
        category=_check_choice("category", category, TODO_CATEGORIES),
        notes=notes or None,
        priority=_check_choice("priority", priority, TODO_PRIORITIES),
    )


def validate_patch(patch: dict[str, Any]) -> dict[str, Any]:
    """Validate and normalize a partial update.

    Returns:
        A new dict holding only the fields that were provided.
    """
    unknown = set(patch) - set(PATCH_FIELDS)
    if unknown:
        raise ValueError(f"Unknown todo fields in patch: {', '.join(sorted(unknown))}")

    clean = dict(patch)
    if clean.get("title") is not None:
        clean["title"] = normalize_title(clean["title"])
    if "due_date" in clean:
        clean["due_date"] = normalize_due_date(clean["due_date"])
    _check_choice("status", clean.get("status"), TODO_STATUSES)
    _check_choice("category", clean.get("category"), TODO_CATEGORIES)
    _check_choice("priority", clean.get("priority"), TODO_PRIORITIES)
    return clean


def apply_patch(todo: Todo, patch: dict[str, Any]) -> Todo:
    """Merge a patch onto a todo.

    ``due_date`` is applied whenever present, so None clears it. Every other
    field keeps its prior value when the patch omits it or carries None.
    """
    changes = {k: v for k, v in patch.items() if k in PATCH_FIELDS and v is not None}
    if "due_date" in patch:
        changes["due_date"] = patch["due_date"]
    return replace(todo, **changes)


def complete_todo(todo: Todo) -> Todo:
    if todo.is_done:
        return todo
    return replace(todo, status=STATUS_DONE)
