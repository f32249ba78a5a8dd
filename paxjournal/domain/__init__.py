"""Domain records: todos and daily logs."""

from .daily_log import DailyLog, LogContent, create_log_content, create_log_date, today_log_date
from .todo import (
    STATUS_DONE,
    STATUS_IN_PROGRESS,
    STATUS_OPEN,
    TODO_CATEGORIES,
    TODO_PRIORITIES,
    TODO_STATUSES,
    Todo,
    apply_patch,
    complete_todo,
    create_todo,
    validate_patch,
)

__all__ = [
    "DailyLog",
    "LogContent",
    "create_log_content",
    "create_log_date",
    "today_log_date",
    "STATUS_DONE",
    "STATUS_IN_PROGRESS",
    "STATUS_OPEN",
    "TODO_CATEGORIES",
    "TODO_PRIORITIES",
    "TODO_STATUSES",
    "Todo",
    "apply_patch",
    "complete_todo",
    "create_todo",
    "validate_patch",
]
