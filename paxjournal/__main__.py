"""CLI entry point for paxjournal."""

import argparse
import asyncio
import json
import logging
import sys
import traceback
from datetime import datetime
from pathlib import Path

from .app import JournalApp
from .config import load_config
from .domain import (
    TODO_CATEGORIES,
    TODO_PRIORITIES,
    TODO_STATUSES,
    DailyLog,
    Todo,
    create_log_content,
    create_log_date,
    create_todo,
    today_log_date,
)
from .errors import PaxJournalError
from .sync import SyncResult, SyncStatus


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = "".join(traceback.format_exception(*record.exc_info))

        try:
            return json.dumps(log_data)
        except (TypeError, ValueError):
            log_data["message"] = str(log_data["message"])
            if "exception" in log_data:
                log_data["exception"] = str(log_data["exception"])
            return json.dumps(log_data)


def setup_logging(verbose: bool = False, log_level: str | None = None, json_output: bool = False) -> None:
    """Configure logging.

    Args:
        verbose: Enable debug logging (ignored if log_level is set).
        log_level: Explicit log level (warning, info, debug).
        json_output: Output logs as JSON lines for machine parsing.
    """
    if log_level:
        level_map = {
            "warning": logging.WARNING,
            "info": logging.INFO,
            "debug": logging.DEBUG,
        }
        level = level_map.get(log_level, logging.INFO)
    else:
        level = logging.DEBUG if verbose else logging.WARNING

    handler = logging.StreamHandler()
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )

    logging.basicConfig(level=level, handlers=[handler])

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


async def _open_app(args: argparse.Namespace, hydrate: bool = True) -> JournalApp:
    """Open local state and, when online, refresh it from the remote first."""
    app = JournalApp(load_config(args.config), offline=args.offline)
    if hydrate:
        await app.load()
    else:
        app.open()
    return app


def _format_result(result: SyncResult) -> str:
    line = (
        f"Sync {result.status.value}: pushed={result.pushed} "
        f"discarded={result.discarded} recovered={result.recovered}"
    )
    if result.error:
        line += f" error={result.error}"
    return line


async def _write_and_flush(app: JournalApp) -> None:
    """One sync attempt after a write. Failures leave the write pending."""
    result = await app.flush()
    if result.status == SyncStatus.SKIPPED:
        print("Saved locally (not synced)")
    elif result.status != SyncStatus.SUCCESS:
        print(f"Saved locally; {_format_result(result)}", file=sys.stderr)


async def cmd_status(args: argparse.Namespace) -> int:
    """Show event log and sync state."""
    app = await _open_app(args, hydrate=False)
    try:
        status_data = app.get_status()
        pending = app.event_log.pending_sync()
        status_data["pending"] = [
            {
                "id": e.id,
                "event_type": getattr(e.event_type, "value", e.event_type),
                "entity_id": e.entity_id,
                "timestamp": e.timestamp,
            }
            for e in pending
        ]
    finally:
        await app.stop()

    if args.json:
        print(json.dumps(status_data, indent=2))
        return 0

    stats = status_data["event_log"]
    print("paxjournal Status")
    print("=================")
    print(f"Device: {status_data['device_id']}")
    print(f"Database: {status_data['db_path']}")
    print()
    print("Event log:")
    print(f"  Total events: {stats['total_events']}")
    print(f"  Pending events: {stats['pending_events']}")
    print(f"  Id mappings: {stats['id_mappings']}")
    print(f"  Snapshot: {stats['snapshot_todos']} todos, {stats['snapshot_logs']} logs")
    for event in status_data["pending"]:
        print(f"    - {event['event_type']} {event['entity_id']} ({event['timestamp']})")
    return 0


async def cmd_sync(args: argparse.Namespace) -> int:
    """Hydrate from the remote, then flush pending events once."""
    app = await _open_app(args, hydrate=False)
    try:
        if app.offline:
            print("Offline mode, nothing to sync")
            return 0
        hydrated = await app.hydrate()
        if not hydrated:
            print("Hydration failed, keeping local snapshot", file=sys.stderr)
        result = await app.flush()
    finally:
        await app.stop()

    print(_format_result(result))
    return 0 if result.status == SyncStatus.SUCCESS and hydrated else 1


async def cmd_run(args: argparse.Namespace) -> int:
    """Run background sync until interrupted."""
    app = JournalApp(load_config(args.config), offline=args.offline)

    print(f"Starting paxjournal (device {app.device_id})")
    print(f"Database: {app.config.device.db_path}")
    print(f"Sync interval: {app.config.sync.interval_seconds}s")

    try:
        await app.start()
        await asyncio.Event().wait()
    except KeyboardInterrupt:
        print("\nShutting down...")
    finally:
        await app.stop()

    return 0


def _print_todo(todo: Todo) -> None:
    mark = "x" if todo.is_done else " "
    due = f" (due {todo.due_date})" if todo.due_date else ""
    extras = ", ".join(v for v in (todo.status, todo.category, todo.priority) if v)
    print(f"[{mark}] {todo.id}  {todo.title}{due}  [{extras}]")


async def cmd_todo_add(args: argparse.Namespace) -> int:
    app = await _open_app(args)
    try:
        todo = app.todos.add(
            create_todo(
                title=args.title,
                due_date=args.due,
                category=args.category,
                notes=args.notes,
                priority=args.priority,
            )
        )
        _print_todo(todo)
        await _write_and_flush(app)
    finally:
        await app.stop()
    return 0


async def cmd_todo_list(args: argparse.Namespace) -> int:
    app = await _open_app(args)
    try:
        todos = app.todos.list_all() if args.all else app.todos.list_open()
    finally:
        await app.stop()

    if not todos:
        print("No todos")
    for todo in todos:
        _print_todo(todo)
    return 0


async def cmd_todo_update(args: argparse.Namespace) -> int:
    patch = {
        key: value
        for key, value in (
            ("title", args.title),
            ("status", args.status),
            ("category", args.category),
            ("notes", args.notes),
            ("priority", args.priority),
        )
        if value is not None
    }
    if args.clear_due:
        patch["due_date"] = None
    elif args.due is not None:
        patch["due_date"] = args.due

    app = await _open_app(args)
    try:
        app.todos.update(args.id, patch)
        await _write_and_flush(app)
    finally:
        await app.stop()
    return 0


async def cmd_todo_done(args: argparse.Namespace) -> int:
    app = await _open_app(args)
    try:
        app.todos.complete(args.id)
        await _write_and_flush(app)
    finally:
        await app.stop()
    return 0


async def cmd_todo_delete(args: argparse.Namespace) -> int:
    app = await _open_app(args)
    try:
        app.todos.delete(args.id)
        await _write_and_flush(app)
    finally:
        await app.stop()
    return 0


async def cmd_log_show(args: argparse.Namespace) -> int:
    log_date = create_log_date(args.date or today_log_date())
    app = await _open_app(args)
    try:
        log = app.logs.find_by_date(log_date)
    finally:
        await app.stop()

    if log is None:
        print(f"No log for {log_date}")
        return 1

    if args.json:
        print(json.dumps(log.to_dict(), indent=2))
        return 0

    print(f"{log.date}: {log.content.title}")
    for key, value in log.content.to_dict().items():
        if key != "title" and value is not None:
            print(f"  {key}: {value}")
    return 0


async def cmd_log_save(args: argparse.Namespace) -> int:
    extra = {
        key: getattr(args, key)
        for key in (
            "score",
            "mood",
            "energy",
            "deep_work_hours",
            "reading_mins",
            "went_well",
            "improve",
            "gratitude",
            "tomorrow",
        )
        if getattr(args, key) is not None
    }
    if args.workout:
        extra["workout"] = True
    if args.diet:
        extra["diet"] = True

    log = DailyLog(
        date=create_log_date(args.date or today_log_date()),
        content=create_log_content(args.title, args.notes, **extra),
    )

    app = await _open_app(args)
    try:
        app.logs.save(log)
        print(f"Saved log for {log.date}")
        await _write_and_flush(app)
    finally:
        await app.stop()
    return 0


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="paxjournal",
        description="Local-first journal and todo list synced to Notion",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to config file",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["warning", "info", "debug"],
        default=None,
        help="Set log level explicitly (overrides -v/--verbose)",
    )
    parser.add_argument(
        "--json",
        dest="json_logs",
        action="store_true",
        help="Output logs as JSON for machine parsing",
    )
    parser.add_argument(
        "--offline",
        action="store_true",
        help="Never contact Notion; writes stay pending",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Status command
    status_parser = subparsers.add_parser("status", help="Show event log and sync state")
    status_parser.add_argument(
        "--json",
        action="store_true",
        help="Output status as JSON",
    )
    status_parser.set_defaults(func=cmd_status)

    # Sync command
    sync_parser = subparsers.add_parser("sync", help="Hydrate and flush once")
    sync_parser.set_defaults(func=cmd_sync)

    # Run command
    run_parser = subparsers.add_parser("run", help="Run background sync until interrupted")
    run_parser.set_defaults(func=cmd_run)

    # Todo commands
    todo_parser = subparsers.add_parser("todo", help="Manage todos")
    todo_subparsers = todo_parser.add_subparsers(dest="todo_command", help="Todo commands")

    todo_add = todo_subparsers.add_parser("add", help="Add a todo")
    todo_add.add_argument("title", help="Todo title")
    todo_add.add_argument("--due", help="Due date (YYYY-MM-DD)")
    todo_add.add_argument("--category", choices=TODO_CATEGORIES)
    todo_add.add_argument("--priority", choices=TODO_PRIORITIES)
    todo_add.add_argument("--notes")
    todo_add.set_defaults(func=cmd_todo_add)

    todo_list = todo_subparsers.add_parser("list", help="List open todos")
    todo_list.add_argument("-a", "--all", action="store_true", help="Include done todos")
    todo_list.set_defaults(func=cmd_todo_list)

    todo_update = todo_subparsers.add_parser("update", help="Update a todo")
    todo_update.add_argument("id", help="Todo id")
    todo_update.add_argument("--title")
    todo_update.add_argument("--due", help="Due date (YYYY-MM-DD)")
    todo_update.add_argument("--clear-due", action="store_true", help="Remove the due date")
    todo_update.add_argument("--status", choices=TODO_STATUSES)
    todo_update.add_argument("--category", choices=TODO_CATEGORIES)
    todo_update.add_argument("--priority", choices=TODO_PRIORITIES)
    todo_update.add_argument("--notes")
    todo_update.set_defaults(func=cmd_todo_update)

    todo_done = todo_subparsers.add_parser("done", help="Mark a todo done")
    todo_done.add_argument("id", help="Todo id")
    todo_done.set_defaults(func=cmd_todo_done)

    todo_delete = todo_subparsers.add_parser("delete", help="Delete a todo")
    todo_delete.add_argument("id", help="Todo id")
    todo_delete.set_defaults(func=cmd_todo_delete)

    # Log commands
    log_parser = subparsers.add_parser("log", help="Manage daily logs")
    log_subparsers = log_parser.add_subparsers(dest="log_command", help="Log commands")

    log_show = log_subparsers.add_parser("show", help="Show a daily log")
    log_show.add_argument("date", nargs="?", help="Date (default: today)")
    log_show.add_argument("--json", action="store_true", help="Output log as JSON")
    log_show.set_defaults(func=cmd_log_show)

    log_save = log_subparsers.add_parser("save", help="Write a daily log")
    log_save.add_argument("title", help="Log title")
    log_save.add_argument("--date", help="Date (default: today)")
    log_save.add_argument("--notes")
    log_save.add_argument("--score", type=float)
    log_save.add_argument("--mood", type=float)
    log_save.add_argument("--energy", type=float)
    log_save.add_argument("--deep-work-hours", type=float)
    log_save.add_argument("--reading-mins", type=float)
    log_save.add_argument("--workout", action="store_true")
    log_save.add_argument("--diet", action="store_true")
    log_save.add_argument("--went-well")
    log_save.add_argument("--improve")
    log_save.add_argument("--gratitude")
    log_save.add_argument("--tomorrow")
    log_save.set_defaults(func=cmd_log_save)

    args = parser.parse_args()

    setup_logging(args.verbose, args.log_level, args.json_logs)

    if not args.command:
        parser.print_help()
        return 1

    if args.command == "todo" and not args.todo_command:
        todo_parser.print_help()
        return 1

    if args.command == "log" and not args.log_command:
        log_parser.print_help()
        return 1

    try:
        return asyncio.run(args.func(args))
    except KeyboardInterrupt:
        return 0
    except KeyError as e:
        print(f"Error: {e.args[0] if e.args else e}", file=sys.stderr)
        return 1
    except (PaxJournalError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
