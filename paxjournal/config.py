"""Configuration loading for paxjournal."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError


@dataclass
class DeviceConfig:
    data_dir: str = "~/.paxjournal"

    @property
    def db_path(self) -> Path:
        return Path(self.data_dir).expanduser() / "paxjournal.db"


@dataclass
class TodosColumnsConfig:
    """Property names in the remote todos database."""

    title: str = "Title"
    category: str = "Category"
    due_date: str = "Due Date"
    notes: str = "Notes"
    priority: str = "Priority"
    done: str = "Done"
    done_type: str = "checkbox"  # "checkbox", "select" or "status"
    done_value: str = "Done"  # Option meaning done, for select/status
    open_value: str = "Todo"  # Option meaning open, for select/status


@dataclass
class LogsColumnsConfig:
    """Property names in the remote daily logs database."""

    title: str = "Title"
    date: str = "Date"
    score: str = "Score"
    mood: str = "Mood"
    energy: str = "Energy"
    deep_work_hours: str = "Deep Work Hours"
    workout: str = "Workout"
    diet: str = "Diet"
    reading_mins: str = "Reading Mins"
    went_well: str = "Went Well"
    improve: str = "Improve"
    gratitude: str = "Gratitude"
    tomorrow: str = "Tomorrow"


@dataclass
class NotionConfig:
    api_key: str = ""
    base_url: str = "https://api.notion.com/v1"
    notion_version: str = "2022-06-28"
    todos_database_id: str = ""
    logs_database_id: str = ""
    timeout_seconds: float = 30.0
    max_retries: int = 3
    todos_columns: TodosColumnsConfig = field(default_factory=TodosColumnsConfig)
    logs_columns: LogsColumnsConfig = field(default_factory=LogsColumnsConfig)


@dataclass
class SyncConfig:
    """Configuration for the background sync engine."""

    enabled: bool = True
    interval_seconds: float = 10.0
    nudge_debounce_seconds: float = 0.0
    max_backoff_seconds: float = 300.0
    hydration_lookback_days: int = 90


@dataclass
class Config:
    device: DeviceConfig = field(default_factory=DeviceConfig)
    notion: NotionConfig = field(default_factory=NotionConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)


def _get_env(key: str, default: Any = None) -> Any:
    """Get environment variable with PAXJOURNAL_ prefix."""
    return os.environ.get(f"PAXJOURNAL_{key}", default)


def _is_true(value: str) -> bool:
    return value.lower() in ("true", "1", "yes")


def _apply_env_overrides(config: Config) -> Config:
    """Apply environment variable overrides to config."""
    if data_dir := _get_env("DATA_DIR"):
        config.device.data_dir = data_dir

    # Notion overrides
    if api_key := _get_env("NOTION_API_KEY"):
        config.notion.api_key = api_key
    if base_url := _get_env("NOTION_BASE_URL"):
        config.notion.base_url = base_url
    if todos_db := _get_env("NOTION_TODOS_DATABASE_ID"):
        config.notion.todos_database_id = todos_db
    if logs_db := _get_env("NOTION_LOGS_DATABASE_ID"):
        config.notion.logs_database_id = logs_db

    # Sync overrides
    if sync_enabled := _get_env("SYNC_ENABLED"):
        config.sync.enabled = _is_true(sync_enabled)
    if interval := _get_env("SYNC_INTERVAL"):
        config.sync.interval_seconds = float(interval)
    if lookback := _get_env("SYNC_LOOKBACK_DAYS"):
        config.sync.hydration_lookback_days = int(lookback)

    return config


def _parse_section(cls: type, data: dict | None, current: Any) -> Any:
    """Build a flat config dataclass, falling back to current values."""
    if not data:
        return current
    unknown = set(data) - set(current.__dataclass_fields__)
    if unknown:
        raise ConfigError(f"Unknown {cls.__name__} keys: {', '.join(sorted(unknown))}")
    values = {name: data.get(name, getattr(current, name)) for name in current.__dataclass_fields__}
    return cls(**values)


def _parse_notion(data: dict, current: NotionConfig) -> NotionConfig:
    """Parse Notion config, including the nested column mappings."""
    data = dict(data)
    todos_columns = _parse_section(
        TodosColumnsConfig, data.pop("todos_columns", None), current.todos_columns
    )
    logs_columns = _parse_section(
        LogsColumnsConfig, data.pop("logs_columns", None), current.logs_columns
    )
    notion = _parse_section(NotionConfig, data, current)
    notion.todos_columns = todos_columns
    notion.logs_columns = logs_columns
    return notion


def load_config(config_path: str | Path | None = None) -> Config:
    """Load configuration from YAML file with environment variable overrides.

    Args:
        config_path: Path to YAML config file. If None, uses default config.

    Returns:
        Loaded Config object.

    Raises:
        ConfigError: If the file contains unknown keys.
    """
    config = Config()

    if config_path:
        path = Path(config_path).expanduser()
        if path.exists():
            with open(path) as f:
                data = yaml.safe_load(f) or {}

            if "device" in data:
                config.device = _parse_section(DeviceConfig, data["device"], config.device)

            if "notion" in data:
                config.notion = _parse_notion(data["notion"] or {}, config.notion)

            if "sync" in data:
                config.sync = _parse_section(SyncConfig, data["sync"], config.sync)

    return _apply_env_overrides(config)


def validate_notion_config(config: Config) -> None:
    """Check that everything needed to talk to Notion is set.

    Raises:
        ConfigError: Naming the first missing setting.
    """
    notion = config.notion
    if not notion.api_key:
        raise ConfigError("Notion API key is not set (notion.api_key or PAXJOURNAL_NOTION_API_KEY)")
    if not notion.todos_database_id:
        raise ConfigError("Notion todos database id is not set (notion.todos_database_id)")
    if not notion.logs_database_id:
        raise ConfigError("Notion logs database id is not set (notion.logs_database_id)")
    if notion.todos_columns.done_type not in ("checkbox", "select", "status"):
        raise ConfigError(
            f"Invalid todos_columns.done_type {notion.todos_columns.done_type!r}, "
            "expected checkbox, select or status"
        )
