"""Tests for configuration loading."""

import pytest

from paxjournal.config import Config, load_config, validate_notion_config
from paxjournal.errors import ConfigError


class TestLoadConfig:
    """Tests for load_config."""

    def test_defaults(self):
        """Test defaults without a config file."""
        config = load_config()

        assert config.device.data_dir == "~/.paxjournal"
        assert config.device.db_path.name == "paxjournal.db"
        assert config.notion.base_url == "https://api.notion.com/v1"
        assert config.notion.todos_columns.done_type == "checkbox"
        assert config.sync.interval_seconds == 10.0
        assert config.sync.hydration_lookback_days == 90

    def test_missing_file_uses_defaults(self, tmp_path):
        """Test a path that doesn't exist falls back to defaults."""
        config = load_config(tmp_path / "nope.yaml")
        assert config.sync.enabled is True

    def test_load_yaml(self, tmp_path):
        """Test values and nested column mappings are read from YAML."""
        path = tmp_path / "config.yaml"
        path.write_text(
            """
device:
  data_dir: /tmp/journal
notion:
  api_key: yaml-key
  todos_database_id: todos
  logs_database_id: logs
  todos_columns:
    done: Status
    done_type: select
    done_value: DONE
  logs_columns:
    went_well: Wins
sync:
  interval_seconds: 30
"""
        )

        config = load_config(path)

        assert str(config.device.db_path) == "/tmp/journal/paxjournal.db"
        assert config.notion.api_key == "yaml-key"
        assert config.notion.todos_columns.done == "Status"
        assert config.notion.todos_columns.done_value == "DONE"
        assert config.notion.todos_columns.title == "Title"
        assert config.notion.logs_columns.went_well == "Wins"
        assert config.sync.interval_seconds == 30
        assert config.sync.hydration_lookback_days == 90

    def test_unknown_key_rejected(self, tmp_path):
        """Test typos in config keys are reported."""
        path = tmp_path / "config.yaml"
        path.write_text("sync:\n  intervall_seconds: 5\n")

        with pytest.raises(ConfigError, match="intervall_seconds"):
            load_config(path)

    def test_env_override(self, monkeypatch, tmp_path):
        """Test environment variable overrides."""
        monkeypatch.setenv("PAXJOURNAL_DATA_DIR", str(tmp_path))
        monkeypatch.setenv("PAXJOURNAL_NOTION_API_KEY", "env-key")
        monkeypatch.setenv("PAXJOURNAL_NOTION_TODOS_DATABASE_ID", "env-todos")
        monkeypatch.setenv("PAXJOURNAL_SYNC_ENABLED", "false")
        monkeypatch.setenv("PAXJOURNAL_SYNC_INTERVAL", "2.5")
        monkeypatch.setenv("PAXJOURNAL_SYNC_LOOKBACK_DAYS", "30")

        config = load_config()

        assert config.device.db_path == tmp_path / "paxjournal.db"
        assert config.notion.api_key == "env-key"
        assert config.notion.todos_database_id == "env-todos"
        assert config.sync.enabled is False
        assert config.sync.interval_seconds == 2.5
        assert config.sync.hydration_lookback_days == 30


class TestValidateNotionConfig:
    """Tests for validate_notion_config."""

    def complete_config(self) -> Config:
        config = Config()
        config.notion.api_key = "key"
        config.notion.todos_database_id = "todos"
        config.notion.logs_database_id = "logs"
        return config

    def test_complete(self):
        """Test a complete config passes."""
        validate_notion_config(self.complete_config())

    def test_missing_api_key(self):
        """Test a missing API key is reported."""
        config = self.complete_config()
        config.notion.api_key = ""

        with pytest.raises(ConfigError, match="API key"):
            validate_notion_config(config)

    def test_missing_database(self):
        """Test a missing database id is reported."""
        config = self.complete_config()
        config.notion.logs_database_id = ""

        with pytest.raises(ConfigError, match="logs database"):
            validate_notion_config(config)

    def test_bad_done_type(self):
        """Test an unsupported done column type is reported."""
        config = self.complete_config()
        config.notion.todos_columns.done_type = "number"

        with pytest.raises(ConfigError, match="done_type"):
            validate_notion_config(config)
