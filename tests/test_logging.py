"""Tests for the JSONL logging system."""

import json
import logging
from pathlib import Path

from wins.logging import (
    AppendLogEntry,
    LogConfig,
    MigrationLogEntry,
    get_config,
    read_jsonl,
    store_logger,
)
from wins.logging.handlers import create_jsonl_logger


class TestLogConfig:
    """Tests for LogConfig."""

    def test_defaults(self):
        config = LogConfig()
        assert config.store_level == "INFO"
        assert config.store_log_path.name == "store.jsonl"
        assert config.migration_log_path.name == "migration.jsonl"

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("WINS_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("WINS_LOG_DIR", str(tmp_path))
        monkeypatch.setenv("WINS_LOG_MAX_SIZE_MB", "2")

        config = LogConfig.from_env()
        assert config.store_level == "DEBUG"
        assert config.migration_level == "DEBUG"
        assert config.log_dir == tmp_path
        assert config.max_file_size_bytes == 2 * 1024 * 1024

    def test_bad_max_size_ignored(self, monkeypatch):
        monkeypatch.setenv("WINS_LOG_MAX_SIZE_MB", "lots")
        assert LogConfig.from_env().max_file_size_bytes == 10 * 1024 * 1024


class TestEntries:
    """Tests for log entry dataclasses."""

    def test_append_entry_json(self):
        entry = AppendLogEntry(
            timestamp="2024-05-01T10:00:00",
            temp_id="pending-1",
            session_id="s-1",
            outcome="reconciled",
            record_id=3,
        )
        data = json.loads(entry.to_json())
        assert data["record_id"] == 3
        assert AppendLogEntry.from_dict({**data, "extra": 1}) == entry

    def test_migration_entry_dict(self):
        entry = MigrationLogEntry(timestamp="t", run_id="r", version=1, name="create_wins")
        assert entry.to_dict()["success"] is False


class TestHandlers:
    """Tests for the JSONL handler."""

    def test_writes_json_lines(self, tmp_path):
        path = tmp_path / "test.jsonl"
        logger = create_jsonl_logger("wins.test.jsonl", path)

        logger.info(json.dumps({"event": "one"}))
        logger.info("plain text")

        entries = read_jsonl(path)
        assert entries[0] == {"event": "one"}
        assert entries[1]["message"] == "plain text"
        assert entries[1]["level"] == "INFO"
        assert logger.propagate is False

    def test_respects_level(self, tmp_path):
        path = tmp_path / "quiet.jsonl"
        logger = create_jsonl_logger("wins.test.quiet", path, level="WARNING")

        logger.info("hidden")
        logger.warning("shown")

        assert [e["message"] for e in read_jsonl(path)] == ["shown"]
        assert logger.level == logging.WARNING

    def test_read_missing_file(self, tmp_path):
        assert read_jsonl(tmp_path / "nope.jsonl") == []

    def test_read_skips_garbage(self, tmp_path):
        path = tmp_path / "mixed.jsonl"
        path.write_text('{"a": 1}\nnot json\n\n{"b": 2}\n')
        assert read_jsonl(path) == [{"a": 1}, {"b": 2}]


class TestLazyLoggers:
    """Tests for the lazily created module loggers."""

    def test_store_logger_uses_config_dir(self, isolated_logs):
        store_logger.info(json.dumps({"outcome": "reconciled"}))

        assert get_config().log_dir == isolated_logs
        assert read_jsonl(Path(isolated_logs) / "store.jsonl") == [{"outcome": "reconciled"}]
