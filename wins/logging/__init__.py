"""
Wins Ledger Logging System.

Structured JSONL logs for:
- Optimistic appends and their persistence outcome (store.jsonl)
- Schema migration steps (migration.jsonl)

Usage:
    from wins.logging import store_logger, AppendLogEntry
    from wins.persistence.models import now_iso

    entry = AppendLogEntry(
        timestamp=now_iso(),
        temp_id="pending-1",
        session_id=reconciler.session_id,
        outcome="reconciled",
        ...
    )
    store_logger.info(entry.to_json())

Logs are written to ~/.wins/logs/ unless WINS_LOG_DIR is set.
"""

import threading
from typing import Any

from .config import LogConfig, get_config, set_config
from .entries import AppendLogEntry, MigrationLogEntry
from .handlers import create_jsonl_logger, read_jsonl

# Lazy-initialized loggers to avoid creating files before needed
_store_logger: Any = None
_migration_logger: Any = None
_init_lock = threading.Lock()


def _ensure_loggers() -> None:
    """Initialize loggers on first use."""
    global _store_logger, _migration_logger

    if _store_logger is not None:
        return

    with _init_lock:
        if _store_logger is not None:
            return

        config = get_config()

        _migration_logger = create_jsonl_logger(
            "wins.migration",
            config.migration_log_path,
            level=config.migration_level,
            max_bytes=config.max_file_size_bytes,
            backup_count=config.backup_count,
        )

        _store_logger = create_jsonl_logger(
            "wins.store",
            config.store_log_path,
            level=config.store_level,
            max_bytes=config.max_file_size_bytes,
            backup_count=config.backup_count,
        )


def reset_loggers() -> None:
    """Drop the initialized loggers so the next call picks up the current config."""
    global _store_logger, _migration_logger

    with _init_lock:
        _store_logger = None
        _migration_logger = None


class _LazyLogger:
    """Lazy wrapper that initializes the actual logger on first use."""

    def __init__(self, name: str):
        self._name = name

    def _get_logger(self) -> Any:
        _ensure_loggers()
        if self._name == "migration":
            return _migration_logger
        return _store_logger

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._get_logger().debug(msg, *args, **kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._get_logger().info(msg, *args, **kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._get_logger().warning(msg, *args, **kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._get_logger().error(msg, *args, **kwargs)


# Public logger instances
store_logger = _LazyLogger("store")
migration_logger = _LazyLogger("migration")


__all__ = [
    # Loggers
    "store_logger",
    "migration_logger",
    "reset_loggers",
    # Log entries
    "AppendLogEntry",
    "MigrationLogEntry",
    # Utilities
    "read_jsonl",
    # Config
    "LogConfig",
    "get_config",
    "set_config",
]
