"""
Log handlers for the wins ledger.

Writes one JSON object per line, rotating by size.
"""

import json
import logging
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any


class JSONLRotatingHandler(RotatingFileHandler):
    """
    Size-rotated file handler emitting JSONL.

    Messages produced by a log entry's ``to_json()`` are written unchanged;
    plain-text messages are wrapped with timestamp, level and logger name.
    """

    def __init__(
        self,
        filename: str | Path,
        max_bytes: int = 10_000_000,  # 10MB
        backup_count: int = 5,
    ):
        filepath = Path(filename)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        super().__init__(
            str(filepath),
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )

    def emit(self, record: logging.LogRecord) -> None:
        try:
            if self.shouldRollover(record):
                self.doRollover()

            msg = self.format(record)
            try:
                data = json.loads(msg)
            except json.JSONDecodeError:
                data = {
                    "timestamp": datetime.fromtimestamp(record.created).isoformat(),
                    "level": record.levelname,
                    "message": msg,
                    "logger": record.name,
                }

            self.stream.write(json.dumps(data, default=str) + "\n")
            self.flush()

        except Exception:
            self.handleError(record)


class PassthroughFormatter(logging.Formatter):
    """Return the message untouched; entries are already JSON."""

    def format(self, record: logging.LogRecord) -> str:
        return record.getMessage()


def create_jsonl_logger(
    name: str,
    filepath: Path,
    level: str = "INFO",
    max_bytes: int = 10_000_000,
    backup_count: int = 5,
) -> logging.Logger:
    """
    Create a non-propagating logger that writes JSONL to ``filepath``.

    Args:
        name: Logger name
        filepath: Path to log file
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        max_bytes: Max file size before rotation
        backup_count: Number of backup files

    Returns:
        Configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()

    handler = JSONLRotatingHandler(
        filepath,
        max_bytes=max_bytes,
        backup_count=backup_count,
    )
    handler.setFormatter(PassthroughFormatter())
    logger.addHandler(handler)

    logger.propagate = False

    return logger


def read_jsonl(filepath: Path) -> list[dict[str, Any]]:
    """Read back a JSONL log, skipping lines that are not valid JSON."""
    if not filepath.exists():
        return []

    entries = []
    with open(filepath, encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                entries.append(json.loads(line))
            except json.JSONDecodeError:
                continue
    return entries
