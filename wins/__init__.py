"""
Wins - a local-first micro-achievement ledger.

Appends show up immediately in an in-memory view and are persisted to
SQLite in the background; the view is reconciled with what was stored.
"""

__version__ = "0.1.0"

from wins.exceptions import (
    ConfigError,
    MigrationError,
    StoreConstraintError,
    StoreError,
    StoreIOError,
    StoreNotReadyError,
    WinsError,
)

__all__ = [
    "__version__",
    "WinsError",
    "ConfigError",
    "MigrationError",
    "StoreError",
    "StoreConstraintError",
    "StoreIOError",
    "StoreNotReadyError",
]
