"""
Wins Persistence Layer

SQLite storage for wins: versioned migrations, a synchronous repository
and the async store facade used by the reconciler.
"""

from wins.persistence.migrations import MigrationRegistry, apply_pending, load_migrations
from wins.persistence.models import (
    DEFAULT_CATEGORY,
    AppliedMigration,
    EntryKind,
    Migration,
    MigrationPhase,
    MigrationStatus,
    # Transient entities
    PendingRecord,
    # Enums
    PendingStatus,
    ViewEntry,
    # Durable entities
    WinRecord,
)
from wins.persistence.repository import WinRepository
from wins.persistence.store import WinStore

__all__ = [
    # Enums
    "PendingStatus",
    "MigrationPhase",
    "EntryKind",
    # Durable entities
    "WinRecord",
    "Migration",
    "AppliedMigration",
    "MigrationStatus",
    # Transient entities
    "PendingRecord",
    "ViewEntry",
    "DEFAULT_CATEGORY",
    # Migrations
    "MigrationRegistry",
    "apply_pending",
    "load_migrations",
    # Storage
    "WinRepository",
    "WinStore",
]
