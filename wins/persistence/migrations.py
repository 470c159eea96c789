"""
Wins Migration Registry

Ordered, versioned schema-change scripts plus the record of which have
been applied to a given database file.

Scripts ship as ``sql/NNNN_name.sql`` beside this module. The
applied steps live in the ``__wins_migrations`` table; the highest
applied version is the store's marker. Each step's statements and its
marker row commit in one transaction, so a crash can never leave the
marker ahead of the schema or behind it.
"""

from __future__ import annotations

import asyncio
import logging
import re
import sqlite3
import time
import uuid
from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING

from wins.exceptions import MigrationError, StoreError
from wins.logging import MigrationLogEntry, migration_logger
from wins.persistence.models import AppliedMigration, Migration, now_iso

if TYPE_CHECKING:
    from wins.persistence.repository import WinRepository
    from wins.persistence.store import WinStore

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "sql"
MARKER_TABLE = "__wins_migrations"

_FILENAME_RE = re.compile(r"^(\d+)_(\w+)\.sql$")

_CREATE_MARKER_SQL = f"""
CREATE TABLE IF NOT EXISTS {MARKER_TABLE} (
    version INTEGER PRIMARY KEY,
    name TEXT NOT NULL,
    checksum TEXT NOT NULL,
    applied_at TEXT NOT NULL
)
"""


def load_migrations(directory: Path = MIGRATIONS_DIR) -> list[Migration]:
    """
    Load migration scripts from a directory, ordered by version.

    Files not matching ``NNNN_name.sql`` are ignored.
    """
    migrations = []
    for path in sorted(directory.glob("*.sql")):
        match = _FILENAME_RE.match(path.name)
        if not match:
            logger.warning(f"Ignoring unrecognized migration file: {path.name}")
            continue
        migrations.append(
            Migration(
                version=int(match.group(1)),
                name=match.group(2),
                sql=path.read_text(encoding="utf-8"),
            )
        )
    return sorted(migrations, key=lambda m: m.version)


def split_statements(sql: str) -> list[str]:
    """
    Split a script into individual SQL statements.

    executescript() commits on its own, so each statement is executed
    separately inside the step's transaction instead.
    """
    statements = []
    buffer = ""
    for line in sql.splitlines(keepends=True):
        buffer += line
        if sqlite3.complete_statement(buffer):
            statements.append(buffer.strip())
            buffer = ""

    leftover = "\n".join(
        line for line in buffer.splitlines() if line.strip() and not line.strip().startswith("--")
    )
    if leftover:
        statements.append(leftover.strip())
    return statements


class MigrationRegistry:
    """
    Applies known migrations to a repository exactly once, in order.

    Usage:
        registry = MigrationRegistry()
        applied = registry.apply(repo)
    """

    def __init__(self, migrations: Iterable[Migration] | None = None):
        """
        Initialize registry.

        Args:
            migrations: Steps known to this build. Defaults to the shipped scripts.

        Raises:
            MigrationError: If versions are duplicated or out of order
        """
        self.migrations = list(migrations) if migrations is not None else load_migrations()

        previous = 0
        for migration in self.migrations:
            if migration.version <= previous:
                raise MigrationError(
                    f"Migration versions must be unique and ascending: "
                    f"{migration.version} follows {previous}",
                    version=migration.version,
                    name=migration.name,
                )
            previous = migration.version

    @property
    def latest_version(self) -> int:
        return self.migrations[-1].version if self.migrations else 0

    def applied(self, repo: WinRepository) -> list[AppliedMigration]:
        """
        Return the applied steps recorded in the marker table.

        A read-only repository without a marker table has nothing applied;
        otherwise the table is created on first use.
        """
        with repo.transaction() as cursor:
            if repo.read_only:
                cursor.execute(
                    "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?",
                    (MARKER_TABLE,),
                )
                if cursor.fetchone() is None:
                    return []
            else:
                cursor.execute(_CREATE_MARKER_SQL)
            cursor.execute(
                f"SELECT version, name, checksum, applied_at FROM {MARKER_TABLE} ORDER BY version"
            )
            rows = cursor.fetchall()
        return [AppliedMigration.from_row(row) for row in rows]

    def current_version(self, repo: WinRepository) -> int:
        """Highest applied version, 0 for a fresh store."""
        applied = self.applied(repo)
        return applied[-1].version if applied else 0

    def pending(self, repo: WinRepository) -> list[Migration]:
        """Steps that have not been applied yet, verified against the marker table."""
        try:
            applied = {row.version: row for row in self.applied(repo)}
        except (sqlite3.Error, StoreError) as e:
            raise MigrationError("Cannot read migration marker", cause=e) from e

        known = {m.version: m for m in self.migrations}
        for version, row in applied.items():
            migration = known.get(version)
            if migration is None:
                raise MigrationError(
                    f"Store has migration {version} ({row.name}) unknown to this build",
                    version=version,
                    name=row.name,
                )
            if migration.checksum != row.checksum:
                raise MigrationError(
                    f"Checksum mismatch for applied migration {migration.label}",
                    version=version,
                    name=migration.name,
                )

        return [m for m in self.migrations if m.version not in applied]

    def apply(self, repo: WinRepository) -> int:
        """
        Apply every pending step in ascending order.

        Returns:
            Number of steps applied in this run (0 if already current)

        Raises:
            MigrationError: Carrying the failing step and underlying cause
        """
        pending = self.pending(repo)
        if not pending:
            logger.debug("Schema is current")
            return 0

        for migration in pending:
            self._apply_one(repo, migration)

        logger.info(f"Applied {len(pending)} migration(s), schema at version {pending[-1].version}")
        return len(pending)

    def _apply_one(self, repo: WinRepository, migration: Migration) -> None:
        entry = MigrationLogEntry(
            timestamp=now_iso(),
            run_id=str(uuid.uuid4()),
            version=migration.version,
            name=migration.name,
            checksum=migration.checksum,
        )
        start = time.monotonic()

        try:
            with repo.transaction() as cursor:
                for statement in split_statements(migration.sql):
                    cursor.execute(statement)
                cursor.execute(
                    f"INSERT INTO {MARKER_TABLE} (version, name, checksum, applied_at) "
                    "VALUES (?, ?, ?, ?)",
                    (migration.version, migration.name, migration.checksum, now_iso()),
                )
        except (sqlite3.Error, StoreError) as e:
            entry.duration_ms = int((time.monotonic() - start) * 1000)
            entry.success = False
            entry.error = str(e)
            entry.error_type = type(e).__name__
            migration_logger.error(entry.to_json())
            logger.error(f"Migration {migration.label} failed: {e}")
            raise MigrationError(
                f"Migration {migration.label} failed",
                version=migration.version,
                name=migration.name,
                cause=e,
            ) from e

        entry.duration_ms = int((time.monotonic() - start) * 1000)
        entry.success = True
        migration_logger.info(entry.to_json())
        logger.info(f"Applied migration {migration.label}")


async def apply_pending(store: WinStore, migrations: Iterable[Migration] | None = None) -> int:
    """
    Bring the store's schema up to date.

    Returns:
        Number of steps applied in this run

    Raises:
        MigrationError: Fatal for the session
    """
    registry = MigrationRegistry(migrations)
    return await asyncio.to_thread(registry.apply, store.repository)
