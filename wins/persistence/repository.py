"""
Wins Repository - Database access layer

Provides all SQLite operations for the wins ledger.
Single connection per repository instance, with context manager support.

Thread Safety:
- SQLite in WAL mode for concurrent reads
- Every operation holds the repository lock, so calls arriving from
  asyncio.to_thread workers are serialized on the one connection

Errors:
- sqlite3.IntegrityError -> StoreConstraintError
- any other sqlite3.Error -> StoreIOError
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Callable, Generator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

from wins.exceptions import StoreConstraintError, StoreIOError
from wins.persistence.models import (
    DEFAULT_CATEGORY,
    WinRecord,
    format_timestamp,
    utc_now,
)

logger = logging.getLogger(__name__)

# Default database location
DEFAULT_DB_PATH = Path.home() / ".config" / "wins" / "wins.db"


class WinRepository:
    """
    Repository for all wins persistence operations.

    Usage:
        repo = WinRepository(db_path)
        repo.initialize()

        record = repo.insert_win("Went for a run")
        records = repo.list_wins()

        # Or as a context manager
        with WinRepository(db_path) as repo:
            ...
    """

    def __init__(
        self,
        db_path: Path | str | None = None,
        clock: Callable[[], datetime] = utc_now,
        read_only: bool = False,
    ):
        """
        Initialize repository.

        Args:
            db_path: Path to SQLite database file. If None, uses default location.
            clock: Source of creation timestamps for new wins.
            read_only: Open an existing file without creating or changing anything.
        """
        self.db_path = Path(db_path) if db_path else DEFAULT_DB_PATH
        self.clock = clock
        self.read_only = read_only
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()

    def __enter__(self) -> WinRepository:
        """Context manager entry."""
        self.initialize()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()

    @property
    def conn(self) -> sqlite3.Connection:
        """Get database connection, initializing if needed."""
        if self._conn is None:
            self.initialize()
        return self._conn  # type: ignore

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def initialize(self) -> None:
        """
        Open the database connection.

        Creates the database file and parent directories if they don't exist,
        unless the repository is read-only. Schema is owned by the migration
        registry, not by this method.

        Raises:
            StoreIOError: If the file cannot be opened
        """
        with self._lock:
            if self._conn is not None:
                return

            if self.read_only:
                self._open_read_only()
                return

            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
                self._conn = sqlite3.connect(
                    self.db_path,
                    timeout=30.0,
                    check_same_thread=False,  # Guarded by self._lock
                    isolation_level=None,  # Autocommit mode, we use explicit transactions
                )
                self._conn.execute("PRAGMA journal_mode=WAL")
                self._conn.execute("PRAGMA synchronous=NORMAL")
            except (OSError, sqlite3.Error) as e:
                self._conn = None
                raise StoreIOError(
                    f"Cannot open wins database at {self.db_path}",
                    {"error": str(e)},
                ) from e

            logger.info(f"Opened wins database at {self.db_path}")

    def _open_read_only(self) -> None:
        try:
            self._conn = sqlite3.connect(
                f"{self.db_path.resolve().as_uri()}?mode=ro",
                uri=True,
                timeout=30.0,
                check_same_thread=False,
                isolation_level=None,
            )
        except sqlite3.Error as e:
            raise StoreIOError(
                f"Cannot open wins database at {self.db_path} read-only",
                {"error": str(e)},
            ) from e

        logger.info(f"Opened wins database at {self.db_path} (read-only)")

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None

    @contextmanager
    def transaction(self) -> Generator[sqlite3.Cursor, None, None]:
        """
        Execute operations in a single transaction.

        Holds the repository lock for the whole block. Raw sqlite3 errors
        propagate so callers can translate them for their own boundary.

        Usage:
            with repo.transaction() as cursor:
                cursor.execute(...)
        """
        with self._lock:
            cursor = self.conn.cursor()
            try:
                cursor.execute("BEGIN" if self.read_only else "BEGIN IMMEDIATE")
                yield cursor
                cursor.execute("COMMIT")
            except BaseException:
                if self.conn.in_transaction:
                    cursor.execute("ROLLBACK")
                raise
            finally:
                cursor.close()

    # =========================================================================
    # WIN OPERATIONS
    # =========================================================================

    def insert_win(self, title: str, category: str | None = DEFAULT_CATEGORY) -> WinRecord:
        """
        Insert a win and return it as stored.

        ``id`` and ``created_at`` are assigned here, inside the same
        transaction as the write.

        Raises:
            StoreConstraintError: If title is empty or violates a constraint
            StoreIOError: On underlying storage failure
        """
        if title is None or not title.strip():
            raise StoreConstraintError("Win title must not be empty", {"title": title})
        category = category or DEFAULT_CATEGORY
        created_at = format_timestamp(self.clock())

        try:
            with self.transaction() as cursor:
                cursor.execute(
                    "INSERT INTO wins (title, category, created_at) VALUES (?, ?, ?)",
                    (title, category, created_at),
                )
                win_id = cursor.lastrowid
        except sqlite3.IntegrityError as e:
            raise StoreConstraintError(
                "Win violates a table constraint",
                {"title": title, "error": str(e)},
            ) from e
        except sqlite3.Error as e:
            raise StoreIOError("Failed to insert win", {"error": str(e)}) from e

        record = WinRecord(id=win_id, title=title, category=category, created_at=created_at)
        logger.debug(f"Inserted win {record.id} at {record.created_at}")
        return record

    def list_wins(self) -> list[WinRecord]:
        """
        Return every win, newest first.

        Ordered by created_at descending, ties broken by id descending.
        A single SELECT, so the result is one consistent snapshot.

        Raises:
            StoreIOError: On underlying storage failure
        """
        try:
            with self._lock:
                rows = self.conn.execute(
                    """
                    SELECT id, title, category, created_at FROM wins
                    ORDER BY created_at DESC, id DESC
                    """
                ).fetchall()
        except sqlite3.Error as e:
            raise StoreIOError("Failed to list wins", {"error": str(e)}) from e

        return [WinRecord.from_row(row) for row in rows]

    def count_wins(self) -> int:
        """Return the number of stored wins."""
        try:
            with self._lock:
                row = self.conn.execute("SELECT COUNT(*) FROM wins").fetchone()
        except sqlite3.Error as e:
            raise StoreIOError("Failed to count wins", {"error": str(e)}) from e
        return row[0]
