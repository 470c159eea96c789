"""
Wins Reconciler - optimistic in-memory view over the durable store

Owns the single ordered sequence of wins that presentation renders.

Append lifecycle (see PendingStatus):
    OPTIMISTIC_INSERTED -> PERSIST_SUBMITTED -> RECONCILED | PERSIST_FAILED

- The prepend is synchronous, so the view follows handle_append call order.
- Persistence runs as an asyncio task; on completion it only patches the
  matching entry in place and never reorders the sequence.
- Success replaces the pending entry with the durable WinRecord at the
  same position.
- Failure keeps the entry, flagged PERSIST_FAILED. There is no retry.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from wins.exceptions import (
    MigrationError,
    StoreConstraintError,
    StoreError,
    StoreNotReadyError,
)
from wins.logging import AppendLogEntry, store_logger
from wins.persistence.migrations import apply_pending
from wins.persistence.models import (
    DEFAULT_CATEGORY,
    Migration,
    MigrationPhase,
    MigrationStatus,
    PendingRecord,
    ViewEntry,
    WinRecord,
    now_iso,
)
from wins.persistence.store import WinStore
from wins.view import project

logger = logging.getLogger(__name__)

Entry = WinRecord | PendingRecord


@dataclass
class ReconcilerCallbacks:
    """Callbacks for presentation to follow the ledger."""

    on_view_changed: Callable[[tuple[ViewEntry, ...]], None] | None = None
    on_append_failed: Callable[[PendingRecord], None] | None = None
    on_migration_failed: Callable[[MigrationError], None] | None = None


class WinReconciler:
    """
    Bridge between the in-memory view and the durable store.

    Usage:
        reconciler = WinReconciler(WinStore(db_path), callbacks=callbacks)
        await reconciler.start()            # migrations + initial load

        pending = reconciler.handle_append("Stretched for 5 minutes")
        reconciler.view()[0].title          # visible before any I/O

        await reconciler.wait_idle()
        await reconciler.aclose()
    """

    def __init__(
        self,
        store: WinStore,
        migrations: Iterable[Migration] | None = None,
        callbacks: ReconcilerCallbacks | None = None,
    ):
        self.store = store
        self.migrations = list(migrations) if migrations is not None else None
        self.callbacks = callbacks or ReconcilerCallbacks()
        self.session_id = str(uuid.uuid4())

        self._entries: list[Entry] = []
        self._status = MigrationStatus()
        self._in_flight: dict[str, asyncio.Task] = {}
        self._temp_ids = itertools.count(1)
        # Ids reconciled while each in-flight load awaits its snapshot
        self._load_watchers: list[set[int]] = []

    # =========================================================================
    # STARTUP
    # =========================================================================

    def migration_status(self) -> MigrationStatus:
        """Current migration phase for loading/error UI."""
        return self._status

    async def start(self) -> int:
        """
        Apply pending migrations, then load every win into memory.

        Returns:
            Number of migration steps applied

        Raises:
            MigrationError: Fatal; the reconciler stays FAILED
            StoreIOError: If the initial load fails
        """
        try:
            applied = await apply_pending(self.store, self.migrations)
        except MigrationError as e:
            self._status = MigrationStatus(phase=MigrationPhase.FAILED, reason=str(e))
            logger.error(f"Migrations failed, store unavailable: {e}")
            if self.callbacks.on_migration_failed:
                self.callbacks.on_migration_failed(e)
            raise

        self._status = MigrationStatus(phase=MigrationPhase.READY, applied=applied)
        await self.load()
        return applied

    async def load(self) -> None:
        """
        Replace the in-memory sequence with the durable one.

        Entries still awaiting their persist, and failed ones, stay at the
        head in their current order. So do wins reconciled while the
        snapshot was being read, unless the snapshot already holds them.
        """
        self._require_ready()
        reconciled: set[int] = set()
        self._load_watchers.append(reconciled)
        try:
            records = await self.store.list_all()
        finally:
            self._load_watchers.remove(reconciled)

        loaded = {record.id for record in records}
        head = [
            e
            for e in self._entries
            if isinstance(e, PendingRecord)
            or (e.id in reconciled and e.id not in loaded)
        ]
        self._entries = head + list(records)
        logger.info(f"Loaded {len(records)} wins")
        self._notify()

    # =========================================================================
    # APPENDS
    # =========================================================================

    def handle_append(self, title: str, category: str | None = DEFAULT_CATEGORY) -> PendingRecord:
        """
        Show a new win immediately and persist it in the background.

        Must be called from a running event loop.

        Raises:
            StoreConstraintError: Empty or whitespace-only title; nothing is created
            StoreNotReadyError: Migrations have not succeeded
        """
        if title is None or not title.strip():
            raise StoreConstraintError("Win title must not be empty", {"title": title})
        self._require_ready()
        loop = asyncio.get_running_loop()

        pending = PendingRecord(
            temp_id=f"pending-{next(self._temp_ids)}",
            title=title,
            category=category or DEFAULT_CATEGORY,
        )
        self._entries.insert(0, pending)

        task = loop.create_task(self._persist(pending), name=f"persist-{pending.temp_id}")
        pending.mark_submitted()
        self._in_flight[pending.temp_id] = task
        task.add_done_callback(lambda _: self._in_flight.pop(pending.temp_id, None))

        self._notify()
        return pending

    async def append(self, title: str, category: str | None = DEFAULT_CATEGORY) -> PendingRecord:
        """handle_append, then wait for that win's persist to finish."""
        pending = self.handle_append(title, category)
        task = self._in_flight.get(pending.temp_id)
        if task is not None:
            await task
        return pending

    async def _persist(self, pending: PendingRecord) -> None:
        start = time.monotonic()
        try:
            record = await self.store.insert(pending.title, pending.category)
        except StoreError as e:
            self._fail(pending, e, start)
            return
        except Exception as e:
            logger.exception(f"Unexpected error persisting {pending.temp_id}")
            self._fail(pending, e, start)
            return

        self._reconcile(pending, record, start)

    def _reconcile(self, pending: PendingRecord, record: WinRecord, start: float) -> None:
        pending.mark_reconciled(record)
        for watcher in self._load_watchers:
            watcher.add(record.id)

        index = self._index_of(pending)
        if index is not None:
            # A reload may already have brought in the durable row
            if any(isinstance(e, WinRecord) and e.id == record.id for e in self._entries):
                del self._entries[index]
            else:
                self._entries[index] = record

        store_logger.info(
            AppendLogEntry(
                timestamp=now_iso(),
                temp_id=pending.temp_id,
                session_id=self.session_id,
                title=pending.title,
                category=pending.category,
                outcome="reconciled",
                record_id=record.id,
                created_at=record.created_at,
                latency_ms=int((time.monotonic() - start) * 1000),
            ).to_json()
        )
        logger.debug(f"Reconciled {pending.temp_id} -> win {record.id}")
        self._notify()

    def _fail(self, pending: PendingRecord, error: Exception, start: float) -> None:
        pending.mark_failed(str(error))

        store_logger.error(
            AppendLogEntry(
                timestamp=now_iso(),
                temp_id=pending.temp_id,
                session_id=self.session_id,
                title=pending.title,
                category=pending.category,
                outcome="failed",
                latency_ms=int((time.monotonic() - start) * 1000),
                error=str(error),
                error_type=type(error).__name__,
            ).to_json()
        )
        logger.warning(f"Failed to persist {pending.temp_id}: {error}")

        self._notify()
        if self.callbacks.on_append_failed:
            self.callbacks.on_append_failed(pending)

    def discard_failed(self, temp_id: str) -> bool:
        """
        Drop a failed entry from the view.

        Returns:
            True if a failed entry with that id was removed
        """
        for i, entry in enumerate(self._entries):
            if isinstance(entry, PendingRecord) and entry.temp_id == temp_id:
                if not entry.is_failed:
                    return False
                del self._entries[i]
                self._notify()
                return True
        return False

    # =========================================================================
    # QUERIES
    # =========================================================================

    def view(self) -> tuple[ViewEntry, ...]:
        """Projected sequence for presentation, newest first."""
        return project(self._entries)

    @property
    def entries(self) -> tuple[Entry, ...]:
        return tuple(self._entries)

    def failed(self) -> list[PendingRecord]:
        return [e for e in self._entries if isinstance(e, PendingRecord) and e.is_failed]

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def wait_idle(self) -> None:
        """Wait until every submitted persist has completed."""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight.values()), return_exceptions=True)

    async def aclose(self) -> None:
        """Finish in-flight persists and close the store."""
        await self.wait_idle()
        await self.store.close()

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _require_ready(self) -> None:
        if not self._status.is_ready:
            raise StoreNotReadyError(
                "Store is not ready; migrations have not completed",
                phase=self._status.phase.value,
            )

    def _index_of(self, pending: PendingRecord) -> int | None:
        for i, entry in enumerate(self._entries):
            if entry is pending:
                return i
        return None

    def _notify(self) -> None:
        if self.callbacks.on_view_changed:
            self.callbacks.on_view_changed(self.view())
