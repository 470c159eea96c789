"""
Wins Store - async facade over WinRepository

The event loop never blocks on SQLite: each repository call runs through
asyncio.to_thread, and the repository lock serializes them on its single
connection. Only StoreError subclasses escape this boundary.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from wins.persistence.models import DEFAULT_CATEGORY, WinRecord, utc_now
from wins.persistence.repository import WinRepository

logger = logging.getLogger(__name__)


class WinStore:
    """
    Durable store for wins.

    Usage:
        store = WinStore(db_path)
        await apply_pending(store)
        record = await store.insert("Drank water")
        records = await store.list_all()
        await store.close()
    """

    def __init__(
        self,
        db_path: Path | str | None = None,
        clock: Callable[[], datetime] = utc_now,
        repository: WinRepository | None = None,
    ):
        self.repository = repository or WinRepository(db_path, clock=clock)

    @property
    def db_path(self) -> Path:
        return self.repository.db_path

    async def insert(self, title: str, category: str | None = DEFAULT_CATEGORY) -> WinRecord:
        """
        Durably insert a win.

        Raises:
            StoreConstraintError: If title is empty
            StoreIOError: On underlying storage failure
        """
        return await asyncio.to_thread(self.repository.insert_win, title, category)

    async def list_all(self) -> list[WinRecord]:
        """
        Every win, newest first (created_at desc, id desc).

        Raises:
            StoreIOError: On underlying storage failure
        """
        return await asyncio.to_thread(self.repository.list_wins)

    async def count(self) -> int:
        return await asyncio.to_thread(self.repository.count_wins)

    async def close(self) -> None:
        await asyncio.to_thread(self.repository.close)
        logger.debug(f"Closed store at {self.db_path}")
