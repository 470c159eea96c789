"""
View projection: the reconciler's sequence as presentation sees it.

Pure and synchronous. Ordering is already guaranteed upstream, so this
only maps each entry to a frozen ViewEntry.
"""

from collections.abc import Iterable

from wins.persistence.models import EntryKind, PendingRecord, ViewEntry, WinRecord


def to_view_entry(entry: WinRecord | PendingRecord) -> ViewEntry:
    """Tag one in-memory entry as DURABLE or PENDING."""
    if isinstance(entry, WinRecord):
        return ViewEntry(
            kind=EntryKind.DURABLE,
            key=f"win-{entry.id}",
            title=entry.title,
            category=entry.category,
            created_at=entry.created_at,
            record_id=entry.id,
        )
    return ViewEntry(
        kind=EntryKind.PENDING,
        key=entry.temp_id,
        title=entry.title,
        category=entry.category,
        created_at=entry.created_at,
        status=entry.status,
        error=entry.error,
    )


def project(entries: Iterable[WinRecord | PendingRecord]) -> tuple[ViewEntry, ...]:
    """Return the exact sequence to display, newest first."""
    return tuple(to_view_entry(entry) for entry in entries)
