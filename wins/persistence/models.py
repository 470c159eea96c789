"""
Wins Persistence Models

Dataclasses for the wins table, optimistic pending entries and the
migration marker rows.
Designed for:
- Type safety with enums
- Easy conversion from database rows
- Explicit state machine for optimistic appends
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from wins.exceptions import StateTransitionError

DEFAULT_CATEGORY = "general"


# ============================================================================
# ENUMS
# ============================================================================


class PendingStatus(str, Enum):
    """Lifecycle of an optimistic append."""

    OPTIMISTIC_INSERTED = "optimistic_inserted"
    PERSIST_SUBMITTED = "persist_submitted"
    RECONCILED = "reconciled"
    PERSIST_FAILED = "persist_failed"


# Valid pending-record transitions
PENDING_TRANSITIONS: dict[PendingStatus, set[PendingStatus]] = {
    PendingStatus.OPTIMISTIC_INSERTED: {PendingStatus.PERSIST_SUBMITTED},
    PendingStatus.PERSIST_SUBMITTED: {
        PendingStatus.RECONCILED,
        PendingStatus.PERSIST_FAILED,
    },
    PendingStatus.RECONCILED: set(),  # Terminal
    PendingStatus.PERSIST_FAILED: set(),  # Terminal
}


class MigrationPhase(str, Enum):
    """Startup migration phase, for loading/error UI."""

    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"


class EntryKind(str, Enum):
    """Discriminator for projected view entries."""

    DURABLE = "durable"
    PENDING = "pending"


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================


def format_timestamp(moment: datetime) -> str:
    """Format a datetime as ISO-8601 UTC with millisecond precision."""
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def utc_now() -> datetime:
    """Current wall-clock time in UTC."""
    return datetime.now(timezone.utc)


def now_iso() -> str:
    """Get current UTC time as an ISO string."""
    return format_timestamp(utc_now())


def parse_timestamp(value: str) -> datetime | None:
    """Parse a stored ISO timestamp, or None if malformed."""
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (ValueError, TypeError, AttributeError):
        return None


def checksum(sql: str) -> str:
    """SHA-256 hex digest identifying a migration script."""
    return hashlib.sha256(sql.encode("utf-8")).hexdigest()


# ============================================================================
# DURABLE ENTITIES
# ============================================================================


@dataclass(frozen=True)
class WinRecord:
    """
    A durably stored win.

    Maps to: wins table
    """

    id: int
    title: str
    category: str = DEFAULT_CATEGORY
    created_at: str = ""

    @classmethod
    def from_row(cls, row: tuple) -> WinRecord:
        """Create from database row (id, title, category, created_at)."""
        return cls(
            id=row[0],
            title=row[1],
            category=row[2] if row[2] is not None else DEFAULT_CATEGORY,
            created_at=row[3],
        )


@dataclass(frozen=True)
class Migration:
    """One versioned schema-change script."""

    version: int
    name: str
    sql: str

    @property
    def checksum(self) -> str:
        return checksum(self.sql)

    @property
    def label(self) -> str:
        return f"{self.version:04d}_{self.name}"


@dataclass(frozen=True)
class AppliedMigration:
    """
    A migration recorded as applied.

    Maps to: __wins_migrations table
    """

    version: int
    name: str
    checksum: str
    applied_at: str

    @classmethod
    def from_row(cls, row: tuple) -> AppliedMigration:
        return cls(version=row[0], name=row[1], checksum=row[2], applied_at=row[3])


@dataclass(frozen=True)
class MigrationStatus:
    """Snapshot of startup migration progress."""

    phase: MigrationPhase = MigrationPhase.PENDING
    reason: str | None = None
    applied: int = 0

    @property
    def is_ready(self) -> bool:
        return self.phase == MigrationPhase.READY


# ============================================================================
# TRANSIENT ENTITIES
# ============================================================================


@dataclass
class PendingRecord:
    """
    An optimistic win that has not been confirmed by the store.

    Lives only in memory. ``temp_id`` is unique within one reconciler
    session, never across restarts.
    """

    temp_id: str
    title: str
    category: str = DEFAULT_CATEGORY
    created_at: str = field(default_factory=now_iso)
    status: PendingStatus = PendingStatus.OPTIMISTIC_INSERTED
    error: str | None = None
    record: WinRecord | None = None
    history: list[PendingStatus] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.history:
            self.history.append(self.status)

    def can_transition_to(self, new_status: PendingStatus) -> bool:
        """Check if transition to new_status is valid from current status."""
        return new_status in PENDING_TRANSITIONS.get(self.status, set())

    def require_transition(self, new_status: PendingStatus) -> None:
        """
        Transition to a new status, raising if the move is not allowed.

        Raises:
            StateTransitionError: If the transition is not valid
        """
        if not self.can_transition_to(new_status):
            valid_targets = PENDING_TRANSITIONS.get(self.status, set())
            valid_names = ", ".join(s.name for s in valid_targets) or "none"
            raise StateTransitionError(
                f"Invalid pending transition: {self.status.name} -> {new_status.name}. "
                f"Valid transitions from {self.status.name}: {valid_names}",
                from_state=self.status.name,
                to_state=new_status.name,
            )
        self.status = new_status
        self.history.append(new_status)

    def mark_submitted(self) -> None:
        self.require_transition(PendingStatus.PERSIST_SUBMITTED)

    def mark_reconciled(self, record: WinRecord) -> None:
        """Attach the durable record returned by the store."""
        self.require_transition(PendingStatus.RECONCILED)
        self.record = record

    def mark_failed(self, error: str) -> None:
        self.require_transition(PendingStatus.PERSIST_FAILED)
        self.error = error

    @property
    def is_failed(self) -> bool:
        return self.status == PendingStatus.PERSIST_FAILED


@dataclass(frozen=True)
class ViewEntry:
    """
    One row handed to presentation.

    Closed tagged variant: ``kind`` tells durable rows from pending ones.
    ``record_id`` is set only for DURABLE, ``status``/``error`` only for PENDING.
    """

    kind: EntryKind
    key: str
    title: str
    category: str
    created_at: str
    record_id: int | None = None
    status: PendingStatus | None = None
    error: str | None = None

    @property
    def is_pending(self) -> bool:
        return self.kind == EntryKind.PENDING

    @property
    def is_failed(self) -> bool:
        return self.status == PendingStatus.PERSIST_FAILED
