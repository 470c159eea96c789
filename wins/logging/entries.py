"""
Log Entry Data Structures for the wins ledger.

Defines structured log entries for optimistic appends and schema migrations.
"""

import json
from dataclasses import asdict, dataclass
from typing import Any


@dataclass
class AppendLogEntry:
    """Log entry for one optimistic append and its persistence outcome."""

    # Identity
    timestamp: str  # ISO 8601
    temp_id: str  # Client-local pending id
    session_id: str  # Reconciler session

    # Input
    title: str = ""
    category: str = ""

    # Outcome: "reconciled", "failed"
    outcome: str = ""
    record_id: int | None = None
    created_at: str = ""

    # Metrics
    latency_ms: int = 0

    # Error (if any)
    error: str | None = None
    error_type: str | None = None

    def to_json(self) -> str:
        """Serialize to JSON string."""
        return json.dumps(asdict(self), default=str)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AppendLogEntry":
        """Create from dictionary."""
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class MigrationLogEntry:
    """Log entry for a single migration step."""

    timestamp: str  # ISO 8601
    run_id: str  # UUID
    version: int
    name: str
    checksum: str = ""

    success: bool = False
    duration_ms: int = 0

    error: str | None = None
    error_type: str | None = None

    def to_json(self) -> str:
        """Serialize to JSON string."""
        return json.dumps(asdict(self), default=str)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MigrationLogEntry":
        """Create from dictionary."""
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})
