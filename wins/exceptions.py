"""
Wins Ledger - Exception Hierarchy

All Wins-specific exceptions inherit from WinsError.
Storage failures never leave the store as raw sqlite3 errors; they are
translated into the StoreError family below.
"""

from typing import Any


class WinsError(Exception):
    """Base exception for all Wins-related errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# Configuration Errors
class ConfigError(WinsError):
    """Raised when configuration is invalid or missing."""

    pass


# Migration Errors
class MigrationError(WinsError):
    """Raised when a schema migration cannot be applied or verified.

    Fatal for the session: no further store access is safe.
    """

    def __init__(
        self,
        message: str,
        version: int | None = None,
        name: str | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(
            message,
            {
                "version": version,
                "name": name,
                "cause": repr(cause) if cause is not None else None,
            },
        )
        self.version = version
        self.name = name
        self.cause = cause


# Store Errors
class StoreError(WinsError):
    """Base exception for durable store errors."""

    pass


class StoreConstraintError(StoreError):
    """Raised when a write violates a record constraint (e.g. empty title)."""

    pass


class StoreIOError(StoreError):
    """Raised when the underlying storage fails."""

    pass


class StoreNotReadyError(StoreError):
    """Raised when the store is used before migrations succeeded."""

    def __init__(self, message: str, phase: str):
        super().__init__(message, {"phase": phase})
        self.phase = phase


# State Errors
class StateTransitionError(WinsError):
    """Raised when an invalid pending-record transition is attempted.

    Includes the current state and the attempted target state for debugging.
    """

    def __init__(self, message: str, from_state: str, to_state: str):
        super().__init__(message, {"from_state": from_state, "to_state": to_state})
        self.from_state = from_state
        self.to_state = to_state
