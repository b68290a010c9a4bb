"""Custom exception hierarchy for statesync."""

from __future__ import annotations


class StateSyncError(Exception):
    """Base exception for all statesync errors."""


class StateConfigError(StateSyncError):
    """Invalid or missing configuration."""


class InvalidCallbackError(StateSyncError, TypeError):
    """A subscriber or middleware was not callable.

    Raised at registration time: this is a programmer error, not a
    runtime condition.
    """


class StatePathError(StateSyncError, ValueError):
    """A dot-notation path cannot be written (e.g. a non-numeric segment into a list)."""

    def __init__(self, message: str, *, path: str = "") -> None:
        self.path = path
        super().__init__(message)


class StorageError(StateSyncError):
    """Storage adapter failure (backend unavailable, I/O error, ...)."""

    def __init__(self, message: str, *, key: str = "") -> None:
        self.key = key
        super().__init__(message)


class StorageQuotaExceededError(StorageError):
    """The adapter refused a write because its byte quota would be exceeded."""

    def __init__(self, message: str, *, key: str = "", limit: int | None = None) -> None:
        self.limit = limit
        super().__init__(message, key=key)
