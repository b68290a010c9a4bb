"""Storage adapter contract."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class StorageAdapter(Protocol):
    """Minimal string key-value store used by :class:`~statesync.persistence.PersistenceManager`.

    Implementations may raise any exception on failure; the persistence
    layer catches and logs it.
    """

    def get_item(self, key: str) -> str | None:
        """Return the stored string for *key*, or ``None`` if absent."""
        ...

    def set_item(self, key: str, value: str) -> None:
        """Store *value* under *key*, replacing any previous value."""
        ...

    def remove_item(self, key: str) -> None:
        """Delete *key*; removing an absent key is not an error."""
        ...
