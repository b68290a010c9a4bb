"""Session-scoped storage: one store per interpreter, shared by all adapters.

This is the Python-host counterpart of browser session storage. Data
survives engine re-creation within the same process but is gone when the
process exits.
"""

from __future__ import annotations

from typing import ClassVar


class SessionStorageAdapter:
    _store: ClassVar[dict[str, str]] = {}

    def get_item(self, key: str) -> str | None:
        return self._store.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._store[key] = value

    def remove_item(self, key: str) -> None:
        self._store.pop(key, None)

    @classmethod
    def clear_session(cls) -> None:
        """Drop every key stored by any session adapter in this process."""
        cls._store.clear()

    def __repr__(self) -> str:
        return f"SessionStorageAdapter(keys={len(self._store)})"
