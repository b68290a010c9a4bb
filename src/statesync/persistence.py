"""Selective persistence of the state tree through a storage adapter.

The manager serializes the tree (or only its configured persistent paths)
to JSON under a single storage key. It is the error boundary for storage:
every adapter or serialization failure is logged and reported as
``False``/``None``; nothing propagates to the caller's write path.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from typing import Any

from statesync.config import StateSyncConfig, normalize_persistent_keys
from statesync.paths import deep_merge, select_paths
from statesync.storage import LocalStorageAdapter, MemoryStorageAdapter, SessionStorageAdapter, StorageAdapter

_logger = logging.getLogger(__name__)


def default_adapter(config: StateSyncConfig) -> StorageAdapter:
    """Return the adapter selected by ``config.storage``."""
    if config.storage == "local":
        return LocalStorageAdapter(config.storage_dir)
    if config.storage == "session":
        return SessionStorageAdapter()
    return MemoryStorageAdapter()


class PersistenceManager:
    """Save, load and clear (a filtered view of) the state tree.

    With persistence disabled every operation is a no-op that never
    touches the adapter.
    """

    def __init__(
        self,
        config: StateSyncConfig | None = None,
        *,
        adapter: StorageAdapter | None = None,
    ) -> None:
        config = config or StateSyncConfig()
        self._key = config.storage_key
        self._enabled = config.persistence_enabled
        self._persistent_keys: tuple[str, ...] | None = config.persistent_keys
        self._adapter: StorageAdapter = adapter if adapter is not None else default_adapter(config)

    # ------------------------------------------------------------------
    # Storage operations
    # ------------------------------------------------------------------

    def select(self, state: Mapping[str, Any]) -> dict[str, Any]:
        """Return the part of *state* that :meth:`save` would write."""
        if not self._persistent_keys:
            return dict(state)
        return select_paths(state, self._persistent_keys)

    def save(self, state: Mapping[str, Any]) -> bool:
        """Serialize *state* (filtered by the persistent keys) to storage."""
        if not self._enabled:
            return False
        try:
            payload = json.dumps(self.select(state), ensure_ascii=False, allow_nan=False)
            self._adapter.set_item(self._key, payload)
        except Exception:
            _logger.warning("Error saving state to storage key=%s", self._key, exc_info=True)
            return False
        _logger.debug("Saved state to storage key=%s (%d chars)", self._key, len(payload))
        return True

    def load(self) -> dict[str, Any] | None:
        """Return the stored tree, or ``None`` when absent, unreadable or malformed."""
        if not self._enabled:
            return None
        try:
            raw = self._adapter.get_item(self._key)
            if not raw:
                return None
            loaded = json.loads(raw)
        except Exception:
            _logger.warning("Error loading state from storage key=%s", self._key, exc_info=True)
            return None
        if not isinstance(loaded, dict):
            _logger.warning("Ignoring stored state for key=%s: expected an object, got %s", self._key, type(loaded).__name__)
            return None
        return loaded

    def restore(self, state: Mapping[str, Any]) -> dict[str, Any]:
        """Deep-merge the stored tree over *state*; *state* is returned as-is when nothing is stored."""
        loaded = self.load()
        if loaded is None:
            return dict(state)
        _logger.debug("Restored %d top-level keys from storage key=%s", len(loaded), self._key)
        # A filtered save holds sparse sequences; merge them entry by entry.
        return deep_merge(state, loaded, merge_sequences=bool(self._persistent_keys))

    def clear(self) -> bool:
        """Remove the stored entry."""
        if not self._enabled:
            return False
        try:
            self._adapter.remove_item(self._key)
        except Exception:
            _logger.warning("Error clearing state from storage key=%s", self._key, exc_info=True)
            return False
        return True

    def exists(self) -> bool:
        """Whether :meth:`load` would return a tree."""
        if not self._enabled:
            return False
        return self.load() is not None

    # ------------------------------------------------------------------
    # Configuration accessors
    # ------------------------------------------------------------------

    def get_key(self) -> str:
        return self._key

    def set_key(self, key: str) -> None:
        if not isinstance(key, str) or not key:
            raise ValueError("storage key must be a non-empty string")
        self._key = key

    def is_enabled(self) -> bool:
        return self._enabled

    def set_enabled(self, enabled: bool) -> None:
        self._enabled = bool(enabled)

    def get_persistent_keys(self) -> tuple[str, ...] | None:
        return self._persistent_keys

    def set_persistent_keys(self, keys: Sequence[str] | None) -> None:
        """Set the persistent-key filter.

        Anything but a non-empty list or tuple of non-empty strings resets
        the filter to ``None`` ("persist everything"); nothing is raised.
        """
        self._persistent_keys = normalize_persistent_keys(keys)

    def get_adapter(self) -> StorageAdapter:
        return self._adapter

    def set_adapter(self, adapter: StorageAdapter) -> None:
        """Swap the storage backend. Previously stored data is not migrated."""
        self._adapter = adapter

    def __repr__(self) -> str:
        return (
            f"PersistenceManager(key={self._key!r}, enabled={self._enabled}, "
            f"persistent_keys={self._persistent_keys!r}, adapter={self._adapter!r})"
        )
