from __future__ import annotations

import json
import logging
from typing import Any

import pytest

from statesync.config import StateSyncConfig
from statesync.exceptions import StorageError
from statesync.persistence import PersistenceManager, default_adapter
from statesync.storage import LocalStorageAdapter, MemoryStorageAdapter, SessionStorageAdapter


class _SpyAdapter:
    """Records every call; optionally fails."""

    def __init__(self, *, fail: bool = False) -> None:
        self.calls: list[tuple[str, Any]] = []
        self.items: dict[str, str] = {}
        self.fail = fail

    def get_item(self, key: str) -> str | None:
        self.calls.append(("get_item", key))
        if self.fail:
            raise StorageError("backend unavailable", key=key)
        return self.items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self.calls.append(("set_item", key))
        if self.fail:
            raise StorageError("quota exceeded", key=key)
        self.items[key] = value

    def remove_item(self, key: str) -> None:
        self.calls.append(("remove_item", key))
        if self.fail:
            raise StorageError("backend unavailable", key=key)
        self.items.pop(key, None)


def _manager(adapter: Any = None, **config: Any) -> PersistenceManager:
    config.setdefault("persistence_enabled", True)
    return PersistenceManager(StateSyncConfig(**config), adapter=adapter if adapter is not None else MemoryStorageAdapter())


def test_round_trip_without_filter() -> None:
    manager = _manager()
    state = {"user": {"name": "A", "email": "b@x.com"}, "counter": 0, "tags": ["x", "y"]}

    assert manager.save(state) is True
    assert manager.load() == state
    assert manager.exists() is True


def test_round_trip_with_nested_filter_drops_siblings() -> None:
    manager = _manager(persistent_keys=["user.name"])

    manager.save({"user": {"name": "A", "email": "b@x.com"}, "counter": 0})

    assert manager.load() == {"user": {"name": "A"}}


def test_filter_with_multiple_paths() -> None:
    manager = _manager(persistent_keys=["counter", "user.prefs.theme", "missing.path"])

    manager.save({"user": {"name": "A", "prefs": {"theme": "dark", "lang": "en"}}, "counter": 2, "other": 1})

    assert manager.load() == {"counter": 2, "user": {"prefs": {"theme": "dark"}}}


def test_save_uses_configured_storage_key() -> None:
    adapter = MemoryStorageAdapter()
    manager = _manager(adapter, storage_key="custom")

    manager.save({"a": 1})

    assert json.loads(adapter.get_item("custom") or "") == {"a": 1}
    manager.set_key("other")
    assert manager.get_key() == "other"
    assert manager.load() is None


def test_disabled_persistence_never_touches_adapter() -> None:
    spy = _SpyAdapter()
    manager = PersistenceManager(StateSyncConfig(), adapter=spy)

    assert manager.save({"a": 1}) is False
    assert manager.load() is None
    assert manager.clear() is False
    assert manager.exists() is False
    assert manager.restore({"a": 1}) == {"a": 1}
    assert spy.calls == []


def test_adapter_failures_are_contained(caplog: pytest.LogCaptureFixture) -> None:
    spy = _SpyAdapter(fail=True)
    manager = _manager(spy)

    with caplog.at_level(logging.WARNING, logger="statesync.persistence"):
        assert manager.save({"a": 1}) is False
        assert manager.load() is None
        assert manager.clear() is False
        assert manager.exists() is False

    assert len(caplog.records) >= 4


def test_unserializable_state_returns_false() -> None:
    manager = _manager()

    assert manager.save({"when": object()}) is False
    assert manager.save({"nan": float("nan")}) is False
    assert manager.exists() is False


def test_malformed_stored_data_loads_as_none() -> None:
    adapter = MemoryStorageAdapter()
    manager = _manager(adapter)

    adapter.set_item("app_state", "{not json")
    assert manager.load() is None
    adapter.set_item("app_state", "[1, 2]")
    assert manager.load() is None
    adapter.set_item("app_state", "")
    assert manager.load() is None
    assert manager.exists() is False


def test_clear_removes_entry() -> None:
    manager = _manager()
    manager.save({"a": 1})

    assert manager.clear() is True
    assert manager.exists() is False
    assert manager.clear() is True


def test_non_list_persistent_keys_fall_back_to_everything() -> None:
    manager = _manager(persistent_keys=["user.name"])

    manager.set_persistent_keys("user")  # type: ignore[arg-type]
    assert manager.get_persistent_keys() is None

    manager.set_persistent_keys({"user"})  # type: ignore[arg-type]
    assert manager.get_persistent_keys() is None

    manager.set_persistent_keys(["user", "counter"])
    assert manager.get_persistent_keys() == ("user", "counter")

    manager.set_persistent_keys(None)
    manager.save({"user": {"name": "A"}, "counter": 1})
    assert manager.load() == {"user": {"name": "A"}, "counter": 1}


def test_filter_through_sequence_persists_only_the_leaf() -> None:
    manager = _manager(persistent_keys=["todos.0.completed"])

    manager.save({"todos": [{"id": 1, "completed": True, "secret": "s"}, {"id": 2, "completed": False}]})

    assert manager.load() == {"todos": [{"completed": True}]}


def test_restore_merges_filtered_sequences_entry_by_entry() -> None:
    manager = _manager(persistent_keys=["todos.1.completed"])
    manager.save({"todos": [{"id": 1, "completed": True}, {"id": 2, "completed": True, "secret": "s"}]})

    restored = manager.restore(
        {"todos": [{"id": 1, "completed": False}, {"id": 2, "completed": False, "title": "b"}], "counter": 0}
    )

    assert restored == {
        "todos": [{"id": 1, "completed": False}, {"id": 2, "completed": True, "title": "b"}],
        "counter": 0,
    }


def test_unfiltered_restore_replaces_sequences() -> None:
    manager = _manager()
    manager.save({"todos": [{"id": 9}]})

    assert manager.restore({"todos": [{"id": 1}, {"id": 2}]}) == {"todos": [{"id": 9}]}


def test_empty_persistent_keys_persist_everything() -> None:
    manager = _manager(persistent_keys=["user.name"])

    manager.set_persistent_keys([])

    assert manager.get_persistent_keys() is None
    state = {"user": {"name": "A", "email": "b@x.com"}, "counter": 1}
    assert manager.save(state) is True
    assert manager.load() == state
    assert _manager(persistent_keys=[]).get_persistent_keys() is None


def test_invalid_persistent_key_entries_fall_back_to_everything(caplog: pytest.LogCaptureFixture) -> None:
    manager = _manager(persistent_keys=["user.name"])

    with caplog.at_level(logging.WARNING):
        manager.set_persistent_keys(["user", 3])  # type: ignore[list-item]

    assert manager.get_persistent_keys() is None
    assert "persisting everything" in caplog.text

    manager.set_persistent_keys(["user", "   "])
    assert manager.get_persistent_keys() is None


def test_empty_memory_adapter_is_used_as_given() -> None:
    adapter = MemoryStorageAdapter()
    manager = _manager(adapter)

    assert manager.get_adapter() is adapter
    manager.save({"a": 1})
    assert adapter.get_item("app_state") == '{"a": 1}'


def test_set_adapter_does_not_migrate_data() -> None:
    first = MemoryStorageAdapter()
    second = MemoryStorageAdapter()
    manager = _manager(first)
    manager.save({"a": 1})

    manager.set_adapter(second)

    assert manager.get_adapter() is second
    assert manager.load() is None
    assert first.get_item("app_state") == '{"a": 1}'


def test_enabled_toggle() -> None:
    spy = _SpyAdapter()
    manager = _manager(spy)

    manager.set_enabled(False)
    assert manager.is_enabled() is False
    assert manager.save({"a": 1}) is False
    assert spy.calls == []

    manager.set_enabled(True)
    assert manager.save({"a": 1}) is True


def test_restore_deep_merges_over_base() -> None:
    manager = _manager(persistent_keys=["user.name"])
    manager.save({"user": {"name": "Stored", "email": "ignored"}})

    restored = manager.restore({"user": {"name": "Default", "email": "d@x.com"}, "counter": 0})

    assert restored == {"user": {"name": "Stored", "email": "d@x.com"}, "counter": 0}


def test_default_adapter_follows_config(tmp_path) -> None:
    assert isinstance(default_adapter(StateSyncConfig()), MemoryStorageAdapter)
    assert isinstance(default_adapter(StateSyncConfig(storage="session")), SessionStorageAdapter)
    local = default_adapter(StateSyncConfig(storage="local", storage_dir=tmp_path))
    assert isinstance(local, LocalStorageAdapter)
    assert local.directory == tmp_path
