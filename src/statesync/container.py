"""The state container: canonical tree, change detection, notification.

Every write produces a new tree object; the previous tree is never mutated
in place. The container compares old and new values per top-level key
(structurally) to decide what changed, persists, then notifies.

Usage::

    container = StateContainer({"todos": []}, StateSyncConfig(persistence_enabled=True))
    unsubscribe = container.subscribe(render, "todos")
    container.set_state({"todos.0.completed": True})
"""

from __future__ import annotations

import copy
import logging
import operator
from collections.abc import Callable, Mapping
from typing import Any, TypeVar

from statesync._compare import deep_equal
from statesync._redact import redact_for_log
from statesync.config import StateSyncConfig
from statesync.events import ChangeEmitter, ChangeKind, Listener, StateChange
from statesync.middleware import Middleware, MiddlewareManager, MiddlewareStage
from statesync.paths import MISSING, PathLike, get_path, set_path, split_path
from statesync.persistence import PersistenceManager
from statesync.storage import StorageAdapter
from statesync.subscriptions import KeyScope, SubscriptionHandle, SubscriptionRegistry

_logger = logging.getLogger(__name__)

T = TypeVar("T")

Update = Mapping[str, Any] | Callable[[dict[str, Any]], Mapping[str, Any] | None]


def _ordered_unique(keys: list[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(keys))


class StateContainer:
    """Owns one state tree and everything that reacts to it.

    Parameters
    ----------
    initial_state : Mapping or None
        Starting tree (copied). Defaults to an empty mapping.
    config : StateSyncConfig or None
        Engine configuration. Defaults to :class:`StateSyncConfig` defaults
        (persistence disabled, in-memory storage).
    adapter : StorageAdapter or None
        Storage backend overriding ``config.storage``.
    persistence : PersistenceManager or None
        Fully built persistence manager; takes precedence over *config*
        and *adapter* for persistence.

    When persistence is enabled the stored tree is deep-merged over
    *initial_state* at construction, without notifying anyone.
    """

    def __init__(
        self,
        initial_state: Mapping[str, Any] | None = None,
        config: StateSyncConfig | None = None,
        *,
        adapter: StorageAdapter | None = None,
        persistence: PersistenceManager | None = None,
    ) -> None:
        self._config = config or StateSyncConfig()
        self.persistence = persistence if persistence is not None else PersistenceManager(self._config, adapter=adapter)
        self.middleware = MiddlewareManager()
        self._subscriptions = SubscriptionRegistry()
        self.events = ChangeEmitter()

        state = copy.deepcopy(dict(initial_state or {}))
        if self.persistence.is_enabled():
            state = self.persistence.restore(state)
        self._state: dict[str, Any] = state
        _logger.debug("StateContainer initialized with state=%s", redact_for_log(self._state))

    @property
    def config(self) -> StateSyncConfig:
        return self._config

    @property
    def subscriptions(self) -> SubscriptionRegistry:
        return self._subscriptions

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_state(self, path: PathLike | None = None, default: Any = None) -> Any:
        """Return a copy of the whole tree, or of the value at *path*.

        Missing paths (absent keys, out-of-range indices, walking through a
        primitive) return *default* instead of raising.
        """
        if path is None:
            return copy.deepcopy(self._state)
        value = get_path(self._state, path)
        if value is MISSING:
            return default
        return copy.deepcopy(value)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _resolve_update(self, update: Update) -> Mapping[str, Any]:
        resolved = update(copy.deepcopy(self._state)) if callable(update) else update
        if resolved is None:
            return {}
        if not isinstance(resolved, Mapping):
            raise TypeError(f"state update must be a mapping, got {type(resolved).__name__}")
        return resolved

    def set_state(self, update: Update, silent: bool = False, *, persist: bool = True) -> dict[str, Any]:
        """Merge *update* into the top level of the tree.

        *update* is a mapping or a callable receiving a copy of the current
        state and returning one. Keys containing dots write through to the
        nested location (``{"todos.1.completed": True}``); the top-level key
        they start with is what counts as changed.

        Returns a copy of the resulting state. When nothing changed
        structurally, nothing is persisted and nobody is notified.

        Raises
        ------
        TypeError
            If the update does not resolve to a mapping.
        StatePathError
            If a dotted key cannot be written.
        """
        update_map = self._resolve_update(update)
        update_map = self.middleware.apply(MiddlewareStage.BEFORE_UPDATE, update_map, copy.deepcopy(self._state))
        if not isinstance(update_map, Mapping):
            raise TypeError(f"before_update middleware must return a mapping, got {type(update_map).__name__}")

        previous = self._state
        new_state = dict(previous)
        touched: list[str] = []
        for raw_key, raw_value in update_map.items():
            key = str(raw_key)
            value = copy.deepcopy(raw_value)
            segments = split_path(key)
            if len(segments) > 1:
                new_state = set_path(new_state, segments, value)
            else:
                new_state[key] = value
            touched.append(segments[0] if segments else key)

        changed = _ordered_unique(
            [key for key in touched if not deep_equal(previous.get(key, MISSING), new_state.get(key, MISSING))]
        )
        if not changed:
            _logger.debug("No state changes detected")
            return copy.deepcopy(previous)

        self._state = new_state
        _logger.debug("State updated keys=%s", list(changed))

        change = StateChange(kind=ChangeKind.UPDATE, changed_keys=changed, state=copy.deepcopy(new_state), silent=silent)
        self.middleware.apply(MiddlewareStage.AFTER_UPDATE, change)

        if persist and self.persistence.is_enabled():
            self.persistence.save(self._state)

        self.events.emit(change.model_copy(deep=True))

        if not silent:
            self._subscriptions.notify(previous, self._state, changed)

        return copy.deepcopy(self._state)

    def reset(self, initial_state: Mapping[str, Any] | None = None) -> dict[str, Any]:
        """Replace the whole tree.

        Always persists (when enabled) and always notifies every
        subscriber of every key in the new tree, changed or not.
        """
        replacement = self.middleware.apply(MiddlewareStage.BEFORE_RESET, copy.deepcopy(dict(initial_state or {})))
        if not isinstance(replacement, Mapping):
            raise TypeError(f"before_reset middleware must return a mapping, got {type(replacement).__name__}")

        previous = self._state
        self._state = copy.deepcopy(dict(replacement))
        keys = tuple(self._state)
        _logger.debug("State reset to keys=%s", list(keys))

        change = StateChange(kind=ChangeKind.RESET, changed_keys=keys, state=copy.deepcopy(self._state))
        self.middleware.apply(MiddlewareStage.AFTER_RESET, change)

        if self.persistence.is_enabled():
            self.persistence.save(self._state)

        self.events.emit(change.model_copy(deep=True))

        self._subscriptions.notify(previous, self._state, keys, force=True)
        return copy.deepcopy(self._state)

    # ------------------------------------------------------------------
    # Subscriptions and middleware
    # ------------------------------------------------------------------

    def subscribe(self, callback: Callable[..., Any], keys: KeyScope = None) -> SubscriptionHandle:
        """Subscribe to changes; see :meth:`SubscriptionRegistry.subscribe`.

        Global subscribers receive ``(state, changed_keys)``; key subscribers
        receive ``(value, path, state)`` once per matching changed key.
        """
        return self._subscriptions.subscribe(callback, keys)

    def unsubscribe(self, callback: Callable[..., Any]) -> None:
        self._subscriptions.unsubscribe(callback)

    def on(self, event: ChangeKind | str, listener: Listener) -> Callable[[], None]:
        """Listen for committed ``"update"`` or ``"reset"`` writes.

        The listener receives the :class:`StateChange` after persistence and
        before subscribers are notified, silent writes included.
        """
        return self.events.on(event, listener)

    def once(self, event: ChangeKind | str, listener: Listener) -> Callable[[], None]:
        return self.events.once(event, listener)

    def off(self, event: ChangeKind | str, listener: Listener | None = None) -> None:
        self.events.off(event, listener)

    def use(self, stage: MiddlewareStage | str, fn: Middleware) -> Callable[[], None]:
        """Add middleware for *stage*; returns a handle that removes it."""
        return self.middleware.use(stage, fn)

    def create_selector(
        self,
        selector: Callable[[dict[str, Any]], T],
        equality: Callable[[T, T], bool] = operator.eq,
    ) -> Callable[[], T]:
        """Return a memoized view of derived state.

        The selector reruns only after a write has replaced the tree. If the
        fresh result is equal (per *equality*) to the previous one, the
        previous object is returned so callers can compare by identity.
        """
        last_tree: dict[str, Any] | None = None
        last_result: Any = MISSING

        def select() -> T:
            nonlocal last_tree, last_result
            if last_result is not MISSING and self._state is last_tree:
                return last_result  # type: ignore[no-any-return]
            result = selector(copy.deepcopy(self._state))
            last_tree = self._state
            if last_result is not MISSING and equality(result, last_result):
                return last_result  # type: ignore[no-any-return]
            last_result = result
            return result

        return select

    def __repr__(self) -> str:
        return (
            f"StateContainer(keys={list(self._state)!r}, subscribers={len(self._subscriptions)}, "
            f"persistence={self.persistence!r})"
        )
