"""Path-keyed subscriber registry and notification fan-out."""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from statesync._compare import deep_equal
from statesync.exceptions import InvalidCallbackError
from statesync.paths import MISSING, get_path, split_path

_logger = logging.getLogger(__name__)

#: ``callback(state, changed_keys)``
GlobalSubscriber = Callable[[dict[str, Any], tuple[str, ...]], Any]
#: ``callback(value, path, state)``
KeySubscriber = Callable[[Any, str, dict[str, Any]], Any]

KeyScope = str | Iterable[str] | None


@dataclass(slots=True, eq=False)
class _Subscription:
    callback: Callable[..., Any]
    path: str | None = None
    segments: tuple[str, ...] = field(default=())
    removed: bool = False

    @property
    def nested(self) -> bool:
        return len(self.segments) > 1


class SubscriptionHandle:
    """Callable returned by :meth:`SubscriptionRegistry.subscribe`.

    Calling it removes exactly the registrations it was created for.
    Calling it again is a no-op.
    """

    __slots__ = ("_registry", "_entries", "_active")

    def __init__(self, registry: SubscriptionRegistry, entries: list[_Subscription]) -> None:
        self._registry = registry
        self._entries = entries
        self._active = bool(entries)

    @property
    def active(self) -> bool:
        return self._active

    def __call__(self) -> None:
        if not self._active:
            return
        self._active = False
        self._registry._discard(self._entries)  # noqa: SLF001

    def __repr__(self) -> str:
        paths = [entry.path or "*" for entry in self._entries]
        return f"SubscriptionHandle(paths={paths!r}, active={self._active})"


def _normalize_keys(keys: str | Iterable[str]) -> list[str]:
    if isinstance(keys, str):
        candidates: list[Any] = [keys]
    elif isinstance(keys, (set, frozenset)):
        candidates = sorted(keys)
    else:
        candidates = list(keys)
    for key in candidates:
        if not isinstance(key, str):
            raise TypeError(f"subscription keys must be strings, got {key!r}")
        if not key or "" in split_path(key):
            raise ValueError(f"invalid subscription path: {key!r}")
    return candidates


class SubscriptionRegistry:
    """Owns every subscription of one container.

    Key subscriptions are bucketed by their top-level key so a write only
    looks at buckets for the keys it changed. Within a bucket, and in the
    global list, order is registration order.
    """

    def __init__(self) -> None:
        self._keyed: dict[str, list[_Subscription]] = {}
        self._global: list[_Subscription] = []

    def subscribe(self, callback: Callable[..., Any], keys: KeyScope = None) -> SubscriptionHandle:
        """Register *callback* globally (``keys=None``) or for one or more paths.

        Raises
        ------
        InvalidCallbackError
            If *callback* is not callable.
        """
        if not callable(callback):
            raise InvalidCallbackError("Subscriber callback must be callable")

        if keys is None:
            entry = _Subscription(callback=callback)
            self._global.append(entry)
            _logger.debug("Added global subscriber %r", callback)
            return SubscriptionHandle(self, [entry])

        entries: list[_Subscription] = []
        for path in _normalize_keys(keys):
            segments = split_path(path)
            entry = _Subscription(callback=callback, path=path, segments=segments)
            self._keyed.setdefault(segments[0], []).append(entry)
            entries.append(entry)
            _logger.debug("Added subscriber for path=%s", path)
        return SubscriptionHandle(self, entries)

    def unsubscribe(self, callback: Callable[..., Any]) -> None:
        """Remove *callback* from every path and from the global list."""
        matches = [entry for entry in self._global if entry.callback == callback]
        for bucket in self._keyed.values():
            matches.extend(entry for entry in bucket if entry.callback == callback)
        self._discard(matches)

    def _discard(self, entries: Iterable[_Subscription]) -> None:
        for entry in entries:
            if entry.removed:
                continue
            entry.removed = True
            if entry.path is None:
                self._global.remove(entry)
                _logger.debug("Removed global subscriber %r", entry.callback)
                continue
            bucket = self._keyed.get(entry.segments[0])
            if bucket is None:
                continue
            bucket.remove(entry)
            if not bucket:
                del self._keyed[entry.segments[0]]
            _logger.debug("Removed subscriber for path=%s", entry.path)

    def count(self, key: str | None = None) -> int:
        """Number of live registrations for top-level *key*, or of global ones."""
        if key is None:
            return len(self._global)
        return len(self._keyed.get(key, ()))

    def __len__(self) -> int:
        return len(self._global) + sum(len(bucket) for bucket in self._keyed.values())

    def notify(
        self,
        previous: Mapping[str, Any],
        current: Mapping[str, Any],
        changed_keys: tuple[str, ...],
        *,
        force: bool = False,
    ) -> int:
        """Invoke the subscribers affected by a write; return the number of calls made.

        Key subscribers run first, walking *changed_keys* in order, then
        global subscribers. A nested-path subscriber only runs when the
        value at its path differs between *previous* and *current*, unless
        *force* is set. Each callback gets its own copy of the state; a
        callback that raises is logged and skipped.
        """
        calls = 0
        for key in changed_keys:
            bucket = self._keyed.get(key)
            if not bucket:
                continue
            _logger.debug("Notifying %d subscribers for key=%s", len(bucket), key)
            for entry in list(bucket):
                if entry.removed:
                    continue
                value = get_path(current, entry.segments)
                if entry.nested and not force and deep_equal(get_path(previous, entry.segments), value):
                    continue
                calls += 1
                try:
                    entry.callback(
                        None if value is MISSING else copy.deepcopy(value),
                        entry.path,
                        copy.deepcopy(dict(current)),
                    )
                except Exception:
                    _logger.warning("Error in subscriber callback for path=%s", entry.path, exc_info=True)

        if self._global:
            _logger.debug("Notifying %d global subscribers", len(self._global))
        for entry in list(self._global):
            if entry.removed:
                continue
            calls += 1
            try:
                entry.callback(copy.deepcopy(dict(current)), changed_keys)
            except Exception:
                _logger.warning("Error in global subscriber callback %r", entry.callback, exc_info=True)
        return calls
