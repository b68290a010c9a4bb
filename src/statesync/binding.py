"""Attach/detach glue for external observers (UI components, loggers, panels).

An observer never touches the container directly; it owns a
:class:`StateBinding` and calls :meth:`StateBinding.attach` when it becomes
visible and :meth:`StateBinding.detach` when it goes away.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any, Protocol

from statesync.subscriptions import SubscriptionHandle

if TYPE_CHECKING:
    from statesync.container import StateContainer, Update

_logger = logging.getLogger(__name__)


class StateObserver(Protocol):
    def state_changed(self, state: dict[str, Any], changed_keys: tuple[str, ...]) -> None: ...


class StateBinding:
    """Subscription lifecycle for one observer.

    Whatever the scope, the observer receives
    ``state_changed(state, changed_keys)``: for key scopes ``changed_keys``
    is the single matching path. An empty *keys* collection watches
    everything.
    """

    def __init__(
        self,
        container: StateContainer,
        observer: StateObserver,
        keys: str | Iterable[str] | None = None,
    ) -> None:
        self._container = container
        self._observer = observer
        self._keys: list[str] | None = self._normalize(keys)
        self._handle: SubscriptionHandle | None = None

    @staticmethod
    def _normalize(keys: str | Iterable[str] | None) -> list[str] | None:
        if keys is None:
            return None
        normalized = [keys] if isinstance(keys, str) else list(keys)
        return normalized or None

    @property
    def attached(self) -> bool:
        return self._handle is not None

    @property
    def keys(self) -> list[str] | None:
        return list(self._keys) if self._keys is not None else None

    def attach(self) -> None:
        """Start receiving notifications; a no-op when already attached."""
        if self._handle is not None:
            return
        if self._keys is None:
            self._handle = self._container.subscribe(self._on_global)
        else:
            self._handle = self._container.subscribe(self._on_key, self._keys)
        _logger.debug("Attached %r keys=%s", self._observer, self._keys)

    def detach(self) -> None:
        """Stop receiving notifications; a no-op when not attached."""
        if self._handle is None:
            return
        self._handle()
        self._handle = None
        _logger.debug("Detached %r", self._observer)

    def rebind(self, keys: str | Iterable[str] | None) -> None:
        """Change the watched keys, re-subscribing if currently attached."""
        was_attached = self.attached
        self.detach()
        self._keys = self._normalize(keys)
        if was_attached:
            self.attach()

    def get_state(self, path: str | None = None, default: Any = None) -> Any:
        return self._container.get_state(path, default)

    def set_state(self, update: Update, silent: bool = False) -> dict[str, Any]:
        return self._container.set_state(update, silent)

    def _on_global(self, state: dict[str, Any], changed_keys: tuple[str, ...]) -> None:
        self._observer.state_changed(state, changed_keys)

    def _on_key(self, _value: Any, path: str, state: dict[str, Any]) -> None:
        self._observer.state_changed(state, (path,))

    def __enter__(self) -> StateBinding:
        self.attach()
        return self

    def __exit__(self, *exc: Any) -> None:
        self.detach()
