"""Change events: the model handed to after-stage middleware and listeners."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from statesync.exceptions import InvalidCallbackError

_logger = logging.getLogger(__name__)

Listener = Callable[["StateChange"], Any]


class ChangeKind(StrEnum):
    UPDATE = "update"
    RESET = "reset"


class StateChange(BaseModel):
    """A committed write: the new tree and the top-level keys it touched."""

    model_config = ConfigDict(frozen=True)

    kind: ChangeKind
    changed_keys: tuple[str, ...] = ()
    state: dict[str, Any] = Field(default_factory=dict, description="Copy of the tree after the write")
    silent: bool = False
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


def _coerce_kind(event: ChangeKind | str) -> ChangeKind:
    try:
        return ChangeKind(event)
    except ValueError:
        raise ValueError(f"Invalid event name: {event!r}") from None


@dataclass(slots=True, eq=False)
class _Registration:
    listener: Listener
    once: bool


class ChangeEmitter:
    """Named ``update``/``reset`` listeners, called with the :class:`StateChange`.

    Listeners run in registration order. Silent writes are still emitted;
    the ``silent`` flag on the change tells them apart.
    """

    def __init__(self) -> None:
        self._listeners: dict[ChangeKind, list[_Registration]] = {kind: [] for kind in ChangeKind}

    def on(self, event: ChangeKind | str, listener: Listener, *, once: bool = False) -> Callable[[], None]:
        """Register *listener* for *event* and return a handle that removes it.

        Raises
        ------
        ValueError
            If *event* is not ``"update"`` or ``"reset"``.
        InvalidCallbackError
            If *listener* is not callable.
        """
        kind = _coerce_kind(event)
        if not callable(listener):
            raise InvalidCallbackError("Event listener must be callable")
        registration = _Registration(listener, once)
        entries = self._listeners[kind]
        entries.append(registration)

        def remove() -> None:
            if registration in entries:
                entries.remove(registration)

        return remove

    def once(self, event: ChangeKind | str, listener: Listener) -> Callable[[], None]:
        """Like :meth:`on`, but the listener is dropped after its first call."""
        return self.on(event, listener, once=True)

    def off(self, event: ChangeKind | str, listener: Listener | None = None) -> None:
        """Remove every registration of *listener*, or all listeners of *event*."""
        kind = _coerce_kind(event)
        if listener is None:
            self._listeners[kind].clear()
            return
        entries = self._listeners[kind]
        entries[:] = [entry for entry in entries if entry.listener != listener]

    def count(self, event: ChangeKind | str | None = None) -> int:
        if event is None:
            return sum(len(entries) for entries in self._listeners.values())
        return len(self._listeners[_coerce_kind(event)])

    def emit(self, change: StateChange) -> None:
        entries = self._listeners[change.kind]
        for entry in list(entries):
            if entry.once and entry in entries:
                entries.remove(entry)
            try:
                entry.listener(change)
            except Exception:
                _logger.warning("Error in %s listener %r", change.kind.value, entry.listener, exc_info=True)
