"""Hooks that intercept state updates and resets.

Four stages exist. Before-stages transform their input and run as a
pipeline; after-stages observe a committed :class:`StateChange`::

    before_update(update, state) -> update
    after_update(change) -> None
    before_reset(initial_state) -> initial_state
    after_reset(change) -> None

A middleware that raises is logged and skipped; for before-stages its
input passes through unchanged.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from enum import StrEnum
from typing import Any

from statesync._redact import redact_for_log
from statesync.events import StateChange
from statesync.exceptions import InvalidCallbackError

_logger = logging.getLogger(__name__)

Middleware = Callable[..., Any]


class MiddlewareStage(StrEnum):
    BEFORE_UPDATE = "before_update"
    AFTER_UPDATE = "after_update"
    BEFORE_RESET = "before_reset"
    AFTER_RESET = "after_reset"


_TRANSFORMING_STAGES = frozenset({MiddlewareStage.BEFORE_UPDATE, MiddlewareStage.BEFORE_RESET})


def _coerce_stage(stage: MiddlewareStage | str) -> MiddlewareStage:
    try:
        return MiddlewareStage(stage)
    except ValueError:
        raise ValueError(f"Invalid middleware stage: {stage!r}") from None


class MiddlewareManager:
    """Ordered middleware lists, one per :class:`MiddlewareStage`."""

    def __init__(self) -> None:
        self._middleware: dict[MiddlewareStage, list[Middleware]] = {stage: [] for stage in MiddlewareStage}

    def use(self, stage: MiddlewareStage | str, fn: Middleware) -> Callable[[], None]:
        """Register *fn* for *stage* and return a handle that removes it.

        Raises
        ------
        ValueError
            If *stage* is not a known stage.
        InvalidCallbackError
            If *fn* is not callable.
        """
        resolved = _coerce_stage(stage)
        if not callable(fn):
            raise InvalidCallbackError("Middleware must be callable")
        entries = self._middleware[resolved]
        entries.append(fn)

        def remove() -> None:
            # Remove this exact registration; later duplicates stay.
            for index, registered in enumerate(entries):
                if registered is fn:
                    del entries[index]
                    return

        return remove

    def install(self, hooks: Mapping[MiddlewareStage | str, Middleware]) -> Callable[[], None]:
        """Register a stage -> middleware mapping; the handle removes all of them."""
        removers = [self.use(stage, fn) for stage, fn in hooks.items()]

        def remove_all() -> None:
            for remover in removers:
                remover()

        return remove_all

    def apply(self, stage: MiddlewareStage | str, value: Any, extra: Any = None) -> Any:
        """Run every middleware of *stage* in registration order.

        Before-stages are called as ``fn(value, extra)`` (update stage) or
        ``fn(value)`` (reset stage) and their results chained. After-stages
        are called as ``fn(value)`` and *value* is returned unchanged.
        """
        resolved = _coerce_stage(stage)
        result = value
        for fn in list(self._middleware[resolved]):
            try:
                if resolved is MiddlewareStage.BEFORE_UPDATE:
                    outcome = fn(result, extra)
                else:
                    outcome = fn(result)
            except Exception:
                _logger.warning("Error in %s middleware %r", resolved.value, fn, exc_info=True)
                continue
            if resolved in _TRANSFORMING_STAGES:
                result = outcome
        return result

    def count(self, stage: MiddlewareStage | str | None = None) -> int | dict[str, int]:
        if stage is not None:
            return len(self._middleware[_coerce_stage(stage)])
        return {stage.value: len(entries) for stage, entries in self._middleware.items()}

    def clear(self, stage: MiddlewareStage | str | None = None) -> None:
        if stage is not None:
            self._middleware[_coerce_stage(stage)].clear()
            return
        for entries in self._middleware.values():
            entries.clear()


def logging_middleware(
    logger: logging.Logger | None = None,
    *,
    level: int = logging.DEBUG,
    log_before: bool = True,
    log_after: bool = True,
) -> dict[MiddlewareStage, Middleware]:
    """Middleware set that logs every update and reset (state content redacted).

    Usage::

        container.middleware.install(logging_middleware())
    """
    log = logger or _logger
    hooks: dict[MiddlewareStage, Middleware] = {}

    if log_before:

        def before_update(update: Mapping[str, Any], state: Mapping[str, Any]) -> Mapping[str, Any]:
            log.log(level, "Before update: update=%s state=%s", redact_for_log(update), redact_for_log(state))
            return update

        def before_reset(initial_state: Mapping[str, Any]) -> Mapping[str, Any]:
            log.log(level, "Before reset: initial_state=%s", redact_for_log(initial_state))
            return initial_state

        hooks[MiddlewareStage.BEFORE_UPDATE] = before_update
        hooks[MiddlewareStage.BEFORE_RESET] = before_reset

    if log_after:

        def after_change(change: StateChange) -> None:
            log.log(
                level,
                "After %s: changed_keys=%s state=%s",
                change.kind.value,
                list(change.changed_keys),
                redact_for_log(change.state),
            )

        hooks[MiddlewareStage.AFTER_UPDATE] = after_change
        hooks[MiddlewareStage.AFTER_RESET] = after_change

    return hooks
