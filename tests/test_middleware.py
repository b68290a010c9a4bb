from __future__ import annotations

import logging

import pytest

from statesync.container import StateContainer
from statesync.events import ChangeKind, StateChange
from statesync.exceptions import InvalidCallbackError
from statesync.middleware import MiddlewareManager, MiddlewareStage, logging_middleware


def test_before_update_can_rewrite_the_update() -> None:
    container = StateContainer({"name": ""})
    container.use("before_update", lambda update, state: {k: v.strip() for k, v in update.items()})

    container.set_state({"name": "  Ada  "})

    assert container.get_state("name") == "Ada"


def test_before_update_sees_current_state() -> None:
    container = StateContainer({"counter": 5})
    seen: list[dict] = []

    def capture(update: dict, state: dict) -> dict:
        seen.append(state)
        return update

    container.use(MiddlewareStage.BEFORE_UPDATE, capture)
    container.set_state({"counter": 6})

    assert seen == [{"counter": 5}]


def test_after_update_receives_committed_change() -> None:
    container = StateContainer()
    changes: list[StateChange] = []
    container.use("after_update", changes.append)

    container.set_state({"a": 1}, silent=True)
    container.set_state({"a": 1})

    assert len(changes) == 1
    assert changes[0].kind is ChangeKind.UPDATE
    assert changes[0].changed_keys == ("a",)
    assert changes[0].state == {"a": 1}
    assert changes[0].silent is True


def test_reset_middleware() -> None:
    container = StateContainer({"a": 1})
    changes: list[StateChange] = []
    container.use("before_reset", lambda initial: {**initial, "version": 2})
    container.use("after_reset", changes.append)

    container.reset({"b": 1})

    assert container.get_state() == {"b": 1, "version": 2}
    assert changes[0].kind is ChangeKind.RESET
    assert changes[0].changed_keys == ("b", "version")


def test_failing_middleware_is_skipped(caplog: pytest.LogCaptureFixture) -> None:
    container = StateContainer()

    def broken(update: dict, state: dict) -> dict:
        raise RuntimeError("boom")

    container.use("before_update", broken)
    container.use("before_update", lambda update, state: {**update, "stamped": True})

    with caplog.at_level(logging.WARNING, logger="statesync.middleware"):
        container.set_state({"a": 1})

    assert container.get_state() == {"a": 1, "stamped": True}
    assert "Error in before_update middleware" in caplog.text


def test_middleware_returning_non_mapping_raises() -> None:
    container = StateContainer()
    container.use("before_update", lambda update, state: None)

    with pytest.raises(TypeError):
        container.set_state({"a": 1})


def test_remove_handle() -> None:
    manager = MiddlewareManager()
    remove = manager.use("after_update", lambda change: None)

    assert manager.count("after_update") == 1
    remove()
    remove()
    assert manager.count("after_update") == 0


def test_invalid_registration() -> None:
    manager = MiddlewareManager()

    with pytest.raises(ValueError):
        manager.use("during_update", lambda *args: None)
    with pytest.raises(InvalidCallbackError):
        manager.use("after_update", "nope")  # type: ignore[arg-type]


def test_count_and_clear() -> None:
    manager = MiddlewareManager()
    manager.install(logging_middleware())

    assert manager.count() == {"before_update": 1, "after_update": 1, "before_reset": 1, "after_reset": 1}
    manager.clear("before_update")
    assert manager.count("before_update") == 0
    manager.clear()
    assert manager.count() == {"before_update": 0, "after_update": 0, "before_reset": 0, "after_reset": 0}


def test_logging_middleware_redacts_sensitive_values(caplog: pytest.LogCaptureFixture) -> None:
    container = StateContainer()
    logger = logging.getLogger("tests.state")
    remove = container.middleware.install(logging_middleware(logger, level=logging.INFO))

    with caplog.at_level(logging.INFO, logger="tests.state"):
        container.set_state({"auth": {"token": "s3cr3t", "user": "ada"}})
        container.reset()

    assert "s3cr3t" not in caplog.text
    assert "<redacted>" in caplog.text
    assert "Before update" in caplog.text
    assert "After update" in caplog.text
    assert "Before reset" in caplog.text
    assert "After reset" in caplog.text

    remove()
    assert container.middleware.count() == {"before_update": 0, "after_update": 0, "before_reset": 0, "after_reset": 0}


def test_logging_middleware_partial() -> None:
    hooks = logging_middleware(log_before=False)

    assert set(hooks) == {MiddlewareStage.AFTER_UPDATE, MiddlewareStage.AFTER_RESET}
