from __future__ import annotations

import logging

import pytest

from statesync.container import StateContainer
from statesync.exceptions import InvalidCallbackError
from statesync.subscriptions import SubscriptionRegistry


def test_subscribe_rejects_non_callable() -> None:
    container = StateContainer()

    with pytest.raises(InvalidCallbackError):
        container.subscribe("not a function")  # type: ignore[arg-type]
    with pytest.raises(TypeError):
        container.subscribe(None, "a")  # type: ignore[arg-type]


def test_subscribe_rejects_invalid_keys() -> None:
    registry = SubscriptionRegistry()

    with pytest.raises(TypeError):
        registry.subscribe(lambda *args: None, [1])  # type: ignore[list-item]
    with pytest.raises(ValueError):
        registry.subscribe(lambda *args: None, "a..b")


def test_unsubscribe_handle_is_idempotent() -> None:
    container = StateContainer()
    calls: list[tuple] = []
    handle = container.subscribe(lambda *args: calls.append(args), ["a", "b"])

    assert handle.active
    handle()
    handle()

    assert not handle.active
    assert len(container.subscriptions) == 0
    container.set_state({"a": 1, "b": 2})
    assert calls == []


def test_handle_removes_only_its_own_registration() -> None:
    container = StateContainer()
    calls: list[str] = []

    def callback(value: object, key: str, state: dict) -> None:
        calls.append(key)

    first = container.subscribe(callback, "a")
    container.subscribe(callback, "a")
    first()
    first()

    container.set_state({"a": 1})
    assert calls == ["a"]


def test_unsubscribe_callback_removes_every_scope() -> None:
    container = StateContainer()
    calls: list[tuple] = []

    def callback(*args: object) -> None:
        calls.append(args)

    container.subscribe(callback)
    container.subscribe(callback, ["a", "b"])
    container.unsubscribe(callback)

    container.set_state({"a": 1, "b": 2})
    assert calls == []
    assert len(container.subscriptions) == 0


def test_unsubscribe_unknown_callback_is_a_noop() -> None:
    container = StateContainer()
    container.unsubscribe(lambda *args: None)


def test_unsubscribe_matches_bound_methods() -> None:
    class Widget:
        def __init__(self) -> None:
            self.calls = 0

        def on_change(self, state: dict, changed: tuple[str, ...]) -> None:
            self.calls += 1

    container = StateContainer()
    widget = Widget()
    container.subscribe(widget.on_change)
    container.unsubscribe(widget.on_change)

    container.set_state({"a": 1})
    assert widget.calls == 0


def test_failing_subscriber_does_not_stop_the_others(caplog: pytest.LogCaptureFixture) -> None:
    container = StateContainer()
    calls: list[str] = []

    def broken_key(*args: object) -> None:
        raise RuntimeError("boom")

    def broken_global(*args: object) -> None:
        raise RuntimeError("boom")

    container.subscribe(broken_key, "a")
    container.subscribe(lambda *args: calls.append("key"), "a")
    container.subscribe(broken_global)
    container.subscribe(lambda *args: calls.append("global"))

    with caplog.at_level(logging.WARNING, logger="statesync.subscriptions"):
        container.set_state({"a": 1})

    assert calls == ["key", "global"]
    assert sum("Error in" in record.getMessage() for record in caplog.records) == 2


def test_key_subscribers_run_in_registration_order() -> None:
    container = StateContainer()
    order: list[int] = []
    for index in range(5):
        container.subscribe(lambda *args, i=index: order.append(i), "a")

    container.set_state({"a": 1})
    assert order == [0, 1, 2, 3, 4]


def test_subscriber_removed_during_notification_is_skipped() -> None:
    container = StateContainer()
    calls: list[str] = []
    handles = {}

    def first(*args: object) -> None:
        calls.append("first")
        handles["second"]()

    container.subscribe(first, "a")
    handles["second"] = container.subscribe(lambda *args: calls.append("second"), "a")

    container.set_state({"a": 1})
    assert calls == ["first"]


def test_nested_path_subscriber_fires_only_when_its_value_changes() -> None:
    container = StateContainer({"user": {"name": "A", "email": "a@x.com"}})
    calls: list[tuple] = []
    container.subscribe(lambda value, path, state: calls.append((path, value)), "user.name")

    container.set_state({"user.email": "b@x.com"})
    assert calls == []

    container.set_state({"user": {"name": "B", "email": "b@x.com"}})
    assert calls == [("user.name", "B")]


def test_nested_path_subscriber_sees_removed_value_as_none() -> None:
    container = StateContainer({"user": {"name": "A"}})
    calls: list[tuple] = []
    container.subscribe(lambda value, path, state: calls.append((path, value)), "user.name")

    container.set_state({"user": {}})
    assert calls == [("user.name", None)]


def test_reset_forces_nested_path_subscribers() -> None:
    container = StateContainer({"user": {"name": "A"}})
    calls: list[tuple] = []
    container.subscribe(lambda value, path, state: calls.append((path, value)), "user.name")

    container.reset({"user": {"name": "A"}})
    assert calls == [("user.name", "A")]


def test_subscriber_receives_private_copies() -> None:
    container = StateContainer()

    def mutate(value: dict, key: str, state: dict) -> None:
        value["hacked"] = True
        state["hacked"] = True

    container.subscribe(mutate, "a")
    container.set_state({"a": {"x": 1}})

    assert container.get_state() == {"a": {"x": 1}}


def test_set_of_keys_registers_each_key() -> None:
    registry = SubscriptionRegistry()

    registry.subscribe(lambda *args: None, {"b", "a"})

    assert registry.count("a") == 1
    assert registry.count("b") == 1
    assert registry.count() == 0


def test_empty_key_collection_registers_nothing() -> None:
    registry = SubscriptionRegistry()

    handle = registry.subscribe(lambda *args: None, [])

    assert len(registry) == 0
    assert not handle.active
    handle()
