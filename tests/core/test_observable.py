"""Tests for the listener primitives."""

import logging

import pytest

from extension_manager.core.observable import ListenerList, ObservableValue


def test_listener_receives_events() -> None:
    """Test every subscribed listener is notified."""
    listeners: ListenerList[str] = ListenerList()
    first: list[str] = []
    second: list[str] = []
    listeners.subscribe(first.append)
    listeners.subscribe(second.append)

    listeners.notify("event")

    assert first == ["event"]
    assert second == ["event"]
    assert len(listeners) == 2


def test_unsubscribe() -> None:
    """Test an unsubscribed listener is no longer notified."""
    listeners: ListenerList[str] = ListenerList()
    received: list[str] = []
    unsubscribe = listeners.subscribe(received.append)

    unsubscribe()
    listeners.notify("event")

    assert received == []
    assert len(listeners) == 0


def test_failing_listener_does_not_stop_others(
    caplog: pytest.LogCaptureFixture,
) -> None:
    """Test a listener error is logged and the others still run."""
    listeners: ListenerList[str] = ListenerList()
    received: list[str] = []

    def failing(_event: str) -> None:
        raise RuntimeError("listener failure")

    listeners.subscribe(failing)
    listeners.subscribe(received.append)

    with caplog.at_level(logging.ERROR):
        listeners.notify("event")

    assert received == ["event"]
    assert "failed" in caplog.text


def test_observable_value_notifies_changes() -> None:
    """Test listeners receive the old and new values."""
    value = ObservableValue(1)
    changes: list[tuple[int, int]] = []
    value.subscribe(lambda old, new: changes.append((old, new)))

    value.set(2)

    assert value.get() == 2
    assert changes == [(1, 2)]


def test_observable_value_ignores_same_value() -> None:
    """Test setting an equal value notifies nobody."""
    value = ObservableValue("a")
    changes: list[tuple[str, str]] = []
    value.subscribe(lambda old, new: changes.append((old, new)))

    value.set("a")

    assert changes == []


def test_observable_value_unsubscribe() -> None:
    """Test the returned callable removes the listener."""
    value = ObservableValue(0)
    changes: list[tuple[int, int]] = []
    unsubscribe = value.subscribe(lambda old, new: changes.append((old, new)))

    unsubscribe()
    value.set(1)

    assert changes == []
