"""Subscribe/notify primitives shared by the engine and its host.

The engine publishes state changes through these objects; rendering them is
entirely the host application's concern. Listeners are invoked on the thread
that made the change, after the internal lock has been released.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Generic, TypeVar

from extension_manager.logger import get_logger

T = TypeVar("T")

logger = get_logger(__name__)

Unsubscribe = Callable[[], None]


class ListenerList(Generic[T]):
    """Thread-safe list of listeners receiving one event argument."""

    def __init__(self) -> None:
        """Initialize an empty listener list."""
        self._lock = threading.Lock()
        self._listeners: tuple[Callable[[T], None], ...] = ()

    def subscribe(self, listener: Callable[[T], None]) -> Unsubscribe:
        """Register a listener.

        Returns:
            A callable removing the listener again

        """
        with self._lock:
            self._listeners = (*self._listeners, listener)

        def unsubscribe() -> None:
            with self._lock:
                self._listeners = tuple(
                    registered
                    for registered in self._listeners
                    if registered is not listener
                )

        return unsubscribe

    def notify(self, event: T) -> None:
        """Call every listener with the provided event.

        A failing listener is logged and does not prevent the others from
        being called.
        """
        for listener in self._listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Listener %r failed", listener)

    def __len__(self) -> int:
        """Return the number of registered listeners."""
        return len(self._listeners)


class ObservableValue(Generic[T]):
    """A value that can be read from any thread and notifies on change.

    Listeners receive ``(old_value, new_value)`` and are only called when
    the value actually changes.
    """

    def __init__(self, value: T) -> None:
        """Initialize with a starting value."""
        self._lock = threading.Lock()
        self._value = value
        self._listeners: ListenerList[tuple[T, T]] = ListenerList()

    def get(self) -> T:
        """Return the current value."""
        return self._value

    def set(self, value: T) -> None:
        """Replace the value and notify listeners if it changed."""
        with self._lock:
            old_value = self._value
            self._value = value
        if old_value != value:
            self._listeners.notify((old_value, value))

    def subscribe(self, listener: Callable[[T, T], None]) -> Unsubscribe:
        """Register a listener called with ``(old_value, new_value)``."""
        return self._listeners.subscribe(lambda change: listener(*change))

    def __repr__(self) -> str:
        """Return a debug representation."""
        return f"{type(self).__name__}({self._value!r})"
