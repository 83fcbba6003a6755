"""Per-key operation guards.

KeyedLock holds one guard per key so that operations on the same extension
are rejected while one is running, and operations on different extensions
never wait for each other.
"""

from __future__ import annotations

import threading
from collections.abc import Hashable, Iterator
from contextlib import contextmanager
from typing import Generic, TypeVar

from extension_manager.exceptions import ConflictError
from extension_manager.logger import get_logger

K = TypeVar("K", bound=Hashable)

logger = get_logger(__name__)


class KeyedLock(Generic[K]):
    """Fail-fast lock table keyed by an arbitrary hashable key.

    Acquisition never blocks: a key that is already held raises
    ConflictError immediately.

    Example:
        >>> locks = KeyedLock()
        >>> with locks.hold("catalog/extension"):
        ...     # No other holder for this key until the block exits
        ...     pass

    """

    def __init__(self) -> None:
        """Initialize an empty lock table."""
        self._lock = threading.Lock()
        self._held: set[K] = set()

    def acquire(self, key: K) -> None:
        """Mark the key as held.

        Raises:
            ConflictError: If the key is already held

        """
        with self._lock:
            if key in self._held:
                msg = "Another operation is running for this extension"
                raise ConflictError(msg, target=str(key))
            self._held.add(key)
        logger.debug("Acquired guard for %s", key)

    def release(self, key: K) -> None:
        """Release the key. Releasing a key that is not held does nothing."""
        with self._lock:
            self._held.discard(key)
        logger.debug("Released guard for %s", key)

    def is_held(self, key: K) -> bool:
        """Tell whether an operation currently holds the key."""
        with self._lock:
            return key in self._held

    @contextmanager
    def hold(self, key: K) -> Iterator[None]:
        """Hold the key for the duration of a with block."""
        self.acquire(key)
        try:
            yield
        finally:
            self.release(key)
