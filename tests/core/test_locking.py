"""Tests for KeyedLock: fail-fast per-key operation guards."""

import threading

import pytest

from extension_manager.core.locking import KeyedLock
from extension_manager.exceptions import ConflictError


def test_acquire_and_release() -> None:
    """Test a key is held between acquire and release."""
    locks: KeyedLock[str] = KeyedLock()

    locks.acquire("a")
    assert locks.is_held("a")

    locks.release("a")
    assert not locks.is_held("a")


def test_second_acquire_conflicts() -> None:
    """Test acquiring a held key raises ConflictError immediately."""
    locks: KeyedLock[str] = KeyedLock()
    locks.acquire("a")

    with pytest.raises(ConflictError) as exc_info:
        locks.acquire("a")

    assert exc_info.value.target == "a"


def test_different_keys_are_independent() -> None:
    """Test holding one key does not affect another."""
    locks: KeyedLock[str] = KeyedLock()

    locks.acquire("a")
    locks.acquire("b")

    assert locks.is_held("a")
    assert locks.is_held("b")


def test_release_unknown_key() -> None:
    """Test releasing a key that is not held does nothing."""
    locks: KeyedLock[str] = KeyedLock()

    locks.release("a")

    assert not locks.is_held("a")


def test_hold_releases_on_exception() -> None:
    """Test the context manager releases the key when the block fails."""
    locks: KeyedLock[str] = KeyedLock()

    with pytest.raises(ValueError, match="Test exception"):
        with locks.hold("a"):
            assert locks.is_held("a")
            raise ValueError("Test exception")

    assert not locks.is_held("a")


def test_concurrent_acquire_lets_exactly_one_through() -> None:
    """Test only one of many racing threads acquires a key."""
    locks: KeyedLock[str] = KeyedLock()
    barrier = threading.Barrier(8)
    results: list[bool] = []
    results_lock = threading.Lock()

    def worker() -> None:
        barrier.wait()
        try:
            locks.acquire("a")
            acquired = True
        except ConflictError:
            acquired = False
        with results_lock:
            results.append(acquired)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert results.count(True) == 1
    assert results.count(False) == 7
