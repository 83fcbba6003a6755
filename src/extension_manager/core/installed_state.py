"""In-memory map from extension identity to its installation record."""

from __future__ import annotations

import threading
from collections.abc import Callable

from extension_manager.core.observable import ObservableValue
from extension_manager.domain.installation import (
    ExtensionKey,
    InstallationRecord,
)
from extension_manager.logger import get_logger

logger = get_logger(__name__)

RecordLoader = Callable[[ExtensionKey], InstallationRecord | None]
_RecordValue = ObservableValue[InstallationRecord | None]


class InstalledStateStore:
    """Thread-safe store of installation records with change notification.

    Each identity maps to one ObservableValue created on first access and
    returned on every later access, so subscribers attach once. The initial
    value of an identity comes from the loader, which the manager points at
    the extension directory.
    """

    def __init__(self, loader: RecordLoader) -> None:
        """Initialize the store.

        Args:
            loader: Returns the record found for an identity, or None

        """
        self._loader = loader
        self._lock = threading.Lock()
        self._values: dict[ExtensionKey, _RecordValue] = {}

    def get(self, key: ExtensionKey) -> _RecordValue:
        """Return the observable record of an identity."""
        with self._lock:
            value = self._values.get(key)
            if value is not None:
                return value

        # The loader touches the disk, keep it outside the lock.
        loaded = self._loader(key)
        with self._lock:
            value = self._values.setdefault(key, ObservableValue(loaded))
        return value

    def set(self, key: ExtensionKey, record: InstallationRecord) -> None:
        """Replace the record of an identity."""
        logger.debug("Installation record of %s set to %s", key, record)
        self.get(key).set(record)

    def clear(self, key: ExtensionKey) -> None:
        """Mark an identity as not installed."""
        logger.debug("Installation record of %s cleared", key)
        self.get(key).set(None)

    def keys(self) -> tuple[ExtensionKey, ...]:
        """Return every identity accessed so far."""
        with self._lock:
            return tuple(self._values)

    def installed(self) -> dict[ExtensionKey, InstallationRecord]:
        """Return a snapshot of every known installed identity."""
        with self._lock:
            values = tuple(self._values.items())
        records = {key: value.get() for key, value in values}
        return {
            key: record for key, record in records.items() if record is not None
        }

    def reload(self, key: ExtensionKey) -> InstallationRecord | None:
        """Read the record of an identity from the loader again."""
        record = self._loader(key)
        self.get(key).set(record)
        return record

    def refresh_all(self) -> None:
        """Reload the record of every known identity from the loader."""
        for key in self.keys():
            self.reload(key)
        logger.debug("Installation records refreshed")
