"""Persisted list of catalog sources.

The registry keeps an immutable tuple snapshot of the sources. Mutations are
serialized by a lock, persisted first and then published by swapping the
snapshot, so readers never see a torn list and never wait for a write.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path
from typing import Protocol

import orjson

from extension_manager.config.paths import Paths
from extension_manager.core.observable import (
    ListenerList,
    ObservableValue,
    Unsubscribe,
)
from extension_manager.domain.installation import CatalogSource
from extension_manager.exceptions import (
    DuplicateNameError,
    ExtensionIOError,
    NotDeletableError,
    ValidationError,
)
from extension_manager.logger import get_logger

logger = get_logger(__name__)


class RegistryStorage(Protocol):
    """Load-all / replace-all persistence of catalog sources."""

    def load(self) -> list[CatalogSource] | None:
        """Return the persisted sources, or None if nothing is persisted."""
        ...

    def save(self, sources: Sequence[CatalogSource]) -> None:
        """Replace the persisted sources."""
        ...


class JsonRegistryStorage:
    """Stores catalog sources as JSON inside the extension directory.

    The file location follows the live extension directory value: it is
    resolved again on every load and save.
    """

    def __init__(self, extension_dir: ObservableValue[Path | None]) -> None:
        """Initialize storage.

        Args:
            extension_dir: Live extension directory value

        """
        self.extension_dir = extension_dir

    @property
    def path(self) -> Path | None:
        """Current registry file, or None without an extension directory."""
        directory = self.extension_dir.get()
        return None if directory is None else Paths.registry_file(directory)

    def load(self) -> list[CatalogSource] | None:
        """Read the registry file.

        A missing or unreadable file is reported as None so that the default
        sources are used.

        Raises:
            ExtensionIOError: If the file exists but cannot be read

        """
        path = self.path
        if path is None or not path.exists():
            return None

        try:
            raw = path.read_bytes()
        except OSError as e:
            msg = f"Cannot read catalog registry: {e}"
            raise ExtensionIOError(msg, target=str(path)) from e

        try:
            data = orjson.loads(raw)
            return [CatalogSource.from_dict(item) for item in data["catalogs"]]
        except (
            orjson.JSONDecodeError,
            KeyError,
            TypeError,
            ValidationError,
        ) as e:
            logger.warning(
                "Ignoring invalid catalog registry %s: %s", path, e
            )
            return None

    def save(self, sources: Sequence[CatalogSource]) -> None:
        """Write the registry file atomically.

        Raises:
            ExtensionIOError: If the file cannot be written

        """
        path = self.path
        if path is None:
            logger.warning(
                "No extension directory set, catalog registry not saved"
            )
            return

        content = orjson.dumps(
            {"catalogs": [source.to_dict() for source in sources]},
            option=orjson.OPT_INDENT_2,
        )
        temp_path = path.with_suffix(".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            temp_path.write_bytes(content)
            temp_path.replace(path)
        except OSError as e:
            msg = f"Cannot write catalog registry: {e}"
            raise ExtensionIOError(msg, target=str(path)) from e
        logger.debug("Saved %d catalog source(s) to %s", len(sources), path)


class CatalogRegistry:
    """Mutable, persisted, observable list of catalog sources."""

    def __init__(
        self,
        storage: RegistryStorage,
        default_sources: Iterable[CatalogSource] = (),
    ) -> None:
        """Initialize the registry and load the persisted sources.

        Args:
            storage: Persistence backend
            default_sources: Sources used when nothing is persisted yet

        """
        self._storage = storage
        self._default_sources = tuple(default_sources)
        self._mutation_lock = threading.Lock()
        self._sources: tuple[CatalogSource, ...] = ()
        self._listeners: ListenerList[tuple[CatalogSource, ...]] = (
            ListenerList()
        )
        self.reload()

    @property
    def default_sources(self) -> tuple[CatalogSource, ...]:
        """Sources present when nothing is persisted."""
        return self._default_sources

    def list(self) -> tuple[CatalogSource, ...]:
        """Return the current sources in insertion order."""
        return self._sources

    def get(self, name: str) -> CatalogSource | None:
        """Return the source with the provided name, if any."""
        for source in self._sources:
            if source.name == name:
                return source
        return None

    def subscribe(
        self, listener: Callable[[tuple[CatalogSource, ...]], None]
    ) -> Unsubscribe:
        """Register a listener called with the new list after each change."""
        return self._listeners.subscribe(listener)

    def add(self, source: CatalogSource) -> None:
        """Append and persist a source.

        Raises:
            DuplicateNameError: If a source with the same name exists
            ExtensionIOError: If the list cannot be persisted

        """
        with self._mutation_lock:
            if any(existing.name == source.name for existing in self._sources):
                msg = "A catalog with this name already exists"
                raise DuplicateNameError(msg, target=source.name)
            self._publish((*self._sources, source))
            snapshot = self._sources
        self._listeners.notify(snapshot)
        logger.info("Catalog '%s' added", source.name)

    def remove(self, sources: Iterable[CatalogSource]) -> None:
        """Remove sources by name and persist the result.

        Sources already absent are ignored.

        Raises:
            NotDeletableError: If one of the sources is not deletable
            ExtensionIOError: If the list cannot be persisted

        """
        names = {source.name for source in sources}
        with self._mutation_lock:
            for existing in self._sources:
                if existing.name in names and not existing.deletable:
                    msg = "Default catalogs cannot be removed"
                    raise NotDeletableError(msg, target=existing.name)

            remaining = tuple(
                existing
                for existing in self._sources
                if existing.name not in names
            )
            if len(remaining) == len(self._sources):
                logger.debug("No catalog to remove among %s", sorted(names))
                return
            self._publish(remaining)
            snapshot = self._sources
        self._listeners.notify(snapshot)
        logger.info("Catalog(s) %s removed", ", ".join(sorted(names)))

    def reload(self) -> None:
        """Replace the in-memory list with the persisted one."""
        with self._mutation_lock:
            loaded = self._storage.load()
            if loaded is None:
                logger.debug("No persisted catalogs, using the defaults")
                loaded = list(self._default_sources)
            self._sources = tuple(loaded)
            snapshot = self._sources
        self._listeners.notify(snapshot)

    def _publish(self, sources: tuple[CatalogSource, ...]) -> None:
        self._storage.save(sources)
        self._sources = sources
