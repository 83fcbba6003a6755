"""Extension catalog manager.

The manager is the single entry point of the host application. It owns the
catalog registry and the installed-state store, and it is the only writer
of the extension directory.

Installations download every artifact into a staging directory first.
The previous version is only replaced once every download succeeded, so a
failed or cancelled update leaves it untouched.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import replace
from pathlib import Path
from typing import Any, TypeVar
from urllib.parse import urlparse

import aiohttp

from extension_manager.config import NetworkSettings, SettingsManager
from extension_manager.constants import SOURCE_HOST
from extension_manager.core.download import ArtifactDownloader, Downloader
from extension_manager.core.fetcher import CatalogFetcher
from extension_manager.core.filesystem import (
    file_name_from_uri,
    is_directory_not_empty,
)
from extension_manager.core.folders import ExtensionFolderManager
from extension_manager.core.github import find_raw_catalog_uri
from extension_manager.core.http_session import build_session
from extension_manager.core.installation import (
    CompletionCallback,
    InstallationTask,
    ProgressAggregator,
    ProgressCallback,
    plan_artifacts,
)
from extension_manager.core.installed_state import InstalledStateStore
from extension_manager.core.locking import KeyedLock
from extension_manager.core.observable import ObservableValue, Unsubscribe
from extension_manager.core.registry import (
    CatalogRegistry,
    JsonRegistryStorage,
    RegistryStorage,
)
from extension_manager.domain.catalog import Catalog, Extension, Release
from extension_manager.domain.installation import (
    Artifact,
    ArtifactType,
    CatalogSource,
    ExtensionKey,
    InstallationRecord,
    UpdateAvailable,
)
from extension_manager.domain.version import Version
from extension_manager.exceptions import (
    ExtensionIOError,
    ExtensionManagerError,
    InvalidArgumentError,
    NotInstalledError,
)
from extension_manager.logger import get_logger, update_logger_from_settings

logger = get_logger(__name__)

T = TypeVar("T")


class ExtensionCatalogManager:
    """Coordinates catalogs, installed state and installations.

    Usage:
        manager = ExtensionCatalogManager(
            extension_dir=settings_manager.extension_directory(),
            host_version="v0.6.0",
            default_sources=[default_source],
        )
        task = manager.install_or_update(
            source, extension, "v0.2.0", install_optional=False,
            on_progress=print, on_completion=print,
        )
        await task.wait()
        await manager.close()

    Every filesystem operation reads the current value of extension_dir,
    which the host may change at any time.
    """

    def __init__(
        self,
        extension_dir: ObservableValue[Path | None],
        host_version: str,
        default_sources: Iterable[CatalogSource] = (),
        *,
        network: NetworkSettings | None = None,
        use_trash: bool = True,
        session: aiohttp.ClientSession | None = None,
        fetcher: CatalogFetcher | None = None,
        downloader: Downloader | None = None,
        registry_storage: RegistryStorage | None = None,
    ) -> None:
        """Initialize the manager and load the catalog registry.

        Args:
            extension_dir: Live extension directory value
            host_version: Version of the host application, e.g. ``v0.6.0``
            default_sources: Catalogs used when none are persisted
            network: Network settings of sessions created by the manager
            use_trash: Move removed files to the trash when possible
            session: Optional shared HTTP session (not closed by close())
            fetcher: Optional catalog fetcher
            downloader: Optional artifact downloader
            registry_storage: Optional registry persistence backend

        Raises:
            InvalidArgumentError: If the host version is not a version

        """
        try:
            self.host_version = Version.parse(host_version)
        except (TypeError, ValueError) as e:
            msg = f"Invalid host version '{host_version}'"
            raise InvalidArgumentError(msg) from e

        self.extension_dir = extension_dir
        self.network = network or NetworkSettings()
        self.folders = ExtensionFolderManager(
            extension_dir, use_trash=use_trash
        )

        self._installed = InstalledStateStore(
            self.folders.discover_installation
        )
        self._registry = CatalogRegistry(
            registry_storage or JsonRegistryStorage(extension_dir),
            (_non_deletable(source) for source in default_sources),
        )
        self._guards: KeyedLock[ExtensionKey] = KeyedLock()

        self._session = session
        self._owns_session = False
        self._fetcher = fetcher
        self._downloader = downloader

        # Directory changes are handled in order, away from the thread
        # that made them.
        self._directory_worker = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="extension-directory"
        )
        self._directory_refresh: Future[None] | None = None
        self._unsubscribe_directory: Unsubscribe | None = (
            extension_dir.subscribe(self._on_extension_directory_changed)
        )

    @classmethod
    def from_settings(
        cls,
        settings_manager: SettingsManager,
        default_sources: Iterable[CatalogSource] = (),
        **kwargs: Any,
    ) -> ExtensionCatalogManager:
        """Create a manager configured from the settings file.

        Factory method for simplified instantiation with sensible defaults.
        """
        settings = settings_manager.load_settings()
        update_logger_from_settings(settings)
        return cls(
            extension_dir=settings_manager.extension_directory(),
            host_version=settings.host_version,
            default_sources=default_sources,
            network=settings.network,
            use_trash=settings.use_trash,
            **kwargs,
        )

    # Lazily created collaborators

    @property
    def session(self) -> aiohttp.ClientSession:
        """Get or create the HTTP session."""
        if self._session is None:
            self._session = build_session(self.network)
            self._owns_session = True
        return self._session

    @property
    def fetcher(self) -> CatalogFetcher:
        """Get or create the catalog fetcher."""
        if self._fetcher is None:
            self._fetcher = CatalogFetcher(self.session)
        return self._fetcher

    @property
    def downloader(self) -> Downloader:
        """Get or create the artifact downloader."""
        if self._downloader is None:
            self._downloader = ArtifactDownloader(self.session)
        return self._downloader

    async def close(self) -> None:
        """Stop following the extension directory and close the session."""
        if self._unsubscribe_directory is not None:
            self._unsubscribe_directory()
            self._unsubscribe_directory = None
        await self.wait_for_directory_refresh()
        self._directory_worker.shutdown(wait=False)
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None
            self._owns_session = False

    async def __aenter__(self) -> ExtensionCatalogManager:
        """Return the manager."""
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        """Close the manager."""
        await self.close()

    # Catalogs

    def catalogs(self) -> tuple[CatalogSource, ...]:
        """Return the registered catalog sources in order."""
        return self._registry.list()

    def subscribe_catalogs(
        self, listener: Callable[[tuple[CatalogSource, ...]], None]
    ) -> Unsubscribe:
        """Register a listener called with the new list on every change."""
        return self._registry.subscribe(listener)

    async def create_catalog_source(
        self, uri: str, *, deletable: bool = True
    ) -> CatalogSource:
        """Build a source for the catalog available at a URI.

        A GitHub repository link is resolved to the raw link of its
        ``catalog.json``. The catalog is fetched to read its name and
        description.

        Raises:
            InvalidArgumentError: If the URI cannot be used
            NetworkError: If a request fails
            MalformedCatalogError: If the catalog cannot be parsed
            ValidationError: If the catalog is invalid

        """
        raw_uri = uri
        if urlparse(uri).hostname == SOURCE_HOST:
            raw_uri = await find_raw_catalog_uri(uri, self.session)
        catalog = await self.fetcher.fetch(raw_uri)
        return CatalogSource(
            name=catalog.name,
            description=catalog.description,
            uri=uri,
            raw_uri=raw_uri,
            deletable=deletable,
        )

    async def add_catalog(self, source: CatalogSource) -> None:
        """Register and persist a catalog source.

        Raises:
            DuplicateNameError: If a source with the same name exists
            ExtensionIOError: If the registry cannot be saved

        """
        await asyncio.to_thread(self._registry.add, source)

    async def remove_catalogs(
        self,
        sources: Iterable[CatalogSource],
        *,
        remove_extensions: bool = False,
    ) -> None:
        """Unregister catalog sources.

        Args:
            sources: Sources to remove, absent ones are ignored
            remove_extensions: Also delete the extensions installed from them

        Raises:
            NotDeletableError: If one of the sources is a default one
            ExtensionIOError: If the registry or the files cannot be changed

        """
        sources = list(sources)
        await asyncio.to_thread(self._registry.remove, sources)
        if not remove_extensions:
            return

        for source in sources:
            catalog_dir = self.folders.catalog_dir(source.name)
            if catalog_dir.exists():
                await asyncio.to_thread(self.folders.delete, catalog_dir)
            for key in self._installed.keys():
                if key.catalog_name == source.name:
                    self._installed.clear(key)
            logger.info("Extensions of catalog '%s' removed", source.name)

    async def fetch_catalog(self, source: CatalogSource) -> Catalog:
        """Fetch the current content of a registered catalog.

        Raises:
            NetworkError: If the request fails
            MalformedCatalogError: If the catalog cannot be parsed
            ValidationError: If the catalog is invalid

        """
        return await self.fetcher.fetch(source.fetch_uri)

    def get_catalog_directory(self, catalog_name: str) -> Path:
        """Directory holding the extensions installed from a catalog."""
        return self.folders.catalog_dir(catalog_name)

    def get_extension_directory(
        self, source: CatalogSource, extension: Extension
    ) -> Path:
        """Directory holding every file of an extension."""
        return self.folders.extension_dir_of(_key(source, extension))

    # Installed state

    def get_installed(
        self, catalog_name: str, extension_name: str
    ) -> ObservableValue[InstallationRecord | None]:
        """Return the live installation record of an extension.

        The same object is returned for the same names on every call.
        """
        return self._installed.get(ExtensionKey(catalog_name, extension_name))

    def installed_extensions(self) -> dict[ExtensionKey, InstallationRecord]:
        """Return every known installed extension."""
        return self._installed.installed()

    async def wait_for_directory_refresh(self) -> None:
        """Wait until the state follows the last extension directory change.

        Catalogs and installation records are read again in a worker thread
        after every change of the extension directory.
        """
        refresh = self._directory_refresh
        if refresh is not None:
            await asyncio.wrap_future(refresh)

    async def _installed_record(
        self, key: ExtensionKey
    ) -> InstallationRecord | None:
        # The first access of a key scans the extension directory.
        value = await asyncio.to_thread(self._installed.get, key)
        return value.get()

    def get_download_links(
        self,
        source: CatalogSource,
        extension: Extension,
        release_name: str,
        install_optional: bool,
    ) -> list[str]:
        """List the URLs an installation with these parameters downloads.

        Raises:
            InvalidArgumentError: If the release does not exist

        """
        release = _find_release(extension, release_name)
        return [
            artifact.url
            for artifact in plan_artifacts(
                release, include_optional=install_optional
            )
        ]

    async def get_available_updates(self) -> list[UpdateAvailable]:
        """Find newer compatible releases of installed extensions.

        Every registered catalog is fetched again.

        Raises:
            NetworkError: If a catalog cannot be fetched
            MalformedCatalogError: If a catalog cannot be parsed
            ValidationError: If a catalog is invalid

        """
        sources = self.catalogs()
        catalogs = await asyncio.gather(
            *(self.fetch_catalog(source) for source in sources)
        )

        updates: list[UpdateAvailable] = []
        for source, catalog in zip(sources, catalogs, strict=True):
            for extension in catalog.extensions:
                record = await self._installed_record(_key(source, extension))
                if record is None:
                    continue
                release = extension.max_compatible_release(self.host_version)
                if release is None:
                    continue
                if release.version > Version.parse(record.version):
                    updates.append(
                        UpdateAvailable(
                            extension_name=extension.name,
                            current_version=record.version,
                            new_version=release.name,
                        )
                    )

        logger.debug("%d update(s) available", len(updates))
        return updates

    # Installation

    def install_or_update(
        self,
        source: CatalogSource,
        extension: Extension,
        release_name: str,
        install_optional: bool = False,
        on_progress: ProgressCallback | None = None,
        on_completion: CompletionCallback | None = None,
    ) -> InstallationTask:
        """Install a release of an extension, replacing any other version.

        Must be called from the event loop thread. Argument errors and
        conflicts are raised here; every other outcome is passed to
        on_completion, which is called exactly once.

        Args:
            source: Catalog the extension comes from
            extension: Extension to install
            release_name: Name of the release to install
            install_optional: Whether to install optional dependencies
            on_progress: Called with the overall progress in [0, 1]
            on_completion: Called with None on success or the error

        Returns:
            Handle to cancel or wait for the installation

        Raises:
            InvalidArgumentError: If the release does not exist or no
                extension directory is set
            ConflictError: If an operation on this extension is running

        """
        release = _find_release(extension, release_name)
        self.folders.root()
        if not release.is_compatible(self.host_version):
            logger.warning(
                "%s %s is not compatible with %s",
                extension.name,
                release.name,
                self.host_version,
            )

        key = _key(source, extension)
        self._guards.acquire(key)
        handle = InstallationTask(
            f"{key} {release.name}",
            on_completion=on_completion,
            on_finished=lambda: self._guards.release(key),
        )
        try:
            return handle.start(
                lambda: self._install(
                    key, release, install_optional, on_progress
                )
            )
        except BaseException:
            self._guards.release(key)
            raise

    async def uninstall(
        self, source: CatalogSource, extension: Extension
    ) -> None:
        """Remove every file of an installed extension.

        Raises:
            ConflictError: If an operation on this extension is running
            NotInstalledError: If the extension is not installed
            ExtensionIOError: If the files cannot be deleted

        """
        key = _key(source, extension)
        with self._guards.hold(key):
            if await self._installed_record(key) is None:
                msg = "The extension is not installed"
                raise NotInstalledError(msg, target=str(key))

            extension_dir = self.folders.extension_dir_of(key)
            await asyncio.to_thread(self.folders.delete, extension_dir)
            self._installed.clear(key)

        logger.info("%s of %s removed", extension.name, source.name)

    async def _install(
        self,
        key: ExtensionKey,
        release: Release,
        install_optional: bool,
        on_progress: ProgressCallback | None,
    ) -> None:
        target = InstallationRecord(release.name, install_optional)
        current = await self._installed_record(key)

        if current == target:
            logger.info("%s %s is already installed", key, release.name)
            ProgressAggregator(0, on_progress).finish()
            return

        if current is not None and current.version == release.name:
            await self._change_optional_dependencies(
                key, release, install_optional, on_progress
            )
        else:
            await self._install_release(
                key, release, install_optional, on_progress
            )
        logger.info("%s %s installed", key, release.name)

    async def _install_release(
        self,
        key: ExtensionKey,
        release: Release,
        install_optional: bool,
        on_progress: ProgressCallback | None,
    ) -> None:
        artifacts = plan_artifacts(release, include_optional=install_optional)
        progress = ProgressAggregator(len(artifacts), on_progress)
        version_dir = self.folders.version_dir(key, release.name)
        staging_dir = self.folders.staging_path()

        try:
            await self._run_blocking(
                self.folders.create_staging_dir, staging_dir
            )
            await self._download_all(artifacts, staging_dir, progress)
            await self._commit(
                key,
                InstallationRecord(release.name, install_optional),
                self._swap_in,
                staging_dir,
                version_dir,
                self.folders.extension_dir_of(key),
            )
        finally:
            await self._finish_uninterrupted(
                self._discard_staging, staging_dir
            )

        progress.finish()

    async def _change_optional_dependencies(
        self,
        key: ExtensionKey,
        release: Release,
        install_optional: bool,
        on_progress: ProgressCallback | None,
    ) -> None:
        record = InstallationRecord(release.name, install_optional)
        optional_dir = ExtensionFolderManager.artifact_dir(
            self.folders.version_dir(key, release.name),
            ArtifactType.OPTIONAL_DEPENDENCIES,
        )

        if not install_optional:
            logger.debug("Removing optional dependencies of %s", key)
            progress = ProgressAggregator(0, on_progress)
            await self._commit(
                key, record, self._delete_if_exists, optional_dir
            )
            progress.finish()
            return

        logger.debug("Adding optional dependencies to %s", key)
        artifacts = plan_artifacts(
            release, include_optional=True, only_optional=True
        )
        progress = ProgressAggregator(len(artifacts), on_progress)
        staging_dir = self.folders.staging_path()
        staged_optional_dir = ExtensionFolderManager.artifact_dir(
            staging_dir, ArtifactType.OPTIONAL_DEPENDENCIES
        )

        try:
            await self._run_blocking(
                self.folders.create_staging_dir, staging_dir
            )
            await self._download_all(artifacts, staging_dir, progress)
            await self._commit(
                key,
                record,
                self._swap_in,
                staged_optional_dir,
                optional_dir,
                optional_dir,
            )
        finally:
            await self._finish_uninterrupted(
                self._discard_staging, staging_dir
            )

        progress.finish()

    async def _download_all(
        self,
        artifacts: list[Artifact],
        staging_dir: Path,
        progress: ProgressAggregator,
    ) -> None:
        for index, artifact in enumerate(artifacts):
            dest = (
                ExtensionFolderManager.artifact_dir(staging_dir, artifact.type)
                / file_name_from_uri(artifact.url)
            )
            logger.debug(
                "Downloading artifact %d/%d: %s",
                index + 1,
                len(artifacts),
                artifact.url,
            )
            await self.downloader.download_file(
                artifact.url, dest, progress.file_callback(index)
            )

    async def _commit(
        self,
        key: ExtensionKey,
        record: InstallationRecord,
        func: Callable[..., None],
        *args: Any,
    ) -> None:
        """Change the installed files, then publish the new record.

        The change runs to completion even if cancellation is requested.
        Once it succeeded the installation counts as done. If it failed,
        the record is read from disk again.
        """
        try:
            await self._finish_uninterrupted(func, *args)
        except Exception:
            await self._finish_uninterrupted(self._installed.reload, key)
            raise
        self._installed.set(key, record)

    async def _run_blocking(self, func: Callable[..., T], *args: Any) -> T:
        """Run blocking work in a thread and wait until it is done.

        A cancellation request does not abandon the work halfway; it is
        raised once the work has finished.
        """
        result, cancelled = await _complete_in_thread(func, *args)
        if cancelled is not None:
            raise cancelled
        return result

    async def _finish_uninterrupted(
        self, func: Callable[..., T], *args: Any
    ) -> T:
        """Run blocking work that must not be cancelled at all.

        Used once files are being moved in place and for cleanup. A
        cancellation request received meanwhile is dropped.
        """
        result, cancelled = await _complete_in_thread(func, *args)
        if cancelled is not None:
            logger.warning("Cancellation ignored, files are being moved")
            task = asyncio.current_task()
            while task is not None and task.cancelling():
                task.uncancel()
        return result

    def _swap_in(
        self, staged: Path, destination: Path, previous: Path
    ) -> None:
        """Move a staged folder to its destination, replacing previous.

        previous is the destination or one of its parents. It is moved aside
        first and restored if the staged folder cannot be moved in place.
        """
        if not staged.exists():
            logger.debug("Nothing staged for %s", destination)
            return

        backup = None
        if previous.exists():
            backup = self.folders.staging_path()
            self.folders.move_into_place(previous, backup)

        try:
            self.folders.move_into_place(staged, destination)
        except ExtensionIOError:
            if backup is not None:
                logger.warning("Restoring previous files of %s", previous)
                if previous.is_dir() and not is_directory_not_empty(previous):
                    previous.rmdir()
                self.folders.move_into_place(backup, previous)
            raise

        if backup is not None:
            try:
                self.folders.delete(backup)
            except ExtensionIOError as e:
                logger.warning(
                    "Cannot delete previous files %s: %s", backup, e
                )

    def _delete_if_exists(self, path: Path) -> None:
        if path.exists():
            self.folders.delete(path)

    def _discard_staging(self, staging_dir: Path) -> None:
        if staging_dir.exists():
            self.folders.delete_staging(staging_dir)

    def _on_extension_directory_changed(
        self, old: Path | None, new: Path | None
    ) -> None:
        logger.info("Extension directory changed from %s to %s", old, new)
        self._directory_refresh = self._directory_worker.submit(
            self._reload_from_directory
        )

    def _reload_from_directory(self) -> None:
        try:
            self._registry.reload()
        except ExtensionManagerError as e:
            logger.error("Cannot reload the catalog registry: %s", e)
        self._installed.refresh_all()


def _key(source: CatalogSource, extension: Extension) -> ExtensionKey:
    return ExtensionKey(source.name, extension.name)


def _find_release(extension: Extension, release_name: str) -> Release:
    release = extension.get_release(release_name)
    if release is None:
        msg = f"No release named '{release_name}'"
        raise InvalidArgumentError(msg, target=extension.name)
    return release


def _non_deletable(source: CatalogSource) -> CatalogSource:
    return replace(source, deletable=False)


async def _complete_in_thread(
    func: Callable[..., T], *args: Any
) -> tuple[T, asyncio.CancelledError | None]:
    """Run func in a thread and wait for it even if cancelled meanwhile.

    Returns the result and the last cancellation received while waiting.
    """
    work = asyncio.ensure_future(asyncio.to_thread(func, *args))
    cancelled: asyncio.CancelledError | None = None
    while True:
        try:
            return await asyncio.shield(work), cancelled
        except asyncio.CancelledError as e:
            if work.cancelled():
                raise
            cancelled = e
