"""Layout of catalog-managed extensions inside the extension directory.

Every path is computed from the current value of the live extension
directory, never from a value cached at construction.

Layout::

    <extension dir>/catalogs/<catalog>/<extension>/<version>/<artifact type>/<file>
"""

from __future__ import annotations

import uuid
from pathlib import Path

from extension_manager.config.paths import Paths
from extension_manager.constants import REGISTRY_FILE_NAME, STAGING_DIR_NAME
from extension_manager.core.filesystem import (
    delete_recursively,
    is_ancestor_of,
    is_directory_not_empty,
)
from extension_manager.core.observable import ObservableValue
from extension_manager.domain.installation import (
    ArtifactType,
    ExtensionKey,
    InstallationRecord,
)
from extension_manager.domain.version import Version
from extension_manager.exceptions import ExtensionIOError, InvalidArgumentError
from extension_manager.logger import get_logger

logger = get_logger(__name__)

# Entries of the catalogs directory that are not catalogs
_RESERVED_CATALOG_DIR_NAMES = frozenset({STAGING_DIR_NAME, REGISTRY_FILE_NAME})


class ExtensionFolderManager:
    """Computes, inspects and deletes extension folders."""

    def __init__(
        self,
        extension_dir: ObservableValue[Path | None],
        *,
        use_trash: bool = True,
    ) -> None:
        """Initialize with the live extension directory.

        Args:
            extension_dir: Live extension directory value
            use_trash: Move deleted folders to the trash when possible

        """
        self.extension_dir = extension_dir
        self.use_trash = use_trash

    def root(self) -> Path:
        """Return the current extension directory.

        Raises:
            InvalidArgumentError: If no extension directory is set

        """
        directory = self.extension_dir.get()
        if directory is None:
            msg = "No extension directory is set"
            raise InvalidArgumentError(msg)
        return directory

    def catalog_dir(self, catalog_name: str) -> Path:
        """Directory of every extension installed from one catalog.

        Raises:
            InvalidArgumentError: If the name does not map to a directory
                of its own inside the catalogs directory

        """
        catalogs_dir = Paths.catalogs_dir(self.root())
        path = Paths.catalog_dir(self.root(), catalog_name)
        _check_child(catalogs_dir, path, catalog_name)
        if path.name in _RESERVED_CATALOG_DIR_NAMES:
            msg = f"The catalog name '{catalog_name}' is reserved"
            raise InvalidArgumentError(msg)
        return path

    def extension_dir_of(self, key: ExtensionKey) -> Path:
        """Directory of every installed version of one extension.

        Raises:
            InvalidArgumentError: If a name does not map to a directory of
                its own

        """
        catalog_dir = self.catalog_dir(key.catalog_name)
        path = catalog_dir / Paths.strip_invalid_filename_characters(
            key.extension_name
        )
        _check_child(catalog_dir, path, key.extension_name)
        return path

    def version_dir(self, key: ExtensionKey, version: str) -> Path:
        """Directory of one installed version."""
        return self.extension_dir_of(key) / (
            Paths.strip_invalid_filename_characters(version)
        )

    @staticmethod
    def artifact_dir(version_dir: Path, artifact_type: ArtifactType) -> Path:
        """Directory of one artifact type inside a version directory."""
        return version_dir / artifact_type.value

    def discover_installation(
        self, key: ExtensionKey
    ) -> InstallationRecord | None:
        """Read the installation record of an extension from disk.

        A version directory counts as installed when its main artifact
        directory is not empty. If several are, the newest one wins.
        """
        if self.extension_dir.get() is None:
            return None

        try:
            extension_dir = self.extension_dir_of(key)
        except InvalidArgumentError as e:
            logger.debug("No installation possible for %s: %s", key, e)
            return None
        if not extension_dir.is_dir():
            return None

        candidates: list[tuple[Version, Path]] = []
        try:
            children = list(extension_dir.iterdir())
        except OSError as e:
            logger.warning("Cannot list %s: %s", extension_dir, e)
            return None

        for child in children:
            if not Version.is_valid(child.name, require_minor_and_patch=True):
                continue
            if is_directory_not_empty(
                self.artifact_dir(child, ArtifactType.MAIN_JAR)
            ):
                candidates.append((Version.parse(child.name), child))

        if not candidates:
            return None
        if len(candidates) > 1:
            logger.warning(
                "Several versions of %s found on disk: %s",
                key,
                ", ".join(path.name for _, path in candidates),
            )

        _, newest = max(candidates, key=lambda candidate: candidate[0])
        return InstallationRecord(
            version=newest.name,
            optional_dependencies_installed=is_directory_not_empty(
                self.artifact_dir(newest, ArtifactType.OPTIONAL_DEPENDENCIES)
            ),
        )

    def staging_path(self) -> Path:
        """Return a new, not yet created, staging directory path.

        Staging directories live inside the extension directory so that
        moving one in place is a rename on the same filesystem.
        """
        return Paths.staging_dir(self.root()) / uuid.uuid4().hex

    def create_staging_dir(self, path: Path | None = None) -> Path:
        """Create an empty directory to download a version into.

        Args:
            path: Directory from staging_path(), or None for a new one

        Raises:
            ExtensionIOError: If the directory cannot be created

        """
        if path is None:
            path = self.staging_path()
        self._check_staging(path)
        try:
            path.mkdir(parents=True)
        except OSError as e:
            msg = f"Cannot create staging directory: {e}"
            raise ExtensionIOError(msg, target=str(path)) from e
        return path

    def move_into_place(self, source: Path, destination: Path) -> None:
        """Move a directory to another location inside the catalogs directory.

        Raises:
            InvalidArgumentError: If the destination is not a catalog,
                extension, version or staging folder
            ExtensionIOError: If the directory cannot be moved

        """
        self._check_contained(destination)
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            source.replace(destination)
        except OSError as e:
            msg = f"Cannot move {source} to {destination}: {e}"
            raise ExtensionIOError(msg, target=str(destination)) from e
        logger.debug("Moved %s to %s", source, destination)

    def delete(self, path: Path) -> None:
        """Delete a path located strictly inside the catalogs directory.

        Raises:
            InvalidArgumentError: If the path is outside the catalogs
                directory, the catalogs directory itself, the staging
                directory or the catalog registry
            ExtensionIOError: If deletion fails

        """
        self._check_contained(path)
        delete_recursively(path, use_trash=self.use_trash)

    def delete_staging(self, path: Path) -> None:
        """Permanently delete a staging directory."""
        self._check_staging(path)
        delete_recursively(path, use_trash=False)

    def _check_contained(self, path: Path) -> None:
        root = self.root()
        catalogs_dir = Paths.catalogs_dir(root)
        if not is_ancestor_of(catalogs_dir, path) or is_ancestor_of(
            path, catalogs_dir
        ):
            msg = f"{path} is not inside the catalogs directory {catalogs_dir}"
            raise InvalidArgumentError(msg)

        resolved = path.resolve(strict=False)
        for managed in (Paths.staging_dir(root), Paths.registry_file(root)):
            if resolved == managed.resolve(strict=False):
                msg = f"{path} is managed by the extension manager itself"
                raise InvalidArgumentError(msg)

    def _check_staging(self, path: Path) -> None:
        staging_root = Paths.staging_dir(self.root())
        if path.parent.resolve(strict=False) != staging_root.resolve(
            strict=False
        ):
            msg = f"{path} is not a staging directory of {staging_root}"
            raise InvalidArgumentError(msg)


def _check_child(parent: Path, path: Path, name: str) -> None:
    if path.parent != parent or path.name in ("", ".", ".."):
        msg = f"The name '{name}' cannot be used as a directory name"
        raise InvalidArgumentError(msg)
