"""Tests for ExtensionFolderManager."""

from pathlib import Path

import pytest

from extension_manager.core.folders import ExtensionFolderManager
from extension_manager.core.observable import ObservableValue
from extension_manager.domain.installation import (
    ArtifactType,
    ExtensionKey,
    InstallationRecord,
)
from extension_manager.exceptions import InvalidArgumentError

KEY = ExtensionKey("Test catalog", "Test extension")


@pytest.fixture
def directory(tmp_path: Path) -> ObservableValue[Path | None]:
    """Live extension directory value."""
    return ObservableValue(tmp_path / "extensions")


@pytest.fixture
def folders(directory: ObservableValue[Path | None]) -> ExtensionFolderManager:
    """Folder manager deleting permanently."""
    return ExtensionFolderManager(directory, use_trash=False)


def _install_files(
    folders: ExtensionFolderManager,
    version: str,
    *,
    optional: bool = False,
) -> Path:
    version_dir = folders.version_dir(KEY, version)
    main = folders.artifact_dir(version_dir, ArtifactType.MAIN_JAR)
    main.mkdir(parents=True)
    (main / "ext.jar").write_bytes(b"jar")
    if optional:
        opt = folders.artifact_dir(
            version_dir, ArtifactType.OPTIONAL_DEPENDENCIES
        )
        opt.mkdir(parents=True)
        (opt / "opt.jar").write_bytes(b"jar")
    return version_dir


class TestPaths:
    """Tests for the computed paths."""

    def test_layout(
        self, folders: ExtensionFolderManager, tmp_path: Path
    ) -> None:
        """Test the version directory sits under catalogs/catalog/extension."""
        expected = (
            tmp_path
            / "extensions"
            / "catalogs"
            / "Test catalog"
            / "Test extension"
            / "v0.1.0"
        )

        assert folders.version_dir(KEY, "v0.1.0") == expected
        assert (
            folders.artifact_dir(expected, ArtifactType.MAIN_JAR)
            == expected / "main-jar"
        )

    def test_invalid_characters_are_stripped(
        self, folders: ExtensionFolderManager
    ) -> None:
        """Test names cannot introduce path separators."""
        path = folders.extension_dir_of(ExtensionKey("a/b", "c:d"))

        assert path.parent.name == "ab"
        assert path.name == "cd"

    @pytest.mark.parametrize(
        "key",
        [
            ExtensionKey("Evil", ".."),
            ExtensionKey("Evil", "."),
            ExtensionKey("Evil", "/"),
            ExtensionKey("..", "Test extension"),
            ExtensionKey("./.", "Test extension"),
        ],
    )
    def test_unsafe_names_are_refused(
        self, folders: ExtensionFolderManager, key: ExtensionKey
    ) -> None:
        """Test names cannot point at a parent or shared directory."""
        with pytest.raises(InvalidArgumentError):
            folders.extension_dir_of(key)
        assert folders.discover_installation(key) is None

    @pytest.mark.parametrize("name", [".staging", "registry.json"])
    def test_reserved_catalog_names(
        self, folders: ExtensionFolderManager, name: str
    ) -> None:
        """Test catalogs cannot use the folders of the manager itself."""
        with pytest.raises(InvalidArgumentError, match="reserved"):
            folders.catalog_dir(name)

    def test_paths_follow_directory_changes(
        self,
        folders: ExtensionFolderManager,
        directory: ObservableValue[Path | None],
        tmp_path: Path,
    ) -> None:
        """Test paths are computed from the current directory."""
        directory.set(tmp_path / "other")

        assert folders.catalog_dir("c").parent.parent == tmp_path / "other"

    def test_no_directory(
        self,
        folders: ExtensionFolderManager,
        directory: ObservableValue[Path | None],
    ) -> None:
        """Test paths cannot be computed without an extension directory."""
        directory.set(None)

        with pytest.raises(InvalidArgumentError):
            folders.root()
        assert folders.discover_installation(KEY) is None


class TestDiscoverInstallation:
    """Tests for discover_installation."""

    def test_nothing_installed(self, folders: ExtensionFolderManager) -> None:
        """Test a missing extension folder means not installed."""
        assert folders.discover_installation(KEY) is None

    def test_installed_version(self, folders: ExtensionFolderManager) -> None:
        """Test the version folder holding the main artifact is found."""
        _install_files(folders, "v0.1.0")

        assert folders.discover_installation(KEY) == InstallationRecord(
            "v0.1.0", False
        )

    def test_optional_dependencies(
        self, folders: ExtensionFolderManager
    ) -> None:
        """Test installed optional dependencies are detected."""
        _install_files(folders, "v0.1.0", optional=True)

        assert folders.discover_installation(KEY) == InstallationRecord(
            "v0.1.0", True
        )

    def test_empty_main_folder_is_ignored(
        self, folders: ExtensionFolderManager
    ) -> None:
        """Test a version folder without the main artifact does not count."""
        version_dir = folders.version_dir(KEY, "v0.1.0")
        folders.artifact_dir(version_dir, ArtifactType.MAIN_JAR).mkdir(
            parents=True
        )

        assert folders.discover_installation(KEY) is None

    def test_newest_version_wins(
        self,
        folders: ExtensionFolderManager,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Test the newest of several installed versions is reported."""
        _install_files(folders, "v0.2.0")
        _install_files(folders, "v0.10.0")

        record = folders.discover_installation(KEY)

        assert record == InstallationRecord("v0.10.0", False)
        assert "Several versions" in caplog.text

    def test_unrelated_folders_are_ignored(
        self, folders: ExtensionFolderManager
    ) -> None:
        """Test folders not named as versions are skipped."""
        extension_dir = folders.extension_dir_of(KEY)
        (extension_dir / "notes" / "main-jar").mkdir(parents=True)
        (extension_dir / "notes" / "main-jar" / "x.jar").write_bytes(b"x")

        assert folders.discover_installation(KEY) is None


class TestDeletion:
    """Tests for staging, moving and deleting folders."""

    def test_staging_and_move(self, folders: ExtensionFolderManager) -> None:
        """Test a staged folder is moved to its final location."""
        staging = folders.create_staging_dir()
        (staging / "main-jar").mkdir()
        (staging / "main-jar" / "ext.jar").write_bytes(b"jar")
        destination = folders.version_dir(KEY, "v0.1.0")

        folders.move_into_place(staging, destination)

        assert (destination / "main-jar" / "ext.jar").read_bytes() == b"jar"
        assert not staging.exists()

    def test_delete_inside_directory(
        self, folders: ExtensionFolderManager
    ) -> None:
        """Test a folder inside the extension directory is deleted."""
        version_dir = _install_files(folders, "v0.1.0")

        folders.delete(folders.extension_dir_of(KEY))

        assert not version_dir.exists()

    def test_delete_outside_directory(
        self, folders: ExtensionFolderManager, tmp_path: Path
    ) -> None:
        """Test a folder outside the extension directory is refused."""
        outside = tmp_path / "outside"
        outside.mkdir()

        with pytest.raises(InvalidArgumentError):
            folders.delete(outside)

        assert outside.exists()

    def test_delete_root_is_refused(
        self, folders: ExtensionFolderManager
    ) -> None:
        """Test the extension directory itself cannot be deleted."""
        root = folders.root()
        root.mkdir(parents=True)

        with pytest.raises(InvalidArgumentError):
            folders.delete(root)

        assert root.exists()

    def test_delete_staging(self, folders: ExtensionFolderManager) -> None:
        """Test a staging folder is removed."""
        staging = folders.create_staging_dir()

        folders.delete_staging(staging)

        assert not staging.exists()

    def test_delete_catalogs_directory_is_refused(
        self, folders: ExtensionFolderManager
    ) -> None:
        """Test the folder shared by every catalog cannot be deleted."""
        _install_files(folders, "v0.1.0")
        catalogs_dir = folders.catalog_dir("Test catalog").parent

        with pytest.raises(InvalidArgumentError):
            folders.delete(catalogs_dir)
        with pytest.raises(InvalidArgumentError):
            folders.delete(catalogs_dir / "Test catalog" / ".." / "..")

        assert folders.discover_installation(KEY) == InstallationRecord(
            "v0.1.0", False
        )

    def test_delete_staging_root_is_refused(
        self, folders: ExtensionFolderManager
    ) -> None:
        """Test the staging root itself is not deleted."""
        staging = folders.create_staging_dir()

        with pytest.raises(InvalidArgumentError):
            folders.delete(staging.parent)
        with pytest.raises(InvalidArgumentError):
            folders.delete_staging(staging.parent)

        assert staging.exists()

    def test_staging_path_is_not_created(
        self, folders: ExtensionFolderManager
    ) -> None:
        """Test a staging path is only created on request."""
        path = folders.staging_path()

        assert not path.exists()
        assert folders.create_staging_dir(path) == path
        assert path.is_dir()
        assert folders.staging_path() != path
