"""Filesystem helpers used when installing and removing extensions.

Nothing here knows about catalogs or extensions; the manager decides which
paths are deleted and checks containment before calling delete_recursively().
"""

from __future__ import annotations

import shutil
from pathlib import Path, PurePosixPath
from urllib.parse import unquote, urlparse

from send2trash import send2trash

from extension_manager.exceptions import ExtensionIOError, InvalidArgumentError
from extension_manager.logger import get_logger

logger = get_logger(__name__)


def _require(value: object, name: str) -> None:
    if value is None:
        msg = f"'{name}' must not be None"
        raise InvalidArgumentError(msg)


def is_directory_not_empty(path: Path | None) -> bool:
    """Tell whether a path is a directory holding at least one entry.

    Returns False for a missing path, a regular file or an empty directory.

    Raises:
        InvalidArgumentError: If path is None

    """
    _require(path, "path")
    if not path.is_dir():
        return False
    try:
        return any(path.iterdir())
    except OSError as e:
        msg = f"Cannot list {path}: {e}"
        raise ExtensionIOError(msg) from e


def delete_recursively(path: Path | None, *, use_trash: bool = True) -> None:
    """Delete a file or a whole directory tree.

    The path is moved to the trash when use_trash is set and the platform
    supports it; otherwise, or when moving fails, it is permanently deleted.
    A path that no longer exists is ignored.

    Raises:
        InvalidArgumentError: If path is None
        ExtensionIOError: If the path cannot be deleted

    """
    _require(path, "path")
    if not path.exists() and not path.is_symlink():
        logger.debug("Nothing to delete at %s", path)
        return

    if use_trash:
        try:
            send2trash(path)
            logger.debug("Moved %s to trash", path)
            return
        except OSError as e:
            logger.debug(
                "Cannot move %s to trash (%s), deleting it instead", path, e
            )

    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink(missing_ok=True)
    except FileNotFoundError:
        logger.debug("%s disappeared during deletion", path)
    except OSError as e:
        msg = f"Cannot delete {path}: {e}"
        raise ExtensionIOError(msg) from e
    logger.debug("Deleted %s", path)


def file_name_from_uri(uri: str | None) -> str:
    """Return the last path segment of a URI.

    Example:
        >>> file_name_from_uri("https://github.com/o/r/releases/a.jar")
        'a.jar'

    Raises:
        InvalidArgumentError: If uri is None or has no path segment

    """
    _require(uri, "uri")
    name = PurePosixPath(unquote(urlparse(uri).path)).name
    if not name:
        msg = f"The URI {uri} has no file name"
        raise InvalidArgumentError(msg)
    return name


def is_ancestor_of(parent: Path | None, child: Path | None) -> bool:
    """Tell whether child is parent itself or nested under it.

    Both paths are normalized first, so ``..`` segments and symlinks cannot
    escape the parent.

    Raises:
        InvalidArgumentError: If an argument is None

    """
    _require(parent, "parent")
    _require(child, "child")
    return child.resolve(strict=False).is_relative_to(
        parent.resolve(strict=False)
    )
