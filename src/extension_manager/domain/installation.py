"""Installation state and catalog source records.

These types carry no IO. They describe what is installed, where catalogs
come from and which updates are available.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

from extension_manager.constants import INVALID_FILENAME_CHARACTERS
from extension_manager.exceptions import ValidationError

_INVALID_FILENAME_RE = re.compile(INVALID_FILENAME_CHARACTERS)
_UNSAFE_DIRECTORY_NAMES = frozenset({"", ".", ".."})


def check_directory_name(name: str, field: str, container: str) -> None:
    """Reject a name that cannot become a directory of its own.

    Catalog and extension names are stripped of invalid file name
    characters and joined to the extension directory. What is left must not
    be empty or a relative segment such as ``..``.

    Raises:
        ValidationError: If the stripped name is unusable

    """
    if _INVALID_FILENAME_RE.sub("", name) in _UNSAFE_DIRECTORY_NAMES:
        msg = (
            f"'{field}' of {container} cannot be used as a directory "
            f"name: {name!r}"
        )
        raise ValidationError(msg, field=field, container=container)


class ArtifactType(Enum):
    """Kinds of installed files, named after their directory."""

    MAIN_JAR = "main-jar"
    REQUIRED_DEPENDENCIES = "required-dependencies"
    OPTIONAL_DEPENDENCIES = "optional-dependencies"
    JAVADOCS_DEPENDENCIES = "javadocs-dependencies"


@dataclass(frozen=True, slots=True)
class Artifact:
    """One file to download for an installation."""

    url: str
    type: ArtifactType


@dataclass(frozen=True, slots=True)
class ExtensionKey:
    """Durable identity of an extension across catalog re-fetches."""

    catalog_name: str
    extension_name: str

    def __str__(self) -> str:
        """Return ``catalog/extension``."""
        return f"{self.catalog_name}/{self.extension_name}"


@dataclass(frozen=True, slots=True)
class InstallationRecord:
    """Installed version of an extension.

    Attributes:
        version: Name of the installed release
        optional_dependencies_installed: Whether optional dependencies
            were installed with it

    """

    version: str
    optional_dependencies_installed: bool = False


@dataclass(frozen=True, slots=True)
class CatalogSource:
    """Persisted pointer to a catalog.

    Attributes:
        name: Unique name of the source within the registry
        description: Short description shown to the user
        uri: Link given by the user, e.g. a GitHub repository
        raw_uri: Link to the catalog JSON document itself
        deletable: False for the default sources

    """

    name: str
    description: str
    uri: str
    raw_uri: str | None = None
    deletable: bool = True

    def __post_init__(self) -> None:
        """Validate the name, which becomes a directory name."""
        if not isinstance(self.name, str):
            msg = "'name' field of CatalogSource must be a string"
            raise ValidationError(msg, field="name", container="CatalogSource")
        check_directory_name(self.name, "name", "CatalogSource")

    @property
    def fetch_uri(self) -> str:
        """The URI the catalog document is fetched from."""
        return self.raw_uri or self.uri

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the registry file."""
        return {
            "name": self.name,
            "description": self.description,
            "uri": self.uri,
            "rawUri": self.raw_uri,
            "deletable": self.deletable,
        }

    @classmethod
    def from_dict(cls, data: Any) -> CatalogSource:
        """Deserialize one registry file entry.

        Raises:
            ValidationError: If a required field is missing

        """
        if not isinstance(data, dict):
            msg = f"Registry entry must be an object, got {type(data).__name__}"
            raise ValidationError(msg, container="CatalogSource")
        for field in ("name", "description", "uri"):
            if not isinstance(data.get(field), str):
                msg = f"'{field}' field not found in CatalogSource"
                raise ValidationError(
                    msg, field=field, container="CatalogSource"
                )
        return cls(
            name=data["name"],
            description=data["description"],
            uri=data["uri"],
            raw_uri=data.get("rawUri", data.get("raw_uri")),
            deletable=bool(data.get("deletable", True)),
        )


@dataclass(frozen=True, slots=True)
class UpdateAvailable:
    """A newer compatible release of an installed extension."""

    extension_name: str
    current_version: str
    new_version: str

    def __str__(self) -> str:
        """Return ``name: current -> new``."""
        return (
            f"{self.extension_name}: {self.current_version} -> "
            f"{self.new_version}"
        )
