"""Pure domain types without IO or infrastructure dependencies."""

from extension_manager.domain.catalog import (
    Catalog,
    Extension,
    Release,
    VersionRange,
)
from extension_manager.domain.installation import (
    Artifact,
    ArtifactType,
    CatalogSource,
    ExtensionKey,
    InstallationRecord,
    UpdateAvailable,
)
from extension_manager.domain.version import Version

__all__ = [
    "Artifact",
    "ArtifactType",
    "Catalog",
    "CatalogSource",
    "Extension",
    "ExtensionKey",
    "InstallationRecord",
    "Release",
    "UpdateAvailable",
    "Version",
    "VersionRange",
]
