"""Pytest configuration and fixtures for extension-manager tests."""

import logging
import os
import tempfile

# Keep the log file out of the user's home directory. This must happen
# before the package creates its first logger.
os.environ.setdefault(
    "EXTENSION_MANAGER_LOG_DIR", tempfile.mkdtemp(prefix="extension-manager-")
)

from collections.abc import Callable  # noqa: E402
from typing import Any  # noqa: E402

import pytest  # noqa: E402

from extension_manager.domain import (  # noqa: E402
    Catalog,
    CatalogSource,
    Extension,
)

CatalogDictFactory = Callable[..., dict[str, Any]]
ReleaseDictFactory = Callable[..., dict[str, Any]]


@pytest.fixture(autouse=True)
def enable_log_propagation():
    """Enable log propagation for all loggers during tests.

    This allows pytest's caplog fixture to capture logs from all loggers,
    even those created with propagate=False in production code.
    """
    original_propagation = {}
    for name in list(logging.Logger.manager.loggerDict.keys()):
        if name.startswith("extension_manager"):
            logger = logging.getLogger(name)
            original_propagation[name] = logger.propagate
            logger.propagate = True

    yield

    for name, propagate_value in original_propagation.items():
        logger = logging.getLogger(name)
        logger.propagate = propagate_value


@pytest.fixture
def release_dict() -> ReleaseDictFactory:
    """Build the JSON object of a release."""

    def _build(
        name: str = "v0.1.0",
        *,
        required: tuple[str, ...] = (),
        optional: tuple[str, ...] = (),
        javadocs: tuple[str, ...] = (),
        min_version: str = "v0.6.0",
        max_version: str | None = None,
    ) -> dict[str, Any]:
        versions: dict[str, Any] = {"min": min_version}
        if max_version is not None:
            versions["max"] = max_version
        data: dict[str, Any] = {
            "name": name,
            "mainUrl": (
                "https://github.com/org/ext/releases/download/"
                f"{name}/ext-{name}.jar"
            ),
            "versions": versions,
        }
        if required:
            data["requiredDependencyUrls"] = list(required)
        if optional:
            data["optionalDependencyUrls"] = list(optional)
        if javadocs:
            data["javadocsUrls"] = list(javadocs)
        return data

    return _build


@pytest.fixture
def catalog_dict(release_dict: ReleaseDictFactory) -> CatalogDictFactory:
    """Build the JSON document of a catalog with one extension."""

    def _build(
        *releases: dict[str, Any],
        name: str = "Test catalog",
        extension_name: str = "Test extension",
    ) -> dict[str, Any]:
        return {
            "name": name,
            "description": "Catalog used in tests",
            "extensions": [
                {
                    "name": extension_name,
                    "description": "Extension used in tests",
                    "author": "Tester",
                    "homepage": "https://github.com/org/ext",
                    "releases": list(releases) or [release_dict()],
                }
            ],
        }

    return _build


@pytest.fixture
def make_extension(
    catalog_dict: CatalogDictFactory,
) -> Callable[..., Extension]:
    """Build a validated extension from release objects."""

    def _build(*releases: dict[str, Any]) -> Extension:
        return Catalog.from_dict(catalog_dict(*releases)).extensions[0]

    return _build


@pytest.fixture
def catalog_source() -> CatalogSource:
    """A registered catalog source."""
    return CatalogSource(
        name="Test catalog",
        description="Catalog used in tests",
        uri="https://github.com/org/catalog",
        raw_uri="https://raw.githubusercontent.com/org/catalog/main/catalog.json",
    )
