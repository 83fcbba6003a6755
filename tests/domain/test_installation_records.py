"""Tests for catalog sources and installation records."""

import pytest

from extension_manager.domain.installation import (
    CatalogSource,
    ExtensionKey,
    InstallationRecord,
    UpdateAvailable,
)
from extension_manager.exceptions import ValidationError


def test_catalog_source_round_trip(catalog_source: CatalogSource) -> None:
    """Test a source survives serialization for the registry file."""
    assert CatalogSource.from_dict(catalog_source.to_dict()) == catalog_source


def test_catalog_source_defaults() -> None:
    """Test optional registry fields have defaults."""
    source = CatalogSource.from_dict(
        {"name": "A", "description": "d", "uri": "https://github.com/a/b"}
    )

    assert source.raw_uri is None
    assert source.deletable is True
    assert source.fetch_uri == "https://github.com/a/b"


def test_catalog_source_fetch_uri_prefers_raw_uri(
    catalog_source: CatalogSource,
) -> None:
    """Test the raw link is used for fetching when known."""
    assert catalog_source.fetch_uri == catalog_source.raw_uri


@pytest.mark.parametrize("missing", ["name", "description", "uri"])
def test_catalog_source_missing_field(missing: str) -> None:
    """Test registry entries without a required field are rejected."""
    data = {"name": "A", "description": "d", "uri": "https://github.com/a/b"}
    del data[missing]

    with pytest.raises(ValidationError) as exc_info:
        CatalogSource.from_dict(data)

    assert exc_info.value.field == missing


def test_extension_key_identity() -> None:
    """Test keys built from the same names are interchangeable."""
    first = ExtensionKey("catalog", "extension")
    second = ExtensionKey("catalog", "extension")

    assert first == second
    assert len({first, second}) == 1
    assert str(first) == "catalog/extension"


def test_installation_record_defaults() -> None:
    """Test optional dependencies are not installed by default."""
    assert InstallationRecord("v0.1.0") == InstallationRecord("v0.1.0", False)


def test_update_available_str() -> None:
    """Test updates render as a short summary."""
    update = UpdateAvailable("ext", "v0.1.0", "v0.2.0")

    assert str(update) == "ext: v0.1.0 -> v0.2.0"


@pytest.mark.parametrize("name", ["..", ".", "", "//"])
def test_catalog_source_name_must_be_a_directory_name(name: str) -> None:
    """Test a source cannot be named after a relative path segment."""
    with pytest.raises(ValidationError) as exc_info:
        CatalogSource(name=name, description="d", uri="https://github.com/a/b")

    assert exc_info.value.field == "name"
