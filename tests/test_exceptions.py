"""Tests for the exception hierarchy."""

import pytest

from extension_manager.exceptions import (
    ConfigurationError,
    ConflictError,
    DuplicateNameError,
    ExtensionIOError,
    ExtensionManagerError,
    InstallationCancelledError,
    InvalidArgumentError,
    MalformedCatalogError,
    NetworkError,
    NotDeletableError,
    NotInstalledError,
    ValidationError,
)


@pytest.mark.parametrize(
    "error_class",
    [
        ConfigurationError,
        ConflictError,
        DuplicateNameError,
        ExtensionIOError,
        InstallationCancelledError,
        InvalidArgumentError,
        MalformedCatalogError,
        NetworkError,
        NotDeletableError,
        NotInstalledError,
        ValidationError,
    ],
)
def test_all_errors_share_the_base_class(error_class: type) -> None:
    """Test callers can catch every error with the base class."""
    assert issubclass(error_class, ExtensionManagerError)


def test_message_with_target() -> None:
    """Test the target is included in the message."""
    error = NetworkError("HTTP 404 Not Found", target="https://x/c.json")

    assert str(error) == (
        "Network request failed for 'https://x/c.json': HTTP 404 Not Found"
    )
    assert error.message == "HTTP 404 Not Found"


def test_message_without_target() -> None:
    """Test the prefix is used alone without a target."""
    assert str(ConflictError("busy")) == "Operation already in progress: busy"


def test_validation_error_fields() -> None:
    """Test the offending field and container are kept."""
    error = ValidationError("missing", field="mainUrl", container="Release")

    assert error.field == "mainUrl"
    assert error.container == "Release"
    assert "Release" in str(error)


def test_builtin_compatibility() -> None:
    """Test errors also match the matching builtin exceptions."""
    assert isinstance(ExtensionIOError("disk"), OSError)
    assert isinstance(InvalidArgumentError("bad"), ValueError)
