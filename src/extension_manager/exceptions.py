"""Exception classes for extension-manager operations."""


class ExtensionManagerError(Exception):
    """Base exception for extension-manager operations."""

    error_prefix: str = "Operation failed"

    def __init__(self, message: str, target: str | None = None) -> None:
        """Initialize error with message and optional target.

        Args:
            message: Error message describing the failure.
            target: Optional name of the catalog or extension that failed.

        """
        super().__init__(message)
        self.message = message
        self.target = target

    def __str__(self) -> str:
        """Return formatted error message."""
        if self.target:
            return f"{self.error_prefix} for '{self.target}': {self.message}"
        return f"{self.error_prefix}: {self.message}"


class ValidationError(ExtensionManagerError):
    """Raised when catalog content breaks a model invariant.

    Attributes:
        field: Name of the offending field.
        container: Name of the object type holding the field.

    """

    error_prefix = "Validation failed"

    def __init__(
        self,
        message: str,
        field: str | None = None,
        container: str | None = None,
    ) -> None:
        """Initialize with the offending field and its containing object."""
        super().__init__(message, target=container)
        self.field = field
        self.container = container


class MalformedCatalogError(ExtensionManagerError):
    """Raised when a fetched catalog document cannot be parsed."""

    error_prefix = "Malformed catalog"


class NetworkError(ExtensionManagerError):
    """Raised when a request fails. The caller may retry."""

    error_prefix = "Network request failed"


class ConflictError(ExtensionManagerError):
    """Raised when an operation is already running for the same extension."""

    error_prefix = "Operation already in progress"


class NotInstalledError(ExtensionManagerError):
    """Raised when uninstalling an extension that is not installed."""

    error_prefix = "Extension not installed"


class DuplicateNameError(ExtensionManagerError):
    """Raised when adding a catalog source whose name is already taken."""

    error_prefix = "Duplicate catalog name"


class NotDeletableError(ExtensionManagerError):
    """Raised when removing one of the default catalog sources."""

    error_prefix = "Catalog cannot be removed"


class ExtensionIOError(ExtensionManagerError, OSError):
    """Raised when reading, writing or deleting files fails."""

    error_prefix = "File operation failed"


class InvalidArgumentError(ExtensionManagerError, ValueError):
    """Raised when a required argument is missing or unusable."""

    error_prefix = "Invalid argument"


class InstallationCancelledError(ExtensionManagerError):
    """Passed to the completion callback when an installation is cancelled."""

    error_prefix = "Installation cancelled"


class ConfigurationError(ExtensionManagerError):
    """Raised when settings or logging cannot be configured."""

    error_prefix = "Configuration error"
