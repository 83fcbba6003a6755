"""Top-level package for extension-manager.

Discover, install, update and remove extensions described by remote JSON
catalogs.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("extension-manager")
except PackageNotFoundError:
    # Fallback for development environments where package isn't installed
    __version__ = "dev"
