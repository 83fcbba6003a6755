"""Catalog model and validator.

A catalog is an immutable value graph: Catalog → Extension → Release →
VersionRange. Every node validates itself when constructed, so an invalid
node never exists as a live object. Nodes are built from parsed JSON with
the ``from_dict`` class methods, which accept the camelCase keys of the
catalog document and their snake_case aliases. Unknown keys are ignored.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlparse

from extension_manager.constants import (
    SOURCE_HOST,
    TRUSTED_HOSTS,
    TRUSTED_SCHEME,
)
from extension_manager.domain.installation import check_directory_name
from extension_manager.domain.version import Version
from extension_manager.exceptions import ValidationError
from extension_manager.logger import get_logger

logger = get_logger(__name__)


def _check_present(value: Any, field: str, container: str) -> None:
    if value is None:
        msg = f"'{field}' field not found in {container}"
        raise ValidationError(msg, field=field, container=container)


def _check_type(
    value: Any, expected: type | tuple[type, ...], field: str, container: str
) -> None:
    if not isinstance(value, expected):
        msg = (
            f"'{field}' field of {container} has type "
            f"{type(value).__name__}"
        )
        raise ValidationError(msg, field=field, container=container)


def _check_version(
    text: str, field: str, container: str, *, complete: bool = False
) -> Version:
    _check_type(text, str, field, container)
    if not Version.is_valid(text, require_minor_and_patch=complete):
        qualifier = " with minor and patch numbers" if complete else ""
        msg = (
            f"'{field}' of {container} must be a version "
            f"'v[MAJOR].[MINOR].[PATCH]'{qualifier}, got '{text}'"
        )
        raise ValidationError(msg, field=field, container=container)
    return Version.parse(text)


def _check_urls(
    urls: Sequence[str],
    field: str,
    container: str,
    allowed_hosts: Sequence[str],
) -> None:
    for url in urls:
        _check_type(url, str, field, container)
        try:
            parsed = urlparse(url)
            hostname = parsed.hostname
        except ValueError as e:
            msg = f"The URL {url} in '{field}' is malformed: {e}"
            raise ValidationError(msg, field=field, container=container) from e
        if parsed.scheme.lower() != TRUSTED_SCHEME:
            msg = f"The URL {url} in '{field}' must use {TRUSTED_SCHEME}"
            raise ValidationError(msg, field=field, container=container)
        if hostname not in allowed_hosts:
            msg = (
                f"The host of {url} in '{field}' is not among "
                f"{list(allowed_hosts)}"
            )
            raise ValidationError(msg, field=field, container=container)


def _pick(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return None


def _url_tuple(value: Any, field: str, container: str) -> tuple[str, ...]:
    if value is None:
        return ()
    _check_type(value, (list, tuple), field, container)
    return tuple(value)


def _require_mapping(data: Any, container: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        msg = f"{container} must be a JSON object, got {type(data).__name__}"
        raise ValidationError(msg, field=None, container=container)
    return data


@dataclass(frozen=True, slots=True)
class VersionRange:
    """Host versions a release is known to be compatible with.

    Attributes:
        min: Lowest compatible host version
        max: Highest compatible host version, or None for open-ended
        excludes: Specific incompatible versions within [min, max]

    """

    min: str
    max: str | None = None
    excludes: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        """Validate the range."""
        container = "VersionRange"
        _check_present(self.min, "min", container)
        min_version = _check_version(self.min, "min", container)

        max_version = None
        if self.max is not None:
            max_version = _check_version(self.max, "max", container)
            if min_version > max_version:
                msg = (
                    f"The min version '{self.min}' must be lower than or "
                    f"equal to the max version '{self.max}'"
                )
                raise ValidationError(msg, field="max", container=container)

        for excluded in self.excludes:
            excluded_version = _check_version(excluded, "excludes", container)
            if min_version > excluded_version:
                msg = (
                    f"The min version '{self.min}' must be lower than or "
                    f"equal to the excluded version '{excluded}'"
                )
                raise ValidationError(
                    msg, field="excludes", container=container
                )
            if max_version is not None and excluded_version > max_version:
                msg = (
                    f"The excluded version '{excluded}' must be lower than "
                    f"or equal to the max version '{self.max}'"
                )
                raise ValidationError(
                    msg, field="excludes", container=container
                )

    @classmethod
    def from_dict(cls, data: Any) -> VersionRange:
        """Build a range from the ``versions`` object of a release."""
        data = _require_mapping(data, "VersionRange")
        excludes = data.get("excludes")
        if excludes is not None:
            _check_type(excludes, (list, tuple), "excludes", "VersionRange")
        return cls(
            min=data.get("min"),
            max=data.get("max"),
            excludes=tuple(excludes or ()),
        )

    def is_compatible(self, version: Version | str) -> bool:
        """Tell whether a host version falls inside this range."""
        if isinstance(version, str):
            version = Version.parse(version)

        if Version.parse(self.min) > version:
            logger.debug("%s rejects %s: below minimum", self, version)
            return False
        if self.max is not None and version > Version.parse(self.max):
            logger.debug("%s rejects %s: above maximum", self, version)
            return False
        if any(Version.parse(excluded) == version for excluded in self.excludes):
            logger.debug("%s rejects %s: excluded", self, version)
            return False
        return True


@dataclass(frozen=True, slots=True)
class Release:
    """One installable version of an extension.

    Attributes:
        name: Version name of the release, e.g. ``v0.2.1``
        main_url: Where the main artifact is downloaded from
        required_dependency_urls: Artifacts always installed with the release
        optional_dependency_urls: Artifacts installed on request
        javadoc_urls: Documentation artifacts
        version_range: Compatible host versions

    """

    name: str
    main_url: str
    version_range: VersionRange
    required_dependency_urls: tuple[str, ...] = ()
    optional_dependency_urls: tuple[str, ...] = ()
    javadoc_urls: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        """Validate presence, naming and artifact provenance."""
        container = "Release"
        _check_present(self.name, "name", container)
        _check_present(self.main_url, "mainUrl", container)
        _check_present(self.version_range, "versions", container)

        _check_version(self.name, "name", container, complete=True)
        _check_type(self.version_range, VersionRange, "versions", container)

        _check_urls([self.main_url], "mainUrl", container, (SOURCE_HOST,))
        _check_urls(
            self.required_dependency_urls,
            "requiredDependencyUrls",
            container,
            TRUSTED_HOSTS,
        )
        _check_urls(
            self.optional_dependency_urls,
            "optionalDependencyUrls",
            container,
            TRUSTED_HOSTS,
        )
        _check_urls(self.javadoc_urls, "javadocsUrls", container, TRUSTED_HOSTS)

    @classmethod
    def from_dict(cls, data: Any) -> Release:
        """Build a release from one element of an extension's ``releases``."""
        data = _require_mapping(data, "Release")
        container = "Release"
        versions = _pick(data, "versions", "version_range", "versionRange")
        return cls(
            name=data.get("name"),
            main_url=_pick(data, "mainUrl", "main_url"),
            version_range=(
                None if versions is None else VersionRange.from_dict(versions)
            ),
            required_dependency_urls=_url_tuple(
                _pick(data, "requiredDependencyUrls", "required_dependency_urls"),
                "requiredDependencyUrls",
                container,
            ),
            optional_dependency_urls=_url_tuple(
                _pick(data, "optionalDependencyUrls", "optional_dependency_urls"),
                "optionalDependencyUrls",
                container,
            ),
            javadoc_urls=_url_tuple(
                _pick(data, "javadocsUrls", "javadocUrls", "javadoc_urls"),
                "javadocsUrls",
                container,
            ),
        )

    @property
    def version(self) -> Version:
        """The parsed release name."""
        return Version.parse(self.name)

    def is_compatible(self, host_version: Version | str) -> bool:
        """Tell whether this release can run on the given host version."""
        return self.version_range.is_compatible(host_version)


@dataclass(frozen=True, slots=True)
class Extension:
    """An installable add-on offered across one or more releases."""

    name: str
    description: str
    author: str
    homepage: str
    releases: tuple[Release, ...]
    starred: bool = False

    def __post_init__(self) -> None:
        """Validate presence of every descriptive field."""
        container = "Extension"
        for field in ("name", "description", "author", "homepage", "releases"):
            _check_present(getattr(self, field), field, container)
        _check_type(self.name, str, "name", container)
        check_directory_name(self.name, "name", container)
        _check_type(self.starred, bool, "starred", container)

    @classmethod
    def from_dict(cls, data: Any) -> Extension:
        """Build an extension and all its releases."""
        data = _require_mapping(data, "Extension")
        releases = data.get("releases")
        if releases is not None:
            _check_type(releases, (list, tuple), "releases", "Extension")
            releases = tuple(Release.from_dict(item) for item in releases)
        return cls(
            name=data.get("name"),
            description=data.get("description"),
            author=data.get("author"),
            homepage=data.get("homepage"),
            releases=releases,
            starred=bool(data.get("starred", False)),
        )

    def get_release(self, release_name: str) -> Release | None:
        """Return the release with the provided name, if any."""
        for release in self.releases:
            if release.name == release_name:
                return release
        return None

    def max_compatible_release(
        self, host_version: Version | str
    ) -> Release | None:
        """Return the newest release compatible with the host version."""
        best: Release | None = None
        for release in self.releases:
            if not release.is_compatible(host_version):
                continue
            if best is None or release.version > best.version:
                best = release
        return best


@dataclass(frozen=True, slots=True)
class Catalog:
    """A named collection of extensions fetched from a URI."""

    name: str
    description: str
    extensions: tuple[Extension, ...]

    def __post_init__(self) -> None:
        """Validate presence and extension name uniqueness."""
        container = "Catalog"
        _check_present(self.name, "name", container)
        _check_present(self.description, "description", container)
        _check_type(self.name, str, "name", container)
        check_directory_name(self.name, "name", container)
        _check_present(self.extensions, "extensions", container)

        names = [extension.name for extension in self.extensions]
        if len(set(names)) < len(names):
            msg = f"At least two extensions of {names} have the same name"
            raise ValidationError(msg, field="extensions", container=container)

    @classmethod
    def from_dict(cls, data: Any) -> Catalog:
        """Build and validate a whole catalog from its parsed document."""
        data = _require_mapping(data, "Catalog")
        extensions = data.get("extensions")
        if extensions is not None:
            _check_type(extensions, (list, tuple), "extensions", "Catalog")
            extensions = tuple(Extension.from_dict(item) for item in extensions)
        return cls(
            name=data.get("name"),
            description=data.get("description"),
            extensions=extensions,
        )

    def get_extension(self, extension_name: str) -> Extension | None:
        """Return the extension with the provided name, if any."""
        for extension in self.extensions:
            if extension.name == extension_name:
                return extension
        return None
