"""Host application version parsing and ordering.

Versions look like ``v[MAJOR].[MINOR].[PATCH]`` with an optional
``-rc[N]`` release candidate qualifier. Minor and patch numbers may be left
out, in which case the version stands for a whole family: ``v0.5`` compares
equal to every ``v0.5.x``. Other trailing qualifiers (``-SNAPSHOT``) are
accepted and ignored.
"""

from __future__ import annotations

import functools
import re
from dataclasses import dataclass

from packaging.version import Version as PackagingVersion

_VERSION_RE = re.compile(
    r"""
    ^v
    (?P<major>\d+)
    (?:\.(?P<minor>\d+))?
    (?:\.(?P<patch>\d+))?
    (?:-rc(?P<rc>\d+))?
    """,
    re.VERBOSE,
)


@functools.total_ordering
@dataclass(frozen=True, slots=True, eq=False)
class Version:
    """A parsed host or release version."""

    major: int
    minor: int | None = None
    patch: int | None = None
    release_candidate: int | None = None

    @classmethod
    def parse(cls, text: str) -> Version:
        """Parse a version string.

        Raises:
            ValueError: If the text does not start with a version

        """
        match = _VERSION_RE.match(text)
        if not match:
            msg = f"Version not found in '{text}'"
            raise ValueError(msg)

        def _group(name: str) -> int | None:
            value = match.group(name)
            return None if value is None else int(value)

        return cls(
            major=int(match.group("major")),
            minor=_group("minor"),
            patch=_group("patch"),
            release_candidate=_group("rc"),
        )

    @classmethod
    def is_valid(cls, text: str, *, require_minor_and_patch: bool) -> bool:
        """Tell whether the text is a version, optionally a complete one."""
        try:
            version = cls.parse(text)
        except ValueError:
            return False
        return not require_minor_and_patch or version.is_complete

    @property
    def is_complete(self) -> bool:
        """Whether both minor and patch numbers are present."""
        return self.minor is not None and self.patch is not None

    def compare(self, other: Version) -> int:
        """Return a negative, zero or positive number like a comparator.

        Missing minor or patch numbers match anything at that position.
        """
        if self.major != other.major:
            return self.major - other.major
        if self.minor is None or other.minor is None:
            return 0
        if self.minor != other.minor:
            return self.minor - other.minor
        if self.patch is None or other.patch is None:
            return 0

        mine, theirs = self._as_pep440(), other._as_pep440()
        if mine < theirs:
            return -1
        if mine > theirs:
            return 1
        return 0

    def _as_pep440(self) -> PackagingVersion:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.release_candidate is not None:
            text += f"rc{self.release_candidate}"
        return PackagingVersion(text)

    def __eq__(self, other: object) -> bool:
        """Compare versions, treating missing numbers as wildcards."""
        if not isinstance(other, Version):
            return NotImplemented
        return self.compare(other) == 0

    def __lt__(self, other: Version) -> bool:
        """Order versions, release candidates before final releases."""
        return self.compare(other) < 0

    def __hash__(self) -> int:
        """Hash on the major number only, families compare equal."""
        return hash(self.major)

    def __str__(self) -> str:
        """Render the version in its canonical ``v`` form."""
        text = f"v{self.major}"
        if self.minor is not None:
            text += f".{self.minor}"
        if self.patch is not None:
            text += f".{self.patch}"
        if self.release_candidate is not None:
            text += f"-rc{self.release_candidate}"
        return text
