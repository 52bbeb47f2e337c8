"""Semantic version value type.

``Version`` is an immutable value with a total order and a string round-trip.
Parsing is delegated to the ``semver`` package; bumping strategies live in
:mod:`release_conductor.versioning` and always construct new instances.
"""

from __future__ import annotations

import functools
from dataclasses import dataclass, field, replace

import semver

from .errors import VersionParseError


@functools.total_ordering
@dataclass(frozen=True)
class Version:
    """An immutable semantic version.

    Attributes:
        major: Major version number.
        minor: Minor version number.
        patch: Patch version number.
        pre_release: Optional pre-release tag (e.g. ``"beta.1"``, ``"SNAPSHOT"``).
        build: Optional build metadata, ignored by comparisons and hashing.
    """

    major: int
    minor: int
    patch: int
    pre_release: str | None = None
    build: str | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        for part in (self.major, self.minor, self.patch):
            if part < 0:
                raise VersionParseError(str(self), "components must be non-negative")

    @classmethod
    def parse(cls, version_str: str) -> Version:
        """Parse ``MAJOR.MINOR.PATCH[-pre][+build]``, with an optional ``v``.

        Raises:
            VersionParseError: If the string is not a complete semver.
        """
        return cls._from_semver(_parse_semver(version_str, lenient=False))

    @classmethod
    def _from_semver(cls, parsed: semver.Version) -> Version:
        return cls(
            major=parsed.major,
            minor=parsed.minor,
            patch=parsed.patch,
            pre_release=parsed.prerelease,
            build=parsed.build,
        )

    def with_pre_release(self, pre_release: str | None) -> Version:
        """Return a copy with the pre-release tag replaced."""
        return replace(self, pre_release=pre_release)

    @property
    def is_snapshot(self) -> bool:
        return bool(self.pre_release and "SNAPSHOT" in self.pre_release)

    def _sort_key(self) -> tuple[int, int, int, bool, str]:
        # A version without a pre-release sorts above the same version with one
        return (
            self.major,
            self.minor,
            self.patch,
            self.pre_release is None,
            self.pre_release or "",
        )

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._sort_key() < other._sort_key()

    def __str__(self) -> str:
        pre = f"-{self.pre_release}" if self.pre_release else ""
        build = f"+{self.build}" if self.build else ""
        return f"{self.major}.{self.minor}.{self.patch}{pre}{build}"


def _parse_semver(version_str: str, lenient: bool) -> semver.Version:
    text = version_str.strip()
    if text.startswith("v"):
        text = text[1:]
    try:
        return semver.Version.parse(text, optional_minor_and_patch=lenient)
    except (ValueError, TypeError) as e:
        raise VersionParseError(version_str, str(e)) from e


def parse_version(version_str: str) -> Version:
    """Parse a possibly incomplete version string.

    Handles incomplete versions by padding with zeros:
    - "1" → "1.0.0"
    - "1.2" → "1.2.0"
    - "1.2.3-beta" → "1.2.3-beta"

    Raises:
        VersionParseError: If the string cannot be read as a version at all.
    """
    return Version._from_semver(_parse_semver(version_str, lenient=True))


def bump_patch(version_str: str) -> str:
    """Increment the patch version and return as a string.

    Pre-release tags are dropped, as a bumped dependent is a final release.

    Examples:
        "1.2.3" → "1.2.4"
        "1.0" → "1.0.1"
        "2.0.0-beta" → "2.0.1"
    """
    return str(_parse_semver(version_str, lenient=True).bump_patch())
