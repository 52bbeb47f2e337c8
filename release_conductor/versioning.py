"""Versioning strategies: how the next version follows from the commits.

Every strategy implements the same three steps:

- ``determine_release_type(version, commits)`` picks major, minor or patch.
- ``do_bump(version, bump_type)`` applies that bump.
- ``bump(version, commits)`` chains the two.

Strategies whose state machine depends on the current version (Java snapshots
and LTS service packs) override ``bump``; all others only override the first
two steps.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections.abc import Sequence
from enum import Enum

import structlog

from .errors import VersionParseError
from .models import ConventionalCommit
from .version import Version, parse_version

logger = structlog.get_logger(__name__)


class BumpType(str, Enum):
    """Semver bump types, ordered by precedence (highest first)."""

    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"


BUMP_PRECEDENCE: list[BumpType] = [
    BumpType.MAJOR,
    BumpType.MINOR,
    BumpType.PATCH,
]


def max_bump(a: BumpType, b: BumpType) -> BumpType:
    """Return the higher-precedence bump type.

    >>> max_bump(BumpType.MINOR, BumpType.PATCH)
    <BumpType.MINOR: 'minor'>
    """
    a_idx = BUMP_PRECEDENCE.index(a)
    b_idx = BUMP_PRECEDENCE.index(b)
    return BUMP_PRECEDENCE[min(a_idx, b_idx)]


class VersioningStrategy(ABC):
    """Maps a current version and a set of commits to the next version."""

    @abstractmethod
    def determine_release_type(
        self, version: Version, commits: Sequence[ConventionalCommit]
    ) -> BumpType:
        """Decide which component of ``version`` the commits call for bumping."""

    @abstractmethod
    def do_bump(self, version: Version, bump_type: BumpType) -> Version:
        """Apply ``bump_type`` to ``version``."""

    def bump(self, version: Version, commits: Sequence[ConventionalCommit]) -> Version:
        return self.do_bump(version, self.determine_release_type(version, commits))


class DefaultVersioningStrategy(VersioningStrategy):
    """Conventional commits bumping.

    Any breaking change bumps major, otherwise any feature bumps minor,
    otherwise patch. Before 1.0.0 the two flags soften the bump so that a
    project does not signal a stable API by accident.

    Args:
        bump_minor_pre_major: Below 1.0.0, breaking changes bump minor.
        bump_patch_for_minor_pre_major: Below 1.0.0, features bump patch.
    """

    def __init__(
        self,
        bump_minor_pre_major: bool = False,
        bump_patch_for_minor_pre_major: bool = False,
    ) -> None:
        self.bump_minor_pre_major = bump_minor_pre_major
        self.bump_patch_for_minor_pre_major = bump_patch_for_minor_pre_major

    def determine_release_type(
        self, version: Version, commits: Sequence[ConventionalCommit]
    ) -> BumpType:
        bump_type = BumpType.PATCH
        if any(commit.breaking for commit in commits):
            bump_type = BumpType.MAJOR
        elif any(commit.type in ("feat", "feature") for commit in commits):
            bump_type = BumpType.MINOR
        return self._demote_pre_major(version, bump_type)

    def _demote_pre_major(self, version: Version, bump_type: BumpType) -> BumpType:
        if version >= Version(1, 0, 0):
            return bump_type
        if self.bump_minor_pre_major and bump_type == BumpType.MAJOR:
            return BumpType.MINOR
        if self.bump_patch_for_minor_pre_major and bump_type == BumpType.MINOR:
            return BumpType.PATCH
        return bump_type

    def do_bump(self, version: Version, bump_type: BumpType) -> Version:
        # Lower components reset; pre-release and build metadata carry over
        if bump_type == BumpType.MAJOR:
            return Version(version.major + 1, 0, 0, version.pre_release, version.build)
        if bump_type == BumpType.MINOR:
            return Version(version.major, version.minor + 1, 0, version.pre_release, version.build)
        return Version(
            version.major, version.minor, version.patch + 1, version.pre_release, version.build
        )


class AlwaysBumpPatch(DefaultVersioningStrategy):
    def determine_release_type(
        self, version: Version, commits: Sequence[ConventionalCommit]
    ) -> BumpType:
        return BumpType.PATCH


class AlwaysBumpMinor(DefaultVersioningStrategy):
    def determine_release_type(
        self, version: Version, commits: Sequence[ConventionalCommit]
    ) -> BumpType:
        return BumpType.MINOR


class AlwaysBumpMajor(DefaultVersioningStrategy):
    def determine_release_type(
        self, version: Version, commits: Sequence[ConventionalCommit]
    ) -> BumpType:
        return BumpType.MAJOR


SERVICE_PACK_PATTERN = re.compile(r"sp\.(\d+)")


class ServicePackVersioningStrategy(DefaultVersioningStrategy):
    """Post-release patch train: ``1.2.3`` → ``1.2.3-sp.1`` → ``1.2.3-sp.2``."""

    def determine_release_type(
        self, version: Version, commits: Sequence[ConventionalCommit]
    ) -> BumpType:
        return BumpType.PATCH

    def do_bump(self, version: Version, bump_type: BumpType) -> Version:
        match = SERVICE_PACK_PATTERN.search(version.pre_release or "")
        if match:
            return version.with_pre_release(f"sp.{int(match.group(1)) + 1}")
        return version.with_pre_release("sp.1")


LTS_PATTERN = re.compile(r"sp\.(\d+)(-SNAPSHOT)?")


class JavaLTSVersioningStrategy(DefaultVersioningStrategy):
    """Service packs for Java LTS branches, alternating with snapshots.

    ``1.2.3`` → ``1.2.3-sp.1-SNAPSHOT`` → ``1.2.3-sp.1`` → ``1.2.3-sp.2-SNAPSHOT``
    """

    def bump(self, version: Version, commits: Sequence[ConventionalCommit]) -> Version:
        if "sp." not in (version.pre_release or ""):
            return version.with_pre_release("sp.1-SNAPSHOT")
        return super().bump(version, commits)

    def do_bump(self, version: Version, bump_type: BumpType) -> Version:
        match = LTS_PATTERN.search(version.pre_release or "")
        if not match:
            return version.with_pre_release("sp.1-SNAPSHOT")
        sp_number = int(match.group(1))
        if match.group(2):
            return version.with_pre_release(f"sp.{sp_number}")
        return version.with_pre_release(f"sp.{sp_number + 1}-SNAPSHOT")


SNAPSHOT_SUFFIX_PATTERN = re.compile(r"-?SNAPSHOT")


class JavaSnapshot(VersioningStrategy):
    """Wraps another strategy with Java's release/snapshot alternation.

    A released version moves to the next patch snapshot; a snapshot is
    released using the wrapped strategy's bump with the suffix removed.

    Example:
        ``1.2.3`` → ``1.2.4-SNAPSHOT`` → (with a feat commit) ``1.3.0``
    """

    def __init__(self, strategy: VersioningStrategy) -> None:
        self.strategy = strategy

    def determine_release_type(
        self, version: Version, commits: Sequence[ConventionalCommit]
    ) -> BumpType:
        return self.strategy.determine_release_type(version, commits)

    def do_bump(self, version: Version, bump_type: BumpType) -> Version:
        return self.strategy.do_bump(version, bump_type)

    def bump(self, version: Version, commits: Sequence[ConventionalCommit]) -> Version:
        if not version.is_snapshot:
            next_patch = self.strategy.do_bump(version, BumpType.PATCH)
            pre_release = (
                f"{next_patch.pre_release}-SNAPSHOT" if next_patch.pre_release else "SNAPSHOT"
            )
            return next_patch.with_pre_release(pre_release)

        bump_type = self.determine_release_type(version, commits)
        if bump_type != BumpType.PATCH:
            version = self.do_bump(version, bump_type)
        pre_release = SNAPSHOT_SUFFIX_PATTERN.sub("", version.pre_release or "", count=1)
        return version.with_pre_release(pre_release or None)


DEPENDENCY_UPDATE_PATTERN = re.compile(
    r"^deps: update dependency (.*) to (v.*)(\s\(#\d+\))?$", re.MULTILINE
)


class DependencyManifest(DefaultVersioningStrategy):
    """Bumps at least as much as the largest dependency update.

    Dependency bot commits look like ``deps: update dependency foo to v2``.
    A dependency moving to ``X.0.0`` is a major update, to ``X.Y.0`` a minor
    update, and anything else a patch update.
    """

    def determine_release_type(
        self, version: Version, commits: Sequence[ConventionalCommit]
    ) -> BumpType:
        bump_type = super().determine_release_type(version, commits)
        for dependency, dependency_version in self._dependency_updates(commits).items():
            if dependency_version.patch != 0:
                dependency_bump = BumpType.PATCH
            elif dependency_version.minor != 0:
                dependency_bump = BumpType.MINOR
            else:
                dependency_bump = BumpType.MAJOR
            logger.debug(
                "dependency_update",
                dependency=dependency,
                version=str(dependency_version),
                bump_type=dependency_bump.value,
            )
            bump_type = max_bump(bump_type, dependency_bump)
        return self._demote_pre_major(version, bump_type)

    @staticmethod
    def _dependency_updates(commits: Sequence[ConventionalCommit]) -> dict[str, Version]:
        updates: dict[str, Version] = {}
        for commit in commits:
            match = DEPENDENCY_UPDATE_PATTERN.search(commit.message)
            if match is None:
                continue
            dependency = match.group(1)
            if dependency in updates:
                continue
            version_str = match.group(2).split()[0]
            try:
                updates[dependency] = parse_version(version_str)
            except VersionParseError:
                logger.warning(
                    "invalid_dependency_version", dependency=dependency, version=version_str
                )
        return updates
