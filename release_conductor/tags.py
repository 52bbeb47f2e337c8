"""Naming conventions for tags, release branches and pull request titles.

Each convention is a small value type that renders to a string and parses a
string back. Parsing never raises: an unrecognised name returns ``None`` so that
callers iterating over history can skip it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from .errors import VersionParseError
from .version import Version

TAG_PATTERN = re.compile(r"^((?P<component>.*)-)?v(?P<version>\d+\.\d+\.\d+.*)$")

BRANCH_PREFIX = "release-conductor/branches"
BRANCH_PATTERN = re.compile(
    rf"^{re.escape(BRANCH_PREFIX)}/(?P<branch>.+?)(?:/components/(?P<component>[^/]+))?$"
)

DEFAULT_PR_TITLE_PATTERN = "chore${scope}: release${component} ${version}"
MANIFEST_PR_TITLE_PATTERN = "chore${scope}: release"


@dataclass(frozen=True)
class TagName:
    """A release tag: ``[component-]vMAJOR.MINOR.PATCH``."""

    version: Version
    component: str | None = None

    @classmethod
    def parse(cls, tag_name: str) -> TagName | None:
        """Parse a tag, treating everything before the last ``-v`` as component."""
        match = TAG_PATTERN.match(tag_name)
        if not match:
            return None
        try:
            version = Version.parse(match.group("version"))
        except VersionParseError:
            return None
        return cls(version=version, component=match.group("component") or None)

    def __str__(self) -> str:
        if self.component:
            return f"{self.component}-v{self.version}"
        return f"v{self.version}"


@dataclass(frozen=True)
class BranchName:
    """Head branch of a release pull request."""

    target_branch: str
    component: str | None = None

    @classmethod
    def of_target_branch(cls, target_branch: str) -> BranchName:
        return cls(target_branch=target_branch)

    @classmethod
    def of_component_target_branch(cls, component: str, target_branch: str) -> BranchName:
        return cls(target_branch=target_branch, component=component or None)

    @classmethod
    def parse(cls, branch_name: str) -> BranchName | None:
        match = BRANCH_PATTERN.match(branch_name)
        if not match:
            return None
        return cls(target_branch=match.group("branch"), component=match.group("component"))

    def __str__(self) -> str:
        if self.component:
            return f"{BRANCH_PREFIX}/{self.target_branch}/components/{self.component}"
        return f"{BRANCH_PREFIX}/{self.target_branch}"


def _title_regex(pattern: str) -> re.Pattern[str]:
    """Compile a title pattern into a regex with named groups.

    The ``${...}`` placeholders are swapped for sentinels before escaping so
    that the surrounding literal text is matched exactly.
    """
    placeholders = {
        "${scope}": r"(?:\((?P<branch>[\w\-./]+)\))?",
        "${component}": r" ?(?P<component>[@\w\-./]*)?",
        "${version}": r"v?(?P<version>[0-9].*)",
        "${branch}": r"(?P<branch>[\w\-./]+)?",
    }
    escaped = re.escape(pattern)
    for placeholder, regex in placeholders.items():
        escaped = escaped.replace(re.escape(placeholder), regex)
    return re.compile(f"^{escaped}$")


@dataclass(frozen=True)
class PullRequestTitle:
    """Title of a release pull request.

    Example:
        ``chore(main): release some-node-package 0.123.5``
    """

    version: Version | None = None
    component: str | None = None
    target_branch: str | None = None
    pattern: str = DEFAULT_PR_TITLE_PATTERN

    @classmethod
    def of_component_target_branch_version(
        cls, component: str | None, target_branch: str | None, version: Version
    ) -> PullRequestTitle:
        return cls(version=version, component=component or None, target_branch=target_branch)

    @classmethod
    def of_target_branch(cls, target_branch: str) -> PullRequestTitle:
        return cls(target_branch=target_branch, pattern=MANIFEST_PR_TITLE_PATTERN)

    @classmethod
    def parse(cls, title: str, pattern: str = DEFAULT_PR_TITLE_PATTERN) -> PullRequestTitle | None:
        """Parse a title, returning None if it does not match ``pattern``."""
        match = _title_regex(pattern).match(title)
        if not match:
            return None
        groups = match.groupdict()
        version = None
        if groups.get("version"):
            try:
                version = Version.parse(groups["version"])
            except VersionParseError:
                return None
        return cls(
            version=version,
            component=groups.get("component") or None,
            target_branch=groups.get("branch") or None,
            pattern=pattern,
        )

    def __str__(self) -> str:
        scope = f"({self.target_branch})" if self.target_branch else ""
        component = f" {self.component}" if self.component else ""
        version = str(self.version) if self.version else ""
        return (
            self.pattern.replace("${scope}", scope)
            .replace("${component}", component)
            .replace("${version}", version)
            .replace("${branch}", self.target_branch or "")
            .strip()
        )
