"""Release configuration models.

The configuration file maps tracked paths to per-path settings, plus
repository-wide defaults that every path inherits::

    {
      "release-type": "node",
      "bump-minor-pre-major": true,
      "plugins": ["node-workspace"],
      "packages": {
        "packages/a": {},
        "packages/b": {"component": "b", "changelog-path": "HISTORY.md"}
      }
    }

A second file, the manifest, maps the same paths to their last released
version.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .commit_split import ROOT_PROJECT_PATH
from .errors import ConfigurationError, VersionParseError
from .release_notes import ChangelogSection
from .version import Version

logger = structlog.get_logger(__name__)

DEFAULT_CONFIG_FILE = "release-conductor-config.json"
DEFAULT_MANIFEST_FILE = ".release-conductor-manifest.json"
DEFAULT_LABELS = ["autorelease: pending"]
DEFAULT_RELEASE_LABELS = ["autorelease: tagged"]


def _kebab(name: str) -> str:
    return name.replace("_", "-")


class ReleaseType(str, Enum):
    """Ecosystems with a release strategy."""

    SIMPLE = "simple"
    NODE = "node"
    PYTHON = "python"
    JAVA_YOSHI = "java-yoshi"
    PHP_YOSHI = "php-yoshi"


class VersioningType(str, Enum):
    DEFAULT = "default"
    ALWAYS_BUMP_PATCH = "always-bump-patch"
    ALWAYS_BUMP_MINOR = "always-bump-minor"
    ALWAYS_BUMP_MAJOR = "always-bump-major"
    SERVICE_PACK = "service-pack"
    JAVA_LTS = "java-lts"
    DEPENDENCY_MANIFEST = "dependency-manifest"


class PluginType(str, Enum):
    NODE_WORKSPACE = "node-workspace"
    PYTHON_WORKSPACE = "python-workspace"


class ReleaserConfig(BaseModel):
    """Settings for one tracked path.

    Attributes:
        release_type: Ecosystem of the path, selects the release strategy.
        versioning: How the next version is derived from commits.
        bump_minor_pre_major: Below 1.0.0, breaking changes bump minor.
        bump_patch_for_minor_pre_major: Below 1.0.0, features bump patch.
        changelog_sections: Commit type → changelog section mapping.
        changelog_path: Changelog file, relative to the path.
        release_as: Force the next version.
        skip_github_release: Do not create a hosted release after merge.
        draft: Create hosted releases as drafts.
        component: Name used in tags, branches and titles.
        package_name: Package name, when it cannot be read from a manifest.
        version_file: Extra file holding the version (ecosystem specific).
        extra_files: Additional files with version markers to update.
    """

    model_config = ConfigDict(
        alias_generator=_kebab, populate_by_name=True, extra="ignore", frozen=True
    )

    release_type: ReleaseType = ReleaseType.SIMPLE
    versioning: VersioningType = VersioningType.DEFAULT
    bump_minor_pre_major: bool = False
    bump_patch_for_minor_pre_major: bool = False
    changelog_sections: list[ChangelogSection] | None = None
    changelog_path: str = "CHANGELOG.md"
    release_as: str | None = None
    skip_github_release: bool = False
    draft: bool = False
    component: str | None = None
    package_name: str | None = None
    version_file: str | None = None
    extra_files: list[str] = Field(default_factory=list)


class ManifestConfig(BaseModel):
    """Top-level configuration file contents."""

    model_config = ConfigDict(alias_generator=_kebab, populate_by_name=True, extra="ignore")

    packages: dict[str, ReleaserConfig] = Field(default_factory=dict)
    bootstrap_sha: str | None = None
    last_release_sha: str | None = None
    separate_pull_requests: bool = False
    plugins: list[PluginType] = Field(default_factory=list)
    labels: list[str] = Field(default_factory=lambda: list(DEFAULT_LABELS))
    release_labels: list[str] = Field(default_factory=lambda: list(DEFAULT_RELEASE_LABELS))


def normalize_path(path: str) -> str:
    """Normalize a tracked path key (``./a/`` → ``a``, ``""`` → ``.``)."""
    path = path.strip()
    if path in ("", "/", ".", "./"):
        return ROOT_PROJECT_PATH
    return path.removeprefix("./").strip("/")


_TOP_LEVEL_KEYS = {
    "packages",
    "bootstrap-sha",
    "last-release-sha",
    "separate-pull-requests",
    "plugins",
    "labels",
    "release-labels",
}


def parse_config(raw: dict[str, Any]) -> ManifestConfig:
    """Build a ManifestConfig, merging top-level defaults into each package.

    Raises:
        ConfigurationError: If the config fails validation.
    """
    defaults = {k: v for k, v in raw.items() if k not in _TOP_LEVEL_KEYS}
    packages = raw.get("packages") or {}
    if not isinstance(packages, dict) or not packages:
        raise ConfigurationError("Configuration must define at least one path in 'packages'")

    merged = {
        normalize_path(path): {**defaults, **(package or {})} for path, package in packages.items()
    }
    top_level = {k: v for k, v in raw.items() if k in _TOP_LEVEL_KEYS and k != "packages"}
    try:
        return ManifestConfig.model_validate({**top_level, "packages": merged})
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def parse_config_content(content: str) -> ManifestConfig:
    try:
        raw = json.loads(content)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Configuration is not valid JSON: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigurationError("Configuration must be a JSON object")
    return parse_config(raw)


def parse_released_versions(content: str) -> dict[str, Version]:
    """Parse the manifest file (path → last released version string).

    Entries with an unparseable version are logged and skipped.

    Raises:
        ConfigurationError: If the manifest is not a JSON object.
    """
    try:
        raw = json.loads(content)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Manifest is not valid JSON: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigurationError("Manifest must be a JSON object")

    versions: dict[str, Version] = {}
    for path, version_str in raw.items():
        try:
            versions[normalize_path(path)] = Version.parse(str(version_str))
        except VersionParseError:
            logger.warning("invalid_manifest_version", path=path, version=version_str)
    return versions
