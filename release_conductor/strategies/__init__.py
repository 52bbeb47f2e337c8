"""Release strategies, one per ecosystem, and the registry that builds them."""

from __future__ import annotations

import datetime as dt

from ..config import ReleaserConfig, ReleaseType, VersioningType
from ..github import Hosting
from ..versioning import (
    AlwaysBumpMajor,
    AlwaysBumpMinor,
    AlwaysBumpPatch,
    DefaultVersioningStrategy,
    DependencyManifest,
    JavaLTSVersioningStrategy,
    JavaSnapshot,
    ServicePackVersioningStrategy,
    VersioningStrategy,
)
from .base import BuildUpdatesOptions, Strategy
from .java_yoshi import JavaYoshi
from .node import Node
from .php_yoshi import PhpYoshi
from .python import Python
from .simple import Simple

STRATEGIES: dict[ReleaseType, type[Strategy]] = {
    ReleaseType.SIMPLE: Simple,
    ReleaseType.NODE: Node,
    ReleaseType.PYTHON: Python,
    ReleaseType.JAVA_YOSHI: JavaYoshi,
    ReleaseType.PHP_YOSHI: PhpYoshi,
}

VERSIONING_STRATEGIES: dict[VersioningType, type[DefaultVersioningStrategy]] = {
    VersioningType.DEFAULT: DefaultVersioningStrategy,
    VersioningType.ALWAYS_BUMP_PATCH: AlwaysBumpPatch,
    VersioningType.ALWAYS_BUMP_MINOR: AlwaysBumpMinor,
    VersioningType.ALWAYS_BUMP_MAJOR: AlwaysBumpMajor,
    VersioningType.SERVICE_PACK: ServicePackVersioningStrategy,
    VersioningType.JAVA_LTS: JavaLTSVersioningStrategy,
    VersioningType.DEPENDENCY_MANIFEST: DependencyManifest,
}


def build_versioning_strategy(config: ReleaserConfig) -> VersioningStrategy:
    """Build the versioning strategy a path's config asks for.

    Java repositories wrap it in the snapshot alternation, unless the LTS
    strategy already alternates on its own.
    """
    strategy: VersioningStrategy = VERSIONING_STRATEGIES[config.versioning](
        bump_minor_pre_major=config.bump_minor_pre_major,
        bump_patch_for_minor_pre_major=config.bump_patch_for_minor_pre_major,
    )
    is_java = config.release_type == ReleaseType.JAVA_YOSHI
    if is_java and config.versioning != VersioningType.JAVA_LTS:
        strategy = JavaSnapshot(strategy)
    return strategy


def build_strategy(
    config: ReleaserConfig,
    hosting: Hosting,
    target_branch: str,
    path: str,
    release_date: dt.date | None = None,
) -> Strategy:
    """Instantiate the strategy registered for ``config.release_type``."""
    strategy_cls = STRATEGIES[config.release_type]
    return strategy_cls(
        hosting,
        target_branch,
        path=path,
        config=config,
        versioning_strategy=build_versioning_strategy(config),
        release_date=release_date,
    )


__all__ = [
    "BuildUpdatesOptions",
    "JavaYoshi",
    "Node",
    "PhpYoshi",
    "Python",
    "STRATEGIES",
    "Simple",
    "Strategy",
    "build_strategy",
    "build_versioning_strategy",
]
