"""Dependency-aware version propagation for monorepo workspaces.

When a package in a workspace is released, every package depending on it
needs its dependency range moved and, so that the new range gets published,
a release of its own. The plugin:

1. Splits off the candidates of its ecosystem (the root path excluded).
2. Loads every package of that ecosystem from the tracked paths.
3. Collects the released packages plus their transitive dependents.
4. Orders them so dependencies come before dependents.
5. Keeps the version of packages that already have a candidate and patch
   bumps the others.
6. Rewrites each manifest and records a "Dependencies" changelog section.
7. Merges the result into one candidate.
"""

from __future__ import annotations

import datetime as dt
import re
from abc import abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import ClassVar

import structlog

from ..commit_split import ROOT_PROJECT_PATH
from ..config import DEFAULT_MANIFEST_FILE, ReleaserConfig, ReleaseType
from ..errors import FileNotFoundOnBranchError, VersionParseError
from ..github import Hosting
from ..graph import collect_dependents, topo_sort
from ..models import CandidateReleasePullRequest, PackageInfo, ReleasePullRequest, Update
from ..pull_request_body import PullRequestBody, ReleaseData
from ..tags import BranchName, PullRequestTitle
from ..updaters import Changelog, RawContent, ReleaseManifest
from ..version import Version, bump_patch, parse_version
from .base import ManifestPlugin
from .merge import Merge

logger = structlog.get_logger(__name__)

DEPENDENCY_HEADER = re.compile(r"### Dependencies")

# Dependency type → list of (name, old specifier, new specifier)
DependencyChanges = dict[str, list[tuple[str, str, str]]]


@dataclass
class WorkspacePackage:
    """A package manifest loaded from the target branch.

    Attributes:
        name: Package name as other packages refer to it.
        path: Tracked path holding the manifest.
        version: Current version string.
        content: Raw manifest text.
        deps: Names of every dependency, internal or not.
    """

    name: str
    path: str
    version: str
    content: str
    deps: list[str] = field(default_factory=list)


def format_dependency_notes(changes: DependencyChanges) -> str:
    """Render the dependency bullets, or an empty string if nothing moved."""
    lines = []
    for dependency_type, entries in changes.items():
        if not entries:
            continue
        lines.append(f"  * {dependency_type}")
        lines.extend(f"    * {name} bumped from {old} to {new}" for name, old, new in entries)
    if not lines:
        return ""
    return "* The following workspace dependencies were updated\n" + "\n".join(lines)


def append_dependencies_section_to_changelog(changelog: str, notes: str) -> str:
    """Add ``notes`` under a ``### Dependencies`` header in ``changelog``.

    An existing header is reused: the notes go right before the first
    non-bullet line after the blank line that follows the header. Appending
    notes that are already present is a no-op.
    """
    if not changelog:
        return f"### Dependencies\n\n{notes}"
    if notes in changelog:
        return changelog

    new_lines: list[str] = []
    seen_section = False
    seen_spacer = False
    injected = False
    for line in changelog.split("\n"):
        if seen_section:
            stripped = line.strip()
            if seen_spacer and not injected and not stripped.startswith("*"):
                new_lines.append(notes)
                injected = True
            if stripped == "":
                seen_spacer = True
        if DEPENDENCY_HEADER.search(line):
            seen_section = True
        new_lines.append(line)

    if injected:
        return "\n".join(new_lines)
    if seen_section:
        return f"{changelog}\n{notes}"
    return f"{changelog}\n\n\n### Dependencies\n\n{notes}"


class WorkspacePlugin(ManifestPlugin):
    """Generic workspace algorithm; subclasses supply the manifest format.

    Args:
        update_all_packages: Release every package of the workspace, not only
            the released ones and their dependents.
    """

    release_type: ClassVar[ReleaseType]
    manifest_filename: ClassVar[str]

    def __init__(
        self,
        hosting: Hosting,
        target_branch: str,
        repository_config: Mapping[str, ReleaserConfig] | None = None,
        manifest_file: str = DEFAULT_MANIFEST_FILE,
        update_all_packages: bool = False,
    ) -> None:
        super().__init__(hosting, target_branch, repository_config, manifest_file)
        self.update_all_packages = update_all_packages

    @abstractmethod
    def parse_package(self, path: str, content: str) -> WorkspacePackage:
        """Read name, version and dependency names from a manifest."""

    @abstractmethod
    def update_manifest(
        self, package: WorkspacePackage, version: str, updated_versions: Mapping[str, str]
    ) -> tuple[str, DependencyChanges]:
        """Set the package version and move internal dependency specifiers.

        Returns:
            The new manifest text and the specifier changes made.
        """

    def bump_version(self, package: WorkspacePackage) -> str:
        return bump_patch(package.version)

    def in_scope(self, candidate: CandidateReleasePullRequest) -> bool:
        return (
            candidate.config.release_type == self.release_type
            and candidate.path != ROOT_PROJECT_PATH
        )

    def manifest_path(self, path: str) -> str:
        return f"{path}/{self.manifest_filename}"

    async def run(
        self, candidates: list[CandidateReleasePullRequest]
    ) -> list[CandidateReleasePullRequest]:
        in_scope: list[CandidateReleasePullRequest] = []
        out_of_scope: list[CandidateReleasePullRequest] = []
        for candidate in candidates:
            if candidate.pull_request.version is None:
                logger.warning("candidate_missing_version", path=candidate.path)
                out_of_scope.append(candidate)
            elif self.in_scope(candidate):
                in_scope.append(candidate)
            else:
                out_of_scope.append(candidate)

        logger.info("workspace_candidates", plugin=type(self).__name__, count=len(in_scope))
        if not in_scope:
            return candidates

        packages, candidates_by_package = await self.load_packages(in_scope)
        graph = {
            name: PackageInfo(
                path=package.path,
                version=package.version,
                deps=[dep for dep in package.deps if dep in packages and dep != name],
            )
            for name, package in packages.items()
        }

        names = (
            set(packages)
            if self.update_all_packages
            else collect_dependents(graph, candidates_by_package)
        )
        position = {name: i for i, name in enumerate(candidates_by_package)}
        order = topo_sort(
            {name: graph[name] for name in names},
            priority=lambda name: (0, position[name]) if name in position else (1, name),
        )
        logger.info("workspace_order", order=order)

        updated_versions: dict[str, str] = {}
        for name in order:
            existing = candidates_by_package.get(name)
            if existing is not None and existing.pull_request.version is not None:
                updated_versions[name] = str(existing.pull_request.version)
                continue
            try:
                updated_versions[name] = self.bump_version(packages[name])
            except VersionParseError:
                logger.warning(
                    "workspace_version_bump_degraded",
                    package=name,
                    version=packages[name].version,
                )
                updated_versions[name] = packages[name].version

        new_candidates: list[CandidateReleasePullRequest] = []
        for name in order:
            package = packages[name]
            content, changes = self.update_manifest(
                package, updated_versions[name], updated_versions
            )
            dependency_notes = format_dependency_notes(changes)
            existing = candidates_by_package.get(name)
            if existing is not None:
                new_candidates.append(
                    self.update_candidate(existing, package, content, dependency_notes)
                )
            else:
                new_candidates.append(
                    self.new_candidate(package, updated_versions[name], content, dependency_notes)
                )

        merged = await Merge(
            self.hosting, self.target_branch, self.repository_config, self.manifest_file
        ).run(new_candidates)
        return out_of_scope + merged

    async def load_packages(
        self, candidates: list[CandidateReleasePullRequest]
    ) -> tuple[dict[str, WorkspacePackage], dict[str, CandidateReleasePullRequest]]:
        """Load every workspace package, preferring contents cached on candidates.

        Returns:
            Packages by name, and the in-scope candidates by package name in
            candidate order.
        """
        candidates_by_path = {candidate.path: candidate for candidate in candidates}
        paths = [
            path
            for path, config in self.repository_config.items()
            if config.release_type == self.release_type and path != ROOT_PROJECT_PATH
        ]
        paths += [path for path in candidates_by_path if path not in paths]

        packages: dict[str, WorkspacePackage] = {}
        package_by_path: dict[str, str] = {}
        for path in paths:
            content = await self._manifest_content(path, candidates_by_path.get(path))
            if content is None:
                continue
            package = self.parse_package(path, content)
            packages[package.name] = package
            package_by_path[path] = package.name

        candidates_by_package = {
            package_by_path[candidate.path]: candidate
            for candidate in candidates
            if candidate.path in package_by_path
        }
        return packages, candidates_by_package

    async def _manifest_content(
        self, path: str, candidate: CandidateReleasePullRequest | None
    ) -> str | None:
        manifest_path = self.manifest_path(path)
        if candidate is not None:
            for update in candidate.pull_request.updates:
                if update.path == manifest_path and update.cached_file_contents is not None:
                    return update.cached_file_contents.parsed_content
        try:
            contents = await self.hosting.get_file_contents_on_branch(
                manifest_path, self.target_branch
            )
        except FileNotFoundOnBranchError:
            logger.warning("workspace_manifest_missing", path=manifest_path)
            return None
        return contents.parsed_content

    def update_candidate(
        self,
        candidate: CandidateReleasePullRequest,
        package: WorkspacePackage,
        content: str,
        dependency_notes: str,
    ) -> CandidateReleasePullRequest:
        """Point the candidate's manifest update at the rewritten manifest."""
        pull_request = candidate.pull_request
        manifest_path = self.manifest_path(candidate.path)
        updates: list[Update] = []
        replaced = False
        for update in pull_request.updates:
            if update.path == manifest_path:
                update = update.model_copy(update={"updater": RawContent(content)})
                replaced = True
            elif isinstance(update.updater, Changelog) and dependency_notes:
                entry = append_dependencies_section_to_changelog(
                    update.updater.changelog_entry, dependency_notes
                )
                update = update.model_copy(update={"updater": update.updater.with_entry(entry)})
            updates.append(update)
        if not replaced:
            updates.append(Update(path=manifest_path, updater=RawContent(content)))

        release_data = list(pull_request.body.release_data)
        if dependency_notes:
            if release_data:
                release_data[0] = replace(
                    release_data[0],
                    notes=append_dependencies_section_to_changelog(
                        release_data[0].notes, dependency_notes
                    ),
                )
            else:
                release_data.append(
                    ReleaseData(
                        notes=append_dependencies_section_to_changelog("", dependency_notes),
                        component=package.name,
                        version=pull_request.version,
                    )
                )
        body = PullRequestBody(
            release_data, header=pull_request.body.header, footer=pull_request.body.footer
        )
        pull_request = pull_request.model_copy(update={"updates": updates, "body": body})
        return candidate.model_copy(update={"pull_request": pull_request})

    def new_candidate(
        self,
        package: WorkspacePackage,
        version_str: str,
        content: str,
        dependency_notes: str,
    ) -> CandidateReleasePullRequest:
        """Build a release for a package released only for its dependencies."""
        try:
            version: Version | None = parse_version(version_str)
        except VersionParseError:
            version = None
        notes = (
            append_dependencies_section_to_changelog("", dependency_notes)
            if dependency_notes
            else ""
        )
        config = self.repository_config.get(package.path) or ReleaserConfig(
            release_type=self.release_type
        )

        updates = [Update(path=self.manifest_path(package.path), updater=RawContent(content))]
        if version is not None:
            heading = "###" if version.patch != 0 else "##"
            entry = f"{heading} {version} ({dt.date.today().isoformat()})\n\n{notes}"
            updates.append(
                Update(
                    path=f"{package.path}/{config.changelog_path}",
                    create_if_missing=True,
                    updater=Changelog(version, entry),
                )
            )
            updates.append(
                Update(
                    path=self.manifest_file,
                    updater=ReleaseManifest({package.path: version}),
                )
            )

        pull_request = ReleasePullRequest(
            title=PullRequestTitle.of_target_branch(self.target_branch),
            body=PullRequestBody(
                [ReleaseData(notes=notes, component=package.name, version=version)]
            ),
            updates=updates,
            labels=[],
            head_ref_name=str(BranchName.of_target_branch(self.target_branch)),
            version=version,
        )
        return CandidateReleasePullRequest(
            path=package.path, pull_request=pull_request, config=config
        )
