"""Release strategy base class.

A strategy owns one tracked path. It turns the commits since the last release
into a release pull request candidate, and turns a merged release pull request
back into a release.
"""

from __future__ import annotations

import datetime as dt
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field

import structlog

from ..commit_split import ROOT_PROJECT_PATH
from ..commits import RELEASE_AS_NOTE, parse_conventional_commits
from ..config import DEFAULT_LABELS, ReleaserConfig
from ..errors import MalformedPullRequestError, MissingReleaseDataError, VersionParseError
from ..github import Hosting
from ..models import Commit, ConventionalCommit, PullRequest, Release, ReleasePullRequest, Update
from ..pull_request_body import PullRequestBody, ReleaseData
from ..release_notes import ReleaseNotes
from ..tags import MANIFEST_PR_TITLE_PATTERN, BranchName, PullRequestTitle, TagName
from ..updaters import Generic
from ..version import Version
from ..versioning import DefaultVersioningStrategy, VersioningStrategy

logger = structlog.get_logger(__name__)


@dataclass
class BuildUpdatesOptions:
    """Inputs for a strategy's file updates."""

    changelog_entry: str
    new_version: Version
    versions_map: dict[str, Version] = field(default_factory=dict)
    latest_version: Version | None = None


class Strategy(ABC):
    """Builds release candidates and releases for one tracked path.

    Args:
        hosting: Hosting client used to read files on the target branch.
        target_branch: Branch releases are cut from.
        path: Tracked path, relative to the repository root.
        config: Settings for the path.
        versioning_strategy: How the next version is derived.
        release_date: Date stamped into release notes, defaults to today.
    """

    def __init__(
        self,
        hosting: Hosting,
        target_branch: str,
        path: str = ROOT_PROJECT_PATH,
        config: ReleaserConfig | None = None,
        versioning_strategy: VersioningStrategy | None = None,
        release_date: dt.date | None = None,
    ) -> None:
        self.hosting = hosting
        self.repository = hosting.repository
        self.target_branch = target_branch
        self.path = path
        self.config = config or ReleaserConfig()
        self.component = self.config.component
        self.changelog_path = self.config.changelog_path
        self.versioning_strategy = versioning_strategy or DefaultVersioningStrategy(
            bump_minor_pre_major=self.config.bump_minor_pre_major,
            bump_patch_for_minor_pre_major=self.config.bump_patch_for_minor_pre_major,
        )
        self.release_date = release_date

    @abstractmethod
    async def build_updates(self, options: BuildUpdatesOptions) -> list[Update]:
        """Return the file updates for a release of this path."""

    async def get_default_component(self) -> str:
        return self.config.package_name or ""

    async def get_component(self) -> str:
        """Configured component, else the ecosystem default."""
        return self.component or await self.get_default_component()

    def initial_release_version(self) -> Version:
        return Version(1, 0, 0)

    def post_process_commits(
        self, commits: list[ConventionalCommit]
    ) -> list[ConventionalCommit]:
        return commits

    async def build_versions_map(self, commits: Sequence[ConventionalCommit]) -> dict[str, Version]:
        return {}

    async def current_version(self, latest_release: Release | None) -> Version | None:
        """Version the next bump starts from, None for a first release."""
        return latest_release.tag.version if latest_release else None

    def add_path(self, file: str) -> str:
        """Make ``file`` repository-relative by prefixing the tracked path."""
        file = file.lstrip("/\\")
        if self.path == ROOT_PROJECT_PATH:
            return file
        return f"{self.path.rstrip('/')}/{file}"

    def extra_file_updates(
        self, version: Version, versions_map: dict[str, Version]
    ) -> list[Update]:
        return [
            Update(path=self.add_path(path), updater=Generic(version, versions_map))
            for path in self.config.extra_files
        ]

    async def build_release_pull_request(
        self,
        commits: Sequence[Commit],
        latest_release: Release | None = None,
        draft: bool = False,
        labels: Sequence[str] | None = None,
    ) -> ReleasePullRequest | None:
        """Build the release candidate for the commits since ``latest_release``.

        Args:
            commits: Commits touching this path, newest first.
            latest_release: The previous release of this path, if any.
            draft: Open the pull request as a draft.
            labels: Labels for the pull request.

        Returns:
            The candidate, or None when no commit is releasable.
        """
        conventional_commits = self.post_process_commits(parse_conventional_commits(commits))
        if not conventional_commits:
            logger.info("no_releasable_commits", path=self.path)
            return None

        new_version = await self.resolve_version(conventional_commits, latest_release)
        versions_map = await self.build_versions_map(conventional_commits)
        for key, version in list(versions_map.items()):
            versions_map[key] = self.versioning_strategy.bump(version, conventional_commits)

        component = await self.get_component()
        logger.debug("resolved_component", path=self.path, component=component)

        new_tag = TagName(version=new_version, component=component or None)
        notes = self.build_release_notes(conventional_commits, new_version, new_tag, latest_release)
        updates = await self.build_updates(
            BuildUpdatesOptions(
                changelog_entry=notes,
                new_version=new_version,
                versions_map=versions_map,
                latest_version=latest_release.tag.version if latest_release else None,
            )
        )
        title = PullRequestTitle.of_component_target_branch_version(
            component, self.target_branch, new_version
        )
        branch = (
            BranchName.of_component_target_branch(component, self.target_branch)
            if component
            else BranchName.of_target_branch(self.target_branch)
        )
        body = PullRequestBody(
            [ReleaseData(notes=notes, component=component or None, version=new_version)]
        )
        return ReleasePullRequest(
            title=title,
            body=body,
            updates=updates,
            labels=list(labels if labels is not None else DEFAULT_LABELS),
            head_ref_name=str(branch),
            version=new_version,
            draft=draft,
        )

    async def resolve_version(
        self, commits: Sequence[ConventionalCommit], latest_release: Release | None
    ) -> Version:
        """Pick the next version.

        A configured ``release-as`` wins, then the newest ``Release-As`` footer,
        then the versioning strategy's bump of the current version.
        """
        if self.config.release_as:
            return Version.parse(self.config.release_as)
        for commit in commits:
            for note in commit.notes:
                if note.title != RELEASE_AS_NOTE:
                    continue
                try:
                    return Version.parse(note.text.strip())
                except VersionParseError:
                    logger.warning("invalid_release_as", sha=commit.sha, value=note.text)

        current = await self.current_version(latest_release)
        if current is None:
            return self.initial_release_version()
        return self.versioning_strategy.bump(current, commits)

    def build_release_notes(
        self,
        commits: Sequence[ConventionalCommit],
        new_version: Version,
        new_tag: TagName,
        latest_release: Release | None,
    ) -> str:
        release_notes = ReleaseNotes(changelog_sections=self.config.changelog_sections)
        return release_notes.build_notes(
            commits,
            owner=self.repository.owner,
            repository=self.repository.repo,
            version=new_version,
            previous_tag=str(latest_release.tag) if latest_release else None,
            current_tag=str(new_tag),
            date=self.release_date,
        )

    async def build_release(self, merged_pull_request: PullRequest) -> Release | None:
        """Reconstruct the release a merged release pull request stands for.

        Raises:
            MalformedPullRequestError: If the title or head branch is not a
                release title or branch.
            MissingReleaseDataError: If the merge sha, body or version is
                missing.
        """
        title = PullRequestTitle.parse(merged_pull_request.title) or PullRequestTitle.parse(
            merged_pull_request.title, MANIFEST_PR_TITLE_PATTERN
        )
        if title is None:
            raise MalformedPullRequestError(
                f"Bad pull request title: {merged_pull_request.title!r}"
            )
        if BranchName.parse(merged_pull_request.head_branch_name) is None:
            raise MalformedPullRequestError(
                f"Bad branch name: {merged_pull_request.head_branch_name!r}"
            )
        if not merged_pull_request.sha:
            raise MissingReleaseDataError(
                f"Pull request #{merged_pull_request.number} has no merge commit"
            )
        body = PullRequestBody.parse(merged_pull_request.body)
        if body is None:
            raise MissingReleaseDataError(
                f"Could not parse body of pull request #{merged_pull_request.number}"
            )

        component = await self.get_component()
        release_data = next(
            (data for data in body.release_data if (data.component or "") == component),
            None,
        )
        if release_data is None:
            logger.warning(
                "release_data_not_found", component=component, number=merged_pull_request.number
            )
        version = title.version or (release_data.version if release_data else None)
        if version is None:
            raise MissingReleaseDataError(
                f"Pull request #{merged_pull_request.number} does not include a version"
            )
        notes = release_data.notes if release_data else ""
        if not notes:
            logger.warning("release_notes_missing", component=component, version=str(version))

        if self.config.skip_github_release:
            logger.info("skipping_release", path=self.path, version=str(version))
            return None
        tag = TagName(version=version, component=component or None)
        return Release(tag=tag, sha=merged_pull_request.sha, notes=notes, name=str(tag))
