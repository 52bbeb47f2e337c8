"""Strategy for PHP monorepos where every top-level directory is a component.

Each component directory carries a ``VERSION`` file and a ``composer.json``.
One pull request releases the whole repository: the root version is bumped
from the latest release, each touched component is bumped from its own
``VERSION``, and the release notes nest one collapsible block per component.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import structlog

from ..commit_split import CommitSplit
from ..commits import parse_conventional_commits
from ..config import DEFAULT_LABELS
from ..errors import FileNotFoundOnBranchError
from ..models import Commit, FileContents, Release, ReleasePullRequest, Update
from ..pull_request_body import PullRequestBody, ReleaseData
from ..release_notes import ChangelogSection, ReleaseNotes
from ..tags import BranchName, PullRequestTitle, TagName
from ..updaters import (
    Changelog,
    DefaultUpdater,
    PhpClientVersion,
    PhpManifest,
    RootComposerUpdatePackages,
)
from ..version import Version
from .base import BuildUpdatesOptions, Strategy

logger = structlog.get_logger(__name__)

CHANGELOG_SECTIONS = [
    ChangelogSection(type="feat", section="Features"),
    ChangelogSection(type="fix", section="Bug Fixes"),
    ChangelogSection(type="perf", section="Performance Improvements"),
    ChangelogSection(type="revert", section="Reverts"),
    ChangelogSection(type="docs", section="Documentation"),
    ChangelogSection(type="chore", section="Miscellaneous Chores"),
    ChangelogSection(type="style", section="Styles", hidden=True),
    ChangelogSection(type="refactor", section="Code Refactoring", hidden=True),
    ChangelogSection(type="test", section="Tests", hidden=True),
    ChangelogSection(type="build", section="Build System", hidden=True),
    ChangelogSection(type="ci", section="Continuous Integration", hidden=True),
]

CLIENT_VERSION_FILES = ("src/Version.php", "src/ServiceBuilder.php")


@dataclass
class ComponentInfo:
    """A component directory's ``VERSION`` file and parsed ``composer.json``."""

    directory: str
    version_file: FileContents
    composer: dict[str, Any]

    @property
    def name(self) -> str:
        return self.composer["name"]

    @property
    def entry(self) -> str | None:
        return self.composer.get("extra", {}).get("component", {}).get("entry")


def component_notes(summary: str, notes: str) -> str:
    """Wrap one component's notes in a collapsible block headed by ``summary``.

    The notes' own version heading is dropped in favor of the summary.
    """
    body = "\n".join(notes.splitlines()[1:])
    return f"<details><summary>{summary}</summary>\n\n{body}\n\n</details>"


class PhpYoshi(Strategy):
    def build_release_notes_renderer(self) -> ReleaseNotes:
        return ReleaseNotes(changelog_sections=self.config.changelog_sections or CHANGELOG_SECTIONS)

    async def component_info(self, directory: str) -> ComponentInfo | None:
        """Fetch a directory's version files, None if it is not a component."""
        try:
            version_file = await self.hosting.get_file_contents_on_branch(
                self.add_path(f"{directory}/VERSION"), self.target_branch
            )
            composer = await self.hosting.get_file_contents_on_branch(
                self.add_path(f"{directory}/composer.json"), self.target_branch
            )
        except FileNotFoundOnBranchError:
            logger.debug("not_a_component", directory=directory)
            return None
        return ComponentInfo(directory, version_file, json.loads(composer.parsed_content))

    async def build_release_pull_request(
        self,
        commits: Sequence[Commit],
        latest_release: Release | None = None,
        draft: bool = False,
        labels: Sequence[str] | None = None,
    ) -> ReleasePullRequest | None:
        conventional_commits = self.post_process_commits(parse_conventional_commits(commits))
        if not conventional_commits:
            logger.info("no_releasable_commits", path=self.path)
            return None

        new_version = await self.resolve_version(conventional_commits, latest_release)
        component = await self.get_component()
        new_tag = TagName(version=new_version, component=component or None)
        release_notes = self.build_release_notes_renderer()

        split_commits = CommitSplit().split(conventional_commits)
        versions_map: dict[str, Version] = {}
        components: list[ComponentInfo] = []
        sections: list[str] = []
        for directory in sorted(split_commits):
            info = await self.component_info(directory)
            if info is None:
                continue
            directory_commits = split_commits[directory]
            version = self.versioning_strategy.bump(
                Version.parse(info.version_file.parsed_content.strip()), directory_commits
            )
            versions_map[info.name] = version
            components.append(info)
            notes = release_notes.build_notes(
                directory_commits,
                owner=self.repository.owner,
                repository=self.repository.repo,
                version=version,
                previous_tag=str(latest_release.tag) if latest_release else None,
                current_tag=str(new_tag),
                date=self.release_date,
            )
            sections.append(component_notes(f"{info.name} {version}", notes))
        notes = "\n\n".join(sections)

        updates = await self.build_updates(
            BuildUpdatesOptions(
                changelog_entry=notes,
                new_version=new_version,
                versions_map=versions_map,
                latest_version=latest_release.tag.version if latest_release else None,
            )
        )
        for info in components:
            version = versions_map[info.name]
            updates.append(
                Update(
                    path=self.add_path(f"{info.directory}/VERSION"),
                    cached_file_contents=info.version_file,
                    updater=DefaultUpdater(version),
                )
            )
            if info.entry:
                updates.append(
                    Update(
                        path=self.add_path(f"{info.directory}/{info.entry}"),
                        updater=PhpClientVersion(version),
                    )
                )

        branch = (
            BranchName.of_component_target_branch(component, self.target_branch)
            if component
            else BranchName.of_target_branch(self.target_branch)
        )
        return ReleasePullRequest(
            title=PullRequestTitle.of_component_target_branch_version(
                component, self.target_branch, new_version
            ),
            body=PullRequestBody(
                [ReleaseData(notes=notes, component=component or None, version=new_version)]
            ),
            updates=updates,
            labels=list(labels if labels is not None else DEFAULT_LABELS),
            head_ref_name=str(branch),
            version=new_version,
            draft=draft,
        )

    async def build_updates(self, options: BuildUpdatesOptions) -> list[Update]:
        version = options.new_version
        versions_map = options.versions_map
        updates = [
            Update(
                path=self.add_path(self.changelog_path),
                create_if_missing=True,
                updater=Changelog(version, options.changelog_entry),
            ),
            Update(
                path=self.add_path("composer.json"),
                updater=RootComposerUpdatePackages(version, versions_map),
            ),
            Update(
                path=self.add_path("docs/manifest.json"),
                updater=PhpManifest(version, versions_map),
            ),
        ]
        updates.extend(
            Update(path=self.add_path(path), updater=PhpClientVersion(version, versions_map))
            for path in CLIENT_VERSION_FILES
        )
        return updates + self.extra_file_updates(version, versions_map)
