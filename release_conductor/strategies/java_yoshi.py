"""Strategy for Java repositories following the ``versions.txt`` convention.

Java releases alternate between a release and a ``-SNAPSHOT`` development
version. The state of ``versions.txt`` decides which one comes next: if any
artifact is currently a snapshot the next pull request is a release, otherwise
it is a snapshot bump.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

import structlog

from ..errors import FileNotFoundOnBranchError
from ..models import ConventionalCommit, FileContents, PullRequest, Release, Update
from ..updaters import Changelog, JavaUpdate, VersionsManifest
from ..updaters.java import needs_snapshot, parse_versions
from ..version import Version
from .base import BuildUpdatesOptions, Strategy

logger = structlog.get_logger(__name__)

VERSIONS_FILE = "versions.txt"
DISCOVERED_FILES = ("pom.xml", "build.gradle", "dependencies.properties")


class JavaYoshi(Strategy):
    _versions_file: FileContents | None = None

    def initial_release_version(self) -> Version:
        return Version(0, 1, 0)

    async def versions_file(self) -> FileContents | None:
        if self._versions_file is None:
            try:
                self._versions_file = await self.hosting.get_file_contents_on_branch(
                    self.add_path(VERSIONS_FILE), self.target_branch
                )
            except FileNotFoundOnBranchError:
                logger.warning("versions_file_missing", path=self.path)
                return None
        return self._versions_file

    async def current_version(self, latest_release: Release | None) -> Version | None:
        contents = await self.versions_file()
        if contents is not None and not needs_snapshot(contents.parsed_content):
            # Mid-cycle: release the snapshot currently in versions.txt
            versions = parse_versions(contents.parsed_content).values()
            snapshots = [v for v in versions if v.is_snapshot]
            if snapshots:
                return snapshots[0]
        return await super().current_version(latest_release)

    async def build_versions_map(self, commits: Sequence[ConventionalCommit]) -> dict[str, Version]:
        contents = await self.versions_file()
        if contents is None:
            return {}
        return parse_versions(contents.parsed_content)

    async def build_updates(self, options: BuildUpdatesOptions) -> list[Update]:
        version = options.new_version
        versions_map = options.versions_map
        updates = [
            Update(
                path=self.add_path(VERSIONS_FILE),
                cached_file_contents=await self.versions_file(),
                updater=VersionsManifest(version, versions_map),
            )
        ]

        searches = await asyncio.gather(
            *(
                self.hosting.find_files_by_filename(filename, self.target_branch, self.path)
                for filename in DISCOVERED_FILES
            )
        )
        for paths in searches:
            updates.extend(
                Update(path=path, updater=JavaUpdate(version, versions_map)) for path in paths
            )
        updates.extend(
            Update(path=self.add_path(path), updater=JavaUpdate(version, versions_map))
            for path in self.config.extra_files
        )

        if not version.is_snapshot:
            updates.append(
                Update(
                    path=self.add_path(self.changelog_path),
                    create_if_missing=True,
                    updater=Changelog(version, options.changelog_entry),
                )
            )
        return updates

    async def build_release(self, merged_pull_request: PullRequest) -> Release | None:
        release = await super().build_release(merged_pull_request)
        if release is not None and release.tag.version.is_snapshot:
            logger.info("skipping_snapshot_release", version=str(release.tag.version))
            return None
        return release
