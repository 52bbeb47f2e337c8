"""Manifest orchestrator: release pull requests and releases for a whole repo.

Two entry points drive a release cycle:

- :meth:`Manifest.create_pull_requests` computes a candidate per tracked path
  from the commits since its last release, runs the plugin chain, and opens
  or refreshes the release pull request(s).
- :meth:`Manifest.create_releases` finds merged release pull requests and
  tags and publishes the releases they describe.

The ``build_*`` counterparts compute the same results without any mutating
call, which is what ``--dry-run`` prints.
"""

from __future__ import annotations

import asyncio
import datetime as dt
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

import structlog

from .commit_split import ROOT_PROJECT_PATH, CommitSplit
from .config import (
    DEFAULT_CONFIG_FILE,
    DEFAULT_LABELS,
    DEFAULT_MANIFEST_FILE,
    DEFAULT_RELEASE_LABELS,
    ManifestConfig,
    PluginType,
    ReleaserConfig,
    parse_config_content,
    parse_released_versions,
)
from .errors import (
    ConfigurationError,
    DuplicateReleaseError,
    FileNotFoundOnBranchError,
    MalformedPullRequestError,
)
from .github import Hosting
from .models import (
    CandidateReleasePullRequest,
    Commit,
    CreatedRelease,
    PullRequest,
    Release,
    ReleasePullRequest,
    Update,
)
from .plugins import ManifestPlugin, Merge, build_plugin
from .pull_request_body import PullRequestBody
from .strategies import Strategy, build_strategy
from .tags import BranchName, PullRequestTitle, TagName
from .updaters import ReleaseManifest
from .version import Version

logger = structlog.get_logger(__name__)

MAX_RELEASES = 100
MAX_COMMITS = 500
MAX_MERGED_PULL_REQUESTS = 250


@dataclass(frozen=True)
class CandidateRelease:
    """A release to create, with the merged pull request it came from."""

    release: Release
    pull_request: PullRequest
    path: str
    draft: bool = False


class Manifest:
    """Release orchestration across every tracked path of a repository.

    Strategies and the component → path map are resolved once per run.

    Args:
        hosting: Hosting client.
        target_branch: Branch releases are cut from.
        repository_config: Map of tracked path → settings.
        released_versions: Map of tracked path → last released version.
        manifest_file: Path of the released-versions manifest.
        separate_pull_requests: Open one pull request per path.
        plugins: Plugins to run over the candidates, in order.
        labels: Labels marking a pending release pull request.
        release_labels: Labels replacing ``labels`` once released.
        bootstrap_sha: Oldest commit to consider when no release is found.
        last_release_sha: Commit to stop at for paths without a release.
        fork: Push release branches to a fork.
        draft: Open pull requests as drafts.
        release_date: Date stamped into release notes, defaults to today.
    """

    def __init__(
        self,
        hosting: Hosting,
        target_branch: str,
        repository_config: Mapping[str, ReleaserConfig],
        released_versions: Mapping[str, Version],
        *,
        manifest_file: str = DEFAULT_MANIFEST_FILE,
        separate_pull_requests: bool = False,
        plugins: Sequence[PluginType] = (),
        labels: Sequence[str] | None = None,
        release_labels: Sequence[str] | None = None,
        bootstrap_sha: str | None = None,
        last_release_sha: str | None = None,
        fork: bool = False,
        draft: bool = False,
        release_date: dt.date | None = None,
    ) -> None:
        self.hosting = hosting
        self.repository = hosting.repository
        self.target_branch = target_branch
        self.repository_config = dict(repository_config)
        self.released_versions = dict(released_versions)
        self.manifest_file = manifest_file
        self.separate_pull_requests = separate_pull_requests
        self.plugins = list(plugins)
        self.labels = list(labels if labels is not None else DEFAULT_LABELS)
        self.release_labels = list(
            release_labels if release_labels is not None else DEFAULT_RELEASE_LABELS
        )
        self.bootstrap_sha = bootstrap_sha
        self.last_release_sha = last_release_sha
        self.fork = fork
        self.draft = draft
        self.strategies_by_path: dict[str, Strategy] = {
            path: build_strategy(config, hosting, target_branch, path, release_date)
            for path, config in self.repository_config.items()
        }

    @classmethod
    def from_manifest_config(
        cls,
        hosting: Hosting,
        target_branch: str,
        config: ManifestConfig,
        released_versions: Mapping[str, Version],
        **options,
    ) -> Manifest:
        return cls(
            hosting,
            target_branch,
            config.packages,
            released_versions,
            separate_pull_requests=config.separate_pull_requests,
            plugins=config.plugins,
            labels=config.labels,
            release_labels=config.release_labels,
            bootstrap_sha=config.bootstrap_sha,
            last_release_sha=config.last_release_sha,
            **options,
        )

    @classmethod
    async def from_manifest(
        cls,
        hosting: Hosting,
        target_branch: str,
        config_file: str = DEFAULT_CONFIG_FILE,
        manifest_file: str = DEFAULT_MANIFEST_FILE,
        **options,
    ) -> Manifest:
        """Load the config and manifest files from the target branch.

        Raises:
            ConfigurationError: If the config file is missing or invalid.
        """
        config_result, manifest_result = await asyncio.gather(
            hosting.get_file_contents_on_branch(config_file, target_branch),
            hosting.get_file_contents_on_branch(manifest_file, target_branch),
            return_exceptions=True,
        )
        if isinstance(config_result, FileNotFoundOnBranchError):
            raise ConfigurationError(f"Config file {config_file} not found on {target_branch}")
        if isinstance(config_result, BaseException):
            raise config_result
        config = parse_config_content(config_result.parsed_content)

        released_versions: dict[str, Version] = {}
        if isinstance(manifest_result, FileNotFoundOnBranchError):
            logger.warning("manifest_file_missing", path=manifest_file, branch=target_branch)
        elif isinstance(manifest_result, BaseException):
            raise manifest_result
        else:
            released_versions = parse_released_versions(manifest_result.parsed_content)

        return cls.from_manifest_config(
            hosting,
            target_branch,
            config,
            released_versions,
            manifest_file=manifest_file,
            **options,
        )

    @classmethod
    async def from_config(
        cls,
        hosting: Hosting,
        target_branch: str,
        config: ReleaserConfig,
        path: str = ROOT_PROJECT_PATH,
        **options,
    ) -> Manifest:
        """Single-package mode: one path, its version found from history.

        The previous release is looked up under the resolved component, so a
        node or python package finds branches named after its manifest.
        """
        manifest = cls(hosting, target_branch, {path: config}, {}, **options)
        component = await manifest.strategies_by_path[path].get_component()
        latest = await latest_release_version(hosting, target_branch, component)
        if latest is not None:
            manifest.released_versions[path] = latest
        return manifest

    async def paths_by_component(self) -> dict[str, str]:
        """Map each resolved component to its path.

        Raises:
            ConfigurationError: If two paths resolve to the same component.
        """
        paths = list(self.strategies_by_path)
        components = await asyncio.gather(
            *(self.strategies_by_path[path].get_component() for path in paths)
        )
        result: dict[str, str] = {}
        for path, component in zip(paths, components):
            if component in result:
                raise ConfigurationError(
                    f"Multiple paths for component {component!r}: {result[component]}, {path}"
                )
            result[component] = path
        return result

    async def find_latest_releases(
        self, paths_by_component: Mapping[str, str]
    ) -> dict[str, Release]:
        """Find the release matching each path's manifest version."""
        releases_by_path: dict[str, Release] = {}
        expected = len(self.released_versions)
        async for hosted in self.hosting.release_iterator(MAX_RELEASES):
            if len(releases_by_path) >= expected:
                break
            tag = TagName.parse(hosted.tag_name)
            if tag is None:
                logger.warning("unparseable_tag", tag=hosted.tag_name)
                continue
            path = paths_by_component.get(tag.component or "")
            if path is None or path not in self.released_versions:
                logger.warning("component_not_in_manifest", component=tag.component)
                continue
            if path in releases_by_path or tag.version != self.released_versions[path]:
                continue
            releases_by_path[path] = Release(
                tag=tag, sha=hosted.sha, notes=hosted.notes, name=hosted.name
            )

        if len(releases_by_path) < expected:
            logger.warning("releases_missing", expected=expected, found=len(releases_by_path))
        return releases_by_path

    async def collect_commits(
        self, stop_shas: Mapping[str, str]
    ) -> tuple[list[Commit], dict[str, int]]:
        """Collect commits newer than every path's release commit.

        Args:
            stop_shas: Map of path → sha of the commit its history ends at.

        Returns:
            Commits newest first without the release commits themselves, and
            for each stop sha found, how many of those commits precede it.
        """
        wanted = set(stop_shas.values())
        all_paths_bounded = len(stop_shas) == len(self.repository_config)
        commits: list[Commit] = []
        cut_by_sha: dict[str, int] = {}
        async for commit in self.hosting.merge_commit_iterator(self.target_branch, MAX_COMMITS):
            if commit.sha == self.bootstrap_sha:
                break
            if commit.sha in wanted:
                cut_by_sha[commit.sha] = len(commits)
                if all_paths_bounded and len(cut_by_sha) == len(wanted):
                    break
                continue
            commits.append(commit)

        missing = wanted - set(cut_by_sha)
        if missing:
            logger.warning("release_commits_not_found", shas=sorted(missing))
        return commits, cut_by_sha

    async def build_pull_requests(self) -> list[ReleasePullRequest]:
        """Compute the release pull requests, without creating them."""
        logger.info("building_pull_requests", branch=self.target_branch)
        paths_by_component = await self.paths_by_component()
        releases_by_path = await self.find_latest_releases(paths_by_component)

        stop_shas = {path: release.sha for path, release in releases_by_path.items()}
        if self.last_release_sha:
            for path in self.repository_config:
                stop_shas.setdefault(path, self.last_release_sha)
        commits, cut_by_sha = await self.collect_commits(stop_shas)

        split = CommitSplit(self.repository_config, include_empty=True).split(commits)
        commits_by_path: dict[str, list[Commit]] = {}
        for path in self.repository_config:
            cut = cut_by_sha.get(stop_shas.get(path, ""), len(commits))
            allowed = {commit.sha for commit in commits[:cut]}
            path_commits = commits if path == ROOT_PROJECT_PATH else split.get(path, [])
            path_commits = [commit for commit in path_commits if commit.sha in allowed]
            if not path_commits:
                logger.info("no_commits_for_path", path=path)
                continue
            commits_by_path[path] = path_commits

        built = await asyncio.gather(
            *(
                self._build_candidate(path, path_commits, releases_by_path.get(path))
                for path, path_commits in commits_by_path.items()
            )
        )
        candidates = [candidate for candidate in built if candidate is not None]

        plugins: list[ManifestPlugin] = [
            build_plugin(
                plugin_type,
                self.hosting,
                self.target_branch,
                self.repository_config,
                self.manifest_file,
            )
            for plugin_type in self.plugins
        ]
        if not self.separate_pull_requests:
            plugins.append(
                Merge(self.hosting, self.target_branch, self.repository_config, self.manifest_file)
            )
        for plugin in plugins:
            candidates = await plugin.run(candidates)

        return [candidate.pull_request for candidate in candidates]

    async def _build_candidate(
        self, path: str, commits: list[Commit], latest_release: Release | None
    ) -> CandidateReleasePullRequest | None:
        config = self.repository_config[path]
        if latest_release is None:
            logger.warning("latest_release_not_found", path=path)
        pull_request = await self.strategies_by_path[path].build_release_pull_request(
            commits,
            latest_release,
            draft=config.draft or self.draft,
            labels=self.labels,
        )
        if pull_request is None:
            return None
        if pull_request.version is not None:
            manifest_update = Update(
                path=self.manifest_file,
                updater=ReleaseManifest({path: pull_request.version}),
            )
            pull_request = pull_request.model_copy(
                update={"updates": [*pull_request.updates, manifest_update]}
            )
        return CandidateReleasePullRequest(path=path, pull_request=pull_request, config=config)

    async def create_pull_requests(self) -> list[int | None]:
        """Open or refresh release pull requests.

        Returns:
            The pull request number per candidate, None where an open pull
            request was already up to date.
        """
        candidates = await self.build_pull_requests()
        if not candidates:
            return []

        open_pull_requests = [
            pull_request
            async for pull_request in self.hosting.pull_request_iterator(self.target_branch, "open")
            if BranchName.parse(pull_request.head_branch_name)
            and PullRequestBody.parse(pull_request.body)
        ]
        logger.info("open_release_pull_requests", count=len(open_pull_requests))
        return list(
            await asyncio.gather(
                *(
                    self._create_or_update_pull_request(candidate, open_pull_requests)
                    for candidate in candidates
                )
            )
        )

    async def _create_or_update_pull_request(
        self, pull_request: ReleasePullRequest, open_pull_requests: list[PullRequest]
    ) -> int | None:
        existing = next(
            (pr for pr in open_pull_requests if pr.head_branch_name == pull_request.head_ref_name),
            None,
        )
        if existing is None:
            created = await self.hosting.create_pull_request(
                pull_request, self.target_branch, fork=self.fork
            )
            logger.info("pull_request_created", number=created.number)
            return created.number
        if existing.body == str(pull_request.body):
            logger.info("pull_request_unchanged", number=existing.number)
            return None
        updated = await self.hosting.update_pull_request(
            existing.number, pull_request, self.target_branch, fork=self.fork
        )
        logger.info("pull_request_updated", number=updated.number)
        return updated.number

    async def build_releases(self) -> list[CandidateRelease]:
        """Compute the releases of merged, still pending release pull requests."""
        logger.info("building_releases", branch=self.target_branch)
        paths_by_component = await self.paths_by_component()
        component_by_path = {path: component for component, path in paths_by_component.items()}
        splitter = CommitSplit(self.repository_config, include_empty=True)

        releases: list[CandidateRelease] = []
        async for pull_request in self.hosting.merged_pull_request_iterator(
            self.target_branch, MAX_MERGED_PULL_REQUESTS
        ):
            if not set(self.labels) <= set(pull_request.labels):
                continue
            body = PullRequestBody.parse(pull_request.body)
            if body is None:
                logger.info("not_a_release_pull_request", number=pull_request.number)
                continue
            components = {data.component or "" for data in body.release_data}

            merge_commit = Commit(
                sha=pull_request.sha or "", message=pull_request.title, files=pull_request.files
            )
            touched = splitter.split([merge_commit])
            for path, config in self.repository_config.items():
                if path != ROOT_PROJECT_PATH and not touched.get(path):
                    continue
                if len(body.release_data) > 1 and component_by_path[path] not in components:
                    logger.debug("path_not_in_pull_request", path=path, number=pull_request.number)
                    continue
                try:
                    release = await self.strategies_by_path[path].build_release(pull_request)
                except MalformedPullRequestError as e:
                    logger.warning(
                        "malformed_release_pull_request",
                        number=pull_request.number,
                        error=str(e),
                    )
                    break
                if release is not None:
                    releases.append(
                        CandidateRelease(
                            release=release,
                            pull_request=pull_request,
                            path=path,
                            draft=config.draft,
                        )
                    )
        return releases

    async def create_releases(self) -> list[CreatedRelease]:
        """Tag and publish pending releases, then relabel their pull requests.

        Releases that already exist are skipped without error.
        """
        by_number: dict[int, list[CandidateRelease]] = {}
        for candidate in await self.build_releases():
            by_number.setdefault(candidate.pull_request.number, []).append(candidate)

        created: list[CreatedRelease] = []
        for number, candidates in by_number.items():
            results = await asyncio.gather(*(self._create_release(c) for c in candidates))
            created.extend(result for result in results if result is not None)
            await self.hosting.remove_issue_labels(self.labels, number)
            await self.hosting.add_issue_labels(self.release_labels, number)
        return created

    async def _create_release(self, candidate: CandidateRelease) -> CreatedRelease | None:
        try:
            created = await self.hosting.create_release(candidate.release, draft=candidate.draft)
        except DuplicateReleaseError:
            logger.info("release_already_exists", tag=str(candidate.release.tag))
            return None
        logger.info("release_created", tag=created.tag_name, url=created.url)
        return created


async def latest_release_version(
    hosting: Hosting, target_branch: str, component: str | None = None
) -> Version | None:
    """Version of the newest merged release pull request for ``component``.

    Snapshot versions are skipped, they are never released.
    """
    async for pull_request in hosting.merged_pull_request_iterator(
        target_branch, MAX_MERGED_PULL_REQUESTS
    ):
        branch = BranchName.parse(pull_request.head_branch_name)
        if branch is None or branch.component != (component or None):
            continue
        title = PullRequestTitle.parse(pull_request.title)
        if title is None or title.version is None:
            continue
        if title.version.is_snapshot:
            continue
        return title.version
    return None
