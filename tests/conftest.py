"""Shared test fixtures."""

from __future__ import annotations

import base64
from collections.abc import AsyncIterator, Sequence

import pytest
import tomlkit

from release_conductor.errors import DuplicateReleaseError, FileNotFoundOnBranchError
from release_conductor.github import Hosting, Repository
from release_conductor.models import (
    Commit,
    CreatedRelease,
    FileContents,
    GitHubRelease,
    PullRequest,
    Release,
    ReleasePullRequest,
)


class FakeHosting(Hosting):
    """In-memory hosting platform.

    Files in ``files`` exist on every branch. Mutating calls are recorded
    instead of performed.
    """

    def __init__(
        self,
        owner: str = "fake-owner",
        repo: str = "fake-repo",
        files: dict[str, str] | None = None,
        commits: list[Commit] | None = None,
        releases: list[GitHubRelease] | None = None,
        merged_pull_requests: list[PullRequest] | None = None,
        open_pull_requests: list[PullRequest] | None = None,
    ) -> None:
        self.repository = Repository(owner=owner, repo=repo)
        self.files = dict(files or {})
        self.commits = list(commits or [])
        self.releases = list(releases or [])
        self.merged_pull_requests = list(merged_pull_requests or [])
        self.open_pull_requests = list(open_pull_requests or [])

        self.fetched_paths: list[str] = []
        self.commits_read = 0
        self.created_pull_requests: list[tuple[ReleasePullRequest, dict[str, str]]] = []
        self.updated_pull_requests: list[tuple[int, ReleasePullRequest, dict[str, str]]] = []
        self.created_releases: list[tuple[Release, bool]] = []
        self.existing_tags: set[str] = set()
        self.added_labels: list[tuple[list[str], int]] = []
        self.removed_labels: list[tuple[list[str], int]] = []

    async def get_file_contents_on_branch(self, path: str, branch: str) -> FileContents:
        self.fetched_paths.append(path)
        if path not in self.files:
            raise FileNotFoundOnBranchError(path, branch)
        text = self.files[path]
        return FileContents(
            content=base64.b64encode(text.encode()).decode(),
            parsed_content=text,
            sha=f"blob-{path}",
        )

    async def merge_commit_iterator(
        self, branch: str, max_results: int = 500
    ) -> AsyncIterator[Commit]:
        for commit in self.commits[:max_results]:
            self.commits_read += 1
            yield commit

    async def release_iterator(self, max_results: int = 100) -> AsyncIterator[GitHubRelease]:
        for release in self.releases[:max_results]:
            yield release

    async def merged_pull_request_iterator(
        self, branch: str, max_results: int = 250
    ) -> AsyncIterator[PullRequest]:
        for pull_request in self.merged_pull_requests[:max_results]:
            yield pull_request

    async def pull_request_iterator(
        self, branch: str, status: str = "open", max_results: int = 100
    ) -> AsyncIterator[PullRequest]:
        for pull_request in self.open_pull_requests[:max_results]:
            yield pull_request

    async def find_files_by_filename(
        self, filename: str, branch: str, prefix: str | None = None
    ) -> list[str]:
        prefix = f"{prefix.strip('/')}/" if prefix and prefix != "." else ""
        return sorted(
            path
            for path in self.files
            if path.startswith(prefix) and (path == filename or path.endswith(f"/{filename}"))
        )

    async def create_pull_request(
        self, pull_request: ReleasePullRequest, target_branch: str, fork: bool = False
    ) -> PullRequest:
        changes = await self.build_file_changes(pull_request.updates, target_branch)
        self.created_pull_requests.append((pull_request, changes))
        return PullRequest(
            head_branch_name=pull_request.head_ref_name,
            base_branch_name=target_branch,
            number=100 + len(self.created_pull_requests),
            title=str(pull_request.title),
            body=str(pull_request.body),
            labels=list(pull_request.labels),
        )

    async def update_pull_request(
        self,
        number: int,
        pull_request: ReleasePullRequest,
        target_branch: str,
        fork: bool = False,
    ) -> PullRequest:
        changes = await self.build_file_changes(pull_request.updates, target_branch)
        self.updated_pull_requests.append((number, pull_request, changes))
        return PullRequest(
            head_branch_name=pull_request.head_ref_name,
            base_branch_name=target_branch,
            number=number,
            title=str(pull_request.title),
            body=str(pull_request.body),
        )

    async def create_release(self, release: Release, draft: bool = False) -> CreatedRelease:
        tag_name = str(release.tag)
        if tag_name in self.existing_tags:
            raise DuplicateReleaseError(tag_name)
        self.existing_tags.add(tag_name)
        self.created_releases.append((release, draft))
        owner, repo = self.repository.owner, self.repository.repo
        return CreatedRelease(
            id=len(self.created_releases),
            tag_name=tag_name,
            sha=release.sha,
            notes=release.notes,
            url=f"https://github.com/{owner}/{repo}/releases/tag/{tag_name}",
            draft=draft,
        )

    async def add_issue_labels(self, labels: Sequence[str], number: int) -> None:
        self.added_labels.append((list(labels), number))

    async def remove_issue_labels(self, labels: Sequence[str], number: int) -> None:
        self.removed_labels.append((list(labels), number))


@pytest.fixture
def hosting() -> FakeHosting:
    """An empty in-memory repository ``fake-owner/fake-repo``."""
    return FakeHosting()


@pytest.fixture
def make_hosting() -> type[FakeHosting]:
    """Factory for in-memory repositories with custom contents."""
    return FakeHosting


@pytest.fixture
def member_pyproject() -> str:
    """A workspace member requiring siblings from every kind of dependency array."""
    return """\
[project]
name = "acme-api"
version = "1.4.2"
dependencies = [
    "httpx>=0.27",
    "acme-core>=1.0",
]

[project.optional-dependencies]
cli = ["click>=8.1", "acme_cli[rich]~=0.5"]

[dependency-groups]
test = ["pytest>=8.0", "acme-testing"]
"""


@pytest.fixture
def member_doc(member_pyproject: str) -> tomlkit.TOMLDocument:
    return tomlkit.parse(member_pyproject)
