"""Hosting platform interface and its ``gh``-backed implementation.

Everything the release pipeline needs from the hosting platform goes through
:class:`Hosting`. History is exposed as bounded async iterators that fetch one
page at a time, so a consumer that stops iterating stops fetching.
"""

from __future__ import annotations

import base64
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence
from typing import Any
from urllib.parse import quote

import structlog
from pydantic import BaseModel

from .errors import DuplicateReleaseError, FileNotFoundOnBranchError, HostingError
from .models import (
    Commit,
    CreatedRelease,
    FileContents,
    GitHubRelease,
    PullRequest,
    Release,
    ReleasePullRequest,
    Update,
)
from .shell import gh_api

logger = structlog.get_logger(__name__)

PAGE_SIZE = 25


class Repository(BaseModel):
    owner: str
    repo: str
    default_branch: str = "main"


class Hosting(ABC):
    """Operations the release pipeline performs against the hosting platform."""

    repository: Repository

    @abstractmethod
    async def get_file_contents_on_branch(self, path: str, branch: str) -> FileContents:
        """Fetch a file from a branch.

        Raises:
            FileNotFoundOnBranchError: If the file does not exist.
        """

    @abstractmethod
    def merge_commit_iterator(self, branch: str, max_results: int = 500) -> AsyncIterator[Commit]:
        """Iterate commits on ``branch``, newest first."""

    @abstractmethod
    def release_iterator(self, max_results: int = 100) -> AsyncIterator[GitHubRelease]:
        """Iterate published releases, newest first."""

    @abstractmethod
    def merged_pull_request_iterator(
        self, branch: str, max_results: int = 250
    ) -> AsyncIterator[PullRequest]:
        """Iterate merged pull requests targeting ``branch``, newest first."""

    @abstractmethod
    def pull_request_iterator(
        self, branch: str, status: str = "open", max_results: int = 100
    ) -> AsyncIterator[PullRequest]:
        """Iterate pull requests targeting ``branch`` with the given state."""

    @abstractmethod
    async def find_files_by_filename(
        self, filename: str, branch: str, prefix: str | None = None
    ) -> list[str]:
        """Find every file named ``filename`` on ``branch``, optionally under ``prefix``."""

    @abstractmethod
    async def create_pull_request(
        self, pull_request: ReleasePullRequest, target_branch: str, fork: bool = False
    ) -> PullRequest:
        """Push the pull request's updates to its head branch and open it."""

    @abstractmethod
    async def update_pull_request(
        self,
        number: int,
        pull_request: ReleasePullRequest,
        target_branch: str,
        fork: bool = False,
    ) -> PullRequest:
        """Force-push new updates to an open pull request and refresh its text."""

    @abstractmethod
    async def create_release(self, release: Release, draft: bool = False) -> CreatedRelease:
        """Create a tag and hosted release.

        Raises:
            DuplicateReleaseError: If the release or tag already exists.
        """

    @abstractmethod
    async def add_issue_labels(self, labels: Sequence[str], number: int) -> None: ...

    @abstractmethod
    async def remove_issue_labels(self, labels: Sequence[str], number: int) -> None: ...

    async def build_file_changes(
        self, updates: Sequence[Update], branch: str
    ) -> dict[str, str]:
        """Apply updaters to the current file contents on ``branch``.

        Missing files are created only when the update allows it. Files whose
        content does not change are left out of the result.

        Returns:
            Map of path → new content.
        """
        changes: dict[str, str] = {}
        for update in updates:
            old_content: str | None
            if update.cached_file_contents is not None:
                old_content = update.cached_file_contents.parsed_content
            else:
                try:
                    old_content = (
                        await self.get_file_contents_on_branch(update.path, branch)
                    ).parsed_content
                except FileNotFoundOnBranchError:
                    if not update.create_if_missing:
                        logger.warning("update_file_missing", path=update.path, branch=branch)
                        continue
                    old_content = None
            new_content = update.updater.update_content(old_content)
            if new_content != old_content:
                changes[update.path] = new_content
        return changes


class GhHosting(Hosting):
    """GitHub REST client that shells out to ``gh api``.

    Authentication, retries and rate limiting are left to ``gh``.
    """

    def __init__(self, repository: Repository) -> None:
        self.repository = repository
        self._base = f"repos/{repository.owner}/{repository.repo}"

    @classmethod
    async def create(cls, owner: str, repo: str, default_branch: str | None = None) -> GhHosting:
        """Build a client, looking up the default branch if not given."""
        if default_branch is None:
            data = await gh_api(f"repos/{owner}/{repo}")
            default_branch = data["default_branch"]
        return cls(Repository(owner=owner, repo=repo, default_branch=default_branch))

    async def _paginate(self, path: str, max_results: int) -> AsyncIterator[dict[str, Any]]:
        separator = "&" if "?" in path else "?"
        page = 1
        seen = 0
        while seen < max_results:
            items = await gh_api(f"{path}{separator}per_page={PAGE_SIZE}&page={page}")
            if not items:
                return
            for item in items:
                yield item
                seen += 1
                if seen >= max_results:
                    return
            if len(items) < PAGE_SIZE:
                return
            page += 1

    async def get_file_contents_on_branch(self, path: str, branch: str) -> FileContents:
        try:
            data = await gh_api(f"{self._base}/contents/{quote(path)}?ref={quote(branch)}")
        except HostingError as e:
            if e.status == 404:
                raise FileNotFoundOnBranchError(path, branch) from e
            raise
        content = data.get("content", "")
        return FileContents(
            content=content,
            parsed_content=base64.b64decode(content).decode("utf-8"),
            sha=data["sha"],
        )

    async def merge_commit_iterator(
        self, branch: str, max_results: int = 500
    ) -> AsyncIterator[Commit]:
        async for item in self._paginate(f"{self._base}/commits?sha={quote(branch)}", max_results):
            sha = item["sha"]
            detail = await gh_api(f"{self._base}/commits/{sha}")
            pulls = await gh_api(f"{self._base}/commits/{sha}/pulls")
            pull_request = next(
                (
                    self._to_pull_request(pr, files=[])
                    for pr in pulls or []
                    if pr.get("merged_at") and pr["base"]["ref"] == branch
                ),
                None,
            )
            yield Commit(
                sha=sha,
                message=item["commit"]["message"],
                files=[f["filename"] for f in detail.get("files", [])],
                pull_request=pull_request,
            )

    async def release_iterator(self, max_results: int = 100) -> AsyncIterator[GitHubRelease]:
        async for item in self._paginate(f"{self._base}/releases", max_results):
            if item.get("draft"):
                continue
            tag_name = item["tag_name"]
            commit = await gh_api(f"{self._base}/commits/{quote(tag_name)}")
            yield GitHubRelease(
                name=item.get("name"),
                tag_name=tag_name,
                sha=commit["sha"],
                notes=item.get("body") or "",
                url=item.get("html_url"),
            )

    async def merged_pull_request_iterator(
        self, branch: str, max_results: int = 250
    ) -> AsyncIterator[PullRequest]:
        path = (
            f"{self._base}/pulls?state=closed&base={quote(branch)}"
            "&sort=updated&direction=desc"
        )
        async for item in self._paginate(path, max_results):
            if not item.get("merged_at"):
                continue
            files = await self._pull_request_files(item["number"])
            yield self._to_pull_request(item, files=files)

    async def pull_request_iterator(
        self, branch: str, status: str = "open", max_results: int = 100
    ) -> AsyncIterator[PullRequest]:
        path = f"{self._base}/pulls?state={status}&base={quote(branch)}"
        async for item in self._paginate(path, max_results):
            yield self._to_pull_request(item, files=[])

    async def _pull_request_files(self, number: int) -> list[str]:
        return [
            f["filename"]
            async for f in self._paginate(f"{self._base}/pulls/{number}/files", max_results=3000)
        ]

    @staticmethod
    def _to_pull_request(item: dict[str, Any], files: list[str]) -> PullRequest:
        return PullRequest(
            head_branch_name=item["head"]["ref"],
            base_branch_name=item["base"]["ref"],
            number=item["number"],
            title=item["title"],
            body=item.get("body") or "",
            labels=[label["name"] for label in item.get("labels", [])],
            files=files,
            sha=item.get("merge_commit_sha") if item.get("merged_at") else None,
        )

    async def find_files_by_filename(
        self, filename: str, branch: str, prefix: str | None = None
    ) -> list[str]:
        tree = await gh_api(f"{self._base}/git/trees/{quote(branch)}?recursive=1")
        prefix = f"{prefix.strip('/')}/" if prefix and prefix != "." else ""
        return [
            entry["path"]
            for entry in tree.get("tree", [])
            if entry["type"] == "blob"
            and entry["path"].startswith(prefix)
            and (entry["path"] == filename or entry["path"].endswith(f"/{filename}"))
        ]

    async def _push_branch(
        self, pull_request: ReleasePullRequest, target_branch: str, fork: bool
    ) -> str:
        """Commit the updates onto ``target_branch`` and force the head branch to it.

        Returns:
            The ``owner:branch`` head reference for the pull request.
        """
        changes = await self.build_file_changes(pull_request.updates, target_branch)
        repo_base = self._base
        owner = self.repository.owner
        if fork:
            forked = await gh_api(f"{self._base}/forks", method="POST", payload={})
            owner = forked["owner"]["login"]
            repo_base = f"repos/{forked['full_name']}"

        base_ref = await gh_api(f"{self._base}/git/ref/heads/{quote(target_branch)}")
        base_sha = base_ref["object"]["sha"]
        base_commit = await gh_api(f"{self._base}/git/commits/{base_sha}")
        tree = await gh_api(
            f"{repo_base}/git/trees",
            method="POST",
            payload={
                "base_tree": base_commit["tree"]["sha"],
                "tree": [
                    {"path": path, "mode": "100644", "type": "blob", "content": content}
                    for path, content in changes.items()
                ],
            },
        )
        commit = await gh_api(
            f"{repo_base}/git/commits",
            method="POST",
            payload={
                "message": str(pull_request.title),
                "tree": tree["sha"],
                "parents": [base_sha],
            },
        )
        head = pull_request.head_ref_name
        try:
            await gh_api(
                f"{repo_base}/git/refs/heads/{head}",
                method="PATCH",
                payload={"sha": commit["sha"], "force": True},
            )
        except HostingError as e:
            if e.status not in (404, 422):
                raise
            await gh_api(
                f"{repo_base}/git/refs",
                method="POST",
                payload={"ref": f"refs/heads/{head}", "sha": commit["sha"]},
            )
        logger.info("branch_pushed", branch=head, files=sorted(changes))
        return f"{owner}:{head}"

    async def create_pull_request(
        self, pull_request: ReleasePullRequest, target_branch: str, fork: bool = False
    ) -> PullRequest:
        head = await self._push_branch(pull_request, target_branch, fork)
        data = await gh_api(
            f"{self._base}/pulls",
            method="POST",
            payload={
                "title": str(pull_request.title),
                "head": head,
                "base": target_branch,
                "body": str(pull_request.body),
                "draft": pull_request.draft,
            },
        )
        if pull_request.labels:
            await self.add_issue_labels(pull_request.labels, data["number"])
        return self._to_pull_request(data, files=[])

    async def update_pull_request(
        self,
        number: int,
        pull_request: ReleasePullRequest,
        target_branch: str,
        fork: bool = False,
    ) -> PullRequest:
        await self._push_branch(pull_request, target_branch, fork)
        data = await gh_api(
            f"{self._base}/pulls/{number}",
            method="PATCH",
            payload={"title": str(pull_request.title), "body": str(pull_request.body)},
        )
        return self._to_pull_request(data, files=[])

    async def create_release(self, release: Release, draft: bool = False) -> CreatedRelease:
        tag_name = str(release.tag)
        try:
            data = await gh_api(
                f"{self._base}/releases",
                method="POST",
                payload={
                    "tag_name": tag_name,
                    "target_commitish": release.sha,
                    "name": release.name or tag_name,
                    "body": release.notes,
                    "draft": draft,
                },
            )
        except HostingError as e:
            if e.status == 422 and "already_exists" in str(e):
                raise DuplicateReleaseError(tag_name) from e
            raise
        return CreatedRelease(
            id=data["id"],
            tag_name=data["tag_name"],
            sha=release.sha,
            notes=data.get("body") or "",
            url=data.get("html_url") or "",
            draft=data.get("draft", draft),
        )

    async def add_issue_labels(self, labels: Sequence[str], number: int) -> None:
        if not labels:
            return
        await gh_api(
            f"{self._base}/issues/{number}/labels", method="POST", payload={"labels": list(labels)}
        )

    async def remove_issue_labels(self, labels: Sequence[str], number: int) -> None:
        for label in labels:
            try:
                await gh_api(
                    f"{self._base}/issues/{number}/labels/{quote(label, safe='')}",
                    method="DELETE",
                )
            except HostingError as e:
                if e.status != 404:
                    raise
                logger.debug("label_not_present", label=label, number=number)
