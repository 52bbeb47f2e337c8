"""Data models for release-conductor.

These Pydantic models represent the core data structures passed between the
hosting client, the release strategies and the plugin chain.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .pull_request_body import PullRequestBody
from .tags import PullRequestTitle, TagName
from .updaters.base import Updater
from .version import Version


class PackageInfo(BaseModel):
    """A workspace member as a node of the dependency graph.

    Attributes:
        path: Tracked path of the member, relative to the repository root.
        version: Version read from the member's manifest.
        deps: Names of the other members it requires. Third-party
              requirements never affect release order and are dropped.
    """

    path: str
    version: str
    deps: list[str] = Field(default_factory=list)


class VersionBump(BaseModel):
    """How a requirement on a workspace member moved.

    Attributes:
        old: Specifier before the release, ``*`` when unconstrained.
        new: Specifier written by the release.
    """

    old: str
    new: str


class PullRequest(BaseModel):
    """A pull request as reported by the hosting platform.

    Attributes:
        head_branch_name: Source branch of the pull request.
        base_branch_name: Branch the pull request targets.
        number: Pull request number.
        title: Pull request title.
        body: Pull request description.
        labels: Label names attached to the pull request.
        files: Paths touched by the pull request.
        sha: Merge commit sha, set once the pull request is merged.
    """

    head_branch_name: str
    base_branch_name: str
    number: int
    title: str
    body: str = ""
    labels: list[str] = Field(default_factory=list)
    files: list[str] = Field(default_factory=list)
    sha: str | None = None


class Commit(BaseModel):
    """A raw commit from the target branch history."""

    sha: str
    message: str
    files: list[str] = Field(default_factory=list)
    pull_request: PullRequest | None = None


class Note(BaseModel):
    """A commit footer note such as ``BREAKING CHANGE`` or ``RELEASE AS``."""

    title: str
    text: str


class Reference(BaseModel):
    """An issue or pull request referenced from a commit message."""

    issue: str
    action: str | None = None
    prefix: str = "#"


class ConventionalCommit(Commit):
    """A commit classified according to the conventional commits format.

    One raw :class:`Commit` may expand to several of these when its body holds
    additional conventional headers. ``message`` is the header line of this
    particular sub-commit.
    """

    type: str
    scope: str | None = None
    bare_message: str
    notes: list[Note] = Field(default_factory=list)
    references: list[Reference] = Field(default_factory=list)
    breaking: bool = False


class FileContents(BaseModel):
    """File contents fetched from a branch.

    Attributes:
        content: Base64-encoded content as returned by the hosting API.
        parsed_content: Decoded text content.
        sha: Blob sha of the file.
        mode: Git file mode.
    """

    content: str = ""
    parsed_content: str
    sha: str = ""
    mode: str = "100644"


class Release(BaseModel):
    """A release to be published, or one reconstructed from a merged PR."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    tag: TagName
    sha: str
    notes: str = ""
    name: str | None = None


class GitHubRelease(BaseModel):
    """A release as reported by the hosting platform's release listing."""

    name: str | None = None
    tag_name: str
    sha: str
    notes: str = ""
    url: str | None = None
    draft: bool = False


class CreatedRelease(BaseModel):
    """The hosted record returned after creating a release."""

    id: int
    tag_name: str
    sha: str
    notes: str = ""
    url: str = ""
    draft: bool = False


class Update(BaseModel):
    """A pending change to one file in the release pull request.

    Attributes:
        path: Repository-relative path of the file.
        create_if_missing: Whether to create the file when it does not exist.
        cached_file_contents: Already fetched contents, to avoid a refetch.
        updater: Object implementing ``update_content(old) -> new``.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    path: str
    create_if_missing: bool = False
    cached_file_contents: FileContents | None = None
    updater: Updater


class ReleasePullRequest(BaseModel):
    """An in-progress release pull request for one or more components."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    title: PullRequestTitle
    body: PullRequestBody
    updates: list[Update] = Field(default_factory=list)
    labels: list[str] = Field(default_factory=list)
    head_ref_name: str
    version: Version | None = None
    draft: bool = False


class CandidateReleasePullRequest(BaseModel):
    """A release pull request paired with the path and config that produced it."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    path: str
    pull_request: ReleasePullRequest
    config: Any

