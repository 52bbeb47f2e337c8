"""Exception hierarchy for release-conductor.

Errors fall into four groups, and callers treat each group differently:

- Parse failures (``VersionParseError``, ``CommitParseError``) are raised by
  the low-level parsers and caught by the callers that iterate over history,
  which log and skip the offending item.
- Lookup misses are never raised; they are logged as warnings.
- Structural errors (``DependencyCycleError``, ``MissingReleaseDataError``,
  ``MalformedPullRequestError``) abort the unit of work.
- ``DuplicateReleaseError`` marks an already-existing release or tag so that
  callers can treat re-running a release as a success.
"""

from __future__ import annotations


class ReleaseConductorError(Exception):
    """Base class for all release-conductor errors."""


class ConfigurationError(ReleaseConductorError):
    """Raised when the release configuration or manifest file is invalid."""


class VersionParseError(ReleaseConductorError, ValueError):
    """Raised when a string is not a valid semantic version."""

    def __init__(self, version: str, reason: str | None = None) -> None:
        self.version = version
        message = f"Invalid version: {version!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class CommitParseError(ReleaseConductorError, ValueError):
    """Raised when a commit message does not follow the conventional format."""


class FileNotFoundOnBranchError(ReleaseConductorError):
    """Raised by the hosting client when a file does not exist on a branch."""

    def __init__(self, path: str, branch: str) -> None:
        self.path = path
        self.branch = branch
        super().__init__(f"File {path!r} not found on branch {branch!r}")


class HostingError(ReleaseConductorError):
    """Raised when the hosting API returns an unexpected failure."""

    def __init__(self, message: str, status: int | None = None) -> None:
        self.status = status
        super().__init__(message)


class DuplicateReleaseError(HostingError):
    """Raised when a release or tag already exists."""

    def __init__(self, tag_name: str) -> None:
        self.tag_name = tag_name
        super().__init__(f"Release {tag_name!r} already exists", status=422)


class MalformedPullRequestError(ReleaseConductorError):
    """Raised when a merged pull request title or branch cannot be parsed."""


class MissingReleaseDataError(ReleaseConductorError):
    """Raised when a release pull request does not carry a resolvable version."""


class DependencyCycleError(ReleaseConductorError, RuntimeError):
    """Raised when a workspace dependency graph contains a cycle."""
