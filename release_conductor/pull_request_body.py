"""Structured release pull request body.

The body carries one entry per component folded into the pull request. It is
rendered to markdown when the pull request is opened and parsed back after it
is merged, so ``PullRequestBody.parse(str(body))`` must recover the entries.

A body with a single component-less entry renders the notes directly; any
other body renders one ``<details>`` block per entry::

    <details><summary>pkg-a: 1.2.3</summary>

    ### [1.2.3](...)
    ...
    </details>
"""

from __future__ import annotations

import re
from dataclasses import dataclass

import structlog

from .errors import VersionParseError
from .version import Version

logger = structlog.get_logger(__name__)

DEFAULT_HEADER = ":robot: I have created a release *beep* *boop*"
DEFAULT_FOOTER = (
    "This PR was generated with release-conductor. "
    "Merging it will tag and publish the releases listed above."
)

DETAILS_PATTERN = re.compile(
    r"<details><summary>(?P<summary>.*?)</summary>(?P<notes>.*?)</details>", re.DOTALL
)
NOTES_VERSION_PATTERN = re.compile(r"^#{2,3} \[?v?(?P<version>\d+\.\d+\.\d+[^\]\s]*)", re.MULTILINE)
SUMMARY_VERSION_PATTERN = re.compile(r"^v?\d+\.\d+\.\d+\S*$")


@dataclass(frozen=True)
class ReleaseData:
    """One component's release inside a pull request body."""

    notes: str
    component: str | None = None
    version: Version | None = None


class PullRequestBody:
    """Header, per-component release data and footer of a release PR."""

    def __init__(
        self,
        release_data: list[ReleaseData],
        header: str = DEFAULT_HEADER,
        footer: str = DEFAULT_FOOTER,
    ) -> None:
        self.release_data = list(release_data)
        self.header = header
        self.footer = footer

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PullRequestBody):
            return NotImplemented
        return (self.release_data, self.header, self.footer) == (
            other.release_data,
            other.header,
            other.footer,
        )

    def __repr__(self) -> str:
        return f"PullRequestBody(release_data={self.release_data!r})"

    def notes(self) -> str:
        """Render the release data section without header and footer."""
        if len(self.release_data) == 1 and not self.release_data[0].component:
            return self.release_data[0].notes
        blocks = []
        for data in self.release_data:
            summary = f"{data.component}: {data.version}" if data.component else str(data.version)
            blocks.append(f"<details><summary>{summary}</summary>\n\n{data.notes}\n</details>")
        return "\n\n".join(blocks)

    def __str__(self) -> str:
        return f"{self.header}\n---\n\n\n{self.notes()}\n\n---\n{self.footer}"

    @classmethod
    def parse(cls, body: str) -> PullRequestBody | None:
        """Parse a rendered body, returning None if it is not a release body."""
        parts = _split_body(body)
        if parts is None:
            return None
        header, content, footer = parts
        release_data = _extract_multiple_releases(content) or _extract_single_release(content)
        if not release_data:
            logger.warning("pull_request_body_without_releases")
            return None
        return cls(release_data, header=header, footer=footer)


def _split_body(body: str) -> tuple[str, str, str] | None:
    # Header and footer are fenced by horizontal rules
    separator = "\n---\n"
    first = body.find(separator)
    last = body.rfind(separator)
    if first == -1 or first == last:
        return None
    header = body[:first].strip()
    content = body[first + len(separator) : last].strip("\n")
    footer = body[last + len(separator) :].strip()
    return header, content, footer


def _extract_multiple_releases(content: str) -> list[ReleaseData]:
    release_data = []
    for match in DETAILS_PATTERN.finditer(content):
        summary = match.group("summary").strip()
        component, version = _parse_summary(summary)
        release_data.append(
            ReleaseData(notes=match.group("notes").strip(), component=component, version=version)
        )
    return release_data


def _parse_summary(summary: str) -> tuple[str | None, Version | None]:
    if SUMMARY_VERSION_PATTERN.match(summary):
        return None, _safe_version(summary)
    component, sep, version_str = summary.rpartition(": ")
    if not sep:
        return summary or None, None
    return component or None, _safe_version(version_str)


def _extract_single_release(content: str) -> list[ReleaseData]:
    notes = content.strip()
    if not notes:
        return []
    match = NOTES_VERSION_PATTERN.search(notes)
    version = _safe_version(match.group("version")) if match else None
    return [ReleaseData(notes=notes, version=version)]


def _safe_version(version_str: str) -> Version | None:
    try:
        return Version.parse(version_str)
    except VersionParseError:
        logger.warning("invalid_release_version", version=version_str)
        return None
