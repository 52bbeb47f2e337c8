"""Release notes rendering.

Builds the markdown changelog entry for one release from its classified
commits. The output is fully determined by the commits, the changelog sections
and the context (including the date), so identical inputs always render
byte-identical notes.
"""

from __future__ import annotations

import datetime as dt
from collections.abc import Sequence

from pydantic import BaseModel

from .commits import BREAKING_CHANGE_NOTE
from .models import ConventionalCommit
from .version import Version

DEFAULT_HOST = "github.com"


class ChangelogSection(BaseModel):
    """Maps a commit type to a changelog section heading."""

    type: str
    section: str
    hidden: bool = False


DEFAULT_CHANGELOG_SECTIONS: list[ChangelogSection] = [
    ChangelogSection(type="feat", section="Features"),
    ChangelogSection(type="feature", section="Features"),
    ChangelogSection(type="fix", section="Bug Fixes"),
    ChangelogSection(type="perf", section="Performance Improvements"),
    ChangelogSection(type="revert", section="Reverts"),
    ChangelogSection(type="docs", section="Documentation", hidden=True),
    ChangelogSection(type="style", section="Styles", hidden=True),
    ChangelogSection(type="chore", section="Miscellaneous Chores", hidden=True),
    ChangelogSection(type="refactor", section="Code Refactoring", hidden=True),
    ChangelogSection(type="test", section="Tests", hidden=True),
    ChangelogSection(type="build", section="Build System", hidden=True),
    ChangelogSection(type="ci", section="Continuous Integration", hidden=True),
]


class ReleaseNotes:
    """Renders release notes using a type → section mapping.

    Args:
        changelog_sections: Section taxonomy, in output order. Commits whose
            type is not listed, or is listed as hidden, are left out.
        host: Base URL used for compare and issue links.
    """

    def __init__(
        self,
        changelog_sections: Sequence[ChangelogSection] | None = None,
        host: str = DEFAULT_HOST,
    ) -> None:
        self.changelog_sections = list(changelog_sections or DEFAULT_CHANGELOG_SECTIONS)
        self.host = host.rstrip("/")

    def build_notes(
        self,
        commits: Sequence[ConventionalCommit],
        *,
        owner: str,
        repository: str,
        version: Version,
        previous_tag: str | None,
        current_tag: str,
        date: dt.date | None = None,
    ) -> str:
        """Render the changelog entry for ``version``.

        Args:
            commits: Classified commits included in the release.
            owner: Repository owner, used in links.
            repository: Repository name, used in links.
            version: The version being released.
            previous_tag: Tag of the previous release, or None for the first.
            current_tag: Tag the new release will get.
            date: Release date, defaults to today.

        Returns:
            Markdown without a trailing newline.
        """
        date = date or dt.date.today()
        out = self._header(owner, repository, version, previous_tag, current_tag, date)

        breaking = [
            note.text
            for commit in commits
            for note in commit.notes
            if note.title == BREAKING_CHANGE_NOTE
        ]
        if breaking:
            out += "\n\n\n### ⚠ BREAKING CHANGES\n\n"
            out += "\n".join(f"* {text}" for text in breaking) + "\n"

        first = True
        for title, section_commits in self._group(commits):
            if first:
                out += "\n" if breaking else "\n\n\n"
                first = False
            else:
                out += "\n\n"
            out += f"### {title}\n\n"
            out += "\n".join(self._entry(c, owner, repository) for c in section_commits) + "\n"

        return out.strip()

    def _header(
        self,
        owner: str,
        repository: str,
        version: Version,
        previous_tag: str | None,
        current_tag: str,
        date: dt.date,
    ) -> str:
        # Patch releases get a smaller heading
        level = "###" if version.patch != 0 else "##"
        if previous_tag:
            url = f"{self.host}/{owner}/{repository}/compare/{previous_tag}...{current_tag}"
            return f"{level} [{version}]({url}) ({date.isoformat()})"
        return f"{level} {version} ({date.isoformat()})"

    def _group(
        self, commits: Sequence[ConventionalCommit]
    ) -> list[tuple[str, list[ConventionalCommit]]]:
        titles: list[str] = []
        grouped: dict[str, list[ConventionalCommit]] = {}
        hidden: set[str] = set()
        type_to_section: dict[str, str] = {}
        for section in self.changelog_sections:
            type_to_section[section.type] = section.section
            if section.section not in titles:
                titles.append(section.section)
            if section.hidden:
                hidden.add(section.type)

        for commit in commits:
            if commit.type in hidden or commit.type not in type_to_section:
                continue
            grouped.setdefault(type_to_section[commit.type], []).append(commit)

        result = []
        for title in titles:
            if title in grouped:
                entries = sorted(grouped[title], key=lambda c: (c.scope or "", c.message))
                result.append((title, entries))
        return result

    def _entry(self, commit: ConventionalCommit, owner: str, repository: str) -> str:
        scope = f"**{commit.scope}:** " if commit.scope else ""
        issues_url = f"{self.host}/{owner}/{repository}/issues"
        links = [
            f"{ref.action} [{ref.prefix}{ref.issue}]({issues_url}/{ref.issue})"
            for ref in commit.references
            if ref.action
        ]
        suffix = "".join(f", {link}" for link in links)
        return f"* {scope}{commit.message}{suffix}"

