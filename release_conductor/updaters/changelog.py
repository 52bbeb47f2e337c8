"""Changelog file updater."""

from __future__ import annotations

import re

from ..version import Version
from .base import DefaultUpdater

DEFAULT_CHANGELOG_HEADER = "# Changelog"

# Start of the most recent release entry: "## 1.2.3", "### [1.2.3]", "## v1.2.3"
VERSION_HEADER_PATTERN = re.compile(r"^###? v?\[?[0-9]", re.MULTILINE)


class Changelog(DefaultUpdater):
    """Prepends a release entry to a changelog.

    The entry goes above the newest existing release header, below any
    preamble. A missing changelog is created with ``header`` on top.
    """

    def __init__(
        self,
        version: Version,
        changelog_entry: str,
        header: str = DEFAULT_CHANGELOG_HEADER,
    ) -> None:
        super().__init__(version)
        self.changelog_entry = changelog_entry
        self.header = header

    def with_entry(self, changelog_entry: str) -> Changelog:
        """Return a copy of this updater with a different entry."""
        return Changelog(self.version, changelog_entry, header=self.header)

    def update_content(self, content: str | None) -> str:
        content = content or ""
        match = VERSION_HEADER_PATTERN.search(content)
        if match is None:
            preamble = content.strip() or self.header
            return f"{preamble}\n\n{self.changelog_entry}\n"
        before = content[: match.start()]
        after = content[match.start() :]
        return f"{before}{self.changelog_entry}\n\n{after}".rstrip() + "\n"
