"""Language-agnostic updaters driven by comment markers.

Used for user-configured ``extra-files``. A line containing
``x-release-conductor-version`` has its first version string replaced; so does
every line between ``x-release-conductor-start-version`` and
``x-release-conductor-end``.
"""

from __future__ import annotations

import re

from .base import DefaultUpdater

INLINE_MARKER = "x-release-conductor-version"
BLOCK_START_MARKER = "x-release-conductor-start-version"
BLOCK_END_MARKER = "x-release-conductor-end"

SEMVER_PATTERN = re.compile(
    r"\d+\.\d+\.\d+(?:-[0-9A-Za-z\-]+(?:\.[0-9A-Za-z\-]+)*)?(?:\+[0-9A-Za-z\-.]+)?"
)


class Generic(DefaultUpdater):
    """Replaces versions on marked lines of an arbitrary text file."""

    def update_content(self, content: str | None) -> str:
        lines = (content or "").split("\n")
        in_block = False
        for i, line in enumerate(lines):
            if BLOCK_START_MARKER in line:
                in_block = True
            elif BLOCK_END_MARKER in line:
                in_block = False
            elif in_block or INLINE_MARKER in line:
                lines[i] = SEMVER_PATTERN.sub(str(self.version), line, count=1)
        return "\n".join(lines)
