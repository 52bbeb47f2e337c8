"""Updaters for Java projects using ``x-version-update`` markers.

Files tag version strings with inline or block markers naming the artifact::

    <version>1.2.3</version><!-- {x-version-update:my-artifact:current} -->

    // {x-version-update-start:my-artifact:released}
    implementation 'com.example:my-artifact:1.2.3'
    // {x-version-update-end}

``versions.txt`` holds one ``artifact:released:current`` triple per line.
"""

from __future__ import annotations

import re

from ..version import Version
from .base import DefaultUpdater

INLINE_UPDATE_PATTERN = re.compile(r"{x-version-update:([\w\-_]+):(current|released)}")
BLOCK_START_PATTERN = re.compile(r"{x-version-update-start:([\w\-_]+):(current|released)}")
BLOCK_END_PATTERN = re.compile(r"{x-version-update-end}")
VERSION_PATTERN = re.compile(r"\d+\.\d+\.\d+(-\w+(\.\d+)?)?(-SNAPSHOT)?")
VERSIONS_LINE_PATTERN = re.compile(r"^([\w\-_]+):([^:]+):([^:]+)")


class JavaUpdate(DefaultUpdater):
    """Rewrites versions on lines carrying an ``x-version-update`` marker."""

    def update_content(self, content: str | None) -> str:
        new_lines = []
        block_artifact: str | None = None
        for line in (content or "").splitlines(keepends=True):
            inline = INLINE_UPDATE_PATTERN.search(line)
            if inline:
                new_lines.append(self._replace_version(line, inline.group(1)))
            elif block_artifact:
                new_lines.append(self._replace_version(line, block_artifact))
                if BLOCK_END_PATTERN.search(line):
                    block_artifact = None
            else:
                start = BLOCK_START_PATTERN.search(line)
                if start:
                    block_artifact = start.group(1)
                new_lines.append(line)
        return "".join(new_lines)

    def _replace_version(self, line: str, artifact: str) -> str:
        version = self.versions_map.get(artifact)
        if version is None:
            return line
        return VERSION_PATTERN.sub(str(version), line, count=1)


class VersionsManifest(JavaUpdate):
    """Updates ``versions.txt``.

    Snapshot versions only move the current column; releases move both.
    """

    def update_content(self, content: str | None) -> str:
        new_content = content or ""
        for artifact, version in self.versions_map.items():
            new_content = self._update_artifact(new_content, artifact, str(version))
        return new_content

    @staticmethod
    def _update_artifact(content: str, artifact: str, version: str) -> str:
        pattern = re.compile(rf"^{re.escape(artifact)}:([^:\n]*):([^:\n]*)$", re.MULTILINE)
        if "SNAPSHOT" in version:
            return pattern.sub(lambda m: f"{artifact}:{m.group(1)}:{version}", content)
        return pattern.sub(f"{artifact}:{version}:{version}", content)


def parse_versions(content: str) -> dict[str, Version]:
    """Read the current version of each artifact in ``versions.txt``."""
    versions: dict[str, Version] = {}
    for line in content.splitlines():
        match = VERSIONS_LINE_PATTERN.match(line)
        if match:
            versions[match.group(1)] = Version.parse(match.group(3).strip())
    return versions


def needs_snapshot(content: str) -> bool:
    """True when no artifact in ``versions.txt`` is currently a snapshot."""
    return not any(
        re.match(r"^[\w\-_]+:.+:.+-SNAPSHOT", line) for line in content.splitlines()
    )
