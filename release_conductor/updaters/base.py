"""File updater contract and the format-agnostic updaters.

An updater is a pure function of its configured version (or versions map) and
the old file content. ``None`` old content means the file does not exist yet,
in which case an updater either builds the file from scratch or raises.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence

from ..version import Version


class Updater(ABC):
    """Produces new file content from old content."""

    @abstractmethod
    def update_content(self, content: str | None) -> str:
        """Return the updated content for ``content`` (None if missing)."""


class DefaultUpdater(Updater):
    """Base for updaters that write a target version.

    Args:
        version: The version being released.
        versions_map: Per-artifact versions for multi-artifact ecosystems.
    """

    def __init__(self, version: Version, versions_map: Mapping[str, Version] | None = None) -> None:
        self.version = version
        self.versions_map = dict(versions_map or {})

    def update_content(self, content: str | None) -> str:
        # Plain version file (version.txt)
        return f"{self.version}\n"


class RawContent(Updater):
    """Replaces the file with precomputed content."""

    def __init__(self, content: str) -> None:
        self.content = content

    def update_content(self, content: str | None) -> str:
        return self.content


class CompositeUpdater(Updater):
    """Applies several updaters in order, piping each output into the next."""

    def __init__(self, updaters: Sequence[Updater]) -> None:
        self.updaters = list(updaters)

    def update_content(self, content: str | None) -> str:
        result = content
        for updater in self.updaters:
            result = updater.update_content(result)
        return result if result is not None else ""
