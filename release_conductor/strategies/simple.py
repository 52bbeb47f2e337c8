"""Strategy for projects whose version lives in a plain text file."""

from __future__ import annotations

from ..models import Update
from ..updaters import Changelog, DefaultUpdater
from .base import BuildUpdatesOptions, Strategy

DEFAULT_VERSION_FILE = "version.txt"


class Simple(Strategy):
    """Updates the changelog and ``version.txt`` (or ``version-file``)."""

    async def build_updates(self, options: BuildUpdatesOptions) -> list[Update]:
        version = options.new_version
        updates = [
            Update(
                path=self.add_path(self.changelog_path),
                create_if_missing=True,
                updater=Changelog(version, options.changelog_entry),
            ),
            Update(
                path=self.add_path(self.config.version_file or DEFAULT_VERSION_FILE),
                create_if_missing=False,
                updater=DefaultUpdater(version),
            ),
        ]
        return updates + self.extra_file_updates(version, options.versions_map)
