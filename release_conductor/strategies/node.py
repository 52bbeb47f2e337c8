"""Strategy for npm packages."""

from __future__ import annotations

import json

import structlog

from ..errors import FileNotFoundOnBranchError
from ..models import FileContents, Update
from ..updaters import Changelog, PackageJson, PackageLockJson, SamplesPackageJson
from .base import BuildUpdatesOptions, Strategy

logger = structlog.get_logger(__name__)

LOCK_FILES = ("package-lock.json", "npm-shrinkwrap.json")


def strip_scope(package_name: str) -> str:
    """``@scope/name`` → ``name``."""
    return package_name.split("/", 1)[1] if package_name.startswith("@") else package_name


class Node(Strategy):
    """Updates lockfiles, samples, the changelog and ``package.json``."""

    _package_json: FileContents | None = None

    async def package_json(self) -> FileContents | None:
        """Fetch ``package.json`` for this path, once."""
        if self._package_json is None:
            try:
                self._package_json = await self.hosting.get_file_contents_on_branch(
                    self.add_path("package.json"), self.target_branch
                )
            except FileNotFoundOnBranchError:
                logger.warning("package_json_missing", path=self.path)
                return None
        return self._package_json

    async def package_name(self) -> str | None:
        if self.config.package_name:
            return self.config.package_name
        contents = await self.package_json()
        if contents is None:
            return None
        return json.loads(contents.parsed_content).get("name")

    async def get_default_component(self) -> str:
        name = await self.package_name()
        return strip_scope(name) if name else self.repository.repo

    async def build_updates(self, options: BuildUpdatesOptions) -> list[Update]:
        version = options.new_version
        package_name = await self.package_name() or self.repository.repo
        updates = [
            Update(path=self.add_path(lock_file), updater=PackageLockJson(version))
            for lock_file in LOCK_FILES
        ]
        updates.append(
            Update(
                path=self.add_path("samples/package.json"),
                updater=SamplesPackageJson(version, package_name),
            )
        )
        updates.append(
            Update(
                path=self.add_path(self.changelog_path),
                create_if_missing=True,
                updater=Changelog(version, options.changelog_entry),
            )
        )
        updates.append(
            Update(
                path=self.add_path("package.json"),
                cached_file_contents=await self.package_json(),
                updater=PackageJson(version),
            )
        )
        return updates + self.extra_file_updates(version, options.versions_map)
