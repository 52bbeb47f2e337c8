"""Strategy for Python packages described by ``pyproject.toml``."""

from __future__ import annotations

import structlog

from ..errors import FileNotFoundOnBranchError
from ..models import FileContents, Update
from ..toml import get_raw_project_name, parse_pyproject
from ..updaters import Changelog, PyProjectToml, PythonFileWithVersion
from .base import BuildUpdatesOptions, Strategy

logger = structlog.get_logger(__name__)


class Python(Strategy):
    """Updates the changelog, ``pyproject.toml`` and the package's ``__version__``."""

    _pyproject: FileContents | None = None

    async def pyproject(self) -> FileContents | None:
        if self._pyproject is None:
            try:
                self._pyproject = await self.hosting.get_file_contents_on_branch(
                    self.add_path("pyproject.toml"), self.target_branch
                )
            except FileNotFoundOnBranchError:
                logger.warning("pyproject_missing", path=self.path)
                return None
        return self._pyproject

    async def package_name(self) -> str:
        if self.config.package_name:
            return self.config.package_name
        contents = await self.pyproject()
        if contents is not None:
            name = get_raw_project_name(parse_pyproject(contents.parsed_content))
            if name:
                return name
        return self.repository.repo

    async def get_default_component(self) -> str:
        return await self.package_name()

    async def build_updates(self, options: BuildUpdatesOptions) -> list[Update]:
        version = options.new_version
        module = (await self.package_name()).replace("-", "_").lower()
        version_file = self.config.version_file or f"{module}/__init__.py"
        updates = [
            Update(
                path=self.add_path(self.changelog_path),
                create_if_missing=True,
                updater=Changelog(version, options.changelog_entry),
            ),
            Update(
                path=self.add_path("pyproject.toml"),
                cached_file_contents=await self.pyproject(),
                updater=PyProjectToml(version),
            ),
            Update(path=self.add_path(version_file), updater=PythonFileWithVersion(version)),
        ]
        return updates + self.extra_file_updates(version, options.versions_map)
