"""Updaters for Python packages."""

from __future__ import annotations

import re

import structlog

from ..toml import dump_pyproject, parse_pyproject, set_project_version
from .base import DefaultUpdater

logger = structlog.get_logger(__name__)

VERSION_ASSIGNMENT_PATTERN = re.compile(
    r"""^(?P<prefix>\s*__version__\s*(?::\s*str\s*)?=\s*)(?P<quote>['"])[^'"]*(?P=quote)""",
    re.MULTILINE,
)


class PyProjectToml(DefaultUpdater):
    """Sets the version in ``pyproject.toml``, preserving formatting.

    Updates ``[project].version`` when present, otherwise
    ``[tool.poetry].version``. Projects with a dynamic version are left alone.
    """

    def update_content(self, content: str | None) -> str:
        doc = parse_pyproject(content or "")
        if not set_project_version(doc, str(self.version)):
            logger.warning("pyproject_version_not_found")
            return content or ""
        return dump_pyproject(doc)


class PythonFileWithVersion(DefaultUpdater):
    """Rewrites a ``__version__ = "..."`` assignment in a Python module."""

    def update_content(self, content: str | None) -> str:
        content = content or ""
        if not VERSION_ASSIGNMENT_PATTERN.search(content):
            logger.warning("version_assignment_not_found")
            return content
        return VERSION_ASSIGNMENT_PATTERN.sub(
            lambda m: f"{m.group('prefix')}{m.group('quote')}{self.version}{m.group('quote')}",
            content,
            count=1,
        )
