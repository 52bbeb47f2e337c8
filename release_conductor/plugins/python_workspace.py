"""Workspace plugin for uv-style Python monorepos."""

from __future__ import annotations

import posixpath
from collections.abc import Mapping

from ..config import ReleaseType
from ..deps import requirement_name, rewrite_pyproject
from ..toml import (
    get_all_dependency_strings,
    get_project_name,
    get_project_version,
    parse_pyproject,
)
from .workspace import DependencyChanges, WorkspacePackage, WorkspacePlugin


class PythonWorkspace(WorkspacePlugin):
    """Pins internal PEP 508 dependencies to ``=={version}``.

    Pins are rewritten in ``[project].dependencies``, every
    ``[project].optional-dependencies`` extra and every PEP 735 dependency
    group.
    """

    release_type = ReleaseType.PYTHON
    manifest_filename = "pyproject.toml"

    def parse_package(self, path: str, content: str) -> WorkspacePackage:
        doc = parse_pyproject(content)
        return WorkspacePackage(
            name=get_project_name(doc, fallback=posixpath.basename(path)),
            path=path,
            version=get_project_version(doc),
            content=content,
            deps=[requirement_name(dep) for dep in get_all_dependency_strings(doc)],
        )

    def update_manifest(
        self, package: WorkspacePackage, version: str, updated_versions: Mapping[str, str]
    ) -> tuple[str, DependencyChanges]:
        internal = {name: v for name, v in updated_versions.items() if name != package.name}
        content, bumps = rewrite_pyproject(package.content, version, internal)
        changes: DependencyChanges = {}
        if bumps:
            changes["dependencies"] = [(name, bump.old, bump.new) for name, bump in bumps.items()]
        return content, changes
