"""Workspace plugin for npm monorepos."""

from __future__ import annotations

import json
from collections.abc import Mapping

from ..config import ReleaseType
from ..updaters.node import json_stringify
from .workspace import DependencyChanges, WorkspacePackage, WorkspacePlugin

DEPENDENCY_TYPES = ("dependencies", "devDependencies", "peerDependencies", "optionalDependencies")

# Specifiers resolved by the package manager, never rewritten
LOCAL_PROTOCOLS = ("workspace:", "file:", "link:")


class NodeWorkspace(WorkspacePlugin):
    """Moves internal ``package.json`` dependency ranges to ``^{version}``."""

    release_type = ReleaseType.NODE
    manifest_filename = "package.json"

    def parse_package(self, path: str, content: str) -> WorkspacePackage:
        data = json.loads(content)
        deps: list[str] = []
        for dependency_type in DEPENDENCY_TYPES:
            deps.extend(name for name in data.get(dependency_type, {}) if name not in deps)
        return WorkspacePackage(
            name=data.get("name") or path,
            path=path,
            version=data.get("version", "0.0.0"),
            content=content,
            deps=deps,
        )

    def update_manifest(
        self, package: WorkspacePackage, version: str, updated_versions: Mapping[str, str]
    ) -> tuple[str, DependencyChanges]:
        data = json.loads(package.content)
        data["version"] = version
        changes: DependencyChanges = {}
        for dependency_type in DEPENDENCY_TYPES:
            dependencies = data.get(dependency_type)
            if not isinstance(dependencies, dict):
                continue
            for name, specifier in dependencies.items():
                if name == package.name or name not in updated_versions:
                    continue
                if str(specifier).startswith(LOCAL_PROTOCOLS):
                    continue
                new_specifier = f"^{updated_versions[name]}"
                if new_specifier == specifier:
                    continue
                dependencies[name] = new_specifier
                changes.setdefault(dependency_type, []).append((name, specifier, new_specifier))
        return json_stringify(data, package.content), changes
