"""Plugins post-processing release candidates."""

from __future__ import annotations

from collections.abc import Mapping

from ..config import DEFAULT_MANIFEST_FILE, PluginType, ReleaserConfig
from ..github import Hosting
from .base import ManifestPlugin
from .merge import Merge
from .node_workspace import NodeWorkspace
from .python_workspace import PythonWorkspace
from .workspace import WorkspacePlugin, append_dependencies_section_to_changelog

PLUGINS: dict[PluginType, type[WorkspacePlugin]] = {
    PluginType.NODE_WORKSPACE: NodeWorkspace,
    PluginType.PYTHON_WORKSPACE: PythonWorkspace,
}


def build_plugin(
    plugin_type: PluginType,
    hosting: Hosting,
    target_branch: str,
    repository_config: Mapping[str, ReleaserConfig],
    manifest_file: str = DEFAULT_MANIFEST_FILE,
) -> ManifestPlugin:
    return PLUGINS[plugin_type](hosting, target_branch, repository_config, manifest_file)


__all__ = [
    "ManifestPlugin",
    "Merge",
    "NodeWorkspace",
    "PLUGINS",
    "PythonWorkspace",
    "WorkspacePlugin",
    "append_dependencies_section_to_changelog",
    "build_plugin",
]
