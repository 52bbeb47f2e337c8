"""pyproject.toml access on top of tomlkit.

Edits go through tomlkit so a release pull request only shows the lines that
changed: comments, key order and quoting survive a load/dump cycle.

Both PEP 621 ``[project]`` tables and Poetry's ``[tool.poetry]`` table are
understood for the name and version.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

import tomlkit
from packaging.utils import canonicalize_name


def parse_pyproject(content: str) -> tomlkit.TOMLDocument:
    return tomlkit.parse(content)


def dump_pyproject(doc: tomlkit.TOMLDocument) -> str:
    return tomlkit.dumps(doc)


def _poetry(doc: tomlkit.TOMLDocument) -> dict[str, Any]:
    return doc.get("tool", {}).get("poetry", {})


def get_raw_project_name(doc: tomlkit.TOMLDocument) -> str | None:
    """The project name as written, None if the file declares none."""
    name = doc.get("project", {}).get("name") or _poetry(doc).get("name")
    return str(name) if name else None


def get_project_name(doc: tomlkit.TOMLDocument, fallback: str) -> str:
    """The PEP 503 normalized project name, used to match workspace members.

    Args:
        doc: Parsed pyproject.toml document.
        fallback: Name to normalize when the file declares none.
    """
    return canonicalize_name(get_raw_project_name(doc) or fallback)


def get_project_version(doc: tomlkit.TOMLDocument) -> str:
    version = doc.get("project", {}).get("version") or _poetry(doc).get("version")
    return str(version) if version else "0.0.0"


def set_project_version(doc: tomlkit.TOMLDocument, version: str) -> bool:
    """Write ``version`` into whichever table declares a static version.

    Returns:
        False if the version is dynamic or missing, leaving ``doc`` as is.
    """
    project = doc.get("project")
    if project is not None and "version" in project:
        project["version"] = version
        return True
    poetry = _poetry(doc)
    if "version" in poetry:
        poetry["version"] = version
        return True
    return False


def dependency_arrays(doc: tomlkit.TOMLDocument) -> Iterator[list]:
    """Yield every array of PEP 508 requirements, in file order.

    That is ``[project].dependencies``, then each
    ``[project].optional-dependencies`` extra, then each PEP 735
    ``[dependency-groups]`` group. The arrays are the live tomlkit items, so
    assigning into them edits the document.
    """
    project = doc.get("project", {})
    dependencies = project.get("dependencies")
    if isinstance(dependencies, list):
        yield dependencies
    for extra in project.get("optional-dependencies", {}).values():
        if isinstance(extra, list):
            yield extra
    for group in doc.get("dependency-groups", {}).values():
        if isinstance(group, list):
            yield group


def get_all_dependency_strings(doc: tomlkit.TOMLDocument) -> list[str]:
    """Requirement strings from every dependency array.

    ``{include-group = ...}`` tables inside dependency groups are skipped.
    """
    return [str(dep) for deps in dependency_arrays(doc) for dep in deps if isinstance(dep, str)]
