"""Updaters for npm package manifests and lockfiles."""

from __future__ import annotations

import json
import re
from typing import Any

import structlog

from ..version import Version
from .base import DefaultUpdater

logger = structlog.get_logger(__name__)

INDENT_PATTERN = re.compile(r"^([ \t]+)\S", re.MULTILINE)


def detect_indent(content: str) -> str:
    """Return the indentation used by a JSON document, defaulting to two spaces."""
    match = INDENT_PATTERN.search(content)
    return match.group(1) if match else "  "


def json_stringify(data: Any, original: str) -> str:
    """Serialize ``data`` using the indentation and trailing newline of ``original``."""
    text = json.dumps(data, indent=detect_indent(original), ensure_ascii=False)
    if original.endswith("\n"):
        text += "\n"
    return text


def _load(content: str | None, filename: str) -> dict[str, Any]:
    if content is None:
        raise FileNotFoundError(f"{filename} does not exist and cannot be created")
    return json.loads(content)


class PackageJson(DefaultUpdater):
    """Sets ``version`` in a ``package.json``."""

    def update_content(self, content: str | None) -> str:
        parsed = _load(content, "package.json")
        logger.info("updating_package_json", old=parsed.get("version"), new=str(self.version))
        parsed["version"] = str(self.version)
        return json_stringify(parsed, content or "")


class PackageLockJson(DefaultUpdater):
    """Sets the root package version in ``package-lock.json``/``npm-shrinkwrap.json``.

    Lockfile v2+ also carries the root package under ``packages[""]``.
    """

    def update_content(self, content: str | None) -> str:
        parsed = _load(content, "package-lock.json")
        parsed["version"] = str(self.version)
        root_package = parsed.get("packages", {}).get("")
        if isinstance(root_package, dict):
            root_package["version"] = str(self.version)
        return json_stringify(parsed, content or "")


class SamplesPackageJson(DefaultUpdater):
    """Pins the released package in a samples ``package.json``.

    Args:
        version: The version being released.
        package_name: Name of the package whose dependency is pinned.
    """

    def __init__(self, version: Version, package_name: str) -> None:
        super().__init__(version)
        self.package_name = package_name

    def update_content(self, content: str | None) -> str:
        parsed = _load(content, "samples/package.json")
        dependencies = parsed.get("dependencies", {})
        if self.package_name not in dependencies:
            return content or ""
        dependencies[self.package_name] = f"^{self.version}"
        return json_stringify(parsed, content or "")
