"""Updaters for PHP monorepos whose components are listed in a root composer.json."""

from __future__ import annotations

import json
import re

import structlog

from .base import DefaultUpdater
from .node import json_stringify

logger = structlog.get_logger(__name__)

CLIENT_VERSION_PATTERN = re.compile(r"const VERSION = '[0-9]+\.[0-9]+\.[0-9]+(?:-[\w.]+)?'")


class PhpClientVersion(DefaultUpdater):
    """Sets the ``const VERSION = '...'`` constant of a PHP class."""

    def update_content(self, content: str | None) -> str:
        if content is None:
            raise FileNotFoundError("PHP client file does not exist and cannot be created")
        return CLIENT_VERSION_PATTERN.sub(f"const VERSION = '{self.version}'", content)


class RootComposerUpdatePackages(DefaultUpdater):
    """Records each component's version under ``replace`` in the root composer.json."""

    def update_content(self, content: str | None) -> str:
        if content is None:
            raise FileNotFoundError("composer.json does not exist and cannot be created")
        if not self.versions_map:
            logger.info("no_composer_updates")
            return content
        parsed = json.loads(content)
        replace = parsed.setdefault("replace", {})
        for name, version in self.versions_map.items():
            logger.info(
                "updating_composer_replace", name=name, old=replace.get(name), new=str(version)
            )
            replace[name] = str(version)
        return json_stringify(parsed, content)


class PhpManifest(DefaultUpdater):
    """Prepends the new version to each released module in ``docs/manifest.json``."""

    def update_content(self, content: str | None) -> str:
        if content is None:
            raise FileNotFoundError("docs/manifest.json does not exist and cannot be created")
        if not self.versions_map:
            return content
        parsed = json.loads(content)
        for module in parsed.get("modules", []):
            version = self.versions_map.get(module.get("name"))
            if version is None:
                continue
            module.setdefault("versions", []).insert(0, f"v{version}")
        return json_stringify(parsed, content)
