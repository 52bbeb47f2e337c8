"""Updater for the released-versions manifest file."""

from __future__ import annotations

import json
from collections.abc import Mapping

from ..version import Version
from .base import Updater
from .node import json_stringify


class ReleaseManifest(Updater):
    """Records newly released versions, keyed by tracked path.

    Existing entries keep their position; new paths are appended.

    Args:
        versions: Map of tracked path → newly released version.
    """

    def __init__(self, versions: Mapping[str, Version]) -> None:
        self.versions = dict(versions)

    def update_content(self, content: str | None) -> str:
        parsed: dict[str, str] = json.loads(content) if content else {}
        for path, version in self.versions.items():
            parsed[path] = str(version)
        return json_stringify(parsed, content or "\n")
