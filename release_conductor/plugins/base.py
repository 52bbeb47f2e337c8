"""Plugin contract: post-processing stages over release candidates."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping

from ..config import DEFAULT_MANIFEST_FILE, ReleaserConfig
from ..github import Hosting
from ..models import CandidateReleasePullRequest


class ManifestPlugin(ABC):
    """A stage mapping candidates to new candidates.

    Plugins run in sequence, each receiving the previous stage's output.
    They build new candidates rather than mutating the ones they receive.

    Args:
        hosting: Hosting client, for plugins that read files.
        target_branch: Branch releases are cut from.
        repository_config: Map of tracked path → settings.
        manifest_file: Path of the released-versions manifest.
    """

    def __init__(
        self,
        hosting: Hosting,
        target_branch: str,
        repository_config: Mapping[str, ReleaserConfig] | None = None,
        manifest_file: str = DEFAULT_MANIFEST_FILE,
    ) -> None:
        self.hosting = hosting
        self.target_branch = target_branch
        self.repository_config = dict(repository_config or {})
        self.manifest_file = manifest_file

    @abstractmethod
    async def run(
        self, candidates: list[CandidateReleasePullRequest]
    ) -> list[CandidateReleasePullRequest]: ...
