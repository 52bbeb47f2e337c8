"""release-conductor: release pull requests from conventional commits.

Computes the next version of every tracked path from its commits, renders
changelog entries, keeps a release pull request up to date and, once it is
merged, tags and publishes the releases.
"""

from __future__ import annotations

from .manifest import CandidateRelease, Manifest
from .version import Version

__all__ = ["CandidateRelease", "Manifest", "Version"]
