"""Fold every candidate into a single release pull request."""

from __future__ import annotations

import structlog

from ..commit_split import ROOT_PROJECT_PATH
from ..config import ReleaserConfig, ReleaseType
from ..models import CandidateReleasePullRequest, ReleasePullRequest, Update
from ..pull_request_body import PullRequestBody, ReleaseData
from ..tags import BranchName, PullRequestTitle
from ..updaters import CompositeUpdater
from .base import ManifestPlugin

logger = structlog.get_logger(__name__)


class Merge(ManifestPlugin):
    """Combine candidates into one pull request for the target branch.

    Updates to the same file are chained in candidate order, so each
    candidate's updater sees the previous one's output.
    """

    async def run(
        self, candidates: list[CandidateReleasePullRequest]
    ) -> list[CandidateReleasePullRequest]:
        if not candidates:
            return candidates
        logger.info("merging_candidates", count=len(candidates))

        release_data: list[ReleaseData] = []
        labels: list[str] = []
        updates_by_path: dict[str, list[Update]] = {}
        for candidate in candidates:
            pull_request = candidate.pull_request
            release_data.extend(pull_request.body.release_data)
            labels.extend(label for label in pull_request.labels if label not in labels)
            for update in pull_request.updates:
                updates_by_path.setdefault(update.path, []).append(update)

        updates = [_compose(path, group) for path, group in updates_by_path.items()]
        pull_request = ReleasePullRequest(
            title=PullRequestTitle.of_target_branch(self.target_branch),
            body=PullRequestBody(release_data),
            updates=updates,
            labels=labels,
            head_ref_name=str(BranchName.of_target_branch(self.target_branch)),
            draft=all(candidate.pull_request.draft for candidate in candidates),
        )
        return [
            CandidateReleasePullRequest(
                path=ROOT_PROJECT_PATH,
                pull_request=pull_request,
                config=ReleaserConfig(release_type=ReleaseType.SIMPLE),
            )
        ]


def _compose(path: str, updates: list[Update]) -> Update:
    if len(updates) == 1:
        return updates[0]
    cached = next((u.cached_file_contents for u in updates if u.cached_file_contents), None)
    return Update(
        path=path,
        create_if_missing=any(u.create_if_missing for u in updates),
        cached_file_contents=cached,
        updater=CompositeUpdater([u.updater for u in updates]),
    )
