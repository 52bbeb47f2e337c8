"""Tests for release_conductor.manifest."""

from __future__ import annotations

import asyncio
import datetime as dt
import json

import pytest
from conftest import FakeHosting

from release_conductor.config import ReleaserConfig, ReleaseType
from release_conductor.errors import ConfigurationError
from release_conductor.manifest import Manifest, latest_release_version
from release_conductor.models import Commit, GitHubRelease, PullRequest
from release_conductor.pull_request_body import PullRequestBody, ReleaseData
from release_conductor.version import Version

RELEASE_DATE = dt.date(2024, 1, 2)
MANIFEST_FILE = ".release-conductor-manifest.json"
CONFIG_FILE = "release-conductor-config.json"


def _simple_hosting(make_hosting: type[FakeHosting]) -> FakeHosting:
    return make_hosting(
        files={"version.txt": "1.0.0\n", MANIFEST_FILE: '{\n  ".": "1.0.0"\n}\n'},
        commits=[
            Commit(sha="def456", message="fix: some bugfix", files=["src/app.txt"]),
            Commit(sha="abc123", message="chore: release 1.0.0", files=["version.txt"]),
            Commit(sha="old000", message="feat: ancient history", files=["src/app.txt"]),
        ],
        releases=[GitHubRelease(tag_name="v1.0.0", sha="abc123")],
    )


def _simple_manifest(hosting: FakeHosting, **options) -> Manifest:
    return Manifest(
        hosting,
        "main",
        {".": ReleaserConfig()},
        {".": Version(1, 0, 0)},
        release_date=RELEASE_DATE,
        **options,
    )


def _monorepo_hosting(make_hosting: type[FakeHosting]) -> FakeHosting:
    return make_hosting(
        commits=[
            Commit(sha="c3", message="feat: b thing", files=["packages/b/x.txt"]),
            Commit(sha="c2", message="fix: a fix", files=["packages/a/y.txt"]),
            Commit(sha="r1", message="chore: release a", files=["packages/a/version.txt"]),
            Commit(sha="c1", message="fix: old b fix", files=["packages/b/z.txt"]),
            Commit(sha="r2", message="chore: release b", files=["packages/b/version.txt"]),
        ],
        releases=[
            GitHubRelease(tag_name="a-v1.0.0", sha="r1"),
            GitHubRelease(tag_name="b-v2.0.0", sha="r2"),
        ],
    )


MONOREPO_CONFIG = {
    "packages/a": ReleaserConfig(component="a"),
    "packages/b": ReleaserConfig(component="b"),
}
MONOREPO_VERSIONS = {"packages/a": Version(1, 0, 0), "packages/b": Version(2, 0, 0)}


def _merged_pull_request(
    body: PullRequestBody,
    *,
    number: int = 12,
    title: str = "chore(main): release",
    head: str = "release-conductor/branches/main",
    labels: list[str] | None = None,
    files: list[str] | None = None,
) -> PullRequest:
    return PullRequest(
        head_branch_name=head,
        base_branch_name="main",
        number=number,
        title=title,
        body=str(body),
        labels=labels if labels is not None else ["autorelease: pending"],
        files=files or [],
        sha="merge1",
    )


SINGLE_BODY = PullRequestBody(
    [ReleaseData(notes="### [1.0.1](link) (2024-01-02)\n\n### Bug Fixes\n\n* fix", version=Version(1, 0, 1))]
)


class TestBuildPullRequests:
    def test_single_package(self, make_hosting: type[FakeHosting]) -> None:
        hosting = _simple_hosting(make_hosting)

        [pull_request] = asyncio.run(_simple_manifest(hosting).build_pull_requests())

        assert str(pull_request.title) == "chore(main): release"
        assert pull_request.head_ref_name == "release-conductor/branches/main"
        assert pull_request.labels == ["autorelease: pending"]
        assert [update.path for update in pull_request.updates] == [
            "CHANGELOG.md",
            "version.txt",
            MANIFEST_FILE,
        ]
        [release_data] = pull_request.body.release_data
        assert release_data.version == Version(1, 0, 1)
        assert "some bugfix" in release_data.notes
        assert "ancient history" not in release_data.notes
        assert hosting.commits_read == 2

    def test_nothing_to_release(self, make_hosting: type[FakeHosting]) -> None:
        hosting = _simple_hosting(make_hosting)
        hosting.commits = hosting.commits[1:]
        assert asyncio.run(_simple_manifest(hosting).build_pull_requests()) == []

    def test_separate_pull_requests(self, make_hosting: type[FakeHosting]) -> None:
        hosting = _monorepo_hosting(make_hosting)
        manifest = Manifest(
            hosting,
            "main",
            MONOREPO_CONFIG,
            MONOREPO_VERSIONS,
            separate_pull_requests=True,
            release_date=RELEASE_DATE,
        )

        a, b = asyncio.run(manifest.build_pull_requests())

        assert str(a.title) == "chore(main): release a 1.0.1"
        assert a.head_ref_name == "release-conductor/branches/main/components/a"
        assert "a fix" in a.body.release_data[0].notes
        assert "b thing" not in a.body.release_data[0].notes
        assert str(b.title) == "chore(main): release b 2.1.0"
        assert "b thing" in b.body.release_data[0].notes
        assert "old b fix" in b.body.release_data[0].notes

    def test_merged_pull_request(self, make_hosting: type[FakeHosting]) -> None:
        hosting = _monorepo_hosting(make_hosting)
        manifest = Manifest(
            hosting, "main", MONOREPO_CONFIG, MONOREPO_VERSIONS, release_date=RELEASE_DATE
        )

        [pull_request] = asyncio.run(manifest.build_pull_requests())

        assert str(pull_request.title) == "chore(main): release"
        assert [(data.component, data.version) for data in pull_request.body.release_data] == [
            ("a", Version(1, 0, 1)),
            ("b", Version(2, 1, 0)),
        ]
        manifest_updates = [u for u in pull_request.updates if u.path == MANIFEST_FILE]
        assert len(manifest_updates) == 1
        assert json.loads(manifest_updates[0].updater.update_content("{}")) == {
            "packages/a": "1.0.1",
            "packages/b": "2.1.0",
        }

    def test_component_collision(self, hosting: FakeHosting) -> None:
        manifest = Manifest(
            hosting,
            "main",
            {"a": ReleaserConfig(component="x"), "b": ReleaserConfig(component="x")},
            {},
        )
        with pytest.raises(ConfigurationError, match="x"):
            asyncio.run(manifest.build_pull_requests())

    def test_bootstrap_sha_without_release(self, make_hosting: type[FakeHosting]) -> None:
        hosting = make_hosting(
            commits=[
                Commit(sha="c2", message="fix: second", files=["a.txt"]),
                Commit(sha="c1", message="feat: first", files=["a.txt"]),
                Commit(sha="boot", message="chore: import", files=["a.txt"]),
                Commit(sha="c0", message="fix: before bootstrap", files=["a.txt"]),
            ]
        )
        manifest = Manifest(
            hosting, "main", {".": ReleaserConfig()}, {}, bootstrap_sha="boot"
        )

        [pull_request] = asyncio.run(manifest.build_pull_requests())

        [release_data] = pull_request.body.release_data
        assert release_data.version == Version(1, 0, 0)
        assert "before bootstrap" not in release_data.notes
        assert hosting.commits_read == 3

    def test_last_release_sha_bounds_unreleased_paths(
        self, make_hosting: type[FakeHosting]
    ) -> None:
        hosting = make_hosting(
            commits=[
                Commit(sha="c2", message="fix: new", files=["a.txt"]),
                Commit(sha="last", message="chore: release", files=["a.txt"]),
                Commit(sha="c1", message="feat: old", files=["a.txt"]),
            ]
        )
        manifest = Manifest(
            hosting, "main", {".": ReleaserConfig()}, {}, last_release_sha="last"
        )

        [pull_request] = asyncio.run(manifest.build_pull_requests())

        notes = pull_request.body.release_data[0].notes
        assert "new" in notes
        assert "old" not in notes


class TestCreatePullRequests:
    def test_creates_pull_request(self, make_hosting: type[FakeHosting]) -> None:
        hosting = _simple_hosting(make_hosting)

        assert asyncio.run(_simple_manifest(hosting).create_pull_requests()) == [101]

        [(pull_request, changes)] = hosting.created_pull_requests
        assert changes["version.txt"] == "1.0.1\n"
        assert changes["CHANGELOG.md"].startswith("# Changelog\n\n### [1.0.1]")
        assert "some bugfix" in changes["CHANGELOG.md"]
        assert json.loads(changes[MANIFEST_FILE]) == {".": "1.0.1"}

    def test_updates_open_pull_request(self, make_hosting: type[FakeHosting]) -> None:
        hosting = _simple_hosting(make_hosting)
        stale = PullRequestBody(
            [ReleaseData(notes="### [1.0.1](link)\n\n* stale", version=Version(1, 0, 1))]
        )
        hosting.open_pull_requests = [
            PullRequest(
                head_branch_name="release-conductor/branches/main",
                base_branch_name="main",
                number=7,
                title="chore(main): release",
                body=str(stale),
            )
        ]

        assert asyncio.run(_simple_manifest(hosting).create_pull_requests()) == [7]

        assert hosting.created_pull_requests == []
        [(number, _, changes)] = hosting.updated_pull_requests
        assert number == 7
        assert changes["version.txt"] == "1.0.1\n"

    def test_unchanged_pull_request(self, make_hosting: type[FakeHosting]) -> None:
        hosting = _simple_hosting(make_hosting)
        manifest = _simple_manifest(hosting)
        [built] = asyncio.run(manifest.build_pull_requests())
        hosting.open_pull_requests = [
            PullRequest(
                head_branch_name=built.head_ref_name,
                base_branch_name="main",
                number=7,
                title=str(built.title),
                body=str(built.body),
            )
        ]

        assert asyncio.run(manifest.create_pull_requests()) == [None]
        assert hosting.updated_pull_requests == []
        assert hosting.created_pull_requests == []

    def test_ignores_unrelated_open_pull_requests(self, make_hosting: type[FakeHosting]) -> None:
        hosting = _simple_hosting(make_hosting)
        hosting.open_pull_requests = [
            PullRequest(
                head_branch_name="feature/thing",
                base_branch_name="main",
                number=3,
                title="feat: thing",
                body=str(SINGLE_BODY),
            )
        ]

        assert asyncio.run(_simple_manifest(hosting).create_pull_requests()) == [101]

    def test_nothing_to_create(self, make_hosting: type[FakeHosting]) -> None:
        hosting = _simple_hosting(make_hosting)
        hosting.commits = hosting.commits[1:]
        assert asyncio.run(_simple_manifest(hosting).create_pull_requests()) == []
        assert hosting.created_pull_requests == []


class TestReleases:
    def test_build_single_release(self, hosting: FakeHosting) -> None:
        hosting.merged_pull_requests = [_merged_pull_request(SINGLE_BODY, files=["CHANGELOG.md"])]

        [candidate] = asyncio.run(_simple_manifest(hosting).build_releases())

        assert str(candidate.release.tag) == "v1.0.1"
        assert candidate.release.sha == "merge1"
        assert candidate.release.notes.endswith("* fix")
        assert candidate.path == "."
        assert candidate.pull_request.number == 12

    def test_skips_pull_requests_without_pending_label(self, hosting: FakeHosting) -> None:
        hosting.merged_pull_requests = [
            _merged_pull_request(SINGLE_BODY, labels=["autorelease: tagged"])
        ]
        assert asyncio.run(_simple_manifest(hosting).build_releases()) == []

    def test_skips_non_release_bodies(self, hosting: FakeHosting) -> None:
        pull_request = _merged_pull_request(SINGLE_BODY).model_copy(update={"body": "just a PR"})
        hosting.merged_pull_requests = [pull_request]
        assert asyncio.run(_simple_manifest(hosting).build_releases()) == []

    def test_malformed_pull_request_is_skipped(self, hosting: FakeHosting) -> None:
        hosting.merged_pull_requests = [_merged_pull_request(SINGLE_BODY, head="feature/x")]
        assert asyncio.run(_simple_manifest(hosting).build_releases()) == []

    def test_multiple_components(self, hosting: FakeHosting) -> None:
        body = PullRequestBody(
            [
                ReleaseData(notes="### [1.0.1](link)\n\n* a fix", component="a", version=Version(1, 0, 1)),
                ReleaseData(notes="## [2.1.0](link)\n\n* b thing", component="b", version=Version(2, 1, 0)),
            ]
        )
        hosting.merged_pull_requests = [
            _merged_pull_request(
                body,
                files=[
                    "packages/a/CHANGELOG.md",
                    "packages/b/CHANGELOG.md",
                    "packages/c/unrelated.txt",
                ],
            )
        ]
        config = {**MONOREPO_CONFIG, "packages/c": ReleaserConfig(component="c")}
        manifest = Manifest(hosting, "main", config, MONOREPO_VERSIONS)

        candidates = asyncio.run(manifest.build_releases())

        assert [(str(c.release.tag), c.path) for c in candidates] == [
            ("a-v1.0.1", "packages/a"),
            ("b-v2.1.0", "packages/b"),
        ]
        assert candidates[1].release.notes == "## [2.1.0](link)\n\n* b thing"

    def test_create_releases_relabels(self, hosting: FakeHosting) -> None:
        hosting.merged_pull_requests = [_merged_pull_request(SINGLE_BODY)]

        [created] = asyncio.run(_simple_manifest(hosting).create_releases())

        assert created.tag_name == "v1.0.1"
        assert created.url == "https://github.com/fake-owner/fake-repo/releases/tag/v1.0.1"
        assert hosting.removed_labels == [(["autorelease: pending"], 12)]
        assert hosting.added_labels == [(["autorelease: tagged"], 12)]

    def test_create_releases_draft(self, hosting: FakeHosting) -> None:
        hosting.merged_pull_requests = [_merged_pull_request(SINGLE_BODY)]
        manifest = Manifest(hosting, "main", {".": ReleaserConfig(draft=True)}, {})

        [created] = asyncio.run(manifest.create_releases())

        assert created.draft
        assert hosting.created_releases[0][1]

    def test_existing_release_is_skipped(self, hosting: FakeHosting) -> None:
        hosting.merged_pull_requests = [_merged_pull_request(SINGLE_BODY)]
        hosting.existing_tags.add("v1.0.1")

        assert asyncio.run(_simple_manifest(hosting).create_releases()) == []
        assert hosting.added_labels == [(["autorelease: tagged"], 12)]

    def test_skip_github_release(self, hosting: FakeHosting) -> None:
        hosting.merged_pull_requests = [_merged_pull_request(SINGLE_BODY)]
        manifest = Manifest(
            hosting, "main", {".": ReleaserConfig(skip_github_release=True)}, {}
        )
        assert asyncio.run(manifest.build_releases()) == []


class TestLoading:
    def test_from_manifest(self, make_hosting: type[FakeHosting]) -> None:
        hosting = make_hosting(
            files={
                CONFIG_FILE: json.dumps(
                    {
                        "release-type": "node",
                        "separate-pull-requests": True,
                        "packages": {"packages/a": {}, "packages/b": {"component": "b"}},
                    }
                ),
                MANIFEST_FILE: json.dumps({"packages/a": "1.2.3", "packages/b": "0.1.0"}),
            }
        )

        manifest = asyncio.run(Manifest.from_manifest(hosting, "main"))

        assert list(manifest.repository_config) == ["packages/a", "packages/b"]
        assert manifest.released_versions == {
            "packages/a": Version(1, 2, 3),
            "packages/b": Version(0, 1, 0),
        }
        assert manifest.separate_pull_requests

    def test_from_manifest_without_manifest_file(self, make_hosting: type[FakeHosting]) -> None:
        hosting = make_hosting(files={CONFIG_FILE: json.dumps({"packages": {".": {}}})})
        manifest = asyncio.run(Manifest.from_manifest(hosting, "main"))
        assert manifest.released_versions == {}

    def test_from_manifest_without_config(self, hosting: FakeHosting) -> None:
        with pytest.raises(ConfigurationError, match=CONFIG_FILE):
            asyncio.run(Manifest.from_manifest(hosting, "main"))

    def test_from_config(self, hosting: FakeHosting) -> None:
        hosting.merged_pull_requests = [
            PullRequest(
                head_branch_name="release-conductor/branches/main",
                base_branch_name="main",
                number=5,
                title="chore(main): release 1.2.3",
            )
        ]

        manifest = asyncio.run(Manifest.from_config(hosting, "main", ReleaserConfig()))

        assert manifest.repository_config == {".": ReleaserConfig()}
        assert manifest.released_versions == {".": Version(1, 2, 3)}

    def test_from_config_uses_package_name_component(
        self, make_hosting: type[FakeHosting]
    ) -> None:
        hosting = make_hosting(
            files={"package.json": json.dumps({"name": "@scope/pkg", "version": "1.2.3"})},
            merged_pull_requests=[
                PullRequest(
                    head_branch_name="release-conductor/branches/main/components/pkg",
                    base_branch_name="main",
                    number=5,
                    title="chore(main): release pkg 1.2.3",
                )
            ],
        )
        config = ReleaserConfig(release_type=ReleaseType.NODE)

        manifest = asyncio.run(Manifest.from_config(hosting, "main", config))

        assert manifest.released_versions == {".": Version(1, 2, 3)}


class TestLatestReleaseVersion:
    def _pull_request(self, head: str, title: str) -> PullRequest:
        return PullRequest(head_branch_name=head, base_branch_name="main", number=1, title=title)

    def test_skips_snapshots_and_other_components(self, hosting: FakeHosting) -> None:
        hosting.merged_pull_requests = [
            self._pull_request("feature/x", "chore(main): release 9.9.9"),
            self._pull_request(
                "release-conductor/branches/main/components/other",
                "chore(main): release other 5.0.0",
            ),
            self._pull_request("release-conductor/branches/main", "chore(main): release 1.3.0-SNAPSHOT"),
            self._pull_request("release-conductor/branches/main", "chore(main): release 1.2.3"),
        ]
        assert asyncio.run(latest_release_version(hosting, "main")) == Version(1, 2, 3)
        assert asyncio.run(latest_release_version(hosting, "main", "other")) == Version(5, 0, 0)

    def test_none_found(self, hosting: FakeHosting) -> None:
        assert asyncio.run(latest_release_version(hosting, "main")) is None
