"""Tests for release_conductor.tags."""

from __future__ import annotations

from release_conductor.tags import (
    MANIFEST_PR_TITLE_PATTERN,
    BranchName,
    PullRequestTitle,
    TagName,
)
from release_conductor.version import Version


class TestTagName:
    def test_component_tag(self) -> None:
        tag = TagName(version=Version(0, 123, 5), component="some-node-package")
        assert str(tag) == "some-node-package-v0.123.5"

    def test_bare_tag(self) -> None:
        assert str(TagName(version=Version(1, 0, 0))) == "v1.0.0"

    def test_parse_component_with_dashes(self) -> None:
        tag = TagName.parse("google-cloud-storage-v1.120.0")
        assert tag is not None
        assert tag.component == "google-cloud-storage"
        assert tag.version == Version(1, 120, 0)

    def test_parse_bare(self) -> None:
        tag = TagName.parse("v2.0.0-beta")
        assert tag == TagName(version=Version(2, 0, 0, "beta"))

    def test_parse_invalid(self) -> None:
        assert TagName.parse("release-2024") is None
        assert TagName.parse("v1.2") is None


class TestBranchName:
    def test_target_branch(self) -> None:
        assert str(BranchName.of_target_branch("main")) == "release-conductor/branches/main"

    def test_component(self) -> None:
        branch = BranchName.of_component_target_branch("pkg-a", "main")
        assert str(branch) == "release-conductor/branches/main/components/pkg-a"

    def test_empty_component_is_omitted(self) -> None:
        branch = BranchName.of_component_target_branch("", "main")
        assert str(branch) == "release-conductor/branches/main"

    def test_parse(self) -> None:
        branch = BranchName.parse("release-conductor/branches/release/v2/components/pkg-a")
        assert branch == BranchName(target_branch="release/v2", component="pkg-a")

    def test_parse_other_branch(self) -> None:
        assert BranchName.parse("feature/foo") is None


class TestPullRequestTitle:
    def test_component_title(self) -> None:
        title = PullRequestTitle.of_component_target_branch_version(
            "some-node-package", "main", Version(0, 123, 5)
        )
        assert str(title) == "chore(main): release some-node-package 0.123.5"

    def test_title_without_component(self) -> None:
        title = PullRequestTitle.of_component_target_branch_version(None, "main", Version(1, 0, 1))
        assert str(title) == "chore(main): release 1.0.1"

    def test_manifest_title(self) -> None:
        assert str(PullRequestTitle.of_target_branch("main")) == "chore(main): release"

    def test_parse_component_title(self) -> None:
        title = PullRequestTitle.parse("chore(main): release some-node-package 0.123.5")
        assert title is not None
        assert title.component == "some-node-package"
        assert title.target_branch == "main"
        assert title.version == Version(0, 123, 5)

    def test_parse_title_without_component(self) -> None:
        title = PullRequestTitle.parse("chore(main): release 1.0.1")
        assert title is not None
        assert title.component is None
        assert title.version == Version(1, 0, 1)

    def test_parse_manifest_title(self) -> None:
        title = PullRequestTitle.parse("chore(main): release", MANIFEST_PR_TITLE_PATTERN)
        assert title is not None
        assert title.version is None
        assert title.target_branch == "main"

    def test_parse_unrelated_title(self) -> None:
        assert PullRequestTitle.parse("fix: a bug") is None
