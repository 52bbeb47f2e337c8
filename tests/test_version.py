"""Tests for release_conductor.version."""

from __future__ import annotations

import pytest

from release_conductor.errors import VersionParseError
from release_conductor.version import Version, bump_patch, parse_version


class TestVersionParse:
    def test_parses_full_version(self) -> None:
        assert Version.parse("1.2.3") == Version(1, 2, 3)

    def test_strips_leading_v(self) -> None:
        assert Version.parse("v0.123.4") == Version(0, 123, 4)

    def test_pre_release_and_build(self) -> None:
        version = Version.parse("1.2.3-beta.1+build.5")
        assert version.pre_release == "beta.1"
        assert version.build == "build.5"
        assert str(version) == "1.2.3-beta.1+build.5"

    @pytest.mark.parametrize("value", ["", "1.2", "abc", "1.2.3.4"])
    def test_rejects_invalid(self, value: str) -> None:
        with pytest.raises(VersionParseError):
            Version.parse(value)

    def test_negative_components_rejected(self) -> None:
        with pytest.raises(VersionParseError):
            Version(1, -1, 0)


class TestVersionOrdering:
    def test_numeric_ordering(self) -> None:
        assert Version(1, 2, 3) < Version(1, 10, 0)
        assert Version(2, 0, 0) > Version(1, 99, 99)

    def test_pre_release_sorts_before_release(self) -> None:
        assert Version(1, 0, 0, "beta") < Version(1, 0, 0)

    def test_build_ignored_by_comparisons(self) -> None:
        a, b = Version(1, 0, 0, build="a"), Version(1, 0, 0, build="b")
        assert a == b
        assert not a < b
        assert not a > b
        assert hash(a) == hash(b)
        assert Version(1, 0, 0, build="z") < Version(1, 0, 1)


class TestIsSnapshot:
    def test_snapshot(self) -> None:
        assert Version.parse("1.2.4-SNAPSHOT").is_snapshot
        assert Version.parse("1.2.3-sp.1-SNAPSHOT").is_snapshot

    def test_not_snapshot(self) -> None:
        assert not Version.parse("1.2.3").is_snapshot
        assert not Version.parse("1.2.3-beta").is_snapshot


class TestParseVersion:
    def test_pads_incomplete_versions(self) -> None:
        assert parse_version("1") == Version(1, 0, 0)
        assert parse_version("1.2") == Version(1, 2, 0)

    def test_keeps_pre_release(self) -> None:
        assert parse_version("1.2.3-beta") == Version(1, 2, 3, "beta")

    def test_rejects_garbage(self) -> None:
        with pytest.raises(VersionParseError):
            parse_version("not-a-version")


class TestBumpPatch:
    def test_simple(self) -> None:
        assert bump_patch("1.2.3") == "1.2.4"

    def test_incomplete(self) -> None:
        assert bump_patch("1.0") == "1.0.1"

    def test_drops_pre_release(self) -> None:
        assert bump_patch("2.0.0-beta") == "2.0.1"
