"""Tests for the hosting client and the gh wrapper."""

from __future__ import annotations

import asyncio
import base64
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from conftest import FakeHosting

from release_conductor.errors import DuplicateReleaseError, FileNotFoundOnBranchError, HostingError
from release_conductor.github import PAGE_SIZE, GhHosting, Repository
from release_conductor.models import FileContents, Release, Update
from release_conductor.shell import gh, gh_api
from release_conductor.tags import TagName
from release_conductor.updaters import DefaultUpdater, RawContent
from release_conductor.version import Version


def _client() -> GhHosting:
    return GhHosting(Repository(owner="o", repo="r"))


def _pull(number: int, merged: bool = False, labels: tuple[str, ...] = ()) -> dict:
    return {
        "number": number,
        "title": f"PR {number}",
        "body": None,
        "head": {"ref": f"branch-{number}"},
        "base": {"ref": "main"},
        "labels": [{"name": label} for label in labels],
        "merged_at": "2024-01-01T00:00:00Z" if merged else None,
        "merge_commit_sha": f"sha-{number}",
    }


async def _collect(iterator) -> list:
    return [item async for item in iterator]


class TestGhHosting:
    @patch("release_conductor.github.gh_api", new_callable=AsyncMock)
    def test_create_looks_up_default_branch(self, mock_api: AsyncMock) -> None:
        mock_api.return_value = {"default_branch": "trunk"}

        client = asyncio.run(GhHosting.create("o", "r"))

        assert client.repository.default_branch == "trunk"
        mock_api.assert_awaited_once_with("repos/o/r")

    @patch("release_conductor.github.gh_api", new_callable=AsyncMock)
    def test_get_file_contents(self, mock_api: AsyncMock) -> None:
        encoded = base64.b64encode(b'{"name": "pkg"}\n').decode()
        mock_api.return_value = {"content": encoded, "sha": "blob1"}

        contents = asyncio.run(_client().get_file_contents_on_branch("pkg/package.json", "main"))

        assert contents.parsed_content == '{"name": "pkg"}\n'
        assert contents.sha == "blob1"
        mock_api.assert_awaited_once_with("repos/o/r/contents/pkg/package.json?ref=main")

    @patch("release_conductor.github.gh_api", new_callable=AsyncMock)
    def test_missing_file(self, mock_api: AsyncMock) -> None:
        mock_api.side_effect = HostingError("Not Found", 404)
        with pytest.raises(FileNotFoundOnBranchError):
            asyncio.run(_client().get_file_contents_on_branch("nope.txt", "main"))

    @patch("release_conductor.github.gh_api", new_callable=AsyncMock)
    def test_other_errors_propagate(self, mock_api: AsyncMock) -> None:
        mock_api.side_effect = HostingError("Server Error", 500)
        with pytest.raises(HostingError) as exc_info:
            asyncio.run(_client().get_file_contents_on_branch("a.txt", "main"))
        assert not isinstance(exc_info.value, FileNotFoundOnBranchError)

    @patch("release_conductor.github.gh_api", new_callable=AsyncMock)
    def test_pagination(self, mock_api: AsyncMock) -> None:
        mock_api.side_effect = [
            [_pull(n) for n in range(PAGE_SIZE)],
            [_pull(n) for n in range(PAGE_SIZE, PAGE_SIZE + 3)],
        ]

        pulls = asyncio.run(_collect(_client().pull_request_iterator("main", max_results=100)))

        assert len(pulls) == PAGE_SIZE + 3
        assert mock_api.await_count == 2
        assert mock_api.await_args_list[1].args[0].endswith(f"per_page={PAGE_SIZE}&page=2")

    @patch("release_conductor.github.gh_api", new_callable=AsyncMock)
    def test_pagination_stops_at_max_results(self, mock_api: AsyncMock) -> None:
        mock_api.return_value = [_pull(n) for n in range(PAGE_SIZE)]

        pulls = asyncio.run(_collect(_client().pull_request_iterator("main", max_results=10)))

        assert len(pulls) == 10
        assert mock_api.await_count == 1

    @patch("release_conductor.github.gh_api", new_callable=AsyncMock)
    def test_merged_pull_requests(self, mock_api: AsyncMock) -> None:
        mock_api.side_effect = [
            [_pull(1), _pull(2, merged=True, labels=("autorelease: pending",))],
            [{"filename": "CHANGELOG.md"}, {"filename": "version.txt"}],
        ]

        [pull_request] = asyncio.run(_collect(_client().merged_pull_request_iterator("main")))

        assert pull_request.number == 2
        assert pull_request.sha == "sha-2"
        assert pull_request.body == ""
        assert pull_request.labels == ["autorelease: pending"]
        assert pull_request.files == ["CHANGELOG.md", "version.txt"]

    @patch("release_conductor.github.gh_api", new_callable=AsyncMock)
    def test_release_iterator_skips_drafts(self, mock_api: AsyncMock) -> None:
        mock_api.side_effect = [
            [
                {"tag_name": "v2.0.0", "draft": True},
                {"tag_name": "v1.0.0", "name": "v1.0.0", "body": "notes", "html_url": "u"},
            ],
            {"sha": "abc123"},
        ]

        [release] = asyncio.run(_collect(_client().release_iterator()))

        assert release.tag_name == "v1.0.0"
        assert release.sha == "abc123"
        assert release.notes == "notes"

    @patch("release_conductor.github.gh_api", new_callable=AsyncMock)
    def test_find_files_by_filename(self, mock_api: AsyncMock) -> None:
        mock_api.return_value = {
            "tree": [
                {"path": "pom.xml", "type": "blob"},
                {"path": "sub/pom.xml", "type": "blob"},
                {"path": "sub/notpom.xml", "type": "blob"},
                {"path": "other/pom.xml", "type": "blob"},
                {"path": "sub/pom.xml.d", "type": "tree"},
            ]
        }

        client = _client()
        assert asyncio.run(client.find_files_by_filename("pom.xml", "main")) == [
            "pom.xml",
            "sub/pom.xml",
            "other/pom.xml",
        ]
        assert asyncio.run(client.find_files_by_filename("pom.xml", "main", prefix="sub")) == [
            "sub/pom.xml"
        ]

    @patch("release_conductor.github.gh_api", new_callable=AsyncMock)
    def test_create_release(self, mock_api: AsyncMock) -> None:
        mock_api.return_value = {"id": 9, "tag_name": "pkg-v1.2.3", "body": "n", "html_url": "u"}
        release = Release(tag=TagName(Version(1, 2, 3), "pkg"), sha="abc", notes="n")

        created = asyncio.run(_client().create_release(release, draft=True))

        assert created.id == 9
        assert created.url == "u"
        payload = mock_api.await_args.kwargs["payload"]
        assert payload["tag_name"] == "pkg-v1.2.3"
        assert payload["target_commitish"] == "abc"
        assert payload["name"] == "pkg-v1.2.3"
        assert payload["draft"] is True

    @patch("release_conductor.github.gh_api", new_callable=AsyncMock)
    def test_create_duplicate_release(self, mock_api: AsyncMock) -> None:
        mock_api.side_effect = HostingError(
            'Validation Failed {"errors":[{"code":"already_exists"}]}', 422
        )
        release = Release(tag=TagName(Version(1, 0, 0)), sha="abc")
        with pytest.raises(DuplicateReleaseError):
            asyncio.run(_client().create_release(release))

    @patch("release_conductor.github.gh_api", new_callable=AsyncMock)
    def test_create_release_other_validation_error(self, mock_api: AsyncMock) -> None:
        mock_api.side_effect = HostingError('Validation Failed {"code":"invalid"}', 422)
        release = Release(tag=TagName(Version(1, 0, 0)), sha="abc")
        with pytest.raises(HostingError) as exc_info:
            asyncio.run(_client().create_release(release))
        assert not isinstance(exc_info.value, DuplicateReleaseError)

    @patch("release_conductor.github.gh_api", new_callable=AsyncMock)
    def test_labels(self, mock_api: AsyncMock) -> None:
        mock_api.side_effect = [None, HostingError("Label does not exist", 404), None]
        client = _client()

        asyncio.run(client.add_issue_labels(["autorelease: tagged"], 5))
        asyncio.run(client.remove_issue_labels(["autorelease: pending", "other"], 5))
        asyncio.run(client.add_issue_labels([], 5))

        assert mock_api.await_count == 3
        assert mock_api.await_args_list[0].kwargs["payload"] == {"labels": ["autorelease: tagged"]}
        assert mock_api.await_args_list[1].args[0] == "repos/o/r/issues/5/labels/autorelease%3A%20pending"


class TestBuildFileChanges:
    def test_changes(self, make_hosting: type[FakeHosting]) -> None:
        hosting = make_hosting(files={"version.txt": "1.0.0\n", "same.txt": "1.1.0\n"})
        updates = [
            Update(path="version.txt", updater=DefaultUpdater(Version(1, 1, 0))),
            Update(path="same.txt", updater=DefaultUpdater(Version(1, 1, 0))),
            Update(path="missing.txt", updater=RawContent("x")),
            Update(path="new.txt", create_if_missing=True, updater=RawContent("new")),
            Update(
                path="cached.txt",
                cached_file_contents=FileContents(parsed_content="old"),
                updater=RawContent("fresh"),
            ),
        ]

        changes = asyncio.run(hosting.build_file_changes(updates, "main"))

        assert changes == {"version.txt": "1.1.0\n", "new.txt": "new", "cached.txt": "fresh"}
        assert "cached.txt" not in hosting.fetched_paths


def _process(returncode: int, stdout: bytes, stderr: bytes = b"") -> MagicMock:
    process = MagicMock()
    process.returncode = returncode
    process.communicate = AsyncMock(return_value=(stdout, stderr))
    return process


class TestGh:
    @patch("release_conductor.shell.asyncio.create_subprocess_exec", new_callable=AsyncMock)
    def test_returns_stdout(self, mock_exec: AsyncMock) -> None:
        mock_exec.return_value = _process(0, b"ok\n")
        assert asyncio.run(gh("api", "user")) == "ok\n"
        assert mock_exec.await_args.args[:3] == ("gh", "api", "user")

    @patch("release_conductor.shell.asyncio.create_subprocess_exec", new_callable=AsyncMock)
    def test_parses_http_status(self, mock_exec: AsyncMock) -> None:
        mock_exec.return_value = _process(1, b'{"message": "Not Found"}', b"gh: Not Found (HTTP 404)")
        with pytest.raises(HostingError) as exc_info:
            asyncio.run(gh("api", "repos/o/r/contents/x"))
        assert exc_info.value.status == 404
        assert "Not Found" in str(exc_info.value)

    @patch("release_conductor.shell.asyncio.create_subprocess_exec", new_callable=AsyncMock)
    def test_status_missing(self, mock_exec: AsyncMock) -> None:
        mock_exec.return_value = _process(1, b"", b"could not connect")
        with pytest.raises(HostingError) as exc_info:
            asyncio.run(gh("api", "user"))
        assert exc_info.value.status is None

    @patch("release_conductor.shell.asyncio.create_subprocess_exec", new_callable=AsyncMock)
    def test_gh_api_sends_payload(self, mock_exec: AsyncMock) -> None:
        process = _process(0, b'{"id": 1}')
        mock_exec.return_value = process

        result = asyncio.run(gh_api("repos/o/r/releases", method="POST", payload={"a": 1}))

        assert result == {"id": 1}
        args = mock_exec.await_args.args
        assert args[-2:] == ("--input", "-")
        assert "POST" in args
        process.communicate.assert_awaited_once_with(b'{"a": 1}')

    @patch("release_conductor.shell.asyncio.create_subprocess_exec", new_callable=AsyncMock)
    def test_gh_api_empty_response(self, mock_exec: AsyncMock) -> None:
        mock_exec.return_value = _process(0, b"")
        assert asyncio.run(gh_api("repos/o/r/issues/1/labels/x", method="DELETE")) is None
