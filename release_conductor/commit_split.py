"""Attribute commits to tracked paths by the files they touch."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import TypeVar

from .models import Commit

ROOT_PROJECT_PATH = "."

CommitT = TypeVar("CommitT", bound=Commit)


class CommitSplit:
    """Splits a flat commit list into per-path buckets.

    A file belongs to the longest tracked path it sits under, so nested
    packages (``packages/a`` and ``packages/a/plugin``) do not share files. A
    commit lands in the bucket of every path one of its files belongs to.

    Args:
        paths: Tracked paths, relative to the repository root. The root path
            ``.`` is ignored; callers give it every commit. Without paths, each
            top-level directory is its own bucket and root files belong to none.
        include_empty: Give every path a bucket, even if no commit matched, and
            put commits without a file list in every bucket.
    """

    def __init__(
        self, paths: Iterable[str] | None = None, include_empty: bool = False
    ) -> None:
        self.by_directory = paths is None
        self.paths = [
            _normalize_path(path)
            for path in paths or ()
            if _normalize_path(path) != ROOT_PROJECT_PATH
        ]
        # Longest first so the most specific path wins
        self._by_specificity = sorted(self.paths, key=len, reverse=True)
        self.include_empty = include_empty

    def split(self, commits: Sequence[CommitT]) -> dict[str, list[CommitT]]:
        """Return a mapping of path → commits touching files under that path.

        Commits keep their input order within each bucket.
        """
        split: dict[str, list[CommitT]] = {}
        if self.include_empty:
            split = {path: [] for path in self.paths}

        for commit in commits:
            if not commit.files:
                if self.include_empty:
                    for path in self.paths:
                        split[path].append(commit)
                continue
            matched: list[str] = []
            for file in commit.files:
                path = self._path_for_file(file)
                if path is not None and path not in matched:
                    matched.append(path)
            for path in matched:
                split.setdefault(path, []).append(commit)

        return split

    def _path_for_file(self, file: str) -> str | None:
        if self.by_directory:
            directory, separator, _ = file.partition("/")
            return directory if separator and directory else None
        for path in self._by_specificity:
            if file.startswith(f"{path}/"):
                return path
        return None


def _normalize_path(path: str) -> str:
    if path in ("", "/", "./"):
        return ROOT_PROJECT_PATH
    path = path.removeprefix("./")
    return path.strip("/") or ROOT_PROJECT_PATH
