"""Tests for release_conductor.graph."""

from __future__ import annotations

import pytest

from release_conductor.errors import DependencyCycleError
from release_conductor.graph import collect_dependents, reverse_dependencies, topo_sort
from release_conductor.models import PackageInfo


def _graph(**deps: list[str]) -> dict[str, PackageInfo]:
    """Build a graph from ``name=[dependencies]`` keywords."""
    return {
        name: PackageInfo(path=f"packages/{name}", version="1.0.0", deps=d)
        for name, d in deps.items()
    }


class TestTopoSort:
    def test_alphabetical_without_edges(self) -> None:
        assert topo_sort(_graph(c=[], a=[], b=[])) == ["a", "b", "c"]

    def test_chain(self) -> None:
        assert topo_sort(_graph(a=["b"], b=["c"], c=[])) == ["c", "b", "a"]

    def test_diamond(self) -> None:
        order = topo_sort(
            _graph(top=["left", "right"], left=["bottom"], right=["bottom"], bottom=[])
        )
        assert order == ["bottom", "left", "right", "top"]

    def test_priority_breaks_ties(self) -> None:
        position = {"d": 0, "a": 1}
        order = topo_sort(
            _graph(a=[], b=["a"], d=[]),
            priority=lambda name: (0, position[name]) if name in position else (1, name),
        )
        assert order == ["d", "a", "b"]

    def test_empty(self) -> None:
        assert topo_sort({}) == []

    def test_external_dependencies_ignored(self) -> None:
        assert topo_sort(_graph(b=["a", "requests"], a=["external"])) == ["a", "b"]

    @pytest.mark.parametrize(
        "graph",
        [
            _graph(a=["b"], b=["a"]),
            _graph(a=["b"], b=["c"], c=["a"], d=[]),
        ],
    )
    def test_cycle(self, graph: dict[str, PackageInfo]) -> None:
        with pytest.raises(DependencyCycleError, match="'a', 'b'"):
            topo_sort(graph)

    def test_cycle_is_a_runtime_error(self) -> None:
        with pytest.raises(RuntimeError):
            topo_sort(_graph(a=["a"]))


class TestDependents:
    def test_reverse_dependencies(self) -> None:
        assert reverse_dependencies(_graph(a=[], b=["a", "external"])) == {"a": ["b"], "b": []}

    def test_transitive(self) -> None:
        graph = _graph(a=[], b=["a"], c=["b"], d=[])
        assert collect_dependents(graph, ["a"]) == {"a", "b", "c"}
        assert collect_dependents(graph, ["c", "d"]) == {"c", "d"}

    def test_diamond_visited_once(self) -> None:
        graph = _graph(top=["left", "right"], left=["bottom"], right=["bottom"], bottom=[])
        assert collect_dependents(graph, ["bottom"]) == {"bottom", "left", "right", "top"}

    def test_unknown_names_dropped(self) -> None:
        assert collect_dependents(_graph(a=[]), ["missing"]) == set()
