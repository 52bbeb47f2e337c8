"""Workspace dependency graph.

Workspace plugins assign versions in dependency order: when package A depends
on package B, B's new version must be known before A's manifest is rewritten
with it. Only edges between packages of the graph count; external
dependencies are ignored.
"""

from __future__ import annotations

import heapq
from collections import deque
from collections.abc import Callable, Iterable
from typing import Any

from .errors import DependencyCycleError
from .models import PackageInfo


def reverse_dependencies(packages: dict[str, PackageInfo]) -> dict[str, list[str]]:
    """Map each package to the packages that depend on it."""
    dependents: dict[str, list[str]] = {name: [] for name in packages}
    for name, info in packages.items():
        for dep in info.deps:
            if dep in dependents:
                dependents[dep].append(name)
    return dependents


def collect_dependents(packages: dict[str, PackageInfo], names: Iterable[str]) -> set[str]:
    """Return ``names`` plus every package that transitively depends on them.

    Names that are not in ``packages`` are dropped.
    """
    dependents = reverse_dependencies(packages)
    affected = {name for name in names if name in packages}
    frontier = deque(sorted(affected))
    while frontier:
        for dependent in dependents[frontier.popleft()]:
            if dependent not in affected:
                affected.add(dependent)
                frontier.append(dependent)
    return affected


def topo_sort(
    packages: dict[str, PackageInfo],
    priority: Callable[[str], Any] | None = None,
) -> list[str]:
    """Order packages so that dependencies come before dependents.

    Kahn's algorithm. Whenever several packages have all their dependencies
    placed, the one with the lowest ``priority`` key goes next; without a key
    the order is alphabetical. With ``api`` requiring ``core`` and ``cli``
    requiring ``api``, the order is ``["core", "api", "cli"]``.

    Args:
        packages: Graph nodes by name; only edges to other nodes count.
        priority: Sort key for packages that are ready at the same time.

    Returns:
        Package names, dependencies first.

    Raises:
        DependencyCycleError: If some packages depend on each other.
    """
    key = priority or (lambda name: name)
    dependents = reverse_dependencies(packages)
    unplaced_deps = {
        name: sum(1 for dep in info.deps if dep in packages) for name, info in packages.items()
    }

    ready = [(key(name), name) for name, count in unplaced_deps.items() if count == 0]
    heapq.heapify(ready)
    order: list[str] = []
    while ready:
        _, name = heapq.heappop(ready)
        order.append(name)
        for dependent in dependents[name]:
            unplaced_deps[dependent] -= 1
            if unplaced_deps[dependent] == 0:
                heapq.heappush(ready, (key(dependent), dependent))

    if len(order) != len(packages):
        stuck = sorted(name for name, count in unplaced_deps.items() if count)
        raise DependencyCycleError(f"Dependency cycle detected involving: {stuck}")
    return order
