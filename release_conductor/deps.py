"""Dependency pinning for Python workspace members.

A released member pins its sibling members exactly, so an install of any
published wheel resolves to the versions the release pull request tested.
"""

from __future__ import annotations

from packaging.requirements import Requirement
from packaging.utils import canonicalize_name

from .models import VersionBump
from .toml import dependency_arrays, dump_pyproject, parse_pyproject, set_project_version


def requirement_name(requirement: str) -> str:
    """Canonical name of a PEP 508 requirement, e.g. ``Acme_Core[http]>=1`` → ``acme-core``."""
    return canonicalize_name(Requirement(requirement).name)


def pin_requirement(requirement: str, version: str) -> str:
    """Replace the specifier of ``requirement`` with ``=={version}``.

    The name keeps its spelling; extras are sorted and the environment
    marker is carried over in its normalized form::

        pin_requirement("acme_cli[rich,color]~=0.5; os_name=='nt'", "0.6.0")
        # 'acme_cli[color,rich]==0.6.0; os_name == "nt"'
    """
    parsed = Requirement(requirement)
    extras = "[" + ",".join(sorted(parsed.extras)) + "]" if parsed.extras else ""
    marker = f"; {parsed.marker}" if parsed.marker else ""
    return f"{parsed.name}{extras}=={version}{marker}"


def rewrite_pyproject(
    content: str,
    new_version: str,
    internal_dep_versions: dict[str, str],
) -> tuple[str, dict[str, VersionBump]]:
    """Set a workspace member's version and pin its internal dependencies.

    Every array yielded by :func:`~release_conductor.toml.dependency_arrays`
    is rewritten. A member required from several arrays is reported once,
    with the specifier it had in the first one.

    Args:
        content: Current pyproject.toml content.
        new_version: Version to write.
        internal_dep_versions: Canonical member name → version to pin.

    Returns:
        The new content, and the specifier change of every member whose pin
        moved. Requirements already pinned to the right version are left out.
    """
    doc = parse_pyproject(content)
    set_project_version(doc, new_version)

    changes: dict[str, VersionBump] = {}
    for requirements in dependency_arrays(doc):
        for index, requirement in enumerate(requirements):
            if not isinstance(requirement, str):
                continue
            name = requirement_name(requirement)
            pin = internal_dep_versions.get(name)
            if pin is None:
                continue
            pinned = pin_requirement(requirement, pin)
            if pinned == str(requirement):
                continue
            requirements[index] = pinned
            previous = str(Requirement(requirement).specifier) or "*"
            changes.setdefault(name, VersionBump(old=previous, new=f"=={pin}"))

    return dump_pyproject(doc), changes
