"""File updaters, one per file format or ecosystem."""

from __future__ import annotations

from .base import CompositeUpdater, DefaultUpdater, RawContent, Updater
from .changelog import Changelog
from .generic import Generic
from .java import JavaUpdate, VersionsManifest
from .node import PackageJson, PackageLockJson, SamplesPackageJson
from .php import PhpClientVersion, PhpManifest, RootComposerUpdatePackages
from .python import PyProjectToml, PythonFileWithVersion
from .release_manifest import ReleaseManifest

__all__ = [
    "Changelog",
    "CompositeUpdater",
    "DefaultUpdater",
    "Generic",
    "JavaUpdate",
    "PackageJson",
    "PackageLockJson",
    "PhpClientVersion",
    "PhpManifest",
    "PyProjectToml",
    "PythonFileWithVersion",
    "RawContent",
    "ReleaseManifest",
    "RootComposerUpdatePackages",
    "SamplesPackageJson",
    "Updater",
    "VersionsManifest",
]
