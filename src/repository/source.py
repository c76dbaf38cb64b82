"""Package sources: the package graph the resolver walks.

A source answers three questions: which versions of an id exist, which
identity best matches a version range, and what a given identity depends on
for a target framework. The executor additionally asks for a package's files.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from common.errors import PackageNotFoundError
from common.logging_utils import extra_context, is_debug_enabled
from resolution.models import DependencySet, PackageDependency, PackageIdentity
from versioning.frameworks import get_compatible_item
from versioning.models import SemanticVersion, VersionSpec
from versioning.parser import VersionLike, parse_version
from versioning.policy import filter_candidates

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PackageFile:
    """One file inside a package, addressed by its '/'-separated relative path."""

    path: str
    content: str = ""

    @property
    def folder(self) -> str:
        """Top-level folder of the file ('' for files at the package root)."""
        head, sep, _ = self.path.replace("\\", "/").partition("/")
        return head.lower() if sep else ""


class PackageSource:
    """Base class for package sources."""

    name = "source"

    def get_available_versions(self, package_id: str) -> List[SemanticVersion]:
        """Return every version of ``package_id`` in ascending order (empty if unknown)."""
        raise NotImplementedError

    def get_dependencies(
        self, identity: PackageIdentity, target_framework: Optional[str] = None
    ) -> List[PackageDependency]:
        """Return the dependencies of ``identity`` applicable to ``target_framework``.

        Raises:
            PackageNotFoundError: If the identity is not in this source.
        """
        raise NotImplementedError

    def get_files(self, identity: PackageIdentity) -> List[PackageFile]:
        """Return the files shipped by ``identity``."""
        raise NotImplementedError

    def exists(self, identity: PackageIdentity) -> bool:
        return identity.version in self.get_available_versions(identity.id)

    def find_package(
        self,
        package_id: str,
        spec: Optional[VersionSpec] = None,
        allow_prerelease: bool = False,
    ) -> Optional[PackageIdentity]:
        """Return the highest version of ``package_id`` admitted by ``spec``, or None.

        Pre-releases are only considered when ``allow_prerelease`` is set or a
        bound of ``spec`` is itself a pre-release.
        """
        candidates = filter_candidates(self.get_available_versions(package_id), spec, allow_prerelease)
        if not candidates:
            return None
        return PackageIdentity(self._display_id(package_id), candidates[-1])

    def _display_id(self, package_id: str) -> str:
        return package_id


class _PackageEntry:  # pylint: disable=too-few-public-methods
    def __init__(self, identity: PackageIdentity, dependency_sets: Sequence[DependencySet], files: Sequence[PackageFile]):
        self.identity = identity
        self.dependency_sets = list(dependency_sets)
        self.files = list(files)


class InMemoryPackageSource(PackageSource):
    """A package source held entirely in memory.

    Used directly by tests and filled from feed documents by
    :func:`repository.feed.load_feed`.
    """

    def __init__(self, name: str = "memory") -> None:
        self.name = name
        self._packages: Dict[str, Dict[SemanticVersion, _PackageEntry]] = {}

    def add_package(
        self,
        package_id: str,
        version: VersionLike,
        dependencies: Optional[Mapping[str, Optional[str]] | Iterable[PackageDependency]] = None,
        dependency_sets: Optional[Iterable[DependencySet]] = None,
        files: Optional[Mapping[str, str] | Iterable[PackageFile]] = None,
    ) -> PackageIdentity:
        """Register a package.

        Args:
            package_id: Package id.
            version: Version or version string.
            dependencies: Framework-neutral dependencies, either as
                ``{id: spec}`` or as ``PackageDependency`` objects.
            dependency_sets: Framework-scoped dependency sets.
            files: Package files as ``{path: content}`` or ``PackageFile`` objects.

        Returns:
            PackageIdentity: The identity that was added.
        """
        identity = PackageIdentity(package_id, parse_version(version))
        sets = list(dependency_sets or [])
        if dependencies:
            if isinstance(dependencies, Mapping):
                deps = tuple(PackageDependency.create(k, v) for k, v in dependencies.items())
            else:
                deps = tuple(dependencies)
            sets.insert(0, DependencySet(None, deps))
        if files is None:
            package_files: List[PackageFile] = []
        elif isinstance(files, Mapping):
            package_files = [PackageFile(path, content) for path, content in files.items()]
        else:
            package_files = list(files)
        self._packages.setdefault(identity.key, {})[identity.version] = _PackageEntry(identity, sets, package_files)
        return identity

    def _entry(self, identity: PackageIdentity) -> _PackageEntry:
        entry = self._packages.get(identity.key, {}).get(identity.version)
        if entry is None:
            raise PackageNotFoundError(identity.id, str(identity.version), where=f"source '{self.name}'")
        return entry

    def _display_id(self, package_id: str) -> str:
        versions = self._packages.get(package_id.lower())
        if versions:
            return next(iter(versions.values())).identity.id
        return package_id

    def get_available_versions(self, package_id: str) -> List[SemanticVersion]:
        return sorted(self._packages.get(package_id.lower(), {}))

    def get_dependencies(
        self, identity: PackageIdentity, target_framework: Optional[str] = None
    ) -> List[PackageDependency]:
        entry = self._entry(identity)
        deps = select_dependencies(entry.dependency_sets, target_framework)
        if is_debug_enabled(logger):
            logger.debug(
                "Dependencies looked up",
                extra=extra_context(
                    event="dependency_lookup",
                    component="source",
                    package_id=str(identity),
                    count=len(deps),
                    target_framework=target_framework,
                ),
            )
        return deps

    def get_files(self, identity: PackageIdentity) -> List[PackageFile]:
        return list(self._entry(identity).files)


def select_dependencies(
    dependency_sets: Sequence[DependencySet], target_framework: Optional[str]
) -> List[PackageDependency]:
    """Choose the dependencies that apply to ``target_framework``.

    With a known framework the best compatible set wins, falling back to the
    framework-neutral set. With no framework the neutral set is used, or,
    when every set is framework scoped, the union of all sets where the first
    declaration of an id wins.
    """
    if not dependency_sets:
        return []
    chosen = get_compatible_item(target_framework, dependency_sets, lambda s: s.target_framework)
    if chosen is not None:
        return list(chosen.dependencies)
    if target_framework is not None:
        return []
    merged: Dict[str, PackageDependency] = {}
    for dep_set in dependency_sets:
        for dep in dep_set.dependencies:
            merged.setdefault(dep.key, dep)
    return list(merged.values())


class AggregatePackageSource(PackageSource):
    """Presents several sources as one; earlier sources win for identical identities."""

    name = "aggregate"

    def __init__(self, sources: Iterable[PackageSource]) -> None:
        self.sources = list(sources)

    def _owner(self, identity: PackageIdentity) -> PackageSource:
        for source in self.sources:
            if source.exists(identity):
                return source
        raise PackageNotFoundError(identity.id, str(identity.version))

    def _display_id(self, package_id: str) -> str:
        for source in self.sources:
            if source.get_available_versions(package_id):
                return source._display_id(package_id)  # pylint: disable=protected-access
        return package_id

    def get_available_versions(self, package_id: str) -> List[SemanticVersion]:
        versions = set()
        for source in self.sources:
            versions.update(source.get_available_versions(package_id))
        return sorted(versions)

    def get_dependencies(
        self, identity: PackageIdentity, target_framework: Optional[str] = None
    ) -> List[PackageDependency]:
        return self._owner(identity).get_dependencies(identity, target_framework)

    def get_files(self, identity: PackageIdentity) -> List[PackageFile]:
        return self._owner(identity).get_files(identity)
