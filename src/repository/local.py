"""Per-target local repositories and ``packages.config`` persistence."""

from __future__ import annotations

import logging
import os
import xml.etree.ElementTree as ET
from typing import Dict, List, Optional, Sequence, Tuple

from common.errors import ConfigError, FormatError
from constants import Constants
from resolution.models import PackageDependency, PackageIdentity
from versioning.parser import parse_version

logger = logging.getLogger(__name__)


class PackageReferenceFile:
    """Reads and writes a ``packages.config`` file.

    The file lists installed packages as
    ``<packages><package id="" version="" targetFramework=""/></packages>``.
    """

    def __init__(self, path: str) -> None:
        self.path = path

    def get_package_references(self) -> List[Tuple[PackageIdentity, Optional[str]]]:
        """Return ``(identity, target_framework)`` for every entry in the file.

        Entries with a missing id or an unparsable version are skipped with a
        warning. A missing file yields an empty list.

        Raises:
            ConfigError: If the file exists but is not well-formed XML.
        """
        if not os.path.isfile(self.path):
            return []
        try:
            tree = ET.parse(self.path)
        except (ET.ParseError, OSError) as e:
            raise ConfigError(f"Couldn't parse {self.path}: {e}") from e
        root = tree.getroot()
        # Remove namespace
        for elem in root.iter():
            if "}" in elem.tag:
                elem.tag = elem.tag.split("}")[1]

        references = []
        for package in root.findall(".//package"):
            package_id = package.get("id")
            version_text = package.get("version")
            if not package_id or not version_text:
                logger.warning("Skipping incomplete package entry in %s", self.path)
                continue
            try:
                version = parse_version(version_text)
            except FormatError as e:
                logger.warning("Skipping package '%s' in %s: %s", package_id, self.path, e)
                continue
            references.append((PackageIdentity(package_id, version), package.get("targetFramework")))
        return references

    def save(self, references: Sequence[Tuple[PackageIdentity, Optional[str]]]) -> None:
        """Rewrite the file with ``references`` sorted by id.

        An empty reference list deletes the file.
        """
        if not references:
            if os.path.isfile(self.path):
                os.remove(self.path)
            return
        root = ET.Element("packages")
        for identity, framework in sorted(references, key=lambda r: r[0].key):
            element = ET.SubElement(root, "package", {"id": identity.id, "version": identity.version.to_original_string()})
            if framework:
                element.set("targetFramework", framework)
        ET.indent(root, space="  ")
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        ET.ElementTree(root).write(self.path, encoding="utf-8", xml_declaration=True)


class _InstalledPackage:  # pylint: disable=too-few-public-methods
    def __init__(
        self,
        identity: PackageIdentity,
        dependencies: Optional[Sequence[PackageDependency]],
        target_framework: Optional[str],
    ) -> None:
        self.identity = identity
        self.dependencies = None if dependencies is None else list(dependencies)
        self.target_framework = target_framework


class LocalRepository:
    """Installed-package state of one installation target.

    At most one version of an id is installed at a time. Dependencies are
    recorded when the executor installs a package; packages read back from a
    ``packages.config`` have no recorded dependencies and
    :meth:`get_dependencies` returns None for them.

    Args:
        reference_file: Optional ``packages.config`` to load from and keep in sync.
    """

    def __init__(self, reference_file: Optional[PackageReferenceFile] = None) -> None:
        self.reference_file = reference_file
        self._packages: Dict[str, _InstalledPackage] = {}
        if reference_file is not None:
            for identity, framework in reference_file.get_package_references():
                self._packages[identity.key] = _InstalledPackage(identity, None, framework)

    @classmethod
    def from_directory(cls, directory: str) -> "LocalRepository":
        """Repository backed by ``<directory>/packages.config``."""
        return cls(PackageReferenceFile(os.path.join(directory, Constants.PACKAGES_CONFIG_FILE)))

    def is_installed(self, package, version=None) -> bool:
        """True when ``package`` is installed.

        ``package`` is either an identity, matched exactly, or an id,
        optionally narrowed to ``version``.
        """
        if isinstance(package, PackageIdentity):
            package, version = package.id, package.version
        entry = self._packages.get(package.lower())
        if entry is None:
            return False
        return version is None or entry.identity.version == parse_version(version)

    def get_installed_packages(self) -> List[PackageIdentity]:
        """Installed identities sorted by id."""
        return [self._packages[k].identity for k in sorted(self._packages)]

    def find_package(self, package_id: str) -> Optional[PackageIdentity]:
        entry = self._packages.get(package_id.lower())
        return entry.identity if entry else None

    def get_dependencies(self, identity: PackageIdentity) -> Optional[List[PackageDependency]]:
        """Dependencies recorded at install time, or None when unknown."""
        entry = self._packages.get(identity.key)
        if entry is None or entry.identity != identity or entry.dependencies is None:
            return None
        return list(entry.dependencies)

    def add_package(
        self,
        identity: PackageIdentity,
        dependencies: Optional[Sequence[PackageDependency]] = (),
        target_framework: Optional[str] = None,
    ) -> None:
        """Record ``identity`` as installed, replacing any other version of its id."""
        self._packages[identity.key] = _InstalledPackage(identity, dependencies, target_framework)
        self._save()

    def remove_package(self, identity: PackageIdentity) -> None:
        """Forget ``identity``; a no-op when that exact identity is not installed."""
        entry = self._packages.get(identity.key)
        if entry is not None and entry.identity == identity:
            del self._packages[identity.key]
            self._save()

    def _save(self) -> None:
        if self.reference_file is not None:
            self.reference_file.save(
                [(e.identity, e.target_framework) for e in self._packages.values()]
            )

    def __len__(self) -> int:
        return len(self._packages)
