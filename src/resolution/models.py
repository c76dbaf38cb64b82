"""Data models shared by the resolver and the executor."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, List, Optional, Tuple

from versioning.models import SemanticVersion, VersionSpec
from versioning.parser import VersionLike, parse_version, parse_version_spec
from versioning.policy import DependencyVersion

if TYPE_CHECKING:  # pragma: no cover
    from targets.installation_target import InstallationTarget


@dataclass(frozen=True)
class PackageIdentity:
    """A package id paired with one exact version.

    The id is compared case-insensitively; its original casing is kept for
    display.
    """

    id: str
    version: SemanticVersion

    @classmethod
    def create(cls, package_id: str, version: VersionLike) -> "PackageIdentity":
        """Build an identity from an id and a version or version string."""
        return cls(package_id, parse_version(version))

    @property
    def key(self) -> str:
        """Lower-cased id used for lookups."""
        return self.id.lower()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PackageIdentity):
            return NotImplemented
        return self.key == other.key and self.version == other.version

    def __hash__(self) -> int:
        return hash((self.key, self.version))

    def __str__(self) -> str:
        return f"{self.id} {self.version}"


@dataclass(frozen=True)
class PackageDependency:
    """A dependency on another package id constrained by a version range."""

    id: str
    version_spec: VersionSpec = field(default_factory=VersionSpec)

    @classmethod
    def create(cls, package_id: str, spec: Optional[str] = None) -> "PackageDependency":
        return cls(package_id, parse_version_spec(spec))

    @property
    def key(self) -> str:
        return self.id.lower()

    def __str__(self) -> str:
        pretty = self.version_spec.pretty()
        return f"{self.id} {pretty}" if pretty else self.id


@dataclass(frozen=True)
class DependencySet:
    """Dependencies scoped to a target framework; None applies everywhere."""

    target_framework: Optional[str] = None
    dependencies: Tuple[PackageDependency, ...] = ()


class ActionType(Enum):
    """Kinds of concrete actions the resolver emits."""

    INSTALL = "install"
    UNINSTALL = "uninstall"
    UPDATE = "update"


@dataclass(frozen=True)
class PackageAction:
    """One step of a resolved plan.

    ``replaced`` is set for UPDATE actions only and names the identity being
    replaced by ``package``.
    """

    action_type: ActionType
    package: PackageIdentity
    target: "InstallationTarget"
    replaced: Optional[PackageIdentity] = None

    def __post_init__(self) -> None:
        if self.action_type == ActionType.UPDATE and self.replaced is None:
            raise ValueError("Update actions require the replaced package identity")
        if self.action_type != ActionType.UPDATE and self.replaced is not None:
            raise ValueError("Only update actions carry a replaced package identity")

    @classmethod
    def install(cls, package: PackageIdentity, target: "InstallationTarget") -> "PackageAction":
        return cls(ActionType.INSTALL, package, target)

    @classmethod
    def uninstall(cls, package: PackageIdentity, target: "InstallationTarget") -> "PackageAction":
        return cls(ActionType.UNINSTALL, package, target)

    @classmethod
    def update(
        cls, old: PackageIdentity, new: PackageIdentity, target: "InstallationTarget"
    ) -> "PackageAction":
        return cls(ActionType.UPDATE, new, target, replaced=old)

    def to_dict(self) -> dict:
        """Serializable view used by the CLI output."""
        data = {
            "action": self.action_type.value,
            "id": self.package.id,
            "version": str(self.package.version),
            "target": self.target.name,
        }
        if self.replaced is not None:
            data["from_version"] = str(self.replaced.version)
        return data

    def __str__(self) -> str:
        if self.action_type == ActionType.UPDATE:
            return (
                f"Update {self.package.id} {self.replaced.version} -> "
                f"{self.package.version} in '{self.target.name}'"
            )
        verb = "Install" if self.action_type == ActionType.INSTALL else "Uninstall"
        return f"{verb} {self.package} in '{self.target.name}'"


@dataclass
class ResolutionContext:
    """Settings for one resolution run, passed explicitly to the resolver."""

    dependency_version: DependencyVersion = DependencyVersion.LOWEST
    allow_prerelease: bool = False
    ignore_dependencies: bool = False


def actions_to_dicts(actions: List[PackageAction]) -> List[dict]:
    """Convert a plan into plain dicts."""
    return [a.to_dict() for a in actions]
