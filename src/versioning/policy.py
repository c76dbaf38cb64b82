"""Version selection policies used when a dependency admits several versions."""

from enum import Enum
from typing import Iterable, Optional

from .models import SemanticVersion, VersionSpec


class DependencyVersion(Enum):
    """Which version to pick among those satisfying a dependency.

    LOWEST is the default: the smallest version satisfying every accumulated
    constraint. HIGHEST_PATCH keeps the lowest major.minor and takes its
    newest patch; HIGHEST_MINOR keeps the lowest major and takes its newest
    minor; HIGHEST takes the newest version.
    """

    LOWEST = "lowest"
    HIGHEST_PATCH = "highestpatch"
    HIGHEST_MINOR = "highestminor"
    HIGHEST = "highest"

    @classmethod
    def from_name(cls, name: str) -> "DependencyVersion":
        """Look up a policy by its config/CLI name (case and separators ignored)."""
        key = str(name).replace("_", "").replace("-", "").lower()
        for member in cls:
            if member.value == key:
                return member
        raise ValueError(f"Unknown dependency version policy '{name}'")


def filter_candidates(
    versions: Iterable[SemanticVersion],
    spec: Optional[VersionSpec],
    allow_prerelease: bool = False,
) -> list:
    """Return the ascending list of versions admitted by ``spec``.

    Pre-release versions are only admitted when ``allow_prerelease`` is set
    or a bound of ``spec`` is itself a pre-release.
    """
    spec = spec or VersionSpec()
    prerelease_ok = allow_prerelease or spec.mentions_prerelease
    matches = {
        v for v in versions
        if spec.is_satisfied_by(v) and (prerelease_ok or not v.is_prerelease)
    }
    return sorted(matches)


def select_version(
    versions: Iterable[SemanticVersion],
    spec: Optional[VersionSpec] = None,
    policy: DependencyVersion = DependencyVersion.LOWEST,
    allow_prerelease: bool = False,
) -> Optional[SemanticVersion]:
    """Pick one version from ``versions`` according to ``policy``.

    Returns:
        The chosen version, or None when no candidate satisfies ``spec``.
    """
    candidates = filter_candidates(versions, spec, allow_prerelease)
    if not candidates:
        return None
    if policy == DependencyVersion.LOWEST:
        return candidates[0]
    if policy == DependencyVersion.HIGHEST:
        return candidates[-1]

    lowest = candidates[0]
    if policy == DependencyVersion.HIGHEST_PATCH:
        same_line = [v for v in candidates if (v.major, v.minor) == (lowest.major, lowest.minor)]
    else:
        same_line = [v for v in candidates if v.major == lowest.major]
    return same_line[-1]
