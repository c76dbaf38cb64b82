"""Data models for versions and version ranges.

``SemanticVersion`` follows the NuGet flavour of SemVer: up to four numeric
components (major.minor.patch.build) plus an optional pre-release label and
build metadata. ``VersionSpec`` is an interval over versions with optional,
independently inclusive/exclusive bounds.
"""

from __future__ import annotations

import functools
from dataclasses import dataclass, field
from typing import Any, Optional, Tuple

import semantic_version

from common.errors import FormatError


def _release_key(release: str) -> Optional[semantic_version.Version]:
    """Return a comparable key for a pre-release label.

    Pre-release precedence (numeric identifiers compared numerically,
    alphanumeric ones ordinally, a shorter prefix sorting first) is exactly
    the SemVer 2.0 rule implemented by ``semantic_version``; the label is
    hung off a dummy 0.0.0 core so only the label takes part in ordering.
    """
    if not release:
        return None
    try:
        return semantic_version.Version(f"0.0.0-{release}")
    except ValueError as exc:
        raise FormatError(release, f"malformed pre-release tag ({exc})") from exc


@functools.total_ordering
@dataclass(frozen=True)
class SemanticVersion:
    """An immutable, totally ordered package version."""

    major: int
    minor: int = 0
    patch: int = 0
    build: int = 0
    release: str = ""
    metadata: str = field(default="", compare=False)
    original: Optional[str] = field(default=None, compare=False, repr=False)
    _key: Optional[semantic_version.Version] = field(default=None, init=False, compare=False, repr=False)

    def __post_init__(self) -> None:
        for name in ("major", "minor", "patch", "build"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise FormatError(value, f"{name} must be a non-negative integer")
        object.__setattr__(self, "release", self.release or "")
        object.__setattr__(self, "metadata", self.metadata or "")
        object.__setattr__(self, "_key", _release_key(self.release))

    @property
    def is_prerelease(self) -> bool:
        """True when the version carries a pre-release label."""
        return bool(self.release)

    @property
    def version_tuple(self) -> Tuple[int, int, int, int]:
        """The numeric (major, minor, patch, build) tuple."""
        return (self.major, self.minor, self.patch, self.build)

    def compare_to(self, other: "SemanticVersion") -> int:
        """Return -1, 0 or 1 comparing this version with ``other``."""
        if self.version_tuple != other.version_tuple:
            return -1 if self.version_tuple < other.version_tuple else 1
        if not self.release and not other.release:
            return 0
        if not self.release:
            return 1
        if not other.release:
            return -1
        if self._key == other._key:
            return 0
        return -1 if self._key < other._key else 1

    def __lt__(self, other: Any) -> bool:
        if not isinstance(other, SemanticVersion):
            return NotImplemented
        return self.compare_to(other) < 0

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.build:
            text = f"{text}.{self.build}"
        if self.release:
            text = f"{text}-{self.release}"
        return text

    def to_full_string(self) -> str:
        """Normalized form including build metadata."""
        if self.metadata:
            return f"{self}+{self.metadata}"
        return str(self)

    def to_original_string(self) -> str:
        """The text this version was parsed from, or the normalized form."""
        return self.original or self.to_full_string()


@dataclass(frozen=True)
class VersionSpec:
    """A version range with optional inclusive/exclusive bounds."""

    min_version: Optional[SemanticVersion] = None
    is_min_inclusive: bool = False
    max_version: Optional[SemanticVersion] = None
    is_max_inclusive: bool = False

    def __post_init__(self) -> None:
        if self.min_version is not None and self.max_version is not None:
            if self.min_version > self.max_version:
                raise FormatError(self._interval_text(), "minimum version is greater than maximum version")
            if self.min_version == self.max_version and not (self.is_min_inclusive and self.is_max_inclusive):
                raise FormatError(self._interval_text(), "range is empty")

    @classmethod
    def exact(cls, version: SemanticVersion) -> "VersionSpec":
        """Range matching exactly ``version``."""
        return cls(min_version=version, is_min_inclusive=True, max_version=version, is_max_inclusive=True)

    @classmethod
    def at_least(cls, version: SemanticVersion) -> "VersionSpec":
        """Range matching ``version`` and anything newer."""
        return cls(min_version=version, is_min_inclusive=True)

    @property
    def is_unbounded(self) -> bool:
        return self.min_version is None and self.max_version is None

    @property
    def mentions_prerelease(self) -> bool:
        """True when either bound is itself a pre-release version."""
        return any(v is not None and v.is_prerelease for v in (self.min_version, self.max_version))

    def is_satisfied_by(self, version: SemanticVersion) -> bool:
        """Return True iff ``version`` lies within this range."""
        if self.min_version is not None:
            if self.is_min_inclusive:
                if version < self.min_version:
                    return False
            elif version <= self.min_version:
                return False
        if self.max_version is not None:
            if self.is_max_inclusive:
                if version > self.max_version:
                    return False
            elif version >= self.max_version:
                return False
        return True

    def intersect(self, other: "VersionSpec") -> Optional["VersionSpec"]:
        """Return the range satisfying both specs, or None when they are disjoint."""
        min_version, min_inclusive = self.min_version, self.is_min_inclusive
        if other.min_version is not None:
            if min_version is None or other.min_version > min_version:
                min_version, min_inclusive = other.min_version, other.is_min_inclusive
            elif other.min_version == min_version:
                min_inclusive = min_inclusive and other.is_min_inclusive

        max_version, max_inclusive = self.max_version, self.is_max_inclusive
        if other.max_version is not None:
            if max_version is None or other.max_version < max_version:
                max_version, max_inclusive = other.max_version, other.is_max_inclusive
            elif other.max_version == max_version:
                max_inclusive = max_inclusive and other.is_max_inclusive

        if min_version is not None and max_version is not None:
            if min_version > max_version:
                return None
            if min_version == max_version and not (min_inclusive and max_inclusive):
                return None
        return VersionSpec(min_version, min_inclusive, max_version, max_inclusive)

    def _interval_text(self) -> str:
        lower = "[" if self.is_min_inclusive else "("
        upper = "]" if self.is_max_inclusive else ")"
        low = str(self.min_version) if self.min_version is not None else ""
        high = str(self.max_version) if self.max_version is not None else ""
        return f"{lower}{low}, {high}{upper}"

    def __str__(self) -> str:
        if self.is_unbounded:
            return "*"
        if self.min_version is not None and self.is_min_inclusive and self.max_version is None:
            return str(self.min_version)
        if (
            self.min_version is not None
            and self.min_version == self.max_version
            and self.is_min_inclusive
            and self.is_max_inclusive
        ):
            return f"[{self.min_version}]"
        return self._interval_text()

    def pretty(self) -> str:
        """Human readable form, e.g. ``(≥ 1.0.0 && < 2.0.0)``."""
        if self.is_unbounded:
            return ""
        if self.min_version is not None and self.is_min_inclusive and self.max_version is None:
            return f"(≥ {self.min_version})"
        if (
            self.min_version is not None
            and self.min_version == self.max_version
            and self.is_min_inclusive
            and self.is_max_inclusive
        ):
            return f"(= {self.min_version})"
        parts = []
        if self.min_version is not None:
            op = "≥" if self.is_min_inclusive else ">"
            parts.append(f"{op} {self.min_version}")
        if self.max_version is not None:
            op = "≤" if self.is_max_inclusive else "<"
            parts.append(f"{op} {self.max_version}")
        return f"({' && '.join(parts)})"
