"""Target framework monikers and dependency-set compatibility.

Only what dependency selection needs is modelled: a framework family
identifier and a version tuple. ``net45`` and ``.NETFramework,Version=v4.5``
parse to the same value.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Tuple, TypeVar

NET_FRAMEWORK = ".NETFramework"
NET_STANDARD = ".NETStandard"
NET_CORE_APP = ".NETCoreApp"
SILVERLIGHT = "Silverlight"
WINDOWS_PHONE = "WindowsPhone"
NATIVE = "Native"

_SHORT_IDENTIFIERS = (
    ("netstandard", NET_STANDARD),
    ("netcoreapp", NET_CORE_APP),
    ("silverlight", SILVERLIGHT),
    ("native", NATIVE),
    ("net", NET_FRAMEWORK),
    ("sl", SILVERLIGHT),
    ("wp", WINDOWS_PHONE),
)

_LONG_RE = re.compile(r"^\s*(?P<id>[^,]+?)\s*,\s*Version\s*=\s*v?(?P<version>[0-9.]+)\s*(,\s*Profile\s*=\s*(?P<profile>.+))?$", re.IGNORECASE)

T = TypeVar("T")


@dataclass(frozen=True)
class FrameworkName:
    """A parsed target framework."""

    identifier: str
    version: Tuple[int, ...] = ()
    profile: str = ""

    def __str__(self) -> str:
        text = self.identifier
        if self.version:
            text = f"{text},Version=v{'.'.join(str(v) for v in self.version)}"
        if self.profile:
            text = f"{text},Profile={self.profile}"
        return text


def _version_tuple(text: str) -> Tuple[int, ...]:
    if not text:
        return ()
    if "." in text:
        return tuple(int(p) for p in text.split(".") if p)
    # Compact form: net451 -> 4.5.1
    return tuple(int(ch) for ch in text)


def _trim(version: Tuple[int, ...]) -> Tuple[int, ...]:
    trimmed = list(version)
    while len(trimmed) > 2 and trimmed[-1] == 0:
        trimmed.pop()
    return tuple(trimmed)


def parse_framework(text: Optional[str]) -> Optional[FrameworkName]:
    """Parse a short (``net45``) or long (``.NETFramework,Version=v4.5``) framework name.

    Unknown monikers are kept as opaque identifiers so that an exact match
    between a dependency set and a project still works. Returns None for
    empty input.
    """
    if text is None:
        return None
    raw = str(text).strip()
    if not raw:
        return None

    long_match = _LONG_RE.match(raw)
    if long_match:
        return FrameworkName(
            long_match.group("id"),
            _trim(_version_tuple(long_match.group("version"))),
            (long_match.group("profile") or "").strip(),
        )

    lowered = raw.lower()
    for prefix, identifier in _SHORT_IDENTIFIERS:
        if not lowered.startswith(prefix):
            continue
        rest = lowered[len(prefix):]
        version_text, _, profile = rest.partition("-")
        if version_text and not re.fullmatch(r"[0-9.]+", version_text):
            continue
        version = _trim(_version_tuple(version_text))
        # net5.0 and later continue the .NET Core line
        if identifier == NET_FRAMEWORK and "." in version_text and version and version[0] >= 5:
            identifier = NET_CORE_APP
        return FrameworkName(identifier, version, profile)
    return FrameworkName(lowered)


def _standard_supported_by(target: FrameworkName) -> Tuple[int, ...]:
    """Highest .NETStandard version usable from ``target`` (empty when none)."""
    if target.identifier == NET_STANDARD:
        return target.version
    if target.identifier == NET_CORE_APP:
        if target.version >= (3, 0):
            return (2, 1)
        if target.version >= (2, 0):
            return (2, 0)
        return (1, 6)
    if target.identifier == NET_FRAMEWORK:
        if target.version >= (4, 6, 1):
            return (2, 0)
        if target.version >= (4, 6):
            return (1, 3)
        if target.version >= (4, 5, 1):
            return (1, 2)
        if target.version >= (4, 5):
            return (1, 1)
    return ()


def is_compatible(target: FrameworkName, candidate: FrameworkName) -> bool:
    """Return True when an item built for ``candidate`` can be used by ``target``."""
    if candidate.identifier.lower() == target.identifier.lower():
        if candidate.profile and candidate.profile.lower() != target.profile.lower():
            return False
        return candidate.version <= target.version
    if candidate.identifier == NET_STANDARD:
        supported = _standard_supported_by(target)
        return bool(supported) and candidate.version <= supported
    return False


def get_compatible_item(
    target: Optional[str],
    items: Iterable[T],
    framework_of: Callable[[T], Optional[str]],
) -> Optional[T]:
    """Pick the item whose framework best matches ``target``.

    Framework-specific items win over framework-neutral ones: the closest
    compatible framework is chosen (same family first, then highest
    version). When nothing framework-specific fits, the first item without a
    framework is returned. Returns None if neither exists.
    """
    items = list(items)
    neutral = next((item for item in items if parse_framework(framework_of(item)) is None), None)
    target_name = parse_framework(target)
    if target_name is None:
        return neutral

    best: Optional[T] = None
    best_score: Optional[Tuple[int, Tuple[int, ...]]] = None
    for item in items:
        candidate = parse_framework(framework_of(item))
        if candidate is None or not is_compatible(target_name, candidate):
            continue
        score = (1 if candidate.identifier.lower() == target_name.identifier.lower() else 0, candidate.version)
        if best_score is None or score > best_score:
            best, best_score = item, score
    return best if best is not None else neutral
