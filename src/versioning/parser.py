"""Parsing utilities for versions and version ranges."""

import re
from typing import Optional, Union

from common.errors import FormatError

from .models import SemanticVersion, VersionSpec

_METADATA_RE = re.compile(r"^[0-9A-Za-z-]+(\.[0-9A-Za-z-]+)*$")

VersionLike = Union[str, SemanticVersion]


def parse_version(text: VersionLike) -> SemanticVersion:
    """Parse a version string such as ``1.2``, ``1.0.0.3`` or ``2.0.0-beta.1+sha.5``.

    Args:
        text: Version text.

    Raises:
        FormatError: non-numeric segments, more than 4 numeric segments,
            a malformed pre-release tag or empty input.

    Returns:
        SemanticVersion: The parsed version, remembering ``text`` as its original form.
    """
    if isinstance(text, SemanticVersion):
        return text
    if not isinstance(text, str):
        raise FormatError(text, "expected a version string")
    raw = text.strip()
    if not raw:
        raise FormatError(text, "empty version")

    core, _, metadata = raw.partition("+")
    if "+" in raw and not _METADATA_RE.match(metadata):
        raise FormatError(text, "malformed build metadata")
    numeric, dash, release = core.partition("-")
    if dash and not release:
        raise FormatError(text, "malformed pre-release tag")

    segments = numeric.split(".")
    if len(segments) > 4:
        raise FormatError(text, "more than 4 numeric segments")
    values = []
    for segment in segments:
        if not segment.isascii() or not segment.isdigit():
            raise FormatError(text, f"non-numeric segment '{segment}'")
        values.append(int(segment))
    values.extend([0] * (4 - len(values)))

    return SemanticVersion(
        values[0],
        values[1],
        values[2],
        values[3],
        release=release,
        metadata=metadata,
        original=raw,
    )


def try_parse_version(text: Optional[VersionLike]) -> Optional[SemanticVersion]:
    """Parse ``text`` returning None instead of raising on bad input."""
    if text is None:
        return None
    try:
        return parse_version(text)
    except FormatError:
        return None


def parse_version_spec(text: Union[str, VersionSpec, None]) -> VersionSpec:
    """Parse NuGet range notation into a VersionSpec.

    ``1.0`` means ``>= 1.0``; ``[1.0]`` means exactly 1.0; ``(1.0,)``,
    ``(,2.0]``, ``[1.0,2.0)`` are intervals. ``*`` or empty text (and None)
    means any version.

    Raises:
        FormatError: If the text is neither a version nor a valid interval.
    """
    if isinstance(text, VersionSpec):
        return text
    if text is None:
        return VersionSpec()
    value = str(text).strip()
    if value in ("", "*"):
        return VersionSpec()

    plain = try_parse_version(value)
    if plain is not None:
        return VersionSpec.at_least(plain)

    if len(value) < 3:
        raise FormatError(text, "invalid version range")
    if value[0] not in "[(" or value[-1] not in "])":
        raise FormatError(text, "version range must start with '[' or '(' and end with ']' or ')'")
    min_inclusive = value[0] == "["
    max_inclusive = value[-1] == "]"

    parts = value[1:-1].split(",")
    if len(parts) > 2:
        raise FormatError(text, "version range has more than two bounds")
    if all(not p.strip() for p in parts):
        raise FormatError(text, "version range has no bounds")

    min_text = parts[0].strip()
    max_text = parts[1].strip() if len(parts) == 2 else parts[0].strip()
    if len(parts) == 1 and not (min_inclusive and max_inclusive):
        raise FormatError(text, "a single-version range must use '[' and ']'")

    min_version = parse_version(min_text) if min_text else None
    max_version = parse_version(max_text) if max_text else None
    return VersionSpec(
        min_version=min_version,
        is_min_inclusive=min_inclusive if min_version is not None else False,
        max_version=max_version,
        is_max_inclusive=max_inclusive if max_version is not None else False,
    )


def compare_versions(a: VersionLike, b: VersionLike) -> int:
    """Compare two versions (or version strings), returning -1, 0 or 1."""
    return parse_version(a).compare_to(parse_version(b))


def format_version(version: SemanticVersion) -> str:
    """Normalized text form of a version (build metadata excluded)."""
    return str(version)
