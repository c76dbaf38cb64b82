"""Version model: semantic versions, version ranges, frameworks and selection policies."""

from .models import SemanticVersion, VersionSpec
from .parser import compare_versions, parse_version, parse_version_spec, try_parse_version
from .policy import DependencyVersion, select_version

__all__ = [
    "SemanticVersion",
    "VersionSpec",
    "compare_versions",
    "parse_version",
    "parse_version_spec",
    "try_parse_version",
    "DependencyVersion",
    "select_version",
]
