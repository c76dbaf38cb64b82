"""Dependency resolution: turns requested operations into an ordered action plan."""

from .action_resolver import ActionResolver
from .models import (
    ActionType,
    DependencySet,
    PackageAction,
    PackageDependency,
    PackageIdentity,
    ResolutionContext,
)

__all__ = [
    "ActionResolver",
    "ActionType",
    "DependencySet",
    "PackageAction",
    "PackageDependency",
    "PackageIdentity",
    "ResolutionContext",
]
