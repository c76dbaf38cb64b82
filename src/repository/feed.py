"""Feed documents: a YAML/JSON description of the packages a source offers.

Example::

    packages:
      - id: A
        version: "1.0"
        dependencies:
          - {id: B, version: "[1.0,2.0)"}
        files:
          lib/net45/A.dll: ""
      - id: B
        version: "1.0"
        dependency_sets:
          - target_framework: net45
            dependencies: [{id: C}]
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List

from common.documents import load_document
from common.logging_utils import Timer, extra_context, is_debug_enabled
from common.schema_validate import FEED_SCHEMA, validate_document
from resolution.models import DependencySet, PackageDependency

from .source import AggregatePackageSource, InMemoryPackageSource, PackageSource

logger = logging.getLogger(__name__)


def _dependencies(items: Iterable[Dict[str, Any]]) -> tuple:
    return tuple(PackageDependency.create(item["id"], item.get("version")) for item in items or [])


def build_source(data: Dict[str, Any], name: str = "feed") -> InMemoryPackageSource:
    """Build an in-memory source from an already parsed feed document.

    Raises:
        SchemaError: The document does not match the feed schema.
        FormatError: A version or version range is malformed.
    """
    validate_document(FEED_SCHEMA, data, label=f"feed '{name}'")
    source = InMemoryPackageSource(name)
    for entry in data.get("packages") or []:
        sets: List[DependencySet] = [
            DependencySet(item.get("target_framework"), _dependencies(item.get("dependencies")))
            for item in entry.get("dependency_sets") or []
        ]
        if entry.get("dependencies"):
            sets.insert(0, DependencySet(None, _dependencies(entry["dependencies"])))
        source.add_package(
            entry["id"],
            entry["version"],
            dependency_sets=sets,
            files=entry.get("files") or {},
        )
    return source


def load_feed(path: str) -> InMemoryPackageSource:
    """Load one feed file into an in-memory package source."""
    with Timer() as t:
        data = load_document(path, label="feed")
        source = build_source(data, name=path)
    count = len(data.get("packages") or [])
    logger.info("Loaded %d package(s) from feed %s", count, path)
    if is_debug_enabled(logger):
        logger.debug(
            "Feed loaded",
            extra=extra_context(event="feed_loaded", component="feed", count=count, duration_ms=t.duration_ms()),
        )
    return source


def load_feeds(paths: Iterable[str]) -> PackageSource:
    """Load several feed files; a single feed is returned as-is."""
    sources = [load_feed(p) for p in paths]
    if len(sources) == 1:
        return sources[0]
    return AggregatePackageSource(sources)
