"""Loading of YAML/JSON input documents (feeds, solutions, operations)."""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, Optional

import yaml

from .errors import ConfigError
from .schema_validate import validate_document

logger = logging.getLogger(__name__)


def load_document(path: str, schema: Optional[Dict[str, Any]] = None, label: str = "document") -> Any:
    """Read a YAML or JSON document and optionally validate it.

    Files ending in ``.json`` are parsed with :mod:`json`; anything else with
    ``yaml.safe_load`` (which also accepts JSON).

    Args:
        path: File to read.
        schema: Optional Draft-07 schema the document must satisfy.
        label: Kind of document, used in error messages.

    Raises:
        ConfigError: The file is missing or cannot be parsed.
        SchemaError: The document does not match ``schema``.

    Returns:
        The parsed document.
    """
    if not os.path.isfile(path):
        raise ConfigError(f"{label.capitalize()} file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as fh:
            if path.lower().endswith(".json"):
                data = json.load(fh)
            else:
                data = yaml.safe_load(fh)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        raise ConfigError(f"Unable to read {label} '{path}': {exc}") from exc
    logger.debug("Loaded %s from %s", label, path)
    if schema is not None:
        validate_document(schema, data, label=f"{label} '{path}'")
    return data
