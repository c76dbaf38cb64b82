"""JSON Schema validation helpers for input documents.

Wraps jsonschema Draft7 validation and reports the first error with its
JSON path, so a bad feed or solution file points at the offending entry.
"""

from __future__ import annotations

from typing import Any, Dict

from jsonschema import Draft7Validator

from .errors import SchemaError

_VERSION_STRING = {"type": "string"}

_DEPENDENCY = {
    "type": "object",
    "required": ["id"],
    "properties": {
        "id": {"type": "string", "minLength": 1},
        "version": _VERSION_STRING,
    },
}

FEED_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["packages"],
    "properties": {
        "packages": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["id", "version"],
                "properties": {
                    "id": {"type": "string", "minLength": 1},
                    "version": _VERSION_STRING,
                    "dependencies": {"type": "array", "items": _DEPENDENCY},
                    "dependency_sets": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {
                                "target_framework": {"type": ["string", "null"]},
                                "dependencies": {"type": "array", "items": _DEPENDENCY},
                            },
                        },
                    },
                    "files": {
                        "type": "object",
                        "additionalProperties": {"type": "string"},
                    },
                },
            },
        },
    },
}

_INSTALLED = {
    "type": "array",
    "items": {
        "type": "object",
        "required": ["id", "version"],
        "properties": {"id": {"type": "string"}, "version": _VERSION_STRING},
    },
}

SOLUTION_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["name"],
    "properties": {
        "name": {"type": "string", "minLength": 1},
        "target_framework": {"type": ["string", "null"]},
        "packages": _INSTALLED,
        "projects": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["name"],
                "properties": {
                    "name": {"type": "string", "minLength": 1},
                    "target_framework": {"type": ["string", "null"]},
                    "packages": _INSTALLED,
                },
            },
        },
    },
}

OPERATIONS_SCHEMA: Dict[str, Any] = {
    "type": "array",
    "items": {
        "type": "object",
        "required": ["action", "id"],
        "properties": {
            "action": {"enum": ["install", "update", "uninstall"]},
            "id": {"type": "string", "minLength": 1},
            "version": _VERSION_STRING,
            "target": {"type": "string"},
            "force": {"type": "boolean"},
            "remove_dependencies": {"type": "boolean"},
            "recursive": {"type": "boolean"},
        },
    },
}

_ASSEMBLY_NAME = {
    "type": "object",
    "required": ["name", "version"],
    "properties": {
        "name": {"type": "string", "minLength": 1},
        "version": _VERSION_STRING,
        "public_key_token": {"type": ["string", "null"]},
        "culture": {"type": ["string", "null"]},
    },
}

ASSEMBLIES_SCHEMA: Dict[str, Any] = {
    "type": "array",
    "items": {
        "allOf": [
            _ASSEMBLY_NAME,
            {"properties": {"references": {"type": "array", "items": _ASSEMBLY_NAME}}},
        ]
    },
}


def validate_document(schema: Dict[str, Any], data: Any, label: str = "document") -> None:
    """Validate a document strictly and raise on the first error.

    Args:
        schema: Draft-07 JSON Schema dict.
        data: Parsed document to validate.
        label: Name used in the error message (e.g. the file path).

    Raises:
        SchemaError: If the document does not match the schema.
    """
    validator = Draft7Validator(schema)
    errs = sorted(validator.iter_errors(data), key=lambda e: [str(p) for p in e.path])
    if errs:
        first = errs[0]
        path = "/".join([str(p) for p in first.path])
        raise SchemaError(f"Invalid {label} at '{path}': {first.message}")
