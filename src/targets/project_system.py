"""Project system proxies: how the executor changes a project.

A project system exposes assembly references and project files. Paths are
'/'-separated and relative to the project root.
"""

from __future__ import annotations

import logging
import os
import posixpath
from typing import Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)

REFERENCES_FILE = "references.yml"


def _normalize(path: str) -> str:
    return posixpath.normpath(path.replace("\\", "/")).lstrip("/")


def reference_name(path: str) -> str:
    """Assembly name a reference path stands for (file name without extension)."""
    return posixpath.splitext(posixpath.basename(path.replace("\\", "/")))[0]


class ProjectSystem:
    """Base class for project systems."""

    def __init__(self, target_framework: Optional[str] = None) -> None:
        self.target_framework = target_framework

    def add_reference(self, path: str) -> None:
        raise NotImplementedError

    def remove_reference(self, name: str) -> None:
        raise NotImplementedError

    def reference_exists(self, name: str) -> bool:
        raise NotImplementedError

    def get_references(self) -> List[str]:
        """Reference paths, in the order they were added."""
        raise NotImplementedError

    def add_file(self, path: str, content: str) -> None:
        raise NotImplementedError

    def delete_file(self, path: str) -> None:
        raise NotImplementedError

    def file_exists(self, path: str) -> bool:
        raise NotImplementedError

    def read_file(self, path: str) -> str:
        raise NotImplementedError


class InMemoryProjectSystem(ProjectSystem):
    """Project system keeping references and files in dictionaries."""

    def __init__(self, target_framework: Optional[str] = None, root: str = "") -> None:
        super().__init__(target_framework)
        self.root = root
        self.references: Dict[str, str] = {}
        self.files: Dict[str, str] = {}

    def add_reference(self, path: str) -> None:
        self.references[reference_name(path).lower()] = path

    def remove_reference(self, name: str) -> None:
        self.references.pop(name.lower(), None)

    def reference_exists(self, name: str) -> bool:
        return name.lower() in self.references

    def get_references(self) -> List[str]:
        return list(self.references.values())

    def add_file(self, path: str, content: str) -> None:
        self.files[_normalize(path)] = content

    def delete_file(self, path: str) -> None:
        self.files.pop(_normalize(path), None)

    def file_exists(self, path: str) -> bool:
        return _normalize(path) in self.files

    def read_file(self, path: str) -> str:
        try:
            return self.files[_normalize(path)]
        except KeyError as e:
            raise FileNotFoundError(path) from e


class PhysicalProjectSystem(ProjectSystem):
    """Project system backed by a directory.

    Files live under ``root``; references are kept in ``references.yml`` at
    the root as a list of paths.
    """

    def __init__(self, root: str, target_framework: Optional[str] = None) -> None:
        super().__init__(target_framework)
        self.root = root

    def _full_path(self, path: str) -> str:
        return os.path.join(self.root, *_normalize(path).split("/"))

    @property
    def _references_path(self) -> str:
        return os.path.join(self.root, REFERENCES_FILE)

    def get_references(self) -> List[str]:
        if not os.path.isfile(self._references_path):
            return []
        with open(self._references_path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or []
        return [str(p) for p in data]

    def _save_references(self, references: List[str]) -> None:
        os.makedirs(self.root, exist_ok=True)
        with open(self._references_path, "w", encoding="utf-8") as fh:
            yaml.safe_dump(references, fh, default_flow_style=False)

    def add_reference(self, path: str) -> None:
        name = reference_name(path).lower()
        references = [r for r in self.get_references() if reference_name(r).lower() != name]
        references.append(path)
        self._save_references(references)

    def remove_reference(self, name: str) -> None:
        references = self.get_references()
        kept = [r for r in references if reference_name(r).lower() != name.lower()]
        if len(kept) != len(references):
            self._save_references(kept)

    def reference_exists(self, name: str) -> bool:
        return any(reference_name(r).lower() == name.lower() for r in self.get_references())

    def add_file(self, path: str, content: str) -> None:
        full = self._full_path(path)
        os.makedirs(os.path.dirname(full), exist_ok=True)
        with open(full, "w", encoding="utf-8") as fh:
            fh.write(content)

    def delete_file(self, path: str) -> None:
        full = self._full_path(path)
        if not os.path.isfile(full):
            return
        os.remove(full)
        # Prune directories left empty, stopping at the project root
        root = os.path.abspath(self.root)
        parent = os.path.dirname(os.path.abspath(full))
        while parent != root and parent.startswith(root) and not os.listdir(parent):
            os.rmdir(parent)
            parent = os.path.dirname(parent)
        logger.debug("Deleted %s", full)

    def file_exists(self, path: str) -> bool:
        return os.path.isfile(self._full_path(path))

    def read_file(self, path: str) -> str:
        with open(self._full_path(path), "r", encoding="utf-8") as fh:
            return fh.read()
