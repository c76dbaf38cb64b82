"""Build a solution and its projects from a solution document.

Example::

    name: Shop
    packages: []
    projects:
      - name: Web
        target_framework: net45
        packages:
          - {id: B, version: "0.9"}
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Iterable, Optional

from common.documents import load_document
from common.schema_validate import SOLUTION_SCHEMA, validate_document
from repository.local import LocalRepository
from resolution.models import PackageIdentity

from .installation_target import Project, Solution
from .project_system import InMemoryProjectSystem, PhysicalProjectSystem

logger = logging.getLogger(__name__)

SOLUTION_PACKAGES_FOLDER = "packages"


def _seed(repository: LocalRepository, packages: Iterable[Dict[str, Any]], target_framework: Optional[str]) -> None:
    for item in packages or []:
        identity = PackageIdentity.create(item["id"], item["version"])
        if repository.find_package(identity.id) is None:
            # Dependencies unknown: the resolver asks the package source
            repository.add_package(identity, dependencies=None, target_framework=target_framework)


def build_solution(data: Dict[str, Any], workspace: Optional[str] = None) -> Solution:
    """Create a :class:`Solution` from a parsed solution document.

    Without ``workspace`` everything is kept in memory. With ``workspace``,
    each project becomes a directory ``<workspace>/<project name>`` holding its
    files, ``references.yml`` and ``packages.config``; the solution packages
    folder is ``<workspace>/packages``. Installed packages found on disk take
    precedence over those listed in the document.

    Raises:
        SchemaError: The document does not match the solution schema.
    """
    validate_document(SOLUTION_SCHEMA, data, label="solution")
    solution_framework = data.get("target_framework")

    if workspace:
        solution_repo = LocalRepository.from_directory(os.path.join(workspace, SOLUTION_PACKAGES_FOLDER))
    else:
        solution_repo = LocalRepository()
    _seed(solution_repo, data.get("packages"), solution_framework)
    solution = Solution(data["name"], solution_repo, target_framework=solution_framework)

    for item in data.get("projects") or []:
        framework = item.get("target_framework") or solution_framework
        if workspace:
            project_dir = os.path.join(workspace, item["name"])
            system = PhysicalProjectSystem(project_dir, framework)
            repository = LocalRepository.from_directory(project_dir)
        else:
            system = InMemoryProjectSystem(framework, root=item["name"])
            repository = LocalRepository()
        _seed(repository, item.get("packages"), framework)
        solution.add_project(Project(item["name"], system, repository))

    logger.info("Loaded solution '%s' with %d project(s)", solution.name, len(solution.projects))
    return solution


def load_solution(path: str, workspace: Optional[str] = None) -> Solution:
    """Load and build a solution from a YAML/JSON file."""
    return build_solution(load_document(path, label="solution"), workspace=workspace)
