"""Installation targets: the project or solution scope an action applies to."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Iterable, Iterator, List, Optional

if TYPE_CHECKING:  # pragma: no cover
    from repository.local import LocalRepository
    from targets.project_system import ProjectSystem


class TargetKind(Enum):
    PROJECT = "project"
    SOLUTION = "solution"


class InstallationTarget:
    """Base class for projects and solutions.

    Targets compare by identity; two projects with the same name in
    different solutions are different targets.
    """

    kind: TargetKind

    def __init__(self, name: str, repository: "LocalRepository") -> None:
        self.name = name
        self.repository = repository

    @property
    def is_solution(self) -> bool:
        return self.kind == TargetKind.SOLUTION

    @property
    def target_framework(self) -> Optional[str]:
        raise NotImplementedError

    @property
    def owner_solution(self) -> Optional["Solution"]:
        raise NotImplementedError

    def get_all_targets_recursively(self) -> Iterator["InstallationTarget"]:
        """Yield this target and, for a solution, every descendant project."""
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class Project(InstallationTarget):
    """A project with its own project system and installed-package state."""

    kind = TargetKind.PROJECT

    def __init__(
        self,
        name: str,
        project_system: "ProjectSystem",
        repository: "LocalRepository",
    ) -> None:
        super().__init__(name, repository)
        self.project_system = project_system
        self._solution: Optional["Solution"] = None

    @property
    def target_framework(self) -> Optional[str]:
        return self.project_system.target_framework

    @property
    def owner_solution(self) -> Optional["Solution"]:
        return self._solution

    def get_all_targets_recursively(self) -> Iterator[InstallationTarget]:
        yield self


class Solution(InstallationTarget):
    """A solution: a solution-level packages folder plus its projects.

    A solution is its own owner solution.
    """

    kind = TargetKind.SOLUTION

    def __init__(
        self,
        name: str,
        repository: "LocalRepository",
        projects: Iterable[Project] = (),
        target_framework: Optional[str] = None,
    ) -> None:
        super().__init__(name, repository)
        self._target_framework = target_framework
        self._projects: List[Project] = []
        for project in projects:
            self.add_project(project)

    @property
    def target_framework(self) -> Optional[str]:
        return self._target_framework

    @property
    def owner_solution(self) -> "Solution":
        return self

    @property
    def projects(self) -> List[Project]:
        return list(self._projects)

    def add_project(self, project: Project) -> Project:
        """Attach ``project`` to this solution.

        Raises:
            ValueError: The project already belongs to another solution.
        """
        owner = project.owner_solution
        if owner is not None and owner is not self:
            raise ValueError(f"Project '{project.name}' already belongs to solution '{owner.name}'")
        if owner is None:
            project._solution = self  # pylint: disable=protected-access
            self._projects.append(project)
        return project

    def find_target(self, name: str) -> Optional[InstallationTarget]:
        """Find this solution or one of its projects by case-insensitive name."""
        for target in self.get_all_targets_recursively():
            if target.name.lower() == name.lower():
                return target
        return None

    def get_all_targets_recursively(self) -> Iterator[InstallationTarget]:
        yield self
        for project in self._projects:
            yield from project.get_all_targets_recursively()
