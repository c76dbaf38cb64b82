"""Applies a resolved plan to projects and solutions.

Every action runs as a small transaction: each sub-step that changes a
project or repository records how to undo itself, and when a later sub-step
fails the recorded steps are undone in reverse order. Actions that already
completed stay applied.
"""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Sequence, Tuple, Union

from common.errors import ActionApplicationError
from common.logging_utils import Timer, extra_context, is_debug_enabled
from constants import Constants
from resolution.models import ActionType, PackageAction, PackageIdentity
from targets.installation_target import InstallationTarget, Project, TargetKind
from targets.project_system import reference_name
from versioning.frameworks import get_compatible_item

from .script_host import ScriptHost

if TYPE_CHECKING:  # pragma: no cover
    from repository.source import PackageFile, PackageSource

logger = logging.getLogger(__name__)


@dataclass
class ExecutionResult:
    """Outcome of a successful :meth:`ActionExecutor.execute` call."""

    applied: List[PackageAction] = field(default_factory=list)
    readme_path: Optional[str] = None
    readme: Optional[str] = None


class _Journal:
    """Undo steps recorded while one action is applied."""

    def __init__(self) -> None:
        self._steps: List[Tuple[str, Callable[[], None]]] = []

    def record(self, description: str, undo: Callable[[], None]) -> None:
        self._steps.append((description, undo))

    def rollback(self) -> None:
        for description, undo in reversed(self._steps):
            try:
                undo()
            except Exception as exc:  # pylint: disable=broad-exception-caught
                logger.error("Failed to undo '%s': %s", description, exc)
        self._steps.clear()


def _split_folder(path: str) -> Tuple[str, str]:
    head, sep, rest = path.replace("\\", "/").partition("/")
    return (head.lower(), rest) if sep else ("", path)


def _assembly_files(files: Sequence["PackageFile"], target_framework: Optional[str]) -> List["PackageFile"]:
    """Assemblies under ``lib/`` for the best matching framework folder."""
    groups: Dict[Optional[str], List["PackageFile"]] = {}
    for package_file in files:
        folder, rest = _split_folder(package_file.path)
        if folder != Constants.LIB_FOLDER or not rest.lower().endswith(Constants.ASSEMBLY_EXTENSIONS):
            continue
        framework, sep, _ = rest.partition("/")
        groups.setdefault(framework if sep else None, []).append(package_file)
    if not groups:
        return []
    best = get_compatible_item(target_framework, list(groups), lambda fw: fw)
    return groups[best] if best in groups else []


def _content_files(files: Sequence["PackageFile"]) -> List[Tuple[str, "PackageFile"]]:
    """``(project path, file)`` pairs for files under ``content/``."""
    result = []
    for package_file in files:
        folder, rest = _split_folder(package_file.path)
        if folder == Constants.CONTENT_FOLDER and rest:
            result.append((rest, package_file))
    return result


def _find_file(files: Sequence["PackageFile"], path: str) -> Optional["PackageFile"]:
    for package_file in files:
        if package_file.path.replace("\\", "/").lower() == path.lower():
            return package_file
    return None


class ActionExecutor:
    """Applies :class:`PackageAction` lists in order.

    Args:
        source: Package source providing files and dependencies of packages.
        script_host: Runner for ``tools/install.py`` / ``tools/uninstall.py``.
        run_scripts: Whether package scripts run; defaults to ``Constants.RUN_SCRIPTS``.
    """

    def __init__(
        self,
        source: "PackageSource",
        script_host: Optional[ScriptHost] = None,
        run_scripts: Optional[bool] = None,
    ) -> None:
        self.source = source
        self.script_host = script_host or ScriptHost()
        self.run_scripts = Constants.RUN_SCRIPTS if run_scripts is None else run_scripts

    def execute(
        self,
        actions: Sequence[PackageAction],
        requested: Union[str, PackageIdentity, None] = None,
    ) -> ExecutionResult:
        """Apply ``actions`` in order.

        Args:
            actions: Plan produced by the resolver.
            requested: The package the user asked to install; when it ships a
                ``readme.txt`` at its root the result reports it.

        Raises:
            ActionApplicationError: An action failed. Its own sub-steps were
                undone; earlier actions remain applied.
        """
        result = ExecutionResult()
        with Timer() as t:
            for action in actions:
                logger.info("Executing: %s", action)
                try:
                    self._apply(action)
                except Exception as exc:  # pylint: disable=broad-exception-caught
                    logger.error("Action failed: %s: %s", action, exc)
                    raise ActionApplicationError(action, result.applied, exc) from exc
                result.applied.append(action)
                self._update_readme(result, action, requested)
        if is_debug_enabled(logger):
            logger.debug(
                "Execution complete",
                extra=extra_context(
                    event="execute_complete",
                    component="executor",
                    count=len(result.applied),
                    duration_ms=t.duration_ms(),
                ),
            )
        return result

    def _update_readme(
        self, result: ExecutionResult, action: PackageAction, requested: Union[str, PackageIdentity, None]
    ) -> None:
        if requested is None or action.action_type == ActionType.UNINSTALL:
            return
        if isinstance(requested, PackageIdentity):
            matches = action.package == requested
        else:
            matches = action.package.key == requested.lower()
        if not matches:
            return
        readme = _find_file(self.source.get_files(action.package), Constants.README_FILE)
        if readme is not None:
            result.readme_path = posixpath.join(
                f"{action.package.id}.{action.package.version}", Constants.README_FILE
            )
            result.readme = readme.content

    def _apply(self, action: PackageAction) -> None:
        journal = _Journal()
        try:
            if action.action_type == ActionType.INSTALL:
                self._install(action.package, action.target, journal)
            elif action.action_type == ActionType.UNINSTALL:
                self._uninstall(action.package, action.target, journal)
            else:
                self._uninstall(action.replaced, action.target, journal)
                self._install(action.package, action.target, journal)
        except Exception:
            journal.rollback()
            raise

    # ---------------------------------------------------------------- install

    def _install(self, identity: PackageIdentity, target: InstallationTarget, journal: _Journal) -> None:
        files = self.source.get_files(identity)
        if target.kind == TargetKind.PROJECT:
            self._add_to_project(identity, target, files, journal)

        repository = target.repository
        dependencies = self.source.get_dependencies(identity, target.target_framework)
        repository.add_package(identity, dependencies, target.target_framework)
        journal.record(f"record {identity}", lambda: repository.remove_package(identity))

        if target.kind == TargetKind.PROJECT:
            self._run_script(Constants.INSTALL_SCRIPT, "install", identity, target, files)

    def _add_to_project(
        self, identity: PackageIdentity, project: Project, files: Sequence["PackageFile"], journal: _Journal
    ) -> None:
        system = project.project_system
        for assembly in _assembly_files(files, project.target_framework):
            name = reference_name(assembly.path)
            if system.reference_exists(name):
                logger.warning("Reference '%s' already exists in '%s'", name, project.name)
                continue
            system.add_reference(assembly.path)
            journal.record(f"add reference {name}", lambda n=name: system.remove_reference(n))
            logger.debug("Added reference '%s' to '%s'", name, project.name)

        for path, package_file in _content_files(files):
            if system.file_exists(path):
                logger.warning("'%s' already exists in '%s'; skipping", path, project.name)
                continue
            system.add_file(path, package_file.content)
            journal.record(f"add file {path}", lambda p=path: system.delete_file(p))
            logger.debug("Added file '%s' to '%s' from %s", path, project.name, identity)

    # -------------------------------------------------------------- uninstall

    def _uninstall(self, identity: PackageIdentity, target: InstallationTarget, journal: _Journal) -> None:
        files = self.source.get_files(identity) if self.source.exists(identity) else []
        if target.kind == TargetKind.PROJECT:
            self._run_script(Constants.UNINSTALL_SCRIPT, "uninstall", identity, target, files)
            self._remove_from_project(identity, target, files, journal)

        repository = target.repository
        recorded = repository.get_dependencies(identity)
        repository.remove_package(identity)
        journal.record(
            f"remove {identity}",
            lambda: repository.add_package(identity, recorded, target.target_framework),
        )

    def _remove_from_project(
        self, identity: PackageIdentity, project: Project, files: Sequence["PackageFile"], journal: _Journal
    ) -> None:
        system = project.project_system
        existing = {reference_name(r).lower(): r for r in system.get_references()}
        for assembly in _assembly_files(files, project.target_framework):
            name = reference_name(assembly.path)
            original = existing.get(name.lower())
            if original is None:
                continue
            system.remove_reference(name)
            journal.record(f"remove reference {name}", lambda p=original: system.add_reference(p))

        for path, package_file in _content_files(files):
            if not system.file_exists(path):
                continue
            current = system.read_file(path)
            if current != package_file.content:
                logger.warning("Skipping '%s' in '%s' because it was modified", path, project.name)
                continue
            system.delete_file(path)
            journal.record(f"delete file {path}", lambda p=path, c=current: system.add_file(p, c))
        logger.debug("Removed %s from project '%s'", identity, project.name)

    # ---------------------------------------------------------------- scripts

    def _run_script(
        self,
        script: str,
        event: str,
        identity: PackageIdentity,
        target: InstallationTarget,
        files: Sequence["PackageFile"],
    ) -> None:
        if not self.run_scripts or _find_file(files, script) is None:
            return
        message = {
            "event": event,
            "package": {"id": identity.id, "version": str(identity.version)},
            "target": {
                "name": target.name,
                "kind": target.kind.value,
                "target_framework": target.target_framework,
                "root": getattr(getattr(target, "project_system", None), "root", None),
            },
        }
        logger.info("Running %s for %s in '%s'", script, identity, target.name)
        self.script_host.run(script, files, message)
