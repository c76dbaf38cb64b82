"""Turn requested install/update/uninstall operations into an ordered plan.

The resolver works on a private copy of every touched target's installed
packages (the *planned state*). Each request walks the package graph, appends
actions to the plan and updates the planned state, so later requests in the
same batch see the effect of earlier ones. Nothing is executed here.

Ordering guarantees of the returned plan:

* a dependency's Install/Update precedes the action of the package that
  required it;
* a dependent's Uninstall precedes the Uninstall of its dependency.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import TYPE_CHECKING, Deque, Dict, List, Optional, Set, Tuple, Union

from common.errors import (
    CircularDependencyError,
    DependencyConflictError,
    PackageNotFoundError,
    ResolverConflictError,
    VersionConflict,
)
from common.logging_utils import Timer, extra_context, is_debug_enabled
from constants import PackageActionTypes
from targets.installation_target import InstallationTarget, TargetKind
from versioning.models import SemanticVersion, VersionSpec
from versioning.parser import VersionLike, parse_version
from versioning.policy import select_version

from .models import ActionType, PackageAction, PackageDependency, PackageIdentity, ResolutionContext

if TYPE_CHECKING:  # pragma: no cover
    from repository.source import PackageSource

logger = logging.getLogger(__name__)


class _Request:  # pylint: disable=too-few-public-methods
    def __init__(
        self,
        action_type: ActionType,
        package_id: str,
        version: Optional[SemanticVersion],
        target: InstallationTarget,
        force: bool,
        remove_dependencies: bool,
    ) -> None:
        self.action_type = action_type
        self.package_id = package_id
        self.version = version
        self.target = target
        self.force = force
        self.remove_dependencies = remove_dependencies

    def __str__(self) -> str:
        label = f"{self.package_id} {self.version}" if self.version else self.package_id
        return f"{self.action_type.value} {label} in '{self.target.name}'"


class _TargetState:
    """Planned installed-package state of one target."""

    def __init__(self, target: InstallationTarget) -> None:
        self.target = target
        self.planned: Dict[str, PackageIdentity] = {
            identity.key: identity for identity in target.repository.get_installed_packages()
        }
        self.scheduled: Set[PackageIdentity] = set()
        self.removed: Set[PackageIdentity] = set()
        self.dependency_cache: Dict[PackageIdentity, List[PackageDependency]] = {}


def _action_type(value: Union[ActionType, PackageActionTypes, str]) -> ActionType:
    if isinstance(value, ActionType):
        return value
    if isinstance(value, PackageActionTypes):
        value = value.value
    try:
        return ActionType(str(value).lower())
    except ValueError as e:
        raise ValueError(f"Unsupported action '{value}'") from e


def _is_requested_version(current: Optional[PackageIdentity], request: _Request) -> bool:
    """True when an explicit-version request names the version already planned."""
    return current is not None and request.version is not None and current.version == request.version


class ActionResolver:
    """Resolves queued package operations into a list of :class:`PackageAction`.

    Args:
        source: Package source used to look up versions and dependencies.
        context: Resolution settings; defaults to the lowest-version policy.
    """

    def __init__(self, source: "PackageSource", context: Optional[ResolutionContext] = None) -> None:
        self.source = source
        self.context = context or ResolutionContext()
        self._queue: Deque[_Request] = deque()
        self._states: Dict[int, _TargetState] = {}
        self._actions: List[PackageAction] = []

    # ------------------------------------------------------------------ queue

    def add_operation(
        self,
        action_type: Union[ActionType, PackageActionTypes, str],
        package: Union[str, PackageIdentity],
        target: InstallationTarget,
        *,
        version: Optional[VersionLike] = None,
        force: bool = False,
        remove_dependencies: bool = False,
        recursive: bool = False,
    ) -> None:
        """Queue one operation.

        Args:
            action_type: install, update or uninstall.
            package: Package id, or an identity carrying the version.
            target: Project or solution the operation applies to.
            version: Explicit version when ``package`` is a plain id.
            force: Uninstall even when other packages depend on it, removing
                those dependents first.
            remove_dependencies: Also uninstall dependencies left unused.
            recursive: For a solution target, queue the operation for every
                project of the solution instead of the solution itself.
        """
        kind = _action_type(action_type)
        if isinstance(package, PackageIdentity):
            package_id, parsed = package.id, package.version
        else:
            package_id = package
            parsed = parse_version(version) if version is not None else None

        targets = [target]
        if recursive and target.kind == TargetKind.SOLUTION:
            targets = [t for t in target.get_all_targets_recursively() if t.kind == TargetKind.PROJECT]
        for each in targets:
            self._queue.append(_Request(kind, package_id, parsed, each, force, remove_dependencies))

    def resolve_actions(self) -> List[PackageAction]:
        """Process every queued operation and return the ordered plan.

        Raises:
            ResolverConflictError: Constraints on one or more ids cannot be met.
            DependencyConflictError: An uninstall is blocked by dependents.
            PackageNotFoundError: A requested or required package is missing.
            CircularDependencyError: The dependency graph has a cycle.
        """
        self._states = {}
        self._actions = []
        with Timer() as t:
            while self._queue:
                self._process(self._queue.popleft())
            actions = self._reduce(self._actions)
        logger.info("Resolved %d action(s)", len(actions))
        if is_debug_enabled(logger):
            logger.debug(
                "Resolution complete",
                extra=extra_context(
                    event="resolve_complete",
                    component="resolver",
                    count=len(actions),
                    duration_ms=t.duration_ms(),
                ),
            )
        return actions

    # ------------------------------------------------------------- processing

    def _state(self, target: InstallationTarget) -> _TargetState:
        state = self._states.get(id(target))
        if state is None:
            state = _TargetState(target)
            self._states[id(target)] = state
        return state

    def _process(self, request: _Request) -> None:
        logger.debug("Processing request: %s", request)
        state = self._state(request.target)
        if request.action_type == ActionType.UNINSTALL:
            self._process_uninstall(state, request)
            return

        conflicts: List[VersionConflict] = []
        if request.action_type == ActionType.INSTALL:
            self._process_install(state, request, conflicts)
        else:
            self._process_update(state, request, conflicts)
        if conflicts:
            for conflict in conflicts:
                logger.debug("Conflict: %s", conflict.describe())
            raise ResolverConflictError(conflicts)

    def _emit(self, action: PackageAction) -> None:
        self._actions.append(action)
        if is_debug_enabled(logger):
            logger.debug(
                "Planned action",
                extra=extra_context(
                    event="action_planned",
                    component="resolver",
                    action=action.action_type.value,
                    package_id=str(action.package),
                    target=action.target.name,
                ),
            )

    def _root_identity(self, request: _Request, current: Optional[PackageIdentity]) -> PackageIdentity:
        """Identity a root install/update request asks for.

        Without an explicit version the highest available version is used.
        """
        if request.version is not None:
            identity = PackageIdentity(request.package_id, request.version)
            if not self.source.exists(identity):
                raise PackageNotFoundError(request.package_id, str(request.version))
            found = self.source.find_package(request.package_id, VersionSpec.exact(request.version))
            return found or identity
        allow_prerelease = self.context.allow_prerelease or bool(current and current.version.is_prerelease)
        found = self.source.find_package(request.package_id, None, allow_prerelease=allow_prerelease)
        if found is None:
            raise PackageNotFoundError(request.package_id)
        return found

    def _process_install(self, state: _TargetState, request: _Request, conflicts: List[VersionConflict]) -> None:
        current = state.planned.get(request.package_id.lower())
        if _is_requested_version(current, request):
            logger.debug("'%s' is already installed or scheduled in '%s'", current, state.target.name)
            return
        identity = self._root_identity(request, current)
        if current == identity:
            logger.debug("'%s' is already installed or scheduled in '%s'", identity, state.target.name)
            return
        if current is not None:
            # Another version is present: installing this one replaces it.
            self._replace_root(state, request, current, identity, conflicts)
            return
        self._walk(state, identity, [], conflicts)

    def _process_update(self, state: _TargetState, request: _Request, conflicts: List[VersionConflict]) -> None:
        current = state.planned.get(request.package_id.lower())
        if current is None:
            raise PackageNotFoundError(request.package_id, where=f"target '{state.target.name}'")
        if _is_requested_version(current, request):
            logger.info("'%s' is already up to date in '%s'", current, state.target.name)
            return
        identity = self._root_identity(request, current)
        if identity.version == current.version:
            logger.info("'%s' is already up to date in '%s'", current, state.target.name)
            return
        if identity.version < current.version:
            if request.version is None:
                logger.info("'%s' is already up to date in '%s'", current, state.target.name)
                return
        self._replace_root(state, request, current, identity, conflicts)

    def _replace_root(
        self,
        state: _TargetState,
        request: _Request,
        current: PackageIdentity,
        identity: PackageIdentity,
        conflicts: List[VersionConflict],
    ) -> None:
        if identity.version < current.version:
            conflicts.append(
                VersionConflict(
                    identity.id,
                    [(state.target.name, str(current.version)), ("request", str(identity.version))],
                    f"cannot downgrade from {current.version} to {identity.version}",
                )
            )
            return

        blocking = [
            (str(dependent), dep.version_spec)
            for dependent, dep in self._dependents(state, identity.key)
            if not dep.version_spec.is_satisfied_by(identity.version)
        ]
        if blocking:
            conflicts.append(
                VersionConflict(
                    identity.id,
                    [("request", f"[{identity.version}]")] + [(owner, str(spec)) for owner, spec in blocking],
                    f"{identity.version} does not satisfy the installed dependents",
                )
            )
            return

        old_dependencies = self._dependencies(state, current)
        self._walk(state, identity, [], conflicts)
        if request.remove_dependencies and not conflicts:
            self._remove_orphans(state, old_dependencies)

    # ---------------------------------------------------------------- install

    def _walk(
        self,
        state: _TargetState,
        identity: PackageIdentity,
        path: List[PackageIdentity],
        conflicts: List[VersionConflict],
    ) -> None:
        """Depth-first install of ``identity`` and its dependencies."""
        if any(p.key == identity.key for p in path):
            raise CircularDependencyError([p.id for p in path] + [identity.id])
        if state.planned.get(identity.key) == identity:
            return

        path.append(identity)
        if not self.context.ignore_dependencies:
            for dependency in self.source.get_dependencies(identity, state.target.target_framework):
                self._resolve_dependency(state, identity, dependency, path, conflicts)
        path.pop()

        existing = state.planned.get(identity.key)
        if existing is None:
            action = PackageAction.install(identity, state.target)
        else:
            action = PackageAction.update(existing, identity, state.target)
        state.planned[identity.key] = identity
        state.scheduled.add(identity)
        state.removed.discard(identity)
        if existing in state.scheduled and self._fold_scheduled(state, existing, identity):
            state.scheduled.discard(existing)
            return
        self._emit(action)

    def _fold_scheduled(self, state: _TargetState, old: PackageIdentity, new: PackageIdentity) -> bool:
        """Merge a move from ``old`` to ``new`` into the action that scheduled ``old``.

        The merged action stays where ``old`` was planned when nothing planned
        after it is a dependency of ``new``. Otherwise it moves to the end of
        the plan when nothing planned after it depends on the package. When
        neither holds the caller emits a separate Update.
        """
        index = next(
            (
                i
                for i, a in enumerate(self._actions)
                if a.target is state.target and a.action_type != ActionType.UNINSTALL and a.package == old
            ),
            None,
        )
        if index is None:
            return False
        earlier = self._actions[index]
        if earlier.action_type == ActionType.INSTALL:
            merged = PackageAction.install(new, state.target)
        else:
            merged = PackageAction.update(earlier.replaced, new, state.target)

        later = [a for a in self._actions[index + 1:] if a.target is state.target]
        needed = set()
        if not self.context.ignore_dependencies:
            needed = {d.key for d in self.source.get_dependencies(new, state.target.target_framework)}
        if not any(a.package.key in needed for a in later):
            self._actions[index] = merged
        elif not any(
            d.key == new.key
            for a in later
            if a.action_type != ActionType.UNINSTALL
            for d in self._dependencies(state, a.package)
        ):
            del self._actions[index]
            self._actions.append(merged)
        else:
            return False
        logger.debug("Folded %s -> %s into a single action in '%s'", old, new, state.target.name)
        return True

    def _resolve_dependency(
        self,
        state: _TargetState,
        parent: PackageIdentity,
        dependency: PackageDependency,
        path: List[PackageIdentity],
        conflicts: List[VersionConflict],
    ) -> None:
        if any(p.key == dependency.key for p in path):
            raise CircularDependencyError([p.id for p in path] + [dependency.id])

        current = state.planned.get(dependency.key)
        if current is not None and dependency.version_spec.is_satisfied_by(current.version):
            return

        # Packages on the walk path are being replaced; their old constraints no longer apply.
        in_path = {p.key for p in path}
        constraints: List[Tuple[str, VersionSpec]] = [(str(parent), dependency.version_spec)]
        constraints.extend(
            (str(dependent), dep.version_spec)
            for dependent, dep in self._dependents(state, dependency.key)
            if dependent.key not in in_path
        )

        combined: Optional[VersionSpec] = VersionSpec()
        for _, spec in constraints:
            combined = combined.intersect(spec)
            if combined is None:
                break
        described = [(owner, str(spec)) for owner, spec in constraints]
        if combined is None:
            conflicts.append(VersionConflict(dependency.id, described, "no version satisfies every constraint"))
            return

        versions = self.source.get_available_versions(dependency.id)
        if not versions:
            raise PackageNotFoundError(dependency.id, str(dependency.version_spec))
        chosen = select_version(
            versions, combined, self.context.dependency_version, self.context.allow_prerelease
        )
        if chosen is None:
            conflicts.append(
                VersionConflict(dependency.id, described, f"no available version is in {combined.pretty() or '*'}")
            )
            return

        identity = self.source.find_package(dependency.id, VersionSpec.exact(chosen)) or PackageIdentity(
            dependency.id, chosen
        )
        self._walk(state, identity, path, conflicts)

    # -------------------------------------------------------------- uninstall

    def _process_uninstall(self, state: _TargetState, request: _Request) -> None:
        key = request.package_id.lower()
        current = state.planned.get(key)
        if current is None or (request.version is not None and current.version != request.version):
            if any(r.key == key and (request.version is None or r.version == request.version) for r in state.removed):
                logger.debug("'%s' is already scheduled for uninstall in '%s'", request.package_id, state.target.name)
                return
            version = str(request.version) if request.version is not None else None
            raise PackageNotFoundError(request.package_id, version, where=f"target '{state.target.name}'")
        self._uninstall(state, current, request.force, request.remove_dependencies)

    def _take_pending_uninstall(self, target: InstallationTarget, key: str) -> Optional[_Request]:
        for request in self._queue:
            if (
                request.action_type == ActionType.UNINSTALL
                and request.target is target
                and request.package_id.lower() == key
            ):
                self._queue.remove(request)
                return request
        return None

    def _uninstall(
        self, state: _TargetState, identity: PackageIdentity, force: bool, remove_dependencies: bool
    ) -> None:
        if state.planned.get(identity.key) != identity:
            return

        dependents = [d for d, _ in self._dependents(state, identity.key)]
        for dependent in dependents:
            pending = self._take_pending_uninstall(state.target, dependent.key)
            if pending is not None:
                logger.debug("Uninstalling dependent '%s' ahead of '%s'", dependent, identity)
                self._process_uninstall(state, pending)
        if state.planned.get(identity.key) != identity:
            return

        dependents = [d for d, _ in self._dependents(state, identity.key)]
        if dependents:
            if not force:
                raise DependencyConflictError(str(identity), [str(d) for d in dependents])
            logger.warning(
                "Forcing removal of '%s'; also uninstalling dependents: %s",
                identity,
                ", ".join(str(d) for d in dependents),
            )
            for dependent in dependents:
                self._uninstall(state, dependent, True, False)
            if state.planned.get(identity.key) != identity:
                return

        dependencies = self._dependencies(state, identity)
        del state.planned[identity.key]
        state.scheduled.discard(identity)
        state.removed.add(identity)
        self._emit(PackageAction.uninstall(identity, state.target))

        if remove_dependencies:
            self._remove_orphans(state, dependencies)

    def _remove_orphans(self, state: _TargetState, dependencies: List[PackageDependency]) -> None:
        for dependency in dependencies:
            installed = state.planned.get(dependency.key)
            if installed is None:
                continue
            users = [d for d, _ in self._dependents(state, dependency.key)]
            if users:
                logger.warning(
                    "Package '%s' was not uninstalled because %s still depend(s) on it",
                    installed,
                    ", ".join(f"'{u}'" for u in users),
                )
                continue
            self._uninstall(state, installed, False, True)

    # ---------------------------------------------------------------- lookups

    def _dependencies(self, state: _TargetState, identity: PackageIdentity) -> List[PackageDependency]:
        """Dependencies of a planned package in ``state``'s target."""
        cached = state.dependency_cache.get(identity)
        if cached is not None:
            return cached
        framework = state.target.target_framework
        if identity in state.scheduled:
            deps = self.source.get_dependencies(identity, framework)
        else:
            deps = state.target.repository.get_dependencies(identity)
            if deps is None:
                try:
                    deps = self.source.get_dependencies(identity, framework)
                except PackageNotFoundError:
                    logger.warning(
                        "Unable to locate '%s' to read its dependencies; treating it as having none", identity
                    )
                    deps = []
        state.dependency_cache[identity] = deps
        return deps

    def _dependents(self, state: _TargetState, key: str) -> List[Tuple[PackageIdentity, PackageDependency]]:
        """Planned packages depending on id ``key``, with the dependency declaring it."""
        found = []
        for planned_key in sorted(state.planned):
            if planned_key == key:
                continue
            package = state.planned[planned_key]
            for dep in self._dependencies(state, package):
                if dep.key == key:
                    found.append((package, dep))
                    break
        return found

    # -------------------------------------------------------------- reduction

    def _cancelling_match(self, actions: List[PackageAction], index: int) -> Optional[int]:
        """Index of the later action undoing ``actions[index]``, or None.

        An Uninstall is undone by a later Install of the same identity on the
        same target. An Install is undone by a later Uninstall of it, unless
        an Install or Update planned in between depends on the package.
        """
        action = actions[index]
        if action.action_type == ActionType.UPDATE:
            return None
        undo = ActionType.INSTALL if action.action_type == ActionType.UNINSTALL else ActionType.UNINSTALL
        state = self._state(action.target)
        for j in range(index + 1, len(actions)):
            other = actions[j]
            if other.target is not action.target:
                continue
            if other.action_type == undo and other.package == action.package:
                return j
            if action.action_type == ActionType.INSTALL and other.action_type != ActionType.UNINSTALL:
                if any(d.key == action.package.key for d in self._dependencies(state, other.package)):
                    return None
        return None

    def _reduce(self, actions: List[PackageAction]) -> List[PackageAction]:
        """Drop Install/Uninstall pairs of one identity that cancel out on the same target."""
        result = list(actions)
        index = 0
        while index < len(result):
            match = self._cancelling_match(result, index)
            if match is None:
                index += 1
                continue
            logger.debug("Dropping cancelling pair for %s", result[index].package)
            del result[match]
            del result[index]
            index = 0
        return result
