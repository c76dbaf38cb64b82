"""Error taxonomy shared by the resolver, executor and CLI.

Every error carries a stable ``code`` so the CLI can map it to an exit
status and log output can be grepped without parsing messages.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, List, Optional, Sequence, Tuple

if TYPE_CHECKING:  # pragma: no cover
    from resolution.models import PackageAction


class DepPlanError(Exception):
    """Base class for all errors raised by this project."""

    code: str = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigError(DepPlanError):
    """Configuration or input document is missing or invalid."""

    code = "CONFIG_ERROR"


class SchemaError(ConfigError):
    """Raised when data fails to validate against a provided schema."""

    code = "SCHEMA_ERROR"


class FormatError(DepPlanError, ValueError):
    """Malformed version or version range string."""

    code = "FORMAT_ERROR"

    def __init__(self, text: object, reason: str = "") -> None:
        message = f"'{text}' is not a valid version string"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.text = text


class ResolutionError(DepPlanError):
    """Base class for errors that abort action resolution."""

    code = "RESOLUTION_ERROR"


class VersionConflict:  # pylint: disable=too-few-public-methods
    """One conflicting package id with the competing constraints on it."""

    def __init__(self, package_id: str, constraints: Iterable[Tuple[str, str]], reason: str = "") -> None:
        self.package_id = package_id
        # (required_by, version spec text)
        self.constraints: List[Tuple[str, str]] = list(constraints)
        self.reason = reason

    def describe(self) -> str:
        """Return a one-line human description of the conflict."""
        parts = ", ".join(f"{spec} (required by {owner})" for owner, spec in self.constraints)
        text = f"{self.package_id}: {parts}" if parts else self.package_id
        if self.reason:
            text = f"{text} - {self.reason}"
        return text

    def __repr__(self) -> str:
        return f"VersionConflict({self.describe()!r})"


class ResolverConflictError(ResolutionError):
    """Irreconcilable version constraints across requested/installed packages."""

    code = "RESOLVER_CONFLICT"

    def __init__(self, conflicts: Sequence[VersionConflict]) -> None:
        self.conflicts = list(conflicts)
        lines = "; ".join(c.describe() for c in self.conflicts)
        super().__init__(f"Unable to resolve version constraints: {lines}")

    @property
    def package_ids(self) -> List[str]:
        """Ids of every conflicting package, in discovery order."""
        return [c.package_id for c in self.conflicts]


class DependencyConflictError(ResolutionError):
    """Uninstall blocked because other installed packages depend on the package."""

    code = "DEPENDENCY_CONFLICT"

    def __init__(self, package: str, dependents: Sequence[str]) -> None:
        self.package = package
        self.dependents = list(dependents)
        if len(self.dependents) == 1:
            message = f"Unable to uninstall '{package}' because '{self.dependents[0]}' depends on it."
        else:
            message = (
                f"Unable to uninstall '{package}' because "
                f"'{', '.join(self.dependents)}' depend on it."
            )
        super().__init__(message)


class PackageNotFoundError(ResolutionError):
    """Requested id/version is absent from the configured sources or target."""

    code = "PACKAGE_NOT_FOUND"

    def __init__(self, package_id: str, version: Optional[str] = None, where: str = "the configured sources") -> None:
        self.package_id = package_id
        self.version = version
        label = f"{package_id} {version}" if version else package_id
        super().__init__(f"Unable to find package '{label}' in {where}.")


class CircularDependencyError(ResolutionError):
    """A package depends on itself through its dependency chain."""

    code = "CIRCULAR_DEPENDENCY"

    def __init__(self, cycle: Sequence[str]) -> None:
        self.cycle = list(cycle)
        super().__init__(f"Circular dependency detected '{' => '.join(self.cycle)}'.")


class ScriptExecutionError(DepPlanError):
    """A package install/uninstall script failed."""

    code = "SCRIPT_ERROR"

    def __init__(self, script: str, detail: str, returncode: Optional[int] = None) -> None:
        self.script = script
        self.detail = detail
        self.returncode = returncode
        super().__init__(f"Script '{script}' failed: {detail}")


class ActionApplicationError(DepPlanError):
    """The executor failed to apply one action; execution halted."""

    code = "ACTION_FAILED"

    def __init__(
        self,
        action: "PackageAction",
        applied: Sequence["PackageAction"],
        cause: BaseException,
    ) -> None:
        self.action = action
        self.applied = list(applied)
        self.cause = cause
        super().__init__(
            f"Failed to apply {action}: {cause}. "
            f"{len(self.applied)} action(s) were applied before the failure."
        )
