"""Installation targets (projects and solutions) and their project systems."""

from .installation_target import InstallationTarget, Project, Solution, TargetKind

__all__ = ["InstallationTarget", "Project", "Solution", "TargetKind"]
