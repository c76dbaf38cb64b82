"""Applies resolved action plans to projects and solutions."""

from .executor import ActionExecutor, ExecutionResult
from .script_host import ScriptHost

__all__ = ["ActionExecutor", "ExecutionResult", "ScriptHost"]
