"""Runtime configuration for the CLI.

Precedence, highest first: command-line flags, the ``--config`` file, the
default config locations, then the built-in ``Constants`` defaults.
"""

from __future__ import annotations

import logging
import os

import yaml

from common.errors import ConfigError
from constants import Constants, _load_yaml_config, apply_config
from resolution.models import ResolutionContext
from versioning.policy import DependencyVersion

logger = logging.getLogger(__name__)


def load_runtime_config(args) -> None:
    """Load the YAML config (explicit ``--config`` or default locations) into ``Constants``.

    Raises:
        ConfigError: ``--config`` names a missing file or the file is not valid YAML.
    """
    path = getattr(args, "CONFIG", None)
    if path and not os.path.isfile(path):
        raise ConfigError(f"Config file not found: {path}")
    try:
        cfg = _load_yaml_config(path)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        raise ConfigError(f"Unable to read config: {exc}") from exc
    apply_config(cfg)
    apply_cli_overrides(args)


def apply_cli_overrides(args) -> None:
    """Apply command-line overrides onto ``Constants``."""
    if getattr(args, "DEPENDENCY_VERSION", None):
        Constants.DEPENDENCY_VERSION = args.DEPENDENCY_VERSION
    if getattr(args, "ALLOW_PRERELEASE", None) is not None:
        Constants.ALLOW_PRERELEASE = bool(args.ALLOW_PRERELEASE)
    if getattr(args, "IGNORE_DEPENDENCIES", None) is not None:
        Constants.IGNORE_DEPENDENCIES = bool(args.IGNORE_DEPENDENCIES)
    if getattr(args, "RUN_SCRIPTS", None) is not None:
        Constants.RUN_SCRIPTS = bool(args.RUN_SCRIPTS)
    if getattr(args, "SCRIPT_TIMEOUT", None) is not None:
        Constants.SCRIPT_TIMEOUT_SEC = int(args.SCRIPT_TIMEOUT)


def build_context() -> ResolutionContext:
    """Create the resolver settings from the current ``Constants``.

    Raises:
        ConfigError: The configured dependency version policy is unknown.
    """
    try:
        policy = DependencyVersion.from_name(Constants.DEPENDENCY_VERSION)
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc
    context = ResolutionContext(
        dependency_version=policy,
        allow_prerelease=Constants.ALLOW_PRERELEASE,
        ignore_dependencies=Constants.IGNORE_DEPENDENCIES,
    )
    logger.debug("Resolution context: %s", context)
    return context
