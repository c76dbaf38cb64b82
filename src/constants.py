"""Constants used in the project."""

import logging
import os
from enum import Enum
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    RESOLUTION_ERROR = 4
    EXECUTION_ERROR = 5


class PackageActionTypes(Enum):
    """Operations a caller may request from the resolver.

    Args:
        Enum (string): Operation names accepted on the command line and in documents.
    """

    INSTALL = "install"
    UPDATE = "update"
    UNINSTALL = "uninstall"


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    DEPENDENCY_VERSIONS = ["lowest", "highestpatch", "highestminor", "highest"]
    PACKAGES_CONFIG_FILE = "packages.config"
    README_FILE = "readme.txt"
    INSTALL_SCRIPT = "tools/install.py"
    UNINSTALL_SCRIPT = "tools/uninstall.py"
    LIB_FOLDER = "lib"
    CONTENT_FOLDER = "content"
    ASSEMBLY_EXTENSIONS = (".dll", ".exe", ".winmd")
    ASM_V1_NAMESPACE = "urn:schemas-microsoft-com:asm.v1"
    LOG_FORMAT = "[%(levelname)s] %(message)s"

    # Resolver defaults (overridable from YAML config and CLI)
    DEPENDENCY_VERSION = "lowest"
    ALLOW_PRERELEASE = False
    IGNORE_DEPENDENCIES = False

    # Executor defaults
    RUN_SCRIPTS = True
    SCRIPT_TIMEOUT_SEC = 60

    ENV_CONFIG = "DEPPLAN_CONFIG"
    ENV_LOG_LEVEL = "DEPPLAN_LOG_LEVEL"
    CONFIG_FILE_NAMES = ("depplan.yml", "depplan.yaml")


def _default_config_paths() -> list:
    """Return candidate YAML config locations in lookup order."""
    paths = []
    env_path = os.environ.get(Constants.ENV_CONFIG)
    if env_path:
        paths.append(env_path)
    for name in Constants.CONFIG_FILE_NAMES:
        paths.append(os.path.join(os.getcwd(), name))
    xdg = os.environ.get("XDG_CONFIG_HOME") or os.path.join(os.path.expanduser("~"), ".config")
    for name in Constants.CONFIG_FILE_NAMES:
        paths.append(os.path.join(xdg, "depplan", name))
    return paths


def _load_yaml_config(path: Optional[str] = None) -> Dict[str, Any]:
    """Load the first readable YAML config file.

    Args:
        path: Explicit config path. When omitted the default locations are searched.

    Returns:
        dict: Parsed configuration, empty when no file was found.
    """
    candidates = [path] if path else _default_config_paths()
    for candidate in candidates:
        if not candidate or not os.path.isfile(candidate):
            continue
        with open(candidate, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
        if not isinstance(data, dict):
            logger.warning("Ignoring config file %s: top level is not a mapping", candidate)
            return {}
        logger.debug("Loaded config from %s", candidate)
        return data
    return {}


def apply_config(cfg: Dict[str, Any]) -> None:
    """Apply a parsed config mapping onto ``Constants``.

    Unknown keys are ignored so newer config files keep working.
    """
    resolver = cfg.get("resolver") or {}
    if isinstance(resolver, dict):
        if "dependency_version" in resolver:
            Constants.DEPENDENCY_VERSION = str(resolver["dependency_version"]).lower()
        if "allow_prerelease" in resolver:
            Constants.ALLOW_PRERELEASE = bool(resolver["allow_prerelease"])
        if "ignore_dependencies" in resolver:
            Constants.IGNORE_DEPENDENCIES = bool(resolver["ignore_dependencies"])
    executor = cfg.get("executor") or {}
    if isinstance(executor, dict):
        if "run_scripts" in executor:
            Constants.RUN_SCRIPTS = bool(executor["run_scripts"])
        if "script_timeout_sec" in executor:
            Constants.SCRIPT_TIMEOUT_SEC = int(executor["script_timeout_sec"])
