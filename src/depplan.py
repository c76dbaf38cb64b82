"""DepPlan command line entry point.

Subcommands:

* ``resolve``   - print the ordered action plan for the requested operations;
* ``apply``     - resolve, then apply the plan to a workspace on disk;
* ``redirects`` - compute assembly binding redirects, optionally writing them
  into an application config file.
"""

import json
import logging
import sys

from args import parse_args
from binding.config_manager import BindingRedirectManager
from binding.redirects import assemblies_from_document, get_binding_redirects
from cli_config import build_context, load_runtime_config
from common.documents import load_document
from common.errors import (
    ActionApplicationError,
    ConfigError,
    DepPlanError,
    FormatError,
    ResolutionError,
    ResolverConflictError,
)
from common.logging_utils import configure_logging, extra_context, is_debug_enabled
from common.schema_validate import OPERATIONS_SCHEMA
from constants import Constants, ExitCodes
from execution.executor import ActionExecutor
from execution.script_host import ScriptHost
from repository.feed import load_feeds
from resolution.action_resolver import ActionResolver
from resolution.models import actions_to_dicts
from targets.loader import load_solution

logger = logging.getLogger(__name__)


def _find_target(solution, name):
    if not name:
        return solution
    target = solution.find_target(name)
    if target is None:
        raise ConfigError(f"Unknown target '{name}' in solution '{solution.name}'")
    return target


def queue_operations(resolver, solution, operations):
    """Add every entry of an operations document to ``resolver``.

    An entry without ``target`` applies to the solution itself.
    """
    for op in operations:
        resolver.add_operation(
            op["action"],
            op["id"],
            _find_target(solution, op.get("target")),
            version=op.get("version"),
            force=bool(op.get("force", False)),
            remove_dependencies=bool(op.get("remove_dependencies", False)),
            recursive=bool(op.get("recursive", False)),
        )


def _plan(args, workspace=None):
    source = load_feeds(args.FEEDS)
    solution = load_solution(args.SOLUTION, workspace=workspace)
    operations = load_document(args.OPERATIONS, OPERATIONS_SCHEMA, label="operations")
    resolver = ActionResolver(source, build_context())
    queue_operations(resolver, solution, operations)
    return source, operations, resolver.resolve_actions()


def run_resolve(args):
    """Handle ``depplan resolve``."""
    _, _, actions = _plan(args)
    return {"actions": actions_to_dicts(actions)}


def run_apply(args):
    """Handle ``depplan apply``."""
    source, operations, actions = _plan(args, workspace=args.WORKSPACE)
    requested = next((op["id"] for op in operations if op["action"] == "install"), None)
    executor = ActionExecutor(source, ScriptHost(Constants.SCRIPT_TIMEOUT_SEC), Constants.RUN_SCRIPTS)
    result = executor.execute(actions, requested=requested)
    payload = {"applied": actions_to_dicts(result.applied)}
    if result.readme_path:
        payload["readme_path"] = result.readme_path
        payload["readme"] = result.readme
    return payload


def run_redirects(args):
    """Handle ``depplan redirects``."""
    if args.REMOVE and not args.APP_CONFIG:
        raise ConfigError("--remove requires --app-config")
    assemblies = assemblies_from_document(load_document(args.ASSEMBLIES, label="assemblies"))
    bindings = sorted(get_binding_redirects(assemblies), key=lambda b: b.key)
    if args.APP_CONFIG:
        manager = BindingRedirectManager(args.APP_CONFIG)
        if args.REMOVE:
            manager.remove_binding_redirects(bindings)
        else:
            manager.add_binding_redirects(bindings)
    return {"bindings": [b.to_dict() for b in bindings]}


_HANDLERS = {
    "resolve": run_resolve,
    "apply": run_apply,
    "redirects": run_redirects,
}


def write_output(payload, path=None):
    """Write ``payload`` as JSON to ``path`` or stdout."""
    text = json.dumps(payload, ensure_ascii=False, indent=4)
    if not path:
        sys.stdout.write(text + "\n")
        return
    try:
        with open(path, "w", encoding="utf-8") as file:
            file.write(text)
        logging.info("JSON file has been successfully exported at: %s", path)
    except OSError as e:
        logging.error("JSON file couldn't be written to disk: %s", e)
        sys.exit(ExitCodes.FILE_ERROR.value)


def main(argv=None):
    """Main function of the program."""
    args = parse_args(argv)
    configure_logging(args.LOG_LEVEL, args.LOG_FILE)

    if is_debug_enabled(logger):
        logger.debug(
            "CLI start",
            extra=extra_context(event="function_entry", component="cli", action=args.action)
        )

    try:
        load_runtime_config(args)
        payload = _HANDLERS[args.action](args)
    except ResolverConflictError as e:
        logging.error("%s", e.message)
        for conflict in e.conflicts:
            logging.error("  %s", conflict.describe())
        sys.exit(ExitCodes.RESOLUTION_ERROR.value)
    except ResolutionError as e:
        logging.error("%s", e.message)
        sys.exit(ExitCodes.RESOLUTION_ERROR.value)
    except ActionApplicationError as e:
        logging.error("%s", e.message)
        for action in e.applied:
            logging.error("  applied: %s", action)
        sys.exit(ExitCodes.EXECUTION_ERROR.value)
    except (ConfigError, FormatError) as e:
        logging.error("%s", e.message)
        sys.exit(ExitCodes.FILE_ERROR.value)
    except DepPlanError as e:
        logging.error("%s", e.message)
        sys.exit(ExitCodes.EXECUTION_ERROR.value)

    write_output(payload, args.OUTPUT)

    if is_debug_enabled(logger):
        logger.debug(
            "CLI finished",
            extra=extra_context(event="function_exit", component="cli", action=args.action, outcome="success")
        )
    sys.exit(ExitCodes.SUCCESS.value)


if __name__ == "__main__":
    main()
