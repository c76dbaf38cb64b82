"""Argument parsing functionality for DepPlan."""

import argparse

from constants import Constants


def _add_common(parser):
    """Options shared by every subcommand."""
    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level (default: $DEPPLAN_LOG_LEVEL or INFO)",
                        action="store",
                        type=str.upper,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'])
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)
    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help="Path to configuration file (YAML)",
                        action="store",
                        type=str)
    parser.add_argument("-o", "--output",
                        dest="OUTPUT",
                        help="Write the JSON result to this file instead of stdout",
                        action="store",
                        type=str)


def _add_plan_inputs(parser):
    """Inputs and resolver options for resolve/apply."""
    parser.add_argument("-f", "--feed",
                        dest="FEEDS",
                        help="Feed document (YAML or JSON); may be given several times",
                        action="append",
                        type=str,
                        required=True)
    parser.add_argument("-s", "--solution",
                        dest="SOLUTION",
                        help="Solution document describing projects and installed packages",
                        action="store",
                        type=str,
                        required=True)
    parser.add_argument("-p", "--operations",
                        dest="OPERATIONS",
                        help="Operations document listing the requested install/update/uninstall operations",
                        action="store",
                        type=str,
                        required=True)
    parser.add_argument("--dependency-version",
                        dest="DEPENDENCY_VERSION",
                        help="Which version of a dependency to pick (default: lowest)",
                        action="store",
                        type=str.lower,
                        choices=Constants.DEPENDENCY_VERSIONS)
    parser.add_argument("--prerelease",
                        dest="ALLOW_PRERELEASE",
                        help="Allow pre-release versions",
                        action="store_true",
                        default=None)
    parser.add_argument("--ignore-dependencies",
                        dest="IGNORE_DEPENDENCIES",
                        help="Do not expand package dependencies",
                        action="store_true",
                        default=None)


def build_parser():
    """Build the top-level parser with its subcommands."""
    parser = argparse.ArgumentParser(
        prog="depplan",
        description=(
            "DepPlan - package dependency resolution and action planning"
        ),
        add_help=True,
    )
    subparsers = parser.add_subparsers(dest="action", metavar="command")
    subparsers.required = True

    resolve = subparsers.add_parser("resolve",
                                    help="Compute the ordered action plan without applying it")
    _add_plan_inputs(resolve)
    _add_common(resolve)

    apply_cmd = subparsers.add_parser("apply",
                                      help="Compute the action plan and apply it")
    _add_plan_inputs(apply_cmd)
    apply_cmd.add_argument("-w", "--workspace",
                           dest="WORKSPACE",
                           help="Directory holding the project folders and packages.config files",
                           action="store",
                           type=str,
                           required=True)
    apply_cmd.add_argument("--no-scripts",
                           dest="RUN_SCRIPTS",
                           help="Do not run package install/uninstall scripts",
                           action="store_false",
                           default=None)
    apply_cmd.add_argument("--script-timeout",
                           dest="SCRIPT_TIMEOUT",
                           help="Seconds a package script may run",
                           action="store",
                           type=int)
    _add_common(apply_cmd)

    redirects = subparsers.add_parser("redirects",
                                      help="Compute assembly binding redirects")
    redirects.add_argument("-a", "--assemblies",
                           dest="ASSEMBLIES",
                           help="Assemblies document (YAML or JSON)",
                           action="store",
                           type=str,
                           required=True)
    redirects.add_argument("--app-config",
                           dest="APP_CONFIG",
                           help="Application config file to write the redirects into",
                           action="store",
                           type=str)
    redirects.add_argument("--remove",
                           dest="REMOVE",
                           help="Remove the computed redirects from --app-config instead of adding them",
                           action="store_true")
    _add_common(redirects)

    return parser


def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    return build_parser().parse_args(argv)
