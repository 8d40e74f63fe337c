"""Argument parsing functionality for gemlock."""

import argparse
from constants import Constants


def _add_common(parser):
    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level (default: $GEMLOCK_LOG_LEVEL or INFO)",
                        action="store",
                        type=str.upper,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        default=None)
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)
    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help="Path to configuration file (YAML, YML, or JSON)",
                        action="store",
                        type=str)
    parser.add_argument("-o", "--lockfile",
                        dest="LOCKFILE",
                        help=f"Path to the lockfile (default: {Constants.LOCKFILE_NAME})",
                        action="store",
                        type=str)


def build_parser():
    """Build the top-level parser with its subcommands."""
    parser = argparse.ArgumentParser(
        prog="gemlock",
        description="gemlock - resolve gem dependencies and write a Bundler-compatible lockfile",
        add_help=True,
    )
    sub = parser.add_subparsers(dest="COMMAND", metavar="COMMAND")
    sub.required = True

    lock = sub.add_parser("lock", help="Resolve the manifest and write the lockfile")
    _add_common(lock)
    lock.add_argument("-m", "--manifest",
                      dest="MANIFEST",
                      help=f"YAML manifest listing the gems to resolve (e.g. {Constants.MANIFEST_NAME})",
                      action="store",
                      type=str)
    lock.add_argument("-p", "--package",
                      dest="PACKAGES",
                      help="Gem to resolve as name[:requirement]; may be repeated",
                      action="append",
                      type=str,
                      default=[])
    lock.add_argument("--platform",
                      dest="PLATFORM",
                      help="Target platform, e.g. arm64-darwin (default: detected; 'ruby' for platform-neutral)",
                      action="store",
                      type=str)
    lock.add_argument("--pre",
                      dest="PRE",
                      help="Allow prerelease versions for every gem",
                      action="store_true")
    lock.add_argument("--registry-url",
                      dest="REGISTRY_URL",
                      help=f"Gem registry base URL (default: {Constants.REGISTRY_URL_RUBYGEMS})",
                      action="store",
                      type=str)
    lock.add_argument("--timeout",
                      dest="TIMEOUT",
                      help="Per-request timeout in seconds",
                      action="store",
                      type=int)
    lock.add_argument("--max-steps",
                      dest="MAX_STEPS",
                      help="Give up after this many candidate attempts",
                      action="store",
                      type=int)
    lock.add_argument("--dry-run",
                      dest="DRY_RUN",
                      help="Print the lockfile instead of writing it",
                      action="store_true")

    check = sub.add_parser("check", help="Parse and validate an existing lockfile")
    _add_common(check)

    return parser


def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    return build_parser().parse_args(argv)
