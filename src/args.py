"""Argument parsing functionality for crateinfo."""

import argparse
import sys

from constants import ExitCodes


class _ArgumentParser(argparse.ArgumentParser):
    """Report invalid invocations with the usage-error exit code."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(ExitCodes.CLI_ERROR.value, f"error: {message}\n")


def build_parser():
    """Build the argument parser."""
    parser = _ArgumentParser(
        prog="crateinfo",
        description="Display information about a package in the registry",
        epilog="SPEC accepts `name`, `name@version`, or a URL such as `https://host/index#name@version`.",
        add_help=True,
    )

    parser.add_argument("SPEC",
                        help="Package to inspect",
                        action="store",
                        type=str)

    source_group = parser.add_mutually_exclusive_group()
    source_group.add_argument("--registry",
                              dest="REGISTRY",
                              help="Registry to search packages in",
                              action="store",
                              type=str)
    source_group.add_argument("--index",
                              dest="INDEX",
                              help="Registry index URL to search packages in",
                              action="store",
                              type=str)

    parser.add_argument("--color",
                        dest="COLOR",
                        help="Coloring: auto, always, never",
                        action="store",
                        type=str.lower,
                        choices=["auto", "always", "never"],
                        default="auto")
    parser.add_argument("-q", "--quiet",
                        dest="QUIET",
                        help="Do not print log messages",
                        action="store_true")
    parser.add_argument("-v", "--verbose",
                        dest="VERBOSE",
                        help="Use verbose output (-vv very verbose)",
                        action="count",
                        default=0)
    parser.add_argument("--frozen",
                        dest="FROZEN",
                        help="Require Cargo.lock and cache are up to date",
                        action="store_true")
    parser.add_argument("--locked",
                        dest="LOCKED",
                        help="Require Cargo.lock is up to date",
                        action="store_true")
    parser.add_argument("--offline",
                        dest="OFFLINE",
                        help="Run without accessing the network",
                        action="store_true")
    parser.add_argument("--ignore-rust-version",
                        dest="IGNORE_RUST_VERSION",
                        help="Pick the latest matching version even if it does not support the current toolchain",
                        action="store_true")
    parser.add_argument("--config",
                        dest="CONFIG",
                        metavar="KEY=VALUE|PATH",
                        help="Override a configuration value",
                        action="append",
                        type=str,
                        default=[])
    parser.add_argument("-Z",
                        dest="UNSTABLE_FLAGS",
                        metavar="FLAG",
                        help="Unstable (nightly-only) flags",
                        action="append",
                        type=str,
                        default=[])
    return parser


def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    return build_parser().parse_args(argv)
