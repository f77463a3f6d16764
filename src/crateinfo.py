#!/usr/bin/env python3
"""crateinfo - display information about a package in a registry.

Resolves which published version of a package to report, given an optional
workspace and toolchain, and prints its metadata, features, dependencies
and owners.
"""

import logging
import sys

from args import parse_args
from common.logging_utils import configure_logging, extra_context, is_debug_enabled
from constants import ExitCodes
from context import GlobalContext, Verbosity
from errors import InfoError
from ops.info import info
from ops.view import print_report
from sources.resolver import RegistryOrIndex

logger = logging.getLogger(__name__)


def _verbosity(args) -> Verbosity:
    if args.QUIET:
        return Verbosity.QUIET
    if args.VERBOSE:
        return Verbosity.VERBOSE
    return Verbosity.NORMAL


def _log_level(args):
    """Level implied by -q / -v; None leaves the environment default in place."""
    if args.QUIET:
        return "WARNING"
    if args.VERBOSE >= 2:
        return "DEBUG"
    if args.VERBOSE == 1:
        return "INFO"
    return None


def run(args) -> int:
    """Run one inspection and return the process exit code."""
    try:
        ctx = GlobalContext.build(
            config_args=args.CONFIG,
            verbosity=_verbosity(args),
            color=args.COLOR,
            frozen=args.FROZEN,
            locked=args.LOCKED,
            offline=args.OFFLINE,
            unstable_flags=list(args.UNSTABLE_FLAGS),
        )
        if ctx.unstable_flags:
            logger.debug("Unstable flags accepted: %s", ", ".join(ctx.unstable_flags))
        reg_or_index = None
        if args.REGISTRY or args.INDEX:
            reg_or_index = RegistryOrIndex(registry=args.REGISTRY, index=args.INDEX)
        report = info(ctx, args.SPEC, reg_or_index, ignore_rust_version=args.IGNORE_RUST_VERSION)
        print_report(report, ctx)
    except InfoError as exc:
        logger.error("%s", exc)
        return exc.exit_code
    return ExitCodes.SUCCESS.value


def main(argv=None):
    """Main function of the program."""
    args = parse_args(argv)
    configure_logging(_log_level(args))
    if is_debug_enabled(logger):
        logger.debug(
            "CLI start",
            extra=extra_context(event="function_entry", component="cli", action="main", target=args.SPEC)
        )
    sys.exit(run(args))


if __name__ == "__main__":
    main()
