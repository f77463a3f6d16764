"""Detect the installed compiler version used for rust-version checks."""
from __future__ import annotations

import logging
import subprocess
from typing import Mapping, Optional

from constants import Constants

logger = logging.getLogger(__name__)


def parse_release(output: str) -> Optional[str]:
    """Extract ``release:`` from ``rustc -vV`` output."""
    for line in output.splitlines():
        key, sep, value = line.partition(":")
        if sep and key.strip() == "release":
            return value.strip() or None
    return None


def rustc_version(env: Mapping[str, str]) -> Optional[str]:
    """Run ``$RUSTC -vV`` and return its release version, or None when unavailable."""
    rustc = env.get(Constants.ENV_RUSTC) or "rustc"
    try:
        proc = subprocess.run(
            [rustc, "-vV"],
            capture_output=True,
            text=True,
            timeout=Constants.RUSTC_TIMEOUT,
            check=True,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        logger.debug("Could not query %s for its version: %s", rustc, exc)
        return None
    release = parse_release(proc.stdout)
    logger.debug("Detected toolchain release %s", release)
    return release
