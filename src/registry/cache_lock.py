"""Exclusive lock on the shared package cache.

Held around every registry access so concurrent package-manager processes
do not interleave index updates.
"""
from __future__ import annotations

import fcntl
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from constants import Constants
from errors import UsageError

logger = logging.getLogger(__name__)


@contextmanager
def package_cache_lock(cargo_home: Path) -> Iterator[Path]:
    """Hold ``$CARGO_HOME/.package-cache`` exclusively for the ``with`` block.

    Blocks while another process holds the lock.
    """
    path = Path(cargo_home) / Constants.PACKAGE_CACHE_LOCK
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handle = open(path, "a", encoding="utf-8")
    except OSError as exc:
        raise UsageError(f"failed to open package cache lock `{path}`: {exc}") from exc
    with handle:
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            logger.info("Blocking waiting for file lock on package cache")
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
        try:
            yield path
        finally:
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
