"""Centralized logging helpers.

Provides one place to configure the root logger and small helpers used by
modules that emit structured DEBUG traces:

- ``configure_logging``: level from ``CRATEINFO_LOG_LEVEL`` (default INFO)
- ``extra_context``: wraps structured fields for ``logger.debug(..., extra=...)``
- ``is_debug_enabled``: cheap guard before building trace payloads
- ``safe_url`` / ``redact``: strip credentials and tokens before logging
- ``Timer``: context manager measuring elapsed milliseconds
"""
from __future__ import annotations

import logging
import os
import re
import sys
import time
from typing import Any, Dict, Optional
from urllib.parse import urlsplit, urlunsplit

from constants import Constants

_REDACTED = "***"
_SENSITIVE_QUERY_KEYS = ("token", "key", "secret", "password", "auth")
_TOKEN_PATTERN = re.compile(r"(?i)(bearer\s+|token\s*[=:]\s*)([^\s,;]+)")


def configure_logging(level: Optional[str] = None, stream=None) -> None:
    """Configure the root logger once per process.

    Args:
        level: Explicit level name; falls back to ``CRATEINFO_LOG_LEVEL`` then INFO.
        stream: Destination stream, stderr by default so stdout stays clean.
    """
    level_name = (level or os.environ.get(Constants.ENV_LOG_LEVEL) or "INFO").upper()
    level_value = getattr(logging, level_name, logging.INFO)
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(Constants.LOG_FORMAT))
    root.addHandler(handler)
    root.setLevel(level_value)


def extra_context(**fields: Any) -> Dict[str, Any]:
    """Return a dict usable as ``extra=`` with ``None`` fields dropped."""
    return {"context": {k: v for k, v in fields.items() if v is not None}}


def is_debug_enabled(logger: logging.Logger) -> bool:
    """Return True when ``logger`` would emit DEBUG records."""
    return logger.isEnabledFor(logging.DEBUG)


def redact(text: Optional[str]) -> str:
    """Mask bearer tokens and ``token=...`` pairs in free text."""
    if not text:
        return ""
    return _TOKEN_PATTERN.sub(lambda m: m.group(1) + _REDACTED, str(text))


def safe_url(url: Optional[str]) -> str:
    """Return ``url`` without userinfo and with sensitive query values masked."""
    if not url:
        return ""
    try:
        parts = urlsplit(url)
    except ValueError:
        return redact(url)
    netloc = parts.netloc.rsplit("@", 1)[-1]
    query = parts.query
    if query:
        pairs = []
        for pair in query.split("&"):
            key, sep, value = pair.partition("=")
            if sep and any(s in key.lower() for s in _SENSITIVE_QUERY_KEYS):
                value = _REDACTED
            pairs.append(f"{key}{sep}{value}")
        query = "&".join(pairs)
    return urlunsplit((parts.scheme, netloc, parts.path, query, parts.fragment))


class Timer:
    """Measure wall-clock duration of a ``with`` block."""

    def __init__(self) -> None:
        self._start = 0.0
        self._end: Optional[float] = None

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        self._end = None
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self._end = time.perf_counter()

    def duration_ms(self) -> int:
        """Elapsed milliseconds; usable inside or after the block."""
        end = self._end if self._end is not None else time.perf_counter()
        return int((end - self._start) * 1000)
