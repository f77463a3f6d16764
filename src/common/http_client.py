"""Shared HTTP helpers used by the registry index and owner clients.

Encapsulates timeout, retry and error handling so callers get either a
response or a ``TransportError``. Responses are memoized for the lifetime of
the process only.
"""
from __future__ import annotations

import json
import logging
import time
from typing import Any, Dict, Optional, Tuple

import requests

from constants import Constants
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer
from errors import TransportError

logger = logging.getLogger(__name__)

# Simple in-memory cache for HTTP responses
_http_cache: Dict[str, Tuple[int, Dict[str, str], bytes]] = {}


def _get_cache_key(method: str, url: str, headers: Optional[Dict[str, str]] = None) -> str:
    """Generate cache key from request parameters."""
    headers_str = str(sorted(headers.items())) if headers else ""
    return f"{method}:{url}:{headers_str}"


def clear_cache() -> None:
    _http_cache.clear()


def _backoff(attempt: int) -> None:
    time.sleep(Constants.HTTP_RETRY_BASE_DELAY_SEC * (2 ** attempt))


def robust_get(
    url: str,
    *,
    headers: Optional[Dict[str, str]] = None,
    offline: bool = False,
    context: str = "registry",
) -> Tuple[int, Dict[str, str], bytes]:
    """Perform GET request with timeout, retries and memoization.

    Connection errors, timeouts and 5xx responses are retried with
    exponential backoff up to ``Constants.HTTP_RETRY_MAX`` attempts.

    Args:
        url: Target URL.
        headers: Optional request headers.
        offline: Refuse network access.
        context: Human-readable tag for log and error messages.

    Returns:
        Tuple of (status_code, headers_dict, body_bytes).

    Raises:
        TransportError: offline mode, or every attempt failed.
    """
    safe_target = safe_url(url)
    if offline:
        raise TransportError(f"attempting to make an HTTP request, but --offline was specified ({safe_target})")

    request_headers = {"User-Agent": Constants.USER_AGENT}
    request_headers.update(headers or {})
    cache_key = _get_cache_key("GET", url, request_headers)
    if cache_key in _http_cache:
        if is_debug_enabled(logger):
            logger.debug(
                "HTTP cache hit",
                extra=extra_context(
                    event="cache_hit",
                    component="http_client",
                    action="GET",
                    target=safe_target
                )
            )
        return _http_cache[cache_key]

    last_failure = None
    for attempt in range(Constants.HTTP_RETRY_MAX):
        if attempt:
            _backoff(attempt - 1)
        with Timer() as t:
            if is_debug_enabled(logger):
                logger.debug(
                    "HTTP request",
                    extra=extra_context(
                        event="http_request",
                        component="http_client",
                        action="GET",
                        target=safe_target,
                        attempt=attempt + 1,
                        context=context
                    )
                )
            try:
                response = requests.get(
                    url,
                    timeout=Constants.REQUEST_TIMEOUT,
                    headers=request_headers,
                )
            except requests.Timeout:
                last_failure = f"timed out after {Constants.REQUEST_TIMEOUT} seconds"
                logger.debug("%s request to %s timed out (attempt %d)", context, safe_target, attempt + 1)
                continue
            except requests.RequestException as exc:  # includes ConnectionError
                last_failure = str(exc)
                logger.debug("%s connection error on %s: %s", context, safe_target, exc)
                continue

            if is_debug_enabled(logger):
                logger.debug(
                    "HTTP response",
                    extra=extra_context(
                        event="http_response",
                        component="http_client",
                        action="GET",
                        status_code=response.status_code,
                        duration_ms=t.duration_ms(),
                        target=safe_target,
                        context=context
                    )
                )
            if response.status_code >= 500:
                last_failure = f"server returned HTTP {response.status_code}"
                continue
            result = (response.status_code, dict(response.headers), response.content)
            _http_cache[cache_key] = result
            return result

    raise TransportError(
        f"failed to get `{safe_target}` from {context} after {Constants.HTTP_RETRY_MAX} attempts: {last_failure}"
    )


def get_json(
    url: str,
    *,
    headers: Optional[Dict[str, str]] = None,
    offline: bool = False,
    context: str = "registry",
) -> Tuple[int, Optional[Any]]:
    """Perform GET request and parse a JSON body.

    Returns:
        Tuple of (status_code, parsed_json_or_none). Non-200 responses yield None.

    Raises:
        TransportError: transport failure or an undecodable 200 body.
    """
    status_code, _, body = robust_get(url, headers=headers, offline=offline, context=context)
    if status_code != 200:
        return status_code, None
    try:
        parsed = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        if is_debug_enabled(logger):
            logger.debug(
                "JSON decode error",
                extra=extra_context(
                    event="parse",
                    component="http_client",
                    action="get_json",
                    outcome="json_decode_error",
                    target=safe_url(url)
                )
            )
        raise TransportError(f"invalid JSON from `{safe_url(url)}`: {exc}") from exc
    return status_code, parsed


def get_bytes(
    url: str,
    *,
    headers: Optional[Dict[str, str]] = None,
    offline: bool = False,
    context: str = "registry",
) -> bytes:
    """Download ``url`` and return its body; any non-200 status is a TransportError."""
    status_code, _, body = robust_get(url, headers=headers, offline=offline, context=context)
    if status_code != 200:
        raise TransportError(f"failed to download `{safe_url(url)}`: HTTP {status_code}")
    return body
