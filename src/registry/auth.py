"""Registry token lookup.

Tokens come from, in order: environment variables, the credentials file in
``$CARGO_HOME`` and the merged configuration.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from common.config import env_registry_key, get_dotted
from constants import Constants
from errors import AuthError, CredentialsMissingError, UsageError
from sources.source_id import SourceId

logger = logging.getLogger(__name__)

try:
    import tomllib as toml  # type: ignore
except ImportError:  # Python < 3.11
    import tomli as toml  # type: ignore


def registry_name(ctx, source: SourceId) -> Optional[str]:
    """Configuration name of ``source``, looked up by index URL when not known."""
    if source.is_crates_io:
        return Constants.CRATES_IO_REGISTRY
    if source.name:
        return source.name
    for name, table in (ctx.get("registries") or {}).items():
        if not isinstance(table, dict) or not table.get("index"):
            continue
        try:
            if SourceId.for_registry(table["index"]) == source:
                return name
        except UsageError:
            continue
    return None


def _read_credentials(ctx) -> Dict[str, Any]:
    for filename in Constants.CREDENTIALS_FILES:
        path = ctx.cargo_home / filename
        if not path.is_file():
            continue
        try:
            with open(path, "rb") as fh:
                return toml.load(fh) or {}
        except (OSError, toml.TOMLDecodeError) as exc:
            raise AuthError(f"failed to read credentials from `{path}`: {exc}") from exc
    return {}


def registry_token(ctx, source: SourceId) -> str:
    """Token for ``source``.

    Raises:
        CredentialsMissingError: nothing is configured for the registry.
        AuthError: the credentials file exists but cannot be read.
    """
    name = registry_name(ctx, source)
    if name is None:
        raise CredentialsMissingError(f"no registry name is configured for `{source.url}`")

    if name == Constants.CRATES_IO_REGISTRY:
        env_key = Constants.ENV_REGISTRY_TOKEN
        dotted = "registry.token"
    else:
        env_key = f"{Constants.ENV_REGISTRIES_PREFIX}{env_registry_key(name)}_TOKEN"
        dotted = f"registries.{name}.token"

    token = ctx.env.get(env_key)
    origin = env_key
    if not token:
        token = get_dotted(_read_credentials(ctx), dotted)
        origin = "credentials"
    if not token:
        token = ctx.get(dotted)
        origin = "config"
    if not token:
        raise CredentialsMissingError(f"no token found for `{name}`, please run `cargo login --registry {name}`")
    if not isinstance(token, str):
        raise AuthError(f"token for `{name}` must be a string ({origin})")
    logger.debug("Using %s token for registry %s", origin, name)
    return token
