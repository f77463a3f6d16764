"""Package ownership lookup through a registry's web API."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from common.http_client import get_json
from common.logging_utils import extra_context, is_debug_enabled, safe_url
from errors import CredentialsMissingError, TransportError
from sources.resolver import RegistrySourceIds
from sources.source_id import SourceId

from .auth import registry_token
from .index import RegistryIndex, open_index

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Owner:
    """A user or team allowed to publish the package."""
    login: str
    name: Optional[str] = None

    def __str__(self) -> str:
        if self.name:
            return f"{self.login} ({self.name})"
        return self.login


def owners_url(api: str, package_name: str) -> str:
    return f"{api.rstrip('/')}/api/v1/crates/{package_name}/owners"


def lookup_owners(
    ctx,
    source_ids: RegistrySourceIds,
    package_name: str,
    index: Optional[RegistryIndex] = None,
    token_provider: Callable[[object, SourceId], str] = registry_token,
) -> Optional[List[Owner]]:
    """Owners of ``package_name``, or None when they cannot be asked for.

    None is returned when the queried source is not a remote registry, when
    no token is configured, or when the registry has no web API.

    Raises:
        TransportError: the request failed or the API answered with an error.
        AuthError: the credentials exist but could not be read.
    """
    if not source_ids.original.is_remote_registry:
        return None
    try:
        token = token_provider(ctx, source_ids.original)
    except CredentialsMissingError as exc:
        logger.debug("Skipping owner lookup: %s", exc)
        return None

    if index is None:
        index = open_index(ctx, source_ids.replacement)
    api = index.config().get("api")
    if not api:
        logger.debug("Registry %s has no web API", source_ids.replacement)
        return None

    url = owners_url(api, package_name)
    status, payload = get_json(
        url,
        headers={"Authorization": token},
        offline=ctx.offline,
        context="registry api",
    )
    if status != 200 or not isinstance(payload, dict):
        raise TransportError(f"failed to list owners of `{package_name}` from `{safe_url(url)}` (HTTP {status})")

    owners = [
        Owner(login=user["login"], name=user.get("name") or None)
        for user in payload.get("users") or []
        if isinstance(user, dict) and user.get("login")
    ]
    if is_debug_enabled(logger):
        logger.debug(
            "Owners fetched",
            extra=extra_context(
                event="owners",
                component="owners",
                action="lookup_owners",
                target=package_name,
                count=len(owners),
            ),
        )
    return owners
