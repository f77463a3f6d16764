"""Choose the source a query is answered from.

``resolve_source`` decides whether a workspace pin can be used as-is and
which source is queried once replacements are applied. It refuses to
silently follow a user-configured replacement the caller did not ask for.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from common.logging_utils import extra_context, is_debug_enabled
from errors import AmbiguousSourceError, UsageError
from sources.config_map import SourceConfigMap
from sources.source_id import SourceId
from versioning.models import PackageId

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegistryOrIndex:
    """Explicit source chosen on the command line (``--registry`` or ``--index``)."""
    registry: Optional[str] = None
    index: Optional[str] = None

    def __post_init__(self):
        if bool(self.registry) == bool(self.index):
            raise UsageError("exactly one of `--registry` or `--index` must be given")

    def to_source_id(self, ctx) -> SourceId:
        if self.registry:
            return SourceId.alt_registry(ctx, self.registry)
        return SourceId.for_registry(self.index)


@dataclass(frozen=True)
class RegistrySourceIds:
    """Outcome of source resolution.

    Attributes:
        use_pin: The workspace pin may be reported without querying versions.
        original: Source the user believes they are querying.
        replacement: Source actually read after replacements.
    """
    use_pin: bool
    original: SourceId
    replacement: SourceId


def _ambiguity_message(original: SourceId, replacement: SourceId) -> str:
    original_name = original.display_registry_name()
    if replacement.is_remote_registry and replacement.name:
        return (
            f"{original_name} is replaced with remote registry {replacement.name};\n"
            f"include `--registry {replacement.name}` or `--registry {original_name}`"
        )
    return (
        f"{original_name} is replaced with non-remote-registry source {replacement};\n"
        f"include `--registry {original_name}` to use {original_name}"
    )


def resolve_source(
    ctx,
    reg_or_index: Optional[RegistryOrIndex],
    pin: Optional[PackageId],
) -> RegistrySourceIds:
    """Compute ``(use_pin, original, replacement)`` for a query.

    Args:
        ctx: Invocation context holding configuration.
        reg_or_index: Explicit source override, if any.
        pin: Package id found in the workspace, if any.

    Returns:
        RegistrySourceIds

    Raises:
        AmbiguousSourceError: No override was given and the configured
            replacement differs from the builtin one.
    """
    configured_map = SourceConfigMap(ctx)

    if reg_or_index is None:
        if pin is not None:
            use_pin, original = True, pin.source
        else:
            use_pin, original = False, SourceId.crates_io()
    else:
        original = reg_or_index.to_source_id(ctx)
        use_pin = False
        if pin is not None:
            use_pin = original == pin.source or configured_map.load(pin.source) == original

    builtin_replacement = SourceConfigMap.empty(ctx).load(original)
    configured_replacement = configured_map.load(original)

    if is_debug_enabled(logger):
        logger.debug(
            "Resolved query source",
            extra=extra_context(
                event="decision",
                component="source_resolver",
                action="resolve_source",
                original=str(original),
                builtin=str(builtin_replacement),
                configured=str(configured_replacement),
                use_pin=use_pin,
            ),
        )

    if reg_or_index is None and configured_replacement != builtin_replacement:
        raise AmbiguousSourceError(
            _ambiguity_message(original, configured_replacement),
            replacement=configured_replacement.display_registry_name(),
        )

    return RegistrySourceIds(use_pin=use_pin, original=original, replacement=configured_replacement)
