"""Source replacement table built from builtin rules and ``[source.*]`` config.

A ``SourceConfigMap`` answers one question: which source is actually read
when a package is requested from a given ``SourceId``. The builtin table only
redirects the crates.io git index to its sparse HTTP equivalent; the full
table also honours user ``replace-with`` chains.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

from constants import Constants
from errors import UsageError
from sources.source_id import SourceId

logger = logging.getLogger(__name__)

SPARSE_CRATES_IO_NAME = "crates-io-protocol-sparse"
_LOCATION_KEYS = ("registry", "local-registry", "directory", "git")
_GIT_REFERENCE_KEYS = ("branch", "tag", "rev")


def _source_from_definition(name: str, definition: Dict[str, Any]) -> Optional[SourceId]:
    """Build the SourceId a ``[source.NAME]`` table points at, if any."""
    present = [key for key in _LOCATION_KEYS if key in definition]
    if len(present) > 1:
        raise UsageError(f"more than one source location specified for `source.{name}`")
    if not present:
        return None
    key = present[0]
    value = definition[key]
    if key == "registry":
        return SourceId.for_registry(value, name=name)
    if key == "local-registry":
        return SourceId.for_local_registry(Path(value), name=name)
    if key == "directory":
        return SourceId.for_directory(Path(value), name=name)
    reference = None
    for ref_key in _GIT_REFERENCE_KEYS:
        if ref_key in definition:
            reference = (ref_key, definition[ref_key])
    return SourceId.for_git(value, reference=reference)


class SourceConfigMap:
    """Named sources and the ``replace-with`` edges between them."""

    def __init__(self, ctx, include_user_config: bool = True):
        self._ctx = ctx
        self._locations: Dict[str, SourceId] = {}
        self._replace_with: Dict[str, str] = {}
        self._add_builtin()
        if include_user_config:
            self._add_user_config()

    @classmethod
    def empty(cls, ctx) -> "SourceConfigMap":
        """Builtin replacements only."""
        return cls(ctx, include_user_config=False)

    def _add_builtin(self) -> None:
        self._locations[Constants.CRATES_IO_REGISTRY] = SourceId.crates_io()
        if self._ctx.crates_io_protocol() == "sparse":
            self._locations[SPARSE_CRATES_IO_NAME] = SourceId.crates_io_sparse()
            self._replace_with[Constants.CRATES_IO_REGISTRY] = SPARSE_CRATES_IO_NAME

    def _add_user_config(self) -> None:
        for name, registry in (self._ctx.get("registries") or {}).items():
            if name == Constants.CRATES_IO_REGISTRY or not isinstance(registry, dict):
                continue
            if registry.get("index"):
                self._locations.setdefault(name, SourceId.for_registry(registry["index"], name=name))
        for name, definition in (self._ctx.get("source") or {}).items():
            if not isinstance(definition, dict):
                continue
            location = _source_from_definition(name, definition)
            if location is not None:
                if name == Constants.CRATES_IO_REGISTRY:
                    raise UsageError("source `crates-io` cannot define its own location; use `replace-with`")
                self._locations[name] = location
            if "replace-with" in definition:
                self._replace_with[name] = definition["replace-with"]

    def _name_of(self, source_id: SourceId) -> Optional[str]:
        if source_id == SourceId.crates_io():
            return Constants.CRATES_IO_REGISTRY
        if source_id.name and self._locations.get(source_id.name) == source_id:
            return source_id.name
        for name, location in self._locations.items():
            if location == source_id:
                return name
        return None

    def load(self, source_id: SourceId) -> SourceId:
        """Follow ``replace-with`` edges from ``source_id`` to the source actually read."""
        name = self._name_of(source_id)
        current = source_id
        seen = {name} if name else set()
        origin = name
        while name is not None and name in self._replace_with:
            next_name = self._replace_with[name]
            if next_name in seen:
                raise UsageError(
                    f"detected a cycle of `replace-with` sources, the source `{origin}` is "
                    f"eventually replaced with itself"
                )
            if next_name not in self._locations:
                raise UsageError(
                    f"could not find a configured source with the name `{next_name}` "
                    f"when attempting to lookup `{name}` (configuration in source.{name})"
                )
            seen.add(next_name)
            current = self._locations[next_name]
            name = next_name
        if current is not source_id:
            logger.debug("Source %s is replaced by %s", source_id, current)
        return current
