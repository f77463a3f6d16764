"""Inspect one package: resolve its source, pick a version and gather the report."""

from __future__ import annotations

import logging
from typing import Optional

from common.config import read_toml
from common.logging_utils import extra_context, is_debug_enabled
from constants import Constants
from errors import NotFoundError, UsageError
from registry.cache_lock import package_cache_lock
from registry.index import open_index
from registry.owners import lookup_owners
from sources.resolver import RegistryOrIndex, RegistrySourceIds, resolve_source
from versioning.models import PackageSpec, ResolvedPackage
from versioning.parser import parse_package_spec
from versioning.selector import select_version
from workspace.loader import Workspace, WorkspacePin, find_pin, load_workspace, target_rust_version
from workspace.manifest import package_from_manifest

from .view import PackageReport

logger = logging.getLogger(__name__)


def _check_lock_flags(ctx, ws: Optional[Workspace]) -> None:
    if ws is not None:
        return
    for flag, enabled in (("--frozen", ctx.frozen), ("--locked", ctx.locked)):
        if enabled:
            raise UsageError(f"the `{flag}` flag requires a workspace manifest (`{Constants.MANIFEST_FILE}`)")


def _local_package(ctx, pin: WorkspacePin, ws: Workspace) -> ResolvedPackage:
    """Manifest of a pinned path package."""
    if pin.package is not None:
        return pin.package
    source = pin.package_id.source
    if source.is_git:
        raise UsageError(f"cannot inspect `{pin.package_id}`: git sources are not supported")
    path = source.local_path() / Constants.MANIFEST_FILE
    if not path.is_file():
        raise NotFoundError(str(pin.package_id), str(source), reason=f"`{path}` does not exist")
    return package_from_manifest(read_toml(path), path, source, ws.defaults, ctx)


def _query_registry(
    ctx,
    spec: PackageSpec,
    source_ids: RegistrySourceIds,
    pin: Optional[WorkspacePin],
    rust_version: Optional[str],
) -> PackageReport:
    with package_cache_lock(ctx.cargo_home):
        index = open_index(ctx, source_ids.replacement)
        candidates = index.query(spec.name)
        package_id = select_version(
            spec,
            candidates,
            use_pin=source_ids.use_pin,
            pinned=pin.package_id if pin else None,
            source_url=source_ids.original.url,
            rust_version=rust_version,
        )
        summary = next(
            (s for s in candidates if s.name == package_id.name and s.version == package_id.version),
            None,
        )
        if summary is None:
            raise NotFoundError(f"{package_id.name}@{package_id.version}", source_ids.original.url)
        package = index.fetch_package(summary)
        owners = lookup_owners(ctx, source_ids, package_id.name, index=index)

    latest_candidates = [s for s in candidates if s.name == spec.name and not s.yanked]
    return PackageReport(
        package=package,
        summaries=latest_candidates,
        owners=owners,
        suggest_cargo_tree=bool(source_ids.use_pin and pin is not None),
    )


def info(
    ctx,
    spec_text: str,
    reg_or_index: Optional[RegistryOrIndex] = None,
    ignore_rust_version: bool = False,
) -> PackageReport:
    """Gather the report for ``spec_text``.

    Args:
        ctx: Invocation context.
        spec_text: Package spec as typed by the user.
        reg_or_index: ``--registry`` / ``--index`` override.
        ignore_rust_version: Skip the rust-version compatibility filter.

    Raises:
        UsageError: invalid spec or flags; raised before any network access.
        AmbiguousSourceError: the source needs an explicit ``--registry``.
        NotFoundError: nothing matches the spec.
        TransportError: the registry could not be read.
    """
    spec = parse_package_spec(spec_text)
    ws = load_workspace(ctx)
    _check_lock_flags(ctx, ws)

    pin = find_pin(ws, spec)
    source_ids = resolve_source(ctx, reg_or_index, pin.package_id if pin else None)
    rust_version = None if ignore_rust_version else target_rust_version(ctx, ws)

    if is_debug_enabled(logger):
        logger.debug(
            "Inspecting package",
            extra=extra_context(
                event="start",
                component="info",
                action="info",
                target=str(spec),
                pin=str(pin.package_id) if pin else None,
                use_pin=source_ids.use_pin,
                source=str(source_ids.replacement),
                rust_version=rust_version,
            ),
        )

    if source_ids.use_pin and pin is not None and not pin.package_id.source.is_registry:
        return PackageReport(
            package=_local_package(ctx, pin, ws),
            suggest_cargo_tree=not pin.is_member,
        )
    if source_ids.replacement.is_git:
        raise UsageError(f"cannot inspect packages from {source_ids.replacement}: git sources are not supported")
    return _query_registry(ctx, spec, source_ids, pin, rust_version)
