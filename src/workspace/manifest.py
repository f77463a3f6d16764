"""Manifest (Cargo.toml) parsing into ``ResolvedPackage`` values.

Handles both workspace manifests, which may inherit fields and
dependencies from ``[workspace.package]`` / ``[workspace.dependencies]``,
and the normalized manifests found inside published archives.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from constants import DepKind
from errors import UsageError
from sources.source_id import SourceId
from versioning.models import (
    Dependency,
    PackageId,
    PackageMetadata,
    ResolvedPackage,
    Summary,
    build_feature_map,
)

logger = logging.getLogger(__name__)

_DEPENDENCY_SECTIONS = {
    "dependencies": DepKind.NORMAL,
    "build-dependencies": DepKind.BUILD,
    "build_dependencies": DepKind.BUILD,
    "dev-dependencies": DepKind.DEV,
    "dev_dependencies": DepKind.DEV,
}
_INHERITABLE_FIELDS = (
    "version",
    "description",
    "license",
    "license-file",
    "homepage",
    "repository",
    "documentation",
    "keywords",
    "rust-version",
)
_DEFAULT_VERSION = "0.0.0"


@dataclass
class WorkspaceDefaults:
    """Values members may inherit with ``workspace = true``."""
    root: Path
    package: Dict[str, Any] = field(default_factory=dict)
    dependencies: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_manifest(cls, root: Path, doc: Mapping[str, Any]) -> "WorkspaceDefaults":
        ws = doc.get("workspace") or {}
        return cls(
            root=root,
            package=dict(ws.get("package") or {}),
            dependencies=dict(ws.get("dependencies") or {}),
        )


def _is_inherited(value: Any) -> bool:
    return isinstance(value, dict) and value.get("workspace") is True


def _inherit_field(key: str, value: Any, defaults: Optional[WorkspaceDefaults]) -> Any:
    if not _is_inherited(value):
        return value
    if defaults is None or key not in defaults.package:
        raise UsageError(f"error inheriting `{key}` from workspace root manifest's `workspace.package.{key}`")
    inherited = defaults.package[key]
    if key == "license-file" and isinstance(inherited, str):
        return str(defaults.root / inherited)
    return inherited


def _dependency_source(
    table: Mapping[str, Any],
    base_dir: Path,
    ctx,
) -> SourceId:
    if "path" in table:
        return SourceId.for_path((base_dir / table["path"]).resolve())
    if "git" in table:
        reference = None
        for key in ("branch", "tag", "rev"):
            if key in table:
                reference = (key, table[key])
        return SourceId.for_git(table["git"], reference=reference)
    if "registry-index" in table:
        return SourceId.for_registry(table["registry-index"])
    if "registry" in table:
        if ctx is None:
            raise UsageError(f"registry `{table['registry']}` cannot be resolved without configuration")
        return SourceId.alt_registry(ctx, table["registry"])
    return SourceId.crates_io()


def parse_dependency(
    name: str,
    spec: Any,
    kind: DepKind,
    base_dir: Path,
    defaults: Optional[WorkspaceDefaults] = None,
    target: Optional[str] = None,
    ctx=None,
) -> Dependency:
    """Build a Dependency from one manifest entry.

    Args:
        name: Key in the dependency table.
        spec: Requirement string or detailed table.
        kind: Section the entry came from.
        base_dir: Directory relative ``path`` values are resolved against.
        defaults: Workspace values for ``workspace = true`` entries.
        target: ``target.<cfg>`` key, if any.
        ctx: Invocation context, needed for named registries.
    """
    if isinstance(spec, str):
        table: Dict[str, Any] = {"version": spec}
    elif isinstance(spec, dict):
        table = dict(spec)
    else:
        raise UsageError(f"invalid dependency `{name}`: expected a string or table")

    if _is_inherited(table):
        if defaults is None or name not in defaults.dependencies:
            raise UsageError(f"dependency `{name}` was not found in `workspace.dependencies`")
        inherited = defaults.dependencies[name]
        base = {"version": inherited} if isinstance(inherited, str) else dict(inherited)
        features = list(base.get("features") or []) + list(table.get("features") or [])
        if "optional" in table:
            base["optional"] = table["optional"]
        base["features"] = features
        table = base
        base_dir = defaults.root

    default_features = table.get("default-features", table.get("default_features", True))
    return Dependency(
        name_in_toml=name,
        package_name=table.get("package") or name,
        req=str(table.get("version") or "*"),
        kind=kind,
        optional=bool(table.get("optional", False)),
        source=_dependency_source(table, base_dir, ctx),
        target=target,
        features=tuple(table.get("features") or ()),
        default_features=bool(default_features),
    )


def collect_dependencies(
    doc: Mapping[str, Any],
    base_dir: Path,
    defaults: Optional[WorkspaceDefaults] = None,
    ctx=None,
) -> List[Dependency]:
    """All dependencies of a manifest, including ``target.<cfg>`` tables."""
    scopes = [(None, doc)]
    for target, table in (doc.get("target") or {}).items():
        if isinstance(table, dict):
            scopes.append((target, table))

    dependencies = []
    for target, scope in scopes:
        for section, kind in _DEPENDENCY_SECTIONS.items():
            for name, spec in (scope.get(section) or {}).items():
                dependencies.append(
                    parse_dependency(name, spec, kind, base_dir, defaults, target=target, ctx=ctx)
                )
    return dependencies


def package_metadata(package: Mapping[str, Any], defaults: Optional[WorkspaceDefaults] = None) -> PackageMetadata:
    """Descriptive fields of a ``[package]`` table after inheritance."""
    values = {key: _inherit_field(key, package.get(key), defaults) for key in _INHERITABLE_FIELDS}
    rust_version = values["rust-version"]
    return PackageMetadata(
        description=values["description"],
        license=values["license"],
        license_file=values["license-file"],
        homepage=values["homepage"],
        repository=values["repository"],
        documentation=values["documentation"],
        keywords=tuple(values["keywords"] or ()),
        rust_version=str(rust_version) if rust_version is not None else None,
        links=package.get("links"),
    )


def package_from_manifest(
    doc: Mapping[str, Any],
    manifest_path: Path,
    source: SourceId,
    defaults: Optional[WorkspaceDefaults] = None,
    ctx=None,
) -> ResolvedPackage:
    """Turn a parsed manifest with a ``[package]`` table into a ResolvedPackage.

    Raises:
        UsageError: no ``[package]`` table, missing name, or bad inheritance.
    """
    package = doc.get("package") or doc.get("project")
    if not isinstance(package, dict):
        raise UsageError(f"manifest at `{manifest_path}` has no `[package]` section")
    name = package.get("name")
    if not name:
        raise UsageError(f"manifest at `{manifest_path}` is missing `package.name`")
    version = _inherit_field("version", package.get("version"), defaults) or _DEFAULT_VERSION

    metadata = package_metadata(package, defaults)
    dependencies = collect_dependencies(doc, manifest_path.parent, defaults, ctx)
    raw_features = {key: list(values) for key, values in (doc.get("features") or {}).items()}
    summary = Summary(
        package_id=PackageId(name=name, version=str(version), source=source),
        dependencies=tuple(dependencies),
        features=build_feature_map(raw_features, dependencies),
        rust_version=metadata.rust_version,
        links=metadata.links,
    )
    logger.debug("Parsed manifest %s (%s@%s)", manifest_path, name, version)
    return ResolvedPackage(summary=summary, metadata=metadata, manifest_path=str(manifest_path))