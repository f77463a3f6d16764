"""Workspace discovery and pin lookup.

Finds the manifest nearest to the working directory, the workspace root
that owns it, every member package and the lock file, then answers which
version of a package the workspace already uses.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional

from common.config import read_toml
from common.logging_utils import extra_context, is_debug_enabled
from common.toolchain import rustc_version
from constants import Constants
from sources.source_id import SourceId
from versioning.models import PackageId, PackageSpec, ResolvedPackage
from versioning.requirement import version_key
from versioning.selector import spec_matches

from .lockfile import LockEntry, Lockfile, parse_lockfile
from .manifest import WorkspaceDefaults, package_from_manifest

logger = logging.getLogger(__name__)


@dataclass
class Member:
    """A package belonging to the workspace."""
    path: Path
    package: ResolvedPackage

    @property
    def package_id(self) -> PackageId:
        return self.package.package_id


@dataclass
class Workspace:
    """A loaded workspace.

    Attributes:
        root: Directory holding the root manifest.
        members: Member packages, the root package first when it has one.
        current: Member nearest to the working directory, if any.
        defaults: ``[workspace.package]`` and ``[workspace.dependencies]``.
        lock: Parsed lock file, when present.
    """
    root: Path
    members: List[Member] = field(default_factory=list)
    current: Optional[Member] = None
    defaults: Optional[WorkspaceDefaults] = None
    lock: Optional[Lockfile] = None

    @property
    def rust_version(self) -> Optional[str]:
        if self.defaults is None:
            return None
        value = self.defaults.package.get("rust-version")
        return str(value) if value is not None else None


@dataclass(frozen=True)
class WorkspacePin:
    """A package id the workspace already uses."""
    package_id: PackageId
    is_member: bool = False
    package: Optional[ResolvedPackage] = None


def find_manifest(start: Path) -> Optional[Path]:
    """Nearest Cargo.toml in ``start`` or its ancestors."""
    for directory in [start, *start.parents]:
        candidate = directory / Constants.MANIFEST_FILE
        if candidate.is_file():
            return candidate
    return None


def _member_dirs(root_dir: Path, ws_table: dict) -> List[Path]:
    excluded = [(root_dir / e).resolve() for e in ws_table.get("exclude", []) or []]
    dirs: List[Path] = []
    for pattern in ws_table.get("members", []) or []:
        for match in sorted(root_dir.glob(pattern)):
            path = match.resolve()
            if not (path / Constants.MANIFEST_FILE).is_file():
                continue
            if any(path == e or e in path.parents for e in excluded):
                continue
            if path not in dirs:
                dirs.append(path)
    return dirs


def _find_root(manifest: Path, doc: dict) -> Path:
    if "workspace" in doc:
        return manifest
    package = doc.get("package") or {}
    explicit = package.get("workspace")
    if isinstance(explicit, str):
        return (manifest.parent / explicit / Constants.MANIFEST_FILE).resolve()
    package_dir = manifest.parent.resolve()
    for directory in package_dir.parents:
        candidate = directory / Constants.MANIFEST_FILE
        if not candidate.is_file():
            continue
        candidate_doc = read_toml(candidate)
        ws_table = candidate_doc.get("workspace")
        if isinstance(ws_table, dict) and package_dir in _member_dirs(directory, ws_table):
            return candidate
    return manifest


def _path_dependency_dirs(package: ResolvedPackage, root_dir: Path) -> Iterable[Path]:
    for dep in package.dependencies:
        if dep.source.is_path:
            path = dep.source.local_path()
            if path is not None and (path == root_dir or root_dir in path.parents):
                yield path


def load_workspace(ctx) -> Optional[Workspace]:
    """Load the workspace enclosing ``ctx.cwd``; None when there is no manifest.

    Raises:
        UsageError: a manifest or the lock file cannot be parsed.
    """
    manifest = find_manifest(ctx.cwd)
    if manifest is None:
        return None
    root_manifest = _find_root(manifest, read_toml(manifest))
    root_dir = root_manifest.parent.resolve()
    root_doc = read_toml(root_manifest)
    defaults = WorkspaceDefaults.from_manifest(root_dir, root_doc)

    queue: List[Path] = []
    if root_doc.get("package"):
        queue.append(root_dir)
    ws_table = root_doc.get("workspace")
    if isinstance(ws_table, dict):
        queue.extend(_member_dirs(root_dir, ws_table))

    members: List[Member] = []
    seen = set()
    while queue:
        directory = queue.pop(0)
        if directory in seen:
            continue
        seen.add(directory)
        path = directory / Constants.MANIFEST_FILE
        if not path.is_file():
            continue
        package = package_from_manifest(
            read_toml(path), path, SourceId.for_path(directory), defaults, ctx
        )
        members.append(Member(path=directory, package=package))
        queue.extend(_path_dependency_dirs(package, root_dir))

    cwd = ctx.cwd.resolve()
    current = None
    for member in members:
        if member.path == cwd or member.path in cwd.parents:
            if current is None or len(member.path.parts) > len(current.path.parts):
                current = member

    lock_path = root_dir / Constants.LOCK_FILE
    lock = parse_lockfile(lock_path) if lock_path.is_file() else None

    ws = Workspace(root=root_dir, members=members, current=current, defaults=defaults, lock=lock)
    if is_debug_enabled(logger):
        logger.debug(
            "Loaded workspace",
            extra=extra_context(
                event="workspace_loaded",
                component="workspace",
                action="load_workspace",
                target=str(root_dir),
                member_count=len(members),
                current=str(current.package_id) if current else None,
                has_lock=lock is not None,
            ),
        )
    return ws


def _lock_entry_id(ws: Workspace, entry: LockEntry) -> Optional[PackageId]:
    if entry.source is not None:
        return PackageId(entry.name, entry.version, entry.source)
    # Path packages are located through members and their path dependencies
    for member in ws.members:
        if member.package_id.name == entry.name and member.package_id.version == entry.version:
            return member.package_id
    for member in ws.members:
        for dep in member.package.dependencies:
            if dep.source.is_path and dep.package_name == entry.name:
                return PackageId(entry.name, entry.version, dep.source)
    return None


def _highest_match(ws: Workspace, spec: PackageSpec, entries: Iterable[LockEntry]) -> Optional[PackageId]:
    best = None
    for entry in entries:
        package_id = _lock_entry_id(ws, entry)
        if package_id is None or not spec_matches(spec, package_id):
            continue
        try:
            key = version_key(package_id.version)
        except ValueError:
            continue
        if best is None or key > best[0]:
            best = (key, package_id)
    return best[1] if best else None


def find_pin(ws: Optional[Workspace], spec: PackageSpec) -> Optional[WorkspacePin]:
    """Version of ``spec`` the workspace already uses.

    Looks, in order, at members, at the nearest member's locked
    dependencies, at any member's locked dependencies, then at every lock
    entry.
    """
    if ws is None:
        return None
    for member in ws.members:
        if spec_matches(spec, member.package_id):
            return WorkspacePin(member.package_id, is_member=True, package=member.package)
    if ws.lock is None:
        return None

    scopes = []
    if ws.current is not None:
        current = ws.current.package_id
        scopes.append(ws.lock.dependencies_of(current.name, current.version))
    any_member = []
    for member in ws.members:
        any_member.extend(ws.lock.dependencies_of(member.package_id.name, member.package_id.version))
    scopes.append(any_member)
    scopes.append(ws.lock.entries)

    for entries in scopes:
        package_id = _highest_match(ws, spec, entries)
        if package_id is not None:
            logger.debug("Workspace pins %s", package_id)
            return WorkspacePin(package_id)
    return None


def target_rust_version(ctx, ws: Optional[Workspace]) -> Optional[str]:
    """Toolchain version candidates must support.

    The nearest member's ``rust-version`` wins, then the workspace's, then
    the installed compiler.
    """
    if ws is not None:
        if ws.current is not None and ws.current.package.metadata.rust_version:
            return ws.current.package.metadata.rust_version
        if ws.rust_version:
            return ws.rust_version
    return rustc_version(ctx.env)
