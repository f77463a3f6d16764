"""Per-dependency activation status derived from a feature resolution."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Set

from constants import DepKind
from sources.source_id import SourceId
from versioning.models import Dependency, FeatureStatus
from versioning.requirement import pretty_req

from .graph import FeatureResolution

_DISPLAYED_KINDS = (DepKind.NORMAL, DepKind.BUILD)


@dataclass(frozen=True)
class ClassifiedDependency:
    """A dependency and whether the resolved features turn it on."""
    dependency: Dependency
    status: FeatureStatus

    @property
    def kind(self) -> DepKind:
        return self.dependency.kind


def _activated_dependencies(resolution: FeatureResolution) -> Set[str]:
    # Only `dep:x` and weak `x?/feat` count; strong `x/feat` is ignored here
    enabled = {name for name, status in resolution.statuses if not status.is_disabled}
    return {
        event.dep_name
        for event in resolution.activations
        if event.feature in enabled and (event.direct or event.weak)
    }


def classify_dependencies(
    dependencies: Iterable[Dependency],
    resolution: FeatureResolution,
) -> List[ClassifiedDependency]:
    """Status of each normal and build dependency.

    Non-optional dependencies are ``ENABLED_BY_USER``; optional ones are
    ``ENABLED`` when an active feature names them, otherwise ``DISABLED``.
    Results are sorted by status, then package name.
    """
    activated = _activated_dependencies(resolution)
    classified = []
    for dep in dependencies:
        if dep.kind not in _DISPLAYED_KINDS:
            continue
        if not dep.optional:
            status = FeatureStatus.ENABLED_BY_USER
        elif dep.name_in_toml in activated:
            status = FeatureStatus.ENABLED
        else:
            status = FeatureStatus.DISABLED
        classified.append(ClassifiedDependency(dep, status))
    classified.sort(key=lambda c: (c.status, c.dependency.package_name))
    return classified


def relative_location(path: Path, cwd: Path) -> str:
    """``path`` relative to ``cwd``, spelled with a leading ``./``."""
    try:
        rel = os.path.relpath(path, cwd)
    except ValueError:
        return str(path)
    if rel == ".":
        return "."
    rel = rel.replace(os.sep, "/")
    return f"./{rel}"


def describe_dependency(dep: Dependency, cwd: Optional[Path] = None) -> str:
    """Display text for a dependency.

    Registry dependencies render as ``name@req``; path and git dependencies
    as ``name (location)``.
    """
    if dep.source.is_registry:
        return f"{dep.package_name}@{pretty_req(dep.req)}"
    return f"{dep.package_name} ({pretty_source(dep.source, cwd)})"


def pretty_source(source: SourceId, cwd: Optional[Path] = None) -> str:
    """Local sources relative to ``cwd``; anything else as its display string."""
    path = source.local_path()
    if path is not None:
        return relative_location(path, Path(cwd or Path.cwd()))
    return str(source)
