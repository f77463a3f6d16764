"""Feature activation closure.

Feature names are interned to integer indices and the closure is computed
over an adjacency list with an explicit worklist, so every feature is
visited at most once even when features form cycles.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

from constants import Constants
from versioning.models import Dep, DepFeature, Feature, FeatureMap, FeatureStatus


@dataclass(frozen=True)
class DependencyActivation:
    """A feature naming a dependency in its activation list."""
    dep_name: str
    feature: str
    weak: bool
    # True for `dep:name`, False for `name/feat` and `name?/feat`
    direct: bool


@dataclass
class FeatureResolution:
    """Result of resolving a FeatureMap from a root set.

    Attributes:
        statuses: ``(feature, status)`` sorted by status then name.
        activations: Dependency tokens found in visited features.
    """
    statuses: List[Tuple[str, FeatureStatus]] = field(default_factory=list)
    activations: List[DependencyActivation] = field(default_factory=list)


class _InternedGraph:
    """Feature names as indices plus same-package edges between them."""

    def __init__(self, features: FeatureMap):
        self.names: List[str] = list(features)
        self.index: Dict[str, int] = {name: i for i, name in enumerate(self.names)}
        self.edges: List[List[int]] = []
        self.dep_tokens: List[List[DependencyActivation]] = []
        for name in self.names:
            targets: List[int] = []
            tokens: List[DependencyActivation] = []
            for value in features[name]:
                if isinstance(value, Feature):
                    # Undeclared feature references are ignored
                    if value.name in self.index:
                        targets.append(self.index[value.name])
                elif isinstance(value, Dep):
                    tokens.append(DependencyActivation(value.dep_name, name, weak=False, direct=True))
                elif isinstance(value, DepFeature):
                    tokens.append(DependencyActivation(value.dep_name, name, weak=value.weak, direct=False))
            self.edges.append(targets)
            self.dep_tokens.append(tokens)


def resolve_features(
    features: FeatureMap,
    explicit: Sequence[str] = (Constants.DEFAULT_FEATURE,),
) -> FeatureResolution:
    """Compute the status of every declared feature.

    Args:
        features: Feature name to activation tokens.
        explicit: Features enabled by the user; undeclared names are skipped,
            so a package without a ``default`` feature has no roots.

    Returns:
        FeatureResolution with statuses sorted by ``(status, name)``.
    """
    graph = _InternedGraph(features)
    status = [FeatureStatus.DISABLED] * len(graph.names)

    worklist: List[int] = []
    for name in explicit:
        idx = graph.index.get(name)
        if idx is not None and status[idx] != FeatureStatus.ENABLED_BY_USER:
            status[idx] = FeatureStatus.ENABLED_BY_USER
            worklist.append(idx)

    visited: List[int] = []
    while worklist:
        current = worklist.pop()
        visited.append(current)
        for target in graph.edges[current]:
            if status[target] == FeatureStatus.DISABLED:
                status[target] = FeatureStatus.ENABLED
                worklist.append(target)

    activations = [token for idx in sorted(visited) for token in graph.dep_tokens[idx]]
    statuses = sorted(zip(graph.names, status), key=lambda item: (item[1], item[0]))
    return FeatureResolution(statuses=statuses, activations=activations)


def count_by_status(resolution: FeatureResolution) -> Tuple[int, int]:
    """Return ``(activated, deactivated)`` feature counts."""
    deactivated = sum(1 for _, s in resolution.statuses if s.is_disabled)
    return len(resolution.statuses) - deactivated, deactivated
