"""Data models for package specs, index summaries and resolved packages."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, List, Optional, Tuple, Union

from constants import DepKind
from sources.source_id import SourceId


@dataclass(frozen=True)
class PartialVersion:
    """A version with optional minor/patch, as written in a package spec (``1.2``)."""
    major: int
    minor: Optional[int] = None
    patch: Optional[int] = None
    pre: Optional[str] = None
    build: Optional[str] = None

    def __str__(self) -> str:
        text = str(self.major)
        if self.minor is not None:
            text += f".{self.minor}"
        if self.patch is not None:
            text += f".{self.patch}"
        if self.pre:
            text += f"-{self.pre}"
        if self.build:
            text += f"+{self.build}"
        return text


@dataclass(frozen=True)
class PackageSpec:
    """Parsed user input naming the package to inspect."""
    name: str
    version: Optional[Union[PartialVersion, str]] = None  # str holds a requirement such as "^1.2"
    url: Optional[str] = None
    kind: Optional[str] = None

    def __str__(self) -> str:
        text = self.name
        if self.version is not None:
            text += f"@{self.version}"
        if self.url:
            prefix = f"{self.kind}+" if self.kind else ""
            text = f"{prefix}{self.url}#{text}"
        return text


@dataclass(frozen=True)
class PackageId:
    """Name, version and source of one concrete package."""
    name: str
    version: str
    source: SourceId

    def __str__(self) -> str:
        return f"{self.name}@{self.version}"


class FeatureStatus(IntEnum):
    """Activation status of a feature or dependency.

    Ordered so that sorting by status lists user-enabled items first.
    """
    ENABLED_BY_USER = 0
    ENABLED = 1
    DISABLED = 2

    @property
    def is_disabled(self) -> bool:
        return self == FeatureStatus.DISABLED


@dataclass(frozen=True)
class Feature:
    """``name``: enables another feature of the same package."""
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Dep:
    """``dep:name``: enables an optional dependency."""
    dep_name: str

    def __str__(self) -> str:
        return f"dep:{self.dep_name}"


@dataclass(frozen=True)
class DepFeature:
    """``name/feat`` or weak ``name?/feat``: enables a feature of a dependency."""
    dep_name: str
    dep_feature: str
    weak: bool = False

    def __str__(self) -> str:
        marker = "?" if self.weak else ""
        return f"{self.dep_name}{marker}/{self.dep_feature}"


FeatureValue = Union[Feature, Dep, DepFeature]
FeatureMap = Dict[str, List[FeatureValue]]


def parse_feature_value(token: str) -> FeatureValue:
    """Classify one entry of a feature's activation list."""
    if token.startswith("dep:"):
        return Dep(token[len("dep:"):])
    if "/" in token:
        dep_name, dep_feature = token.split("/", 1)
        weak = dep_name.endswith("?")
        if weak:
            dep_name = dep_name[:-1]
        return DepFeature(dep_name, dep_feature, weak)
    return Feature(token)


@dataclass(frozen=True)
class Dependency:
    """A dependency declared by a package.

    Attributes:
        name_in_toml: Key used in the manifest (the rename, if any).
        package_name: Name of the depended-on package.
        req: Version requirement as written; ``*`` when absent.
        kind: Manifest section kind.
        optional: Whether a feature must enable it.
        source: Where the dependency comes from.
        target: ``cfg(...)`` or triple restriction, if any.
        features: Features of the dependency enabled by this declaration.
        default_features: Whether the dependency's default features are on.
    """
    name_in_toml: str
    package_name: str
    req: str
    kind: DepKind
    optional: bool
    source: SourceId
    target: Optional[str] = None
    features: Tuple[str, ...] = ()
    default_features: bool = True


def build_feature_map(raw: Dict[str, List[str]], dependencies: List[Dependency]) -> FeatureMap:
    """Parse declared features and add implicit features for optional dependencies.

    An optional dependency that no feature references through ``dep:``
    gets an implicit feature of its own name.
    """
    features: FeatureMap = {
        name: [parse_feature_value(token) for token in tokens]
        for name, tokens in raw.items()
    }
    explicit_deps = {
        value.dep_name
        for values in features.values()
        for value in values
        if isinstance(value, Dep)
    }
    for dep in dependencies:
        if not dep.optional or dep.name_in_toml in explicit_deps:
            continue
        if dep.name_in_toml not in features:
            features[dep.name_in_toml] = [Dep(dep.name_in_toml)]
    return features


@dataclass(frozen=True)
class Summary:
    """Per-version descriptor of a package, as found in a registry index."""
    package_id: PackageId
    dependencies: Tuple[Dependency, ...] = ()
    features: FeatureMap = field(default_factory=dict, hash=False)
    rust_version: Optional[str] = None
    yanked: bool = False
    checksum: Optional[str] = None
    links: Optional[str] = None

    @property
    def name(self) -> str:
        return self.package_id.name

    @property
    def version(self) -> str:
        return self.package_id.version


@dataclass(frozen=True)
class PackageMetadata:
    """Descriptive manifest fields; any of them may be absent."""
    description: Optional[str] = None
    license: Optional[str] = None
    license_file: Optional[str] = None
    homepage: Optional[str] = None
    repository: Optional[str] = None
    documentation: Optional[str] = None
    keywords: Tuple[str, ...] = ()
    rust_version: Optional[str] = None
    links: Optional[str] = None


@dataclass(frozen=True)
class ResolvedPackage:
    """One concrete version together with its manifest metadata."""
    summary: Summary
    metadata: PackageMetadata = field(default_factory=PackageMetadata)
    manifest_path: Optional[str] = None

    @property
    def package_id(self) -> PackageId:
        return self.summary.package_id

    @property
    def dependencies(self) -> Tuple[Dependency, ...]:
        return self.summary.dependencies

    @property
    def features(self) -> FeatureMap:
        return self.summary.features
