"""Tests for dependency classification and presentation."""

from constants import DepKind
from features.dependencies import classify_dependencies, describe_dependency, relative_location
from features.graph import resolve_features
from sources.source_id import SourceId
from versioning.models import Dependency, FeatureStatus, build_feature_map


def dep(name, kind=DepKind.NORMAL, optional=False, req="1.0", source=None, package=None):
    return Dependency(
        name_in_toml=name,
        package_name=package or name,
        req=req,
        kind=kind,
        optional=optional,
        source=source or SourceId.crates_io(),
    )


def classify(dependencies, raw_features):
    features = build_feature_map(raw_features, dependencies)
    return classify_dependencies(dependencies, resolve_features(features))


class TestClassifyDependencies:
    """Status of each dependency under the default feature set."""

    def test_statuses_and_order(self):
        dependencies = [
            dep("serde"),
            dep("rand", optional=True),
            dep("log", optional=True),
            dep("regex", optional=True),
            dep("cc", kind=DepKind.BUILD),
            dep("tempfile", kind=DepKind.DEV),
        ]
        raw = {"default": ["dep:rand", "log?/std", "regex/unicode"]}
        result = [(c.dependency.package_name, c.status) for c in classify(dependencies, raw)]
        assert result == [
            ("cc", FeatureStatus.ENABLED_BY_USER),
            ("serde", FeatureStatus.ENABLED_BY_USER),
            ("log", FeatureStatus.ENABLED),
            ("rand", FeatureStatus.ENABLED),
            ("regex", FeatureStatus.DISABLED),
        ]

    def test_dev_dependencies_are_skipped(self):
        assert classify([dep("tempfile", kind=DepKind.DEV)], {}) == []

    def test_optional_enabled_through_feature_chain(self):
        dependencies = [dep("tokio", optional=True)]
        raw = {"default": ["net"], "net": ["dep:tokio"]}
        assert classify(dependencies, raw)[0].status == FeatureStatus.ENABLED

    def test_optional_without_default_is_disabled(self):
        dependencies = [dep("tokio", optional=True)]
        assert classify(dependencies, {})[0].status == FeatureStatus.DISABLED

    def test_renamed_dependency_matches_manifest_key(self):
        dependencies = [dep("rand_alias", optional=True, package="rand")]
        raw = {"default": ["dep:rand_alias"]}
        result = classify(dependencies, raw)
        assert result[0].dependency.package_name == "rand"
        assert result[0].status == FeatureStatus.ENABLED


class TestDescribeDependency:
    """Text shown for each dependency."""

    def test_registry_dependency_strips_single_caret(self):
        assert describe_dependency(dep("serde", req="^1.0.100")) == "serde@1.0.100"
        assert describe_dependency(dep("serde", req="=1.2.3")) == "serde@=1.2.3"
        assert describe_dependency(dep("serde", req=">=1, <2")) == "serde@>=1, <2"

    def test_path_dependency_is_relative(self, tmp_path):
        source = SourceId.for_path(tmp_path / "crates" / "bar")
        text = describe_dependency(dep("bar", source=source, req="*"), cwd=tmp_path)
        assert text == "bar (./crates/bar)"

    def test_git_dependency_shows_url(self):
        source = SourceId.for_git("https://github.com/example/baz", reference=("branch", "main"))
        assert describe_dependency(dep("baz", source=source)) == "baz (https://github.com/example/baz?branch=main)"


def test_relative_location_outside_cwd(tmp_path):
    assert relative_location(tmp_path / "other", tmp_path / "here") == "./../other"
    assert relative_location(tmp_path, tmp_path) == "."
