"""Tests for manifest parsing, lock files and workspace pins."""

import textwrap
from pathlib import Path
from unittest.mock import patch

import pytest

from constants import DepKind
from errors import UsageError
from sources.source_id import SourceId
from versioning.models import Dep
from versioning.parser import parse_package_spec
from workspace.loader import find_manifest, find_pin, load_workspace, target_rust_version
from workspace.lockfile import parse_lockfile
from workspace.manifest import WorkspaceDefaults, collect_dependencies, package_from_manifest

try:
    import tomllib as toml  # type: ignore
except ImportError:  # Python < 3.11
    import tomli as toml  # type: ignore


def write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(text), encoding="utf-8")
    return path


CRATES_IO_LOCK = 'source = "registry+https://github.com/rust-lang/crates.io-index"'


@pytest.fixture
def workspace_dir(tmp_path):
    """Two members under crates/, one excluded directory and a lock file."""
    write(tmp_path / "Cargo.toml", """
        [workspace]
        members = ["crates/*"]
        exclude = ["crates/skip"]

        [workspace.package]
        version = "0.3.0"
        rust-version = "1.65"

        [workspace.dependencies]
        serde = { version = "1.0.100", features = ["std"] }
    """)
    write(tmp_path / "crates" / "app" / "Cargo.toml", """
        [package]
        name = "app"
        version.workspace = true

        [dependencies]
        serde = { workspace = true, features = ["derive"], optional = true }
        util = { path = "../util" }
        rand = "0.7"
    """)
    write(tmp_path / "crates" / "util" / "Cargo.toml", """
        [package]
        name = "util"
        version = "0.1.0"
        rust-version = "1.70"

        [dependencies]
        rand = "0.8"
    """)
    write(tmp_path / "crates" / "skip" / "Cargo.toml", """
        [package]
        name = "skip"
        version = "9.9.9"
    """)
    write(tmp_path / "Cargo.lock", f"""
        version = 3

        [[package]]
        name = "app"
        version = "0.3.0"
        dependencies = ["rand 0.7.3", "serde", "util"]

        [[package]]
        name = "util"
        version = "0.1.0"
        dependencies = ["rand 0.8.5"]

        [[package]]
        name = "rand"
        version = "0.7.3"
        {CRATES_IO_LOCK}

        [[package]]
        name = "rand"
        version = "0.8.5"
        {CRATES_IO_LOCK}

        [[package]]
        name = "serde"
        version = "1.0.190"
        {CRATES_IO_LOCK}

        [[package]]
        name = "regex"
        version = "1.10.0"
        {CRATES_IO_LOCK}
    """)
    return tmp_path


class TestManifest:
    """Manifest tables to packages."""

    def test_dependency_sections(self, tmp_path):
        doc = toml.loads(textwrap.dedent("""
            [dependencies]
            rng = { package = "rand", version = "0.8", default-features = false }
            local = { path = "local" }
            remote = { git = "https://github.com/example/remote", tag = "v1" }

            [build_dependencies]
            cc = "1"

            [target.'cfg(unix)'.dependencies]
            libc = "0.2"
        """))
        deps = {d.name_in_toml: d for d in collect_dependencies(doc, tmp_path)}
        assert deps["rng"].package_name == "rand"
        assert deps["rng"].default_features is False
        assert deps["local"].source == SourceId.for_path(tmp_path / "local")
        assert deps["remote"].source.reference == ("tag", "v1")
        assert deps["cc"].kind == DepKind.BUILD
        assert deps["libc"].target == "cfg(unix)"
        assert deps["libc"].source.is_crates_io

    def test_named_registry_requires_configuration(self, tmp_path, make_ctx):
        doc = {"dependencies": {"x": {"version": "1", "registry": "alt"}}}
        with pytest.raises(UsageError):
            collect_dependencies(doc, tmp_path)
        ctx = make_ctx(config={"registries": {"alt": {"index": "sparse+https://alt.example.com/"}}})
        (dep,) = collect_dependencies(doc, tmp_path, ctx=ctx)
        assert dep.source == SourceId.for_registry("sparse+https://alt.example.com/")

    def test_package_defaults(self, tmp_path):
        doc = {"package": {"name": "bare"}, "features": {"default": ["std"], "std": []}}
        package = package_from_manifest(doc, tmp_path / "Cargo.toml", SourceId.for_path(tmp_path))
        assert package.package_id.version == "0.0.0"
        assert package.metadata.license is None
        assert set(package.features) == {"default", "std"}

    def test_missing_package_table(self, tmp_path):
        with pytest.raises(UsageError, match="no `\\[package\\]` section"):
            package_from_manifest({"workspace": {}}, tmp_path / "Cargo.toml", SourceId.for_path(tmp_path))

    def test_inheritance_without_workspace_value(self, tmp_path):
        doc = {"package": {"name": "x", "license": {"workspace": True}}}
        defaults = WorkspaceDefaults(root=tmp_path)
        with pytest.raises(UsageError, match="workspace.package.license"):
            package_from_manifest(doc, tmp_path / "Cargo.toml", SourceId.for_path(tmp_path), defaults)


def test_parse_lockfile(workspace_dir):
    lock = parse_lockfile(workspace_dir / "Cargo.lock")
    assert [e.version for e in lock.find("rand")] == ["0.7.3", "0.8.5"]
    assert lock.find("app")[0].source is None
    assert lock.find("serde")[0].source == SourceId.crates_io()
    assert [(e.name, e.version) for e in lock.dependencies_of("app", "0.3.0")] == [
        ("rand", "0.7.3"), ("serde", "1.0.190"), ("util", "0.1.0"),
    ]


def test_malformed_lock_entry(tmp_path):
    write(tmp_path / "Cargo.lock", """
        [[package]]
        name = "broken"
    """)
    with pytest.raises(UsageError):
        parse_lockfile(tmp_path / "Cargo.lock")


class TestLoadWorkspace:
    """Discovery of members, current member and lock file."""

    def test_members(self, workspace_dir, make_ctx):
        ws = load_workspace(make_ctx(cwd=workspace_dir / "crates" / "app" / "src"))
        assert ws.root == workspace_dir.resolve()
        assert [m.package_id.name for m in ws.members] == ["app", "util"]
        assert ws.current.package_id.name == "app"
        assert ws.lock is not None

    def test_inherited_fields(self, workspace_dir, make_ctx):
        ws = load_workspace(make_ctx(cwd=workspace_dir))
        app = ws.members[0].package
        assert app.package_id.version == "0.3.0"
        serde = next(d for d in app.dependencies if d.package_name == "serde")
        assert serde.req == "1.0.100"
        assert serde.features == ("std", "derive")
        assert serde.optional
        assert app.features["serde"] == [Dep("serde")]
        assert ws.current is None

    def test_no_manifest(self, tmp_path, make_ctx):
        assert find_manifest(tmp_path) is None
        assert load_workspace(make_ctx(cwd=tmp_path)) is None


class TestFindPin:
    """Which version the workspace already uses."""

    def test_member_wins(self, workspace_dir, make_ctx):
        ws = load_workspace(make_ctx(cwd=workspace_dir))
        pin = find_pin(ws, parse_package_spec("util"))
        assert pin.is_member
        assert pin.package_id.version == "0.1.0"
        assert pin.package is not None

    def test_current_member_dependencies_first(self, workspace_dir, make_ctx):
        ws = load_workspace(make_ctx(cwd=workspace_dir / "crates" / "util"))
        assert find_pin(ws, parse_package_spec("rand")).package_id.version == "0.8.5"
        ws = load_workspace(make_ctx(cwd=workspace_dir / "crates" / "app"))
        assert find_pin(ws, parse_package_spec("rand")).package_id.version == "0.7.3"

    def test_any_member_dependency(self, workspace_dir, make_ctx):
        ws = load_workspace(make_ctx(cwd=workspace_dir))
        pin = find_pin(ws, parse_package_spec("rand"))
        assert pin.package_id.version == "0.8.5"
        assert not pin.is_member

    def test_version_in_spec_filters(self, workspace_dir, make_ctx):
        ws = load_workspace(make_ctx(cwd=workspace_dir / "crates" / "app"))
        assert find_pin(ws, parse_package_spec("rand@0.8")).package_id.version == "0.8.5"

    def test_any_lock_entry(self, workspace_dir, make_ctx):
        ws = load_workspace(make_ctx(cwd=workspace_dir))
        pin = find_pin(ws, parse_package_spec("regex"))
        assert pin.package_id.source == SourceId.crates_io()

    def test_unknown(self, workspace_dir, make_ctx):
        ws = load_workspace(make_ctx(cwd=workspace_dir))
        assert find_pin(ws, parse_package_spec("tokio")) is None
        assert find_pin(None, parse_package_spec("tokio")) is None


class TestTargetRustVersion:
    """Toolchain version used to filter candidates."""

    def test_member_then_workspace(self, workspace_dir, make_ctx):
        ws = load_workspace(make_ctx(cwd=workspace_dir / "crates" / "util"))
        assert target_rust_version(make_ctx(), ws) == "1.70"
        ws = load_workspace(make_ctx(cwd=workspace_dir / "crates" / "app"))
        assert target_rust_version(make_ctx(), ws) == "1.65"

    @patch("workspace.loader.rustc_version")
    def test_installed_toolchain(self, mock_rustc, make_ctx):
        mock_rustc.return_value = "1.75.0"
        assert target_rust_version(make_ctx(env={"RUSTC": "rustc-nightly"}), None) == "1.75.0"
        mock_rustc.assert_called_once_with({"RUSTC": "rustc-nightly"})
