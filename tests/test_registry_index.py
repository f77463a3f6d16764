"""Tests for registry index clients."""

import hashlib
import io
import json
import tarfile
from unittest.mock import patch

import pytest

from constants import DepKind, SourceKind
from errors import TransportError, UsageError
from registry.index import (
    DirectorySource,
    LocalRegistryIndex,
    SparseIndex,
    download_url,
    index_path,
    open_index,
    parse_index_file,
    parse_index_line,
)
from sources.source_id import SourceId
from versioning.models import Dep, DepFeature

ALT = SourceId.for_registry("sparse+https://alt.example.com/index/", name="alt")


def index_line(name="foo", vers="1.0.0", **extra):
    entry = {"name": name, "vers": vers, "deps": [], "features": {}, "cksum": "00", "yanked": False}
    entry.update(extra)
    return json.dumps(entry)


def make_crate(name, version, manifest):
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as archive:
        data = manifest.encode("utf-8")
        info = tarfile.TarInfo(f"{name}-{version}/Cargo.toml")
        info.size = len(data)
        archive.addfile(info, io.BytesIO(data))
    return buf.getvalue()


FOO_MANIFEST = """
[package]
name = "foo"
version = "1.0.0"
description = "A foo"
license = "MIT"
keywords = ["a", "b"]
rust-version = "1.70"
"""


class TestLayout:
    """Index paths and download URLs."""

    def test_index_path(self):
        assert index_path("a") == "1/a"
        assert index_path("ab") == "2/ab"
        assert index_path("abc") == "3/a/abc"
        assert index_path("Serde") == "se/rd/serde"

    def test_download_url_without_markers(self):
        url = download_url("https://crates.io/api/v1/crates", "serde", "1.0.0", None)
        assert url == "https://crates.io/api/v1/crates/serde/1.0.0/download"

    def test_download_url_template(self):
        url = download_url(
            "https://dl.example.com/{lowerprefix}/{crate}/{crate}-{version}.crate?sum={sha256-checksum}",
            "Serde",
            "1.0.0",
            "abc",
        )
        assert url == "https://dl.example.com/se/rd/Serde/Serde-1.0.0.crate?sum=abc"


class TestParseIndex:
    """Index lines to summaries."""

    def test_dependencies_and_features(self):
        line = index_line(
            deps=[
                {"name": "serde", "req": "^1.0", "features": ["derive"], "optional": True,
                 "default_features": False, "target": None, "kind": "normal", "registry": None},
                {"name": "rng", "package": "rand", "req": "^0.8", "features": [], "optional": False,
                 "default_features": True, "target": "cfg(unix)", "kind": "build",
                 "registry": "https://github.com/rust-lang/crates.io-index"},
            ],
            features={"default": ["std"], "std": []},
            features2={"derive": ["dep:serde", "serde?/derive"]},
            rust_version="1.60",
        )
        summary = parse_index_line(line, ALT)
        assert summary.name == "foo"
        assert summary.rust_version == "1.60"
        serde, rng = summary.dependencies
        assert serde.source == ALT
        assert serde.optional and not serde.default_features
        assert rng.package_name == "rand"
        assert rng.name_in_toml == "rng"
        assert rng.kind == DepKind.BUILD
        assert rng.source.is_crates_io
        assert summary.features["derive"] == [Dep("serde"), DepFeature("serde", "derive", weak=True)]

    def test_implicit_feature_for_optional_dependency(self):
        line = index_line(deps=[{"name": "log", "req": "^0.4", "optional": True}])
        summary = parse_index_line(line, ALT)
        assert summary.features == {"log": [Dep("log")]}

    def test_malformed_lines_are_skipped(self):
        text = "\n".join([index_line(vers="1.0.0"), "{not json", "", index_line(vers="1.1.0", yanked=True)])
        summaries = parse_index_file(text, ALT)
        assert [(s.version, s.yanked) for s in summaries] == [("1.0.0", False), ("1.1.0", True)]


class TestSparseIndex:
    """HTTP index access with the transport mocked."""

    @patch("registry.index.robust_get")
    def test_query(self, mock_get, make_ctx):
        mock_get.return_value = (200, {}, (index_line() + "\n" + index_line(vers="1.1.0")).encode())
        index = SparseIndex(make_ctx(), ALT)
        index._config = {"dl": "https://alt.example.com/dl"}
        summaries = index.query("foo")
        assert [s.version for s in summaries] == ["1.0.0", "1.1.0"]
        assert mock_get.call_args[0][0] == "https://alt.example.com/index/3/f/foo"

    @patch("registry.index.robust_get")
    def test_unknown_package(self, mock_get, make_ctx):
        mock_get.return_value = (404, {}, b"")
        index = SparseIndex(make_ctx(), ALT)
        index._config = {}
        assert index.query("missing") == []

    @patch("registry.index.robust_get")
    def test_unexpected_status_is_transport_error(self, mock_get, make_ctx):
        mock_get.return_value = (403, {}, b"")
        index = SparseIndex(make_ctx(), ALT)
        index._config = {}
        with pytest.raises(TransportError):
            index.query("foo")

    @patch("registry.index.get_json")
    def test_config_is_fetched_once(self, mock_get_json, make_ctx):
        mock_get_json.return_value = (200, {"dl": "https://alt.example.com/dl", "api": "https://alt.example.com"})
        index = SparseIndex(make_ctx(), ALT)
        assert index.config()["api"] == "https://alt.example.com"
        index.config()
        assert mock_get_json.call_count == 1
        assert mock_get_json.call_args[0][0] == "https://alt.example.com/index/config.json"

    @patch("registry.index.get_bytes")
    def test_fetch_package_verifies_checksum(self, mock_get_bytes, make_ctx):
        data = make_crate("foo", "1.0.0", FOO_MANIFEST)
        mock_get_bytes.return_value = data
        line = index_line(cksum=hashlib.sha256(data).hexdigest())
        summary = parse_index_line(line, ALT)
        index = SparseIndex(make_ctx(), ALT)
        index._config = {"dl": "https://alt.example.com/dl"}
        package = index.fetch_package(summary)
        assert package.metadata.description == "A foo"
        assert package.metadata.keywords == ("a", "b")
        assert mock_get_bytes.call_args[0][0] == "https://alt.example.com/dl/foo/1.0.0/download"

        bad = parse_index_line(index_line(cksum="0" * 64), ALT)
        with pytest.raises(TransportError, match="checksum"):
            index.fetch_package(bad)


class TestLocalSources:
    """Registries and vendored packages on disk."""

    def test_local_registry(self, tmp_path, make_ctx):
        data = make_crate("foo", "1.0.0", FOO_MANIFEST)
        (tmp_path / "index" / "3" / "f").mkdir(parents=True)
        line = index_line(cksum=hashlib.sha256(data).hexdigest())
        (tmp_path / "index" / "3" / "f" / "foo").write_text(line + "\n", encoding="utf-8")
        (tmp_path / "foo-1.0.0.crate").write_bytes(data)

        source = SourceId.for_local_registry(tmp_path)
        index = LocalRegistryIndex(make_ctx(), source)
        summaries = index.query("foo")
        assert [s.version for s in summaries] == ["1.0.0"]
        assert index.fetch_package(summaries[0]).metadata.license == "MIT"
        assert index.query("bar") == []

    def test_directory_source(self, tmp_path, make_ctx):
        vendor = tmp_path / "vendor"
        (vendor / "foo").mkdir(parents=True)
        (vendor / "foo" / "Cargo.toml").write_text(FOO_MANIFEST, encoding="utf-8")
        (vendor / "notes").mkdir()

        source = SourceId.for_directory(vendor)
        index = DirectorySource(make_ctx(), source)
        summaries = index.query("foo")
        assert [s.version for s in summaries] == ["1.0.0"]
        assert index.fetch_package(summaries[0]).metadata.rust_version == "1.70"


class TestOpenIndex:
    """Client selection by source kind."""

    def test_sparse(self, make_ctx):
        assert isinstance(open_index(make_ctx(), ALT), SparseIndex)

    def test_git_index_is_unsupported(self, make_ctx):
        with pytest.raises(TransportError, match="git index protocol"):
            open_index(make_ctx(), SourceId.crates_io())

    def test_path_is_not_a_registry(self, make_ctx, tmp_path):
        source = SourceId.for_path(tmp_path)
        assert source.kind == SourceKind.PATH
        with pytest.raises(UsageError):
            open_index(make_ctx(), source)
