"""Registry index clients.

Reads the per-package index files of a registry into ``Summary`` values and
fetches the manifest of one published version:

- sparse HTTP indexes (``sparse+https://...``),
- local registries (an ``index/`` tree next to ``.crate`` archives),
- directory sources (vendored, unpacked packages).

The git index protocol is not supported.
"""
from __future__ import annotations

import hashlib
import io
import json
import logging
import tarfile
from typing import Any, Dict, List, Mapping, Optional

from common.http_client import get_bytes, get_json, robust_get
from common.logging_utils import extra_context, is_debug_enabled, safe_url
from constants import Constants, DepKind, SourceKind
from errors import CredentialsMissingError, TransportError, UsageError
from sources.source_id import SourceId
from versioning.models import (
    Dependency,
    PackageId,
    ResolvedPackage,
    Summary,
    build_feature_map,
)
from workspace.manifest import package_from_manifest, package_metadata

from .auth import registry_token

logger = logging.getLogger(__name__)

try:
    import tomllib as toml  # type: ignore
except ImportError:  # Python < 3.11
    import tomli as toml  # type: ignore


def index_path(name: str) -> str:
    """Relative path of a package's index file (``se/rd/serde``)."""
    lower = name.lower()
    if len(lower) == 1:
        return f"1/{lower}"
    if len(lower) == 2:
        return f"2/{lower}"
    if len(lower) == 3:
        return f"3/{lower[0]}/{lower}"
    return f"{lower[0:2]}/{lower[2:4]}/{lower}"


def _prefix(name: str) -> str:
    if len(name) <= 2:
        return str(len(name))
    if len(name) == 3:
        return f"3/{name[0]}"
    return f"{name[0:2]}/{name[2:4]}"


def download_url(dl: str, name: str, version: str, checksum: Optional[str]) -> str:
    """Expand the ``dl`` template of a registry's ``config.json``."""
    if not any(marker in dl for marker in Constants.DL_TEMPLATE_MARKERS):
        return f"{dl.rstrip('/')}/{name}/{version}/download"
    return (
        dl.replace("{crate}", name)
        .replace("{version}", version)
        .replace("{prefix}", _prefix(name))
        .replace("{lowerprefix}", _prefix(name).lower())
        .replace("{sha256-checksum}", checksum or "")
    )


def _dependency_from_index(raw: Mapping[str, Any], source: SourceId) -> Dependency:
    registry = raw.get("registry")
    if registry:
        dep_source = SourceId.for_registry(registry)
        if dep_source == SourceId.crates_io():
            dep_source = SourceId.crates_io()
    elif source.kind == SourceKind.SPARSE and source.is_crates_io:
        dep_source = SourceId.crates_io()
    else:
        dep_source = source
    kind = raw.get("kind") or DepKind.NORMAL.value
    return Dependency(
        name_in_toml=raw["name"],
        package_name=raw.get("package") or raw["name"],
        req=raw.get("req") or "*",
        kind=DepKind(kind),
        optional=bool(raw.get("optional", False)),
        source=dep_source,
        target=raw.get("target"),
        features=tuple(raw.get("features") or ()),
        default_features=bool(raw.get("default_features", True)),
    )


def parse_index_line(line: str, source: SourceId) -> Summary:
    """Parse one JSON line of an index file.

    Raises:
        ValueError: malformed JSON or missing fields.
    """
    raw = json.loads(line)
    dependencies = [_dependency_from_index(d, source) for d in raw.get("deps") or []]
    features: Dict[str, List[str]] = dict(raw.get("features") or {})
    features.update(raw.get("features2") or {})
    return Summary(
        package_id=PackageId(name=raw["name"], version=raw["vers"], source=source),
        dependencies=tuple(dependencies),
        features=build_feature_map(features, dependencies),
        rust_version=raw.get("rust_version"),
        yanked=bool(raw.get("yanked", False)),
        checksum=raw.get("cksum"),
        links=raw.get("links"),
    )


def parse_index_file(text: str, source: SourceId) -> List[Summary]:
    """Parse every non-empty line; unreadable lines are skipped."""
    summaries = []
    for line in text.splitlines():
        if not line.strip():
            continue
        try:
            summaries.append(parse_index_line(line, source))
        except (ValueError, KeyError, TypeError) as exc:
            logger.debug("Skipping malformed index line in %s: %s", source, exc)
    return summaries


def manifest_from_archive(data: bytes, name: str, version: str) -> Dict[str, Any]:
    """Read ``<name>-<version>/Cargo.toml`` out of a ``.crate`` archive.

    Raises:
        TransportError: the archive is corrupt or has no manifest.
    """
    member = f"{name}-{version}/{Constants.MANIFEST_FILE}"
    try:
        with tarfile.open(fileobj=io.BytesIO(data), mode="r:gz") as archive:
            handle = archive.extractfile(member)
            if handle is None:
                raise TransportError(f"`{member}` is not a file in the downloaded archive")
            return toml.loads(handle.read().decode("utf-8"))
    except KeyError as exc:
        raise TransportError(f"archive for `{name}@{version}` has no `{member}`") from exc
    except (tarfile.TarError, OSError, UnicodeDecodeError, toml.TOMLDecodeError) as exc:
        raise TransportError(f"failed to unpack `{name}@{version}`: {exc}") from exc


def verify_checksum(data: bytes, expected: Optional[str], package_id: PackageId) -> None:
    if not expected:
        return
    actual = hashlib.sha256(data).hexdigest()
    if actual != expected:
        raise TransportError(
            f"failed to verify the checksum of `{package_id}` from {package_id.source}"
        )


def _resolved_from_archive(data: bytes, summary: Summary) -> ResolvedPackage:
    doc = manifest_from_archive(data, summary.name, summary.version)
    metadata = package_metadata(doc.get("package") or {})
    return ResolvedPackage(summary=summary, metadata=metadata)


class RegistryIndex:
    """Common interface of the index clients."""

    def __init__(self, ctx, source: SourceId):
        self.ctx = ctx
        self.source = source

    def query(self, name: str) -> List[Summary]:
        """All summaries the registry lists for ``name`` (empty when unknown)."""
        raise NotImplementedError

    def fetch_package(self, summary: Summary) -> ResolvedPackage:
        """Manifest metadata of one published version."""
        raise NotImplementedError

    def config(self) -> Dict[str, Any]:
        """The registry's ``config.json``; empty when it has none."""
        return {}


class SparseIndex(RegistryIndex):
    """HTTP index where every package is a separate file."""

    def __init__(self, ctx, source: SourceId):
        super().__init__(ctx, source)
        self._config: Optional[Dict[str, Any]] = None
        self._announced = False

    def _announce(self) -> None:
        if not self._announced:
            if self.source.is_crates_io:
                logger.info("Updating crates.io index")
            else:
                logger.info("Updating `%s` index", self.source.display_registry_name())
            self._announced = True

    def _auth_headers(self) -> Dict[str, str]:
        if not self.config().get("auth-required"):
            return {}
        try:
            return {"Authorization": registry_token(self.ctx, self.source)}
        except CredentialsMissingError as exc:
            raise TransportError(f"registry `{self.source.url}` requires authentication: {exc}") from exc

    def config(self) -> Dict[str, Any]:
        if self._config is None:
            self._announce()
            url = self.source.url + Constants.INDEX_CONFIG_FILE
            status, parsed = get_json(url, offline=self.ctx.offline, context="registry index")
            if status == 401 and self.source.is_remote_registry:
                status, parsed = get_json(
                    url,
                    headers={"Authorization": registry_token(self.ctx, self.source)},
                    offline=self.ctx.offline,
                    context="registry index",
                )
            if status != 200 or not isinstance(parsed, dict):
                raise TransportError(f"failed to get `{Constants.INDEX_CONFIG_FILE}` from `{safe_url(url)}` (HTTP {status})")
            self._config = parsed
        return self._config

    def query(self, name: str) -> List[Summary]:
        self._announce()
        headers = self._auth_headers()
        url = self.source.url + index_path(name)
        status, _, body = robust_get(url, headers=headers, offline=self.ctx.offline, context="registry index")
        if status in Constants.INDEX_NOT_FOUND_STATUSES:
            logger.debug("Index has no entry for %s (HTTP %s)", name, status)
            return []
        if status != 200:
            raise TransportError(f"failed to fetch `{safe_url(url)}`: HTTP {status}")
        summaries = parse_index_file(body.decode("utf-8", errors="replace"), self.source)
        if is_debug_enabled(logger):
            logger.debug(
                "Index query complete",
                extra=extra_context(
                    event="index_query",
                    component="registry_index",
                    action="query",
                    target=name,
                    outcome="found" if summaries else "empty",
                    count=len(summaries),
                ),
            )
        return summaries

    def fetch_package(self, summary: Summary) -> ResolvedPackage:
        dl = self.config().get("dl")
        if not dl:
            raise TransportError(f"registry `{self.source.url}` does not define a download URL")
        url = download_url(dl, summary.name, summary.version, summary.checksum)
        logger.info("Downloading %s v%s", summary.name, summary.version)
        data = get_bytes(url, headers=self._auth_headers(), offline=self.ctx.offline, context="registry download")
        verify_checksum(data, summary.checksum, summary.package_id)
        return _resolved_from_archive(data, summary)


class LocalRegistryIndex(RegistryIndex):
    """Registry on disk: ``index/`` plus ``<name>-<version>.crate`` files."""

    def __init__(self, ctx, source: SourceId):
        super().__init__(ctx, source)
        self.root = source.local_path()

    def query(self, name: str) -> List[Summary]:
        path = self.root / "index" / index_path(name)
        if not path.is_file():
            return []
        return parse_index_file(path.read_text(encoding="utf-8"), self.source)

    def fetch_package(self, summary: Summary) -> ResolvedPackage:
        path = self.root / f"{summary.name}-{summary.version}.crate"
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise TransportError(f"failed to read `{path}`: {exc}") from exc
        verify_checksum(data, summary.checksum, summary.package_id)
        return _resolved_from_archive(data, summary)


class DirectorySource(RegistryIndex):
    """Vendored packages, one unpacked directory per version."""

    def __init__(self, ctx, source: SourceId):
        super().__init__(ctx, source)
        self.root = source.local_path()
        self._packages: Optional[List[ResolvedPackage]] = None

    def _load(self) -> List[ResolvedPackage]:
        if self._packages is None:
            packages = []
            if self.root.is_dir():
                for child in sorted(self.root.iterdir()):
                    manifest = child / Constants.MANIFEST_FILE
                    if not manifest.is_file():
                        continue
                    try:
                        with open(manifest, "rb") as fh:
                            doc = toml.load(fh)
                        packages.append(package_from_manifest(doc, manifest, self.source, ctx=self.ctx))
                    except (OSError, toml.TOMLDecodeError, UsageError) as exc:
                        logger.warning("Skipping vendored package at %s: %s", child, exc)
            self._packages = packages
        return self._packages

    def query(self, name: str) -> List[Summary]:
        return [p.summary for p in self._load() if p.summary.name == name]

    def fetch_package(self, summary: Summary) -> ResolvedPackage:
        for package in self._load():
            if package.package_id == summary.package_id:
                return package
        raise TransportError(f"`{summary.package_id}` is not vendored in {self.source}")


def open_index(ctx, source: SourceId) -> RegistryIndex:
    """Client able to read ``source``.

    Raises:
        TransportError: git-protocol indexes.
        UsageError: sources that are not registries.
    """
    if source.kind == SourceKind.SPARSE:
        return SparseIndex(ctx, source)
    if source.kind == SourceKind.LOCAL_REGISTRY:
        return LocalRegistryIndex(ctx, source)
    if source.kind == SourceKind.DIRECTORY:
        return DirectorySource(ctx, source)
    if source.kind == SourceKind.REGISTRY:
        raise TransportError(
            f"git index protocol is not supported for {source} ({safe_url(source.url)}); "
            "use a `sparse+` index URL instead"
        )
    raise UsageError(f"cannot query packages from {source}: not a registry")
