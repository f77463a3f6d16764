"""Identity of a place packages are retrieved from.

Two ``SourceId`` values are equal when they denote the same location: the
registry name a user gave it is display-only and ignored by comparison.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
from urllib.parse import parse_qsl, quote, unquote, urlsplit, urlunsplit

from constants import Constants, SourceKind
from errors import UsageError

_GIT_REFERENCE_KEYS = ("branch", "tag", "rev")


def canonicalize_url(url: str, kind: SourceKind) -> str:
    """Normalize a URL for identity comparison.

    Lowercases scheme and host, drops trailing slashes and, for git
    sources, a trailing ``.git`` and the case of GitHub paths.
    """
    parts = urlsplit(url.strip())
    scheme = parts.scheme.lower()
    netloc = parts.netloc.lower()
    path = parts.path.rstrip("/")
    if kind == SourceKind.GIT:
        if path.endswith(".git"):
            path = path[: -len(".git")]
        if netloc == "github.com":
            path = path.lower()
    return urlunsplit((scheme, netloc, path, "", ""))


def _file_url(path: Path) -> str:
    return "file://" + quote(str(path.resolve()).replace(os.sep, "/"))


@dataclass(frozen=True)
class SourceId:
    """A registry, path, or git location.

    Attributes:
        kind: Source kind.
        canonical: Normalized URL used for equality.
        url: URL as given (sparse registries keep their trailing slash).
        name: Registry name from configuration, display-only.
        reference: Git reference as ``(kind, value)`` when not the default branch.
        precise: Locked git revision, display-only.
    """
    kind: SourceKind
    canonical: str
    url: str = field(compare=False)
    name: Optional[str] = field(default=None, compare=False)
    reference: Optional[tuple] = None
    precise: Optional[str] = field(default=None, compare=False)

    # -- constructors -----------------------------------------------------

    @classmethod
    def _new(cls, kind: SourceKind, url: str, **kwargs) -> "SourceId":
        return cls(kind=kind, canonical=canonicalize_url(url, kind), url=url, **kwargs)

    @classmethod
    def for_registry(cls, url: str, name: Optional[str] = None) -> "SourceId":
        """Registry index URL; a ``sparse+`` prefix selects the HTTP protocol."""
        url = url.strip()
        if url.startswith("sparse+"):
            url = url[len("sparse+"):]
            if not url.endswith("/"):
                url += "/"
            return cls._new(SourceKind.SPARSE, url, name=name)
        if url.startswith("registry+"):
            url = url[len("registry+"):]
        if not urlsplit(url).scheme:
            raise UsageError(f"invalid url `{url}`: relative URL without a base")
        return cls._new(SourceKind.REGISTRY, url, name=name)

    @classmethod
    def crates_io(cls) -> "SourceId":
        return cls._new(SourceKind.REGISTRY, Constants.CRATES_IO_INDEX, name=Constants.CRATES_IO_REGISTRY)

    @classmethod
    def crates_io_sparse(cls) -> "SourceId":
        return cls._new(SourceKind.SPARSE, Constants.CRATES_IO_HTTP_INDEX, name=Constants.CRATES_IO_REGISTRY)

    @classmethod
    def alt_registry(cls, ctx, name: str) -> "SourceId":
        """Source of a registry declared under ``[registries.NAME]``."""
        if name == Constants.CRATES_IO_REGISTRY:
            return cls.crates_io()
        return cls.for_registry(ctx.registry_index(name), name=name)

    @classmethod
    def for_path(cls, path: Path) -> "SourceId":
        return cls._new(SourceKind.PATH, _file_url(Path(path)))

    @classmethod
    def for_directory(cls, path: Path, name: Optional[str] = None) -> "SourceId":
        return cls._new(SourceKind.DIRECTORY, _file_url(Path(path)), name=name)

    @classmethod
    def for_local_registry(cls, path: Path, name: Optional[str] = None) -> "SourceId":
        return cls._new(SourceKind.LOCAL_REGISTRY, _file_url(Path(path)), name=name)

    @classmethod
    def for_git(
        cls,
        url: str,
        reference: Optional[tuple] = None,
        precise: Optional[str] = None,
    ) -> "SourceId":
        return cls._new(SourceKind.GIT, url, reference=reference, precise=precise)

    @classmethod
    def from_lock_string(cls, text: str) -> "SourceId":
        """Parse a Cargo.lock ``source`` value."""
        kind, sep, rest = text.partition("+")
        if not sep:
            raise UsageError(f"invalid source `{text}`")
        if kind == "registry":
            source = cls.for_registry(rest)
            if source.canonical == canonicalize_url(Constants.CRATES_IO_INDEX, SourceKind.REGISTRY):
                return cls.crates_io()
            return source
        if kind == "sparse":
            source = cls.for_registry(text)
            if source == cls.crates_io_sparse():
                return cls.crates_io_sparse()
            return source
        if kind == "git":
            base, _, precise = rest.partition("#")
            parts = urlsplit(base)
            reference = None
            for key, value in parse_qsl(parts.query):
                if key in _GIT_REFERENCE_KEYS:
                    reference = (key, value)
            url = urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))
            return cls.for_git(url, reference=reference, precise=precise or None)
        if kind == "path":
            return cls.for_path(Path(unquote(urlsplit(rest).path)))
        if kind == "directory":
            return cls.for_directory(Path(unquote(urlsplit(rest).path)))
        if kind == "local-registry":
            return cls.for_local_registry(Path(unquote(urlsplit(rest).path)))
        raise UsageError(f"unsupported source protocol: {kind}")

    # -- queries ----------------------------------------------------------

    @property
    def is_crates_io(self) -> bool:
        return self in (SourceId.crates_io(), SourceId.crates_io_sparse())

    @property
    def is_registry(self) -> bool:
        return self.kind in (SourceKind.REGISTRY, SourceKind.SPARSE, SourceKind.LOCAL_REGISTRY)

    @property
    def is_remote_registry(self) -> bool:
        return self.kind in (SourceKind.REGISTRY, SourceKind.SPARSE)

    @property
    def is_path(self) -> bool:
        return self.kind == SourceKind.PATH

    @property
    def is_git(self) -> bool:
        return self.kind == SourceKind.GIT

    def local_path(self) -> Optional[Path]:
        """Filesystem location for path, directory and local-registry sources."""
        if self.kind in (SourceKind.PATH, SourceKind.DIRECTORY, SourceKind.LOCAL_REGISTRY):
            return Path(unquote(urlsplit(self.url).path))
        return None

    def display_registry_name(self) -> str:
        if self.is_crates_io:
            return Constants.CRATES_IO_REGISTRY
        return self.name or self.url

    def __str__(self) -> str:
        if self.is_registry:
            return f"registry `{self.display_registry_name()}`"
        if self.kind == SourceKind.GIT:
            text = self.url
            if self.reference:
                text += f"?{self.reference[0]}={self.reference[1]}"
            if self.precise:
                text += f"#{self.precise}"
            return text
        if self.kind == SourceKind.DIRECTORY:
            return f"dir {self.local_path()}"
        return str(self.local_path())
