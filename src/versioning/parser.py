"""Package spec parsing.

Accepts the forms users type on the command line:

- ``name``, ``name@1.2``, ``name@^1.2``, legacy ``name:1.2``
- ``https://host/path#name@1.2`` and ``kind+https://...#name@1.2``
- ``https://host/path/name#1.2`` (name from the last path segment)
"""

import re
from typing import Optional, Tuple
from urllib.parse import urlsplit

from errors import UsageError

from .models import PackageSpec
from .requirement import VersionReq, parse_partial_version

_NAME_RE = re.compile(r"^[A-Za-z0-9_-]*$")
_SOURCE_KINDS = ("registry", "sparse", "git", "path")


def tokenize_rightmost_colon(s: str) -> Tuple[str, Optional[str]]:
    """Return (identifier, spec or None) using the rightmost-colon rule."""
    s = s.strip()
    if ':' not in s:
        return s, None
    parts = s.rsplit(':', 1)
    identifier = parts[0].strip()
    spec_part = parts[1].strip() if len(parts) > 1 else ''
    spec = spec_part if spec_part else None
    return identifier, spec


def _split_name_version(token: str) -> Tuple[str, Optional[str]]:
    if "@" in token:
        name, version = token.split("@", 1)
        return name.strip(), version.strip()
    return tokenize_rightmost_colon(token)


def _parse_version(text: Optional[str], raw: str):
    if text is None:
        return None
    if not text:
        raise UsageError(f"invalid package ID specification `{raw}`: version is empty")
    partial = parse_partial_version(text)
    if partial is not None:
        return partial
    try:
        VersionReq(text)
    except ValueError as exc:
        raise UsageError(f"invalid package ID specification `{raw}`: {exc}") from exc
    return text


def validate_spec(spec: PackageSpec, raw: str) -> PackageSpec:
    """Reject specs that cannot name a package."""
    if not spec.name:
        raise UsageError("package ID specification must have a name")
    if not _NAME_RE.match(spec.name):
        raise UsageError(
            f"invalid package ID specification `{raw}`: invalid character in package name `{spec.name}`"
        )
    return spec


def _parse_url_spec(raw: str) -> PackageSpec:
    kind = None
    text = raw
    prefix, sep, rest = raw.partition("+")
    if sep and prefix in _SOURCE_KINDS and "://" in rest:
        kind, text = prefix, rest
    url, _, fragment = text.partition("#")
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc and parts.scheme != "file":
        raise UsageError(f"invalid package ID specification `{raw}`: invalid url `{url}`")
    last_segment = parts.path.rstrip("/").rsplit("/", 1)[-1] if parts.path else ""

    if not fragment:
        name, version = last_segment, None
    elif "@" in fragment or ":" in fragment:
        name, version = _split_name_version(fragment)
    elif parse_partial_version(fragment) is not None:
        name, version = last_segment, fragment
    else:
        name, version = fragment, None

    return PackageSpec(name=name, version=_parse_version(version, raw), url=url, kind=kind)


def parse_package_spec(raw: str) -> PackageSpec:
    """Parse and validate a package spec typed by the user.

    Raises:
        UsageError: the spec has no name or is malformed.
    """
    raw = raw.strip()
    if "://" in raw:
        spec = _parse_url_spec(raw)
    else:
        name, version = _split_name_version(raw)
        spec = PackageSpec(name=name, version=_parse_version(version, raw))
    return validate_spec(spec, raw)
