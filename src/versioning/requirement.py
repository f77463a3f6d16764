"""Version requirement handling on top of ``semantic_version``.

Requirements follow the package manager's syntax: comma-separated
comparators where a bare version means a caret requirement (``1.2`` is
``^1.2``) and ``x``/``*`` act as wildcards.
"""

import re
from typing import List, Optional, Tuple

import semantic_version

from .models import PartialVersion

_PARTIAL_RE = re.compile(
    r"^(?P<major>0|[1-9]\d*)"
    r"(?:\.(?P<minor>0|[1-9]\d*)"
    r"(?:\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<pre>[0-9A-Za-z.-]+))?"
    r"(?:\+(?P<build>[0-9A-Za-z.-]+))?)?)?$"
)
_COMPARATOR_RE = re.compile(r"^(?P<op>>=|<=|==|=|>|<|~|\^)?\s*(?P<version>\S+)$")


def _normalize_wildcards(version: str) -> str:
    """Spell ``x``/``X`` wildcard components as ``*`` (``1.x`` -> ``1.*``)."""
    m = re.match(r"^([^-+]*)(.*)$", version)
    core, tail = m.group(1), m.group(2)
    parts = ["*" if part in ("x", "X") else part for part in core.split(".")]
    return ".".join(parts) + tail


def parse_partial_version(text: str) -> Optional[PartialVersion]:
    """Parse ``1``, ``1.2`` or a full version; None when ``text`` is not one."""
    m = _PARTIAL_RE.match(text.strip())
    if not m:
        return None
    minor = m.group("minor")
    patch = m.group("patch")
    return PartialVersion(
        major=int(m.group("major")),
        minor=int(minor) if minor is not None else None,
        patch=int(patch) if patch is not None else None,
        pre=m.group("pre"),
        build=m.group("build"),
    )


def parse_version(text: str) -> semantic_version.Version:
    """Parse a full semantic version; raises ValueError when invalid."""
    return semantic_version.Version(text.strip())


def version_key(text: str) -> semantic_version.Version:
    """Sort key following semver precedence, ignoring build metadata."""
    return parse_version(text).truncate("prerelease")


def partial_matches(partial: PartialVersion, version: str) -> bool:
    """Whether ``version`` agrees with every component given in ``partial``."""
    try:
        ver = parse_version(version)
    except ValueError:
        return False
    if partial.major != ver.major:
        return False
    if partial.minor is not None and partial.minor != ver.minor:
        return False
    if partial.patch is not None and partial.patch != ver.patch:
        return False
    if partial.pre is None:
        if ver.prerelease:
            return False
    elif partial.pre != ".".join(ver.prerelease):
        return False
    if partial.build is not None and partial.build != ".".join(ver.build):
        return False
    return True


class VersionReq:
    """A parsed version requirement.

    Keeps the comparators as written (with the implicit caret made explicit)
    for display, and a ``semantic_version.SimpleSpec`` for matching.
    """

    def __init__(self, text: Optional[str]):
        self.raw = (text or "").strip() or "*"
        self.comparators: List[Tuple[str, str]] = self._parse(self.raw)
        self._spec = self._build_spec(self.comparators)

    @staticmethod
    def _parse(raw: str) -> List[Tuple[str, str]]:
        comparators = []
        for block in raw.split(","):
            block = block.strip()
            if not block:
                raise ValueError(f"invalid version requirement `{raw}`: empty comparator")
            m = _COMPARATOR_RE.match(block)
            if not m:
                raise ValueError(f"invalid version requirement `{raw}`: `{block}`")
            op = m.group("op") or ""
            version = _normalize_wildcards(m.group("version"))
            if op == "==":
                op = "="
            if not op and "*" not in version:
                op = "^"
            comparators.append((op, version))
        return comparators

    @staticmethod
    def _build_spec(comparators: List[Tuple[str, str]]) -> Optional[semantic_version.SimpleSpec]:
        if comparators == [("", "*")]:
            return None
        blocks = []
        for op, version in comparators:
            simple_op = "==" if op in ("", "=") else op
            blocks.append(f"{simple_op}{version}")
        return semantic_version.SimpleSpec(",".join(blocks))

    def matches(self, version: str) -> bool:
        """Whether the full version string ``version`` satisfies this requirement."""
        try:
            ver = parse_version(version)
        except ValueError:
            return False
        if self._spec is None:
            return not ver.prerelease
        if not self._spec.match(ver):
            return False
        return not ver.prerelease or self._allows_prerelease_of(ver)

    def _allows_prerelease_of(self, ver: semantic_version.Version) -> bool:
        """A prerelease only matches a comparator naming a prerelease of the same release."""
        for _, text in self.comparators:
            partial = parse_partial_version(text)
            if partial is None or partial.pre is None:
                continue
            if (partial.major, partial.minor, partial.patch) == (ver.major, ver.minor, ver.patch):
                return True
        return False

    def is_single_caret(self) -> bool:
        return len(self.comparators) == 1 and self.comparators[0][0] == "^"

    def pretty(self) -> str:
        """Requirement for display, without the caret of the default form."""
        if self.is_single_caret():
            return self.comparators[0][1]
        return str(self)

    def __str__(self) -> str:
        return ", ".join(f"{op}{version}" for op, version in self.comparators)


def pretty_req(text: Optional[str]) -> str:
    """Display form of a requirement string; unparsable input is returned as-is."""
    try:
        return VersionReq(text).pretty()
    except ValueError:
        return (text or "").strip() or "*"


def rust_version_compatible(rust_version: Optional[str], target: str) -> bool:
    """Whether a package declaring ``rust_version`` supports toolchain ``target``.

    The declared version is treated as a caret requirement; the target's
    missing patch defaults to 0 and its prerelease is ignored. A missing or
    unreadable declaration counts as compatible.
    """
    if not rust_version:
        return True
    declared = parse_partial_version(rust_version)
    toolchain = parse_partial_version(target)
    if declared is None or toolchain is None:
        return True
    req = semantic_version.SimpleSpec(f"^{PartialVersion(declared.major, declared.minor, declared.patch)}")
    current = semantic_version.Version(
        major=toolchain.major,
        minor=toolchain.minor or 0,
        patch=toolchain.patch or 0,
    )
    return req.match(current)
