"""Lock file (Cargo.lock) parser.

Cargo.lock is a TOML file with ``[[package]]`` sections. Each entry has a
name, version, an optional ``source`` (absent for path packages) and a list
of dependency references written as ``name``, ``name version`` or
``name version (source)``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from common.config import read_toml
from errors import UsageError
from sources.source_id import SourceId

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LockEntry:
    """One ``[[package]]`` section."""
    name: str
    version: str
    source: Optional[SourceId] = None
    dependencies: Tuple[Tuple[str, Optional[str]], ...] = ()


@dataclass
class Lockfile:
    """Parsed lock file."""
    path: Path
    entries: List[LockEntry] = field(default_factory=list)

    def find(self, name: str, version: Optional[str] = None) -> List[LockEntry]:
        return [
            e for e in self.entries
            if e.name == name and (version is None or e.version == version)
        ]

    def dependencies_of(self, name: str, version: Optional[str] = None) -> List[LockEntry]:
        """Lock entries ``name`` depends on directly."""
        result: List[LockEntry] = []
        for entry in self.find(name, version):
            for dep_name, dep_version in entry.dependencies:
                for candidate in self.find(dep_name, dep_version):
                    if candidate not in result:
                        result.append(candidate)
        return result


def _parse_reference(text: str) -> Tuple[str, Optional[str]]:
    parts = text.split(" ")
    name = parts[0]
    version = parts[1] if len(parts) > 1 else None
    return name, version


def parse_lockfile(path: Path) -> Lockfile:
    """Read ``path`` into a Lockfile.

    Raises:
        UsageError: the file is not valid TOML or an entry is malformed.
    """
    data = read_toml(path)
    entries = []
    for pkg in data.get("package", []) or []:
        if not isinstance(pkg, dict) or "name" not in pkg or "version" not in pkg:
            raise UsageError(f"invalid package entry in lock file `{path}`")
        source = pkg.get("source")
        entries.append(
            LockEntry(
                name=pkg["name"],
                version=str(pkg["version"]),
                source=SourceId.from_lock_string(source) if source else None,
                dependencies=tuple(_parse_reference(d) for d in pkg.get("dependencies", []) or []),
            )
        )
    logger.debug("Loaded %d lock entries from %s", len(entries), path)
    return Lockfile(path=path, entries=entries)
