"""Pick the version of a package to report.

Workspace pins win outright. Otherwise the highest version matching the
spec is chosen, restricted to versions whose declared minimum toolchain
supports the target toolchain when one is given.
"""

import logging
from typing import Iterable, List, Optional

from common.logging_utils import extra_context, is_debug_enabled
from errors import NotFoundError

from .models import PackageId, PackageSpec, PartialVersion, Summary
from .requirement import VersionReq, partial_matches, rust_version_compatible, version_key
from sources.source_id import canonicalize_url

logger = logging.getLogger(__name__)


def version_matches(spec: PackageSpec, version: str) -> bool:
    """Whether ``version`` satisfies the version part of ``spec``."""
    if spec.version is None:
        return True
    if isinstance(spec.version, PartialVersion):
        return partial_matches(spec.version, version)
    return VersionReq(spec.version).matches(version)


def spec_matches(spec: PackageSpec, package_id: PackageId) -> bool:
    """Whether ``package_id`` is named by ``spec`` (name, version and URL qualifier)."""
    if spec.name != package_id.name:
        return False
    if spec.url and canonicalize_url(spec.url, package_id.source.kind) != package_id.source.canonical:
        return False
    return version_matches(spec, package_id.version)


def _sortable(summaries: Iterable[Summary]) -> List[Summary]:
    valid = []
    for summary in summaries:
        try:
            version_key(summary.version)
        except ValueError:
            logger.debug("Skipping unparsable version %s of %s", summary.version, summary.name)
            continue
        valid.append(summary)
    return valid


def filter_candidates(spec: PackageSpec, candidates: Iterable[Summary]) -> List[Summary]:
    """Non-yanked candidates matching the spec's name and version."""
    return [
        s for s in _sortable(candidates)
        if s.name == spec.name and not s.yanked and version_matches(spec, s.version)
    ]


def latest(summaries: Iterable[Summary]) -> Optional[Summary]:
    """Highest version by semver precedence, or None; unparsable versions are skipped."""
    summaries = _sortable(summaries)
    if not summaries:
        return None
    return max(summaries, key=lambda s: version_key(s.version))


def select_version(
    spec: PackageSpec,
    candidates: Iterable[Summary],
    use_pin: bool,
    pinned: Optional[PackageId],
    source_url: str,
    rust_version: Optional[str] = None,
) -> PackageId:
    """Choose the package id to report.

    Args:
        spec: Parsed user spec.
        candidates: Every summary the source has for ``spec.name``.
        use_pin: Whether ``pinned`` may be returned without consulting candidates.
        pinned: Package id found in the workspace.
        source_url: URL named in the error when nothing matches.
        rust_version: Target toolchain version; None skips the MSRV check.

    Raises:
        NotFoundError: no candidate matches (or none supports ``rust_version``).
    """
    if use_pin and pinned is not None:
        return pinned

    matching = filter_candidates(spec, candidates)
    if not matching:
        raise NotFoundError(str(spec), source_url)

    if rust_version is None:
        chosen = latest(matching)
    else:
        compatible = [s for s in matching if rust_version_compatible(s.rust_version, rust_version)]
        if not compatible:
            raise NotFoundError(
                str(spec),
                source_url,
                reason=f"no version of `{spec.name}` is compatible with rust-version {rust_version}",
            )
        chosen = latest(compatible)

    if is_debug_enabled(logger):
        logger.debug(
            "Selected version",
            extra=extra_context(
                event="decision",
                component="version_selector",
                action="select_version",
                target=spec.name,
                outcome=chosen.version,
                candidate_count=len(matching),
                rust_version=rust_version,
            ),
        )
    return chosen.package_id
