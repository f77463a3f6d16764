"""Report rendering.

Builds the report as a list of ``rich.text.Text`` lines so the same content
can be printed with colour or compared as plain text.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from rich.console import Console
from rich.style import Style
from rich.text import Text

from constants import Constants, DepKind
from features.dependencies import ClassifiedDependency, classify_dependencies, describe_dependency, pretty_source
from features.graph import FeatureResolution, count_by_status, resolve_features
from registry.owners import Owner
from versioning.models import FeatureStatus, ResolvedPackage, Summary
from versioning.selector import latest

from .style import BOLD, DISABLED, ERROR, HEADER, LITERAL, NOP, NOTE, SUMMARY, WARN

_UNKNOWN = "unknown"


@dataclass
class PackageReport:
    """Everything the renderer needs about one package.

    Attributes:
        package: The selected version and its metadata.
        summaries: Every version the source lists, used for the latest note.
        owners: Owners, or None when they could not be looked up.
        suggest_cargo_tree: Whether the version came from the workspace.
    """
    package: ResolvedPackage
    summaries: Sequence[Summary] = field(default_factory=list)
    owners: Optional[List[Owner]] = None
    suggest_cargo_tree: bool = False


def make_console(color: str = "auto", **kwargs) -> Console:
    """Console honouring ``--color``."""
    if color == "always":
        return Console(force_terminal=True, **kwargs)
    if color == "never":
        return Console(color_system=None, no_color=True, **kwargs)
    return Console(**kwargs)


def _header(label: str) -> Text:
    return Text(f"{label}:", style=HEADER)


def _field(label: str, value: Optional[str], missing_style: Style) -> Text:
    line = _header(label)
    line.append(" ")
    if value:
        line.append(value)
    else:
        line.append(_UNKNOWN, style=missing_style)
    return line


def _version_line(report: PackageReport, cwd: Path) -> Text:
    package_id = report.package.package_id
    source = package_id.source
    line = _header("version")
    line.append(f" {package_id.version}")
    newest = latest(report.summaries)
    if newest is not None and newest.version != package_id.version:
        if source.is_crates_io:
            line.append(f" (latest {newest.version})", style=WARN)
        else:
            line.append(f" (latest {newest.version} ", style=WARN)
            line.append(f"from {pretty_source(source, cwd)}", style=NOTE)
            line.append(")", style=WARN)
    elif not source.is_crates_io:
        line.append(f" (from {pretty_source(source, cwd)})", style=NOTE)
    return line


def _status_prefix(status: FeatureStatus) -> Text:
    if status == FeatureStatus.ENABLED_BY_USER:
        return Text.assemble(" ", ("+", HEADER))
    return Text("  ")


def _status_style(status: FeatureStatus) -> Style:
    return DISABLED if status.is_disabled else NOP


def render_features(package: ResolvedPackage, resolution: FeatureResolution, verbose: bool) -> List[Text]:
    """Lines of the ``features:`` section; empty when there are no features."""
    features = package.features
    margin = max((len(name) for name in features), default=0)
    if margin == 0:
        return []

    lines = [_header("features")]
    activated, deactivated = count_by_status(resolution)
    show_activated = activated <= Constants.MAX_FEATURE_PRINTS or verbose
    show_deactivated = activated + deactivated <= Constants.MAX_FEATURE_PRINTS or verbose
    for name, status in resolution.statuses:
        if not status.is_disabled and not show_activated:
            continue
        if status.is_disabled and not show_deactivated:
            continue
        style = _status_style(status)
        line = _status_prefix(status)
        line.append(name.ljust(margin), style=style)
        line.append(" = [")
        for i, value in enumerate(features[name]):
            if i:
                line.append(", ")
            line.append(str(value), style=style)
        line.append("]")
        lines.append(line)
    if not show_activated:
        lines.append(Text.assemble("  ", (f"{activated} activated features", SUMMARY)))
    if not show_deactivated:
        lines.append(Text.assemble("  ", (f"{deactivated} deactivated features", SUMMARY)))
    return lines


def _dependency_lines(classified: Sequence[ClassifiedDependency], cwd: Path) -> List[Text]:
    lines = []
    for item in classified:
        line = _status_prefix(item.status)
        line.append(describe_dependency(item.dependency, cwd), style=_status_style(item.status))
        lines.append(line)
    return lines


def render_dependencies(package: ResolvedPackage, resolution: FeatureResolution, cwd: Path) -> List[Text]:
    """Lines of the ``dependencies:`` and ``build-dependencies:`` sections."""
    classified = classify_dependencies(package.dependencies, resolution)
    lines: List[Text] = []
    for kind, label in ((DepKind.NORMAL, "dependencies"), (DepKind.BUILD, "build-dependencies")):
        of_kind = [c for c in classified if c.kind == kind]
        if of_kind:
            lines.append(_header(label))
            lines.extend(_dependency_lines(of_kind, cwd))
    return lines


def note(message: Text) -> Text:
    return Text.assemble(("note", NOTE), (":", BOLD), " ", message)


def render(report: PackageReport, cwd: Path, verbose: bool = False) -> List[Text]:
    """Build the report lines for ``report``."""
    package = report.package
    package_id = package.package_id
    metadata = package.metadata
    source = package_id.source
    lines: List[Text] = []

    title = Text(package_id.name, style=HEADER)
    if metadata.keywords:
        title.append(" #" + " #".join(metadata.keywords), style=NOTE)
    lines.append(title)
    if metadata.description:
        lines.append(Text(metadata.description.rstrip()))
    lines.append(_version_line(report, cwd))

    lines.append(_field("license", metadata.license, ERROR))
    lines.append(_field("rust-version", metadata.rust_version or package.summary.rust_version, WARN))
    documentation = metadata.documentation
    if not documentation and source.is_crates_io:
        documentation = f"{Constants.DOCS_RS_URL}/{package_id.name}/{package_id.version}"
    lines.append(_field("documentation", documentation, WARN))
    lines.append(_field("homepage", metadata.homepage, WARN))
    lines.append(_field("repository", metadata.repository, WARN))
    if source.is_crates_io:
        lines.append(_field("crates.io", f"{Constants.CRATES_IO_URL}/{package_id.name}/{package_id.version}", WARN))

    resolution = resolve_features(package.features)
    lines.extend(render_features(package, resolution, verbose))
    if verbose:
        lines.extend(render_dependencies(package, resolution, cwd))

    if report.owners:
        lines.append(_header("owners"))
        lines.extend(Text(f"  {owner}") for owner in report.owners)

    if report.suggest_cargo_tree:
        command = f"cargo tree --invert --package {package_id.name}@{package_id.version}"
        lines.append(note(Text.assemble(
            f"to see how you depend on {package_id.name}, run `",
            (command, LITERAL),
            "`",
        )))
    return lines


def render_plain(report: PackageReport, cwd: Path, verbose: bool = False) -> str:
    """The report without styling, one line per entry."""
    return "\n".join(line.plain for line in render(report, cwd, verbose))


def print_report(report: PackageReport, ctx, console: Optional[Console] = None) -> None:
    """Write the report to stdout."""
    console = console or make_console(ctx.color)
    for line in render(report, ctx.cwd, ctx.verbose):
        console.print(line, soft_wrap=True)
