"""Terminal styles used by the report renderer."""

from rich.style import Style

NOP = Style()
HEADER = Style(color="green", bold=True)
LITERAL = Style(color="cyan", bold=True)
ERROR = Style(color="red", bold=True)
WARN = Style(color="yellow", bold=True)
NOTE = Style(color="cyan", bold=True)
BOLD = Style(bold=True)
DISABLED = Style(dim=True)
SUMMARY = Style(italic=True)
