"""Rich Console factory and theme for schemalens output.

Creates Console instances that render to a StringIO buffer, preserving
the ``format_result() -> str`` contract. In non-TTY environments
(tests, pipes) Rich automatically disables color codes.
"""

from __future__ import annotations

from io import StringIO

from rich.console import Console
from rich.theme import Theme

from schemalens.domain.graph_model import AMBER_COLOR, GREEN_COLOR, MUTED_COLOR, NEUTRAL_COLOR

SCHEMALENS_THEME = Theme(
    {
        "sl.ok": "bold green",
        "sl.error": "bold red",
        "sl.warning": "bold yellow",
        "sl.op": "bold cyan",
        "sl.key": "dim",
        "sl.id": "bold blue",
        "sl.name": "bold",
        "sl.focus": "bold magenta",
        "sl.score": "magenta",
        "sl.edge.physical": NEUTRAL_COLOR,
        "sl.edge.suggested": AMBER_COLOR,
        "sl.edge.confirmed": GREEN_COLOR,
        "sl.edge.rejected": MUTED_COLOR,
    }
)

_STATUS_STYLES: dict[str, str] = {
    "SUGGESTED": "sl.edge.suggested",
    "CONFIRMED": "sl.edge.confirmed",
    "REJECTED": "sl.edge.rejected",
}


def create_console(*, no_color: bool = False, width: int | None = None) -> Console:
    """Create a Console that renders to a StringIO buffer.

    Args:
        no_color: Disable ANSI escape codes (used in tests).
        width: Override terminal width (useful for consistent test output).
    """
    return Console(
        file=StringIO(),
        theme=SCHEMALENS_THEME,
        no_color=no_color,
        highlight=False,
        width=width or 120,
    )


def get_output(console: Console) -> str:
    """Extract rendered text from a StringIO-backed Console."""
    assert isinstance(console.file, StringIO)
    return console.file.getvalue()


def style_for_edge(relationship_type: str, status: str | None) -> str:
    """Return the Rich style name for an edge."""
    if relationship_type == "PHYSICAL" or status is None:
        return "sl.edge.physical"
    return _STATUS_STYLES.get(status, "")
