"""Rich Console factory and theme for arbiter output.

Creates Console instances that render to a StringIO buffer, preserving
the ``format_result() -> str`` contract.  In non-TTY environments
(tests, pipes) Rich automatically disables color codes.
"""

from __future__ import annotations

from io import StringIO

from rich.console import Console
from rich.theme import Theme

ARBITER_THEME = Theme(
    {
        "arb.ok": "bold green",
        "arb.error": "bold red",
        "arb.warning": "bold yellow",
        "arb.op": "bold cyan",
        "arb.key": "dim",
        "arb.id": "bold blue",
        "arb.command": "dim",
        "arb.kind.leader": "red",
        "arb.kind.follower": "blue",
    }
)

_KIND_STYLES: dict[str, str] = {
    "leader": "arb.kind.leader",
    "follower": "arb.kind.follower",
}


def create_console(*, no_color: bool = False, width: int | None = None) -> Console:
    """Create a Console that renders to a StringIO buffer."""
    return Console(
        file=StringIO(),
        theme=ARBITER_THEME,
        no_color=no_color,
        highlight=False,
        width=width or 120,
    )


def get_output(console: Console) -> str:
    """Extract rendered text from a StringIO-backed Console."""
    assert isinstance(console.file, StringIO)
    return console.file.getvalue()


def style_for_kind(kind: str) -> str:
    return _KIND_STYLES.get(kind, "")
