"""Rich Console factory and theme for refctl output.

Consoles render into a StringIO buffer so every renderer keeps the
``str``-returning contract. Rich disables color codes automatically when
not attached to a terminal (tests, pipes).
"""

from __future__ import annotations

from io import StringIO

from rich.console import Console
from rich.theme import Theme

REF_THEME = Theme(
    {
        "ref.ok": "bold green",
        "ref.error": "bold red",
        "ref.warning": "bold yellow",
        "ref.op": "bold cyan",
        "ref.key": "dim",
        "ref.id": "bold blue",
        "ref.path": "dim",
        "ref.line": "magenta",
        "ref.role.location": "green",
        "ref.role.reference": "blue",
    }
)


def create_console(*, no_color: bool = False, width: int | None = None) -> Console:
    return Console(
        file=StringIO(),
        theme=REF_THEME,
        no_color=no_color,
        highlight=False,
        width=width or 120,
    )


def get_output(console: Console) -> str:
    assert isinstance(console.file, StringIO)
    return console.file.getvalue()


def style_for_role(role: str) -> str:
    return f"ref.role.{role}" if role in ("location", "reference") else ""
