"""Command: list the markers in a file."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from refctl.commands._base import RefCommand

if TYPE_CHECKING:
    from refctl.commands._context import AppContext


@click.command(
    cls=RefCommand,
    examples="""\
  refctl scan notes.txt
  refctl -q scan notes.txt
  refctl --json scan src/app.py""",
)
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.pass_obj
def scan(app: AppContext, file: str) -> None:
    """Scan FILE for ID and REF markers."""
    body = app.open_file(file, op="scan")
    app.emit(app.annotations.annotate(body))
