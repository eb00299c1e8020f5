"""Command: activate the marker at a position in a file."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from refctl.commands._base import RefCommand
from refctl.domain.errors import ContractViolation

if TYPE_CHECKING:
    from refctl.commands._context import AppContext
    from refctl.infrastructure.bodies import TextBody


def _first_marker_offset(app: AppContext, body: TextBody, line: int) -> int | None:
    for marker in app.annotations.markers(body):
        if body.line_of(marker.start) == line:
            return marker.start
    return None


@click.command(
    cls=RefCommand,
    examples="""\
  refctl follow notes.txt 5
  refctl follow notes.txt 5 14
  refctl --json follow notes.txt 5""",
)
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.argument("line", type=click.IntRange(min=1))
@click.argument("column", type=click.IntRange(min=1), required=False)
@click.option("--timeout", type=click.FloatRange(min=0, min_open=True), default=None)
@click.pass_obj
def follow(
    app: AppContext, file: str, line: int, column: int | None, timeout: float | None
) -> None:
    """Activate the marker at LINE (and COLUMN) of FILE.

    Without COLUMN the first marker on the line is used.
    """
    body = app.open_file(file, op="activate")
    try:
        offset = body.offset_of(line, column or 1)
    except ContractViolation as exc:
        raise click.BadParameter(str(exc), param_hint="LINE") from exc
    if column is None:
        first = _first_marker_offset(app, body, line)
        if first is not None:
            offset = first
    app.emit(app.annotations.follow(body, offset, timeout=timeout))
