"""Command: activate a marker given only its role and identifier."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from refctl.commands._base import RefCommand
from refctl.domain.markers import Role

if TYPE_CHECKING:
    from refctl.commands._context import AppContext


@click.command(
    cls=RefCommand,
    examples="""\
  refctl find abc123
  refctl find abc123 --role location
  refctl --root ~/notes find abc123 --timeout 2
  refctl -q find abc123""",
)
@click.argument("identifier")
@click.option(
    "--role",
    type=click.Choice([r.value for r in Role]),
    default=Role.REFERENCE.value,
    show_default=True,
    help="Role of the activated marker: a reference finds its location, "
    "a location finds its references.",
)
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Per-tool time limit in seconds (default from config).",
)
@click.pass_obj
def find(app: AppContext, identifier: str, role: str, timeout: float | None) -> None:
    """Find everything on the other side of IDENTIFIER."""
    app.emit(app.annotations.lookup(Role(role), identifier, timeout=timeout))
