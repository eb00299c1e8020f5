"""Command: print the content pattern used for a tag."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from refctl.commands._base import RefCommand

if TYPE_CHECKING:
    from refctl.commands._context import AppContext


@click.command(
    cls=RefCommand,
    examples="""\
  refctl pattern id
  refctl pattern ref --id abc123
  refctl pattern id --dialect python""",
)
@click.argument("tag")
@click.option("--id", "identifier", default=None, help="Pin the identifier to this literal.")
@click.option(
    "--dialect",
    type=click.Choice(["external", "python"]),
    default="external",
    show_default=True,
    help="Regex dialect to render.",
)
@click.pass_obj
def pattern(app: AppContext, tag: str, identifier: str | None, dialect: str) -> None:
    """Show the regex that matches TAG markers."""
    from refctl.infrastructure.workspace import Workspace
    from refctl.services.search import SearchService

    service = SearchService(Workspace(app.settings))
    app.emit(service.describe_pattern(tag, identifier, dialect=dialect))  # type: ignore[arg-type]
