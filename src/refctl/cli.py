"""Root CLI group for refctl with global flags and command registration."""

from __future__ import annotations

from pathlib import Path

import click

from refctl import __version__
from refctl.commands import register_commands
from refctl.commands._base import RefGroup
from refctl.commands._context import AppContext
from refctl.config.settings import RefSettings


@click.group(
    cls=RefGroup,
    invoke_without_command=True,
    examples="""\
  refctl scan notes.txt
  refctl find abc123
  refctl follow notes.txt 5
  refctl pattern ref --id abc123""",
)
@click.version_option(version=__version__, prog_name="refctl")
@click.option("--json", "json_output", is_flag=True, help="Structured JSON output.")
@click.option("-q", "--quiet", is_flag=True, help="Minimal output.")
@click.option("-v", "--verbose", is_flag=True, help="Detailed output with debug info.")
@click.option("--log-json", is_flag=True, help="Structured JSON log output to stderr.")
@click.option("-c", "--config", "config_path", default=None, help="Override config file path.")
@click.option(
    "--root",
    "search_root",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Directory the external tools search (default from config, else home).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    json_output: bool,
    quiet: bool,
    verbose: bool,
    log_json: bool,
    config_path: str | None,
    search_root: Path | None,
) -> None:
    """refctl — find, follow and search ID/REF markers in text."""
    settings = RefSettings.from_cli(
        config_path=config_path,
        search_root=search_root,
        json_output=json_output,
        quiet=quiet,
        verbose=verbose,
        log_json=log_json,
    )
    ctx.obj = AppContext(settings)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


register_commands(cli)
