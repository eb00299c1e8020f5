"""Subcommands for refctl.

:func:`register_commands` imports each command module on registration so
every command lives in its own module and ``cli.py`` stays a thin root.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Attach every standalone command to the root group."""
    from refctl.commands.find import find
    from refctl.commands.follow import follow
    from refctl.commands.pattern import pattern
    from refctl.commands.scan import scan

    cli.add_command(scan)
    cli.add_command(find)
    cli.add_command(follow)
    cli.add_command(pattern)
