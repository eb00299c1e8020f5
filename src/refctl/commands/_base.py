"""Click base classes that understand an ``examples=`` keyword.

A command built with ``examples`` gains an eager ``--examples`` flag that
prints the examples and exits, so ``--help`` can stay short.
"""

from __future__ import annotations

from typing import Any

import click


def _examples_option(examples: str) -> click.Option:
    def show(ctx: click.Context, _param: click.Parameter, value: bool) -> None:
        if not value or ctx.resilient_parsing:
            return
        click.echo(f"Examples for '{ctx.command_path}':\n")
        click.echo(examples)
        ctx.exit(0)

    return click.Option(
        ["--examples"],
        is_flag=True,
        expose_value=False,
        is_eager=True,
        callback=show,
        help="Show usage examples.",
    )


class RefCommand(click.Command):
    """Command that accepts ``examples=`` and exposes ``--examples``."""

    def __init__(self, *args: Any, examples: str | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.examples = examples
        if examples:
            self.params.append(_examples_option(examples))


class RefGroup(click.Group):
    """Group counterpart of :class:`RefCommand`.

    Subcommands declared with ``@group.command`` default to RefCommand.
    """

    command_class = RefCommand

    def __init__(self, *args: Any, examples: str | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.examples = examples
        if examples:
            self.params.append(_examples_option(examples))
