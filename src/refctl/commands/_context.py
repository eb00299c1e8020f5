"""AppContext — the object every command receives via ``@click.pass_obj``.

It carries the resolved settings, builds the workspace on first use, and
owns result emission: stdout for success, stderr plus exit status 1 for
failure.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import click

from refctl.output.formatters import OutputSettings, format_result

if TYPE_CHECKING:
    from refctl.config.settings import RefSettings
    from refctl.infrastructure.bodies import TextBody
    from refctl.infrastructure.workspace import Workspace
    from refctl.services.annotate import AnnotationService
    from refctl.services.result import ServiceResult


class AppContext:
    """Shared state for one CLI invocation.

    The workspace is created lazily so ``--help``, ``--version`` and
    ``pattern`` never touch the search tools.
    """

    def __init__(self, settings: RefSettings) -> None:
        self.settings = settings
        self._workspace: Workspace | None = None
        self._annotations: AnnotationService | None = None

        from refctl.config.logging import configure_logging

        configure_logging(verbose=settings.verbose, log_json=settings.log_json)

        if settings.verbose:
            from refctl.services.telemetry import enable_telemetry

            enable_telemetry()

    @property
    def workspace(self) -> Workspace:
        if self._workspace is None:
            from refctl.infrastructure.workspace import Workspace

            self._workspace = Workspace(self.settings)
            self._workspace.plugins.discover()
        return self._workspace

    @property
    def annotations(self) -> AnnotationService:
        """The annotation service, subscribed to the workspace's body hooks."""
        if self._annotations is None:
            from refctl.services.annotate import AnnotationService

            self._annotations = AnnotationService.attach(self.workspace)
        return self._annotations

    def open_file(self, path: str | Path, *, op: str) -> TextBody:
        """Open *path* as a body; subscription makes this scan it once.

        An unreadable file is emitted as a FILE_NOT_FOUND failure for *op*.
        """
        annotations = self.annotations
        try:
            body = self.workspace.open_file(Path(path))
        except OSError as exc:
            from refctl.services.result import ErrorCode, failure

            message = f"Cannot read {path}: {exc.strerror or exc}"
            self.emit(failure(op, ErrorCode.FILE_NOT_FOUND, message, path=str(path)))
            raise
        if annotations.state(body) == "unannotated":
            annotations.scan(body)
        return body

    def emit(self, result: ServiceResult) -> None:
        """Print *result*; a failed result exits with status 1.

        Warnings go to stderr in human and quiet modes. JSON output already
        carries them in the payload.
        """
        settings = OutputSettings(
            json_output=self.settings.json_output,
            quiet=self.settings.quiet,
            verbose=self.settings.verbose,
        )
        output = format_result(result, settings=settings)
        if result.ok:
            click.echo(output)
            if not settings.json_output:
                for warning in result.warnings:
                    click.echo(f"WARNING: {warning}", err=True)
        else:
            click.echo(output, err=True)
            raise SystemExit(1)
