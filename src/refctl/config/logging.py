"""structlog configuration for refctl.

Everything is logged to stderr so stdout stays parseable. Human mode uses
the console renderer (colored on a TTY); ``--log-json`` prints one JSON
object per line. stdlib loggers (``logging.getLogger(__name__)`` in every
module) go through the same handler via ``ProcessorFormatter``.
"""

from __future__ import annotations

import logging
import sys

import structlog

_PACKAGE_LOGGER = "refctl"


def _shared_processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(log_json: bool) -> structlog.types.Processor:
    if log_json:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def configure_logging(*, verbose: bool = False, log_json: bool = False) -> None:
    """Install the stderr handler and set log levels.

    Calling it again replaces the handler instead of adding a second one.

    Args:
        verbose: DEBUG for refctl's own loggers; everything else stays at
            WARNING.
        log_json: JSON lines instead of the console renderer.
    """
    shared = _shared_processors()
    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(log_json),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(logging.WARNING)
    logging.getLogger(_PACKAGE_LOGGER).setLevel(logging.DEBUG if verbose else logging.WARNING)
