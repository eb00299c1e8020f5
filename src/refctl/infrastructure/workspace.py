"""Workspace — the single dependency injected into every service.

Owns the body registry, the rescan scheduler, the external search tool
adapters, and the plugin manager. Hosts that embed refctl create one
workspace, then report body lifecycle through :meth:`open_body`,
:meth:`edit`, and :meth:`close_body` (or by calling the plugin hooks
directly).
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

from refctl.infrastructure.bodies import BodyKind, BodyRegistry, TextBody
from refctl.infrastructure.scheduler import RescanScheduler, TimerFactory
from refctl.infrastructure.search_tools import (
    ContentSearchTool,
    FilenameSearchTool,
    Runner,
)
from refctl.plugins.manager import PluginManager

if TYPE_CHECKING:
    from refctl.config.settings import RefSettings

logger = logging.getLogger(__name__)


class Workspace:
    """Shared state for one host session.

    Parameters:
        settings: Frozen settings (tags, delays, search root, tools).
        timer_factory: Timer implementation for debounced rescans.
        runner: Subprocess runner for the external search tools.
    """

    def __init__(
        self,
        settings: RefSettings,
        *,
        timer_factory: TimerFactory | None = None,
        runner: Runner | None = None,
    ) -> None:
        self.settings = settings
        self.registry = BodyRegistry()
        self.scheduler = RescanScheduler(timer_factory)
        self.content_tool = ContentSearchTool(settings.search.content_tool, runner=runner)
        self.filename_tool = FilenameSearchTool(settings.search.filename_tool, runner=runner)
        self.plugins = PluginManager()

    @property
    def search_root(self) -> Path:
        return self.settings.search_root

    # ------------------------------------------------------------------
    # Body lifecycle (host-facing)
    # ------------------------------------------------------------------

    def open_body(
        self,
        name: str,
        text: str = "",
        *,
        path: Path | None = None,
        kind: BodyKind | None = None,
    ) -> TextBody:
        body = self.registry.open(name, text, path=path, kind=kind)
        self.plugins.notify("body_created", body=body)
        return body

    def open_file(self, path: Path) -> TextBody:
        already_open = self.registry.find_by_path(path.resolve())
        body = self.registry.open_file(path)
        if already_open is None:
            self.plugins.notify("body_created", body=body)
        return body

    def edit(self, body: TextBody, mutate: Callable[[TextBody], None]) -> None:
        """Apply *mutate* to *body*, then fire ``body_changed``."""
        mutate(body)
        self.plugins.notify("body_changed", body=body)

    def close_body(self, body: TextBody) -> None:
        self.plugins.notify("body_destroyed", body=body)
        self.registry.close(body)

    def close(self) -> None:
        """Cancel pending rescans and close every body."""
        self.scheduler.cancel_all()
        for body in self.registry.bodies():
            self.close_body(body)
