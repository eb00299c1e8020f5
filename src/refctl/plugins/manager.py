"""Plugin discovery, registration, and guarded notification dispatch."""

from __future__ import annotations

import logging
from typing import Any

import pluggy

from refctl.plugins.hookspecs import RefctlHookSpec

PROJECT_NAME = "refctl"
ENTRY_POINT_GROUP = "refctl.plugins"

logger = logging.getLogger(__name__)


class PluginManager:
    """Thin wrapper over :class:`pluggy.PluginManager` for refctl hooks."""

    def __init__(self) -> None:
        self._pm = pluggy.PluginManager(PROJECT_NAME)
        self._pm.add_hookspecs(RefctlHookSpec)

    def discover(self) -> list[str]:
        """Load plugins from the ``refctl.plugins`` entry-point group.

        Returns the names of all registered plugins afterwards.
        """
        try:
            self._pm.load_setuptools_entrypoints(ENTRY_POINT_GROUP)
        except Exception:
            logger.warning("Failed to load entry-point plugins", exc_info=True)
        return self.list_plugin_names()

    def register_plugin(self, plugin: object, name: str | None = None) -> None:
        """Register a plugin instance directly (e.g. the annotation service)."""
        resolved_name = name or plugin.__class__.__name__
        if self._pm.has_plugin(resolved_name):
            return
        self._pm.register(plugin, name=resolved_name)
        logger.debug("Registered plugin: %s", resolved_name)

    def unregister(self, plugin: object) -> None:
        self._pm.unregister(plugin)

    def get_plugin(self, name: str) -> Any | None:
        return self._pm.get_plugin(name)

    @property
    def hook(self) -> pluggy.HookRelay:
        """Hook relay; hosts call lifecycle events through it directly."""
        return self._pm.hook

    def list_plugin_names(self) -> list[str]:
        return [self._pm.get_name(p) or p.__class__.__name__ for p in self._pm.get_plugins()]

    def notify(self, hook_name: str, **payload: Any) -> list[str]:
        """Dispatch a notification hook; failures become returned warnings."""
        hook_fn = getattr(self._pm.hook, hook_name, None)
        if hook_fn is None:
            return [f"Unknown hook {hook_name}"]
        try:
            hook_fn(**payload)
        except Exception:
            logger.warning("Hook %s failed", hook_name, exc_info=True)
            return [f"Plugin hook {hook_name} failed"]
        return []
