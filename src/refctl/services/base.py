"""BaseService — shared foundation for refctl services.

Every service receives the :class:`Workspace` at construction time and
reads bodies, tools, and settings through it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from refctl.config.settings import RefSettings
    from refctl.infrastructure.workspace import Workspace


class BaseService:
    def __init__(self, workspace: Workspace) -> None:
        self._workspace = workspace

    @property
    def settings(self) -> RefSettings:
        return self._workspace.settings

    def _notify(self, hook_name: str, payload: dict[str, Any], warnings: list[str]) -> None:
        """Dispatch a presentation notification.

        INVARIANT: Plugin failures are warnings, never errors.
        """
        warnings.extend(self._workspace.plugins.notify(hook_name, **payload))
