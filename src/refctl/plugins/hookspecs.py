"""Pluggy hook specifications for refctl.

Three host-to-core events replace ambient editor hooks: a body was created,
changed, or destroyed. Three core-to-presentation notifications let overlay
plugins follow the marker set and activation outcomes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pluggy

if TYPE_CHECKING:
    from refctl.domain.markers import Marker
    from refctl.infrastructure.bodies import TextBody

hookspec = pluggy.HookspecMarker("refctl")


class RefctlHookSpec:
    """Hook specifications for the refctl plugin system."""

    @hookspec
    def body_created(self, body: TextBody) -> None:
        """A body was opened and registered."""

    @hookspec
    def body_changed(self, body: TextBody) -> None:
        """A body's text was mutated."""

    @hookspec
    def body_destroyed(self, body: TextBody) -> None:
        """A body is about to be closed; its markers must be discarded."""

    @hookspec
    def markers_updated(self, body_id: int, markers: list[Marker]) -> None:
        """A scan replaced the marker set of a body."""

    @hookspec
    def markers_cleared(self, body_id: int) -> None:
        """All markers of a body were discarded."""

    @hookspec
    def post_activate(self, identifier: str, role: str, counts: dict[str, int]) -> None:
        """An activation finished (complete or partial)."""
