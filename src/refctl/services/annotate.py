"""AnnotationService — keep each body's marker set in step with its text.

Per-body state machine::

    UNANNOTATED --scan--> ANNOTATED --body_changed--> PENDING_RESCAN
         ^                    ^                            |
         |                    +------- timer fires --------+
         +---- body_destroyed (timer cancelled, markers dropped)

A scan always replaces the whole marker set of a body; markers are
recreated, never accumulated. Edits are coalesced: every ``body_changed``
restarts the body's timer, so a burst of edits costs one rescan taken
``rescan_delay`` seconds after the last edit.

The service is also a pluggy plugin: it implements the ``body_*`` lifecycle
hooks so hosts only report events and never call scan directly.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import pluggy

from refctl.domain.errors import CollaboratorMissing
from refctl.domain.markers import Marker, Role, classify
from refctl.domain.patterns import compile_pattern, discovery_pattern
from refctl.services.base import BaseService
from refctl.services.result import ErrorCode, ServiceResult, failure
from refctl.services.search import SearchService
from refctl.services.telemetry import traced

if TYPE_CHECKING:
    from refctl.domain.matches import MatchSet
    from refctl.infrastructure.bodies import TextBody
    from refctl.infrastructure.workspace import Workspace

hookimpl = pluggy.HookimplMarker("refctl")

logger = logging.getLogger(__name__)

PLUGIN_NAME = "annotations"


class BodyState(StrEnum):
    UNANNOTATED = "unannotated"
    ANNOTATED = "annotated"
    PENDING_RESCAN = "pending_rescan"


class AnnotationService(BaseService):
    """Scans bodies for markers, debounces rescans, and activates markers."""

    def __init__(self, workspace: Workspace) -> None:
        super().__init__(workspace)
        self._markers: dict[int, list[Marker]] = {}
        self._states: dict[int, BodyState] = {}
        self._scanned_version: dict[int, int] = {}
        self._lock = threading.RLock()

    @classmethod
    def attach(cls, workspace: Workspace) -> AnnotationService:
        """Return the workspace's subscribed instance, creating it on first use."""
        existing = workspace.plugins.get_plugin(PLUGIN_NAME)
        if isinstance(existing, cls):
            return existing
        service = cls(workspace)
        workspace.plugins.register_plugin(service, name=PLUGIN_NAME)
        return service

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_eligible(self, body: TextBody) -> bool:
        return str(body.kind) in self.settings.annotate.eligible_kinds

    def state(self, body: TextBody) -> BodyState:
        with self._lock:
            return self._states.get(body.body_id, BodyState.UNANNOTATED)

    def markers(self, body: TextBody) -> list[Marker]:
        with self._lock:
            return list(self._markers.get(body.body_id, ()))

    def marker_at(self, body: TextBody, offset: int) -> Marker | None:
        """The marker covering *offset*, rescanning first if the set is stale."""
        with self._lock:
            current = self._markers.get(body.body_id)
            if current is None or self._scanned_version.get(body.body_id) != body.version:
                self._workspace.scheduler.cancel(body.body_id)
                current = self.scan(body)
            for marker in current:
                if marker.covers(offset):
                    return marker
        return None

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------

    def scan(self, body: TextBody) -> list[Marker]:
        """Replace *body*'s markers with a fresh scan of its full text.

        Bodies outside the eligible kinds are left untouched. The scan runs
        over one snapshot of the text; if the body is edited before the result
        is stored, the result is dropped, another rescan is scheduled, and the
        markers from the last completed scan are returned.
        """
        if not self.is_eligible(body) or body.closed:
            return []

        cfg = self.settings.markers
        regex = compile_pattern(discovery_pattern(cfg.location_tag, cfg.reference_tag))
        snapshot = body.snapshot()
        found: list[Marker] = []
        for match in regex.finditer(snapshot.text):
            role, identifier, name = classify(
                match.groups(),
                location_tag=cfg.location_tag,
                reference_tag=cfg.reference_tag,
            )
            found.append(Marker.anchored(role, identifier, snapshot, match.span(), name))

        warnings: list[str] = []
        with self._lock:
            if body.closed:
                return []
            superseded = body.version != snapshot.version
            if not superseded:
                self._clear(body.body_id, warnings)
                self._markers[body.body_id] = found
                self._scanned_version[body.body_id] = snapshot.version
                self._states[body.body_id] = BodyState.ANNOTATED

        if superseded:
            logger.debug("Scan of %s superseded by an edit; rescanning", body.name)
            self.schedule_rescan(body)
            return self.markers(body)

        logger.debug("Scanned %s: %d markers", body.name, len(found))
        self._notify("markers_updated", {"body_id": body.body_id, "markers": list(found)}, warnings)
        return found

    def schedule_rescan(self, body: TextBody, delay: float | None = None) -> None:
        """Debounce a rescan of *body*; each call restarts the timer."""
        if body.closed or not self.is_eligible(body):
            return
        wait = delay if delay is not None else self.settings.markers.rescan_delay
        body_id = body.body_id
        with self._lock:
            self._states[body_id] = BodyState.PENDING_RESCAN
        self._workspace.scheduler.schedule(body_id, wait, lambda: self._rescan(body_id))

    def _rescan(self, body_id: int) -> None:
        body = self._workspace.registry.get(body_id)
        if body is None:
            logger.debug("Body %d closed before its rescan; dropping its markers", body_id)
            self._forget(body_id)
            return
        self.scan(body)

    def discard(self, body: TextBody) -> None:
        """Cancel any pending rescan and drop every marker of *body*."""
        self._forget(body.body_id)

    def _forget(self, body_id: int) -> None:
        self._workspace.scheduler.cancel(body_id)
        warnings: list[str] = []
        with self._lock:
            self._clear(body_id, warnings)
            self._states.pop(body_id, None)
            self._scanned_version.pop(body_id, None)

    def _clear(self, body_id: int, warnings: list[str]) -> None:
        if self._markers.pop(body_id, None):
            self._notify("markers_cleared", {"body_id": body_id}, warnings)

    @traced
    def annotate(self, body: TextBody) -> ServiceResult:
        """Scan *body* and describe its markers (CLI / reporting surface)."""
        if not self.is_eligible(body):
            return ServiceResult(
                ok=True,
                op="scan",
                data={"body": body.name, "kind": str(body.kind), "count": 0, "markers": []},
                warnings=[f"{body.name} is a {body.kind} body; not scanned"],
            )
        found = self.scan(body)
        items = [{**m.to_dict(), "line": body.line_of(m.start)} for m in found]
        return ServiceResult(
            ok=True,
            op="scan",
            data={"body": body.name, "kind": str(body.kind), "count": len(items), "markers": items},
        )

    # ------------------------------------------------------------------
    # Activation
    # ------------------------------------------------------------------

    @traced
    def activate(
        self,
        marker: Marker,
        *,
        timeout: float | None = None,
        on_result: Callable[[MatchSet], Any] | None = None,
    ) -> ServiceResult:
        """Find everything on the other side of *marker*.

        Locations search references in files and buffers; references also
        search filenames equal to the identifier. *on_result* receives the
        categorized :class:`MatchSet` when the lookup ran. A marker whose body
        was closed or edited after the scan fails with MARKER_STALE.
        """
        registry = self._workspace.registry
        if not marker.is_live(registry):
            return failure(
                "activate",
                ErrorCode.MARKER_STALE,
                "The body this marker belongs to has been closed",
                body_id=marker.owner.body_id,
            )
        if not registry.is_current(marker.owner):
            return failure(
                "activate",
                ErrorCode.MARKER_STALE,
                "The body has been edited since this marker was scanned; rescan it first",
                body_id=marker.owner.body_id,
                version=marker.owner.version,
            )
        return self.lookup(marker.role, marker.identifier, timeout=timeout, on_result=on_result)

    def lookup(
        self,
        role: Role,
        identifier: str,
        *,
        timeout: float | None = None,
        on_result: Callable[[MatchSet], Any] | None = None,
    ) -> ServiceResult:
        """Activate a marker that exists only by role and identifier."""
        search = SearchService(self._workspace)
        try:
            match_set = search.collect(role, identifier, timeout=timeout)
        except CollaboratorMissing as exc:
            return failure("activate", ErrorCode.COLLABORATOR_MISSING, str(exc), tool=exc.tool)
        if on_result is not None:
            on_result(match_set)
        return search.to_result("activate", match_set)

    def follow(
        self,
        body: TextBody,
        offset: int,
        *,
        timeout: float | None = None,
        on_result: Callable[[MatchSet], Any] | None = None,
    ) -> ServiceResult:
        """Activate the marker under *offset* in *body*."""
        if not self.is_eligible(body):
            return failure(
                "activate",
                ErrorCode.INELIGIBLE_BODY,
                f"{body.name} is a {body.kind} body and is never annotated",
            )
        marker = self.marker_at(body, offset)
        if marker is None:
            return failure(
                "activate",
                ErrorCode.NO_MARKER,
                f"No ID or REF marker at line {body.line_of(offset)} of {body.name}",
                offset=offset,
            )
        return self.activate(marker, timeout=timeout, on_result=on_result)

    # ------------------------------------------------------------------
    # Lifecycle hooks
    # ------------------------------------------------------------------

    @hookimpl
    def body_created(self, body: TextBody) -> None:
        self.scan(body)

    @hookimpl
    def body_changed(self, body: TextBody) -> None:
        self.schedule_rescan(body)

    @hookimpl
    def body_destroyed(self, body: TextBody) -> None:
        self.discard(body)
