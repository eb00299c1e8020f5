"""Tests for AnnotationService — scanning, debounce, activation, lifecycle."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Any

import pluggy
import pytest

from refctl.domain.markers import Marker, Role, classify
from refctl.domain.matches import FileMatch, LineBufferMatch, LineFileMatch, MatchSet
from refctl.infrastructure.bodies import BodyKind
from refctl.infrastructure.workspace import Workspace
from refctl.services.annotate import PLUGIN_NAME, AnnotationService, BodyState
from refctl.services.result import ErrorCode
from tests.conftest import FakeTools, ManualTimers, rg_line, under_root, write_file

hookimpl = pluggy.HookimplMarker("refctl")


class Recorder:
    """Presentation plugin that records every notification."""

    def __init__(self) -> None:
        self.events: list[tuple[str, Any]] = []

    @hookimpl
    def markers_updated(self, body_id: int, markers: list[Marker]) -> None:
        self.events.append(("updated", [m.identifier for m in markers]))

    @hookimpl
    def markers_cleared(self, body_id: int) -> None:
        self.events.append(("cleared", body_id))

    @hookimpl
    def post_activate(self, identifier: str, role: str, counts: dict[str, int]) -> None:
        self.events.append(("activated", (identifier, role, counts)))


class Broken:
    @hookimpl
    def post_activate(self, identifier: str, role: str, counts: dict[str, int]) -> None:
        raise RuntimeError("overlay crashed")


# ---------------------------------------------------------------------------
# Scanning
# ---------------------------------------------------------------------------


class TestScan:
    def test_body_created_triggers_scan(
        self, workspace: Workspace, annotations: AnnotationService
    ) -> None:
        body = workspace.open_body("notes.txt", "before :ID: abc123 after")
        [marker] = annotations.markers(body)
        assert marker.role is Role.LOCATION
        assert marker.identifier == "abc123"
        assert marker.display_name is None
        assert marker.span == (7, 18)
        assert annotations.state(body) is BodyState.ANNOTATED

    def test_scan_is_idempotent(
        self, workspace: Workspace, annotations: AnnotationService
    ) -> None:
        body = workspace.open_body("notes.txt", ":ID: a\n[[ref:b][Bee]]\n")
        first = annotations.scan(body)
        second = annotations.scan(body)
        assert first == second
        assert len(annotations.markers(body)) == 2

    def test_scan_replaces_previous_markers(
        self, workspace: Workspace, annotations: AnnotationService
    ) -> None:
        body = workspace.open_body("notes.txt", ":ID: a")
        body.set_text(":REF: b")
        [marker] = annotations.scan(body)
        assert marker.identifier == "b"
        assert marker.role is Role.REFERENCE

    def test_special_body_not_scanned(
        self, workspace: Workspace, annotations: AnnotationService
    ) -> None:
        body = workspace.open_body("blob.bin", "\x00 :ID: abc")
        assert body.kind is BodyKind.SPECIAL
        assert annotations.markers(body) == []
        assert annotations.state(body) is BodyState.UNANNOTATED

    def test_custom_tags(self, search_root: Path) -> None:
        from refctl.config.settings import RefSettings

        settings = RefSettings.from_cli(
            search_root=search_root, markers={"location_tag": "anchor", "reference_tag": "see"}
        )
        ws = Workspace(settings, timer_factory=ManualTimers())
        service = AnnotationService.attach(ws)
        body = ws.open_body("notes.txt", ":ANCHOR: a :ID: b [[see:c]]")
        assert [(m.role, m.identifier) for m in service.markers(body)] == [
            (Role.LOCATION, "a"),
            (Role.REFERENCE, "c"),
        ]

    def test_annotate_result(self, workspace: Workspace, annotations: AnnotationService) -> None:
        body = workspace.open_body("notes.txt", "intro\n[[id:x][Ex]]\n")
        result = annotations.annotate(body)
        assert result.ok
        assert result.op == "scan"
        assert result.data["count"] == 1
        [item] = result.data["markers"]
        assert item["line"] == 2
        assert item["name"] == "Ex"

    def test_annotate_ineligible_warns(
        self, workspace: Workspace, annotations: AnnotationService
    ) -> None:
        body = workspace.open_body("blob.bin", "\x00")
        result = annotations.annotate(body)
        assert result.ok
        assert result.data["count"] == 0
        assert "not scanned" in result.warnings[0]

    def test_attach_returns_existing(
        self, workspace: Workspace, annotations: AnnotationService
    ) -> None:
        assert AnnotationService.attach(workspace) is annotations
        assert workspace.plugins.get_plugin(PLUGIN_NAME) is annotations


# ---------------------------------------------------------------------------
# Debounced rescans
# ---------------------------------------------------------------------------


class TestRescan:
    def test_edit_burst_rescans_once(
        self,
        workspace: Workspace,
        annotations: AnnotationService,
        manual_timers: ManualTimers,
    ) -> None:
        body = workspace.open_body("notes.txt", ":ID: a")
        for text in (" x", " y", " :REF: b"):
            workspace.edit(body, lambda b, t=text: b.insert(len(b.text), t))

        assert annotations.state(body) is BodyState.PENDING_RESCAN
        assert [m.identifier for m in annotations.markers(body)] == ["a"]
        assert len(manual_timers.live()) == 1
        assert manual_timers.live()[0].delay == 0.5

        manual_timers.fire_all()
        assert annotations.state(body) is BodyState.ANNOTATED
        assert [m.identifier for m in annotations.markers(body)] == ["a", "b"]

    def test_destroy_cancels_pending_rescan(
        self,
        workspace: Workspace,
        annotations: AnnotationService,
        manual_timers: ManualTimers,
    ) -> None:
        body = workspace.open_body("notes.txt", ":ID: a")
        workspace.edit(body, lambda b: b.insert(0, "x"))
        workspace.close_body(body)
        assert manual_timers.live() == []
        assert not workspace.scheduler.pending(body.body_id)
        assert annotations.markers(body) == []
        assert annotations.state(body) is BodyState.UNANNOTATED

    def test_rescan_of_closed_body_drops_its_markers(
        self,
        workspace: Workspace,
        annotations: AnnotationService,
        manual_timers: ManualTimers,
    ) -> None:
        body = workspace.open_body("notes.txt", ":ID: a")
        annotations.schedule_rescan(body)
        timer = manual_timers.live()[0]
        workspace.registry.close(body)
        timer.fire()
        assert annotations.markers(body) == []
        assert annotations.state(body) is BodyState.UNANNOTATED

    def test_scan_superseded_by_concurrent_edit(
        self,
        workspace: Workspace,
        annotations: AnnotationService,
        manual_timers: ManualTimers,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        body = workspace.open_body("notes.txt", "long prefix text :ID: a and :REF: b")
        before = annotations.markers(body)
        real_classify = classify
        edits: list[str] = []

        def classify_during_edit(*args: Any, **kwargs: Any) -> Any:
            if not edits:
                edits.append("shrunk")
                body.set_text(":ID: c")
            return real_classify(*args, **kwargs)

        monkeypatch.setattr("refctl.services.annotate.classify", classify_during_edit)
        assert annotations.scan(body) == before
        assert annotations.markers(body) == before
        assert annotations.state(body) is BodyState.PENDING_RESCAN

        manual_timers.fire_all()
        [marker] = annotations.markers(body)
        assert marker.identifier == "c"
        assert marker.matched_text(workspace.registry) == ":ID: c"
        assert annotations.state(body) is BodyState.ANNOTATED

    def test_marker_at_rescans_stale_set(
        self, workspace: Workspace, annotations: AnnotationService
    ) -> None:
        body = workspace.open_body("notes.txt", "xx")
        workspace.edit(body, lambda b: b.set_text(":REF: zz"))
        marker = annotations.marker_at(body, 2)
        assert marker is not None
        assert marker.identifier == "zz"
        assert not workspace.scheduler.pending(body.body_id)
        assert annotations.state(body) is BodyState.ANNOTATED

    def test_marker_at_outside_markers(
        self, workspace: Workspace, annotations: AnnotationService
    ) -> None:
        body = workspace.open_body("notes.txt", ":ID: a and more")
        assert annotations.marker_at(body, 12) is None


# ---------------------------------------------------------------------------
# Activation
# ---------------------------------------------------------------------------


class TestActivate:
    def test_location_finds_reference_in_file(
        self,
        workspace: Workspace,
        annotations: AnnotationService,
        fake_tools: FakeTools,
        search_root: Path,
    ) -> None:
        note = write_file(search_root, "notes.txt", ["a", "b", "c", "d", "[[ref:abc123]]"])
        fake_tools.outputs["rg"] = rg_line(note, 5, "[[ref:abc123]]")
        body = workspace.open_body("scratch", "before :ID: abc123 after")
        [marker] = annotations.markers(body)

        seen: list[MatchSet] = []
        result = annotations.activate(marker, on_result=seen.append)

        assert result.ok
        assert result.op == "activate"
        [match_set] = seen
        assert match_set.files == (LineFileMatch(path=note, line=5),)
        assert match_set.buffers == ()
        assert match_set.filenames == ()
        assert match_set.status == "complete"
        assert fake_tools.calls_to("fd") == []

    def test_content_tool_receives_lookup_pattern(
        self,
        workspace: Workspace,
        annotations: AnnotationService,
        fake_tools: FakeTools,
        search_root: Path,
    ) -> None:
        annotations.lookup(Role.LOCATION, "abc123")
        [argv] = fake_tools.calls_to("rg")
        regex = argv[argv.index("--regexp") + 1]
        assert "(?i:ref)" in regex
        assert "abc123" in regex
        assert argv[-1] == str(search_root)

    def test_reference_collects_all_three_buckets(
        self,
        workspace: Workspace,
        annotations: AnnotationService,
        fake_tools: FakeTools,
        search_root: Path,
    ) -> None:
        target = write_file(search_root, "target.txt", [":ID: abc123"])
        named = write_file(search_root, "abc123.txt", ["body"])
        fake_tools.outputs["rg"] = rg_line(target, 1, ":ID: abc123")
        fake_tools.outputs["fd"] = under_root("abc123.txt")
        workspace.open_body("draft", "unsaved\n:ID: abc123\n")
        body = workspace.open_body("scratch", "see [[ref:abc123]]")

        seen: list[MatchSet] = []
        result = annotations.follow(body, 6, on_result=seen.append)

        assert result.ok
        [match_set] = seen
        assert [m.buffer_name for m in match_set.buffers] == ["draft"]
        assert isinstance(match_set.buffers[0], LineBufferMatch)
        assert match_set.buffers[0].line == 2
        assert match_set.files == (LineFileMatch(path=target, line=1),)
        assert match_set.filenames == (FileMatch(path=named),)
        assert result.data["count"] == 3

    def test_missing_content_tool(
        self, workspace: Workspace, annotations: AnnotationService, fake_tools: FakeTools
    ) -> None:
        fake_tools.installed.clear()
        body = workspace.open_body("scratch", ":ID: abc")
        [marker] = annotations.markers(body)
        seen: list[MatchSet] = []
        result = annotations.activate(marker, on_result=seen.append)
        assert not result.ok
        assert result.error is not None
        assert result.error.code == ErrorCode.COLLABORATOR_MISSING
        assert result.error.detail["tool"] == "rg"
        assert seen == []
        assert fake_tools.calls == []

    def test_missing_filename_tool_checked_before_any_query(
        self, workspace: Workspace, annotations: AnnotationService, fake_tools: FakeTools
    ) -> None:
        fake_tools.installed = {"rg"}
        result = annotations.lookup(Role.REFERENCE, "abc")
        assert result.error is not None
        assert result.error.detail["tool"] == "fd"
        assert fake_tools.calls == []

    def test_location_does_not_need_filename_tool(
        self, workspace: Workspace, annotations: AnnotationService, fake_tools: FakeTools
    ) -> None:
        fake_tools.installed = {"rg"}
        assert annotations.lookup(Role.LOCATION, "abc").ok

    def test_timeout_gives_partial_result(
        self,
        workspace: Workspace,
        annotations: AnnotationService,
        fake_tools: FakeTools,
        search_root: Path,
    ) -> None:
        write_file(search_root, "abc.txt", ["x"])
        fake_tools.outputs["rg"] = subprocess.TimeoutExpired(["rg"], 0.1)
        fake_tools.outputs["fd"] = under_root("abc.txt")
        result = annotations.lookup(Role.REFERENCE, "abc", timeout=0.1)
        assert result.ok
        assert result.data["status"] == "partial"
        assert result.data["timed_out"] == ["content"]
        assert len(result.data["filenames"]) == 1
        assert any("content search timed out" in w for w in result.warnings)

    def test_malformed_and_vanished_hits_dropped(
        self,
        workspace: Workspace,
        annotations: AnnotationService,
        fake_tools: FakeTools,
        search_root: Path,
    ) -> None:
        real = write_file(search_root, "real.txt", [":ID: abc"])
        fake_tools.outputs["rg"] = "\n".join(
            [
                "no separators",
                rg_line(search_root / "gone.txt", 4),
                rg_line(real, 1, ":ID: abc"),
            ]
        )
        result = annotations.lookup(Role.REFERENCE, "abc")
        assert result.ok
        assert [f["path"] for f in result.data["files"]] == [str(real)]

    def test_stale_marker(
        self, workspace: Workspace, annotations: AnnotationService, fake_tools: FakeTools
    ) -> None:
        body = workspace.open_body("scratch", ":ID: abc")
        [marker] = annotations.markers(body)
        workspace.close_body(body)
        result = annotations.activate(marker)
        assert result.error is not None
        assert result.error.code == ErrorCode.MARKER_STALE
        assert fake_tools.calls == []

    def test_marker_stale_after_edit(
        self, workspace: Workspace, annotations: AnnotationService, fake_tools: FakeTools
    ) -> None:
        body = workspace.open_body("scratch", ":ID: abc")
        [marker] = annotations.markers(body)
        workspace.edit(body, lambda b: b.set_text("nothing here"))
        result = annotations.activate(marker)
        assert not result.ok
        assert result.error is not None
        assert result.error.code == ErrorCode.MARKER_STALE
        assert "edited" in result.error.message
        assert fake_tools.calls == []

    def test_follow_without_marker(
        self, workspace: Workspace, annotations: AnnotationService
    ) -> None:
        body = workspace.open_body("scratch", "plain text\n:ID: abc")
        result = annotations.follow(body, 2)
        assert result.error is not None
        assert result.error.code == ErrorCode.NO_MARKER
        assert "line 1" in result.error.message

    def test_follow_ineligible(
        self, workspace: Workspace, annotations: AnnotationService
    ) -> None:
        body = workspace.open_body("blob.bin", "\x00:ID: abc")
        result = annotations.follow(body, 3)
        assert result.error is not None
        assert result.error.code == ErrorCode.INELIGIBLE_BODY


# ---------------------------------------------------------------------------
# Presentation notifications
# ---------------------------------------------------------------------------


class TestNotifications:
    def test_marker_lifecycle_events(
        self, workspace: Workspace, annotations: AnnotationService
    ) -> None:
        recorder = Recorder()
        workspace.plugins.register_plugin(recorder, name="recorder")
        body = workspace.open_body("notes.txt", ":ID: a")
        annotations.scan(body)
        workspace.close_body(body)
        assert recorder.events == [
            ("updated", ["a"]),
            ("cleared", body.body_id),
            ("updated", ["a"]),
            ("cleared", body.body_id),
        ]

    def test_post_activate(
        self, workspace: Workspace, annotations: AnnotationService
    ) -> None:
        recorder = Recorder()
        workspace.plugins.register_plugin(recorder, name="recorder")
        annotations.lookup(Role.LOCATION, "abc")
        assert recorder.events[-1] == (
            "activated",
            ("abc", "location", {"buffers": 0, "files": 0, "filenames": 0}),
        )

    def test_plugin_failure_is_a_warning(
        self, workspace: Workspace, annotations: AnnotationService
    ) -> None:
        workspace.plugins.register_plugin(Broken(), name="broken")
        result = annotations.lookup(Role.LOCATION, "abc")
        assert result.ok
        assert "Plugin hook post_activate failed" in result.warnings


@pytest.mark.parametrize("role", [Role.LOCATION, Role.REFERENCE])
def test_lookup_without_matches(
    workspace: Workspace, annotations: AnnotationService, role: Role
) -> None:
    result = annotations.lookup(role, "nothing-here")
    assert result.ok
    assert result.data["count"] == 0
    assert result.data["status"] == "complete"
