"""Tests for SearchService — the three sources and the lookup contract."""

from __future__ import annotations

from pathlib import Path

import pytest

from refctl.config.settings import RefSettings
from refctl.domain.markers import Role
from refctl.domain.patterns import content_pattern
from refctl.infrastructure.workspace import Workspace
from refctl.services.result import ErrorCode
from refctl.services.search import SearchService
from tests.conftest import FakeTools, ManualTimers, rg_line, under_root, write_file


class TestSources:
    def test_buffer_contents_include_unsaved_text(self, workspace: Workspace) -> None:
        first = workspace.open_body("a", "x\n[[ref:k]]\n:REF: k")
        workspace.open_body("b", "nothing")
        hits = SearchService(workspace).search_buffer_contents(content_pattern("ref", "k"))
        assert [(h.buffer, h.buffer_name, h.line) for h in hits] == [
            (first.ref, "a", 2),
            (first.ref, "a", 3),
        ]

    def test_buffer_lines_counted_on_newline_only(self, workspace: Workspace) -> None:
        body = workspace.open_body("init.el", ";;; a\n\x0c\n;; :REF: k\r\n\x85x\n:REF: k")
        hits = SearchService(workspace).search_buffer_contents(content_pattern("ref", "k"))
        assert [h.line for h in hits] == [3, 5]
        assert body.line_of(body.text.rindex(":REF:")) == 5

    def test_file_contents(
        self, workspace: Workspace, fake_tools: FakeTools, search_root: Path
    ) -> None:
        note = write_file(search_root, "n.txt", ["[[ref:k]]"])
        fake_tools.outputs["rg"] = rg_line(note, 1) + "\n" + rg_line(note, 1)
        hits = SearchService(workspace).search_file_contents(content_pattern("ref", "k"))
        assert [(h.path, h.line) for h in hits] == [(note, 1), (note, 1)]

    def test_filenames(
        self, workspace: Workspace, fake_tools: FakeTools, search_root: Path
    ) -> None:
        write_file(search_root, "k.md", ["x"])
        (search_root / "k-dir").mkdir()
        fake_tools.outputs["fd"] = under_root("k.md", "k-dir")
        hits = SearchService(workspace).search_filenames(content_pattern("ref", "k"))
        assert [h.path for h in hits] == [search_root / "k.md"]

    def test_timeout_defaults_to_settings(
        self, workspace: Workspace, fake_tools: FakeTools
    ) -> None:
        service = SearchService(workspace)
        assert service._timeout(None) == workspace.settings.search.timeout
        assert service._timeout(2.5) == 2.5

    def test_tag_for_role(self, workspace: Workspace) -> None:
        service = SearchService(workspace)
        assert service.tag_for(Role.LOCATION) == "id"
        assert service.tag_for(Role.REFERENCE) == "ref"


class TestLookup:
    def test_duplicate_tool_lines_collapse(
        self, workspace: Workspace, fake_tools: FakeTools, search_root: Path
    ) -> None:
        note = write_file(search_root, "n.txt", ["[[ref:k]] :REF: k"])
        fake_tools.outputs["rg"] = rg_line(note, 1) + "\n" + rg_line(note, 1)
        match_set = SearchService(workspace).collect(Role.LOCATION, "k")
        assert len(match_set.files) == 1

    def test_relative_root_hits_survive(
        self,
        fake_tools: FakeTools,
        manual_timers: ManualTimers,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.chdir(tmp_path)
        write_file(tmp_path / "notes", "a.txt", ["x", "[[ref:abc123]]"])
        write_file(tmp_path / "notes", "abc123.md", ["named"])
        fake_tools.outputs["rg"] = under_root("a.txt:2:[[ref:abc123]]")
        fake_tools.outputs["fd"] = under_root("abc123.md")
        settings = RefSettings.from_cli(search_root=Path("notes"), cwd=tmp_path)
        workspace = Workspace(settings, timer_factory=manual_timers, runner=fake_tools)

        match_set = SearchService(workspace).collect(Role.LOCATION, "abc123")
        assert [(m.path, m.line) for m in match_set.files] == [(tmp_path / "notes" / "a.txt", 2)]

        match_set = SearchService(workspace).collect(Role.REFERENCE, "abc123")
        assert [m.path for m in match_set.filenames] == [tmp_path / "notes" / "abc123.md"]

    def test_lookup_result_shape(self, workspace: Workspace, fake_tools: FakeTools) -> None:
        result = SearchService(workspace).lookup(Role.REFERENCE, "k")
        assert result.ok
        assert result.op == "lookup"
        assert set(result.data) >= {"id", "role", "status", "buffers", "files", "filenames"}

    def test_lookup_missing_tool(self, workspace: Workspace, fake_tools: FakeTools) -> None:
        fake_tools.installed.clear()
        result = SearchService(workspace).lookup(Role.LOCATION, "k")
        assert not result.ok
        assert result.op == "lookup"
        assert result.error is not None
        assert result.error.code == ErrorCode.COLLABORATOR_MISSING

    def test_filename_search_uses_bare_identifier(
        self, workspace: Workspace, fake_tools: FakeTools
    ) -> None:
        SearchService(workspace).collect(Role.REFERENCE, "a.b")
        [argv] = fake_tools.calls_to("fd")
        assert argv[argv.index("--") + 1] == r"a\.b"


class TestDescribePattern:
    def test_external(self, workspace: Workspace) -> None:
        result = SearchService(workspace).describe_pattern("ref", "abc")
        assert result.ok
        assert result.op == "pattern"
        assert result.data["dialect"] == "external"
        assert result.data["groups"] == ["tag", "id", "tag", "id", "name"]
        assert "abc" in result.data["pattern"]

    def test_python_discovery(self, workspace: Workspace) -> None:
        result = SearchService(workspace).describe_pattern("id", dialect="python")
        assert result.data["id"] is None
        assert result.data["pattern"].startswith("(?:")
