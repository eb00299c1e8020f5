"""Shared pytest fixtures and test helpers for refctl tests."""

from __future__ import annotations

import subprocess
from collections.abc import Callable, Generator, Sequence
from pathlib import Path

import pytest
from click.testing import CliRunner

from refctl.config.settings import RefSettings
from refctl.infrastructure.workspace import Workspace
from refctl.services.annotate import AnnotationService
from refctl.services.telemetry import disable_telemetry

# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


class ManualTimer:
    """A timer that only fires when the test says so."""

    def __init__(self, delay: float, callback: Callable[[], None]) -> None:
        self.delay = delay
        self.callback = callback
        self.started = False
        self.cancelled = False
        self.fired = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        if self.cancelled or self.fired:
            return
        self.fired = True
        self.callback()


class ManualTimers:
    """Timer factory recording every timer it hands out."""

    def __init__(self) -> None:
        self.created: list[ManualTimer] = []

    def __call__(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(delay, callback)
        self.created.append(timer)
        return timer

    def live(self) -> list[ManualTimer]:
        return [t for t in self.created if t.started and not t.cancelled and not t.fired]

    def fire_all(self) -> None:
        for timer in self.live():
            timer.fire()


class FakeTools:
    """Recording subprocess runner plus a stand-in for ``shutil.which``.

    ``outputs`` maps an executable name to canned stdout, to a callable
    building stdout from the argv (see :func:`under_root`), or to an exception
    instance the runner raises instead.
    """

    def __init__(self) -> None:
        self.installed: set[str] = {"rg", "fd"}
        self.outputs: dict[str, str | BaseException | Callable[[list[str]], str]] = {}
        self.calls: list[list[str]] = []

    def which(self, name: str) -> str | None:
        return f"/usr/bin/{name}" if name in self.installed else None

    def __call__(self, argv: Sequence[str], timeout: float) -> subprocess.CompletedProcess[str]:
        self.calls.append(list(argv))
        out = self.outputs.get(argv[0], "")
        if isinstance(out, BaseException):
            raise out
        if callable(out):
            out = out(list(argv))
        return subprocess.CompletedProcess(list(argv), 0 if out else 1, stdout=out, stderr="")

    def calls_to(self, executable: str) -> list[list[str]]:
        return [call for call in self.calls if call[0] == executable]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's own refctl configuration out of the tests."""
    monkeypatch.delenv("REFCTL_CONFIG", raising=False)
    for var in ("REFCTL_VERBOSE", "REFCTL_QUIET", "REFCTL_JSON_OUTPUT", "REFCTL_LOG_JSON"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture(autouse=True)
def _reset_telemetry() -> Generator[None]:
    """``-v`` turns telemetry on for the whole context; switch it back off."""
    yield
    disable_telemetry()


@pytest.fixture
def _isolated_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Run CLI tests from an empty directory so no refctl.toml is discovered."""
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def search_root(tmp_path: Path) -> Path:
    """Directory the (fake) external tools search."""
    root = tmp_path / "corpus"
    root.mkdir()
    return root


@pytest.fixture
def settings(search_root: Path, tmp_path: Path) -> RefSettings:
    return RefSettings.from_cli(search_root=search_root, cwd=tmp_path)


@pytest.fixture
def manual_timers() -> ManualTimers:
    return ManualTimers()


@pytest.fixture
def fake_tools(monkeypatch: pytest.MonkeyPatch) -> FakeTools:
    """Replace tool lookup so no test depends on rg or fd being installed."""
    tools = FakeTools()
    monkeypatch.setattr("refctl.infrastructure.search_tools.shutil.which", tools.which)
    return tools


@pytest.fixture
def workspace(
    settings: RefSettings, manual_timers: ManualTimers, fake_tools: FakeTools
) -> Workspace:
    ws = Workspace(settings, timer_factory=manual_timers, runner=fake_tools)
    try:
        yield ws
    finally:
        ws.close()


@pytest.fixture
def annotations(workspace: Workspace) -> AnnotationService:
    """Annotation service subscribed to the workspace's body hooks."""
    return AnnotationService.attach(workspace)


@pytest.fixture
def cli_tools(monkeypatch: pytest.MonkeyPatch, fake_tools: FakeTools) -> FakeTools:
    """Route the CLI's default subprocess runner through :class:`FakeTools`."""
    monkeypatch.setattr("refctl.infrastructure.search_tools.run_subprocess", fake_tools)
    return fake_tools


# ---------------------------------------------------------------------------
# Shared test helpers
# ---------------------------------------------------------------------------


def write_file(root: Path, name: str, lines: Sequence[str]) -> Path:
    """Write *lines* to ``root/name`` and return the path."""
    path = root / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def rg_line(path: Path, line: int, text: str = "") -> str:
    """One line of ripgrep ``--no-heading`` output."""
    return f"{path}:{line}:{text}"


def under_root(*lines: str) -> Callable[[list[str]], str]:
    """Canned output prefixed with the search path as passed, the way rg and fd print it."""

    def render(argv: list[str]) -> str:
        return "".join(f"{argv[-1]}/{line}\n" for line in lines)

    return render
