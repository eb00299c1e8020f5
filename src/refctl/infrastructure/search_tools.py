"""Subprocess adapters for the external search tools.

Content search follows the ripgrep contract (``path:line:text`` per matching
line, headings and color off); filename search follows the fd contract (one
path per line). Only the first two colon-separated fields of a content line
are consumed.

A missing executable raises :class:`CollaboratorMissing` before any query
is issued. A run exceeding its timeout raises :class:`SearchTimeout`.
Non-zero exit codes other than "no matches" are logged and stdout is still
parsed, since ripgrep reports unreadable files that way while still
printing every match it found.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from collections.abc import Callable, Sequence
from pathlib import Path

from refctl.domain.errors import CollaboratorMissing, MalformedOutput, SearchTimeout

logger = logging.getLogger(__name__)

Runner = Callable[[Sequence[str], float], subprocess.CompletedProcess[str]]


def run_subprocess(argv: Sequence[str], timeout: float) -> subprocess.CompletedProcess[str]:
    """Default runner: capture text output, never raise on exit status."""
    return subprocess.run(
        list(argv),
        capture_output=True,
        text=True,
        check=False,
        timeout=timeout,
    )


def parse_content_line(line: str) -> tuple[str, int]:
    """Split ``path:line:text`` into ``(path, line)``.

    Raises:
        MalformedOutput: if the line has no second field or it is not a
            positive integer.
    """
    fields = line.split(":", 2)
    if len(fields) < 2 or not fields[0]:
        raise MalformedOutput(line, "missing path:line fields")
    try:
        line_no = int(fields[1])
    except ValueError:
        raise MalformedOutput(line, "non-numeric line field") from None
    if line_no < 1:
        raise MalformedOutput(line, "line number out of range")
    return fields[0], line_no


def parse_filename_lines(stdout: str) -> list[str]:
    return [line for line in (raw.strip() for raw in stdout.splitlines()) if line]


def output_path(raw: str) -> Path:
    """Turn a printed path into an absolute one.

    Both tools print each hit under the search path exactly as it was passed,
    so a relative hit is relative to the working directory, never to the root.
    """
    path = Path(raw)
    return path if path.is_absolute() else path.absolute()


class SearchTool:
    """Base adapter: availability check plus a guarded subprocess run."""

    source = "external"

    def __init__(self, executable: str, *, runner: Runner | None = None) -> None:
        self.executable = executable
        self._runner = runner or run_subprocess

    def available(self) -> bool:
        return shutil.which(self.executable) is not None

    def ensure_available(self) -> None:
        if not self.available():
            raise CollaboratorMissing(self.executable)

    def run(self, argv: Sequence[str], timeout: float) -> str:
        logger.debug("Running %s", " ".join(argv))
        try:
            result = self._runner(argv, timeout)
        except subprocess.TimeoutExpired:
            logger.warning("%s search timed out after %ss", self.source, timeout)
            raise SearchTimeout(self.source, timeout) from None
        except OSError as exc:
            raise CollaboratorMissing(self.executable, str(exc)) from exc
        if result.returncode not in (0, 1):
            logger.debug(
                "%s exited with %d: %s",
                self.executable,
                result.returncode,
                (result.stderr or "").strip(),
            )
        return result.stdout or ""


class ContentSearchTool(SearchTool):
    """Line-oriented content search (ripgrep)."""

    source = "content"

    def argv(self, regex: str, root: Path) -> list[str]:
        return [
            self.executable,
            "--no-heading",
            "--color",
            "never",
            "--line-number",
            "--with-filename",
            "--case-sensitive",
            "--regexp",
            regex,
            str(root),
        ]

    def search(self, regex: str, root: Path, *, timeout: float) -> list[tuple[Path, int]]:
        """Return ``(path, line)`` for each matching line; malformed lines are skipped."""
        stdout = self.run(self.argv(regex, root), timeout)
        hits: list[tuple[Path, int]] = []
        for line in stdout.splitlines():
            if not line.strip():
                continue
            try:
                raw_path, line_no = parse_content_line(line)
            except MalformedOutput as exc:
                logger.debug("Skipping content output line: %s", exc)
                continue
            hits.append((output_path(raw_path), line_no))
        return hits


class FilenameSearchTool(SearchTool):
    """Filename search (fd)."""

    source = "filename"

    def argv(self, regex: str, root: Path) -> list[str]:
        return [
            self.executable,
            "--color",
            "never",
            "--case-sensitive",
            "--type",
            "f",
            "--",
            regex,
            str(root),
        ]

    def search(self, regex: str, root: Path, *, timeout: float) -> list[Path]:
        stdout = self.run(self.argv(regex, root), timeout)
        return [output_path(raw) for raw in parse_filename_lines(stdout)]
