"""Search results — a closed union of three match variants.

- :class:`FileMatch`: a filename matched, no line locality.
- :class:`LineFileMatch`: a line inside a file on disk matched.
- :class:`LineBufferMatch`: a line inside an open (possibly unsaved) body matched.

Every consumer dispatches with an exhaustive ``match`` ending in
``assert_never``, so adding a variant fails type checking at each site
until its presentation is written.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal, assert_never

from refctl.domain.errors import ContractViolation
from refctl.domain.markers import BodyRef, Role


def _check_line(line: int) -> None:
    if isinstance(line, bool) or not isinstance(line, int) or line < 1:
        msg = f"Line numbers are 1-based positive integers, got {line!r}"
        raise ContractViolation(msg)


def _check_file(path: Path) -> None:
    if not path.is_file():
        msg = f"Match path does not reference an existing file: {path}"
        raise ContractViolation(msg)


@dataclass(frozen=True)
class FileMatch:
    path: Path

    def __post_init__(self) -> None:
        object.__setattr__(self, "path", Path(self.path))
        _check_file(self.path)


@dataclass(frozen=True)
class LineFileMatch:
    path: Path
    line: int

    def __post_init__(self) -> None:
        _check_line(self.line)
        object.__setattr__(self, "path", Path(self.path))
        _check_file(self.path)


@dataclass(frozen=True)
class LineBufferMatch:
    buffer: BodyRef
    buffer_name: str
    line: int

    def __post_init__(self) -> None:
        _check_line(self.line)


Match = FileMatch | LineFileMatch | LineBufferMatch


@dataclass(frozen=True)
class NavigationTarget:
    """Where a presentation layer should jump when a match is chosen."""

    kind: Literal["file", "buffer"]
    line: int
    path: Path | None = None
    body_id: int | None = None


def display_name(match: Match) -> str:
    """Human label for a match (``path:line`` style)."""
    match match:
        case FileMatch(path=path):
            return str(path)
        case LineFileMatch(path=path, line=line):
            return f"{path}:{line}"
        case LineBufferMatch(buffer_name=name, line=line):
            return f"{name}:{line}"
        case _:
            assert_never(match)


def navigation_target(match: Match) -> NavigationTarget:
    match match:
        case FileMatch(path=path):
            return NavigationTarget(kind="file", path=path, line=1)
        case LineFileMatch(path=path, line=line):
            return NavigationTarget(kind="file", path=path, line=line)
        case LineBufferMatch(buffer=ref, line=line):
            return NavigationTarget(kind="buffer", body_id=ref.body_id, line=line)
        case _:
            assert_never(match)


def match_to_dict(match: Match) -> dict[str, Any]:
    match match:
        case FileMatch(path=path):
            return {"kind": "file", "path": str(path)}
        case LineFileMatch(path=path, line=line):
            return {"kind": "file_line", "path": str(path), "line": line}
        case LineBufferMatch(buffer=ref, buffer_name=name, line=line):
            return {"kind": "buffer_line", "buffer": name, "body_id": ref.body_id, "line": line}
        case _:
            assert_never(match)


def _unique(items: list[Any]) -> tuple[Any, ...]:
    return tuple(dict.fromkeys(items))


@dataclass(frozen=True)
class MatchSet:
    """Categorized activation result: one bucket per match variant.

    Buckets are deduplicated internally; no deduplication happens across
    buckets, since a content hit and a filename hit carry different locality.
    """

    identifier: str
    role: Role
    buffers: tuple[LineBufferMatch, ...] = ()
    files: tuple[LineFileMatch, ...] = ()
    filenames: tuple[FileMatch, ...] = ()
    timed_out: tuple[str, ...] = ()

    @classmethod
    def collect(
        cls,
        identifier: str,
        role: Role,
        *,
        buffers: list[LineBufferMatch] | None = None,
        files: list[LineFileMatch] | None = None,
        filenames: list[FileMatch] | None = None,
        timed_out: list[str] | None = None,
    ) -> MatchSet:
        return cls(
            identifier=identifier,
            role=role,
            buffers=_unique(buffers or []),
            files=_unique(files or []),
            filenames=_unique(filenames or []),
            timed_out=tuple(timed_out or ()),
        )

    @property
    def status(self) -> Literal["complete", "partial"]:
        return "partial" if self.timed_out else "complete"

    def all(self) -> list[Match]:
        """Matches in presentation order: buffers, file lines, filenames."""
        return [*self.buffers, *self.files, *self.filenames]

    def __len__(self) -> int:
        return len(self.buffers) + len(self.files) + len(self.filenames)

    def counts(self) -> dict[str, int]:
        return {
            "buffers": len(self.buffers),
            "files": len(self.files),
            "filenames": len(self.filenames),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.identifier,
            "role": str(self.role),
            "status": self.status,
            "timed_out": list(self.timed_out),
            "count": len(self),
            "buffers": [match_to_dict(m) for m in self.buffers],
            "files": [match_to_dict(m) for m in self.files],
            "filenames": [match_to_dict(m) for m in self.filenames],
        }
