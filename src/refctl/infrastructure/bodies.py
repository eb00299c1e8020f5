"""Text bodies and the registry that owns them.

A :class:`TextBody` is an open, mutable text (a file opened for editing or
an unsaved scratch buffer). Bodies are owned by a :class:`BodyRegistry`;
everything else refers to them through :class:`~refctl.domain.markers.BodyRef`
handles and resolves those handles through the registry.

INVARIANT: ``version`` increases on every mutation, and a closed body is
never returned from :meth:`BodyRegistry.resolve`.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path

from refctl.domain.errors import ContractViolation
from refctl.domain.markers import BodyRef

logger = logging.getLogger(__name__)


class BodyKind(StrEnum):
    """Coarse content classification; only text and prog bodies are scanned."""

    TEXT = "text"
    PROG = "prog"
    SPECIAL = "special"


_PROG_SUFFIXES = frozenset(
    {
        ".c", ".cc", ".cpp", ".cs", ".el", ".go", ".h", ".hpp", ".java", ".js",
        ".jsx", ".kt", ".lisp", ".lua", ".php", ".pl", ".py", ".rb", ".rs",
        ".scala", ".scm", ".sh", ".sql", ".swift", ".ts", ".tsx", ".zig",
    }
)  # fmt: skip


def guess_kind(name: str, text: str) -> BodyKind:
    """Classify a body from its name and content.

    NUL bytes mark binary content; known source suffixes mark program
    source; everything else is treated as structured text.
    """
    if "\x00" in text:
        return BodyKind.SPECIAL
    if Path(name).suffix.lower() in _PROG_SUFFIXES:
        return BodyKind.PROG
    return BodyKind.TEXT


@dataclass(frozen=True)
class BodySnapshot:
    """A body's text frozen at one version; markers can be anchored on it."""

    body_id: int
    version: int
    text: str
    closed: bool = False


class TextBody:
    """An addressable, mutable character sequence with a stable identity."""

    def __init__(
        self,
        body_id: int,
        name: str,
        text: str = "",
        *,
        path: Path | None = None,
        kind: BodyKind = BodyKind.TEXT,
    ) -> None:
        self._body_id = body_id
        self.name = name
        self.path = path
        self.kind = kind
        self._text = text
        self._version = 0
        self._closed = False

    def __repr__(self) -> str:
        return f"TextBody(id={self._body_id}, name={self.name!r}, version={self._version})"

    @property
    def body_id(self) -> int:
        return self._body_id

    @property
    def text(self) -> str:
        return self._text

    @property
    def version(self) -> int:
        return self._version

    @property
    def closed(self) -> bool:
        return self._closed

    def mark_closed(self) -> None:
        """Called by the owning registry; later mutations are rejected."""
        self._closed = True

    @property
    def ref(self) -> BodyRef:
        """Handle valid for the current version."""
        return BodyRef(self._body_id, self._version)

    def snapshot(self) -> BodySnapshot:
        """Current text and the version it belongs to.

        Reads the version before the text while :meth:`_mutate` writes them in
        the opposite order, so a racing edit can only make the snapshot look
        older than its text, never newer.
        """
        version = self._version
        return BodySnapshot(self._body_id, version, self._text, self._closed)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def _mutate(self, new_text: str) -> None:
        if self._closed:
            msg = f"Cannot modify closed body {self.name!r}"
            raise ContractViolation(msg)
        self._text = new_text
        self._version += 1

    def set_text(self, text: str) -> None:
        self._mutate(text)

    def insert(self, offset: int, text: str) -> None:
        if not 0 <= offset <= len(self._text):
            msg = f"Insert offset {offset} outside body of length {len(self._text)}"
            raise ContractViolation(msg)
        self._mutate(self._text[:offset] + text + self._text[offset:])

    def delete(self, start: int, end: int) -> None:
        if not 0 <= start <= end <= len(self._text):
            msg = f"Delete range ({start}, {end}) outside body of length {len(self._text)}"
            raise ContractViolation(msg)
        self._mutate(self._text[:start] + self._text[end:])

    # ------------------------------------------------------------------
    # Positions
    # ------------------------------------------------------------------

    def line_of(self, offset: int) -> int:
        """1-based line number containing *offset*."""
        return self._text.count("\n", 0, offset) + 1

    def offset_of(self, line: int, column: int = 1) -> int:
        """Character offset of a 1-based ``line``/``column`` position."""
        if line < 1:
            msg = f"Line numbers are 1-based, got {line}"
            raise ContractViolation(msg)
        offset = 0
        for _ in range(line - 1):
            newline = self._text.find("\n", offset)
            if newline == -1:
                msg = f"Line {line} is past the end of {self.name!r}"
                raise ContractViolation(msg)
            offset = newline + 1
        return min(offset + max(column, 1) - 1, len(self._text))


class BodyRegistry:
    """Owns every open :class:`TextBody`; resolves handles to live bodies."""

    def __init__(self) -> None:
        self._bodies: dict[int, TextBody] = {}
        self._ids = itertools.count(1)

    def open(
        self,
        name: str,
        text: str = "",
        *,
        path: Path | None = None,
        kind: BodyKind | None = None,
    ) -> TextBody:
        """Register a new body and return it."""
        body = TextBody(
            next(self._ids),
            name,
            text,
            path=path,
            kind=kind if kind is not None else guess_kind(name, text),
        )
        self._bodies[body.body_id] = body
        logger.debug("Opened body %d (%s, %s)", body.body_id, name, body.kind)
        return body

    def open_file(self, path: Path) -> TextBody:
        """Open *path* as a body, reusing an already-open body for the same file."""
        resolved = path.resolve()
        existing = self.find_by_path(resolved)
        if existing is not None:
            return existing
        text = resolved.read_text(encoding="utf-8", errors="replace")
        return self.open(resolved.name, text, path=resolved)

    def close(self, body: TextBody) -> None:
        if self._bodies.pop(body.body_id, None) is None:
            return
        body.mark_closed()
        logger.debug("Closed body %d (%s)", body.body_id, body.name)

    def get(self, body_id: int) -> TextBody | None:
        return self._bodies.get(body_id)

    def resolve(self, ref: BodyRef) -> TextBody | None:
        """The live body behind *ref*, or None once it has been closed."""
        return self._bodies.get(ref.body_id)

    def is_current(self, ref: BodyRef) -> bool:
        """True if the body is live and unchanged since *ref* was taken."""
        body = self._bodies.get(ref.body_id)
        return body is not None and body.version == ref.version

    def bodies(self) -> list[TextBody]:
        """Live bodies in open order."""
        return list(self._bodies.values())

    def find_by_path(self, path: Path) -> TextBody | None:
        for body in self._bodies.values():
            if body.path is not None and body.path == path:
                return body
        return None

    def __len__(self) -> int:
        return len(self._bodies)

    def __contains__(self, body: object) -> bool:
        return isinstance(body, TextBody) and self._bodies.get(body.body_id) is body
