"""Marker roles, match classification, and the anchored Marker record.

A marker is one ``:ID:``/``[[id:...]]`` (location) or ``:REF:``/``[[ref:...]]``
(reference) occurrence inside a text body. Markers never hold the body
itself: they carry a :class:`BodyRef` (body id + version) and are resolved
through the owning registry, so a destroyed body is detected instead of
dereferenced.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol

from refctl.domain.errors import ContractViolation, MalformedMatch


class Role(StrEnum):
    """Whether a marker defines an identifier or points at one."""

    LOCATION = "location"
    REFERENCE = "reference"

    @property
    def opposite(self) -> Role:
        return Role.REFERENCE if self is Role.LOCATION else Role.LOCATION


class TextSource(Protocol):
    """The slice of a text body a marker needs at construction time."""

    @property
    def body_id(self) -> int: ...

    @property
    def version(self) -> int: ...

    @property
    def text(self) -> str: ...

    @property
    def closed(self) -> bool: ...


@dataclass(frozen=True)
class BodyRef:
    """Generation-checked handle to a text body."""

    body_id: int
    version: int


class BodyResolver(Protocol):
    """Turns a :class:`BodyRef` back into a live body (registry side)."""

    def resolve(self, ref: BodyRef) -> TextSource | None: ...

    def is_current(self, ref: BodyRef) -> bool: ...


def classify(
    raw_groups: Sequence[str | None],
    *,
    location_tag: str = "id",
    reference_tag: str = "ref",
) -> tuple[Role, str, str | None]:
    """Map the captured groups of one discovery match to ``(role, id, name)``.

    The discovery pattern alternates four forms, so only one form's groups
    are populated per match. The first present group is the tag, the next
    present group is the identifier, and the one after that (if any) is the
    display name.

    Raises:
        MalformedMatch: if fewer than two groups are present or the tag is
            neither the location nor the reference tag.
    """
    present = [g for g in raw_groups if g is not None]
    if len(present) < 2:
        msg = f"Expected a tag and an identifier, got {list(raw_groups)!r}"
        raise MalformedMatch(msg)

    tag = present[0].lower()
    if tag == location_tag.lower():
        role = Role.LOCATION
    elif tag == reference_tag.lower():
        role = Role.REFERENCE
    else:
        msg = f"Unknown marker tag {present[0]!r}"
        raise MalformedMatch(msg)

    name = present[2] if len(present) > 2 else None
    return role, present[1], name


@dataclass(frozen=True)
class Marker:
    """A location or reference occurrence anchored at a span of a body.

    Attributes:
        role: Location or reference.
        identifier: The shared id, verbatim.
        owner: Handle to the body the marker was scanned from.
        span: ``(start, end)`` character offsets of the matched text.
        display_name: Optional ``[name]`` part of the link form.
    """

    role: Role
    identifier: str
    owner: BodyRef
    span: tuple[int, int]
    display_name: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.identifier, str) or not self.identifier:
            msg = f"Marker identifier must be a non-empty string, got {self.identifier!r}"
            raise ContractViolation(msg)
        if not isinstance(self.role, Role):
            msg = f"Marker role must be a Role, got {self.role!r}"
            raise ContractViolation(msg)
        start, end = self.span
        if start < 0 or end <= start:
            msg = f"Invalid marker span {self.span!r}"
            raise ContractViolation(msg)

    @classmethod
    def anchored(
        cls,
        role: Role,
        identifier: str,
        body: TextSource,
        span: tuple[int, int],
        display_name: str | None = None,
    ) -> Marker:
        """Create a marker on a live *body*, checking the span against its text."""
        if body.closed:
            msg = f"Cannot anchor a marker on closed body {body.body_id}"
            raise ContractViolation(msg)
        if span[1] > len(body.text):
            msg = f"Marker span {span!r} exceeds body length {len(body.text)}"
            raise ContractViolation(msg)
        return cls(
            role=role,
            identifier=identifier,
            owner=BodyRef(body.body_id, body.version),
            span=span,
            display_name=display_name,
        )

    @property
    def start(self) -> int:
        return self.span[0]

    @property
    def end(self) -> int:
        return self.span[1]

    def covers(self, offset: int) -> bool:
        return self.start <= offset < self.end

    def is_live(self, registry: BodyResolver) -> bool:
        """True while the owning body is still open."""
        return registry.resolve(self.owner) is not None

    def matched_text(self, registry: BodyResolver) -> str | None:
        """The marker's source text, or None if the body is gone or has changed."""
        if not registry.is_current(self.owner):
            return None
        body = registry.resolve(self.owner)
        if body is None:
            return None
        return body.text[self.start : self.end]

    def to_dict(self) -> dict[str, object]:
        return {
            "role": str(self.role),
            "id": self.identifier,
            "name": self.display_name,
            "body_id": self.owner.body_id,
            "start": self.start,
            "end": self.end,
        }
