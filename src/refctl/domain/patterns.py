"""Structured marker patterns with two rendering backends.

Patterns are built as a small immutable AST instead of interpolated
strings. The same tree is compiled for in-process scanning (Python ``re``)
and rendered for the external search tools (ripgrep / fd syntax), so the
capture-group layout is identical on both paths.

Marker grammar for a tag ``T``::

    :T: <blank>+ ID                 property form
    [[T:ID]]  or  [[T:ID][NAME]]    link form

Group order is fixed for every content pattern: tag, id (property form),
then tag, id, name (link form). The classifier in
:mod:`refctl.domain.markers` relies on that order.
"""

from __future__ import annotations

import functools
import re
from dataclasses import dataclass
from typing import Literal as TypingLiteral

Dialect = TypingLiteral["python", "external"]

# Characters with special meaning in ripgrep, PCRE2 and fd outside a class.
_EXTERNAL_META = frozenset("\\.^$|?*+()[]{}")
# Characters that must be escaped inside a bracketed class.
_CLASS_META = frozenset("\\]^-[")


@dataclass(frozen=True)
class Literal:
    """Exact text."""

    text: str


@dataclass(frozen=True)
class Keyword:
    """Literal text matched case-insensitively (tag keywords)."""

    text: str


@dataclass(frozen=True)
class Seq:
    parts: tuple[Pattern, ...]


@dataclass(frozen=True)
class Alt:
    options: tuple[Pattern, ...]


@dataclass(frozen=True)
class Capture:
    """A numbered capture group; ``role`` is documentation for callers."""

    role: str
    inner: Pattern


@dataclass(frozen=True)
class Opt:
    inner: Pattern


@dataclass(frozen=True)
class Repeat1:
    inner: Pattern


@dataclass(frozen=True)
class NotChars:
    """Any single character except *chars* (and whitespace when ``blank``)."""

    chars: str
    blank: bool = False


@dataclass(frozen=True)
class Blank:
    """One horizontal whitespace character (space or tab)."""


@dataclass(frozen=True)
class WordEnd:
    """Word boundary; keeps a lookup id from matching a longer id."""


Pattern = Literal | Keyword | Seq | Alt | Capture | Opt | Repeat1 | NotChars | Blank | WordEnd

_ATOMIC = (NotChars, Blank)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def seq(*parts: Pattern) -> Seq:
    return Seq(tuple(parts))


def alt(*options: Pattern) -> Alt:
    return Alt(tuple(options))


def literal(identifier: str) -> Pattern:
    """Build a lookup pattern matching exactly *identifier*.

    A trailing word boundary is added when the identifier ends in a word
    character, so ``abc`` does not match inside ``:ID: abcdef``.
    """
    if identifier and (identifier[-1].isalnum() or identifier[-1] == "_"):
        return seq(Literal(identifier), WordEnd())
    return Literal(identifier)


def any_identifier(*, spaces: bool = False) -> Pattern:
    """Discovery identifier: one or more characters other than ``]`` and newline.

    Without *spaces* every whitespace character also ends the identifier, which
    is what the unbracketed property form needs.
    """
    if spaces:
        return Repeat1(NotChars("]\n"))
    return Repeat1(NotChars("]", blank=True))


def content_pattern(tag: str, identifier: Pattern | str | None = None) -> Pattern:
    """Build ``property_form | link_form`` for *tag*.

    Args:
        tag: Marker keyword (``"id"``, ``"ref"``); matched case-insensitively.
        identifier: ``None`` for a discovery pattern matching any identifier,
            a string for a lookup of one literal identifier, or a prebuilt
            pattern.
    """
    if identifier is None:
        ident = any_identifier()
        link_ident = any_identifier(spaces=True)
    elif isinstance(identifier, str):
        ident = link_ident = literal(identifier)
    else:
        ident = link_ident = identifier

    property_form = seq(
        Literal(":"),
        Capture("tag", Keyword(tag)),
        Literal(":"),
        Repeat1(Blank()),
        Capture("id", ident),
    )
    link_form = seq(
        Literal("[["),
        Capture("tag", Keyword(tag)),
        Literal(":"),
        Capture("id", link_ident),
        Literal("]"),
        Opt(seq(Literal("["), Capture("name", Repeat1(NotChars("]\n"))), Literal("]"))),
        Literal("]"),
    )
    return alt(property_form, link_form)


def discovery_pattern(location_tag: str, reference_tag: str) -> Pattern:
    """``location | reference`` over any identifier, used for scanning bodies."""
    return alt(content_pattern(location_tag), content_pattern(reference_tag))


def filename_pattern(identifier: str) -> Pattern:
    """Filename lookup: the bare identifier anywhere in a file name."""
    return Literal(identifier)


# ---------------------------------------------------------------------------
# Introspection
# ---------------------------------------------------------------------------


def capture_roles(pattern: Pattern) -> list[str]:
    """Return capture roles in group-number order."""
    roles: list[str] = []

    def walk(node: Pattern) -> None:
        match node:
            case Capture(role=role, inner=inner):
                roles.append(role)
                walk(inner)
            case Seq(parts=children) | Alt(options=children):
                for child in children:
                    walk(child)
            case Opt(inner=inner) | Repeat1(inner=inner):
                walk(inner)
            case _:
                pass

    walk(pattern)
    return roles


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def _escape(text: str, dialect: Dialect) -> str:
    if dialect == "python":
        return re.escape(text)
    return "".join(f"\\{ch}" if ch in _EXTERNAL_META else ch for ch in text)


def _escape_class(chars: str) -> str:
    out = []
    for ch in chars:
        if ch == "\n":
            out.append("\\n")
        elif ch == "\t":
            out.append("\\t")
        elif ch in _CLASS_META:
            out.append(f"\\{ch}")
        else:
            out.append(ch)
    return "".join(out)


def _quantify(node: Pattern, suffix: str, dialect: Dialect) -> str:
    body = render(node, dialect)
    if isinstance(node, _ATOMIC) or (isinstance(node, Literal) and len(node.text) == 1):
        return f"{body}{suffix}"
    return f"(?:{body}){suffix}"


def render(pattern: Pattern, dialect: Dialect = "python") -> str:
    """Render *pattern* as regex source for *dialect*."""
    match pattern:
        case Literal(text=text):
            return _escape(text, dialect)
        case Keyword(text=text):
            return f"(?i:{_escape(text, dialect)})"
        case Seq(parts=parts):
            return "".join(render(p, dialect) for p in parts)
        case Alt(options=options):
            return "(?:" + "|".join(render(o, dialect) for o in options) + ")"
        case Capture(inner=inner):
            return f"({render(inner, dialect)})"
        case Opt(inner=inner):
            return _quantify(inner, "?", dialect)
        case Repeat1(inner=inner):
            return _quantify(inner, "+", dialect)
        case NotChars(chars=chars, blank=blank):
            return "[^" + _escape_class(chars) + ("\\s" if blank else "") + "]"
        case Blank():
            return "[ \\t]"
        case WordEnd():
            return "\\b"
    msg = f"Unknown pattern node: {pattern!r}"
    raise TypeError(msg)


def render_external(pattern: Pattern) -> str:
    """Regex source for ripgrep's default engine, PCRE2, and fd."""
    return render(pattern, "external")


@functools.lru_cache(maxsize=128)
def compile_pattern(pattern: Pattern) -> re.Pattern[str]:
    """Compile *pattern* for in-process scanning.

    Case-insensitivity lives in the pattern itself (scoped on tag keywords),
    so no global flags are applied and identifiers stay verbatim.
    """
    return re.compile(render(pattern, "python"))
