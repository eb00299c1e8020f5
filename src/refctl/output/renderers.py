"""Operation-specific Rich renderers for ServiceResult.

Renderers are dispatched by ``result.op`` in :func:`render_result`.
Unknown ops fall through to a generic key-value renderer.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from rich.table import Table
from rich.text import Text

from refctl.output.console import create_console, get_output, style_for_role

if TYPE_CHECKING:
    from rich.console import Console

    from refctl.services.result import ServiceResult


# ── Public API ────────────────────────────────────────────────────────


def render_result(result: ServiceResult, *, verbose: bool = False) -> str:
    console = create_console()
    if result.ok:
        renderer = _OP_RENDERERS.get(result.op, _render_generic)
        renderer(result, console, verbose=verbose)
    else:
        _render_error(result, console, verbose=verbose)
    return get_output(console).rstrip("\n")


def render_quiet(result: ServiceResult) -> str:
    """One location per line (``path:line``, ``buffer:line``, or ``path``)."""
    if not result.ok:
        msg = result.error.message if result.error else "Unknown error"
        return f"ERROR: {result.op} — {msg}"

    lines: list[str] = []
    for bucket in ("buffers", "files", "filenames"):
        lines.extend(_location(item) for item in result.data.get(bucket, []))
    for marker in result.data.get("markers", []):
        lines.append(f"{marker['role']}\t{marker['id']}\t{marker['line']}")
    if lines:
        return "\n".join(lines)
    return f"OK: {result.op}"


# ── Helpers ───────────────────────────────────────────────────────────


def _location(item: dict[str, Any]) -> str:
    where = item.get("path") or item.get("buffer") or "?"
    line = item.get("line")
    return f"{where}:{line}" if line is not None else str(where)


def _status_line(console: Console, result: ServiceResult) -> None:
    console.print(Text("OK", style="ref.ok"), Text(f"  {result.op}", style="ref.op"))


def _field(console: Console, key: str, value: Any) -> None:
    k = Text(f"  {key}: ", style="ref.key")
    style = "ref.id" if key == "id" else "ref.path" if key in ("path", "body") else ""
    console.print(k, Text(str(value), style=style), sep="")


def _render_meta(console: Console, result: ServiceResult) -> None:
    if not result.meta:
        return
    console.print()
    console.print(Text("  meta:", style="dim"))
    for k, v in result.meta.items():
        if k == "telemetry":
            _render_telemetry_tree(console, v, indent=4)
        else:
            console.print(f"    {k}: {v}")


def _render_telemetry_tree(console: Console, span: dict[str, Any], indent: int = 4) -> None:
    duration = span.get("duration_ms", 0.0)
    style = "bold red" if duration > 1000 else "yellow" if duration > 100 else "dim"
    line = f"{' ' * indent}[{style}]{duration:>8.2f}ms[/{style}]  {span.get('name', '?')}"
    annotations = span.get("annotations") or {}
    if annotations:
        line += "  (" + ", ".join(f"{k}={v}" for k, v in annotations.items()) + ")"
    console.print(line)
    for child in span.get("children", []):
        _render_telemetry_tree(console, child, indent=indent + 4)


# ── Error renderer ────────────────────────────────────────────────────


def _render_error(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    err = result.error
    msg = err.message if err else "Unknown error"
    console.print(
        Text("ERROR", style="ref.error"), Text(f"  {result.op}", style="ref.op"), " — ", msg
    )
    if verbose and err and err.detail:
        console.print(Text("  detail:", style="dim"))
        for k, v in err.detail.items():
            console.print(f"    {k}: {v}")


# ── Op renderers ──────────────────────────────────────────────────────


def _render_scan(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    d = result.data
    _status_line(console, result)
    _field(console, "body", d.get("body", "?"))
    markers = d.get("markers", [])
    if markers:
        table = Table(show_header=True, show_lines=False, pad_edge=False, expand=False)
        table.add_column("Line", style="ref.line", justify="right")
        table.add_column("Role")
        table.add_column("ID", style="ref.id", no_wrap=True)
        table.add_column("Name")
        if verbose:
            table.add_column("Span", style="dim")
        for m in markers:
            row: list[Any] = [
                str(m["line"]),
                Text(m["role"], style=style_for_role(m["role"])),
                m["id"],
                m.get("name") or "",
            ]
            if verbose:
                row.append(f"{m['start']}-{m['end']}")
            table.add_row(*row)
        console.print(table)
    console.print(f"\n{d.get('count', len(markers))} markers")
    if verbose:
        _render_meta(console, result)


_BUCKET_TITLES = (
    ("buffers", "Open buffers"),
    ("files", "Files"),
    ("filenames", "Filenames"),
)


def _render_activate(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    d = result.data
    role = str(d.get("role", ""))
    header = Text.assemble(
        ("OK", "ref.ok"),
        (f"  {result.op}  ", "ref.op"),
        (role, style_for_role(role)),
        " ",
        (str(d.get("id", "")), "ref.id"),
    )
    console.print(header)

    for bucket, title in _BUCKET_TITLES:
        items = d.get(bucket, [])
        if not items:
            continue
        console.print(Text(f"\n  {title} ({len(items)})", style="bold"))
        for item in items:
            console.print(f"    {_location(item)}", style="ref.path")

    count = d.get("count", 0)
    if d.get("status") == "partial":
        sources = ", ".join(d.get("timed_out", []))
        summary = f"\n{count} matches (incomplete: {sources} timed out)"
        console.print(Text(summary, style="ref.warning"))
    elif count == 0:
        console.print("\nNo matches")
    else:
        console.print(f"\n{count} matches")
    if verbose:
        _render_meta(console, result)


def _render_generic(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    for key, value in result.data.items():
        _field(console, key, value)
    if verbose:
        _render_meta(console, result)


_OP_RENDERERS: dict[str, Any] = {
    "scan": _render_scan,
    "activate": _render_activate,
    "lookup": _render_activate,
}
