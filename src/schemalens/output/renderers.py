"""Rich renderers for ServiceResult, one per operation.

``render_result`` picks a renderer by ``result.op``; unknown ops get a
key-value listing. Output is captured through a recording console, so
it is plain text under CliRunner and in pipes and styled on a terminal.
"""

from __future__ import annotations

import json as _json
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from rich.padding import Padding
from rich.table import Table
from rich.text import Text
from rich.tree import Tree

from schemalens.output.console import create_console, get_output, style_for_edge

if TYPE_CHECKING:
    from rich.console import Console

    from schemalens.services.result import ServiceResult

Renderer = Callable[..., None]

# Spans slower than these get highlighted in the verbose timing tree.
_SLOW_MS = 1000.0
_WARN_MS = 100.0


# ── Public API ────────────────────────────────────────────────────────


def render_result(result: ServiceResult, *, verbose: bool = False) -> str:
    """Render *result* for a human reader."""
    console = create_console()
    if result.ok:
        _OP_RENDERERS.get(result.op, _render_generic)(result, console, verbose=verbose)
    else:
        _render_error(result, console, verbose=verbose)
    return get_output(console).rstrip("\n")


def render_quiet(result: ServiceResult) -> str:
    """One line per id for listings, otherwise a single status line."""
    if not result.ok:
        if result.error is None:
            return f"ERROR: {result.op}"
        return f"ERROR: {result.op} [{result.error.code}] {result.error.message}"

    items = result.data.get("items") or result.data.get("nodes")
    if isinstance(items, list) and items:
        ids = [str(item["id"]) for item in items if isinstance(item, dict) and "id" in item]
        return "\n".join(ids)

    status = result.data.get("status")
    return f"OK: {result.op} {status}" if status else f"OK: {result.op}"


# ── Helpers ───────────────────────────────────────────────────────────


def _status_line(console: Console, result: ServiceResult) -> None:
    console.print(Text.assemble(("OK", "sl.ok"), ("  " + result.op, "sl.op")))


def _field(console: Console, key: str, value: Any) -> None:
    """Print one indented ``key: value`` line, styled by key."""
    if key == "id" or key.endswith("_id"):
        style = "sl.id"
    elif key == "status" and isinstance(value, str):
        style = style_for_edge("LOGICAL", value)
    else:
        style = ""
    console.print(Text.assemble((f"  {key}: ", "sl.key"), (str(value), style)))


def _span_label(span: dict[str, Any]) -> Text:
    duration = float(span.get("duration_ms", 0.0))
    if duration > _SLOW_MS:
        style = "bold red"
    elif duration > _WARN_MS:
        style = "yellow"
    else:
        style = "dim"
    label = Text.assemble((f"{duration:>8.2f}ms", style), f"  {span.get('name', '?')}")
    annotations = span.get("annotations") or {}
    if annotations:
        label.append("  (" + ", ".join(f"{k}={v}" for k, v in annotations.items()) + ")")
    return label


def _span_tree(span: dict[str, Any], tree: Tree | None = None) -> Tree:
    node = Tree(_span_label(span)) if tree is None else tree.add(_span_label(span))
    for child in span.get("children", []):
        _span_tree(child, node)
    return node


def _render_meta(console: Console, result: ServiceResult) -> None:
    """Verbose-only meta block; the telemetry span tree is drawn as a tree."""
    if not result.meta:
        return
    console.print()
    console.print(Text("  meta:", style="dim"))
    for key, value in result.meta.items():
        if key == "telemetry":
            console.print(Padding.indent(_span_tree(value), 4))
        else:
            console.print(f"    {key}: {value}")


def _render_notices(console: Console, notices: list[str]) -> None:
    for notice in notices:
        console.print(Text(f"  ! {notice}", style="sl.warning"))


# ── Error renderer ────────────────────────────────────────────────────


def _render_error(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    err = result.error
    line = Text.assemble(("ERROR", "sl.error"), ("  " + result.op, "sl.op"))
    if err is not None:
        line.append(f"  [{err.code}] ", style="dim")
        line.append(err.message)
    console.print(line)

    if verbose and err and err.detail:
        console.print(Text("  detail:", style="dim"))
        for k, v in err.detail.items():
            console.print(f"    {k}: {v}")


# ── Graph renderers ───────────────────────────────────────────────────


def _render_graph(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render a neighborhood view as a node table and an edge table."""
    d = result.data
    _status_line(console, result)
    _field(console, "focus_object_id", d.get("focus_object_id"))
    _field(console, "direction", d.get("direction"))
    state = d.get("state") or {}
    if "hop_depth" in state:
        _field(console, "hops", state["hop_depth"])

    nodes: list[dict[str, Any]] = d.get("nodes", [])
    edges: list[dict[str, Any]] = d.get("edges", [])
    names = {n["id"]: n["name"] for n in nodes}

    console.print()
    node_table = Table(title="Objects", show_header=True, pad_edge=False, expand=False)
    node_table.add_column("ID", style="sl.id", no_wrap=True)
    node_table.add_column("Name", style="sl.name")
    node_table.add_column("Schema")
    node_table.add_column("Depth", justify="right")
    node_table.add_column("Columns", justify="right")
    if verbose:
        node_table.add_column("Position", style="dim")
    for node in nodes:
        name = Text(node["name"], style="sl.focus" if node.get("is_focus") else "sl.name")
        row: list[Any] = [
            str(node["id"]),
            name,
            str(node.get("schema") or ""),
            str(node.get("depth", "")),
            str(len(node.get("columns", []))),
        ]
        if verbose:
            row.append(f"({node.get('x', 0):.0f}, {node.get('y', 0):.0f})")
        node_table.add_row(*row)
    console.print(node_table)

    if edges:
        console.print()
        edge_table = Table(title="Relationships", show_header=True, pad_edge=False, expand=False)
        edge_table.add_column("ID", style="sl.id", no_wrap=True)
        edge_table.add_column("From")
        edge_table.add_column("To")
        edge_table.add_column("Type")
        edge_table.add_column("Status")
        for edge in edges:
            source = _endpoint(names, edge["source"], edge.get("source_column"))
            target = _endpoint(names, edge["target"], edge.get("target_column"))
            label = edge.get("label") or ""
            if edge.get("pending"):
                label = f"{label} …".strip()
            if edge.get("is_back_edge"):
                label = f"{label} ↺".strip()
            style = style_for_edge(str(edge["type"]), edge.get("status"))
            edge_table.add_row(
                edge["id"], source, target, str(edge["type"]), Text(label, style=style)
            )
        console.print(edge_table)

    hidden = d.get("hidden_edge_ids") or []
    if hidden:
        console.print(Text(f"  {len(hidden)} rejected relationship(s) hidden", style="dim"))
    _render_notices(console, d.get("notices") or [])
    if verbose:
        _render_meta(console, result)


def _endpoint(names: dict[int, str], object_id: int, column: str | None) -> str:
    name = names.get(object_id, str(object_id))
    return f"{name}.{column}" if column else name


def _render_objects(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render the object catalog search."""
    items: list[dict[str, Any]] = result.data.get("items", [])
    _status_line(console, result)
    _field(console, "count", result.data.get("count", len(items)))
    if not items:
        return
    console.print()
    table = Table(show_header=True, pad_edge=False, expand=False)
    table.add_column("ID", style="sl.id", no_wrap=True)
    table.add_column("Name", style="sl.name")
    table.add_column("Schema")
    for item in items:
        table.add_row(str(item["id"]), item["name"], str(item.get("schema") or ""))
    console.print(table)


# ── Mutation renderers ────────────────────────────────────────────────


def _render_fk_mutation(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render confirm, reject, undo, create and delete results."""
    _status_line(console, result)
    for key in (
        "edge_id",
        "logical_fk_id",
        "status",
        "confirmed_at",
        "source_object_id",
        "target_object_id",
        "deleted",
        "changed",
    ):
        value = result.data.get(key)
        if value is not None:
            _field(console, key, value)
    undo = result.data.get("undo")
    if undo:
        _field(console, "undo_token", undo.get("token"))
    if verbose:
        _render_meta(console, result)


def _render_generic(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Fallback renderer: status line + all data as key-value pairs."""
    _status_line(console, result)
    for key, value in result.data.items():
        if isinstance(value, (dict, list)):
            _field(console, key, _json.dumps(value, separators=(",", ":"), default=str))
        else:
            _field(console, key, value)
    if verbose:
        _render_meta(console, result)


# ── Dispatch table ────────────────────────────────────────────────────

_OP_RENDERERS: dict[str, Renderer] = {
    "show_graph": _render_graph,
    "list_objects": _render_objects,
    "confirm_fk": _render_fk_mutation,
    "reject_fk": _render_fk_mutation,
    "undo_reject_fk": _render_fk_mutation,
    "create_fk": _render_fk_mutation,
    "delete_fk": _render_fk_mutation,
}
