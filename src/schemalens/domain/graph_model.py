"""Renderable graph model — pure transform from a NeighborhoodGraph.

``build()`` has no hidden state: the same graph and options always
produce an equal ``RenderableGraph``. Live edge state from the
confirmation workflow is passed in explicitly via ``status_overrides``.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field

from schemalens.domain.lifecycle import FkStatus
from schemalens.domain.models import NeighborhoodGraph, Relationship, SchemaColumn
from schemalens.domain.types import LineStyle, RelationshipType

NEUTRAL_COLOR = "#6b7280"
AMBER_COLOR = "#f59e0b"
GREEN_COLOR = "#22c55e"
MUTED_COLOR = "#d1d5db"


@dataclass(frozen=True)
class NodeSizing:
    """Estimated node dimensions, derived from the column count."""

    width: float = 260.0
    base_height: float = 44.0
    column_height: float = 28.0

    def height_for(self, column_count: int) -> float:
        return self.base_height + column_count * self.column_height


@dataclass(frozen=True)
class EdgeStyle:
    """Visual tag for an edge."""

    line: LineStyle
    color: str
    width: float
    animated: bool = False
    opacity: float = 1.0


PHYSICAL_STYLE = EdgeStyle(line=LineStyle.SOLID, color=NEUTRAL_COLOR, width=1.5)
SUGGESTED_STYLE = EdgeStyle(line=LineStyle.DASHED, color=AMBER_COLOR, width=2.0, animated=True)
CONFIRMED_STYLE = EdgeStyle(line=LineStyle.DASHED, color=GREEN_COLOR, width=2.0, animated=True)
REJECTED_STYLE = EdgeStyle(line=LineStyle.DOTTED, color=MUTED_COLOR, width=1.0, opacity=0.4)


@dataclass(frozen=True)
class RenderNode:
    object_id: int
    name: str
    schema_name: str | None
    columns: tuple[SchemaColumn, ...]
    depth: int
    is_focus: bool
    width: float
    height: float


@dataclass(frozen=True)
class RenderEdge:
    id: str
    source: int
    target: int
    relationship_type: RelationshipType
    status: FkStatus | None
    style: EdgeStyle
    label: str | None
    record: Relationship


@dataclass(frozen=True)
class RenderableGraph:
    """Nodes and visible edges ready for layout and presentation."""

    focus_object_id: int
    nodes: tuple[RenderNode, ...]
    edges: tuple[RenderEdge, ...]
    hidden_edge_ids: tuple[str, ...] = field(default_factory=tuple)

    def node(self, object_id: int) -> RenderNode | None:
        return next((n for n in self.nodes if n.object_id == object_id), None)

    def edge(self, edge_id: str) -> RenderEdge | None:
        return next((e for e in self.edges if e.id == edge_id), None)


def percent(score: float | None) -> int:
    """Confidence as a whole percentage, rounding halves up."""
    return int(math.floor((score or 0.0) * 100 + 0.5))


def edge_label(
    relationship_type: RelationshipType,
    status: FkStatus | None,
    score: float | None,
) -> str | None:
    """``"{status} ({pct}%)"`` for logical edges, None for physical ones."""
    if relationship_type != RelationshipType.LOGICAL or status is None:
        return None
    return f"{status} ({percent(score)}%)"


def edge_style(relationship_type: RelationshipType, status: FkStatus | None) -> EdgeStyle | None:
    """Map ``(relationship_type, status)`` to a style; None means not rendered.

    Rejected edges map to None; callers that show them use
    :data:`REJECTED_STYLE`.
    """
    if relationship_type == RelationshipType.PHYSICAL:
        return PHYSICAL_STYLE
    if status == FkStatus.CONFIRMED:
        return CONFIRMED_STYLE
    if status == FkStatus.REJECTED:
        return None
    return SUGGESTED_STYLE


def build(
    graph: NeighborhoodGraph,
    *,
    show_rejected: bool = False,
    status_overrides: Mapping[str, FkStatus] | None = None,
    sizing: NodeSizing | None = None,
) -> RenderableGraph:
    """Build a renderable graph from *graph*.

    Args:
        graph: The fetched neighborhood.
        show_rejected: Render rejected logical edges de-emphasized
            instead of dropping them.
        status_overrides: Effective status per edge id (live workflow state).
        sizing: Node dimension constants.
    """
    sizing = sizing or NodeSizing()
    overrides = status_overrides or {}

    nodes = tuple(
        RenderNode(
            object_id=n.object_id,
            name=n.name,
            schema_name=n.schema_name,
            columns=tuple(n.columns),
            depth=n.depth,
            is_focus=n.object_id == graph.focus_object_id,
            width=sizing.width,
            height=sizing.height_for(len(n.columns)),
        )
        for n in graph.nodes
    )

    edges: list[RenderEdge] = []
    hidden: list[str] = []
    for rel in graph.edges:
        status = overrides.get(rel.id, rel.status) if rel.is_logical else None
        style = edge_style(rel.relationship_type, status)
        if style is None:
            if not show_rejected:
                hidden.append(rel.id)
                continue
            style = REJECTED_STYLE
        edges.append(
            RenderEdge(
                id=rel.id,
                source=rel.source_object_id,
                target=rel.target_object_id,
                relationship_type=rel.relationship_type,
                status=status,
                style=style,
                label=edge_label(rel.relationship_type, status, rel.confidence_score),
                record=rel,
            )
        )

    return RenderableGraph(
        focus_object_id=graph.focus_object_id,
        nodes=nodes,
        edges=tuple(edges),
        hidden_edge_ids=tuple(hidden),
    )
