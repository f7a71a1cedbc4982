"""RenderAdapter — map graph, layout, and live edge state to a view dict.

The result is JSON-ready and has no Rich dependency, so any host (the
CLI's ``--json`` mode, a web front end, a notebook) can draw it.
"""

from __future__ import annotations

from collections.abc import Collection, Mapping
from dataclasses import asdict
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from schemalens.domain.graph_model import RenderableGraph, RenderEdge, RenderNode
    from schemalens.domain.models import EdgeRoute, LayoutPosition, UndoOffer
    from schemalens.infrastructure.layout import LayoutResult


def node_view(node: RenderNode, position: LayoutPosition | None) -> dict[str, Any]:
    """A positioned node with its columns."""
    return {
        "id": node.object_id,
        "name": node.name,
        "schema": node.schema_name,
        "depth": node.depth,
        "is_focus": node.is_focus,
        "x": position.x if position else None,
        "y": position.y if position else None,
        "width": node.width,
        "height": node.height,
        "columns": [
            {
                "name": c.column_name,
                "data_type": c.data_type,
                "is_primary_key": c.is_primary_key,
                "is_foreign_key": c.is_foreign_key,
                "is_nullable": c.is_nullable,
            }
            for c in node.columns
        ],
    }


def edge_view(
    edge: RenderEdge,
    route: EdgeRoute | None,
    *,
    pending: bool = False,
    undo: UndoOffer | None = None,
    selected: bool = False,
) -> dict[str, Any]:
    """A styled, routed edge with its workflow flags."""
    record = edge.record
    return {
        "id": edge.id,
        "source": edge.source,
        "target": edge.target,
        "type": edge.relationship_type,
        "status": edge.status,
        "label": edge.label,
        "style": asdict(edge.style),
        "source_column": record.source_column_name,
        "target_column": record.target_column_name,
        "confidence_score": record.confidence_score,
        "confirmed_at": record.confirmed_at.isoformat() if record.confirmed_at else None,
        "route": [list(p) for p in route.points] if route else [],
        "is_back_edge": route.is_back_edge if route else False,
        "pending": pending,
        "undo": {"token": undo.token, "expires_at": undo.expires_at} if undo else None,
        "selected": selected,
    }


def to_view(
    renderable: RenderableGraph,
    layout: LayoutResult,
    *,
    pending: Collection[str] = (),
    undo_offers: Mapping[str, UndoOffer] | None = None,
    selected_edge_id: str | None = None,
) -> dict[str, Any]:
    """Build the full view for one neighborhood.

    Args:
        renderable: Styled nodes and visible edges.
        layout: Positions and routes for *renderable*.
        pending: Edge ids with a mutation in flight.
        undo_offers: Open undo offers by edge id.
        selected_edge_id: The edge highlighted in the selection.
    """
    offers = undo_offers or {}
    return {
        "focus_object_id": renderable.focus_object_id,
        "direction": layout.direction,
        "width": layout.width,
        "height": layout.height,
        "nodes": [node_view(n, layout.positions.get(n.object_id)) for n in renderable.nodes],
        "edges": [
            edge_view(
                e,
                layout.routes.get(e.id),
                pending=e.id in pending,
                undo=offers.get(e.id),
                selected=e.id == selected_edge_id,
            )
            for e in renderable.edges
        ],
        "hidden_edge_ids": list(renderable.hidden_edge_ids),
        "undo_offers": [
            {"edge_id": edge_id, "token": offer.token, "expires_at": offer.expires_at}
            for edge_id, offer in offers.items()
        ],
    }
