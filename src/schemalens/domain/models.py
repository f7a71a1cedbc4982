"""Wire and value models for neighborhood graphs.

Every model is frozen: graphs are replaced wholesale on each fetch and
edge status changes produce new ``Relationship`` instances via
:meth:`Relationship.with_status`. Field names are snake_case in Python
and camelCase on the wire.

Invariants enforced at construction:

- every edge endpoint references a node of the same graph;
- node depths lie in ``[0, hops]`` and the focus node has depth 0;
- PHYSICAL edges never carry a status; LOGICAL edges always do.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Self

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from schemalens.domain.lifecycle import FkStatus
from schemalens.domain.types import VALID_HOPS, FkAction, RelationshipType

_LOGICAL_ID_RE = re.compile(r"^logical-(\d+)$")


class WireModel(BaseModel):
    """Frozen base with camelCase aliases for the REST payloads."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


# ---------------------------------------------------------------------------
# Nodes
# ---------------------------------------------------------------------------


class SchemaColumn(WireModel):
    """A column of a schema object, as shown inside a rendered node."""

    column_id: int
    column_name: str
    data_type: str = ""
    is_primary_key: bool = False
    is_foreign_key: bool = False
    is_nullable: bool = True


class SchemaObject(WireModel):
    """A table or view in the neighborhood (graph node)."""

    object_id: int = Field(validation_alias=AliasChoices("objectId", "tableId", "object_id"))
    name: str = Field(validation_alias=AliasChoices("name", "tableName"))
    schema_name: str | None = None
    columns: list[SchemaColumn] = Field(default_factory=list)
    depth: int = Field(ge=0)
    is_focus: bool = False


class ObjectSummary(WireModel):
    """Catalog entry used as the focus search source."""

    object_id: int = Field(validation_alias=AliasChoices("objectId", "tableId", "object_id"))
    name: str = Field(validation_alias=AliasChoices("name", "tableName"))
    schema_name: str | None = None


# ---------------------------------------------------------------------------
# Edges
# ---------------------------------------------------------------------------


def _pick(data: dict[str, Any], *keys: str) -> Any:
    """Return the first present value among *keys* (alias or field name)."""
    for key in keys:
        if key in data:
            return data[key]
    return None


class Relationship(WireModel):
    """A physical or logical foreign-key relationship (graph edge)."""

    id: str
    source_object_id: int = Field(
        validation_alias=AliasChoices("sourceObjectId", "sourceTableId", "source_object_id")
    )
    source_column_id: int | None = None
    source_column_name: str | None = None
    target_object_id: int = Field(
        validation_alias=AliasChoices("targetObjectId", "targetTableId", "target_object_id")
    )
    target_column_id: int | None = None
    target_column_name: str | None = None
    relationship_type: RelationshipType
    status: FkStatus | None = None
    confidence_score: float | None = Field(default=None, ge=0.0, le=1.0)
    logical_fk_id: int | None = None
    discovery_method: str | None = None
    created_at: datetime | None = None
    confirmed_at: datetime | None = None
    confirmed_by: int | None = None

    @model_validator(mode="before")
    @classmethod
    def _fill_logical_defaults(cls, data: Any) -> Any:
        """Default LOGICAL status to SUGGESTED and derive ``logical_fk_id`` from the id."""
        if not isinstance(data, dict):
            return data
        rel_type = _pick(data, "relationshipType", "relationship_type")
        if str(rel_type) != RelationshipType.LOGICAL:
            return data
        data = dict(data)
        if _pick(data, "status") is None:
            data["status"] = FkStatus.SUGGESTED
        if _pick(data, "logicalFkId", "logical_fk_id") is None:
            match = _LOGICAL_ID_RE.match(str(data.get("id", "")))
            if match:
                data["logical_fk_id"] = int(match.group(1))
        return data

    @model_validator(mode="after")
    def _check_status(self) -> Self:
        if self.relationship_type == RelationshipType.PHYSICAL and self.status is not None:
            msg = f"Physical relationship {self.id} cannot carry a status"
            raise ValueError(msg)
        return self

    @property
    def is_logical(self) -> bool:
        return self.relationship_type == RelationshipType.LOGICAL

    @property
    def mutation_id(self) -> int | None:
        """Identifier used by the confirm/reject endpoints."""
        return self.logical_fk_id

    def with_status(
        self,
        status: FkStatus,
        *,
        confirmed_at: datetime | None = None,
    ) -> Relationship:
        """Return a copy carrying *status* (LOGICAL edges only)."""
        update: dict[str, Any] = {"status": status}
        if confirmed_at is not None:
            update["confirmed_at"] = confirmed_at
        return self.model_copy(update=update)


# ---------------------------------------------------------------------------
# Neighborhood graph
# ---------------------------------------------------------------------------


class NeighborhoodGraph(WireModel):
    """Bounded subgraph of objects and relationships around a focus object."""

    focus_object_id: int = Field(
        validation_alias=AliasChoices("focusObjectId", "focusTableId", "focus_object_id")
    )
    hops: int = max(VALID_HOPS)
    nodes: list[SchemaObject] = Field(default_factory=list)
    edges: list[Relationship] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _mark_focus(cls, data: Any) -> Any:
        """Derive ``isFocus`` from the focus id when the payload omits it."""
        if not isinstance(data, dict):
            return data
        focus = _pick(data, "focusObjectId", "focusTableId", "focus_object_id")
        raw_nodes = data.get("nodes")
        if focus is None or not isinstance(raw_nodes, list):
            return data
        marked: list[Any] = []
        for node in raw_nodes:
            if isinstance(node, dict) and _pick(node, "isFocus", "is_focus") is None:
                node_id = _pick(node, "objectId", "tableId", "object_id")
                node = {**node, "is_focus": node_id == focus}
            marked.append(node)
        return {**data, "nodes": marked}

    @model_validator(mode="after")
    def _check_invariants(self) -> Self:
        node_ids = {n.object_id for n in self.nodes}
        if self.focus_object_id not in node_ids:
            msg = f"Focus object {self.focus_object_id} missing from nodes"
            raise ValueError(msg)
        for node in self.nodes:
            if not 0 <= node.depth <= self.hops:
                msg = f"Node {node.object_id} depth {node.depth} outside [0, {self.hops}]"
                raise ValueError(msg)
            if node.object_id == self.focus_object_id and node.depth != 0:
                msg = f"Focus object {node.object_id} must have depth 0"
                raise ValueError(msg)
        for edge in self.edges:
            for endpoint in (edge.source_object_id, edge.target_object_id):
                if endpoint not in node_ids:
                    msg = f"Edge {edge.id} references unknown object {endpoint}"
                    raise ValueError(msg)
        return self

    @property
    def focus_node(self) -> SchemaObject:
        return next(n for n in self.nodes if n.object_id == self.focus_object_id)

    def node(self, object_id: int) -> SchemaObject | None:
        return next((n for n in self.nodes if n.object_id == object_id), None)

    def edge(self, edge_id: str) -> Relationship | None:
        return next((e for e in self.edges if e.id == edge_id), None)

    def edge_ids(self) -> set[str]:
        return {e.id for e in self.edges}

    def replace_edge(self, edge: Relationship) -> NeighborhoodGraph:
        """Return a new graph with *edge* substituted for the edge of the same id."""
        edges = [edge if e.id == edge.id else e for e in self.edges]
        return self.model_copy(update={"edges": edges})


# ---------------------------------------------------------------------------
# Layout values (ephemeral, never persisted)
# ---------------------------------------------------------------------------


class LayoutPosition(WireModel):
    """Top-left position and size of a laid-out node."""

    object_id: int
    x: float
    y: float
    width: float
    height: float


class EdgeRoute(WireModel):
    """Polyline for a rendered edge; back edges detour around their layers."""

    edge_id: str
    points: list[tuple[float, float]]
    is_back_edge: bool = False


# ---------------------------------------------------------------------------
# Confirmation workflow values
# ---------------------------------------------------------------------------


class PendingConfirmation(WireModel):
    """An in-flight confirm/reject mutation for a single edge."""

    edge_id: str
    action: FkAction
    request_token: int


class UndoOffer(WireModel):
    """Undo affordance created by a successful reject.

    ``expires_at`` is measured on the event loop clock.
    """

    edge_id: str
    token: int
    expires_at: float
