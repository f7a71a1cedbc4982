"""SelectionController — view state, commands, and last-request-wins loading.

``SelectionState`` is a frozen, serializable value changed only by
commands. :func:`reduce` is pure: it returns the next state and the
:class:`Effect` the controller must run. Only focus, hop depth, and
direction changes reload the graph; search text and edge selection
never do.

Every load takes a fresh generation number. A response whose
generation is no longer current is discarded when it arrives, so the
view always reflects the most recent *request*, not the most recent
*response*.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any, TypeAlias

from pydantic import BaseModel, Field

from schemalens.domain import graph_model
from schemalens.domain.errors import SchemaLensError, ValidationError
from schemalens.domain.types import VALID_HOPS, LayoutDirection
from schemalens.services.neighborhood import validate_focus_id, validate_hops
from schemalens.services.result import ServiceError, ServiceResult
from schemalens.services.telemetry import trace_span, traced

if TYPE_CHECKING:
    from schemalens.domain.graph_model import NodeSizing, RenderableGraph
    from schemalens.domain.lifecycle import FkStatus
    from schemalens.domain.models import NeighborhoodGraph, ObjectSummary, Relationship
    from schemalens.infrastructure.layout import LayoutEngine, LayoutResult
    from schemalens.services.neighborhood import NeighborhoodFetcher

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_LIMIT = 20


class SelectionState(BaseModel):
    """What the user is looking at."""

    model_config = {"frozen": True}

    project_id: int
    focus_object_id: int | None = None
    hop_depth: int = Field(default=1, ge=min(VALID_HOPS), le=max(VALID_HOPS))
    layout_direction: LayoutDirection = LayoutDirection.LR
    search_text: str = ""
    selected_edge_id: str | None = None


# --- Commands ---


@dataclass(frozen=True)
class SelectFocus:
    object_id: int


@dataclass(frozen=True)
class SetHops:
    hops: int


@dataclass(frozen=True)
class SetDirection:
    direction: LayoutDirection | str


@dataclass(frozen=True)
class SetSearch:
    text: str


@dataclass(frozen=True)
class SelectEdge:
    edge_id: str


@dataclass(frozen=True)
class ClearEdge:
    pass


Command: TypeAlias = SelectFocus | SetHops | SetDirection | SetSearch | SelectEdge | ClearEdge


class Effect(StrEnum):
    """Work the controller performs after a state change."""

    NONE = "none"
    REFETCH = "refetch"


def reduce(state: SelectionState, command: Command) -> tuple[SelectionState, Effect]:
    """Apply *command* to *state*.

    Selecting a focus always refetches (re-selecting is how a failed
    load is retried) and clears the edge selection. Hop and direction
    changes refetch only when the value actually changes.

    Raises:
        ValidationError: Invalid focus id, hop depth, or direction.
    """
    match command:
        case SelectFocus(object_id=object_id):
            validate_focus_id(object_id)
            return (
                state.model_copy(update={"focus_object_id": object_id, "selected_edge_id": None}),
                Effect.REFETCH,
            )
        case SetHops(hops=hops):
            validate_hops(hops)
            if hops == state.hop_depth:
                return state, Effect.NONE
            return state.model_copy(update={"hop_depth": hops}), Effect.REFETCH
        case SetDirection(direction=direction):
            resolved = parse_direction(direction)
            if resolved == state.layout_direction:
                return state, Effect.NONE
            return state.model_copy(update={"layout_direction": resolved}), Effect.REFETCH
        case SetSearch(text=text):
            return state.model_copy(update={"search_text": text}), Effect.NONE
        case SelectEdge(edge_id=edge_id):
            return state.model_copy(update={"selected_edge_id": edge_id}), Effect.NONE
        case ClearEdge():
            return state.model_copy(update={"selected_edge_id": None}), Effect.NONE
    msg = f"Unknown command: {command!r}"
    raise TypeError(msg)


def parse_direction(direction: LayoutDirection | str) -> LayoutDirection:
    """Coerce *direction* to a :class:`LayoutDirection` or raise."""
    try:
        return LayoutDirection(str(direction).upper())
    except ValueError:
        raise ValidationError(
            f"Layout direction must be LR or TB, got {direction!r}",
            detail={"direction": direction},
        ) from None


def filter_objects(
    objects: Sequence[ObjectSummary],
    text: str,
    limit: int = DEFAULT_SEARCH_LIMIT,
) -> list[ObjectSummary]:
    """Case-insensitive substring match on name, first *limit* matches."""
    needle = text.strip().lower()
    matches = [o for o in objects if needle in o.name.lower()] if needle else list(objects)
    return matches[:limit]


# --- View ---


class ViewStatus(StrEnum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


@dataclass(frozen=True)
class ViewState:
    """The rendered picture for the current selection."""

    status: ViewStatus = ViewStatus.IDLE
    generation: int = 0
    graph: NeighborhoodGraph | None = None
    renderable: RenderableGraph | None = None
    layout: LayoutResult | None = None
    error: ServiceError | None = None


class SelectionController:
    """Owns the selection state and the current graph, renderable, and layout.

    Args:
        fetcher: Source of neighborhoods and the object catalog.
        layout_engine: Computes positions for each rebuilt graph.
        project_id: Project the selection is scoped to.
        hops: Initial hop depth.
        direction: Initial layout direction.
        show_rejected: Draw rejected logical edges de-emphasized.
        sizing: Node size constants passed to the graph builder.
        search_limit: Maximum focus search matches.
        status_overrides: Returns live per-edge status from the
            confirmation workflow.
        on_graph: Called with each neighborhood that becomes current and
            the cache epoch read before it was requested.
    """

    def __init__(
        self,
        fetcher: NeighborhoodFetcher,
        layout_engine: LayoutEngine,
        project_id: int,
        *,
        hops: int = 1,
        direction: LayoutDirection = LayoutDirection.LR,
        show_rejected: bool = False,
        sizing: NodeSizing | None = None,
        search_limit: int = DEFAULT_SEARCH_LIMIT,
        status_overrides: Callable[[], Mapping[str, FkStatus]] | None = None,
        on_graph: Callable[[NeighborhoodGraph, int], None] | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._layout_engine = layout_engine
        self._state = SelectionState(
            project_id=project_id,
            hop_depth=hops,
            layout_direction=direction,
        )
        self._show_rejected = show_rejected
        self._sizing = sizing
        self._search_limit = search_limit
        self._status_overrides = status_overrides
        self._on_graph = on_graph
        self._generation = 0
        self._view = ViewState()

    @property
    def state(self) -> SelectionState:
        return self._state

    @property
    def view(self) -> ViewState:
        return self._view

    @property
    def generation(self) -> int:
        return self._generation

    @traced
    async def dispatch(self, command: Command) -> ServiceResult:
        """Reduce *command* into the state and run the resulting effect."""
        op = "dispatch"
        try:
            state, effect = reduce(self._state, command)
        except SchemaLensError as exc:
            return ServiceResult.from_exception(op, exc)
        self._state = state

        if effect == Effect.REFETCH:
            return await self._load(op, force=False)
        return self._result(op, effect)

    async def refetch(self) -> ServiceResult:
        """Reload the current focus, bypassing the cache."""
        return await self._load("refetch", force=True)

    def apply_edge(self, record: Relationship) -> None:
        """Swap in an updated edge record and rebuild the picture."""
        graph = self._view.graph
        if self._view.status != ViewStatus.READY or graph is None:
            return
        if graph.edge(record.id) is None:
            self.rebuild()
            return
        self._show(graph.replace_edge(record), self._view.generation)

    def rebuild(self) -> None:
        """Recompute the renderable and layout from the current graph."""
        if self._view.status == ViewStatus.READY and self._view.graph is not None:
            self._show(self._view.graph, self._view.generation)

    async def search(self, text: str) -> list[ObjectSummary]:
        """Set the search text and return matching catalog objects."""
        await self.dispatch(SetSearch(text))
        await self._fetcher.fetch_objects()
        return self.matches()

    def matches(self) -> list[ObjectSummary]:
        """Catalog objects matching the current search text."""
        return filter_objects(self._fetcher.catalog, self._state.search_text, self._search_limit)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _load(self, op: str, *, force: bool) -> ServiceResult:
        self._generation += 1
        generation = self._generation
        state = self._state
        if state.focus_object_id is None:
            self._view = ViewState(generation=generation)
            return self._result(op, Effect.NONE)

        self._view = ViewState(
            status=ViewStatus.LOADING,
            generation=generation,
            graph=self._view.graph,
            renderable=self._view.renderable,
            layout=self._view.layout,
        )
        epoch = self._fetcher.cache.epoch
        try:
            graph = await self._fetcher.fetch_neighborhood(
                state.focus_object_id, state.hop_depth, force=force
            )
        except SchemaLensError as exc:
            if generation != self._generation:
                return self._stale(op, generation)
            self._view = ViewState(
                status=ViewStatus.ERROR,
                generation=generation,
                error=ServiceError.from_exception(exc),
            )
            return ServiceResult.from_exception(op, exc)

        if generation != self._generation:
            return self._stale(op, generation)

        if self._on_graph is not None:
            self._on_graph(graph, epoch)
        self._show(graph, generation)
        return self._result(op, Effect.REFETCH)

    def _show(self, graph: NeighborhoodGraph, generation: int) -> None:
        state = self._state
        overrides = self._status_overrides() if self._status_overrides else None
        renderable = graph_model.build(
            graph,
            show_rejected=self._show_rejected,
            status_overrides=overrides,
            sizing=self._sizing,
        )
        with trace_span("layout"):
            layout = self._layout_engine.layout(
                renderable, state.layout_direction, graph.focus_object_id
            )
        self._view = ViewState(
            status=ViewStatus.READY,
            generation=generation,
            graph=graph,
            renderable=renderable,
            layout=layout,
        )

    def _stale(self, op: str, generation: int) -> ServiceResult:
        logger.debug("Discarding stale load %d (current %d)", generation, self._generation)
        return ServiceResult(
            ok=True,
            op=op,
            data={"stale": True, "generation": generation},
        )

    def _result(self, op: str, effect: Effect) -> ServiceResult:
        data: dict[str, Any] = {
            "state": self._state.model_dump(mode="json"),
            "effect": effect,
            "view": self._view.status,
            "generation": self._view.generation,
        }
        if self._view.error is not None:
            data["error"] = self._view.error.model_dump()
        return ServiceResult(ok=True, op=op, data=data)
