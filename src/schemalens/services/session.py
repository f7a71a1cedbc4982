"""ErDiagramSession — one project's ER diagram, wired end to end.

A session owns the API client, the neighborhood cache, the fetcher, the
layout engine, the confirmation state machine, and the selection
controller. A UI host drives it with the named operations below and
reads :meth:`ErDiagramSession.view` after each one.

Everything runs on a single event loop. Use the session as an async
context manager so the HTTP client is closed and undo timers are
cancelled on exit.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from schemalens.config.settings import SchemaLensSettings
from schemalens.domain.errors import SchemaLensError, ValidationError
from schemalens.domain.graph_model import NodeSizing
from schemalens.infrastructure.api import SchemaApiClient
from schemalens.infrastructure.cache import NeighborhoodCache
from schemalens.infrastructure.layout import LayeredLayoutEngine, LayoutSpacing
from schemalens.output.render_adapter import to_view
from schemalens.services.confirmation import FkConfirmationStateMachine
from schemalens.services.neighborhood import NeighborhoodFetcher
from schemalens.services.result import ServiceResult
from schemalens.services.selection import (
    ClearEdge,
    Command,
    SelectEdge,
    SelectFocus,
    SelectionController,
    SetDirection,
    SetHops,
    SetSearch,
    ViewStatus,
)
from schemalens.services.telemetry import traced

if TYPE_CHECKING:
    import httpx

    from schemalens.domain.models import NeighborhoodGraph, ObjectSummary
    from schemalens.domain.types import LayoutDirection
    from schemalens.infrastructure.layout import LayoutEngine
    from schemalens.plugins.event_bus import EventBus

logger = logging.getLogger(__name__)


class ErDiagramSession:
    """Facade over the ER graph components for one project.

    Args:
        client: REST client (read and write sides).
        project_id: Project whose objects are browsed.
        settings: Supplies graph, layout, and confirmation options;
            code defaults apply when omitted.
        layout_engine: Replaces the default layered engine.
        event_bus: Receives plugin lifecycle events.
    """

    def __init__(
        self,
        client: SchemaApiClient,
        project_id: int,
        *,
        settings: SchemaLensSettings | None = None,
        layout_engine: LayoutEngine | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        settings = settings or SchemaLensSettings()
        self._client = client
        self._project_id = project_id
        self.cache = NeighborhoodCache()
        self.fetcher = NeighborhoodFetcher(
            client, project_id, cache=self.cache, event_bus=event_bus
        )
        lay = settings.layout
        engine = layout_engine or LayeredLayoutEngine(
            LayoutSpacing(node_sep=lay.node_sep, rank_sep=lay.rank_sep, margin=lay.margin)
        )
        self.confirmation = FkConfirmationStateMachine(
            client,
            project_id,
            cache=self.cache,
            undo_window=settings.confirmation.undo_window_seconds,
            on_change=self._on_edge_change,
            on_refetch=self.refresh,
            event_bus=event_bus,
        )
        self.controller = SelectionController(
            self.fetcher,
            engine,
            project_id,
            hops=settings.graph.default_hops,
            direction=settings.graph.default_direction,
            show_rejected=settings.graph.show_rejected,
            sizing=NodeSizing(
                width=lay.node_width,
                base_height=lay.node_base_height,
                column_height=lay.column_height,
            ),
            search_limit=settings.graph.search_limit,
            status_overrides=self.confirmation.overrides,
            on_graph=self._on_graph,
        )

    @classmethod
    def from_settings(
        cls,
        settings: SchemaLensSettings,
        *,
        project_id: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        event_bus: EventBus | None = None,
    ) -> ErDiagramSession:
        """Build a session with an API client configured from *settings*.

        Raises:
            ValidationError: No project id is configured or given.
        """
        resolved = project_id if project_id is not None else settings.project.id
        if resolved is None:
            raise ValidationError(
                "No project configured: pass --project or set [project] id",
            )
        client = SchemaApiClient(
            settings.api.base_url,
            timeout=settings.api.timeout_seconds,
            token=settings.api_token(),
            transport=transport,
        )
        return cls(client, resolved, settings=settings, event_bus=event_bus)

    async def __aenter__(self) -> ErDiagramSession:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Cancel undo timers and close the HTTP client."""
        self.confirmation.close()
        await self._client.aclose()

    @property
    def project_id(self) -> int:
        return self._project_id

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    async def select_focus(self, object_id: int) -> ServiceResult:
        return await self.controller.dispatch(SelectFocus(object_id))

    async def set_hops(self, hops: int) -> ServiceResult:
        return await self.controller.dispatch(SetHops(hops))

    async def set_direction(self, direction: LayoutDirection | str) -> ServiceResult:
        return await self.controller.dispatch(SetDirection(direction))

    async def set_search(self, text: str) -> ServiceResult:
        return await self.controller.dispatch(SetSearch(text))

    async def select_edge(self, edge_id: str) -> ServiceResult:
        return await self.controller.dispatch(SelectEdge(edge_id))

    async def clear_edge(self) -> ServiceResult:
        return await self.controller.dispatch(ClearEdge())

    async def search(self, text: str) -> list[ObjectSummary]:
        """Focus search over the project's object catalog."""
        return await self.controller.search(text)

    @traced
    async def show(
        self,
        focus_id: int,
        *,
        hops: int | None = None,
        direction: LayoutDirection | str | None = None,
    ) -> ServiceResult:
        """Load *focus_id* and return the resulting view as ``show_graph``."""
        op = "show_graph"
        steps: list[Command] = []
        if hops is not None:
            steps.append(SetHops(hops))
        if direction is not None:
            steps.append(SetDirection(direction))
        steps.append(SelectFocus(focus_id))

        result = ServiceResult(ok=True, op=op)
        for command in steps:
            result = await self.controller.dispatch(command)
            if not result.ok:
                return result.model_copy(update={"op": op})
        return ServiceResult(
            ok=True, op=op, data=self.view(), warnings=result.warnings, meta=result.meta
        )

    async def find_objects(self, text: str = "") -> ServiceResult:
        """Focus search as a ``list_objects`` result."""
        op = "list_objects"
        try:
            matches = await self.search(text)
        except SchemaLensError as exc:
            return ServiceResult.from_exception(op, exc)
        items = [{"id": o.object_id, "name": o.name, "schema": o.schema_name} for o in matches]
        return ServiceResult(
            ok=True, op=op, data={"query": text, "count": len(items), "items": items}
        )

    async def refresh(self) -> ServiceResult:
        """Reload the current neighborhood from the server."""
        return await self.controller.refetch()

    # ------------------------------------------------------------------
    # Edge actions
    # ------------------------------------------------------------------

    async def confirm_edge(self, edge_id: str, notes: str | None = None) -> ServiceResult:
        return await self.confirmation.confirm(edge_id, notes)

    async def reject_edge(self, edge_id: str, notes: str | None = None) -> ServiceResult:
        return await self.confirmation.reject(edge_id, notes)

    async def undo_reject(self, edge_id: str, token: int | None = None) -> ServiceResult:
        return await self.confirmation.undo(edge_id, token)

    # ------------------------------------------------------------------
    # View
    # ------------------------------------------------------------------

    def view(self) -> dict[str, Any]:
        """The current picture as a JSON-ready dict.

        Always carries ``status`` and the selection ``state``; a ready
        view adds nodes and edges, an error view adds ``error``.
        """
        view = self.controller.view
        data: dict[str, Any] = {
            "status": view.status,
            "state": self.controller.state.model_dump(mode="json"),
            "notices": self.confirmation.notices,
        }
        if view.status == ViewStatus.ERROR and view.error is not None:
            data["error"] = view.error.model_dump()
        if view.renderable is not None and view.layout is not None:
            data.update(
                to_view(
                    view.renderable,
                    view.layout,
                    pending=set(self.confirmation.pending),
                    undo_offers=self.confirmation.undo_offers,
                    selected_edge_id=self.controller.state.selected_edge_id,
                )
            )
        return data

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------

    def _on_graph(self, graph: NeighborhoodGraph, epoch: int) -> None:
        self.confirmation.load(graph.edges, as_of=epoch)

    def _on_edge_change(self, edge_id: str) -> None:
        state = self.confirmation.edge_state(edge_id)
        if state is None:
            self.controller.rebuild()
            return
        self.controller.apply_edge(state.settled)
