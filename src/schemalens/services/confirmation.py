"""FkConfirmationStateMachine — confirm/reject workflow for logical FKs.

Each logical edge holds a two-phase value: the *settled* record last
agreed with the server, and an optional *tentative* status applied
optimistically while a mutation is in flight. The effective status is
``tentative or settled.status``.

Rules:

- confirm is allowed from any non-confirmed status; confirming a
  confirmed edge is a successful no-op with no network call;
- reject is allowed only from SUGGESTED;
- at most one mutation per edge is in flight (``PENDING`` otherwise);
  independent edges mutate concurrently;
- a successful reject opens an undo offer; undo re-issues *confirm*,
  so a rejected-then-undone edge ends CONFIRMED, not SUGGESTED;
- any later action on an edge supersedes its outstanding undo offer;
- on failure the tentative status is dropped, the owning neighborhood
  is refetched, and a notice is recorded. Nothing is retried.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, replace
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol

import pydantic

from schemalens.domain.errors import MutationConflict, SchemaLensError
from schemalens.domain.lifecycle import FkStatus, can_confirm, can_reject
from schemalens.domain.models import PendingConfirmation, Relationship, UndoOffer
from schemalens.domain.types import FkAction
from schemalens.services._helpers import now_utc
from schemalens.services.base import BaseService
from schemalens.services.result import ServiceResult
from schemalens.services.telemetry import traced

if TYPE_CHECKING:
    from schemalens.infrastructure.cache import NeighborhoodCache
    from schemalens.plugins.event_bus import EventBus

logger = logging.getLogger(__name__)

_DATETIME = pydantic.TypeAdapter(datetime)


class FkMutationSink(Protocol):
    """Write side of the REST API."""

    async def confirm_logical_fk(
        self, project_id: int, fk_id: int, *, notes: str | None = None
    ) -> dict[str, Any]: ...

    async def reject_logical_fk(
        self, project_id: int, fk_id: int, *, notes: str | None = None
    ) -> dict[str, Any]: ...


class FkAuthoringSink(FkMutationSink, Protocol):
    """Write side of the REST API, including manual create and delete."""

    async def create_logical_fk(
        self,
        project_id: int,
        *,
        source_object_id: int,
        source_column_ids: Sequence[int],
        target_object_id: int,
        target_column_ids: Sequence[int],
        notes: str | None = None,
    ) -> dict[str, Any]: ...

    async def delete_logical_fk(self, project_id: int, fk_id: int) -> None: ...


@dataclass(frozen=True)
class EdgeState:
    """Settled record plus optional optimistic status."""

    settled: Relationship
    tentative: FkStatus | None = None

    @property
    def status(self) -> FkStatus | None:
        return self.tentative or self.settled.status

    @property
    def record(self) -> Relationship:
        """The settled record carrying the effective status."""
        if self.tentative is None:
            return self.settled
        return self.settled.with_status(self.tentative)


@dataclass
class _UndoEntry:
    offer: UndoOffer
    handle: asyncio.TimerHandle


class FkConfirmationStateMachine(BaseService):
    """Owns per-edge status for the currently loaded neighborhood.

    Args:
        sink: Client issuing the confirm/reject mutations.
        project_id: Project the edges belong to.
        cache: Neighborhood cache invalidated when an edge settles.
        undo_window: Seconds an undo offer stays open after a reject.
        on_change: Called with the edge id whenever its effective
            status, pending flag, or undo offer changes.
        on_refetch: Awaited after a failed mutation to reload the
            owning neighborhood.
        event_bus: Receives ``post_fk_*`` lifecycle events.
    """

    def __init__(
        self,
        sink: FkMutationSink,
        project_id: int,
        *,
        cache: NeighborhoodCache | None = None,
        undo_window: float = 8.0,
        on_change: Callable[[str], None] | None = None,
        on_refetch: Callable[[], Awaitable[Any]] | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        super().__init__(event_bus)
        self._sink = sink
        self._project_id = project_id
        self._cache = cache
        self._undo_window = undo_window
        self._on_change = on_change
        self._on_refetch = on_refetch
        self._edges: dict[str, EdgeState] = {}
        self._pending: dict[str, PendingConfirmation] = {}
        self._undo: dict[str, _UndoEntry] = {}
        self._notices: list[str] = []
        self._tokens = itertools.count(1)
        # edge id -> (cache epoch after settling, settled record)
        self._recent: dict[str, tuple[int, Relationship]] = {}

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def load(self, edges: Iterable[Relationship], *, as_of: int | None = None) -> None:
        """Replace the tracked edges with a freshly fetched set.

        Edges with a mutation in flight keep their tentative status on
        top of the new settled record. Undo offers for edges that are
        no longer present are cancelled.

        *as_of* is the cache epoch read before the set was requested.
        An edge this machine settled after that point keeps its settled
        status over the fetched one.
        """
        if as_of is not None:
            self._recent = {k: v for k, v in self._recent.items() if v[0] > as_of}
        fresh: dict[str, EdgeState] = {}
        for edge in edges:
            previous = self._edges.get(edge.id)
            tentative = previous.tentative if previous and edge.id in self._pending else None
            settled = edge
            recent = self._recent.get(edge.id) if as_of is not None else None
            record = recent[1] if recent is not None else None
            if record is not None and record.status is not None:
                logger.debug("Keeping settled %s over an older fetch", edge.id)
                settled = edge.with_status(record.status, confirmed_at=record.confirmed_at)
            fresh[edge.id] = EdgeState(settled=settled, tentative=tentative)
        for edge_id in list(self._undo):
            if edge_id not in fresh:
                self._cancel_undo(edge_id)
        self._edges = fresh

    def edge_state(self, edge_id: str) -> EdgeState | None:
        return self._edges.get(edge_id)

    def status(self, edge_id: str) -> FkStatus | None:
        state = self._edges.get(edge_id)
        return state.status if state else None

    def overrides(self) -> dict[str, FkStatus]:
        """Effective status of every tracked logical edge."""
        return {
            edge_id: state.status
            for edge_id, state in self._edges.items()
            if state.settled.is_logical and state.status is not None
        }

    def is_pending(self, edge_id: str) -> bool:
        return edge_id in self._pending

    @property
    def pending(self) -> Mapping[str, PendingConfirmation]:
        return dict(self._pending)

    def undo_offer(self, edge_id: str) -> UndoOffer | None:
        entry = self._undo.get(edge_id)
        return entry.offer if entry else None

    @property
    def undo_offers(self) -> dict[str, UndoOffer]:
        return {edge_id: entry.offer for edge_id, entry in self._undo.items()}

    @property
    def notices(self) -> list[str]:
        return list(self._notices)

    def drain_notices(self) -> list[str]:
        """Return and clear the accumulated notices."""
        notices, self._notices = self._notices, []
        return notices

    def close(self) -> None:
        """Cancel every outstanding undo timer."""
        for edge_id in list(self._undo):
            self._cancel_undo(edge_id)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    @traced
    async def confirm(self, edge_id: str, notes: str | None = None) -> ServiceResult:
        """Confirm a logical FK. No-op success when it is already confirmed."""
        op = "confirm_fk"
        state = self._edges.get(edge_id)
        refused = self._refuse(op, edge_id, state)
        if refused is not None:
            return refused
        assert state is not None

        if not can_confirm(state.status):
            return ServiceResult(
                ok=True,
                op=op,
                data={**self._describe(state.settled), "changed": False},
            )
        return await self._mutate(op, FkAction.CONFIRM, state, notes)

    @traced
    async def reject(self, edge_id: str, notes: str | None = None) -> ServiceResult:
        """Reject a suggested logical FK and open an undo offer."""
        op = "reject_fk"
        state = self._edges.get(edge_id)
        refused = self._refuse(op, edge_id, state)
        if refused is not None:
            return refused
        assert state is not None

        if not can_reject(state.status):
            return ServiceResult.failure(
                op,
                "INVALID_TRANSITION",
                f"Cannot reject edge {edge_id} with status {state.status}",
                detail={"edge_id": edge_id, "status": state.status},
            )
        return await self._mutate(op, FkAction.REJECT, state, notes)

    @traced
    async def undo(self, edge_id: str, token: int | None = None) -> ServiceResult:
        """Undo a reject inside its window by re-confirming the edge.

        *token* pins the offer being undone; a superseded or expired
        offer is refused with ``UNDO_EXPIRED``.
        """
        op = "undo_reject_fk"
        entry = self._undo.get(edge_id)
        if entry is None or (token is not None and entry.offer.token != token):
            return ServiceResult.failure(
                op,
                "UNDO_EXPIRED",
                f"No undo is available for edge {edge_id}",
                detail={"edge_id": edge_id},
            )

        state = self._edges.get(edge_id)
        refused = self._refuse(op, edge_id, state)
        if refused is not None:
            return refused
        assert state is not None

        return await self._mutate(op, FkAction.CONFIRM, state, None)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _refuse(self, op: str, edge_id: str, state: EdgeState | None) -> ServiceResult | None:
        """Guard checks shared by every operation; None means proceed."""
        if state is None:
            return ServiceResult.failure(
                op, "NOT_FOUND", f"Edge {edge_id} is not in the current graph"
            )
        if not state.settled.is_logical or state.settled.mutation_id is None:
            return ServiceResult.failure(
                op,
                "INVALID_EDGE",
                f"Edge {edge_id} is not a logical foreign key",
                detail={"edge_id": edge_id},
            )
        if edge_id in self._pending:
            pending = self._pending[edge_id]
            return ServiceResult.failure(
                op,
                "PENDING",
                f"A {pending.action} is already in flight for edge {edge_id}",
                detail={"edge_id": edge_id, "action": pending.action},
            )
        return None

    async def _mutate(
        self,
        op: str,
        action: FkAction,
        state: EdgeState,
        notes: str | None,
    ) -> ServiceResult:
        edge_id = state.settled.id
        fk_id = state.settled.mutation_id
        assert fk_id is not None
        target = FkStatus.CONFIRMED if action == FkAction.CONFIRM else FkStatus.REJECTED

        self._cancel_undo(edge_id)
        self._pending[edge_id] = PendingConfirmation(
            edge_id=edge_id, action=action, request_token=next(self._tokens)
        )
        self._set_tentative(edge_id, target)
        logger.debug("%s edge %s (fk %d)", action, edge_id, fk_id)

        call = (
            self._sink.confirm_logical_fk
            if action == FkAction.CONFIRM
            else self._sink.reject_logical_fk
        )
        try:
            payload = await call(self._project_id, fk_id, notes=notes)
        except SchemaLensError as exc:
            self._pending.pop(edge_id, None)
            return await self._roll_back(op, edge_id, exc)
        except asyncio.CancelledError:
            self._pending.pop(edge_id, None)
            self._set_tentative(edge_id, None)
            raise
        self._pending.pop(edge_id, None)

        confirmed_at = _server_confirmed_at(payload) if target == FkStatus.CONFIRMED else None
        if target == FkStatus.CONFIRMED and confirmed_at is None:
            confirmed_at = now_utc()
        current = self._edges.get(edge_id, state)
        settled = current.settled.with_status(target, confirmed_at=confirmed_at)
        if edge_id in self._edges:
            self._edges[edge_id] = EdgeState(settled=settled)

        if self._cache is not None:
            self._cache.invalidate_edge(edge_id)
            self._recent[edge_id] = (self._cache.epoch, settled)

        warnings: list[str] = []
        event_payload: dict[str, Any] = {
            "project_id": self._project_id,
            "edge_id": edge_id,
            "logical_fk_id": fk_id,
        }
        if op == "undo_reject_fk":
            self._dispatch_event("post_fk_undo", event_payload, warnings)
        elif target == FkStatus.CONFIRMED:
            assert confirmed_at is not None
            event_payload["confirmed_at"] = confirmed_at.isoformat()
            self._dispatch_event("post_fk_confirm", event_payload, warnings)
        else:
            self._dispatch_event("post_fk_reject", event_payload, warnings)

        data: dict[str, Any] = {**self._describe(settled), "changed": True}
        if target == FkStatus.REJECTED and edge_id in self._edges:
            offer = self._open_undo(edge_id)
            data["undo"] = offer.model_dump(mode="json", by_alias=False)

        self._notify(edge_id)
        return ServiceResult(ok=True, op=op, data=data, warnings=warnings)

    async def _roll_back(self, op: str, edge_id: str, exc: SchemaLensError) -> ServiceResult:
        """Drop the tentative status, record a notice, and refetch."""
        self._set_tentative(edge_id, None)
        if isinstance(exc, MutationConflict):
            notice = f"Edge {edge_id} was changed by someone else; reloading"
            if self._cache is not None:
                self._cache.invalidate_edge(edge_id)
            self._recent.pop(edge_id, None)
        else:
            notice = f"Could not update edge {edge_id}: {exc.message}"
        self._notices.append(notice)
        logger.warning("%s failed for %s: %s", op, edge_id, exc.message)

        warnings: list[str] = []
        if self._on_refetch is not None:
            try:
                await self._on_refetch()
            except SchemaLensError as refetch_exc:
                warnings.append(f"Refetch after failed {op} failed: {refetch_exc.message}")
        return ServiceResult.from_exception(op, exc, warnings=warnings)

    def _set_tentative(self, edge_id: str, status: FkStatus | None) -> None:
        state = self._edges.get(edge_id)
        if state is None:
            return
        self._edges[edge_id] = replace(state, tentative=status)
        self._notify(edge_id)

    def _open_undo(self, edge_id: str) -> UndoOffer:
        loop = asyncio.get_running_loop()
        token = next(self._tokens)
        offer = UndoOffer(
            edge_id=edge_id,
            token=token,
            expires_at=loop.time() + self._undo_window,
        )
        handle = loop.call_later(self._undo_window, self._expire_undo, edge_id, token)
        self._undo[edge_id] = _UndoEntry(offer=offer, handle=handle)
        return offer

    def _expire_undo(self, edge_id: str, token: int) -> None:
        entry = self._undo.get(edge_id)
        if entry is None or entry.offer.token != token:
            return
        del self._undo[edge_id]
        logger.debug("Undo offer for %s expired", edge_id)
        self._notify(edge_id)

    def _cancel_undo(self, edge_id: str) -> None:
        entry = self._undo.pop(edge_id, None)
        if entry is not None:
            entry.handle.cancel()

    def _notify(self, edge_id: str) -> None:
        if self._on_change is not None:
            self._on_change(edge_id)

    def _describe(self, record: Relationship) -> dict[str, Any]:
        return {
            "edge_id": record.id,
            "logical_fk_id": record.mutation_id,
            "status": record.status,
            "confirmed_at": record.confirmed_at.isoformat() if record.confirmed_at else None,
            "source_object_id": record.source_object_id,
            "target_object_id": record.target_object_id,
            "confidence_score": record.confidence_score,
        }


def _server_confirmed_at(payload: Mapping[str, Any]) -> datetime | None:
    """``confirmedAt`` from a mutation response, when present and parseable."""
    raw = payload.get("confirmedAt", payload.get("confirmed_at"))
    if raw is None:
        return None
    try:
        return _DATETIME.validate_python(raw)
    except pydantic.ValidationError:
        logger.debug("Ignoring unparseable confirmedAt %r", raw)
        return None


class LogicalFkService(BaseService):
    """Act on a logical FK by id, without a loaded neighborhood.

    Used by one-shot callers such as the CLI: confirm, reject, manual
    create and delete. Transition rules are left to the server; failures
    come back as ``ServiceResult`` errors.
    """

    def __init__(
        self,
        sink: FkAuthoringSink,
        project_id: int,
        *,
        cache: NeighborhoodCache | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        super().__init__(event_bus)
        self._sink = sink
        self._project_id = project_id
        self._cache = cache

    @traced
    async def confirm(self, fk_id: int, notes: str | None = None) -> ServiceResult:
        return await self._submit("confirm_fk", FkAction.CONFIRM, fk_id, notes)

    @traced
    async def reject(self, fk_id: int, notes: str | None = None) -> ServiceResult:
        return await self._submit("reject_fk", FkAction.REJECT, fk_id, notes)

    async def _submit(
        self, op: str, action: FkAction, fk_id: int, notes: str | None
    ) -> ServiceResult:
        if isinstance(fk_id, bool) or not isinstance(fk_id, int) or fk_id <= 0:
            return ServiceResult.failure(
                op,
                "VALIDATION_ERROR",
                f"Logical FK id must be a positive integer, got {fk_id!r}",
            )
        call = (
            self._sink.confirm_logical_fk
            if action == FkAction.CONFIRM
            else self._sink.reject_logical_fk
        )
        try:
            payload = await call(self._project_id, fk_id, notes=notes)
        except SchemaLensError as exc:
            return ServiceResult.from_exception(op, exc)

        edge_id = f"logical-{fk_id}"
        if self._cache is not None:
            self._cache.invalidate_edge(edge_id)

        data: dict[str, Any] = {"edge_id": edge_id, "logical_fk_id": fk_id, "changed": True}
        warnings: list[str] = []
        event_payload: dict[str, Any] = {
            "project_id": self._project_id,
            "edge_id": edge_id,
            "logical_fk_id": fk_id,
        }
        if action == FkAction.CONFIRM:
            confirmed_at = _server_confirmed_at(payload) or now_utc()
            data["status"] = FkStatus.CONFIRMED
            data["confirmed_at"] = confirmed_at.isoformat()
            event_payload["confirmed_at"] = data["confirmed_at"]
            self._dispatch_event("post_fk_confirm", event_payload, warnings)
        else:
            data["status"] = FkStatus.REJECTED
            self._dispatch_event("post_fk_reject", event_payload, warnings)
        return ServiceResult(ok=True, op=op, data=data, warnings=warnings)

    @traced
    async def create(
        self,
        source_object_id: int,
        source_column_ids: Sequence[int],
        target_object_id: int,
        target_column_ids: Sequence[int],
        notes: str | None = None,
    ) -> ServiceResult:
        """Create a logical FK by hand. The server stores it as CONFIRMED.

        Composite keys pair the column lists position by position, so
        both lists must be non-empty and of equal length.
        """
        op = "create_fk"
        problem = _mapping_problem(
            source_object_id, source_column_ids, target_object_id, target_column_ids
        )
        if problem is not None:
            return ServiceResult.failure(op, "VALIDATION_ERROR", problem)
        try:
            payload = await self._sink.create_logical_fk(
                self._project_id,
                source_object_id=source_object_id,
                source_column_ids=source_column_ids,
                target_object_id=target_object_id,
                target_column_ids=target_column_ids,
                notes=notes,
            )
        except SchemaLensError as exc:
            return ServiceResult.from_exception(op, exc)

        fk_id = payload.get("logicalFkId", payload.get("id"))
        if not isinstance(fk_id, int) or isinstance(fk_id, bool):
            return ServiceResult.failure(
                op, "NETWORK_ERROR", "Create response carried no logical FK id"
            )
        edge_id = f"logical-{fk_id}"
        if self._cache is not None:
            self._cache.invalidate_objects(source_object_id, target_object_id)

        confirmed_at = _server_confirmed_at(payload) or now_utc()
        warnings: list[str] = []
        self._dispatch_event(
            "post_fk_create",
            {
                "project_id": self._project_id,
                "edge_id": edge_id,
                "logical_fk_id": fk_id,
                "source_object_id": source_object_id,
                "target_object_id": target_object_id,
            },
            warnings,
        )
        data = {
            "edge_id": edge_id,
            "logical_fk_id": fk_id,
            "status": FkStatus.CONFIRMED,
            "confirmed_at": confirmed_at.isoformat(),
            "source_object_id": source_object_id,
            "target_object_id": target_object_id,
            "changed": True,
        }
        return ServiceResult(ok=True, op=op, data=data, warnings=warnings)

    @traced
    async def delete(self, fk_id: int) -> ServiceResult:
        """Delete logical FK *fk_id*."""
        op = "delete_fk"
        if isinstance(fk_id, bool) or not isinstance(fk_id, int) or fk_id <= 0:
            return ServiceResult.failure(
                op,
                "VALIDATION_ERROR",
                f"Logical FK id must be a positive integer, got {fk_id!r}",
            )
        try:
            await self._sink.delete_logical_fk(self._project_id, fk_id)
        except SchemaLensError as exc:
            return ServiceResult.from_exception(op, exc)

        edge_id = f"logical-{fk_id}"
        if self._cache is not None:
            self._cache.invalidate_edge(edge_id)
        warnings: list[str] = []
        self._dispatch_event(
            "post_fk_delete",
            {"project_id": self._project_id, "edge_id": edge_id, "logical_fk_id": fk_id},
            warnings,
        )
        data = {"edge_id": edge_id, "logical_fk_id": fk_id, "deleted": True, "changed": True}
        return ServiceResult(ok=True, op=op, data=data, warnings=warnings)


def _mapping_problem(
    source_object_id: object,
    source_column_ids: Sequence[object],
    target_object_id: object,
    target_column_ids: Sequence[object],
) -> str | None:
    """Describe what is wrong with a manual FK mapping, or None."""
    for label, value in (("Source", source_object_id), ("Target", target_object_id)):
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            return f"{label} object id must be a positive integer, got {value!r}"
    if not source_column_ids or not target_column_ids:
        return "At least one source and one target column are required"
    if len(source_column_ids) != len(target_column_ids):
        return "Source and target column counts must match for composite foreign keys"
    for column_id in (*source_column_ids, *target_column_ids):
        if isinstance(column_id, bool) or not isinstance(column_id, int) or column_id <= 0:
            return f"Column ids must be positive integers, got {column_id!r}"
    return None
