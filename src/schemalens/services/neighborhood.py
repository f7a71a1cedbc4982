"""NeighborhoodFetcher — cached, validated access to neighborhoods.

Read-only apart from its cache. Arguments are validated before any
network call; transport and server failures propagate as domain
errors and are never retried here.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

from schemalens.domain.errors import ValidationError
from schemalens.domain.types import VALID_HOPS
from schemalens.infrastructure.cache import NeighborhoodCache
from schemalens.services.base import BaseService
from schemalens.services.telemetry import annotate, trace_span

if TYPE_CHECKING:
    from schemalens.domain.models import NeighborhoodGraph, ObjectSummary
    from schemalens.plugins.event_bus import EventBus

logger = logging.getLogger(__name__)


class NeighborhoodSource(Protocol):
    """Read side of the REST API."""

    async def get_neighborhood(
        self, project_id: int, focus_id: int, hops: int
    ) -> NeighborhoodGraph: ...

    async def list_objects(self, project_id: int) -> list[ObjectSummary]: ...


def validate_focus_id(focus_id: object) -> int:
    """Return *focus_id* if it is a positive integer, else raise."""
    if isinstance(focus_id, bool) or not isinstance(focus_id, int) or focus_id <= 0:
        raise ValidationError(
            f"Focus object id must be a positive integer, got {focus_id!r}",
            detail={"focus_id": focus_id},
        )
    return focus_id


def validate_hops(hops: object) -> int:
    """Return *hops* if it is one of :data:`VALID_HOPS`, else raise."""
    if isinstance(hops, bool) or hops not in VALID_HOPS:
        raise ValidationError(
            f"Hop depth must be one of {', '.join(map(str, VALID_HOPS))}, got {hops!r}",
            detail={"hops": hops},
        )
    return hops  # type: ignore[return-value]


class NeighborhoodFetcher(BaseService):
    """Fetches neighborhoods for one project through a shared cache."""

    def __init__(
        self,
        source: NeighborhoodSource,
        project_id: int,
        *,
        cache: NeighborhoodCache | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        super().__init__(event_bus)
        self._source = source
        self._project_id = project_id
        self._cache = cache if cache is not None else NeighborhoodCache()
        self._catalog: list[ObjectSummary] | None = None

    @property
    def project_id(self) -> int:
        return self._project_id

    @property
    def cache(self) -> NeighborhoodCache:
        return self._cache

    async def fetch_neighborhood(
        self,
        focus_id: int,
        hops: int,
        *,
        force: bool = False,
    ) -> NeighborhoodGraph:
        """Return the neighborhood of *focus_id* within *hops*.

        A response that resolves after a cache invalidation is returned
        but not cached, since it may predate the change.

        Raises:
            ValidationError: Bad focus id or hop count (no network call).
            NotFoundError: The focus object does not exist.
            NetworkError: Transport failure or server error.
        """
        validate_focus_id(focus_id)
        validate_hops(hops)
        key = (self._project_id, focus_id, hops)

        if not force:
            cached = self._cache.get(key)
            if cached is not None:
                logger.debug("Neighborhood cache hit for %s", key)
                annotate("neighborhood_cache", "hit")
                return cached
        logger.debug("Neighborhood cache miss for %s", key)
        epoch = self._cache.epoch

        with trace_span("fetch_neighborhood") as span:
            graph = await self._source.get_neighborhood(self._project_id, focus_id, hops)
            if span:
                span.annotate("nodes", len(graph.nodes))
                span.annotate("edges", len(graph.edges))

        self._cache.put_if_current(key, graph, epoch)
        warnings: list[str] = []
        self._dispatch_event(
            "post_neighborhood_load",
            {
                "project_id": self._project_id,
                "focus_object_id": focus_id,
                "hops": hops,
                "node_count": len(graph.nodes),
                "edge_count": len(graph.edges),
            },
            warnings,
        )
        for warning in warnings:
            logger.warning(warning)
        return graph

    async def fetch_objects(self, *, force: bool = False) -> list[ObjectSummary]:
        """Return the project's object catalog (cached after the first call)."""
        if self._catalog is None or force:
            self._catalog = await self._source.list_objects(self._project_id)
            logger.debug("Loaded %d catalog objects", len(self._catalog))
        return list(self._catalog)

    @property
    def catalog(self) -> list[ObjectSummary]:
        """The cached catalog, or an empty list before the first load."""
        return list(self._catalog or [])
