"""NeighborhoodCache — fetched neighborhoods keyed by (project, focus, hops).

Entries are whole ``NeighborhoodGraph`` values, never patched. When the
confirmation workflow changes an edge's status, every entry containing
that edge is dropped so the next fetch reflects the server's truth.

Every invalidation bumps :attr:`NeighborhoodCache.epoch`. A fetch that
was issued at an older epoch may carry a status the server has since
changed, so callers compare epochs before storing its result.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, TypeAlias

if TYPE_CHECKING:
    from schemalens.domain.models import NeighborhoodGraph

logger = logging.getLogger(__name__)

CacheKey: TypeAlias = tuple[int, int, int]


class NeighborhoodCache:
    """In-memory neighborhood cache with edge-level invalidation."""

    def __init__(self) -> None:
        self._entries: dict[CacheKey, NeighborhoodGraph] = {}
        self._epoch = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def get(self, key: CacheKey) -> NeighborhoodGraph | None:
        return self._entries.get(key)

    def put(self, key: CacheKey, graph: NeighborhoodGraph) -> None:
        self._entries[key] = graph

    @property
    def epoch(self) -> int:
        """Number of invalidations so far."""
        return self._epoch

    def put_if_current(self, key: CacheKey, graph: NeighborhoodGraph, epoch: int) -> bool:
        """Store *graph* unless the cache was invalidated since *epoch*."""
        if epoch != self._epoch:
            logger.debug("Not caching %s fetched at epoch %d (now %d)", key, epoch, self._epoch)
            return False
        self._entries[key] = graph
        return True

    def keys(self) -> list[CacheKey]:
        return list(self._entries)

    def invalidate(self, key: CacheKey) -> bool:
        """Drop a single entry. Returns whether it existed."""
        self._epoch += 1
        return self._entries.pop(key, None) is not None

    def invalidate_edge(self, edge_id: str) -> list[CacheKey]:
        """Drop every entry whose graph contains *edge_id*."""
        self._epoch += 1
        dropped = [key for key, graph in self._entries.items() if graph.edge(edge_id) is not None]
        for key in dropped:
            del self._entries[key]
        if dropped:
            logger.debug("Invalidated %d neighborhood(s) containing edge %s", len(dropped), edge_id)
        return dropped

    def invalidate_objects(self, *object_ids: int) -> list[CacheKey]:
        """Drop every entry whose graph contains any of *object_ids*.

        A newly created edge between them is not yet in any cached graph.
        """
        self._epoch += 1
        dropped = [
            key
            for key, graph in self._entries.items()
            if any(graph.node(object_id) is not None for object_id in object_ids)
        ]
        for key in dropped:
            del self._entries[key]
        return dropped

    def invalidate_focus(self, project_id: int, focus_id: int) -> list[CacheKey]:
        """Drop the entries for *focus_id* at every hop depth."""
        self._epoch += 1
        dropped = [key for key in self._entries if key[0] == project_id and key[1] == focus_id]
        for key in dropped:
            del self._entries[key]
        return dropped

    def clear(self) -> None:
        self._epoch += 1
        self._entries.clear()
