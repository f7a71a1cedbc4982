"""Tests for NeighborhoodFetcher."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from schemalens.domain.errors import NetworkError, NotFoundError, ValidationError
from schemalens.infrastructure.cache import NeighborhoodCache
from schemalens.plugins.event_bus import EventBus
from schemalens.plugins.hookspecs import hookimpl
from schemalens.plugins.manager import PluginManager
from schemalens.services.neighborhood import (
    NeighborhoodFetcher,
    validate_focus_id,
    validate_hops,
)


class LoadRecorder:
    def __init__(self) -> None:
        self.loads: list[dict[str, Any]] = []

    @hookimpl
    def post_neighborhood_load(
        self,
        project_id: int,
        focus_object_id: int,
        hops: int,
        node_count: int,
        edge_count: int,
    ) -> None:
        self.loads.append(
            {
                "project_id": project_id,
                "focus_object_id": focus_object_id,
                "hops": hops,
                "node_count": node_count,
                "edge_count": edge_count,
            }
        )


class TestValidation:
    @pytest.mark.parametrize("value", [0, -1, "42", 4.2, True, None])
    def test_bad_focus(self, value: object) -> None:
        with pytest.raises(ValidationError):
            validate_focus_id(value)

    @pytest.mark.parametrize("value", [0, 4, "1", True, None])
    def test_bad_hops(self, value: object) -> None:
        with pytest.raises(ValidationError):
            validate_hops(value)

    def test_good_values(self) -> None:
        assert validate_focus_id(42) == 42
        assert [validate_hops(h) for h in (1, 2, 3)] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_invalid_args_skip_network(self, fake_client) -> None:
        fetcher = NeighborhoodFetcher(fake_client, 1)
        with pytest.raises(ValidationError):
            await fetcher.fetch_neighborhood(42, 5)
        with pytest.raises(ValidationError):
            await fetcher.fetch_neighborhood(0, 1)
        assert fake_client.calls == []


class TestFetchNeighborhood:
    @pytest.mark.asyncio
    async def test_fetches_and_caches(self, fake_client) -> None:
        fetcher = NeighborhoodFetcher(fake_client, 1)
        first = await fetcher.fetch_neighborhood(42, 1)
        second = await fetcher.fetch_neighborhood(42, 1)
        assert first is second
        assert fake_client.calls_to("get_neighborhood") == [("get_neighborhood", 1, 42, 1)]
        assert (1, 42, 1) in fetcher.cache

    @pytest.mark.asyncio
    async def test_hops_is_part_of_key(self, fake_client) -> None:
        fetcher = NeighborhoodFetcher(fake_client, 1)
        await fetcher.fetch_neighborhood(42, 1)
        await fetcher.fetch_neighborhood(42, 2)
        assert len(fake_client.calls_to("get_neighborhood")) == 2

    @pytest.mark.asyncio
    async def test_force_bypasses_cache(self, fake_client) -> None:
        fetcher = NeighborhoodFetcher(fake_client, 1)
        await fetcher.fetch_neighborhood(42, 1)
        await fetcher.fetch_neighborhood(42, 1, force=True)
        assert len(fake_client.calls_to("get_neighborhood")) == 2

    @pytest.mark.asyncio
    async def test_shared_cache(self, fake_client) -> None:
        cache = NeighborhoodCache()
        await NeighborhoodFetcher(fake_client, 1, cache=cache).fetch_neighborhood(42, 1)
        await NeighborhoodFetcher(fake_client, 1, cache=cache).fetch_neighborhood(42, 1)
        assert len(fake_client.calls_to("get_neighborhood")) == 1

    @pytest.mark.asyncio
    async def test_not_found_propagates(self, fake_client) -> None:
        fetcher = NeighborhoodFetcher(fake_client, 1)
        with pytest.raises(NotFoundError):
            await fetcher.fetch_neighborhood(999, 1)
        assert len(fetcher.cache) == 0

    @pytest.mark.asyncio
    async def test_network_error_not_retried(self, fake_client) -> None:
        fake_client.fail_next["get_neighborhood"] = NetworkError("down")
        fetcher = NeighborhoodFetcher(fake_client, 1)
        with pytest.raises(NetworkError):
            await fetcher.fetch_neighborhood(42, 1)
        assert len(fake_client.calls_to("get_neighborhood")) == 1

    @pytest.mark.asyncio
    async def test_load_event(self, fake_client) -> None:
        pm = PluginManager()
        recorder = LoadRecorder()
        pm.register_plugin(recorder)
        fetcher = NeighborhoodFetcher(fake_client, 1, event_bus=EventBus(pm))

        await fetcher.fetch_neighborhood(42, 1)
        await fetcher.fetch_neighborhood(42, 1)

        assert recorder.loads == [
            {"project_id": 1, "focus_object_id": 42, "hops": 1, "node_count": 3, "edge_count": 2}
        ]

    @pytest.mark.asyncio
    async def test_response_after_invalidation_not_cached(self, fake_client) -> None:
        fetcher = NeighborhoodFetcher(fake_client, 1)
        gate = asyncio.Event()
        fake_client.gates["neighborhood:43"] = gate
        pending = asyncio.create_task(fetcher.fetch_neighborhood(43, 1))
        await asyncio.sleep(0)

        fetcher.cache.invalidate_edge("logical-7")
        gate.set()
        graph = await pending

        assert graph.focus_object_id == 43
        assert (1, 43, 1) not in fetcher.cache
        await fetcher.fetch_neighborhood(43, 1)
        assert len(fake_client.calls_to("get_neighborhood")) == 2
        assert (1, 43, 1) in fetcher.cache


class TestFetchObjects:
    @pytest.mark.asyncio
    async def test_catalog_cached(self, fake_client) -> None:
        fetcher = NeighborhoodFetcher(fake_client, 1)
        assert fetcher.catalog == []
        objects = await fetcher.fetch_objects()
        await fetcher.fetch_objects()
        assert len(objects) == 4
        assert len(fetcher.catalog) == 4
        assert len(fake_client.calls_to("list_objects")) == 1

    @pytest.mark.asyncio
    async def test_force_reloads(self, fake_client) -> None:
        fetcher = NeighborhoodFetcher(fake_client, 1)
        await fetcher.fetch_objects()
        await fetcher.fetch_objects(force=True)
        assert len(fake_client.calls_to("list_objects")) == 2
