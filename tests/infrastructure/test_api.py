"""Tests for the REST client, driven through ``httpx.MockTransport``."""

from __future__ import annotations

import json
from typing import Any

import httpx
import pytest

from schemalens.domain.errors import (
    MutationConflict,
    NetworkError,
    NotFoundError,
    ValidationError,
)
from schemalens.infrastructure.api import SchemaApiClient, unwrap_envelope


def _client(handler, **kwargs: Any) -> SchemaApiClient:
    return SchemaApiClient(
        "http://api.test/api/", transport=httpx.MockTransport(handler), **kwargs
    )


class TestUnwrapEnvelope:
    def test_plain_payload_passes_through(self) -> None:
        assert unwrap_envelope({"nodes": []}) == {"nodes": []}
        assert unwrap_envelope([1, 2]) == [1, 2]

    def test_unwraps_data(self) -> None:
        assert unwrap_envelope({"status": True, "data": {"x": 1}, "message": ""}) == {"x": 1}

    def test_failed_envelope_raises(self) -> None:
        with pytest.raises(NetworkError, match="boom"):
            unwrap_envelope({"status": False, "data": None, "message": "boom", "errors": ["e"]})


class TestGetNeighborhood:
    @pytest.mark.asyncio
    async def test_request_shape(self, orders_payload: dict[str, Any]) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=orders_payload)

        async with _client(handler, token="s3cret") as client:
            graph = await client.get_neighborhood(1, 42, 2)

        assert graph.focus_object_id == 42
        assert graph.hops == 2
        request = seen[0]
        assert request.method == "GET"
        assert request.url.path == "/api/neighborhood/1/42"
        assert request.url.params["hops"] == "2"
        assert request.headers["Authorization"] == "Bearer s3cret"

    @pytest.mark.asyncio
    async def test_no_token_no_header(self, orders_payload: dict[str, Any]) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=orders_payload)

        async with _client(handler) as client:
            await client.get_neighborhood(1, 42, 1)
        assert "Authorization" not in seen[0].headers

    @pytest.mark.asyncio
    async def test_enveloped_payload(self, orders_payload: dict[str, Any]) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"status": True, "data": orders_payload})

        async with _client(handler) as client:
            graph = await client.get_neighborhood(1, 42, 1)
        assert len(graph.nodes) == 3

    @pytest.mark.asyncio
    async def test_malformed_payload(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"focusObjectId": 42, "nodes": []})

        async with _client(handler) as client:
            with pytest.raises(NetworkError, match="Malformed"):
                await client.get_neighborhood(1, 42, 1)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("status", "error"),
        [
            (404, NotFoundError),
            (409, MutationConflict),
            (400, ValidationError),
            (422, ValidationError),
            (500, NetworkError),
            (503, NetworkError),
        ],
    )
    async def test_status_mapping(self, status: int, error: type[Exception]) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(status, text="nope")

        async with _client(handler) as client:
            with pytest.raises(error):
                await client.get_neighborhood(1, 42, 1)

    @pytest.mark.asyncio
    async def test_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(NetworkError, match="refused"):
                await client.get_neighborhood(1, 42, 1)

    @pytest.mark.asyncio
    async def test_invalid_json(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"<html>")

        async with _client(handler) as client:
            with pytest.raises(NetworkError, match="invalid JSON"):
                await client.get_neighborhood(1, 42, 1)


class TestListObjects:
    @pytest.mark.asyncio
    async def test_catalog(self, catalog_payload: list[dict[str, Any]]) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/objects/1"
            return httpx.Response(200, json=catalog_payload)

        async with _client(handler) as client:
            objects = await client.list_objects(1)
        assert [o.name for o in objects] == ["Orders", "Customers", "OrderItems", "Invoices"]

    @pytest.mark.asyncio
    async def test_non_list_rejected(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"items": []})

        async with _client(handler) as client:
            with pytest.raises(NetworkError):
                await client.list_objects(1)


class TestMutations:
    @pytest.mark.asyncio
    async def test_confirm(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"id": 7, "status": "CONFIRMED"})

        async with _client(handler) as client:
            data = await client.confirm_logical_fk(1, 7, notes="looks right")

        assert data == {"id": 7, "status": "CONFIRMED"}
        assert seen[0].method == "PUT"
        assert seen[0].url.path == "/api/logical-fks/1/7/confirm"
        assert json.loads(seen[0].content) == {"notes": "looks right"}

    @pytest.mark.asyncio
    async def test_reject_empty_body(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(204)

        async with _client(handler) as client:
            data = await client.reject_logical_fk(1, 7)

        assert data == {}
        assert seen[0].url.path == "/api/logical-fks/1/7/reject"
        assert json.loads(seen[0].content) == {}

    @pytest.mark.asyncio
    async def test_conflict(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(409, json={"message": "already rejected"})

        async with _client(handler) as client:
            with pytest.raises(MutationConflict, match="changed by another user"):
                await client.reject_logical_fk(1, 7)


class TestManualFks:
    @pytest.mark.asyncio
    async def test_create(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                201,
                json={
                    "logicalFkId": 11,
                    "status": "CONFIRMED",
                    "discoveryMethod": "MANUAL",
                    "confidenceScore": 1.0,
                },
            )

        async with _client(handler) as client:
            data = await client.create_logical_fk(
                1,
                source_object_id=42,
                source_column_ids=(2,),
                target_object_id=43,
                target_column_ids=(3,),
                notes="by hand",
            )

        assert data["logicalFkId"] == 11
        assert seen[0].method == "POST"
        assert seen[0].url.path == "/api/logical-fks/1"
        assert json.loads(seen[0].content) == {
            "sourceTableId": 42,
            "sourceColumnIds": [2],
            "targetTableId": 43,
            "targetColumnIds": [3],
            "notes": "by hand",
        }

    @pytest.mark.asyncio
    async def test_create_without_notes(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201, json={"logicalFkId": 12})

        async with _client(handler) as client:
            await client.create_logical_fk(
                1,
                source_object_id=42,
                source_column_ids=[1, 2],
                target_object_id=43,
                target_column_ids=[3, 4],
            )

        assert "notes" not in json.loads(seen[0].content)

    @pytest.mark.asyncio
    async def test_create_duplicate(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(409, json={"message": "duplicate"})

        async with _client(handler) as client:
            with pytest.raises(MutationConflict, match="column mapping already exists"):
                await client.create_logical_fk(
                    1,
                    source_object_id=42,
                    source_column_ids=[2],
                    target_object_id=43,
                    target_column_ids=[3],
                )

    @pytest.mark.asyncio
    async def test_create_mismatched_columns_rejected(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, text="Column counts must match")

        async with _client(handler) as client:
            with pytest.raises(ValidationError, match="Column counts must match"):
                await client.create_logical_fk(
                    1,
                    source_object_id=42,
                    source_column_ids=[1, 2],
                    target_object_id=43,
                    target_column_ids=[3],
                )

    @pytest.mark.asyncio
    async def test_delete(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(204)

        async with _client(handler) as client:
            assert await client.delete_logical_fk(1, 7) is None

        assert seen[0].method == "DELETE"
        assert seen[0].url.path == "/api/logical-fks/1/7"

    @pytest.mark.asyncio
    async def test_delete_missing(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404)

        async with _client(handler) as client:
            with pytest.raises(NotFoundError, match="Logical FK 7 not found"):
                await client.delete_logical_fk(1, 7)
