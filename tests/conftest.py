"""Shared pytest fixtures for schemalens tests."""

from __future__ import annotations

import asyncio
import copy
import os
from collections.abc import Callable, Sequence
from typing import Any

import pytest
from click.testing import CliRunner

from schemalens.domain.errors import NotFoundError, SchemaLensError
from schemalens.domain.models import NeighborhoodGraph, ObjectSummary

# ---------------------------------------------------------------------------
# Wire payloads
# ---------------------------------------------------------------------------

ORDERS_PAYLOAD: dict[str, Any] = {
    "focusObjectId": 42,
    "nodes": [
        {
            "objectId": 42,
            "name": "Orders",
            "schemaName": "sales",
            "depth": 0,
            "columns": [
                {"columnId": 1, "columnName": "OrderId", "dataType": "int", "isPrimaryKey": True},
                {"columnId": 2, "columnName": "CustomerRef", "dataType": "int"},
            ],
        },
        {
            "objectId": 43,
            "name": "Customers",
            "schemaName": "sales",
            "depth": 1,
            "columns": [
                {"columnId": 3, "columnName": "CustomerId", "isPrimaryKey": True},
            ],
        },
        {"objectId": 44, "name": "OrderItems", "schemaName": "sales", "depth": 1},
    ],
    "edges": [
        {
            "id": "phys-1",
            "sourceObjectId": 44,
            "sourceColumnId": 5,
            "targetObjectId": 42,
            "targetColumnId": 1,
            "relationshipType": "PHYSICAL",
        },
        {
            "id": "logical-7",
            "sourceObjectId": 42,
            "sourceColumnId": 2,
            "sourceColumnName": "CustomerRef",
            "targetObjectId": 43,
            "targetColumnId": 3,
            "targetColumnName": "CustomerId",
            "relationshipType": "LOGICAL",
            "status": "SUGGESTED",
            "confidenceScore": 0.82,
            "discoveryMethod": "name_match",
        },
    ],
}

CUSTOMERS_PAYLOAD: dict[str, Any] = {
    "focusObjectId": 43,
    "nodes": [
        {"objectId": 43, "name": "Customers", "schemaName": "sales", "depth": 0},
        {"objectId": 42, "name": "Orders", "schemaName": "sales", "depth": 1},
    ],
    "edges": [
        {
            "id": "logical-7",
            "sourceObjectId": 42,
            "targetObjectId": 43,
            "relationshipType": "LOGICAL",
            "status": "SUGGESTED",
            "confidenceScore": 0.82,
        },
    ],
}

CATALOG: list[dict[str, Any]] = [
    {"objectId": 42, "name": "Orders", "schemaName": "sales"},
    {"objectId": 43, "name": "Customers", "schemaName": "sales"},
    {"objectId": 44, "name": "OrderItems", "schemaName": "sales"},
    {"objectId": 45, "name": "Invoices", "schemaName": "billing"},
]


# ---------------------------------------------------------------------------
# Fake API client
# ---------------------------------------------------------------------------


class FakeApiClient:
    """In-memory stand-in for ``SchemaApiClient``.

    * ``payloads`` maps focus id to a wire payload;
    * ``fail_next`` maps a method name to an exception raised once;
    * ``gates`` maps a method name (or ``"neighborhood:<focus>"``) to an
      ``asyncio.Event`` the call waits on before answering.
    """

    def __init__(self, payloads: dict[int, dict[str, Any]] | None = None) -> None:
        self.payloads = payloads if payloads is not None else {
            42: copy.deepcopy(ORDERS_PAYLOAD),
            43: copy.deepcopy(CUSTOMERS_PAYLOAD),
        }
        self.catalog = copy.deepcopy(CATALOG)
        self.calls: list[tuple[Any, ...]] = []
        self.fail_next: dict[str, SchemaLensError] = {}
        self.gates: dict[str, asyncio.Event] = {}
        self.mutation_response: dict[str, Any] = {}
        self.create_response: dict[str, Any] = {
            "logicalFkId": 11,
            "status": "CONFIRMED",
            "discoveryMethod": "MANUAL",
            "confidenceScore": 1.0,
            "confirmedAt": "2026-03-01T10:00:00Z",
        }
        self.closed = False

    def calls_to(self, method: str) -> list[tuple[Any, ...]]:
        return [c for c in self.calls if c[0] == method]

    async def _enter(self, method: str, gate_key: str | None = None) -> None:
        gate = self.gates.get(gate_key or method)
        if gate is not None:
            await gate.wait()
        exc = self.fail_next.pop(method, None)
        if exc is not None:
            raise exc

    async def get_neighborhood(
        self, project_id: int, focus_id: int, hops: int
    ) -> NeighborhoodGraph:
        self.calls.append(("get_neighborhood", project_id, focus_id, hops))
        await self._enter("get_neighborhood", f"neighborhood:{focus_id}")
        payload = self.payloads.get(focus_id)
        if payload is None:
            raise NotFoundError(f"Object {focus_id} in project {project_id} not found")
        return NeighborhoodGraph.model_validate({**payload, "hops": hops})

    async def list_objects(self, project_id: int) -> list[ObjectSummary]:
        self.calls.append(("list_objects", project_id))
        await self._enter("list_objects")
        return [ObjectSummary.model_validate(item) for item in self.catalog]

    async def confirm_logical_fk(
        self, project_id: int, fk_id: int, *, notes: str | None = None
    ) -> dict[str, Any]:
        self.calls.append(("confirm_logical_fk", project_id, fk_id, notes))
        await self._enter("confirm_logical_fk")
        return dict(self.mutation_response)

    async def reject_logical_fk(
        self, project_id: int, fk_id: int, *, notes: str | None = None
    ) -> dict[str, Any]:
        self.calls.append(("reject_logical_fk", project_id, fk_id, notes))
        await self._enter("reject_logical_fk")
        return dict(self.mutation_response)

    async def create_logical_fk(
        self,
        project_id: int,
        *,
        source_object_id: int,
        source_column_ids: Sequence[int],
        target_object_id: int,
        target_column_ids: Sequence[int],
        notes: str | None = None,
    ) -> dict[str, Any]:
        self.calls.append(
            (
                "create_logical_fk",
                project_id,
                source_object_id,
                tuple(source_column_ids),
                target_object_id,
                tuple(target_column_ids),
                notes,
            )
        )
        await self._enter("create_logical_fk")
        return dict(self.create_response)

    async def delete_logical_fk(self, project_id: int, fk_id: int) -> None:
        self.calls.append(("delete_logical_fk", project_id, fk_id))
        await self._enter("delete_logical_fk")

    async def aclose(self) -> None:
        self.closed = True


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def fake_client() -> FakeApiClient:
    return FakeApiClient()


@pytest.fixture
def orders_payload() -> dict[str, Any]:
    return copy.deepcopy(ORDERS_PAYLOAD)


@pytest.fixture
def catalog_payload() -> list[dict[str, Any]]:
    return copy.deepcopy(CATALOG)


@pytest.fixture
def make_graph() -> Callable[..., NeighborhoodGraph]:
    """Build a validated ``NeighborhoodGraph`` from the Orders payload.

    Keyword overrides replace top-level payload keys.
    """

    def _make(hops: int = 1, **overrides: Any) -> NeighborhoodGraph:
        payload = {**copy.deepcopy(ORDERS_PAYLOAD), **overrides, "hops": hops}
        return NeighborhoodGraph.model_validate(payload)

    return _make


@pytest.fixture
def fake_client_factory() -> Callable[..., FakeApiClient]:
    return FakeApiClient


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch):
    """Keep tests away from real config files and SCHEMALENS_* env vars."""
    for key in list(os.environ):
        if key.startswith("SCHEMALENS_"):
            monkeypatch.delenv(key)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path_factory.mktemp("xdg")))
    monkeypatch.chdir(tmp_path_factory.mktemp("cwd"))
