"""SchemaApiClient — async REST transport for neighborhoods and logical FKs.

Thin wrapper over ``httpx.AsyncClient``. Every network call is a
suspension point; nothing else here awaits. HTTP failures are mapped to
the domain error taxonomy and never retried:

- transport errors and 5xx -> ``NetworkError``
- 404 -> ``NotFoundError``
- 409 -> ``MutationConflict``
- 400/422 -> ``ValidationError``

Responses may arrive wrapped in the server envelope
``{status, data, message, errors}``; it is unwrapped here.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import httpx
import pydantic

from schemalens.domain.errors import (
    MutationConflict,
    NetworkError,
    NotFoundError,
    ValidationError,
)
from schemalens.domain.models import NeighborhoodGraph, ObjectSummary

logger = logging.getLogger(__name__)

_ENVELOPE_KEYS = frozenset({"status", "data"})


def unwrap_envelope(payload: Any) -> Any:
    """Return ``payload["data"]`` for enveloped responses, else *payload*.

    Raises:
        NetworkError: The envelope reports ``status: false``.
    """
    if not isinstance(payload, dict) or not _ENVELOPE_KEYS.issubset(payload):
        return payload
    if payload["status"] is False:
        message = payload.get("message") or "Server reported a failure"
        raise NetworkError(message, detail={"errors": payload.get("errors") or []})
    return payload["data"]


class SchemaApiClient:
    """Client for the relationship service endpoints.

    Args:
        base_url: API root, e.g. ``https://docs.example.com/api``.
        timeout: Per-request timeout in seconds.
        token: Optional bearer token.
        transport: Custom httpx transport (tests use ``httpx.MockTransport``).
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            headers=headers,
            transport=transport,
        )

    async def __aenter__(self) -> SchemaApiClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    async def get_neighborhood(
        self, project_id: int, focus_id: int, hops: int
    ) -> NeighborhoodGraph:
        """``GET /neighborhood/{projectId}/{focusObjectId}?hops=N``."""
        data = await self._request(
            "GET",
            f"/neighborhood/{project_id}/{focus_id}",
            params={"hops": hops},
            subject=f"Object {focus_id} in project {project_id}",
        )
        if not isinstance(data, dict):
            raise NetworkError("Malformed neighborhood payload", detail={"focus_id": focus_id})
        try:
            return NeighborhoodGraph.model_validate({**data, "hops": hops})
        except pydantic.ValidationError as exc:
            raise NetworkError(
                "Malformed neighborhood payload",
                detail={"focus_id": focus_id, "errors": exc.error_count()},
            ) from exc

    async def list_objects(self, project_id: int) -> list[ObjectSummary]:
        """``GET /objects/{projectId}``, the focus search catalog."""
        data = await self._request(
            "GET",
            f"/objects/{project_id}",
            subject=f"Project {project_id}",
        )
        if not isinstance(data, list):
            raise NetworkError(
                "Malformed object catalog payload", detail={"project_id": project_id}
            )
        try:
            return [ObjectSummary.model_validate(item) for item in data]
        except pydantic.ValidationError as exc:
            raise NetworkError("Malformed object catalog payload") from exc

    async def confirm_logical_fk(
        self,
        project_id: int,
        fk_id: int,
        *,
        notes: str | None = None,
    ) -> dict[str, Any]:
        """``PUT /logical-fks/{projectId}/{id}/confirm``."""
        return await self._mutate(project_id, fk_id, "confirm", notes)

    async def reject_logical_fk(
        self,
        project_id: int,
        fk_id: int,
        *,
        notes: str | None = None,
    ) -> dict[str, Any]:
        """``PUT /logical-fks/{projectId}/{id}/reject``."""
        return await self._mutate(project_id, fk_id, "reject", notes)

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
        """``POST /logical-fks/{projectId}``, a manual (auto-confirmed) FK.

        Raises:
            MutationConflict: The same column mapping already exists.
        """
        body: dict[str, Any] = {
            "sourceTableId": source_object_id,
            "sourceColumnIds": list(source_column_ids),
            "targetTableId": target_object_id,
            "targetColumnIds": list(target_column_ids),
        }
        if notes:
            body["notes"] = notes
        data = await self._request(
            "POST",
            f"/logical-fks/{project_id}",
            json=body,
            subject=f"Logical FK {source_object_id} -> {target_object_id}",
            conflict="A logical FK with this column mapping already exists",
        )
        return data if isinstance(data, dict) else {}

    async def delete_logical_fk(self, project_id: int, fk_id: int) -> None:
        """``DELETE /logical-fks/{projectId}/{id}``."""
        await self._request(
            "DELETE",
            f"/logical-fks/{project_id}/{fk_id}",
            subject=f"Logical FK {fk_id}",
        )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _mutate(
        self,
        project_id: int,
        fk_id: int,
        action: str,
        notes: str | None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {}
        if notes:
            body["notes"] = notes
        data = await self._request(
            "PUT",
            f"/logical-fks/{project_id}/{fk_id}/{action}",
            json=body,
            subject=f"Logical FK {fk_id}",
        )
        return data if isinstance(data, dict) else {}

    async def _request(
        self,
        method: str,
        url: str,
        *,
        subject: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        conflict: str | None = None,
    ) -> Any:
        """Issue a request and map failures onto the error taxonomy.

        *conflict* replaces the default 409 message.
        """
        try:
            response = await self._client.request(method, url, params=params, json=json)
        except httpx.HTTPError as exc:
            logger.debug("%s %s failed: %s", method, url, exc)
            raise NetworkError(f"{method} {url} failed: {exc}") from exc

        status = response.status_code
        if status == httpx.codes.NOT_FOUND:
            raise NotFoundError(f"{subject} not found", detail={"url": url})
        if status == httpx.codes.CONFLICT:
            raise MutationConflict(
                conflict or f"{subject} was changed by another user",
                detail={"url": url, "body": _safe_text(response)},
            )
        if status in (httpx.codes.BAD_REQUEST, httpx.codes.UNPROCESSABLE_ENTITY):
            raise ValidationError(f"Request rejected: {_safe_text(response)}", detail={"url": url})
        if status >= 400:
            raise NetworkError(f"{method} {url} returned {status}", detail={"status": status})

        if not response.content:
            return {}
        try:
            payload = response.json()
        except ValueError as exc:
            raise NetworkError(f"{method} {url} returned invalid JSON") from exc
        return unwrap_envelope(payload)


def _safe_text(response: httpx.Response) -> str:
    """Short response body for error messages."""
    return response.text[:200]
