"""Error taxonomy for the ER graph subsystem.

Infrastructure and fetch code raise these; services catch them and
convert to ``ServiceError`` payloads using the stable ``code``.
None of them is fatal to the host: every failure path is retryable.
"""

from __future__ import annotations

from typing import Any


class SchemaLensError(Exception):
    """Base class for all schemalens errors."""

    code = "ERROR"

    def __init__(self, message: str, *, detail: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail or {}


class ValidationError(SchemaLensError):
    """Invalid focus id, hop count, or layout direction. No network call is issued."""

    code = "VALIDATION_ERROR"


class NotFoundError(SchemaLensError):
    """The focus object or logical foreign key does not exist."""

    code = "NOT_FOUND"


class NetworkError(SchemaLensError):
    """Transport failure or server error. Never retried automatically."""

    code = "NETWORK_ERROR"


class MutationConflict(SchemaLensError):
    """The edge was already transitioned by another actor."""

    code = "MUTATION_CONFLICT"
