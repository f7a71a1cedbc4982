"""Shared service-layer helper functions."""

from __future__ import annotations

from datetime import UTC, datetime


def now_utc() -> datetime:
    """Current UTC time as an aware datetime."""
    return datetime.now(UTC)


def now_iso() -> str:
    """Current UTC time as standard ISO 8601."""
    return now_utc().isoformat()
