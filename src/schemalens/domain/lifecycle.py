"""Logical foreign key status lifecycle.

Only LOGICAL relationships carry a status. PHYSICAL relationships are
declared in the schema and have no lifecycle.

Confirm is allowed from any non-confirmed state (so an undo after a
reject can re-confirm). Reject is only offered for suggestions.
"""

from __future__ import annotations

from enum import StrEnum


class FkStatus(StrEnum):
    """Confirmation status for logical foreign keys."""

    SUGGESTED = "SUGGESTED"
    CONFIRMED = "CONFIRMED"
    REJECTED = "REJECTED"


FK_TRANSITIONS: dict[str, list[str]] = {
    "SUGGESTED": ["CONFIRMED", "REJECTED"],
    "REJECTED": ["CONFIRMED"],
    "CONFIRMED": [],
}


def is_valid_transition(
    current: str,
    target: str,
    transitions: dict[str, list[str]] = FK_TRANSITIONS,
) -> bool:
    """Check if transitioning from *current* to *target* is allowed."""
    allowed = transitions.get(current, [])
    return target in allowed


def can_confirm(status: str | None) -> bool:
    """Whether a confirm action would change *status*."""
    return status != FkStatus.CONFIRMED


def can_reject(status: str | None) -> bool:
    """Reject is offered for suggestions only."""
    return status == FkStatus.SUGGESTED
