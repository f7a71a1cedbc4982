"""Relationship classification enums and view control vocabularies."""

from __future__ import annotations

from enum import StrEnum


class RelationshipType(StrEnum):
    """Origin of a foreign-key relationship."""

    PHYSICAL = "PHYSICAL"
    LOGICAL = "LOGICAL"


class LayoutDirection(StrEnum):
    """Axis along which neighborhood layers are laid out."""

    LR = "LR"
    TB = "TB"


class FkAction(StrEnum):
    """User actions on a logical foreign key."""

    CONFIRM = "confirm"
    REJECT = "reject"


class LineStyle(StrEnum):
    """Stroke pattern for a rendered edge."""

    SOLID = "solid"
    DASHED = "dashed"
    DOTTED = "dotted"


VALID_HOPS: tuple[int, ...] = (1, 2, 3)
