"""Pluggy hook specifications for schemalens lifecycle events.

One event per settled FK mutation (confirm, reject, undo, manual
create, delete) plus one per loaded neighborhood. All are notifications; return values are ignored.
"""

from __future__ import annotations

import pluggy

hookspec = pluggy.HookspecMarker("schemalens")
hookimpl = pluggy.HookimplMarker("schemalens")


class SchemaLensHookSpec:
    """Hook specifications for the schemalens plugin system."""

    @hookspec
    def post_fk_confirm(
        self,
        project_id: int,
        edge_id: str,
        logical_fk_id: int,
        confirmed_at: str,
    ) -> None:
        """Called after a logical FK is confirmed on the server."""

    @hookspec
    def post_fk_reject(
        self,
        project_id: int,
        edge_id: str,
        logical_fk_id: int,
    ) -> None:
        """Called after a logical FK is rejected on the server."""

    @hookspec
    def post_fk_undo(
        self,
        project_id: int,
        edge_id: str,
        logical_fk_id: int,
    ) -> None:
        """Called after a rejection is undone (the FK is re-confirmed)."""

    @hookspec
    def post_fk_create(
        self,
        project_id: int,
        edge_id: str,
        logical_fk_id: int,
        source_object_id: int,
        target_object_id: int,
    ) -> None:
        """Called after a logical FK is created by hand (it starts CONFIRMED)."""

    @hookspec
    def post_fk_delete(
        self,
        project_id: int,
        edge_id: str,
        logical_fk_id: int,
    ) -> None:
        """Called after a logical FK is deleted."""

    @hookspec
    def post_neighborhood_load(
        self,
        project_id: int,
        focus_object_id: int,
        hops: int,
        node_count: int,
        edge_count: int,
    ) -> None:
        """Called after a neighborhood is fetched from the server."""
