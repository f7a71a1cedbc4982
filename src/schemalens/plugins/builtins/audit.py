"""Built-in audit plugin: a review trail of logical FK decisions.

Each settled FK change (confirm, reject, undo, manual create, delete)
is emitted as a structured ``schemalens.audit`` log event (JSON lines
under ``--log-json``) and kept in a bounded in-memory list a UI host
can show as history.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass

import structlog

from schemalens.config.logging import AUDIT_LOGGER
from schemalens.plugins.hookspecs import hookimpl
from schemalens.services._helpers import now_iso

AUDIT_PLUGIN_NAME = "audit"


@dataclass(frozen=True)
class AuditEntry:
    action: str
    project_id: int
    edge_id: str
    logical_fk_id: int
    at: str


class AuditPlugin:
    """Record FK review decisions.

    Args:
        max_entries: How many recent decisions to keep in memory.
    """

    def __init__(self, max_entries: int = 200) -> None:
        self._entries: deque[AuditEntry] = deque(maxlen=max_entries)
        self._log = structlog.get_logger(AUDIT_LOGGER)

    @property
    def entries(self) -> list[AuditEntry]:
        """Recent decisions, oldest first."""
        return list(self._entries)

    @hookimpl
    def post_fk_confirm(
        self,
        project_id: int,
        edge_id: str,
        logical_fk_id: int,
        confirmed_at: str,
    ) -> None:
        self._record("confirm", project_id, edge_id, logical_fk_id, confirmed_at)

    @hookimpl
    def post_fk_reject(self, project_id: int, edge_id: str, logical_fk_id: int) -> None:
        self._record("reject", project_id, edge_id, logical_fk_id, now_iso())

    @hookimpl
    def post_fk_undo(self, project_id: int, edge_id: str, logical_fk_id: int) -> None:
        self._record("undo_reject", project_id, edge_id, logical_fk_id, now_iso())

    @hookimpl
    def post_fk_create(
        self,
        project_id: int,
        edge_id: str,
        logical_fk_id: int,
        source_object_id: int,
        target_object_id: int,
    ) -> None:
        self._record("create", project_id, edge_id, logical_fk_id, now_iso())

    @hookimpl
    def post_fk_delete(self, project_id: int, edge_id: str, logical_fk_id: int) -> None:
        self._record("delete", project_id, edge_id, logical_fk_id, now_iso())

    def _record(
        self, action: str, project_id: int, edge_id: str, logical_fk_id: int, at: str
    ) -> None:
        entry = AuditEntry(
            action=action,
            project_id=project_id,
            edge_id=edge_id,
            logical_fk_id=logical_fk_id,
            at=at,
        )
        self._entries.append(entry)
        self._log.info(
            f"fk.{action}",
            project_id=project_id,
            edge_id=edge_id,
            logical_fk_id=logical_fk_id,
            at=at,
        )
