"""Command group: logical foreign key review."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from schemalens.commands._base import SchemaLensGroup
from schemalens.services.confirmation import LogicalFkService

if TYPE_CHECKING:
    from schemalens.commands._context import AppContext
    from schemalens.services.result import ServiceResult

_FK_EXAMPLES = """\
schemalens fk confirm 17
schemalens fk confirm 17 --notes "matches naming convention"
schemalens fk reject 18 --notes "coincidental name match"
schemalens fk add 42 43 -s 2 -t 10
schemalens fk delete 19"""


@click.group(cls=SchemaLensGroup, examples=_FK_EXAMPLES)
@click.pass_obj
def fk(app: AppContext) -> None:
    """Review, add and delete inferred (logical) foreign keys."""


def _submit(app: AppContext, op: str, fk_id: int, notes: str | None) -> ServiceResult:
    async def call() -> ServiceResult:
        async with app.api_client() as client:
            service = LogicalFkService(client, app.project_id, event_bus=app.event_bus)
            if op == "confirm_fk":
                return await service.confirm(fk_id, notes)
            return await service.reject(fk_id, notes)

    return app.run(op, call)


@fk.command(
    examples="""\
schemalens fk confirm 17
schemalens --json fk confirm 17 --notes "verified with DBA\""""
)
@click.argument("fk_id", type=int)
@click.option("--notes", default=None, help="Reviewer notes stored with the decision.")
@click.pass_obj
def confirm(app: AppContext, fk_id: int, notes: str | None) -> None:
    """Confirm logical foreign key FK_ID."""
    app.emit(_submit(app, "confirm_fk", fk_id, notes))


@fk.command(
    examples="""\
schemalens fk reject 18
schemalens fk reject 18 --notes "not a real reference\""""
)
@click.argument("fk_id", type=int)
@click.option("--notes", default=None, help="Reviewer notes stored with the decision.")
@click.pass_obj
def reject(app: AppContext, fk_id: int, notes: str | None) -> None:
    """Reject logical foreign key FK_ID."""
    app.emit(_submit(app, "reject_fk", fk_id, notes))


@fk.command(
    "add",
    examples="""\
schemalens fk add 42 43 -s 2 -t 10
schemalens fk add 42 43 -s 2 -s 3 -t 10 -t 11 --notes "composite key\"""",
)
@click.argument("source_id", type=int)
@click.argument("target_id", type=int)
@click.option(
    "--source-column",
    "-s",
    "source_columns",
    type=int,
    multiple=True,
    required=True,
    help="Referencing column id. Repeat for composite keys.",
)
@click.option(
    "--target-column",
    "-t",
    "target_columns",
    type=int,
    multiple=True,
    required=True,
    help="Referenced column id, paired with --source-column by position.",
)
@click.option("--notes", default=None, help="Notes stored with the relationship.")
@click.pass_obj
def add(
    app: AppContext,
    source_id: int,
    target_id: int,
    source_columns: tuple[int, ...],
    target_columns: tuple[int, ...],
    notes: str | None,
) -> None:
    """Add a confirmed logical foreign key from SOURCE_ID to TARGET_ID."""

    async def call() -> ServiceResult:
        async with app.api_client() as client:
            service = LogicalFkService(client, app.project_id, event_bus=app.event_bus)
            return await service.create(
                source_id, source_columns, target_id, target_columns, notes
            )

    app.emit(app.run("create_fk", call))


@fk.command(
    "delete",
    examples="""\
schemalens fk delete 19
schemalens --json fk delete 19""",
)
@click.argument("fk_id", type=int)
@click.pass_obj
def delete(app: AppContext, fk_id: int) -> None:
    """Delete logical foreign key FK_ID."""

    async def call() -> ServiceResult:
        async with app.api_client() as client:
            service = LogicalFkService(client, app.project_id, event_bus=app.event_bus)
            return await service.delete(fk_id)

    app.emit(app.run("delete_fk", call))
