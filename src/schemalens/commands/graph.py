"""Command group: neighborhood browsing."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from schemalens.commands._base import SchemaLensGroup
from schemalens.domain.types import VALID_HOPS, LayoutDirection

if TYPE_CHECKING:
    from schemalens.commands._context import AppContext
    from schemalens.services.result import ServiceResult

_GRAPH_EXAMPLES = """\
schemalens graph show 42
schemalens graph show 42 --hops 2 --direction TB
schemalens graph objects --search order
schemalens --json graph show 42"""


@click.group(cls=SchemaLensGroup, examples=_GRAPH_EXAMPLES)
@click.pass_obj
def graph(app: AppContext) -> None:
    """Browse relationship neighborhoods."""


@graph.command(
    examples="""\
schemalens graph show 42
schemalens graph show 42 --hops 3
schemalens --project 7 --json graph show 42 --direction TB"""
)
@click.argument("focus_id", type=int)
@click.option(
    "--hops",
    type=click.IntRange(min(VALID_HOPS), max(VALID_HOPS)),
    default=None,
    help="Hop depth around the focus object (default from config).",
)
@click.option(
    "--direction",
    type=click.Choice([d.value for d in LayoutDirection], case_sensitive=False),
    default=None,
    help="Layout direction (default from config).",
)
@click.pass_obj
def show(app: AppContext, focus_id: int, hops: int | None, direction: str | None) -> None:
    """Fetch, lay out, and print the neighborhood of FOCUS_ID."""

    async def call() -> ServiceResult:
        async with app.open_session() as session:
            return await session.show(focus_id, hops=hops, direction=direction)

    app.emit(app.run("show_graph", call))


@graph.command(
    examples="""\
schemalens graph objects
schemalens graph objects --search cust
schemalens -q graph objects --search order"""
)
@click.option("--search", "text", default="", help="Case-insensitive name filter.")
@click.pass_obj
def objects(app: AppContext, text: str) -> None:
    """List objects that can be used as a focus."""

    async def call() -> ServiceResult:
        async with app.open_session() as session:
            return await session.find_objects(text)

    app.emit(app.run("list_objects", call))
