"""Subcommand modules for schemalens.

Provides register_commands() which uses deferred imports to keep
``schemalens --help`` fast.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Register all command groups on the root CLI group."""
    from schemalens.commands.fk import fk
    from schemalens.commands.graph import graph

    cli.add_command(graph)
    cli.add_command(fk)
