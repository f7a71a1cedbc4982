"""Root CLI group: global flags, settings resolution, command registration."""

from __future__ import annotations

import click

from schemalens import __version__
from schemalens.commands import register_commands
from schemalens.commands._context import AppContext
from schemalens.config.settings import SchemaLensSettings


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="schemalens")
@click.option("--json", "json_output", is_flag=True, help="Structured JSON output.")
@click.option("-q", "--quiet", is_flag=True, help="Minimal output.")
@click.option("-v", "--verbose", is_flag=True, help="Detailed output with timing spans.")
@click.option("--log-json", is_flag=True, help="Structured JSON log output to stderr.")
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Config file to load instead of discovering schemalens.toml.",
)
@click.option(
    "-p",
    "--project",
    "project_id",
    type=click.IntRange(min=1),
    default=None,
    help="Project to browse (overrides [project] id).",
)
@click.option(
    "--api-url",
    "base_url",
    default=None,
    metavar="URL",
    help="Relationship API root (overrides [api] base_url).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    json_output: bool,
    quiet: bool,
    verbose: bool,
    log_json: bool,
    config_path: str | None,
    project_id: int | None,
    base_url: str | None,
) -> None:
    """schemalens — explore and review relationships between database objects.

    Browse the tables and views around one object, then confirm or
    reject the relationships that were inferred rather than declared.
    """
    settings = SchemaLensSettings.from_cli(
        config_path=config_path,
        project_id=project_id,
        base_url=base_url,
        json_output=json_output,
        quiet=quiet,
        verbose=verbose,
        log_json=log_json,
    )
    ctx.obj = AppContext(settings)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


register_commands(cli)
