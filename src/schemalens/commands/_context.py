"""AppContext — shared Click context for all commands.

Created once by the root CLI group and flows to all subcommands via
``@click.pass_obj``. Builds API clients and sessions on demand, runs
async service calls to completion, and centralizes result emission
(stdout/stderr routing + exit codes).
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, ClassVar

import click

from schemalens.domain.errors import SchemaLensError, ValidationError
from schemalens.output.formatters import OutputSettings, format_result
from schemalens.services.result import ServiceResult

if TYPE_CHECKING:
    import httpx

    from schemalens.config.settings import SchemaLensSettings
    from schemalens.infrastructure.api import SchemaApiClient
    from schemalens.plugins.event_bus import EventBus
    from schemalens.services.session import ErDiagramSession


class AppContext:
    """Shared context flowing through Click's command hierarchy.

    Subcommands access it via ``@click.pass_obj``. Nothing touches the
    network until a command asks for a client or session, so ``--help``
    and ``--examples`` stay offline.
    """

    # Tests substitute an ``httpx.MockTransport`` here.
    transport: ClassVar[httpx.AsyncBaseTransport | None] = None

    def __init__(self, settings: SchemaLensSettings) -> None:
        self.settings = settings
        self._event_bus: EventBus | None = None

        from schemalens.config.logging import configure_logging

        configure_logging(verbose=settings.verbose, log_json=settings.log_json)

        if settings.verbose:
            from schemalens.services.telemetry import enable_telemetry

            enable_telemetry()

    @property
    def project_id(self) -> int:
        """The configured project id.

        Raises:
            ValidationError: Neither ``--project`` nor ``[project] id`` is set.
        """
        project_id = self.settings.project.id
        if project_id is None:
            raise ValidationError("No project configured: pass --project or set [project] id")
        return project_id

    @property
    def event_bus(self) -> EventBus | None:
        """Plugin event bus (loaded lazily), or None when plugins are disabled."""
        if not self.settings.plugins.enabled:
            return None
        if self._event_bus is None:
            from schemalens.plugins import EventBus, PluginManager
            from schemalens.plugins.builtins.audit import AUDIT_PLUGIN_NAME, AuditPlugin

            plugins = self.settings.plugins
            manager = PluginManager(blocked=plugins.disabled)
            manager.register_plugin(
                AuditPlugin(max_entries=plugins.audit_history), name=AUDIT_PLUGIN_NAME
            )
            manager.discover_and_load()
            self._event_bus = EventBus(manager)
        return self._event_bus

    def api_client(self) -> SchemaApiClient:
        from schemalens.infrastructure.api import SchemaApiClient

        api = self.settings.api
        return SchemaApiClient(
            api.base_url,
            timeout=api.timeout_seconds,
            token=self.settings.api_token(),
            transport=self.transport,
        )

    def open_session(self) -> ErDiagramSession:
        from schemalens.services.session import ErDiagramSession

        return ErDiagramSession.from_settings(
            self.settings,
            project_id=self.project_id,
            transport=self.transport,
            event_bus=self.event_bus,
        )

    def run(self, op: str, call: Callable[[], Awaitable[ServiceResult]]) -> ServiceResult:
        """Run an async service call on a fresh event loop.

        Domain errors raised before the service takes over (missing
        project, bad arguments) become a failed result for *op*.
        """
        try:
            return asyncio.run(_call(call))
        except SchemaLensError as exc:
            return ServiceResult.from_exception(op, exc)

    def emit(self, result: ServiceResult) -> None:
        """Format and output a ServiceResult with correct exit semantics.

        * Success (``result.ok``): writes to stdout, returns normally.
          Warnings are emitted to stderr so they don't pollute piped output.
        * Failure: writes to stderr, exits with code 1.
        """
        settings = OutputSettings(
            json_output=self.settings.json_output,
            quiet=self.settings.quiet,
            verbose=self.settings.verbose,
        )
        output = format_result(result, settings=settings)
        if result.ok:
            click.echo(output)
            # In JSON mode, warnings are already in the serialized payload.
            if not settings.json_output:
                for warning in result.warnings:
                    click.echo(f"WARNING: {warning}", err=True)
        else:
            click.echo(output, err=True)
            raise SystemExit(1)


async def _call(call: Callable[[], Awaitable[ServiceResult]]) -> ServiceResult:
    return await call()
