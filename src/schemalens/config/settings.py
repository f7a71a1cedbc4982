"""Unified settings — CLI flags, env vars, and TOML config in one object.

Priority chain (highest to lowest):
  1. Init kwargs  — CLI flags passed by Click (``--project`` included)
  2. Env vars     — ``SCHEMALENS_*`` prefix, ``__`` for nested sections,
                    e.g. ``SCHEMALENS_API__TOKEN``
  3. TOML file    — see :func:`~schemalens.config.discovery.find_config`
  4. Code defaults — baked into the section models

Unknown TOML sections are logged and skipped so a typo in one section
does not make the whole file unusable.
"""

from __future__ import annotations

import logging
import threading
import tomllib
from pathlib import Path
from typing import Any

import click
from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from schemalens.config.discovery import find_config
from schemalens.config.models import (
    ApiConfig,
    ConfirmationConfig,
    GraphConfig,
    LayoutConfig,
    PluginsConfig,
    ProjectConfig,
)

logger = logging.getLogger(__name__)

# Sections a config file may carry; the CLI-only flags are not among them.
TOML_SECTIONS = frozenset({"api", "project", "graph", "layout", "confirmation", "plugins"})


def read_toml_sections(path: Path) -> dict[str, Any]:
    """Parse *path* and keep only the known top-level sections.

    Raises:
        click.ClickException: The file is not valid TOML.
    """
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise click.ClickException(f"Invalid TOML in {path}: {exc}") from exc

    sections: dict[str, Any] = {}
    for key, value in data.items():
        if key in TOML_SECTIONS:
            sections[key] = value
        else:
            logger.warning("Ignoring unknown section [%s] in %s", key, path)
    return sections


class TomlSettingsSource(PydanticBaseSettingsSource):
    """Feed the sections of one TOML file into settings resolution."""

    def __init__(self, settings_cls: type[BaseSettings], toml_path: Path | None) -> None:
        super().__init__(settings_cls)
        self._data: dict[str, Any] = {}
        if toml_path and toml_path.is_file():
            self._data = read_toml_sections(toml_path)

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        return self._data.get(field_name), field_name, field_name in self._data

    def __call__(self) -> dict[str, Any]:
        return self._data


# TOML path handed to settings_customise_sources during construction.
_tls = threading.local()


class SchemaLensSettings(BaseSettings):
    """Resolved configuration for the CLI and for sessions.

    Attributes:
        config_path: The TOML file that was loaded, or None.
    """

    model_config = {
        "frozen": True,
        "env_prefix": "SCHEMALENS_",
        "env_nested_delimiter": "__",
    }

    config_path: Path | None = None

    # --- CLI flags ---
    json_output: bool = False
    quiet: bool = False
    verbose: bool = False
    log_json: bool = False

    # --- TOML sections ---
    api: ApiConfig = Field(default_factory=ApiConfig)
    project: ProjectConfig = Field(default_factory=ProjectConfig)
    graph: GraphConfig = Field(default_factory=GraphConfig)
    layout: LayoutConfig = Field(default_factory=LayoutConfig)
    confirmation: ConfirmationConfig = Field(default_factory=ConfirmationConfig)
    plugins: PluginsConfig = Field(default_factory=PluginsConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            TomlSettingsSource(settings_cls, getattr(_tls, "toml_path", None)),
        )

    @classmethod
    def from_cli(
        cls,
        *,
        config_path: str | None = None,
        project_id: int | None = None,
        base_url: str | None = None,
        cwd: Path | None = None,
        **cli_flags: Any,
    ) -> SchemaLensSettings:
        """Construct settings from a CLI invocation.

        Uses the explicit *config_path* or discovers one from *cwd*.
        *project_id* and *base_url* override ``[project] id`` and
        ``[api] base_url`` from every other source.

        Raises:
            click.ClickException: *config_path* does not exist, or the
                config file is not valid TOML.
        """
        if config_path:
            toml_path: Path | None = Path(config_path)
            if not toml_path.is_file():
                raise click.ClickException(f"Config file not found: {config_path}")
        else:
            toml_path = find_config(cwd)

        overrides = dict(cli_flags)
        if project_id is not None:
            overrides["project"] = {"id": project_id}
        if base_url is not None:
            overrides["api"] = {"base_url": base_url}

        _tls.toml_path = toml_path
        try:
            return cls(config_path=toml_path, **overrides)
        finally:
            _tls.toml_path = None

    def api_token(self) -> str | None:
        """The bearer token in plain text, for the HTTP client only."""
        token = self.api.token
        return token.get_secret_value() if token is not None else None
