"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults baked here, schemalens.toml only contains
overrides. A working setup needs only ``[api] base_url`` and ``[project] id``.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, SecretStr

from schemalens.domain.types import VALID_HOPS, LayoutDirection

# --- schemalens.toml sections ---


class ApiConfig(BaseModel):
    """[api] section."""

    model_config = {"frozen": True}

    base_url: str = "http://localhost:5000/api"
    timeout_seconds: float = Field(default=30.0, gt=0)
    token: SecretStr | None = None


class ProjectConfig(BaseModel):
    """[project] section."""

    model_config = {"frozen": True}

    id: int | None = Field(default=None, gt=0)


class GraphConfig(BaseModel):
    """[graph] section."""

    model_config = {"frozen": True}

    default_hops: int = Field(default=1, ge=min(VALID_HOPS), le=max(VALID_HOPS))
    default_direction: LayoutDirection = LayoutDirection.LR
    show_rejected: bool = False
    search_limit: int = Field(default=20, gt=0)


class LayoutConfig(BaseModel):
    """[layout] section."""

    model_config = {"frozen": True}

    node_width: float = 260.0
    node_base_height: float = 44.0
    column_height: float = 28.0
    node_sep: float = 80.0
    rank_sep: float = 100.0
    margin: float = 40.0


class ConfirmationConfig(BaseModel):
    """[confirmation] section."""

    model_config = {"frozen": True}

    undo_window_seconds: float = Field(default=8.0, gt=0)


class PluginsConfig(BaseModel):
    """[plugins] section."""

    model_config = {"frozen": True}

    enabled: bool = True
    disabled: list[str] = Field(default_factory=list)
    audit_history: int = Field(default=200, gt=0)
