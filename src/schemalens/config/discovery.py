"""Config file discovery.

Lookup order:

1. ``SCHEMALENS_CONFIG`` (or ``--config``), used as-is.
2. ``schemalens.toml`` or ``.schemalens.toml``, walking up from the
   working directory the way git finds ``.git/``.
3. The per-user file ``$XDG_CONFIG_HOME/schemalens/config.toml``
   (``~/.config`` when unset), the usual home for an API token that
   should not live in a project checkout.
"""

from __future__ import annotations

import os
from pathlib import Path

CONFIG_FILENAME = "schemalens.toml"
HIDDEN_CONFIG_FILENAME = ".schemalens.toml"
CONFIG_ENV_VAR = "SCHEMALENS_CONFIG"
USER_CONFIG_NAME = "config.toml"


def user_config_path() -> Path:
    """Location of the per-user config file (which may not exist)."""
    base = os.environ.get("XDG_CONFIG_HOME")
    root = Path(base) if base else Path.home() / ".config"
    return root / "schemalens" / USER_CONFIG_NAME


def find_project_config(start: Path | None = None) -> Path | None:
    """Walk up from *start* (default: cwd) to the nearest project config.

    In one directory the visible name wins over the hidden one.
    """
    current = (start or Path.cwd()).resolve()
    while True:
        for name in (CONFIG_FILENAME, HIDDEN_CONFIG_FILENAME):
            candidate = current / name
            if candidate.is_file():
                return candidate
        parent = current.parent
        if parent == current:
            return None
        current = parent


def find_config(start: Path | None = None) -> Path | None:
    """Locate the config file to load, or None when there is none.

    An explicit ``SCHEMALENS_CONFIG`` that points at a missing file
    yields None rather than falling back to discovery.
    """
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        p = Path(env_path)
        return p if p.is_file() else None

    found = find_project_config(start)
    if found is not None:
        return found
    user = user_config_path()
    return user if user.is_file() else None
