"""Plugin discovery and loading.

Plugins come from the ``schemalens.plugins`` entry-point group or are
registered directly (built-ins). Names listed in ``[plugins] disabled``
are blocked before discovery, so neither path can load them.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Iterable

import pluggy

from schemalens.plugins.hookspecs import SchemaLensHookSpec

PROJECT_NAME = "schemalens"
ENTRY_POINT_GROUP = "schemalens.plugins"

logger = logging.getLogger(__name__)


class PluginManager:
    """Manages plugin discovery, loading, and hook dispatch."""

    def __init__(self, *, blocked: Iterable[str] = ()) -> None:
        self._pm = pluggy.PluginManager(PROJECT_NAME)
        self._pm.add_hookspecs(SchemaLensHookSpec)
        for name in blocked:
            self._pm.set_blocked(name)
        self._loaded = False

    def discover_and_load(self) -> list[str]:
        """Load every non-blocked plugin from the entry-point group.

        Returns the names of all registered plugins.
        """
        count = self._pm.load_setuptools_entrypoints(ENTRY_POINT_GROUP)
        self._normalize_plugin_instances()
        self._loaded = True
        logger.debug("Loaded %d entry-point plugin(s)", count)
        return self.list_plugin_names()

    def register_plugin(self, plugin: object, name: str | None = None) -> bool:
        """Register a plugin instance directly.

        Returns False when *name* is blocked.
        """
        resolved_name = name or plugin.__class__.__name__
        if self._pm.is_blocked(resolved_name):
            logger.debug("Plugin %s is disabled", resolved_name)
            return False
        self._pm.register(plugin, name=resolved_name)
        logger.debug("Registered plugin: %s", resolved_name)
        return True

    def unregister(self, plugin: object) -> None:
        self._pm.unregister(plugin)

    def is_blocked(self, name: str) -> bool:
        return self._pm.is_blocked(name)

    @property
    def is_loaded(self) -> bool:
        """Whether discover_and_load() has been called."""
        return self._loaded

    @property
    def hook(self) -> pluggy.HookRelay:
        return self._pm.hook

    def get_plugins(self) -> list[object]:
        return list(self._pm.get_plugins())

    def get_plugin(self, name: str) -> object | None:
        return self._pm.get_plugin(name)

    def list_plugin_names(self) -> list[str]:
        return [self._pm.get_name(p) or p.__class__.__name__ for p in self._pm.get_plugins()]

    def _normalize_plugin_instances(self) -> None:
        """Swap entry points that registered a class for an instance of it.

        Hook calls against a class object would leave ``self`` unbound.
        """
        for plugin in list(self._pm.get_plugins()):
            if not inspect.isclass(plugin) or not self._has_hook_impls(plugin):
                continue

            plugin_name = self._pm.get_name(plugin) or plugin.__name__
            self._pm.unregister(plugin)
            try:
                instance = plugin()
            except Exception:
                logger.warning("Could not instantiate plugin %s", plugin_name, exc_info=True)
                continue
            self._pm.register(instance, name=plugin_name)

    @staticmethod
    def _has_hook_impls(cls: type) -> bool:
        """Whether any public attribute of *cls* carries a ``schemalens_impl`` marker."""
        return any(
            callable(getattr(cls, name, None))
            and getattr(getattr(cls, name), f"{PROJECT_NAME}_impl", None)
            for name in dir(cls)
            if not name.startswith("_")
        )
