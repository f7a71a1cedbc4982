"""In-process event dispatch via pluggy.

Events fire synchronously on the event loop after the mutation that
produced them has settled. A failing hook implementation is reported
to the caller, which records it as a warning.

INVARIANT: Plugin failures are warnings, never errors.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from schemalens.plugins.manager import PluginManager

logger = logging.getLogger(__name__)


class EventBus:
    """Dispatch lifecycle events to registered plugins.

    Parameters:
        plugin_manager: Loaded PluginManager for hook dispatch.
    """

    def __init__(self, plugin_manager: PluginManager) -> None:
        self._pm = plugin_manager

    @property
    def plugin_manager(self) -> PluginManager:
        return self._pm

    def dispatch(self, hook_name: str, payload: dict[str, Any]) -> None:
        """Call *hook_name* on every plugin with *payload* as keyword arguments.

        Unknown hook names are ignored. Exceptions raised by a hook
        implementation propagate to the caller.
        """
        hook_fn = getattr(self._pm.hook, hook_name, None)
        if hook_fn is None:
            logger.debug("No hook named %s", hook_name)
            return
        hook_fn(**payload)
        logger.debug("Dispatched %s", hook_name)
