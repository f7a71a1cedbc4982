"""Extension layer — plugin system via pluggy.

Discovery: the ``schemalens.plugins`` entry-point group, plus the
built-in audit plugin registered by the CLI. ``[plugins] disabled``
blocks either kind by name.
INVARIANT: Plugin failures are warnings, never errors.
"""

from schemalens.plugins.event_bus import EventBus
from schemalens.plugins.manager import PluginManager

__all__ = ["EventBus", "PluginManager"]
