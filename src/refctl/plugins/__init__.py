"""Extension layer — body lifecycle events and annotation notifications via pluggy.

The host calls ``body_created`` / ``body_changed`` / ``body_destroyed`` on the
hook relay; the annotation service subscribes to them. Presentation plugins
subscribe to ``markers_updated`` / ``markers_cleared`` / ``post_activate``.

INVARIANT: Plugin failures are warnings, never errors.
"""

from refctl.plugins.manager import PluginManager

__all__ = ["PluginManager"]
