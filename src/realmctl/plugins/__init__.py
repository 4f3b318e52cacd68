"""Extension layer — realm-type plugins via pluggy.

Discovery: entry_points (pip-installed) via pluggy setuptools entrypoints.
INVARIANT: Plugin failures are warnings, never errors.
"""

from realmctl.plugins.base import RealmPlugin
from realmctl.plugins.manager import RealmPluginManager

__all__ = ["RealmPlugin", "RealmPluginManager"]
