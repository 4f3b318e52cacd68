"""Pluggy hook specifications for realm-type extensions."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pluggy

if TYPE_CHECKING:
    from realmctl.plugins.base import RealmPlugin

PROJECT_NAME = "realmctl"

hookspec = pluggy.HookspecMarker(PROJECT_NAME)
hookimpl = pluggy.HookimplMarker(PROJECT_NAME)


class RealmctlHookSpec:
    """Hook specifications for the realmctl plugin system."""

    @hookspec
    def register_realm_plugins(self) -> list[RealmPlugin] | None:
        """Return realm plugin instances, keyed in the manager by their ``type``.

        A plugin whose ``type`` matches a built-in replaces it, which is how
        directory types gain a real ``authenticate``. The replacement must
        reuse the built-in's ``properties_model`` class; one declaring a
        different schema is skipped with a warning.
        """
