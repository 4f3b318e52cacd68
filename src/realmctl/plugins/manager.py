"""Realm plugin discovery and dispatch.

Built-in plugins are registered at construction. External plugins come from
``realmctl.plugins`` entry points via pluggy and contribute
:class:`~realmctl.plugins.base.RealmPlugin` instances through the
``register_realm_plugins`` hook.

INVARIANT: Plugin failures during discovery are warnings, never errors.
"""

from __future__ import annotations

import inspect
import logging
from typing import TYPE_CHECKING

import pluggy

from realmctl.domain.schemas import SchemaRegistry, get_registry
from realmctl.errors import UnknownRealmType
from realmctl.plugins.base import RealmPlugin
from realmctl.plugins.builtins import (
    AdRealm,
    CredentialStore,
    LdapRealm,
    LocalStoreRealm,
    OpenIdRealm,
    SystemAuthRealm,
)
from realmctl.plugins.hookspecs import PROJECT_NAME, RealmctlHookSpec

if TYPE_CHECKING:
    from realmctl.domain.realm import Realm
    from realmctl.plugins.builtins.pam import PamAuthenticator

ENTRY_POINT_GROUP = "realmctl.plugins"

logger = logging.getLogger(__name__)


class RealmPluginManager:
    """Maps realm types to plugin instances."""

    def __init__(
        self,
        registry: SchemaRegistry | None = None,
        *,
        credential_store: CredentialStore | None = None,
        pam_authenticator: PamAuthenticator | None = None,
    ) -> None:
        self.registry = registry if registry is not None else get_registry()
        self._pm = pluggy.PluginManager(PROJECT_NAME)
        self._pm.add_hookspecs(RealmctlHookSpec)
        self._plugins: dict[str, RealmPlugin] = {}
        self._loaded = False

        for plugin in (
            LocalStoreRealm(credential_store),
            SystemAuthRealm(pam_authenticator),
            LdapRealm(),
            AdRealm(),
            OpenIdRealm(),
        ):
            self.register(plugin)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, plugin: RealmPlugin, *, name: str | None = None) -> None:
        """Make *plugin* available under *name* (defaults to its type).

        Raises:
            TypeError: If *plugin* is not a RealmPlugin.
            ValueError: If it has no type, or its schema conflicts with the
                one already registered for that type.
        """
        if not isinstance(plugin, RealmPlugin):
            msg = f"{plugin!r} is not a RealmPlugin"
            raise TypeError(msg)
        if not plugin.type:
            msg = f"{type(plugin).__name__} does not declare a realm type"
            raise ValueError(msg)
        self.registry.register_type(plugin.type, plugin.properties_model)
        key = name or plugin.type
        if key in self._plugins:
            logger.debug("Replacing realm plugin %s: %r -> %r", key, self._plugins[key], plugin)
        self._plugins[key] = plugin

    def add_hook_provider(self, provider: object, name: str | None = None) -> None:
        """Register a pluggy hook provider directly (bypassing entry points)."""
        self._pm.register(provider, name=name or provider.__class__.__name__)

    def discover_and_load(self) -> list[str]:
        """Load entry-point plugins, collect their realm plugins, seal the registry.

        Returns the names of all available realm plugins.
        """
        self._pm.load_setuptools_entrypoints(ENTRY_POINT_GROUP)
        self._normalize_plugin_instances()

        for provider in self._pm.get_plugins():
            provider_name = self._pm.get_name(provider) or provider.__class__.__name__
            self._collect(provider, provider_name)

        self.registry.seal()
        self._loaded = True
        return self.names()

    def _collect(self, provider: object, provider_name: str) -> None:
        hook = getattr(provider, "register_realm_plugins", None)
        if hook is None:
            return
        try:
            plugins = hook()
        except Exception:
            logger.warning(
                "Failed to collect realm plugins from %s", provider_name, exc_info=True
            )
            return
        if plugins is None:
            return
        if not isinstance(plugins, list | tuple):
            logger.warning("Plugin %s returned a non-list realm plugin registration", provider_name)
            return

        for plugin in plugins:
            try:
                self.register(plugin)
            except (TypeError, ValueError, RuntimeError):
                logger.warning(
                    "Skipping realm plugin %r from %s", plugin, provider_name, exc_info=True
                )

    def _normalize_plugin_instances(self) -> None:
        """Replace entry-point provider classes with instances."""
        for provider in list(self._pm.get_plugins()):
            if not inspect.isclass(provider):
                continue
            provider_name = self._pm.get_name(provider) or provider.__name__
            self._pm.unregister(provider)
            try:
                instance = provider()
            except Exception:
                logger.warning(
                    "Failed to instantiate entry-point plugin %s", provider_name, exc_info=True
                )
                continue
            self._pm.register(instance, name=provider_name)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    def names(self) -> list[str]:
        return sorted(self._plugins)

    def get(self, name: str) -> RealmPlugin:
        try:
            return self._plugins[name]
        except KeyError:
            raise UnknownRealmType(name) from None

    def plugin_for(self, realm: Realm) -> RealmPlugin:
        """Select the plugin for *realm*: its bound plugin, else its type."""
        return self.get(realm.plugin or realm.type)
