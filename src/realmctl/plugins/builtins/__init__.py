"""Realm plugins shipped with realmctl."""

from realmctl.plugins.builtins.directory import AdRealm, LdapRealm, OpenIdRealm
from realmctl.plugins.builtins.local import CredentialStore, LocalStoreRealm
from realmctl.plugins.builtins.pam import SystemAuthRealm

__all__ = [
    "AdRealm",
    "CredentialStore",
    "LdapRealm",
    "LocalStoreRealm",
    "OpenIdRealm",
    "SystemAuthRealm",
]
