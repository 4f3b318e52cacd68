"""Realm classification enums."""

from __future__ import annotations

from enum import StrEnum


class RealmType(StrEnum):
    """Realm types shipped with realmctl. Plugins may register more."""

    PVE = "pve"
    PAM = "pam"
    LDAP = "ldap"
    AD = "ad"
    OPENID = "openid"


class TfaType(StrEnum):
    """Second-factor kinds a realm can require."""

    YUBICO = "yubico"
    OATH = "oath"


class SyncScope(StrEnum):
    """What a directory sync touches."""

    USERS = "users"
    GROUPS = "groups"
    BOTH = "both"


class LdapMode(StrEnum):
    LDAP = "ldap"
    LDAPS = "ldaps"
    STARTTLS = "ldap+starttls"


# Realm IDs that always exist, mapped to their pinned type.
BUILTIN_REALMS: dict[str, RealmType] = {
    "pve": RealmType.PVE,
    "pam": RealmType.PAM,
}

BUILTIN_COMMENTS: dict[str, str] = {
    "pve": "Local realmctl authentication server",
    "pam": "Linux PAM standard authentication",
}

# Plugin name the ``pam`` built-in is bound to.
SYSTEM_PAM_PLUGIN = "pam"
