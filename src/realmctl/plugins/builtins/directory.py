"""Placeholder plugins for directory and SSO realm types.

These carry the ``ldap``, ``ad`` and ``openid`` schemas so such realms can
be configured and stored. Authentication comes from an external plugin
registered under the same type; until one is installed, ``authenticate``
raises OperationNotImplemented.
"""

from __future__ import annotations

from realmctl.domain.schemas import AdProperties, LdapProperties, OpenIdProperties
from realmctl.domain.types import RealmType
from realmctl.plugins.base import RealmPlugin


class LdapRealm(RealmPlugin):
    type = RealmType.LDAP.value
    properties_model = LdapProperties


class AdRealm(RealmPlugin):
    type = RealmType.AD.value
    properties_model = AdProperties


class OpenIdRealm(RealmPlugin):
    type = RealmType.OPENID.value
    properties_model = OpenIdProperties
