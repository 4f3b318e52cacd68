"""Realm and DomainConfig — the in-memory realm registry.

A DomainConfig is rebuilt from the config file on every read and owned by
the caller that requested it. Mutations edit this object and write the
whole structure back under the config lock.

INVARIANT: at most one realm carries ``is_default``.
INVARIANT: ``pve`` and ``pam`` always exist with their pinned types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from realmctl.domain.ids import validate_realm_id
from realmctl.domain.options import TwoFactorDescriptor, parse_tfa_descriptor
from realmctl.domain.types import BUILTIN_REALMS
from realmctl.errors import BuiltinRealmError, RealmExists, RealmNotFound

if TYPE_CHECKING:
    from collections.abc import Iterator


class Realm(BaseModel):
    """One configured identity domain.

    Attributes:
        id: Realm ID (see :mod:`realmctl.domain.ids`).
        type: Registered realm type; selects schema and plugin.
        properties: Type-specific properties, keyed by on-disk name.
            Excludes ``comment`` and ``default``, which are lifted into
            their own attributes.
        is_default: Whether this is the default login realm.
        comment: Decoded free-text comment.
        plugin: Plugin name overriding ``type`` for dispatch. Not persisted.
    """

    id: str
    type: str
    properties: dict[str, Any] = Field(default_factory=dict)
    is_default: bool = False
    comment: str | None = None
    plugin: str | None = None

    @property
    def tfa(self) -> TwoFactorDescriptor | None:
        """Parsed two-factor descriptor, if the realm requires one."""
        raw = self.properties.get("tfa")
        if not raw:
            return None
        return parse_tfa_descriptor(raw)

    @property
    def builtin(self) -> bool:
        return self.id in BUILTIN_REALMS


@dataclass(frozen=True)
class SectionError:
    """A config section dropped during parse, and why."""

    section_id: str
    type: str
    message: str


@dataclass
class DomainConfig:
    """Ordered realm map plus the digest of the text it was parsed from."""

    realms: dict[str, Realm] = field(default_factory=dict)
    digest: str = ""
    errors: list[SectionError] = field(default_factory=list)

    def __contains__(self, realm_id: object) -> bool:
        return realm_id in self.realms

    def __iter__(self) -> Iterator[Realm]:
        return iter(self.realms.values())

    def __len__(self) -> int:
        return len(self.realms)

    def ids(self) -> list[str]:
        return list(self.realms)

    def get(self, realm_id: str) -> Realm:
        try:
            return self.realms[realm_id]
        except KeyError:
            raise RealmNotFound(realm_id) from None

    def default_realm(self) -> Realm | None:
        for realm in self.realms.values():
            if realm.is_default:
                return realm
        return None

    def set_default(self, realm_id: str | None) -> None:
        """Mark *realm_id* as the default, clearing every other flag.

        ``None`` clears the default entirely.
        """
        if realm_id is not None:
            self.get(realm_id)
        for realm in self.realms.values():
            realm.is_default = realm.id == realm_id

    def add(self, realm: Realm) -> None:
        validate_realm_id(realm.id)
        if realm.id in self.realms:
            raise RealmExists(realm.id)
        self.realms[realm.id] = realm
        if realm.is_default:
            self.set_default(realm.id)

    def remove(self, realm_id: str) -> Realm:
        realm = self.get(realm_id)
        if realm.builtin:
            msg = f"cannot remove built-in realm {realm_id!r}"
            raise BuiltinRealmError(msg)
        return self.realms.pop(realm_id)
