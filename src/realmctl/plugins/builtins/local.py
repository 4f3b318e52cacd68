"""Built-in ``pve`` realm: the local identity store.

Password verification and storage are delegated to a
:class:`CredentialStore`; hashing is the store's business.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

from realmctl.domain.schemas import PveProperties
from realmctl.domain.types import RealmType
from realmctl.errors import AuthFailure, UnsupportedOperation
from realmctl.plugins.base import RealmPlugin

if TYPE_CHECKING:
    from realmctl.domain.realm import DomainConfig

logger = logging.getLogger(__name__)


class CredentialStore(Protocol):
    """Mutable per-realm credential storage."""

    def verify(self, realm_id: str, username: str, password: str) -> bool: ...

    def set_password(self, realm_id: str, username: str, password: str) -> None: ...

    def delete(self, realm_id: str, username: str) -> None: ...


class LocalStoreRealm(RealmPlugin):
    """Realm backed by a local, writable credential store."""

    type = RealmType.PVE.value
    properties_model = PveProperties

    def __init__(self, store: CredentialStore | None = None) -> None:
        self._store = store

    def _require_store(self) -> CredentialStore:
        if self._store is None:
            msg = f"no credential store configured for auth type {self.type!r}"
            raise UnsupportedOperation(msg, realm_type=self.type)
        return self._store

    def authenticate(
        self, config: DomainConfig, realm_id: str, username: str, password: str
    ) -> None:
        if not self._require_store().verify(realm_id, username, password):
            logger.debug("Local authentication rejected in realm %s", realm_id)
            raise AuthFailure()

    def store_password(
        self, config: DomainConfig, realm_id: str, username: str, password: str
    ) -> None:
        self._require_store().set_password(realm_id, username, password)

    def delete_user(self, config: DomainConfig, realm_id: str, username: str) -> None:
        self._require_store().delete(realm_id, username)
