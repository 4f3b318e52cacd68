"""RealmPlugin — the contract every realm type implements.

Default behaviour per operation:

- ``authenticate``: mandatory; the base raises
  :class:`~realmctl.errors.OperationNotImplemented`.
- ``store_password``: raises :class:`~realmctl.errors.UnsupportedOperation`
  naming the realm type. Only types backed by a mutable credential store
  override it.
- ``delete_user``: no-op. Only types that keep per-user local state
  override it.

Callers branch on these error kinds (e.g. to offer a password-change UI)
instead of on the realm type.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar

from realmctl.domain.schemas import RealmProperties
from realmctl.errors import OperationNotImplemented, UnsupportedOperation

if TYPE_CHECKING:
    from realmctl.domain.realm import DomainConfig


class RealmPlugin:
    """Base class for realm-type implementations.

    Subclasses set :attr:`type` and :attr:`properties_model`; the plugin
    manager registers the model as the schema for that type.
    """

    type: ClassVar[str] = ""
    properties_model: ClassVar[type[RealmProperties]] = RealmProperties

    def authenticate(
        self, config: DomainConfig, realm_id: str, username: str, password: str
    ) -> None:
        """Verify *password* for *username*; raise AuthFailure if rejected."""
        msg = f"realm type {self.type!r} does not implement authenticate"
        raise OperationNotImplemented(msg)

    def store_password(
        self, config: DomainConfig, realm_id: str, username: str, password: str
    ) -> None:
        msg = f"can't set password on auth type {self.type!r}"
        raise UnsupportedOperation(msg, realm_type=self.type)

    def delete_user(self, config: DomainConfig, realm_id: str, username: str) -> None:
        """Forget per-user state kept by this realm type. No-op by default."""
        return None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} type={self.type!r}>"
