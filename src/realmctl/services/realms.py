"""RealmService — realm CRUD and authentication dispatch.

Every mutation is a full read-modify-write of the config file inside the
config lock. Authentication looks the realm up in a lock-free read and
hands the credentials to whichever plugin serves that realm's type.

Authentication failures never say whether the user name, the realm or the
password was wrong.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from structlog.contextvars import bound_contextvars

from realmctl.domain.ids import validate_realm_id, validate_user_id
from realmctl.domain.realm import DomainConfig, Realm
from realmctl.domain.types import BUILTIN_REALMS
from realmctl.errors import (
    AuthFailure,
    BuiltinRealmError,
    FormatError,
    OperationNotImplemented,
    RealmError,
    RealmExists,
    RealmNotFound,
    SchemaViolation,
    UnknownRealmType,
    UnsupportedOperation,
)
from realmctl.services.result import ServiceResult

if TYPE_CHECKING:
    from realmctl.infrastructure.store import DomainConfigStore
    from realmctl.plugins.manager import RealmPluginManager

logger = logging.getLogger(__name__)

# Keys that are Realm attributes rather than free properties.
_RESERVED_KEYS = frozenset({"comment", "default", "type"})


def realm_to_dict(realm: Realm) -> dict[str, Any]:
    return {
        "id": realm.id,
        "type": realm.type,
        "comment": realm.comment,
        "default": realm.is_default,
        "properties": dict(realm.properties),
    }


class RealmService:
    """Realm registry operations over a :class:`DomainConfigStore`."""

    def __init__(self, store: DomainConfigStore, plugins: RealmPluginManager) -> None:
        self._store = store
        self._plugins = plugins

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_realms(self) -> ServiceResult:
        op = "list_realms"
        config = self._store.read()
        warnings = [f"skipped realm {e.section_id!r}: {e.message}" for e in config.errors]
        return ServiceResult(
            ok=True,
            op=op,
            data={
                "realms": [realm_to_dict(realm) for realm in config],
                "digest": config.digest,
            },
            warnings=warnings,
        )

    def get_realm(self, realm_id: str) -> ServiceResult:
        op = "get_realm"
        try:
            validate_realm_id(realm_id)
            config = self._store.read()
            realm = config.get(realm_id)
        except RealmError as exc:
            return ServiceResult.failure(op, exc)
        return ServiceResult(
            ok=True, op=op, data={**realm_to_dict(realm), "digest": config.digest}
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _mutate(
        self,
        op: str,
        realm_id: str,
        fn: Callable[[DomainConfig], Realm | None],
        *,
        digest: str | None = None,
    ) -> ServiceResult:
        """Run *fn* on a freshly read config under the lock, then write it."""

        def locked_update() -> Realm | None:
            config = self._store.read()
            result = fn(config)
            self._store.write(config, digest=digest)
            return result

        with bound_contextvars(op=op, realm=realm_id):
            try:
                validate_realm_id(realm_id)
                realm = self._store.with_locked_config(
                    locked_update, errmsg=f"{op} {realm_id!r} failed"
                )
            except RealmError as exc:
                return ServiceResult.failure(op, exc)
            logger.info("%s %s", op, realm_id)

        data = realm_to_dict(realm) if realm is not None else {"id": realm_id}
        return ServiceResult(ok=True, op=op, data=data)

    def _normalize_properties(
        self, realm_type: str, properties: Mapping[str, Any]
    ) -> dict[str, Any]:
        reserved = sorted(_RESERVED_KEYS & set(properties))
        if reserved:
            msg = f"property {reserved[0]!r} cannot be set through properties"
            raise SchemaViolation(msg)
        return self._store.registry.validate_properties(realm_type, properties)

    def create_realm(
        self,
        realm_id: str,
        realm_type: str,
        *,
        comment: str | None = None,
        default: bool = False,
        properties: Mapping[str, Any] | None = None,
    ) -> ServiceResult:
        """Add a new realm of *realm_type*."""

        def apply(config: DomainConfig) -> Realm:
            if realm_id in config:
                raise RealmExists(realm_id)
            if realm_type in BUILTIN_REALMS.values():
                msg = f"cannot create additional realms of built-in type {realm_type!r}"
                raise BuiltinRealmError(msg)
            realm = Realm(
                id=realm_id,
                type=realm_type,
                properties=self._normalize_properties(realm_type, properties or {}),
                comment=comment or None,
                is_default=default,
            )
            config.add(realm)
            return realm

        return self._mutate("create_realm", realm_id, apply)

    def update_realm(
        self,
        realm_id: str,
        *,
        comment: str | None = None,
        default: bool | None = None,
        properties: Mapping[str, Any] | None = None,
        delete: list[str] | None = None,
        digest: str | None = None,
    ) -> ServiceResult:
        """Change properties of an existing realm. The type never changes.

        Args:
            comment: New comment; ``None`` leaves it unchanged.
            default: True makes this the default realm; False clears its flag.
            properties: Properties to set.
            delete: Property names (or ``comment``/``default``) to remove.
            digest: Refuse the update if the config changed since this digest.
        """

        def apply(config: DomainConfig) -> Realm:
            realm = config.get(realm_id)
            updated = dict(realm.properties)
            for key in delete or []:
                if key == "comment":
                    realm.comment = None
                elif key == "default":
                    realm.is_default = False
                else:
                    updated.pop(key, None)
            if properties:
                updated.update(properties)
            realm.properties = self._normalize_properties(realm.type, updated)
            if comment is not None:
                realm.comment = comment or None
            if default is True:
                config.set_default(realm_id)
            elif default is False:
                realm.is_default = False
            return realm

        return self._mutate("update_realm", realm_id, apply, digest=digest)

    def delete_realm(self, realm_id: str, *, digest: str | None = None) -> ServiceResult:
        def apply(config: DomainConfig) -> None:
            config.remove(realm_id)

        return self._mutate("delete_realm", realm_id, apply, digest=digest)

    def set_default(self, realm_id: str) -> ServiceResult:
        def apply(config: DomainConfig) -> Realm:
            config.set_default(realm_id)
            return config.get(realm_id)

        return self._mutate("set_default", realm_id, apply)

    # ------------------------------------------------------------------
    # Plugin dispatch
    # ------------------------------------------------------------------

    def authenticate(self, userid: str, password: str) -> ServiceResult:
        """Verify *password* for ``name@realm`` through the realm's plugin."""
        op = "authenticate"
        try:
            user = validate_user_id(userid)
            config = self._store.read()
            realm = config.get(user.realm)
            plugin = self._plugins.plugin_for(realm)
            with bound_contextvars(op=op, realm=realm.id):
                plugin.authenticate(config, realm.id, user.name, password)
        except (OperationNotImplemented, UnsupportedOperation) as exc:
            return ServiceResult.failure(op, exc)
        except (FormatError, RealmNotFound, UnknownRealmType, AuthFailure) as exc:
            logger.debug("Authentication rejected: %s", exc)
            return ServiceResult.failure(op, AuthFailure())

        tfa = realm.tfa
        return ServiceResult(
            ok=True,
            op=op,
            data={
                "userid": user.full,
                "realm": realm.id,
                "tfa": str(tfa.type) if tfa is not None else None,
            },
        )

    def change_password(self, userid: str, password: str) -> ServiceResult:
        op = "change_password"
        try:
            user = validate_user_id(userid)
            config = self._store.read()
            realm = config.get(user.realm)
            self._plugins.plugin_for(realm).store_password(
                config, realm.id, user.name, password
            )
        except RealmError as exc:
            return ServiceResult.failure(op, exc)
        return ServiceResult(ok=True, op=op, data={"userid": user.full})

    def delete_user(self, userid: str) -> ServiceResult:
        op = "delete_user"
        try:
            user = validate_user_id(userid)
            config = self._store.read()
            realm = config.get(user.realm)
            self._plugins.plugin_for(realm).delete_user(config, realm.id, user.name)
        except RealmError as exc:
            return ServiceResult.failure(op, exc)
        return ServiceResult(ok=True, op=op, data={"userid": user.full})
