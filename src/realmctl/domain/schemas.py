"""Per-realm-type property schemas and the schema registry.

Each realm type owns a Pydantic model describing the properties its config
section may carry. Every model rejects unknown keys. Defaults declared here
are never written back into a realm's stored property map; they only tell
callers what an absent property means.

The :class:`SchemaRegistry` also holds the standard options and string
formats shared with the API/CLI layers. One registry is built per process
(:func:`get_registry`) and passed by reference to the components that need
it; after :meth:`SchemaRegistry.seal` it is read-only.
"""

from __future__ import annotations

import threading
from collections.abc import Mapping
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, Field, StringConstraints, ValidationError

from realmctl.domain.options import (
    BUILTIN_FORMATS,
    BUILTIN_STANDARD_OPTIONS,
    FormatValidator,
    StandardOption,
    check_sync_options,
    check_tfa,
)
from realmctl.domain.property_string import describe_validation_error
from realmctl.domain.types import LdapMode, RealmType
from realmctl.errors import SchemaViolation, UnknownRealmType


TfaValue = Annotated[str, StringConstraints(max_length=128), AfterValidator(check_tfa)]
SyncOptionsValue = Annotated[str, AfterValidator(check_sync_options)]
Port = Annotated[int, Field(ge=1, le=65535)]


# ---------------------------------------------------------------------------
# Property models
# ---------------------------------------------------------------------------


class RealmProperties(BaseModel):
    """Properties every realm type accepts."""

    model_config = {"frozen": True, "extra": "forbid", "populate_by_name": True}

    comment: str | None = None
    default: bool = False
    tfa: TfaValue | None = None


class PveProperties(RealmProperties):
    """Local identity store."""


class PamProperties(RealmProperties):
    """System PAM."""


class LdapProperties(RealmProperties):
    server: str
    server2: str | None = None
    port: Port | None = None
    secure: bool = False
    base_dn: str | None = None
    user_attr: str = "uid"
    bind_dn: str | None = None
    filter: str | None = None
    mode: LdapMode = LdapMode.LDAP
    verify: bool = False
    sync_defaults_options: SyncOptionsValue | None = Field(
        default=None, alias="sync-defaults-options"
    )


class AdProperties(RealmProperties):
    server: str
    server2: str | None = None
    port: Port | None = None
    secure: bool = False
    domain: str
    verify: bool = False
    sync_defaults_options: SyncOptionsValue | None = Field(
        default=None, alias="sync-defaults-options"
    )


class OpenIdProperties(RealmProperties):
    issuer_url: str = Field(alias="issuer-url")
    client_id: str = Field(alias="client-id")
    client_key: str | None = Field(default=None, alias="client-key")
    autocreate: bool = False
    username_claim: str | None = Field(default=None, alias="username-claim")


BUILTIN_SCHEMAS: dict[str, type[RealmProperties]] = {
    RealmType.PVE: PveProperties,
    RealmType.PAM: PamProperties,
    RealmType.LDAP: LdapProperties,
    RealmType.AD: AdProperties,
    RealmType.OPENID: OpenIdProperties,
}


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class SchemaRegistry:
    """Realm-type schemas, standard options and string formats."""

    def __init__(self) -> None:
        self._schemas: dict[str, type[RealmProperties]] = {}
        self._options: dict[str, StandardOption] = {}
        self._formats: dict[str, FormatValidator] = {}
        self._sealed = False

    @classmethod
    def with_builtins(cls) -> SchemaRegistry:
        registry = cls()
        for name, validator in BUILTIN_FORMATS.items():
            registry.register_format(name, validator)
        for name, option in BUILTIN_STANDARD_OPTIONS.items():
            registry.register_standard_option(name, option)
        for realm_type, schema in BUILTIN_SCHEMAS.items():
            registry.register_type(str(realm_type), schema)
        return registry

    # --- registration (startup only) ---

    def seal(self) -> None:
        """Freeze the registry; later registrations raise RuntimeError."""
        self._sealed = True

    @property
    def sealed(self) -> bool:
        return self._sealed

    def _ensure_open(self, what: str) -> None:
        if self._sealed:
            msg = f"Cannot register {what}: schema registry is sealed"
            raise RuntimeError(msg)

    def register_type(self, realm_type: str, schema: type[RealmProperties]) -> None:
        """Register the property schema for *realm_type*.

        Re-registering the same schema is a no-op; a different one is an error.
        """
        existing = self._schemas.get(realm_type)
        if existing is schema:
            return
        self._ensure_open(f"realm type {realm_type!r}")
        if not issubclass(schema, RealmProperties):
            msg = f"Schema for {realm_type!r} must extend RealmProperties"
            raise TypeError(msg)
        if existing is not None:
            msg = f"Realm type {realm_type!r} is already registered"
            raise ValueError(msg)
        self._schemas[realm_type] = schema

    def register_format(self, name: str, validator: FormatValidator) -> None:
        self._ensure_open(f"format {name!r}")
        self._formats[name] = validator

    def register_standard_option(self, name: str, option: StandardOption) -> None:
        self._ensure_open(f"standard option {name!r}")
        if option.format is not None and option.format not in self._formats:
            msg = f"Standard option {name!r} references unknown format {option.format!r}"
            raise ValueError(msg)
        self._options[name] = option

    # --- lookups ---

    def schema_for(self, realm_type: str) -> type[RealmProperties]:
        try:
            return self._schemas[realm_type]
        except KeyError:
            raise UnknownRealmType(realm_type) from None

    def realm_types(self) -> list[str]:
        return sorted(self._schemas)

    def get_standard_option(self, name: str) -> StandardOption:
        try:
            return self._options[name]
        except KeyError:
            msg = f"No standard option registered as {name!r}"
            raise KeyError(msg) from None

    def check_option(self, name: str, value: str) -> str:
        """Validate *value* against the standard option *name*.

        Raises:
            FormatError: From the option's format validator, or
                SchemaViolation if ``max_length`` is exceeded.
        """
        option = self.get_standard_option(name)
        if option.max_length is not None and len(value) > option.max_length:
            msg = f"value for {name!r} is too long ({len(value)} > {option.max_length})"
            raise SchemaViolation(msg)
        if option.format is not None:
            self._formats[option.format](value)
        return value

    def validate_properties(
        self, realm_type: str, fields: Mapping[str, Any]
    ) -> dict[str, Any]:
        """Validate and coerce a raw property map for *realm_type*.

        Returns only the keys present in *fields*, coerced to their declared
        types and keyed by their on-disk names.

        Raises:
            UnknownRealmType: If *realm_type* has no schema.
            SchemaViolation: If the model rejects the map.
        """
        schema = self.schema_for(realm_type)
        try:
            model = schema.model_validate(dict(fields))
        except ValidationError as exc:
            raise SchemaViolation(describe_validation_error(exc)) from exc
        return model.model_dump(mode="json", by_alias=True, exclude_unset=True)


_registry: SchemaRegistry | None = None
_registry_lock = threading.Lock()


def get_registry() -> SchemaRegistry:
    """Return the process-wide registry, building it on first use."""
    global _registry
    if _registry is None:
        with _registry_lock:
            if _registry is None:
                _registry = SchemaRegistry.with_builtins()
    return _registry
