"""Exception taxonomy for realm configuration and realm plugins.

Format and schema errors subclass :class:`ValueError` so that pydantic
validators can raise them directly. Plugin-contract errors are signals
callers branch on, not bugs.
"""

from __future__ import annotations


class RealmError(Exception):
    """Base class for every realmctl error."""


# --- Format / schema ---


class FormatError(RealmError, ValueError):
    """A string value does not match its declared format."""


class InvalidRealmFormat(FormatError):
    def __init__(self, value: str) -> None:
        super().__init__(f"value {value!r} does not look like a valid realm")
        self.value = value


class UsernameTooShort(FormatError):
    def __init__(self, value: str) -> None:
        super().__init__(f"user name {value!r} is too short")
        self.value = value


class UsernameTooLong(FormatError):
    def __init__(self, value: str) -> None:
        super().__init__(f"user name {value!r} is too long ({len(value)} > 64)")
        self.value = value


class InvalidUsernameFormat(FormatError):
    def __init__(self, value: str) -> None:
        super().__init__(f"value {value!r} does not look like a valid user name")
        self.value = value


class SchemaViolation(FormatError):
    """A property is missing, unknown, of the wrong type, or out of bounds."""


# --- Registry lookups ---


class UnknownRealmType(RealmError, LookupError):
    def __init__(self, realm_type: str) -> None:
        super().__init__(f"unknown realm type {realm_type!r}")
        self.realm_type = realm_type


class RealmNotFound(RealmError, LookupError):
    def __init__(self, realm_id: str) -> None:
        super().__init__(f"realm {realm_id!r} does not exist")
        self.realm_id = realm_id


class RealmExists(RealmError):
    def __init__(self, realm_id: str) -> None:
        super().__init__(f"realm {realm_id!r} already exists")
        self.realm_id = realm_id


class BuiltinRealmError(RealmError):
    """Built-in realms cannot be removed or retyped."""


# --- Storage / locking ---


class ConfigFileError(RealmError):
    """A settings or config file could not be read."""


class ConfigNotLocked(RealmError):
    """A write was attempted without holding the config lock."""


class ConfigChanged(RealmError):
    """The on-disk config no longer matches the digest the caller read."""


class LockError(RealmError):
    """Lock acquisition failed."""


class LockTimeout(LockError):
    def __init__(self, name: str, timeout: float) -> None:
        super().__init__(f"got lock timeout on {name!r} after {timeout:g}s")
        self.name = name
        self.timeout = timeout


# --- Plugin contract ---


class OperationNotImplemented(RealmError, NotImplementedError):
    """A realm plugin left a mandatory operation unimplemented."""


class UnsupportedOperation(RealmError):
    """The operation is not available for this realm type."""

    def __init__(self, message: str, *, realm_type: str) -> None:
        super().__init__(message)
        self.realm_type = realm_type


class AuthFailure(RealmError):
    """Credentials were rejected.

    The message never reveals whether the user name or the password was wrong.
    """

    def __init__(self, message: str = "authentication failure") -> None:
        super().__init__(message)
