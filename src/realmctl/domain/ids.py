"""Realm ID and user ID formats.

Realm IDs: a letter followed by letters, digits, ``.``, ``-`` or ``_``,
at most 32 characters.

User IDs: ``name@realm``, 3-64 characters overall. ``name`` may not contain
whitespace, ``:`` (multi-value user lists are colon separated on disk) or
``/`` (the management API path delimiter).
"""

from __future__ import annotations

import re
from typing import NamedTuple

from realmctl.errors import (
    InvalidRealmFormat,
    InvalidUsernameFormat,
    UsernameTooLong,
    UsernameTooShort,
)

REALM_ID_MAX_LENGTH = 32
USERID_MIN_LENGTH = 3
USERID_MAX_LENGTH = 64

REALM_PATTERN = r"[A-Za-z][A-Za-z0-9.\-_]+"
USER_PATTERN = r"[^\s:/]+"

_REALM_RE = re.compile(REALM_PATTERN)
_USERID_RE = re.compile(rf"({USER_PATTERN})@({REALM_PATTERN})")


class UserIdentity(NamedTuple):
    """A parsed ``name@realm`` user ID."""

    full: str
    name: str
    realm: str


def validate_realm_id(value: str) -> str:
    """Return *value* unchanged if it is a valid realm ID.

    Raises:
        InvalidRealmFormat: If the grammar or the length limit is violated.
    """
    if try_realm_id(value) is None:
        raise InvalidRealmFormat(value)
    return value


def try_realm_id(value: str | None) -> str | None:
    """Non-raising variant of :func:`validate_realm_id`; returns None if invalid."""
    if not value or len(value) > REALM_ID_MAX_LENGTH:
        return None
    if _REALM_RE.fullmatch(value) is None:
        return None
    return value


def validate_user_id(value: str | None) -> UserIdentity:
    """Split a ``name@realm`` user ID into ``(full, name, realm)``.

    ``None`` and the empty string are treated as zero-length input.
    """
    value = value or ""
    length = len(value)
    if length < USERID_MIN_LENGTH:
        raise UsernameTooShort(value)
    if length > USERID_MAX_LENGTH:
        raise UsernameTooLong(value)

    match = _USERID_RE.fullmatch(value)
    if match is None:
        raise InvalidUsernameFormat(value)
    return UserIdentity(full=value, name=match.group(1), realm=match.group(2))


def try_user_id(value: str | None) -> UserIdentity | None:
    """Non-raising variant of :func:`validate_user_id`."""
    try:
        return validate_user_id(value)
    except (UsernameTooShort, UsernameTooLong, InvalidUsernameFormat):
        return None
