"""ServiceResult and ServiceError — what every RealmService method returns.

Expected failures (bad input, missing realm, lock contention, rejected
credentials) come back as ``ok=False`` results carrying a stable error
code; only programming errors propagate as exceptions.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from realmctl.errors import (
    AuthFailure,
    BuiltinRealmError,
    ConfigChanged,
    FormatError,
    LockTimeout,
    OperationNotImplemented,
    RealmError,
    RealmExists,
    RealmNotFound,
    SchemaViolation,
    UnknownRealmType,
    UnsupportedOperation,
)

# Most specific first: SchemaViolation is a FormatError.
ERROR_CODES: tuple[tuple[type[RealmError], str], ...] = (
    (LockTimeout, "LOCK_TIMEOUT"),
    (ConfigChanged, "CONFIG_CHANGED"),
    (RealmNotFound, "NOT_FOUND"),
    (RealmExists, "ALREADY_EXISTS"),
    (BuiltinRealmError, "BUILTIN_REALM"),
    (UnknownRealmType, "UNKNOWN_TYPE"),
    (SchemaViolation, "SCHEMA_VIOLATION"),
    (FormatError, "INVALID_FORMAT"),
    (OperationNotImplemented, "NOT_IMPLEMENTED"),
    (UnsupportedOperation, "UNSUPPORTED"),
    (AuthFailure, "AUTH_FAILED"),
)
FALLBACK_CODE = "ERROR"


def error_code_for(exc: RealmError) -> str:
    return next((code for cls, code in ERROR_CODES if isinstance(exc, cls)), FALLBACK_CODE)


class ServiceError(BaseModel):
    """Error payload of a failed ServiceResult.

    ``detail`` carries ``realm_type`` for unsupported operations and
    ``notes`` for context attached while the config lock was held.
    """

    model_config = {"frozen": True}

    code: str
    message: str
    detail: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_exception(cls, exc: RealmError) -> ServiceError:
        detail: dict[str, Any] = {}
        if isinstance(exc, UnsupportedOperation):
            detail["realm_type"] = exc.realm_type
        notes = getattr(exc, "__notes__", None)
        if notes:
            detail["notes"] = list(notes)
        return cls(code=error_code_for(exc), message=str(exc), detail=detail)


class ServiceResult(BaseModel):
    """Outcome of one service operation.

    Attributes:
        ok: Whether the operation succeeded.
        op: Operation name (e.g. ``"create_realm"``).
        data: Operation-specific payload on success.
        warnings: Non-fatal issues, such as config sections skipped on load.
        error: Set when ``ok`` is False.
    """

    model_config = {"frozen": True}

    ok: bool
    op: str
    data: dict[str, Any] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)
    error: ServiceError | None = None

    @classmethod
    def failure(cls, op: str, exc: RealmError) -> ServiceResult:
        return cls(ok=False, op=op, error=ServiceError.from_exception(exc))
