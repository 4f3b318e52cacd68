"""Structured property strings: ``key=value[,key=value...]``.

Used for values that embed a small record inside a single config line,
e.g. the two-factor descriptor ``type=oath,digits=8``. The record shape is
a Pydantic model; keys are the field aliases (``enable-new``) or names.
"""

from __future__ import annotations

from typing import TypeVar

from pydantic import BaseModel, ValidationError

from realmctl.errors import SchemaViolation

M = TypeVar("M", bound=BaseModel)


def describe_validation_error(exc: ValidationError) -> str:
    """Flatten a Pydantic error into a one-line message."""
    parts: list[str] = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"])
        msg = err["msg"].removeprefix("Value error, ")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts)


def field_keys(model_cls: type[BaseModel]) -> list[str]:
    """Return the on-disk keys of *model_cls* in declaration order."""
    return [info.alias or name for name, info in model_cls.model_fields.items()]


def parse_property_string(model_cls: type[M], text: str) -> M:
    """Parse *text* into an instance of *model_cls*.

    Raises:
        SchemaViolation: On malformed parts, unknown or duplicate keys,
            or any value the model rejects.
    """
    values: dict[str, str] = {}
    for part in text.split(","):
        if not part.strip():
            continue
        key, sep, value = part.partition("=")
        key = key.strip()
        if not sep or not key:
            raise SchemaViolation(f"missing key in property string part {part!r}")
        if key in values:
            raise SchemaViolation(f"duplicate key {key!r} in property string")
        values[key] = value

    unknown = sorted(set(values) - set(field_keys(model_cls)))
    if unknown:
        raise SchemaViolation(f"unknown key(s) in property string: {', '.join(unknown)}")

    try:
        return model_cls.model_validate(values)
    except ValidationError as exc:
        raise SchemaViolation(describe_validation_error(exc)) from exc


def render_value(value: object) -> str:
    """Render a scalar the way config files store it (booleans as 1/0)."""
    if isinstance(value, bool):
        return "1" if value else "0"
    return str(value)


def print_property_string(instance: BaseModel) -> str:
    """Render the explicitly-set fields of *instance* in declaration order."""
    parts: list[str] = []
    for name, info in type(instance).model_fields.items():
        if name not in instance.model_fields_set:
            continue
        value = getattr(instance, name)
        if value is None:
            continue
        parts.append(f"{info.alias or name}={render_value(value)}")
    return ",".join(parts)
