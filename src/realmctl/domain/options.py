"""Structured sub-values and the standard options built on them.

Two record formats live inside single config values:

- Two-factor descriptor: ``type=<yubico|oath>[,id=..][,key=..][,url=..]
  [,digits=6..8][,step>=10]``
- Sync options: ``scope=<users|groups|both>[,full=<bool>]
  [,enable-new=<bool>][,purge=<bool>]``

Standard options are named, reusable string formats that the API and CLI
layers validate against independently. Their semantics must not drift.
"""

from __future__ import annotations

from collections.abc import Callable

from pydantic import BaseModel, Field

from realmctl.domain.ids import validate_realm_id, validate_user_id
from realmctl.domain.property_string import parse_property_string
from realmctl.domain.types import SyncScope, TfaType

# ---------------------------------------------------------------------------
# Record models
# ---------------------------------------------------------------------------


class TwoFactorDescriptor(BaseModel):
    """Second-factor settings attached to a realm or user."""

    model_config = {"frozen": True, "extra": "forbid"}

    type: TfaType = Field(description="The type of 2nd factor authentication.")
    id: str | None = Field(default=None, description="Yubico API ID.")
    key: str | None = Field(default=None, description="Yubico API Key.")
    url: str | None = Field(default=None, description="Yubico API URL.")
    digits: int = Field(default=6, ge=6, le=8, description="TOTP digits.")
    step: int = Field(default=30, ge=10, description="TOTP time period in seconds.")


class SyncOptions(BaseModel):
    """Directory-sync behaviour for LDAP/AD realms."""

    model_config = {"frozen": True, "extra": "forbid", "populate_by_name": True}

    scope: SyncScope = Field(description="Select what to sync.")
    full: bool = Field(
        default=False,
        description="Use the directory as source of truth, deleting entries not returned.",
    )
    enable_new: bool = Field(
        default=True,
        alias="enable-new",
        description="Enable newly synced users immediately.",
    )
    purge: bool = Field(
        default=False,
        description="Remove ACLs for users or groups removed during a sync.",
    )


def parse_tfa_descriptor(text: str) -> TwoFactorDescriptor:
    """Parse a two-factor descriptor property string."""
    return parse_property_string(TwoFactorDescriptor, text)


def parse_sync_options(text: str) -> SyncOptions:
    """Parse a sync-options property string."""
    return parse_property_string(SyncOptions, text)


# ---------------------------------------------------------------------------
# Standard options and formats
# ---------------------------------------------------------------------------


class StandardOption(BaseModel):
    """A named string option other subsystems validate against."""

    model_config = {"frozen": True}

    description: str
    type: str = "string"
    format: str | None = None
    max_length: int | None = None
    optional: bool = False


FormatValidator = Callable[[str], object]


def check_tfa(value: str) -> str:
    parse_tfa_descriptor(value)
    return value


def check_sync_options(value: str) -> str:
    parse_sync_options(value)
    return value


def _verify_userid(value: str) -> str:
    return validate_user_id(value).full


BUILTIN_FORMATS: dict[str, FormatValidator] = {
    "realm": validate_realm_id,
    "userid": _verify_userid,
    "tfa": check_tfa,
    "realm-sync-options": check_sync_options,
}

BUILTIN_STANDARD_OPTIONS: dict[str, StandardOption] = {
    "realm": StandardOption(
        description="Authentication domain ID",
        format="realm",
        max_length=32,
    ),
    "userid": StandardOption(
        description="User ID",
        format="userid",
        max_length=64,
    ),
    "tfa": StandardOption(
        description="Use Two-factor authentication.",
        format="tfa",
        max_length=128,
        optional=True,
    ),
    "realm-sync-options": StandardOption(
        description="Default options for directory synchronisation.",
        format="realm-sync-options",
        optional=True,
    ),
}
