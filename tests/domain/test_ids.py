"""Tests for realm ID and user ID formats."""

import pytest

from realmctl.domain.ids import (
    UserIdentity,
    try_realm_id,
    try_user_id,
    validate_realm_id,
    validate_user_id,
)
from realmctl.errors import (
    FormatError,
    InvalidRealmFormat,
    InvalidUsernameFormat,
    UsernameTooLong,
    UsernameTooShort,
)


class TestValidateRealmId:
    @pytest.mark.parametrize(
        "realm_id",
        ["pve", "pam", "ab", "office-ldap", "A.b_c-d", "corp.example.com", "x" * 32],
    )
    def test_valid(self, realm_id: str) -> None:
        assert validate_realm_id(realm_id) == realm_id

    @pytest.mark.parametrize(
        "realm_id",
        [
            "",
            "a",  # needs at least two characters
            "1abc",  # must start with a letter
            "-abc",
            "ab cd",
            "ab/cd",
            "ab:cd",
            "ab@cd",
            "ab\n",
            "x" * 33,  # too long
        ],
    )
    def test_invalid(self, realm_id: str) -> None:
        with pytest.raises(InvalidRealmFormat):
            validate_realm_id(realm_id)

    def test_error_is_a_value_error(self) -> None:
        with pytest.raises(ValueError):
            validate_realm_id("1abc")

    def test_non_raising_variant(self) -> None:
        assert try_realm_id("office") == "office"
        assert try_realm_id("1abc") is None
        assert try_realm_id(None) is None


class TestValidateUserId:
    def test_splits_name_and_realm(self) -> None:
        assert validate_user_id("root@pam") == UserIdentity("root@pam", "root", "pam")

    def test_named_fields(self) -> None:
        user = validate_user_id("john.doe@office-ldap")
        assert user.full == "john.doe@office-ldap"
        assert user.name == "john.doe"
        assert user.realm == "office-ldap"

    def test_last_at_sign_separates_realm(self) -> None:
        user = validate_user_id("a@b@pve")
        assert user.name == "a@b"
        assert user.realm == "pve"

    @pytest.mark.parametrize("value", [None, "", "a", "ab"])
    def test_too_short(self, value: str | None) -> None:
        with pytest.raises(UsernameTooShort):
            validate_user_id(value)

    def test_exactly_64_is_accepted(self) -> None:
        userid = "a" * 60 + "@pve"
        assert len(userid) == 64
        assert validate_user_id(userid).name == "a" * 60

    def test_too_long(self) -> None:
        with pytest.raises(UsernameTooLong):
            validate_user_id("a" * 61 + "@pve")

    @pytest.mark.parametrize(
        "value",
        [
            "rootpam",  # no realm
            "root:x@pam",  # list separator
            "ro/ot@pam",  # API path delimiter
            "ro ot@pam",  # whitespace
            "root@1pam",  # invalid realm
            "root@p",  # realm too short
            "@pam",
        ],
    )
    def test_invalid_format(self, value: str) -> None:
        with pytest.raises(InvalidUsernameFormat):
            validate_user_id(value)

    def test_all_errors_are_format_errors(self) -> None:
        for value in ("ab", "a" * 65, "bad value"):
            with pytest.raises(FormatError):
                validate_user_id(value)

    def test_non_raising_variant(self) -> None:
        assert try_user_id("root@pam") == ("root@pam", "root", "pam")
        assert try_user_id("x") is None
        assert try_user_id("root:x@pam") is None
