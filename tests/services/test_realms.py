"""Tests for RealmService CRUD and authentication dispatch."""

from __future__ import annotations

import threading

import pytest

from realmctl.domain.realm import DomainConfig
from realmctl.infrastructure.store import DomainConfigStore
from realmctl.plugins.base import RealmPlugin
from realmctl.plugins.manager import RealmPluginManager
from realmctl.services.realms import RealmService
from tests.conftest import FakePam, MemoryCredentialStore

OFFICE = {"server": "10.0.0.5", "port": "389"}


def _hold_lock(
    store: DomainConfigStore, acquired: threading.Event, release: threading.Event
) -> None:
    with store.locked():
        acquired.set()
        release.wait(timeout=10)


class TestListAndGet:
    def test_list_fresh(self, service: RealmService) -> None:
        result = service.list_realms()
        assert result.ok
        assert [r["id"] for r in result.data["realms"]] == ["pve", "pam"]
        assert result.data["digest"]
        assert result.warnings == []

    def test_list_reports_skipped_sections(
        self, service: RealmService, store: DomainConfigStore
    ) -> None:
        store.path.write_text("ldap: 1bad\n\tserver x\n", encoding="utf-8")
        result = service.list_realms()
        assert result.ok
        assert len(result.warnings) == 1
        assert "1bad" in result.warnings[0]

    def test_get(self, service: RealmService) -> None:
        service.create_realm("office", "ldap", properties=OFFICE, comment="HQ")
        result = service.get_realm("office")
        assert result.ok
        assert result.data["type"] == "ldap"
        assert result.data["comment"] == "HQ"
        assert result.data["properties"] == {"server": "10.0.0.5", "port": 389}

    def test_get_missing(self, service: RealmService) -> None:
        result = service.get_realm("nope")
        assert not result.ok
        assert result.error is not None
        assert result.error.code == "NOT_FOUND"

    def test_get_invalid_id(self, service: RealmService) -> None:
        result = service.get_realm("1bad")
        assert result.error is not None
        assert result.error.code == "INVALID_FORMAT"


class TestCreate:
    def test_create(self, service: RealmService, store: DomainConfigStore) -> None:
        result = service.create_realm("office", "ldap", properties=OFFICE)
        assert result.ok
        assert result.op == "create_realm"
        assert result.data["id"] == "office"
        text = store.path.read_text(encoding="utf-8")
        assert "ldap: office\n\tserver 10.0.0.5\n\tport 389\n" in text

    def test_create_default(self, service: RealmService) -> None:
        service.create_realm("office", "ldap", properties=OFFICE, default=True)
        corp = {"server": "dc1", "domain": "corp"}
        service.create_realm("corp", "ad", properties=corp, default=True)
        realms = {r["id"]: r for r in service.list_realms().data["realms"]}
        assert realms["corp"]["default"] is True
        assert realms["office"]["default"] is False

    def test_create_duplicate(self, service: RealmService) -> None:
        service.create_realm("office", "ldap", properties=OFFICE)
        result = service.create_realm("office", "ldap", properties=OFFICE)
        assert result.error is not None
        assert result.error.code == "ALREADY_EXISTS"
        assert result.error.detail["notes"] == ["create_realm 'office' failed"]

    @pytest.mark.parametrize("realm_id", ["pve", "pam"])
    def test_create_builtin_id(self, service: RealmService, realm_id: str) -> None:
        result = service.create_realm(realm_id, "ldap", properties=OFFICE)
        assert result.error is not None
        assert result.error.code == "ALREADY_EXISTS"

    def test_create_second_pam_realm(self, service: RealmService) -> None:
        result = service.create_realm("pam2", "pam")
        assert result.error is not None
        assert result.error.code == "BUILTIN_REALM"

    def test_create_unknown_type(self, service: RealmService) -> None:
        result = service.create_realm("krb", "kerberos")
        assert result.error is not None
        assert result.error.code == "UNKNOWN_TYPE"

    def test_create_schema_violation(
        self, service: RealmService, store: DomainConfigStore
    ) -> None:
        result = service.create_realm("office", "ldap", properties={"port": "389"})
        assert result.error is not None
        assert result.error.code == "SCHEMA_VIOLATION"
        assert "server" in result.error.message
        assert not store.path.exists()

    def test_create_rejects_reserved_property(self, service: RealmService) -> None:
        result = service.create_realm("office", "ldap", properties={**OFFICE, "default": "1"})
        assert result.error is not None
        assert result.error.code == "SCHEMA_VIOLATION"

    def test_create_invalid_id(self, service: RealmService) -> None:
        result = service.create_realm("9office", "ldap", properties=OFFICE)
        assert result.error is not None
        assert result.error.code == "INVALID_FORMAT"

    def test_comment_is_encoded_on_disk(
        self, service: RealmService, store: DomainConfigStore
    ) -> None:
        service.create_realm("office", "ldap", properties=OFFICE, comment="HQ: floor 3")
        assert "\tcomment HQ%3A floor 3\n" in store.path.read_text(encoding="utf-8")
        assert service.get_realm("office").data["comment"] == "HQ: floor 3"

    def test_lock_timeout(self, service: RealmService, store: DomainConfigStore) -> None:
        store.lock_timeout = 0.2
        acquired = threading.Event()
        release = threading.Event()
        holder = threading.Thread(target=_hold_lock, args=(store, acquired, release))
        holder.start()
        try:
            assert acquired.wait(timeout=5)
            result = service.create_realm("office", "ldap", properties=OFFICE)
        finally:
            release.set()
            holder.join(timeout=5)
        assert result.error is not None
        assert result.error.code == "LOCK_TIMEOUT"
        assert "got lock timeout" in result.error.message
        assert service.get_realm("office").error is not None


class TestUpdate:
    def test_update_properties(self, service: RealmService) -> None:
        service.create_realm("office", "ldap", properties=OFFICE)
        result = service.update_realm("office", properties={"secure": "1"}, delete=["port"])
        assert result.ok
        assert result.data["properties"] == {"server": "10.0.0.5", "secure": True}

    def test_update_comment_and_default(self, service: RealmService) -> None:
        service.create_realm("office", "ldap", properties=OFFICE)
        service.update_realm("office", comment="Head office", default=True)
        realm = service.get_realm("office").data
        assert realm["comment"] == "Head office"
        assert realm["default"] is True

        service.update_realm("office", delete=["comment", "default"])
        realm = service.get_realm("office").data
        assert realm["comment"] is None
        assert realm["default"] is False

    def test_update_default_moves_flag(self, service: RealmService) -> None:
        service.create_realm("office", "ldap", properties=OFFICE, default=True)
        service.update_realm("pam", default=True)
        realms = {r["id"]: r for r in service.list_realms().data["realms"]}
        assert realms["pam"]["default"] is True
        assert realms["office"]["default"] is False

    def test_update_builtin_comment(self, service: RealmService) -> None:
        result = service.update_realm("pam", comment="System users")
        assert result.ok
        assert service.get_realm("pam").data["comment"] == "System users"

    def test_update_cannot_break_schema(self, service: RealmService) -> None:
        service.create_realm("office", "ldap", properties=OFFICE)
        result = service.update_realm("office", delete=["server"])
        assert result.error is not None
        assert result.error.code == "SCHEMA_VIOLATION"
        assert service.get_realm("office").data["properties"]["server"] == "10.0.0.5"

    def test_update_missing(self, service: RealmService) -> None:
        result = service.update_realm("nope", comment="x")
        assert result.error is not None
        assert result.error.code == "NOT_FOUND"

    def test_update_with_current_digest(self, service: RealmService) -> None:
        service.create_realm("office", "ldap", properties=OFFICE)
        digest = service.get_realm("office").data["digest"]
        assert service.update_realm("office", comment="x", digest=digest).ok

    def test_update_with_stale_digest(self, service: RealmService) -> None:
        service.create_realm("office", "ldap", properties=OFFICE)
        digest = service.get_realm("office").data["digest"]
        service.update_realm("office", comment="first")
        result = service.update_realm("office", comment="second", digest=digest)
        assert result.error is not None
        assert result.error.code == "CONFIG_CHANGED"
        assert service.get_realm("office").data["comment"] == "first"


class TestDelete:
    def test_delete(self, service: RealmService) -> None:
        service.create_realm("office", "ldap", properties=OFFICE)
        result = service.delete_realm("office")
        assert result.ok
        assert result.data == {"id": "office"}
        assert service.get_realm("office").error is not None

    @pytest.mark.parametrize("realm_id", ["pve", "pam"])
    def test_delete_builtin(self, service: RealmService, realm_id: str) -> None:
        result = service.delete_realm(realm_id)
        assert result.error is not None
        assert result.error.code == "BUILTIN_REALM"

    def test_delete_missing(self, service: RealmService) -> None:
        result = service.delete_realm("nope")
        assert result.error is not None
        assert result.error.code == "NOT_FOUND"


class TestSetDefault:
    def test_set_default(self, service: RealmService) -> None:
        result = service.set_default("pve")
        assert result.ok
        assert result.data["default"] is True

    def test_set_default_missing(self, service: RealmService) -> None:
        result = service.set_default("nope")
        assert result.error is not None
        assert result.error.code == "NOT_FOUND"


class TestAuthenticate:
    def test_local_success(self, service: RealmService) -> None:
        result = service.authenticate("alice@pve", "secret")
        assert result.ok
        assert result.data == {"userid": "alice@pve", "realm": "pve", "tfa": None}

    def test_pam_success(self, service: RealmService, pam: FakePam) -> None:
        assert service.authenticate("root@pam", "toor").ok
        assert pam.calls == [("realmctl-auth", "root")]

    def test_reports_tfa_requirement(self, service: RealmService) -> None:
        service.update_realm("pve", properties={"tfa": "type=oath"})
        result = service.authenticate("alice@pve", "secret")
        assert result.data["tfa"] == "oath"

    @pytest.mark.parametrize(
        "userid,password",
        [
            ("alice@pve", "wrong"),
            ("bob@pve", "secret"),
            ("alice@nowhere", "secret"),
            ("alice", "secret"),
            ("a", "secret"),
            ("root@pam", "wrong"),
        ],
    )
    def test_failures_are_indistinguishable(
        self, service: RealmService, userid: str, password: str
    ) -> None:
        result = service.authenticate(userid, password)
        assert not result.ok
        assert result.error is not None
        assert result.error.code == "AUTH_FAILED"
        assert result.error.message == "authentication failure"

    def test_directory_without_backend(self, service: RealmService) -> None:
        service.create_realm("office", "ldap", properties=OFFICE)
        result = service.authenticate("alice@office", "secret")
        assert result.error is not None
        assert result.error.code == "NOT_IMPLEMENTED"

    def test_plugin_from_hook(self, service: RealmService, plugins: RealmPluginManager) -> None:
        class _AcceptAll(RealmPlugin):
            type = "ldap"
            properties_model = plugins.get("ldap").properties_model

            def authenticate(
                self, config: DomainConfig, realm_id: str, username: str, password: str
            ) -> None:
                return None

        plugins.register(_AcceptAll())
        service.create_realm("office", "ldap", properties=OFFICE)
        assert service.authenticate("anyone@office", "x").ok


class TestPasswords:
    def test_change_local_password(
        self, service: RealmService, credentials: MemoryCredentialStore
    ) -> None:
        result = service.change_password("bob@pve", "hunter2")
        assert result.ok
        assert credentials.passwords[("pve", "bob")] == "hunter2"
        assert service.authenticate("bob@pve", "hunter2").ok

    def test_change_pam_password_unsupported(self, service: RealmService) -> None:
        result = service.change_password("root@pam", "x")
        assert result.error is not None
        assert result.error.code == "UNSUPPORTED"
        assert result.error.message == "can't set password on auth type 'pam'"
        assert result.error.detail["realm_type"] == "pam"

    def test_change_password_unknown_realm(self, service: RealmService) -> None:
        result = service.change_password("bob@nowhere", "x")
        assert result.error is not None
        assert result.error.code == "NOT_FOUND"

    def test_delete_local_user(
        self, service: RealmService, credentials: MemoryCredentialStore
    ) -> None:
        assert service.delete_user("alice@pve").ok
        assert ("pve", "alice") not in credentials.passwords

    def test_delete_directory_user_is_noop(self, service: RealmService) -> None:
        service.create_realm("office", "ldap", properties=OFFICE)
        before = service.list_realms().data["digest"]
        assert service.delete_user("alice@office").ok
        assert service.list_realms().data["digest"] == before

    def test_delete_user_invalid_id(self, service: RealmService) -> None:
        result = service.delete_user("no realm here")
        assert result.error is not None
        assert result.error.code == "INVALID_FORMAT"
