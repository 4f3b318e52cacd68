"""Shared pytest fixtures and test helpers for realmctl tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from realmctl.domain.schemas import SchemaRegistry
from realmctl.infrastructure.store import DomainConfigStore
from realmctl.plugins.manager import RealmPluginManager
from realmctl.services.realms import RealmService


class MemoryCredentialStore:
    """In-memory CredentialStore; plaintext is fine for tests."""

    def __init__(self) -> None:
        self.passwords: dict[tuple[str, str], str] = {}

    def verify(self, realm_id: str, username: str, password: str) -> bool:
        return self.passwords.get((realm_id, username)) == password

    def set_password(self, realm_id: str, username: str, password: str) -> None:
        self.passwords[(realm_id, username)] = password

    def delete(self, realm_id: str, username: str) -> None:
        self.passwords.pop((realm_id, username), None)


class FakePam:
    """PAM authenticator accepting a fixed set of users."""

    def __init__(self, users: dict[str, str] | None = None) -> None:
        self.users = users or {}
        self.calls: list[tuple[str, str]] = []

    def __call__(self, service: str, username: str, password: str) -> bool:
        self.calls.append((service, username))
        return self.users.get(username) == password


@pytest.fixture
def registry() -> SchemaRegistry:
    """Fresh, unsealed schema registry with built-in types."""
    return SchemaRegistry.with_builtins()


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    return tmp_path / "domains.cfg"


@pytest.fixture
def store(config_path: Path, registry: SchemaRegistry) -> DomainConfigStore:
    return DomainConfigStore(config_path, registry=registry, lock_timeout=5.0)


@pytest.fixture
def credentials() -> MemoryCredentialStore:
    creds = MemoryCredentialStore()
    creds.set_password("pve", "alice", "secret")
    return creds


@pytest.fixture
def pam() -> FakePam:
    return FakePam({"root": "toor"})


@pytest.fixture
def plugins(
    registry: SchemaRegistry, credentials: MemoryCredentialStore, pam: FakePam
) -> RealmPluginManager:
    return RealmPluginManager(registry, credential_store=credentials, pam_authenticator=pam)


@pytest.fixture
def service(store: DomainConfigStore, plugins: RealmPluginManager) -> RealmService:
    return RealmService(store, plugins)

