"""DomainConfigStore — parse, serialize and persist the realm registry.

Reads are lock-free: the file is replaced atomically, so a reader sees
either the old or the new text, never a mix. Writes are only allowed while
the caller holds the config lock (:meth:`DomainConfigStore.locked` or
:meth:`DomainConfigStore.with_locked_config`), which serializes all
writers across processes.

Parsing is best-effort: a malformed section is dropped and recorded in
``DomainConfig.errors``; the remaining sections load normally.
"""

from __future__ import annotations

import hashlib
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, TypeVar

from realmctl.domain.ids import validate_realm_id
from realmctl.domain.property_string import field_keys, render_value
from realmctl.domain.realm import DomainConfig, Realm, SectionError
from realmctl.domain.schemas import SchemaRegistry, get_registry
from realmctl.domain.text import decode_text, encode_text
from realmctl.domain.types import BUILTIN_COMMENTS, BUILTIN_REALMS, SYSTEM_PAM_PLUGIN
from realmctl.errors import (
    ConfigChanged,
    ConfigNotLocked,
    FormatError,
    SchemaViolation,
    UnknownRealmType,
)
from realmctl.infrastructure.locking import exclusive_lock, lock_path_for
from realmctl.infrastructure.section import RawSection, SectionSerializer

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from realmctl.config.settings import RealmSettings

logger = logging.getLogger(__name__)

T = TypeVar("T")

CONFIG_FILENAME = "domains.cfg"
DEFAULT_LOCK_TIMEOUT = 10.0

# Keys stored in the section but lifted onto Realm attributes.
_LIFTED_KEYS = ("comment", "default")


def compute_digest(raw: str | bytes) -> str:
    data = raw.encode("utf-8") if isinstance(raw, str) else raw
    return hashlib.sha1(data).hexdigest()


class DomainConfigStore:
    """Realm registry backed by one section-structured config file."""

    def __init__(
        self,
        path: Path,
        *,
        registry: SchemaRegistry | None = None,
        serializer: SectionSerializer | None = None,
        lock_timeout: float = DEFAULT_LOCK_TIMEOUT,
    ) -> None:
        self.path = path
        self.registry = registry if registry is not None else get_registry()
        self._serializer = serializer if serializer is not None else SectionSerializer()
        self.lock_timeout = lock_timeout
        self._local = threading.local()

    @classmethod
    def from_settings(
        cls, settings: RealmSettings, *, registry: SchemaRegistry | None = None
    ) -> DomainConfigStore:
        return cls(
            settings.config_dir / settings.config_filename,
            registry=registry,
            lock_timeout=settings.lock_timeout,
        )

    # ------------------------------------------------------------------
    # Text <-> DomainConfig
    # ------------------------------------------------------------------

    def parse(self, raw: str, *, digest: str | None = None) -> DomainConfig:
        """Build a DomainConfig from config text.

        A ``pve``/``pam`` section written with another type is read with its
        built-in type, keeping only the properties that type knows. After
        all sections are read, every ``default`` flag beyond the first is
        cleared and any missing built-in is injected.

        Args:
            digest: Digest of the bytes *raw* was decoded from; computed
                from *raw* when omitted.
        """
        config = DomainConfig(digest=digest if digest is not None else compute_digest(raw))

        for section in self._serializer.parse(raw):
            try:
                realm = self._build_realm(section)
            except (FormatError, UnknownRealmType) as exc:
                self._drop(config, section, str(exc))
                continue
            if realm.id in config.realms:
                self._drop(config, section, f"duplicate section {realm.id!r}")
                continue
            config.realms[realm.id] = realm

        self._demote_extra_defaults(config)
        self._inject_builtins(config)
        return config

    def serialize(self, config: DomainConfig) -> str:
        """Render *config* as config text. Comments are text-encoded."""
        sections: list[RawSection] = []
        for realm in config.realms.values():
            fields: dict[str, str] = {}
            if realm.comment:
                fields["comment"] = encode_text(realm.comment)
            if realm.is_default:
                fields["default"] = "1"
            for key, value in realm.properties.items():
                if key in _LIFTED_KEYS or value is None:
                    continue
                fields[key] = render_value(value)
            sections.append(RawSection(type=realm.type, id=realm.id, fields=fields))
        return self._serializer.render(sections)

    def _build_realm(self, section: RawSection) -> Realm:
        validate_realm_id(section.id)
        if section.errors:
            raise SchemaViolation("; ".join(section.errors))

        realm_type = section.type
        fields = section.fields
        pinned = BUILTIN_REALMS.get(section.id)
        if pinned is not None and realm_type != pinned:
            logger.debug("Forcing type of built-in realm %s to %s", section.id, pinned)
            realm_type = str(pinned)
            allowed = set(field_keys(self.registry.schema_for(realm_type)))
            fields = {k: v for k, v in fields.items() if k in allowed}

        properties = self.registry.validate_properties(realm_type, fields)
        comment = properties.pop("comment", None)
        is_default = bool(properties.pop("default", False))
        return Realm(
            id=section.id,
            type=realm_type,
            properties=properties,
            is_default=is_default,
            comment=decode_text(comment) if comment else None,
        )

    @staticmethod
    def _drop(config: DomainConfig, section: RawSection, message: str) -> None:
        logger.warning(
            "Skipping realm section %s: %s (line %d): %s",
            section.type,
            section.id,
            section.line,
            message,
        )
        config.errors.append(
            SectionError(section_id=section.id, type=section.type, message=message)
        )

    @staticmethod
    def _demote_extra_defaults(config: DomainConfig) -> None:
        seen: str | None = None
        for realm in config.realms.values():
            if not realm.is_default:
                continue
            if seen is None:
                seen = realm.id
            else:
                logger.debug("Clearing extra default flag on %s (keeping %s)", realm.id, seen)
                realm.is_default = False

    def _inject_builtins(self, config: DomainConfig) -> None:
        builtins: dict[str, Realm] = {}
        for realm_id, realm_type in BUILTIN_REALMS.items():
            realm = config.realms.pop(realm_id, None)
            if realm is None:
                realm = Realm(id=realm_id, type=str(realm_type))
            if not realm.comment:
                realm.comment = BUILTIN_COMMENTS[realm_id]
            builtins[realm_id] = realm

        builtins["pam"].plugin = SYSTEM_PAM_PLUGIN
        builtins.update(config.realms)
        config.realms = builtins

    def check(self, config: DomainConfig) -> None:
        """Validate an in-memory config before it is written.

        Raises:
            FormatError: On an invalid realm ID or property.
            UnknownRealmType: On an unregistered type.
            SchemaViolation: If more than one realm is marked default.
        """
        defaults = [realm.id for realm in config.realms.values() if realm.is_default]
        if len(defaults) > 1:
            msg = f"more than one default realm: {', '.join(defaults)}"
            raise SchemaViolation(msg)
        for realm_id, realm in config.realms.items():
            validate_realm_id(realm_id)
            if realm.id != realm_id:
                msg = f"realm stored under {realm_id!r} has id {realm.id!r}"
                raise SchemaViolation(msg)
            pinned = BUILTIN_REALMS.get(realm_id)
            if pinned is not None and realm.type != pinned:
                msg = f"built-in realm {realm_id!r} must have type {pinned!r}"
                raise SchemaViolation(msg)
            fields = {k: v for k, v in realm.properties.items() if k not in _LIFTED_KEYS}
            self.registry.validate_properties(realm.type, fields)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _read_bytes(self) -> bytes:
        try:
            return self.path.read_bytes()
        except FileNotFoundError:
            return b""

    def _decode(self, data: bytes) -> str:
        # Undecodable bytes become U+FFFD; the rest of the file is untouched.
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as exc:
            logger.warning(
                "%s is not valid UTF-8 (%s); decoding with replacement", self.path, exc
            )
            return data.decode("utf-8", errors="replace")

    def read(self) -> DomainConfig:
        data = self._read_bytes()
        return self.parse(self._decode(data), digest=compute_digest(data))

    def write(self, config: DomainConfig, *, digest: str | None = None) -> str:
        """Persist *config* atomically and return the new digest.

        Args:
            digest: If given, the write is refused unless the file still has
                this digest (optimistic concurrency check).

        Raises:
            ConfigNotLocked: If the calling thread does not hold the lock.
            ConfigChanged: If *digest* no longer matches the file.
        """
        if not self.holds_lock:
            msg = f"refusing to write {self.path.name} without holding its lock"
            raise ConfigNotLocked(msg)

        if digest is not None and digest != compute_digest(self._read_bytes()):
            msg = f"{self.path.name} was modified by another process"
            raise ConfigChanged(msg)

        self.check(config)
        raw = self.serialize(config)

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(raw)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        new_digest = compute_digest(raw)
        config.digest = new_digest
        logger.debug("Wrote %s (%d realms, digest %s)", self.path, len(config), new_digest)
        return new_digest

    # ------------------------------------------------------------------
    # Locking
    # ------------------------------------------------------------------

    @property
    def holds_lock(self) -> bool:
        return getattr(self._local, "depth", 0) > 0

    @contextmanager
    def locked(self, timeout: float | None = None) -> Iterator[None]:
        """Hold the cluster-wide config lock. Re-entrant within one thread."""
        if self.holds_lock:
            self._local.depth += 1
            try:
                yield
            finally:
                self._local.depth -= 1
            return

        wait = self.lock_timeout if timeout is None else timeout
        with exclusive_lock(lock_path_for(self.path), timeout=wait):
            self._local.depth = 1
            try:
                yield
            finally:
                self._local.depth = 0

    def with_locked_config(
        self,
        fn: Callable[[], T],
        *,
        timeout: float | None = None,
        errmsg: str | None = None,
    ) -> T:
        """Run *fn* while holding the config lock and return its result.

        Any error (including :class:`~realmctl.errors.LockTimeout`) is
        re-raised unchanged; *errmsg*, if given, is attached as a note.
        """
        try:
            with self.locked(timeout):
                return fn()
        except Exception as exc:
            if errmsg:
                exc.add_note(errmsg)
                logger.error("%s: %s", errmsg, exc)
            raise
