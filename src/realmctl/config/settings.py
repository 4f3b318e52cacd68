"""Process settings for the realm registry.

Priority chain (highest to lowest):
  1. Init kwargs  — passed by the embedding daemon or tool
  2. Env vars     — ``REALMCTL_*`` prefix
  3. TOML file    — ``[realmctl]`` table (or top level) of ``realmctl.toml``
  4. Code defaults

The TOML file is the explicit ``toml_path`` given to :meth:`RealmSettings.load`,
else ``$REALMCTL_CONFIG``, else ``/etc/realmctl/realmctl.toml``. A missing
file is not an error.
"""

from __future__ import annotations

import os
import threading
import tomllib
from pathlib import Path
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from realmctl.errors import ConfigFileError

CONFIG_ENV_VAR = "REALMCTL_CONFIG"
DEFAULT_TOML_PATH = Path("/etc/realmctl/realmctl.toml")
TOML_TABLE = "realmctl"


def resolve_toml_path(toml_path: Path | str | None = None) -> Path:
    if toml_path:
        return Path(toml_path)
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    return DEFAULT_TOML_PATH


class TomlSettingsSource(PydanticBaseSettingsSource):
    """Settings read from ``realmctl.toml``.

    Keys may sit at the top level or under a ``[realmctl]`` table, so the
    file can be shared with the host service's own configuration. Keys the
    settings model does not declare are ignored.
    """

    def __init__(self, settings_cls: type[BaseSettings], toml_path: Path | None) -> None:
        super().__init__(settings_cls)
        self.toml_path = toml_path
        self._data: dict[str, Any] = {}
        if toml_path is None or not toml_path.is_file():
            return
        try:
            document = tomllib.loads(toml_path.read_text(encoding="utf-8"))
        except (OSError, tomllib.TOMLDecodeError) as exc:
            msg = f"Cannot read settings from {toml_path}: {exc}"
            raise ConfigFileError(msg) from exc

        table = document.get(TOML_TABLE, document)
        if not isinstance(table, dict):
            msg = f"[{TOML_TABLE}] in {toml_path} must be a table"
            raise ConfigFileError(msg)
        known = set(settings_cls.model_fields)
        self._data = {key: value for key, value in table.items() if key in known}

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        return self._data.get(field_name), field_name, False

    def __call__(self) -> dict[str, Any]:
        return dict(self._data)


# TOML path handed from load() to settings_customise_sources().
_tls = threading.local()


class RealmSettings(BaseSettings):
    """Settings for the realm registry.

    Attributes:
        config_dir: Directory holding the shared realm config file. On a
            cluster this is the replicated configuration filesystem.
        config_filename: Name of the realm config file; also names the
            sidecar lock file.
        lock_timeout: Seconds to wait for the config lock before failing.
        verbose: Log realmctl debug output.
        log_json: Emit JSON log lines instead of console output.
    """

    model_config = {
        "frozen": True,
        "env_prefix": "REALMCTL_",
        "extra": "ignore",
    }

    config_dir: Path = Path("/etc/realmctl")
    config_filename: str = Field(default="domains.cfg", min_length=1)
    lock_timeout: float = Field(default=10.0, gt=0)

    verbose: bool = False
    log_json: bool = False

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        toml_path = getattr(_tls, "toml_path", None)
        return (
            init_settings,
            env_settings,
            TomlSettingsSource(settings_cls, toml_path),
        )

    @property
    def config_path(self) -> Path:
        return self.config_dir / self.config_filename

    @classmethod
    def load(cls, *, toml_path: Path | str | None = None, **overrides: Any) -> RealmSettings:
        """Build settings from all sources; *overrides* win over everything.

        Raises:
            ConfigFileError: If the TOML file exists but cannot be parsed.
        """
        _tls.toml_path = resolve_toml_path(toml_path)
        try:
            return cls(**overrides)
        finally:
            _tls.toml_path = None
