"""
Hub configuration for wghub.

This module defines the configuration settings for the hub, providing a
centralized place for all configurable parameters.

Configuration sources, later wins:
    1. Field defaults
    2. A Python config file of upper-case module globals, loaded by
       KohakuEngine (the file ends with a config_gen() returning
       Config.from_globals())
    3. WGHUB_<FIELD> environment variables

Usage:
    from wghub.config import config

    config.reload("/etc/wghub/hub_config.py")
    config.SERVER_ENDPOINT = "vpn.example.com"
"""

import os
from contextvars import ContextVar
from typing import Any

from kohakuengine import Config
from pydantic import field_validator
from pydantic.fields import FieldInfo
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from wghub.models.enums import LogLevel

ENV_PREFIX = "WGHUB_"

# Config file consulted while a HubConfig is being built by load_config()
_config_file: ContextVar[str | None] = ContextVar("wghub_config_file", default=None)


# =============================================================================
# Config File Source
# =============================================================================


def read_config_file(path: str) -> dict[str, Any]:
    """
    Load a KohakuEngine config file and return its upper-case globals.

    Raises:
        FileNotFoundError: If the file does not exist.
    """
    if not os.path.isfile(path):
        raise FileNotFoundError(f"Config file not found: {path}")
    loaded = Config.from_file(path)
    return {k: v for k, v in loaded.globals_dict.items() if k.isupper()}


class PythonConfigSource(PydanticBaseSettingsSource):
    """Settings source backed by the config file given to load_config()."""

    def __init__(self, settings_cls: type[BaseSettings], config_file: str | None):
        super().__init__(settings_cls)
        self.config_file = config_file
        self._values: dict[str, Any] | None = None

    def _read(self) -> dict[str, Any]:
        if self._values is None:
            self._values = (
                read_config_file(self.config_file) if self.config_file else {}
            )
        return self._values

    def get_field_value(
        self, field: FieldInfo, field_name: str
    ) -> tuple[Any, str, bool]:
        data = self._read()
        return data.get(field_name), field_name, False

    def __call__(self) -> dict[str, Any]:
        data = self._read()
        return {
            name: data[name] for name in self.settings_cls.model_fields if name in data
        }


# =============================================================================
# Configuration Settings
# =============================================================================


class HubConfig(BaseSettings):
    """
    Hub configuration.

    Attributes:
        DB_FILE: Path to the SQLite database file.
        WG_CONFIG_DIR: Directory holding <interface>.conf files.
        SERVER_ENDPOINT: Public host name or address peers dial.
        ACTIVITY_WINDOW_SECONDS: Traffic recency that counts as online.
        HANDSHAKE_WINDOW_SECONDS: Handshake recency that counts as online.
        LOG_LEVEL: Logging verbosity level.
    """

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        case_sensitive=True,
        validate_assignment=True,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Path Configuration
    # -------------------------------------------------------------------------

    DB_FILE: str = "/var/lib/wghub/wghub.db"
    WG_CONFIG_DIR: str = "/etc/wireguard"
    LOG_FILE: str = ""

    # -------------------------------------------------------------------------
    # Tunnel Tooling
    # -------------------------------------------------------------------------

    WG_BIN: str = "wg"
    WG_QUICK_BIN: str = "wg-quick"
    IP_BIN: str = "ip"
    COMMAND_TIMEOUT_SECONDS: float = 10.0

    # -------------------------------------------------------------------------
    # Network Assignment
    # -------------------------------------------------------------------------

    # Host part of every network's endpoint ("<SERVER_ENDPOINT>:<port>")
    SERVER_ENDPOINT: str = "127.0.0.1"
    BASE_LISTEN_PORT: int = 51820
    INTERFACE_PREFIX: str = "wg"

    # -------------------------------------------------------------------------
    # Admin Network
    # -------------------------------------------------------------------------

    # The admin network lives on ADMIN_INTERFACE and cannot be deleted
    ADMIN_INTERFACE: str = "wg0"
    ADMIN_NETWORK_ID: str = "00000000-0000-0000-0000-000000000000"
    ADMIN_NETWORK_NAME: str = "Admin Network"
    ADMIN_CIDR: str = "10.10.0.0/24"

    # -------------------------------------------------------------------------
    # Liveness
    # -------------------------------------------------------------------------

    # Slightly above 2x a 15-25s keepalive, so one lost keepalive is tolerated
    ACTIVITY_WINDOW_SECONDS: float = 45.0
    # Handshakes renew about every 2 minutes on an active tunnel
    HANDSHAKE_WINDOW_SECONDS: float = 150.0

    # -------------------------------------------------------------------------
    # Reconciliation
    # -------------------------------------------------------------------------

    STARTUP_SETTLE_SECONDS: float = 2.0
    # 0 disables the periodic pass
    RECONCILE_INTERVAL_SECONDS: float = 60.0
    # 0 disables the per-network deadline
    NETWORK_PASS_TIMEOUT_SECONDS: float = 30.0

    # -------------------------------------------------------------------------
    # Logging Configuration
    # -------------------------------------------------------------------------

    LOG_LEVEL: LogLevel = LogLevel.INFO

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        return v.lower() if isinstance(v, str) else v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # init -> environment -> config file -> defaults
        file_source = PythonConfigSource(settings_cls, _config_file.get())
        return (init_settings, env_settings, file_source)

    # =========================================================================
    # Helper Methods
    # =========================================================================

    def get_server_endpoint(self, port: int) -> str:
        """
        Get the endpoint peers use to reach a network's interface.

        Returns:
            Endpoint string like "vpn.example.com:51821"
        """
        return f"{self.SERVER_ENDPOINT or '127.0.0.1'}:{port}"

    def get_interface_config_path(self, interface_name: str) -> str:
        """Get the path of an interface's configuration file."""
        return os.path.join(self.WG_CONFIG_DIR, f"{interface_name}.conf")

    def reload(self, config_file: str | None = None) -> None:
        """
        Re-read every source into this instance.

        Raises:
            FileNotFoundError: If `config_file` does not exist.
            pydantic.ValidationError: If a value has the wrong type.
        """
        loaded = load_config(config_file)
        for name in type(self).model_fields:
            setattr(self, name, getattr(loaded, name))


def load_config(config_file: str | None = None) -> HubConfig:
    """Build a HubConfig from defaults, `config_file` and the environment."""
    token = _config_file.set(config_file)
    try:
        return HubConfig()
    finally:
        _config_file.reset(token)


# =============================================================================
# Global Instance
# =============================================================================

# Global config instance - modify before building a HubContext
config = HubConfig()
