"""Broker configuration loaded from environment variables and TOML."""
import os
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

from hyprbroker.events.registry import OverflowPolicy

APP_NAME = "hyprbroker"
EVENT_SOCKET_NAME = ".socket2.sock"
REQUEST_SOCKET_NAME = ".socket.sock"


def _require_env(name: str) -> str:
    value = os.environ.get(name)
    if not value:
        raise ValueError(f"Environment variable {name} is not set")
    return value


def default_config_path() -> Path:
    """Location of the optional TOML config file.

    Returns:
        ``$XDG_CONFIG_HOME/hyprbroker/config.toml``, falling back to
        ``~/.config`` when XDG_CONFIG_HOME is unset.
    """
    base = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(base) / APP_NAME / "config.toml"


def hypr_instance_dir() -> Path:
    """Runtime directory of the running Hyprland instance.

    Returns:
        ``$XDG_RUNTIME_DIR/hypr/$HYPRLAND_INSTANCE_SIGNATURE``.

    Raises:
        ValueError: If either environment variable is missing.
    """
    runtime = _require_env("XDG_RUNTIME_DIR")
    signature = _require_env("HYPRLAND_INSTANCE_SIGNATURE")
    return Path(runtime) / "hypr" / signature


class Settings(BaseSettings):
    """Broker configuration.

    Values come from init arguments, then ``HYPRBROKER_*`` environment
    variables, then the TOML config file, then the defaults below.

    Attributes:
        client_socket_path: Listen socket for subscribers. Relative paths
            resolve against ``$XDG_RUNTIME_DIR/hyprbroker``.
        socket_mode: Permission bits applied to the listen socket.
        event_socket_path: Hyprland socket2 path; derived when empty.
        request_socket_path: Hyprland request socket path; derived when empty.
        queue_size: Maximum queued events per subscriber, 0 for unbounded.
        overflow_policy: What to do when a subscriber queue is full.
        handshake_timeout: Seconds to wait for a subscription line, 0 to
            wait forever.
        shutdown_timeout: Seconds to wait for sessions to finish on exit.
        debug: Enable debug-level logging.
        log_format: ``json`` for one JSON object per line, ``console`` for
            human-readable output.
    """

    model_config = SettingsConfigDict(
        env_prefix="HYPRBROKER_",
        case_sensitive=False,
        extra="ignore",
    )

    client_socket_path: str = "hyprbroker.sock"
    socket_mode: int = 0o600
    event_socket_path: str = ""
    request_socket_path: str = ""

    queue_size: int = Field(default=1024, ge=0)
    overflow_policy: OverflowPolicy = OverflowPolicy.DISCONNECT
    handshake_timeout: float = Field(default=0.0, ge=0.0)
    shutdown_timeout: float = Field(default=5.0, ge=0.0)
    debug: bool = False
    log_format: Literal["json", "console"] = "json"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Insert the TOML config file below environment variables."""
        return (
            init_settings,
            env_settings,
            TomlConfigSettingsSource(settings_cls, toml_file=default_config_path()),
        )

    @property
    def runtime_dir(self) -> Path:
        """Broker runtime directory, ``$XDG_RUNTIME_DIR/hyprbroker``.

        Raises:
            ValueError: If XDG_RUNTIME_DIR is not set.
        """
        return Path(_require_env("XDG_RUNTIME_DIR")) / APP_NAME

    @property
    def resolved_client_socket_path(self) -> Path:
        """Absolute listen socket path.

        Returns:
            client_socket_path as given when absolute, otherwise joined
            onto runtime_dir.
        """
        path = Path(self.client_socket_path)
        if path.is_absolute():
            return path
        return self.runtime_dir / path

    @property
    def resolved_event_socket_path(self) -> Path:
        if self.event_socket_path:
            return Path(self.event_socket_path)
        return hypr_instance_dir() / EVENT_SOCKET_NAME

    @property
    def resolved_request_socket_path(self) -> Path:
        if self.request_socket_path:
            return Path(self.request_socket_path)
        return hypr_instance_dir() / REQUEST_SOCKET_NAME

    @property
    def handshake_timeout_seconds(self) -> float | None:
        """Handshake timeout for asyncio, None when disabled."""
        return self.handshake_timeout or None
