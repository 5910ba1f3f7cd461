"""
Configuration Data Models

Data structures shared between the supervisor, its services and the CLI:
the persisted server configuration, the resolved runtime environment and
the settings read from the container environment.
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Dict, Any, Mapping

from .errors import ConfigurationInvalid
from ...shared import paths

DEFAULT_APP_ID = "2278520"
DEFAULT_SERVER_NAME = "Enshrouded Docker Server"
DEFAULT_SLOT_COUNT = 16
DEFAULT_GAME_PORT = 15637
DEFAULT_QUERY_PORT = 27015
DEFAULT_DISPLAY = ":99"
DEFAULT_BIND_ADDRESS = "0.0.0.0"
DEFAULT_SHUTDOWN_TIMEOUT = 10
DEFAULT_XVFB_GEOMETRY = "1024x768x16"
DEFAULT_MIN_EXECUTABLE_SIZE = 10_000_000

TRUE_VALUES = ("1", "true", "yes", "on")


class PrefixState(Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"


class SupervisorState(Enum):
    BOOTING = "booting"
    PREPARING_ENV = "preparing_env"
    UPDATING = "updating"
    STARTING = "starting"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"


@dataclass
class ServerConfiguration:
    """The server's persisted JSON configuration (enshrouded_server.json)."""
    name: str = DEFAULT_SERVER_NAME
    password: str = ""
    save_directory: str = "./savegame"
    log_directory: str = "./logs"
    bind_address: str = DEFAULT_BIND_ADDRESS
    game_port: int = DEFAULT_GAME_PORT
    query_port: int = DEFAULT_QUERY_PORT
    slot_count: int = DEFAULT_SLOT_COUNT

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the key layout the game binary reads."""
        return {
            'name': self.name,
            'password': self.password,
            'saveDirectory': self.save_directory,
            'logDirectory': self.log_directory,
            'ip': self.bind_address,
            'gamePort': self.game_port,
            'queryPort': self.query_port,
            'slotCount': self.slot_count,
        }


@dataclass(frozen=True)
class ConfigOverrides:
    """
    Field overrides taken from the environment.

    A field is None when its variable is unset or empty; the override pass
    only touches fields that are not None.
    """
    name: Optional[str] = None
    password: Optional[str] = None
    game_port: Optional[int] = None
    query_port: Optional[int] = None
    slot_count: Optional[int] = None

    def as_json_fields(self) -> Dict[str, Any]:
        """Return the non-empty overrides keyed by their JSON field name."""
        fields = {
            'name': self.name,
            'password': self.password,
            'gamePort': self.game_port,
            'queryPort': self.query_port,
            'slotCount': self.slot_count,
        }
        return {key: value for key, value in fields.items() if value is not None}

    def to_template(self) -> ServerConfiguration:
        """Build a fresh configuration, falling back to defaults for unset fields."""
        config = ServerConfiguration()
        if self.name is not None:
            config.name = self.name
        if self.password is not None:
            config.password = self.password
        if self.game_port is not None:
            config.game_port = self.game_port
        if self.query_port is not None:
            config.query_port = self.query_port
        if self.slot_count is not None:
            config.slot_count = self.slot_count
        return config


@dataclass(frozen=True)
class RuntimeEnvironment:
    """Tools and locations resolved once at startup. Read-only afterwards."""
    fetcher_path: Optional[str]
    compat_runtime_binary: str
    prefix_path: Path
    display: str
    server_install_dir: Path
    config_dir: Path
    wineserver_path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'fetcher_path': self.fetcher_path,
            'compat_runtime_binary': self.compat_runtime_binary,
            'wineserver_path': self.wineserver_path,
            'prefix_path': str(self.prefix_path),
            'display': self.display,
            'server_install_dir': str(self.server_install_dir),
            'config_dir': str(self.config_dir),
        }


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _text(value: Optional[str]) -> Optional[str]:
    """Free text is kept as given; only an unset or empty variable means no override."""
    return value if value else None


def _parse_bool(value: Optional[str], default: bool) -> bool:
    value = _clean(value)
    if value is None:
        return default
    return value.lower() in TRUE_VALUES


def _parse_int(name: str, value: Optional[str], maximum: Optional[int] = None) -> Optional[int]:
    value = _clean(value)
    if value is None:
        return None
    try:
        number = int(value)
    except ValueError:
        raise ConfigurationInvalid(f"{name} must be an integer, got {value!r}")
    if number < 0:
        raise ConfigurationInvalid(f"{name} must not be negative, got {number}")
    if maximum is not None and number > maximum:
        raise ConfigurationInvalid(f"{name} must be at most {maximum}, got {number}")
    return number


@dataclass(frozen=True)
class SupervisorSettings:
    """Settings read from the container environment."""
    app_id: str = DEFAULT_APP_ID
    server_dir: Path = Path(paths.DEFAULT_SERVER_DIR)
    config_dir: Path = Path(paths.DEFAULT_CONFIG_DIR)
    overrides: ConfigOverrides = field(default_factory=ConfigOverrides)
    update_on_start: bool = True
    display: str = DEFAULT_DISPLAY
    wine_prefix: Path = field(default_factory=lambda: Path(paths.default_wine_prefix()))
    force_config_rewrite: bool = False
    force_prefix_reset: bool = False
    steamcmd_path: Optional[str] = None
    steamcmd_dir: Optional[str] = None
    wine_path: Optional[str] = None
    wine_dir: Optional[str] = None
    server_executable: str = paths.SERVER_EXECUTABLE
    shutdown_timeout: int = DEFAULT_SHUTDOWN_TIMEOUT
    xvfb_geometry: str = DEFAULT_XVFB_GEOMETRY
    min_executable_size: int = DEFAULT_MIN_EXECUTABLE_SIZE
    log_dir: Optional[Path] = None
    log_level: str = "INFO"

    @property
    def config_file(self) -> Path:
        return self.config_dir / paths.CONFIG_FILE_NAME

    @property
    def savegame_dir(self) -> Path:
        return self.config_dir / paths.SAVEGAME_DIR_NAME

    @property
    def server_log_dir(self) -> Path:
        return self.config_dir / paths.LOGS_DIR_NAME

    @property
    def supervisor_log_dir(self) -> Path:
        return self.log_dir or self.server_log_dir

    @property
    def executable_path(self) -> Path:
        return self.server_dir / self.server_executable

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'SupervisorSettings':
        """
        Build settings from environment variables.

        Args:
            environ: Mapping to read from, defaults to os.environ

        Raises:
            ConfigurationInvalid: A numeric variable did not parse
        """
        env = os.environ if environ is None else environ

        overrides = ConfigOverrides(
            name=_text(env.get('SERVER_NAME')),
            password=_text(env.get('SERVER_PASSWORD')),
            game_port=_parse_int('GAME_PORT', env.get('GAME_PORT'), maximum=65535),
            query_port=_parse_int('QUERY_PORT', env.get('QUERY_PORT'), maximum=65535),
            slot_count=_parse_int('SERVER_SLOTS', env.get('SERVER_SLOTS')),
        )

        shutdown_timeout = _parse_int('SHUTDOWN_TIMEOUT', env.get('SHUTDOWN_TIMEOUT'))
        min_size = _parse_int('MIN_EXECUTABLE_SIZE', env.get('MIN_EXECUTABLE_SIZE'))
        home = _clean(env.get('HOME')) or "/home/steam"
        log_dir = _clean(env.get('SHROUDWARDEN_LOG_DIR'))

        return cls(
            app_id=_clean(env.get('STEAM_APP_ID')) or DEFAULT_APP_ID,
            server_dir=Path(_clean(env.get('SERVER_DIR')) or paths.DEFAULT_SERVER_DIR),
            config_dir=Path(_clean(env.get('SERVER_CONFIG_DIR')) or paths.DEFAULT_CONFIG_DIR),
            overrides=overrides,
            update_on_start=_parse_bool(env.get('UPDATE_ON_START'), True),
            display=_clean(env.get('DISPLAY')) or DEFAULT_DISPLAY,
            wine_prefix=Path(_clean(env.get('WINEPREFIX')) or str(Path(home) / ".wine")),
            force_config_rewrite=_parse_bool(env.get('FORCE_CONFIG_REWRITE'), False),
            force_prefix_reset=_parse_bool(env.get('FORCE_PREFIX_RESET'), False),
            steamcmd_path=_clean(env.get('STEAMCMD')),
            steamcmd_dir=_clean(env.get('STEAMCMD_DIR')),
            wine_path=_clean(env.get('WINE_BIN')),
            wine_dir=_clean(env.get('WINE_DIR')),
            server_executable=_clean(env.get('SERVER_EXECUTABLE')) or paths.SERVER_EXECUTABLE,
            shutdown_timeout=DEFAULT_SHUTDOWN_TIMEOUT if shutdown_timeout is None else shutdown_timeout,
            xvfb_geometry=_clean(env.get('XVFB_GEOMETRY')) or DEFAULT_XVFB_GEOMETRY,
            min_executable_size=DEFAULT_MIN_EXECUTABLE_SIZE if min_size is None else min_size,
            log_dir=Path(log_dir) if log_dir else None,
            log_level=(_clean(env.get('SHROUDWARDEN_LOG_LEVEL')) or "INFO").upper(),
        )
