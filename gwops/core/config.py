"""Typed configuration loading and access.

The gateway layout (service name, owner account, directory prefix) differs
between installations, so none of it is hard-coded: it is read from a TOML
file into frozen dataclasses with defaults matching a stock install.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from .result import Err, Ok, Result
from .structured import (
    StrDict,
    as_str_dict,
    get_bool,
    get_int,
    get_raw_str,
    get_str,
    get_str_list,
    get_table,
)

__all__ = [
    "Config",
    "ConfigError",
    "DataConfig",
    "DebugConfig",
    "ReleaseConfig",
    "ServiceConfig",
    "CONFIG_ENV_VAR",
    "DEFAULT_CONFIG_PATH",
    "default_config_path",
    "load_config",
    "load_config_or_default",
]

CONFIG_ENV_VAR = "GWOPS_CONFIG"
DEFAULT_CONFIG_PATH = Path("/etc/gwops/gwops.toml")

DEFAULT_SERVICE = "core"
DEFAULT_PEERS = ("mosquitto",)
DEFAULT_BASE_DIR = "/opt/core"
DEFAULT_ENTRY_POINT = "bin/core"
DEFAULT_OWNER = "root"
DEFAULT_DATA_DIR = "/var/lib/alona"
DEFAULT_DB = "/var/lib/alona/db/alona.sqlite3"
DEFAULT_BUNDLE_DIR = "/var/lib/alona/debug-bundles"
DEFAULT_ENV_FILE = "/etc/alona/core.env"
DEFAULT_SINCE = "3 hours ago"
DEFAULT_MAX_JOURNAL_LINES = 600
DEFAULT_JOURNAL_LINES = 100
DEFAULT_HEALTH_URL = "http://127.0.0.1:4000/health"
DEFAULT_MOSQUITTO_DIR = "/etc/mosquitto"
DEFAULT_MOSQUITTO_DATA_DIR = "/var/lib/mosquitto"
DEFAULT_SYSTEMD_DIR = "/etc/systemd/system"


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or parsed."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class ServiceConfig:
    """The supervised backend unit and its neighbours."""

    name: str = DEFAULT_SERVICE
    peers: tuple[str, ...] = DEFAULT_PEERS


@dataclass(frozen=True, slots=True)
class ReleaseConfig:
    """Release store layout and ownership.

    owner/group of None disables chown (useful for unprivileged test runs).
    """

    base_dir: Path = Path(DEFAULT_BASE_DIR)
    entry_point: str = DEFAULT_ENTRY_POINT
    owner: str | None = DEFAULT_OWNER
    group: str | None = DEFAULT_OWNER
    restart: bool = True


@dataclass(frozen=True, slots=True)
class DataConfig:
    dir: Path = Path(DEFAULT_DATA_DIR)
    db: Path = Path(DEFAULT_DB)


@dataclass(frozen=True, slots=True)
class DebugConfig:
    """Debug bundle collection settings."""

    bundle_dir: Path = Path(DEFAULT_BUNDLE_DIR)
    env_file: Path = Path(DEFAULT_ENV_FILE)
    since: str = DEFAULT_SINCE
    max_journal_lines: int = DEFAULT_MAX_JOURNAL_LINES
    journal_lines: int = DEFAULT_JOURNAL_LINES
    health_url: str = DEFAULT_HEALTH_URL
    include_mosquitto_persist: bool = False
    mosquitto_dir: Path = Path(DEFAULT_MOSQUITTO_DIR)
    mosquitto_data_dir: Path = Path(DEFAULT_MOSQUITTO_DATA_DIR)
    systemd_dir: Path = Path(DEFAULT_SYSTEMD_DIR)


@dataclass(frozen=True, slots=True)
class Config:
    """Main configuration container."""

    service: ServiceConfig = field(default_factory=ServiceConfig)
    release: ReleaseConfig = field(default_factory=ReleaseConfig)
    data: DataConfig = field(default_factory=DataConfig)
    debug: DebugConfig = field(default_factory=DebugConfig)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Config:
        """Create Config from a mapping (parsed TOML)."""
        service: StrDict = get_table(data, "service") or {}
        release: StrDict = get_table(data, "release") or {}
        data_t: StrDict = get_table(data, "data") or {}
        debug: StrDict = get_table(data, "debug") or {}

        peers = get_str_list(service, "peers")
        restart = get_bool(release, "restart")
        persist = get_bool(debug, "include_mosquitto_persist")

        max_lines = get_int(debug, "max_journal_lines")
        if max_lines is not None and max_lines <= 0:
            raise ValueError("debug.max_journal_lines must be positive")
        tail_lines = get_int(debug, "journal_lines")
        if tail_lines is not None and tail_lines <= 0:
            raise ValueError("debug.journal_lines must be positive")

        entry_point = get_str(release, "entry_point") or DEFAULT_ENTRY_POINT
        if Path(entry_point).is_absolute() or ".." in Path(entry_point).parts:
            raise ValueError(f"release.entry_point must be a relative path: {entry_point}")

        return cls(
            service=ServiceConfig(
                name=get_str(service, "name") or DEFAULT_SERVICE,
                peers=tuple(peers) if peers is not None else DEFAULT_PEERS,
            ),
            release=ReleaseConfig(
                base_dir=Path(get_str(release, "base_dir") or DEFAULT_BASE_DIR),
                entry_point=entry_point,
                owner=_identity(release, "owner"),
                group=_identity(release, "group"),
                restart=True if restart is None else restart,
            ),
            data=DataConfig(
                dir=Path(get_str(data_t, "dir") or DEFAULT_DATA_DIR),
                db=Path(get_str(data_t, "db") or DEFAULT_DB),
            ),
            debug=DebugConfig(
                bundle_dir=Path(get_str(debug, "bundle_dir") or DEFAULT_BUNDLE_DIR),
                env_file=Path(get_str(debug, "env_file") or DEFAULT_ENV_FILE),
                since=get_str(debug, "since") or DEFAULT_SINCE,
                max_journal_lines=max_lines or DEFAULT_MAX_JOURNAL_LINES,
                journal_lines=tail_lines or DEFAULT_JOURNAL_LINES,
                health_url=get_str(debug, "health_url") or DEFAULT_HEALTH_URL,
                include_mosquitto_persist=bool(persist),
                mosquitto_dir=Path(get_str(debug, "mosquitto_dir") or DEFAULT_MOSQUITTO_DIR),
                mosquitto_data_dir=Path(
                    get_str(debug, "mosquitto_data_dir") or DEFAULT_MOSQUITTO_DATA_DIR
                ),
                systemd_dir=Path(get_str(debug, "systemd_dir") or DEFAULT_SYSTEMD_DIR),
            ),
        )


def _identity(table: Mapping[str, object], key: str) -> str | None:
    # Missing key -> default account; explicit "" -> no chown.
    value = get_raw_str(table, key)
    if value is None:
        return DEFAULT_OWNER
    return value or None


def default_config_path() -> Path:
    """Config location: $GWOPS_CONFIG, else /etc/gwops/gwops.toml."""
    env = os.environ.get(CONFIG_ENV_VAR)
    if env:
        return Path(env).expanduser()
    return DEFAULT_CONFIG_PATH


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    """Parse a TOML file, handling read and parse errors."""
    import tomllib

    try:
        content = path.read_bytes()
        data_obj: object = tomllib.loads(content.decode("utf-8"))
        data = as_str_dict(data_obj)
        if data is None:
            return Err(ConfigError("Config root must be a TOML table", path=path))
        return Ok(data)
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))


def load_config(path: Path) -> Result[Config, ConfigError]:
    """Load and parse configuration from a TOML file.

    Returns:
        Ok(Config) on success, Err(ConfigError) on failure
    """
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    try:
        return Ok(Config.from_dict(result.value))
    except (KeyError, TypeError, ValueError) as e:
        return Err(ConfigError(f"Invalid config structure: {e}", path=path))


def load_config_or_default(path: Path) -> Result[Config, ConfigError]:
    """Load config, falling back to defaults only when the file is absent.

    A file that exists but is broken is still an error: silently running with
    defaults could deploy into the wrong directory.
    """
    if not path.exists():
        return Ok(Config())
    return load_config(path)
