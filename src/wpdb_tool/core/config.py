"""Configuration management for wpdb-tool.

Handles TOML config files, environment variables, named profiles,
and configuration precedence resolution.

Precedence order (highest to lowest):
1. CLI flags (--host, --port, etc.)
2. --dsn flag (parsed into components)
3. Environment variables (DB_HOST, DB_USER, DB_PASSWORD, DB_NAME, ...)
4. Named profile (--profile or WPDB_PROFILE env var)
5. Config file defaults
6. Built-in defaults

The core components only ever see the frozen ResolvedConfig.
"""

from __future__ import annotations

import os
import re
import tomllib
from pathlib import Path
from typing import Any
from urllib.parse import parse_qs, unquote, urlparse

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from wpdb_tool.core.exceptions import ConfigError

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "wpdb-tool" / "config.toml"

DEFAULT_INCOMPATIBLE_MODES: tuple[str, ...] = (
    "NO_ZERO_DATE",
    "ONLY_FULL_GROUP_BY",
    "STRICT_TRANS_TABLES",
    "STRICT_ALL_TABLES",
    "TRADITIONAL",
    "ANSI",
)

_DB_ENV_VARS: dict[str, str] = {
    "DB_HOST": "host",
    "DB_PORT": "port",
    "DB_NAME": "dbname",
    "DB_USER": "user",
    "DB_PASSWORD": "password",  # pragma: allowlist secret
    "DB_CHARSET": "charset",
    "DB_COLLATE": "collate",
    "WPDB_TABLE_PREFIX": "table_prefix",
}

_PROFILE_DEFAULTS: dict[str, Any] = {
    "host": "localhost",
    "port": None,
    "socket": None,
    "dbname": "wordpress",
    "user": None,
    "password": None,
    "charset": "utf8mb4",
    "collate": "",
    "table_prefix": "wp_",
    "multisite": False,
    "connect_timeout": 10,
}

_DSN_SCHEMES = ("mysql", "mariadb")

_IPV6_HOST_RE = re.compile(r"^(?:\[)?(?P<host>[0-9a-fA-F:]+)(?:\]:(?P<port>\d+))?")
_IPV4_HOST_RE = re.compile(r"^(?P<host>[^:/]*)(?::(?P<port>\d+))?")


def parse_dsn(dsn: str) -> dict[str, Any]:
    """Supports mysql:// and mariadb:// schemes with query params."""
    parsed = urlparse(dsn)
    if parsed.scheme not in _DSN_SCHEMES:
        msg = f"Invalid DSN scheme: '{parsed.scheme}'. Expected 'mysql' or 'mariadb'"
        raise ConfigError(msg)

    result: dict[str, Any] = {}
    if parsed.hostname:
        result["host"] = parsed.hostname
    if parsed.port:
        result["port"] = parsed.port
    if parsed.path and parsed.path.strip("/"):
        result["dbname"] = parsed.path.strip("/")
    if parsed.username:
        result["user"] = unquote(parsed.username)
    if parsed.password:
        result["password"] = unquote(parsed.password)
    query_params = parse_qs(parsed.query)
    for key in ("charset", "collate", "socket", "table_prefix"):
        if key in query_params:
            result[key] = query_params[key][0]
    if "connect_timeout" in query_params:
        result["connect_timeout"] = int(query_params["connect_timeout"][0])
    return result


def parse_db_host(host: str) -> tuple[str, int | None, str | None, bool] | None:
    """Split a host setting into (host, port, socket, is_ipv6).

    Accepts ``host``, ``host:port``, ``host:/path/to.sock``,
    ``host:port:/path/to.sock`` and bracketed or bare IPv6 addresses.
    Returns None when the value cannot be parsed.
    """
    socket: str | None = None
    is_ipv6 = False

    socket_pos = host.find(":/")
    if socket_pos != -1:
        socket = host[socket_pos + 1 :]
        host = host[:socket_pos]

    # An IPv6 address always contains at least two colons.
    if host.count(":") > 1:
        pattern = _IPV6_HOST_RE
        is_ipv6 = True
    else:
        pattern = _IPV4_HOST_RE

    match = pattern.match(host)
    if not match:
        return None

    port = int(match.group("port")) if match.group("port") else None
    return match.group("host") or "", port, socket, is_ipv6


class DatabaseProfile(BaseModel):
    dsn: str | None = None
    host: str = "localhost"
    port: int | None = None
    socket: str | None = None
    dbname: str = "wordpress"
    user: str | None = None
    password: str | None = None
    charset: str = "utf8mb4"
    collate: str = ""
    table_prefix: str = "wp_"
    multisite: bool = False
    connect_timeout: int = 10

    @model_validator(mode="before")
    @classmethod
    def parse_dsn_into_components(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("dsn"):
            dsn_fields = parse_dsn(data["dsn"])
            for key, value in dsn_fields.items():
                if key not in data:
                    data[key] = value
        return data

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int | None) -> int | None:
        if v is not None and not (1 <= v <= 65535):
            msg = f"Invalid port: {v}. Must be 1-65535"
            raise ValueError(msg)
        return v

    @field_validator("table_prefix")
    @classmethod
    def validate_table_prefix(cls, v: str) -> str:
        if not re.fullmatch(r"[A-Za-z0-9_]+", v):
            msg = f"Invalid table_prefix: '{v}'. Only letters, digits and '_' are allowed"
            raise ValueError(msg)
        return v


class AppConfig(BaseModel):
    default_format: str = "table"
    default_profile: str | None = None
    reconnect_retries: int = 5
    reconnect_delay: float = 1.0
    show_errors: bool = False
    save_queries: bool = False
    profiles: dict[str, DatabaseProfile] = {}


class ResolvedConfig(BaseModel):
    """Immutable settings handed to Database and its components.

    - host/port/socket/user/password/dbname: where and how to connect.
      ``host`` may carry a port or socket suffix (see parse_db_host).
    - charset/collate: requested connection charset; utf8 is upgraded to
      utf8mb4 when the server supports it.
    - table_prefix: base prefix for every table name.
    - multisite: enables tenant-scoped prefixes and multisite tables.
    - blog_id/site_id: initial tenant and network.
    - show_errors: echo database errors to stderr.
    - suppress_errors: do not log or echo database errors.
    - setup_config: bail() records errors instead of terminating.
    - reconnect_retries/reconnect_delay: bounded fixed-interval reconnect.
    - connect_timeout/client_flags: passed to the driver.
    - allow_unsafe_unquoted_parameters: legacy prepare() quoting rules.
    - save_queries: keep a QueryLogEntry for every statement.
    - placeholder_salt: secret used to derive the placeholder escape token.
    - incompatible_modes: SQL modes dropped from the session.
    - custom_user_table/custom_user_meta_table: override users/usermeta.
    """

    model_config = ConfigDict(frozen=True)

    host: str = "localhost"
    port: int | None = None
    socket: str | None = None
    dbname: str = "wordpress"
    user: str | None = None
    password: str | None = None
    charset: str = "utf8mb4"
    collate: str = ""
    table_prefix: str = "wp_"
    multisite: bool = False
    blog_id: int = 0
    site_id: int = 0
    show_errors: bool = False
    suppress_errors: bool = False
    setup_config: bool = False
    reconnect_retries: int = 5
    reconnect_delay: float = 1.0
    connect_timeout: int = 10
    client_flags: int = 0
    allow_unsafe_unquoted_parameters: bool = False
    save_queries: bool = False
    placeholder_salt: str | None = None
    incompatible_modes: tuple[str, ...] = DEFAULT_INCOMPATIBLE_MODES
    custom_user_table: str | None = None
    custom_user_meta_table: str | None = None
    default_format: str = "table"
    active_profile: str | None = None
    sources: dict[str, str] = {}

    @field_validator("reconnect_retries")
    @classmethod
    def validate_retries(cls, v: int) -> int:
        if v < 0:
            msg = f"reconnect_retries must be >= 0, got {v}"
            raise ValueError(msg)
        return v


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load configuration from TOML file.

    Returns default AppConfig if file doesn't exist.
    Raises ConfigError on malformed TOML or invalid config.
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    if not config_path.exists():
        return AppConfig()

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        msg = f"Malformed TOML in {config_path}: {e}"
        raise ConfigError(msg) from e

    try:
        return AppConfig.model_validate(data)
    except Exception as e:
        msg = f"Invalid configuration in {config_path}: {e}"
        raise ConfigError(msg) from e


def resolve_config(
    config: AppConfig,
    profile_name: str | None = None,
    dsn: str | None = None,
    **cli_overrides: Any,
) -> ResolvedConfig:
    """Resolve configuration using precedence chain.

    CLI > DSN > env > profile > config defaults > built-in defaults.
    """
    sources: dict[str, str] = {}
    resolved: dict[str, Any] = {}

    # Layer 1: Built-in defaults
    resolved.update(_PROFILE_DEFAULTS)
    resolved["default_format"] = "table"
    resolved["reconnect_retries"] = 5
    resolved["reconnect_delay"] = 1.0
    resolved["show_errors"] = False
    resolved["save_queries"] = False
    for key in resolved:
        sources[key] = "default"

    # Layer 2: Config file global defaults
    defaults = AppConfig()
    for key in (
        "default_format",
        "reconnect_retries",
        "reconnect_delay",
        "show_errors",
        "save_queries",
    ):
        value = getattr(config, key)
        if value != getattr(defaults, key):
            resolved[key] = value
            sources[key] = "config"

    # Layer 3: Named profile
    effective_profile = profile_name
    if not effective_profile:
        effective_profile = os.environ.get("WPDB_PROFILE")
    if not effective_profile:
        effective_profile = config.default_profile

    if effective_profile:
        if effective_profile not in config.profiles:
            available = (
                ", ".join(sorted(config.profiles.keys())) if config.profiles else "none"
            )
            msg = f"Unknown profile: '{effective_profile}'. Available profiles: {available}"
            raise ConfigError(msg)
        profile = config.profiles[effective_profile]
        for key in profile.model_fields_set:
            if key == "dsn":
                continue
            if key in resolved:
                resolved[key] = getattr(profile, key)
                sources[key] = f"profile: {effective_profile}"

    # Layer 4: Environment variables
    for env_var, field_name in _DB_ENV_VARS.items():
        value = os.environ.get(env_var)
        if value is not None:
            if field_name == "port":
                try:
                    resolved[field_name] = int(value)
                except ValueError:
                    msg = f"Invalid {env_var} value: '{value}'. Must be an integer"
                    raise ConfigError(msg) from None
            else:
                resolved[field_name] = value
            sources[field_name] = f"env: {env_var}"

    # Layer 5: DSN flag
    if dsn:
        dsn_fields = parse_dsn(dsn)
        for key, value in dsn_fields.items():
            if key in resolved:
                resolved[key] = value
                sources[key] = "dsn"

    # Layer 6: CLI flags (highest priority)
    cli_to_field = {
        "host": "host",
        "port": "port",
        "socket": "socket",
        "database": "dbname",
        "user": "user",
        "password": "password",  # pragma: allowlist secret
        "charset": "charset",
        "prefix": "table_prefix",
        "multisite": "multisite",
        "blog_id": "blog_id",
        "show_errors": "show_errors",
    }
    for cli_name, field_name in cli_to_field.items():
        value = cli_overrides.get(cli_name)
        if value is not None:
            resolved[field_name] = value
            sources[field_name] = f"cli: --{cli_name.replace('_', '-')}"

    resolved["active_profile"] = effective_profile
    resolved["sources"] = sources
    try:
        return ResolvedConfig(**resolved)
    except ValueError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
