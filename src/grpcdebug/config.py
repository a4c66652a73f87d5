"""Configuration dataclasses and loader for grpcdebug.

A config file maps short target names to connection settings and tunes
deadlines and paging::

    servers:
      - pattern: prod
        real_address: prod.example.com:443
        security: tls
        credential_file: /etc/ssl/prod-ca.pem
        server_name_override: prod.example.com
    timeouts:
      connect: 5
      rpc: 15
    pagination:
      page_size: 100
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from src.shared.config import DebugSettings
from src.shared.constants import (
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_PAGE_SIZE,
    DEFAULT_RPC_TIMEOUT,
    LOCAL_CONFIG_FILE,
    USER_CONFIG_DIR,
    USER_CONFIG_FILE,
)
from src.shared.errors import ConfigurationError

logger = logging.getLogger(__name__)


class SecurityMode(str, Enum):
    """Transport security used to reach a target."""
    INSECURE = "insecure"
    TLS = "tls"


@dataclass
class ServerConfig:
    """How to connect to one target."""

    pattern: str = ""
    real_address: str = ""
    security: SecurityMode = SecurityMode.INSECURE
    credential_file: str = ""
    server_name_override: str = ""


@dataclass
class TimeoutConfig:
    """Deadlines in seconds."""

    connect: float = DEFAULT_CONNECT_TIMEOUT
    rpc: float = DEFAULT_RPC_TIMEOUT


@dataclass
class PaginationConfig:
    page_size: int = DEFAULT_PAGE_SIZE


@dataclass
class GrpcDebugConfig:
    """Top-level configuration composing all sub-configs."""

    servers: list[ServerConfig] = field(default_factory=list)
    timeouts: TimeoutConfig = field(default_factory=TimeoutConfig)
    pagination: PaginationConfig = field(default_factory=PaginationConfig)


def _pick(data: dict[str, Any], cls: type) -> dict[str, Any]:
    """Filter *data* to only keys accepted by *cls*."""
    valid = {f.name for f in cls.__dataclass_fields__.values()}
    return {k: v for k, v in data.items() if k in valid}


def parse_security_mode(value: str) -> SecurityMode:
    """Case-insensitive security mode lookup.

    Raises:
        ConfigurationError: If *value* names no known mode.
    """
    try:
        return SecurityMode(str(value).strip().lower())
    except ValueError:
        raise ConfigurationError(f"Unrecognized security mode: {value}") from None


def default_config_path(settings: DebugSettings | None = None) -> Path | None:
    """Locate the config file to use, if any.

    Lookup order: ``$GRPCDEBUG_CONFIG``, ``./grpcdebug_config.yaml``, then
    ``grpcdebug/config.yaml`` under the user config directory.  An explicit
    ``$GRPCDEBUG_CONFIG`` is returned even if it does not exist so that the
    loader can report it.
    """
    settings = settings or DebugSettings()
    if settings.config_path:
        return Path(settings.config_path)
    local = Path(LOCAL_CONFIG_FILE)
    if local.is_file():
        return local
    if settings.xdg_config_home:
        user_dir = Path(settings.xdg_config_home)
    else:
        user_dir = Path(os.path.expanduser("~")) / ".config"
    user = user_dir / USER_CONFIG_DIR / USER_CONFIG_FILE
    if user.is_file():
        return user
    return None


def load_debug_config(path: Path | str | None = None) -> GrpcDebugConfig:
    """Load grpcdebug configuration from a YAML file.

    Missing sections fall back to defaults.  Unknown keys are ignored so
    that forward-compatible config files work.

    Args:
        path: Path to config YAML.  If ``None``, returns full defaults.

    Returns:
        Populated configuration dataclass.

    Raises:
        ConfigurationError: If the file cannot be read, is not valid YAML,
            or names an unknown security mode.
    """
    if path is None:
        return GrpcDebugConfig()

    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except OSError as exc:
        raise ConfigurationError(f"Cannot read config file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid config file {path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Invalid config file {path}: expected a mapping")

    servers = []
    for entry in raw.get("servers") or []:
        if not isinstance(entry, dict):
            raise ConfigurationError(f"Invalid server entry in {path}: {entry!r}")
        fields = _pick(entry, ServerConfig)
        if "security" in fields:
            fields["security"] = parse_security_mode(fields["security"])
        servers.append(ServerConfig(**fields))

    cfg = GrpcDebugConfig(
        servers=servers,
        timeouts=TimeoutConfig(**_pick(raw.get("timeouts") or {}, TimeoutConfig)),
        pagination=PaginationConfig(**_pick(raw.get("pagination") or {}, PaginationConfig)),
    )
    logger.debug("Loaded config from %s: %s", path, cfg)
    return cfg


def resolve_server_config(
    target: str,
    config: GrpcDebugConfig,
    security: str | None = None,
    credential_file: str | None = None,
    server_name_override: str | None = None,
) -> ServerConfig:
    """Build the connection settings for *target*.

    A server whose pattern equals *target* supplies the defaults; otherwise
    the target itself is the address.  Non-empty flag values override the
    file.

    Raises:
        ConfigurationError: On an unknown security mode, or TLS without a
            credential file.
    """
    server = next(
        (replace(s) for s in config.servers if s.pattern == target),
        ServerConfig(pattern=target),
    )
    if not server.real_address:
        server.real_address = target
    if credential_file:
        server.credential_file = credential_file
    if server_name_override:
        server.server_name_override = server_name_override
    if security:
        server.security = parse_security_mode(security)
    if server.security is SecurityMode.TLS and not server.credential_file:
        raise ConfigurationError("Please specify credential file under [tls] mode.")
    return server
