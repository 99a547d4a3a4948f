"""ThoughtChain MCP Configuration.

Centralized configuration management with environment variable support.

Usage:
    from thoughtchain.config import get_config
    print(get_config().session.session_file)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from loguru import logger

from thoughtchain.utils.errors import ConfigException

DEFAULT_SESSION_FILE = Path.home() / ".thoughtchain" / "thought_session.json"
TRANSPORTS = ("stdio", "http", "sse")


def _get_env(key: str, default: str = "") -> str:
    """Get environment variable, treating empty string as unset."""
    value = os.getenv(key, default)
    return value if value else default


def _get_env_int(key: str, default: int) -> int:
    """Get environment variable as integer."""
    value = os.getenv(key)
    if value:
        try:
            return int(value)
        except ValueError:
            logger.warning(f"Invalid integer for {key}: {value}, using default {default}")
    return default


def _get_env_float(key: str, default: float) -> float:
    """Get environment variable as float."""
    value = os.getenv(key)
    if value:
        try:
            return float(value)
        except ValueError:
            logger.warning(f"Invalid number for {key}: {value}, using default {default}")
    return default


def _get_env_bool(key: str, default: bool = False) -> bool:
    """Get environment variable as boolean."""
    value = _get_env(key, "").lower()
    if not value:
        return default
    return value in ("true", "1", "yes")


@dataclass(frozen=True)
class ServerConfig:
    """Server runtime configuration."""

    name: str = field(default_factory=lambda: _get_env("SERVER_NAME", "ThoughtChain-MCP"))
    transport: str = field(default_factory=lambda: _get_env("SERVER_TRANSPORT", "stdio"))
    host: str = field(default_factory=lambda: _get_env("SERVER_HOST", "127.0.0.1"))
    port: int = field(default_factory=lambda: _get_env_int("SERVER_PORT", 8000))

    def __post_init__(self) -> None:
        if self.transport not in TRANSPORTS:
            raise ConfigException(
                f"Unknown SERVER_TRANSPORT '{self.transport}', expected one of: "
                f"{', '.join(TRANSPORTS)}"
            )


@dataclass(frozen=True)
class SessionConfig:
    """Session persistence and lifecycle configuration."""

    session_file: Path = field(
        default_factory=lambda: Path(
            _get_env("THOUGHTCHAIN_SESSION_FILE", str(DEFAULT_SESSION_FILE))
        ).expanduser()
    )
    ttl_hours: float = field(default_factory=lambda: _get_env_float("SESSION_TTL_HOURS", 24.0))
    max_dead_ends: int = field(default_factory=lambda: _get_env_int("MAX_DEAD_ENDS", 20))
    persistence_enabled: bool = field(
        default_factory=lambda: _get_env_bool("PERSISTENCE_ENABLED", True)
    )


@dataclass(frozen=True)
class Config:
    """Root configuration object."""

    server: ServerConfig = field(default_factory=ServerConfig)
    session: SessionConfig = field(default_factory=SessionConfig)

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary (for logging/debugging)."""
        return {
            "server": {
                "name": self.server.name,
                "transport": self.server.transport,
                "host": self.server.host,
                "port": self.server.port,
            },
            "session": {
                "session_file": str(self.session.session_file),
                "ttl_hours": self.session.ttl_hours,
                "max_dead_ends": self.session.max_dead_ends,
                "persistence_enabled": self.session.persistence_enabled,
            },
        }


# Global config instance (lazy-loaded)
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def reload_config() -> Config:
    """Reload configuration (for testing)."""
    global _config
    _config = Config()
    return _config
