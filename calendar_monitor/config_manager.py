"""Configuration management for calendar_monitor."""

from __future__ import annotations

import logging
import os
from datetime import timedelta
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from .exceptions import ConfigError
from .fetcher import DEFAULT_FETCH_TIMEOUT, resolve_sources
from .meeting_cache import DEFAULT_CACHE_TTL_SECONDS
from .models import LocalSource, RemoteSource

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3000
DEFAULT_FLOATING_OFFSET_HOURS = 3


class MonitorConfig(BaseModel):
    """Resolved application configuration."""

    ics_sources: list[str] = Field(default_factory=list, description="ICS paths or URLs")
    server_bind: str = DEFAULT_HOST
    server_port: int = DEFAULT_PORT
    cache_ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS
    fetch_timeout_seconds: float = DEFAULT_FETCH_TIMEOUT
    floating_offset_hours: float = DEFAULT_FLOATING_OFFSET_HOURS
    log_level: Optional[str] = None
    google_access_token: Optional[str] = Field(
        default=None, description="Pre-obtained OAuth access token for the remote calendar"
    )

    @property
    def floating_offset(self) -> timedelta:
        return timedelta(hours=self.floating_offset_hours)

    @property
    def bind_address(self) -> str:
        return f"{self.server_bind}:{self.server_port}"

    def resolved_sources(self) -> list[LocalSource | RemoteSource]:
        return resolve_sources(self.ics_sources, timeout=self.fetch_timeout_seconds)


def _split_paths(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def _parse_number(name: str, value: str, kind: type) -> int | float:
    try:
        number = kind(value)
    except ValueError as e:
        raise ConfigError(f"Invalid {name}: {value!r}") from e
    if number < 0:
        raise ConfigError(f"Invalid {name}: must not be negative")
    return number


class ConfigManager:
    """Builds configuration from environment variables and an optional .env file."""

    def __init__(self, env_file_path: Path | None = None):
        """Initialize configuration manager.

        Args:
            env_file_path: Optional path to .env file (defaults to .env in current directory)
        """
        self.env_file_path = env_file_path or Path.cwd() / ".env"

    def load_env_file(self) -> list[str]:
        """Load .env file into the environment without overriding existing variables.

        Returns:
            Keys that were set from the file
        """
        if not self.env_file_path.exists():
            logger.debug("No .env file found at %s", self.env_file_path)
            return []

        try:
            content = self.env_file_path.read_text(encoding="utf-8")
        except OSError:
            logger.warning("Failed to read .env file %s", self.env_file_path, exc_info=True)
            return []

        set_keys = []
        for raw_line in content.splitlines():
            line = raw_line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue

            key, val = line.split("=", 1)
            key = key.strip()
            val = val.strip().strip('"').strip("'")
            if key and key not in os.environ:
                os.environ[key] = val
                set_keys.append(key)

        if set_keys:
            logger.info("Loaded .env file from: %s", self.env_file_path)
            logger.debug("Loaded .env defaults for keys: %s", ", ".join(set_keys))
        return set_keys

    def build_config_from_env(self) -> MonitorConfig:
        """Build configuration from environment variables.

        Recognizes:
        - ICS_FILE_PATHS -> comma-separated locators (trimmed, de-duplicated)
        - ICS_FILE_PATH -> single legacy locator, merged after ICS_FILE_PATHS
        - CALENDAR_MONITOR_HOST / CALENDAR_MONITOR_PORT -> server bind
        - CALENDAR_MONITOR_CACHE_TTL -> cache TTL in seconds
        - CALENDAR_MONITOR_FETCH_TIMEOUT -> per-source fetch timeout in seconds
        - CALENDAR_MONITOR_FLOATING_OFFSET_HOURS -> offset for floating timestamps
        - CALENDAR_MONITOR_LOG_LEVEL -> root log level
        - GOOGLE_ACCESS_TOKEN -> bearer token for the remote calendar

        Raises:
            ConfigError: If a numeric variable is not a valid number
        """
        env = os.environ
        locators: list[str] = []

        if env.get("ICS_FILE_PATHS"):
            logger.info("Found ICS_FILE_PATHS: %s", env["ICS_FILE_PATHS"])
            locators.extend(_split_paths(env["ICS_FILE_PATHS"]))
        if env.get("ICS_FILE_PATH"):
            logger.info("Found ICS_FILE_PATH: %s", env["ICS_FILE_PATH"])
            locators.append(env["ICS_FILE_PATH"].strip())

        cfg = MonitorConfig(ics_sources=list(dict.fromkeys(locators)))

        if env.get("CALENDAR_MONITOR_HOST"):
            cfg.server_bind = env["CALENDAR_MONITOR_HOST"]
        if env.get("CALENDAR_MONITOR_PORT"):
            cfg.server_port = int(
                _parse_number("CALENDAR_MONITOR_PORT", env["CALENDAR_MONITOR_PORT"], int)
            )
        if env.get("CALENDAR_MONITOR_CACHE_TTL"):
            cfg.cache_ttl_seconds = int(
                _parse_number("CALENDAR_MONITOR_CACHE_TTL", env["CALENDAR_MONITOR_CACHE_TTL"], int)
            )
        if env.get("CALENDAR_MONITOR_FETCH_TIMEOUT"):
            cfg.fetch_timeout_seconds = float(
                _parse_number(
                    "CALENDAR_MONITOR_FETCH_TIMEOUT", env["CALENDAR_MONITOR_FETCH_TIMEOUT"], float
                )
            )
        if env.get("CALENDAR_MONITOR_FLOATING_OFFSET_HOURS"):
            value = env["CALENDAR_MONITOR_FLOATING_OFFSET_HOURS"]
            try:
                cfg.floating_offset_hours = float(value)
            except ValueError as e:
                raise ConfigError(f"Invalid CALENDAR_MONITOR_FLOATING_OFFSET_HOURS: {value!r}") from e
        if env.get("CALENDAR_MONITOR_LOG_LEVEL"):
            cfg.log_level = env["CALENDAR_MONITOR_LOG_LEVEL"].upper()
        if env.get("GOOGLE_ACCESS_TOKEN"):
            cfg.google_access_token = env["GOOGLE_ACCESS_TOKEN"]

        if not cfg.ics_sources and not cfg.google_access_token:
            logger.warning(
                "No ICS sources or Google access token configured; set ICS_FILE_PATHS "
                "or ICS_FILE_PATH"
            )

        logger.info("Configured %d ICS sources: %s", len(cfg.ics_sources), cfg.ics_sources)
        return cfg

    def load_full_config(self) -> MonitorConfig:
        """Load the .env file, then build configuration from the environment."""
        self.load_env_file()
        return self.build_config_from_env()
