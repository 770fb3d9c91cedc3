"""
Service settings management.

The startup contract (``--lm.type``, ``--lm.file``, ``--lm.order``,
``--port``) lives in :mod:`memt_server.startup` and comes from the command
line only.  Everything else the process needs is loaded here from multiple
sources with a clear priority order:

    1. Environment variables (highest priority) - for containerized deployments
    2. Config file (config/server.ini) - for static deployments
    3. Built-in defaults (lowest priority) - sensible fallbacks

Configuration is loaded once at module import time and cached. The
ServiceSettings dataclass provides typed access to all settings.

Usage:
    from memt_server.config import config

    print(config.server.host)
    print(config.request.max_bytes)

Environment Variable Mapping:
    MEMT_HOST                  -> server.host
    MEMT_REQUEST_MAX_BYTES     -> request.max_bytes
    MEMT_REQUEST_READ_TIMEOUT  -> request.read_timeout_seconds
    MEMT_PIPELINE              -> decode.pipeline
    MEMT_LOG_LEVEL             -> logging.level
    MEMT_LOG_FORMAT            -> logging.format
"""

import configparser
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

# =============================================================================
# PATH CONFIGURATION
# =============================================================================

# Project root directory (contains src/, config/)
PROJECT_ROOT = Path(__file__).parent.parent.parent

# Config file paths
CONFIG_DIR = PROJECT_ROOT / "config"
CONFIG_FILE = CONFIG_DIR / "server.ini"
CONFIG_EXAMPLE = CONFIG_DIR / "server.example.ini"

DEFAULT_PIPELINE = "memt_server.decode.baseline:build_pipeline"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("simple", "detailed", "json")


# =============================================================================
# CONFIGURATION DATACLASSES
# =============================================================================


@dataclass
class ServerSettings:
    """Network server configuration."""

    host: str = "0.0.0.0"  # nosec B104 - intentional for server binding


@dataclass
class RequestSettings:
    """Per-connection request bounds.

    Both default to 0, meaning unbounded: a client may send any amount and
    take as long as it likes, and it holds the single connection slot while
    it does.
    """

    max_bytes: int = 0
    read_timeout_seconds: float = 0.0


@dataclass
class DecodeSettings:
    """Decode pipeline selection."""

    pipeline: str = DEFAULT_PIPELINE


@dataclass
class LoggingSettings:
    """Logging configuration."""

    level: str = "INFO"
    format: Literal["simple", "detailed", "json"] = "detailed"


@dataclass
class ServiceSettings:
    """
    Complete service configuration.

    Aggregates all settings sections. Access via the module-level `config`
    singleton, or build a private one with `load_config()` / the dataclass
    constructor (tests do the latter).
    """

    server: ServerSettings = field(default_factory=ServerSettings)
    request: RequestSettings = field(default_factory=RequestSettings)
    decode: DecodeSettings = field(default_factory=DecodeSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)

    @property
    def request_is_bounded(self) -> bool:
        """True when either a size or a time bound is configured."""
        return self.request.max_bytes > 0 or self.request.read_timeout_seconds > 0


# =============================================================================
# CONFIGURATION LOADING
# =============================================================================


def _load_from_ini(parser: configparser.ConfigParser, cfg: ServiceSettings) -> None:
    """Load configuration from parsed INI file into ServiceSettings."""
    # Server section
    if parser.has_section("server"):
        if parser.has_option("server", "host"):
            cfg.server.host = parser.get("server", "host")

    # Request section
    if parser.has_section("request"):
        if parser.has_option("request", "max_bytes"):
            cfg.request.max_bytes = parser.getint("request", "max_bytes")
        if parser.has_option("request", "read_timeout_seconds"):
            cfg.request.read_timeout_seconds = parser.getfloat("request", "read_timeout_seconds")

    # Decode section
    if parser.has_section("decode"):
        if parser.has_option("decode", "pipeline"):
            cfg.decode.pipeline = parser.get("decode", "pipeline").strip()

    # Logging section
    if parser.has_section("logging"):
        if parser.has_option("logging", "level"):
            level = parser.get("logging", "level").strip().upper()
            if level in LOG_LEVELS:
                cfg.logging.level = level
        if parser.has_option("logging", "format"):
            val = parser.get("logging", "format").lower()
            if val in LOG_FORMATS:
                cfg.logging.format = val  # type: ignore[assignment]


def _apply_env_overrides(cfg: ServiceSettings) -> None:
    """Apply environment variable overrides to configuration."""
    # Server settings
    if env_host := os.getenv("MEMT_HOST"):
        cfg.server.host = env_host

    # Request settings
    if env_max := os.getenv("MEMT_REQUEST_MAX_BYTES"):
        cfg.request.max_bytes = int(env_max)
    if env_timeout := os.getenv("MEMT_REQUEST_READ_TIMEOUT"):
        cfg.request.read_timeout_seconds = float(env_timeout)

    # Decode settings
    if env_pipeline := os.getenv("MEMT_PIPELINE"):
        cfg.decode.pipeline = env_pipeline.strip()

    # Logging settings
    if env_log := os.getenv("MEMT_LOG_LEVEL"):
        if env_log.strip().upper() in LOG_LEVELS:
            cfg.logging.level = env_log.strip().upper()
    if env_format := os.getenv("MEMT_LOG_FORMAT"):
        if env_format.lower() in LOG_FORMATS:
            cfg.logging.format = env_format.lower()  # type: ignore[assignment]


def load_config() -> ServiceSettings:
    """
    Load configuration from all sources with proper priority.

    Priority (highest wins):
        1. Environment variables
        2. config/server.ini
        3. config/server.example.ini (fallback for development)
        4. Built-in defaults

    Returns:
        ServiceSettings: Fully populated configuration object.
    """
    cfg = ServiceSettings()

    # Determine which config file to use
    config_file = None
    if CONFIG_FILE.exists():
        config_file = CONFIG_FILE
    elif CONFIG_EXAMPLE.exists():
        # Use example as fallback for development
        config_file = CONFIG_EXAMPLE

    # Load from INI file if available
    if config_file:
        parser = configparser.ConfigParser()
        parser.read(config_file)
        _load_from_ini(parser, cfg)

    # Apply environment variable overrides (highest priority)
    _apply_env_overrides(cfg)

    return cfg


def reload_config() -> "ServiceSettings":
    """
    Reload configuration from disk and environment.

    This updates the module-level `config` singleton. A server that is
    already listening keeps the settings it was started with.

    Returns:
        ServiceSettings: The newly loaded configuration.
    """
    global config
    config = load_config()
    return config


# =============================================================================
# MODULE-LEVEL SINGLETON
# =============================================================================

# Load configuration once at module import time
config = load_config()


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def config_summary_lines(cfg: ServiceSettings | None = None) -> list[str]:
    """
    Render the configuration summary logged by ``memt-server run``.

    Args:
        cfg: Settings to describe. Defaults to the module singleton.

    Returns:
        One string per summary line.
    """
    cfg = cfg or config
    if CONFIG_FILE.exists():
        source = str(CONFIG_FILE)
    elif CONFIG_EXAMPLE.exists():
        source = f"{CONFIG_EXAMPLE} (example fallback)"
    else:
        source = "built-in defaults"

    max_bytes = cfg.request.max_bytes or "unbounded"
    timeout = cfg.request.read_timeout_seconds or "none"
    return [
        f"Config source: {source}",
        f"Bind host:     {cfg.server.host}",
        f"Request limit: {max_bytes}",
        f"Read timeout:  {timeout}",
        f"Pipeline:      {cfg.decode.pipeline}",
        f"Log level:     {cfg.logging.level} ({cfg.logging.format})",
    ]
