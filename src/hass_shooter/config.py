"""
hass-shooter Configuration
==========================

This module handles configuration loading for the screenshot server.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. Options file (YAML, or the JSON add-on options file)
    3. Default values (lowest priority)

Environment Variable Mapping:
    HASS_SHOOTER_CONFIG            -> path of the options file
    HASS_SHOOTER_BASE_URL          -> hass_base_url
    HASS_SHOOTER_TOKEN             -> hass_token
    HASS_SHOOTER_LISTEN_ADDR       -> listen_addr
    HASS_SHOOTER_REFRESH_TIME      -> refresh_time
    HASS_SHOOTER_CAPTURE_BACKEND   -> capture.backend
    HASS_SHOOTER_TRANSFORM_BACKEND -> transform.backend
    HASS_SHOOTER_LOG_LEVEL         -> logging.level

Example options file (JSON is valid YAML):
    {
      "hass_base_url": "https://example.com",
      "hass_token": "ACCESS_TOKEN",
      "hass_pages": [{"path": "/lovelace/default_view", "scale": 1}],
      "width": 480,
      "height": 800,
      "rotation": 0,
      "listen_addr": ":8000",
      "refresh_time": 60,
      "min_idle_time": 5,
      "timeout": 60
    }
"""

import os
import logging
from pathlib import Path
from typing import List, Optional, Tuple

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator


logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "/data/options.json"


class ConfigError(Exception):
    """Raised when the configuration cannot be loaded or is invalid."""
    pass


# =============================================================================
# Configuration Models
# =============================================================================

class PageConfig(BaseModel):
    """A Home Assistant page to be captured into one cache slot."""

    path: str = Field(default="", description="URL path appended to hass_base_url")
    scale: float = Field(
        default=1.0,
        ge=0,
        description="Device scale factor used to take the screenshot (0 = 1)",
    )

    @property
    def effective_scale(self) -> float:
        return self.scale or 1.0


class MockCaptureConfig(BaseModel):
    """Mock capture backend configuration."""

    fail_paths: List[str] = Field(
        default_factory=list,
        description="Page paths for which the mock capture always fails",
    )
    delay_seconds: float = Field(
        default=0.0,
        ge=0,
        description="Artificial render latency",
    )


class CaptureConfig(BaseModel):
    """Page capture backend configuration."""

    backend: str = Field(
        default="playwright",
        description="Capture backend: 'playwright' or 'mock'",
    )
    browser_args: List[str] = Field(
        default_factory=list,
        description="Extra command line arguments passed to Chromium",
    )
    mock: MockCaptureConfig = Field(default_factory=MockCaptureConfig)


class TransformConfig(BaseModel):
    """Raster transform backend configuration."""

    backend: str = Field(
        default="imagemagick",
        description="Transform backend: 'imagemagick' or 'pillow'",
    )
    convert_binary: str = Field(
        default="convert",
        description="ImageMagick executable ('convert' or 'magick')",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="text", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for hass-shooter.

    Field names follow the add-on options file so an existing
    ``/data/options.json`` loads without changes.
    """

    hass_base_url: str = Field(default="", description="URL of the Home Assistant server")
    hass_token: str = Field(default="", description="Long-lived access token")
    hass_pages: List[PageConfig] = Field(
        default_factory=list,
        description="Pages to capture; slot i serves hass_pages[i]",
    )
    width: int = Field(default=0, ge=0, description="Output image width (display width)")
    height: int = Field(default=0, ge=0, description="Output image height (display height)")
    rotation: int = Field(default=0, description="Rotation in degrees applied to the output")
    listen_addr: str = Field(default=":8000", description="HTTP listen address")
    refresh_time: float = Field(default=60.0, gt=0, description="Seconds between refresh cycles")
    min_idle_time: float = Field(
        default=5.0,
        ge=0,
        description="Seconds without network requests to consider a page loaded",
    )
    timeout: float = Field(default=60.0, gt=0, description="Headless browser timeout in seconds")
    ignore_cert_errors: bool = Field(
        default=False,
        description="Ignore TLS certificate errors in the headless browser",
    )

    capture: CaptureConfig = Field(default_factory=CaptureConfig)
    transform: TransformConfig = Field(default_factory=TransformConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("hass_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.strip().rstrip("/")

    @model_validator(mode="after")
    def _check_required(self) -> "Settings":
        if not self.hass_base_url:
            raise ValueError("HASS base URL is missing")
        if not self.hass_token:
            raise ValueError("HASS token is missing")
        if not self.hass_pages:
            raise ValueError("no pages to capture")
        if self.width == 0 or self.height == 0:
            raise ValueError("width and height cannot be 0")
        if not self.listen_addr.strip():
            raise ValueError("listen address is missing")
        parse_listen_addr(self.listen_addr)
        return self

    @property
    def listen_host(self) -> str:
        return parse_listen_addr(self.listen_addr)[0]

    @property
    def listen_port(self) -> int:
        return parse_listen_addr(self.listen_addr)[1]


def parse_listen_addr(addr: str) -> Tuple[str, int]:
    """
    Split a listen address into host and port.

    Accepts ``":8000"``, ``"8000"``, ``"0.0.0.0:8000"`` and ``"[::1]:8000"``.
    An empty host means all interfaces.

    Raises:
        ValueError: If the port is missing or not a valid TCP port
    """
    addr = addr.strip()
    host, sep, port_str = addr.rpartition(":")
    if not sep:
        host, port_str = "", addr
    host = host.strip("[]") or "0.0.0.0"
    try:
        port = int(port_str)
    except ValueError:
        raise ValueError(f"invalid port in listen address: {addr!r}")
    if not 0 < port < 65536:
        raise ValueError(f"port out of range in listen address: {addr!r}")
    return host, port


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from an options file and environment variables.

    Priority (highest to lowest):
        1. Environment variables
        2. Options file
        3. Default values

    Args:
        config_path: Path to the options file. If None, searches common locations.

    Returns:
        Settings: Loaded and validated configuration

    Raises:
        ConfigError: If the file cannot be read or the result is invalid
    """
    if config_path is None:
        search_paths = [
            os.environ.get("HASS_SHOOTER_CONFIG", ""),
            DEFAULT_CONFIG_PATH,
            "config.yaml",
            "config.yml",
        ]
        for path in search_paths:
            if path and Path(path).exists():
                config_path = path
                break

    config_data = {}
    if config_path:
        logger.info(f"Loading config from: {config_path}")
        try:
            with open(config_path, "r") as f:
                config_data = yaml.safe_load(f) or {}
        except OSError as e:
            raise ConfigError(f"could not open file: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"could not decode config: {e}") from e
        if not isinstance(config_data, dict):
            raise ConfigError("could not decode config: top level must be a mapping")
    else:
        logger.warning("No config file found, using defaults and environment variables")

    try:
        _apply_env_overrides(config_data)
        return Settings.model_validate(config_data)
    except (ValidationError, ValueError) as e:
        raise ConfigError(f"invalid configuration: {e}") from e


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    if env_url := os.environ.get("HASS_SHOOTER_BASE_URL"):
        config_data["hass_base_url"] = env_url
    if env_token := os.environ.get("HASS_SHOOTER_TOKEN"):
        config_data["hass_token"] = env_token
    if env_addr := os.environ.get("HASS_SHOOTER_LISTEN_ADDR"):
        config_data["listen_addr"] = env_addr
    if env_refresh := os.environ.get("HASS_SHOOTER_REFRESH_TIME"):
        config_data["refresh_time"] = float(env_refresh)

    # Backends
    if env_capture := os.environ.get("HASS_SHOOTER_CAPTURE_BACKEND"):
        config_data.setdefault("capture", {})["backend"] = env_capture
    if env_transform := os.environ.get("HASS_SHOOTER_TRANSFORM_BACKEND"):
        config_data.setdefault("transform", {})["backend"] = env_transform

    # Logging settings
    if env_log := os.environ.get("HASS_SHOOTER_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log


def setup_logging(settings: Optional[Settings] = None, level: Optional[str] = None) -> None:
    """Configure logging based on settings; an explicit level wins."""
    level_name = level or (settings.logging.level if settings else "INFO")
    log_level = getattr(logging, level_name.upper(), logging.INFO)

    if settings is not None and settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
        force=True,
    )
