"""
Cast Telemetry Configuration
============================

This module handles configuration loading for the telemetry service.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    CAST_STREAM_URL            -> stream.url
    CAST_STREAM_ENABLED        -> stream.enabled
    CAST_RECONNECT_BACKOFF_MS  -> stream.reconnect_backoff_ms
    CAST_MAX_QUEUE_SIZE        -> stream.max_queue_size
    CAST_MEDIA_TYPES           -> engine.media_types (comma separated)
    CAST_MAX_FRAME_CACHE       -> engine.max_frame_cache
    CAST_MAX_PACKET_CACHE      -> engine.max_packet_cache
    CAST_OFFSET_LOWER_MS       -> clock.offset_lower_ms
    CAST_OFFSET_UPPER_MS       -> clock.offset_upper_ms
    CAST_PORT                  -> server.port
    CAST_LOG_LEVEL             -> logging.level
    PORT                       -> server.port (Cloud Run)

Example:
    from cast_telemetry.config import settings

    print(settings.engine.max_frame_cache)
    print(settings.stream.url)
"""

import os
import logging
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator

from cast_telemetry.models.events import MediaType


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class ServiceConfig(BaseModel):
    """Service identification configuration."""

    name: str = Field(default="cast-telemetry", description="Service name")
    version: str = Field(default="v0.1.0", description="Service version")


class EngineConfig(BaseModel):
    """Telemetry engine configuration."""

    media_types: List[MediaType] = Field(
        default_factory=lambda: [MediaType.AUDIO, MediaType.VIDEO],
        min_length=1,
        description="Media types to run an engine for",
    )
    max_frame_cache: int = Field(
        default=100,
        ge=1,
        description="Frame working-state entries retained per engine",
    )
    max_packet_cache: int = Field(
        default=1000,
        ge=1,
        description="Pending packet pairings retained per engine",
    )
    histogram_max_ms: int = Field(
        default=800,
        gt=0,
        description="Lower bound of the histogram overflow bucket (ms)",
    )
    histogram_bucket_ms: int = Field(
        default=20,
        gt=0,
        description="Histogram bucket width (ms)",
    )

    @model_validator(mode="after")
    def _check_media_types(self) -> "EngineConfig":
        if MediaType.UNKNOWN in self.media_types:
            raise ValueError("engine.media_types may only contain audio and video")
        if self.histogram_max_ms % self.histogram_bucket_ms != 0:
            raise ValueError("histogram_max_ms must be a multiple of histogram_bucket_ms")
        return self


class ClockConfig(BaseModel):
    """Static receiver clock offset bounds (receiver - sender)."""

    model_config = ConfigDict(allow_inf_nan=False)

    offset_lower_ms: Optional[float] = Field(
        default=None,
        description="Lower offset bound in milliseconds",
    )
    offset_upper_ms: Optional[float] = Field(
        default=None,
        description="Upper offset bound in milliseconds",
    )

    @model_validator(mode="after")
    def _check_bounds(self) -> "ClockConfig":
        if (self.offset_lower_ms is None) != (self.offset_upper_ms is None):
            raise ValueError("clock offset bounds must be set together")
        if self.offset_lower_ms is not None and self.offset_lower_ms > self.offset_upper_ms:
            raise ValueError("clock.offset_lower_ms must not exceed clock.offset_upper_ms")
        return self


class StreamConfig(BaseModel):
    """Upstream event feed configuration."""

    enabled: bool = Field(
        default=False,
        description="Consume events from the WebSocket feed",
    )
    url: str = Field(
        default="ws://localhost:9000/ws/events",
        description="WebSocket URL of the event feed",
    )
    reconnect_backoff_ms: int = Field(
        default=500,
        ge=100,
        description="Backoff in milliseconds between reconnect attempts",
    )
    max_reconnect_attempts: int = Field(
        default=0,
        ge=0,
        description="Consecutive failed connections tolerated (0 = unlimited)",
    )
    max_reconnect_backoff_ms: int = Field(
        default=10000,
        ge=100,
        description="Upper bound on the exponential reconnect backoff",
    )
    max_queue_size: int = Field(
        default=4096,
        ge=1,
        description="Maximum size of internal event buffer",
    )


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=8010, ge=1, le=65535, description="Bind port")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="json", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for the telemetry service.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    service: ServiceConfig = Field(default_factory=ServiceConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    clock: ClockConfig = Field(default_factory=ClockConfig)
    stream: StreamConfig = Field(default_factory=StreamConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file and environment variables.

    Priority (highest to lowest):
        1. Environment variables
        2. YAML config file
        3. Default values

    Args:
        config_path: Path to config.yaml. If None, searches common locations.

    Returns:
        Settings: Loaded configuration
    """
    if config_path is None:
        search_paths = [
            Path(os.environ.get("CAST_CONFIG", "config.yaml")),
            Path("config.yml"),
            Path(__file__).parent.parent.parent / "config.yaml",
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break

    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        logger.warning("No config file found, using defaults and environment variables")

    _apply_env_overrides(config_data)

    return Settings.model_validate(config_data)


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Stream settings
    if env_url := os.environ.get("CAST_STREAM_URL"):
        config_data.setdefault("stream", {})["url"] = env_url
    if env_enabled := os.environ.get("CAST_STREAM_ENABLED"):
        config_data.setdefault("stream", {})["enabled"] = env_enabled.lower() in ("1", "true", "yes")
    if env_backoff := os.environ.get("CAST_RECONNECT_BACKOFF_MS"):
        config_data.setdefault("stream", {})["reconnect_backoff_ms"] = int(env_backoff)
    if env_queue := os.environ.get("CAST_MAX_QUEUE_SIZE"):
        config_data.setdefault("stream", {})["max_queue_size"] = int(env_queue)

    # Engine settings
    if env_media := os.environ.get("CAST_MEDIA_TYPES"):
        config_data.setdefault("engine", {})["media_types"] = [
            m.strip() for m in env_media.split(",") if m.strip()
        ]
    if env_frames := os.environ.get("CAST_MAX_FRAME_CACHE"):
        config_data.setdefault("engine", {})["max_frame_cache"] = int(env_frames)
    if env_packets := os.environ.get("CAST_MAX_PACKET_CACHE"):
        config_data.setdefault("engine", {})["max_packet_cache"] = int(env_packets)

    # Clock offset
    if env_lower := os.environ.get("CAST_OFFSET_LOWER_MS"):
        config_data.setdefault("clock", {})["offset_lower_ms"] = float(env_lower)
    if env_upper := os.environ.get("CAST_OFFSET_UPPER_MS"):
        config_data.setdefault("clock", {})["offset_upper_ms"] = float(env_upper)

    # Server settings (Cloud Run uses PORT env var)
    if env_port := os.environ.get("PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)
    elif env_port := os.environ.get("CAST_PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)

    # Logging settings
    if env_log := os.environ.get("CAST_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
    )


# =============================================================================
# Global Settings Instance
# =============================================================================

# Global settings instance - loaded on import
settings = load_config()
setup_logging(settings)
