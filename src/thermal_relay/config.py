"""
ThermalRelay Configuration
==========================

This module handles configuration loading for the sensor relay.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    RELAY_SENSOR_ID       -> sensor.sensor_id
    RELAY_SENSOR_BACKEND  -> sensor.backend
    RELAY_PIPE_PATH       -> transport.pipe_path
    RELAY_REOPEN_DELAY    -> transport.reopen_delay_seconds
    RELAY_THRESHOLD_MIN   -> thresholds.min
    RELAY_THRESHOLD_MAX   -> thresholds.max
    RELAY_COLLECTOR_URL   -> collector.base_url
    RELAY_RETRY_LIMIT     -> collector.retry_limit
    RELAY_RETRY_DELAY     -> collector.retry_delay_seconds
    RELAY_MAX_BUFFER      -> collector.max_buffer_size
    RELAY_PORT            -> server.port
    RELAY_LOG_LEVEL       -> logging.level
    PORT                  -> server.port

Example:
    from thermal_relay.config import settings

    print(settings.transport.pipe_path)
    print(settings.thresholds.max)
"""

import os
import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, model_validator


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class AppConfig(BaseModel):
    """Service identification configuration."""

    name: str = Field(default="thermal-relay", description="Service name")
    version: str = Field(default="v0.1.0", description="Service version")


class SensorConfig(BaseModel):
    """Thermal sensor configuration (producer side)."""

    sensor_id: str = Field(default="sensor_1", min_length=1, description="Sensor identifier")
    backend: str = Field(
        default="mock",
        description="Sensor backend: 'mock' or 'i2c'",
    )
    device: str = Field(default="/dev/i2c-0", description="I2C bus device node")
    address: int = Field(default=0x0A, ge=0, le=0x7F, description="7-bit I2C address")
    command_register: int = Field(
        default=0x4C,
        ge=0,
        le=0xFF,
        description="Measurement command register",
    )
    read_interval_ms: int = Field(
        default=300,
        ge=10,
        description="Delay between consecutive frame reads",
    )
    startup_delay_ms: int = Field(
        default=620,
        ge=0,
        description="Settling delay after power-on before the first read",
    )


class TransportConfig(BaseModel):
    """Named pipe transport configuration."""

    pipe_path: str = Field(
        default="/tmp/sensor_data_pipe",
        description="Filesystem path of the producer/consumer FIFO",
    )
    reopen_delay_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Delay before reopening after an idle session or open failure",
    )


class ThresholdsConfig(BaseModel):
    """Normal temperature range (degC)."""

    min: float = Field(default=20.0, description="Lowest normal pixel temperature")
    max: float = Field(default=70.0, description="Highest normal pixel temperature")

    @model_validator(mode="after")
    def _check_range(self) -> "ThresholdsConfig":
        if self.min > self.max:
            raise ValueError(
                f"thresholds.min ({self.min}) must not exceed thresholds.max ({self.max})"
            )
        return self


class CollectorConfig(BaseModel):
    """Remote collector delivery configuration."""

    base_url: str = Field(
        default="http://localhost:8000",
        description="Base URL of the remote collector",
    )
    temperature_path: str = Field(default="/temperature-data", description="Temperature route")
    alerts_path: str = Field(default="/alerts", description="Alert route")
    timeout_seconds: float = Field(default=5.0, gt=0, description="Per-request timeout")
    retry_limit: int = Field(
        default=5,
        ge=0,
        description="Retries after the first failed attempt of a live record",
    )
    retry_delay_seconds: float = Field(
        default=3.0,
        ge=0,
        description="Fixed delay between delivery attempts",
    )
    max_buffer_size: int = Field(
        default=0,
        ge=0,
        description="Maximum buffered records (0 = unbounded, oldest dropped when full)",
    )


class ServerConfig(BaseModel):
    """Status server configuration."""

    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=3000, ge=1, le=65535, description="Bind port")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="text", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for ThermalRelay.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    app: AppConfig = Field(default_factory=AppConfig)
    sensor: SensorConfig = Field(default_factory=SensorConfig)
    transport: TransportConfig = Field(default_factory=TransportConfig)
    thresholds: ThresholdsConfig = Field(default_factory=ThresholdsConfig)
    collector: CollectorConfig = Field(default_factory=CollectorConfig)
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
            Path("config.yaml"),
            Path("config.yml"),
            Path("/etc/thermal-relay/config.yaml"),
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

    # Sensor settings
    if env_id := os.environ.get("RELAY_SENSOR_ID"):
        config_data.setdefault("sensor", {})["sensor_id"] = env_id
    if env_backend := os.environ.get("RELAY_SENSOR_BACKEND"):
        config_data.setdefault("sensor", {})["backend"] = env_backend

    # Transport settings
    if env_pipe := os.environ.get("RELAY_PIPE_PATH"):
        config_data.setdefault("transport", {})["pipe_path"] = env_pipe
    if env_reopen := os.environ.get("RELAY_REOPEN_DELAY"):
        config_data.setdefault("transport", {})["reopen_delay_seconds"] = float(env_reopen)

    # Threshold overrides
    if env_min := os.environ.get("RELAY_THRESHOLD_MIN"):
        config_data.setdefault("thresholds", {})["min"] = float(env_min)
    if env_max := os.environ.get("RELAY_THRESHOLD_MAX"):
        config_data.setdefault("thresholds", {})["max"] = float(env_max)

    # Collector settings
    if env_url := os.environ.get("RELAY_COLLECTOR_URL"):
        config_data.setdefault("collector", {})["base_url"] = env_url
    if env_retries := os.environ.get("RELAY_RETRY_LIMIT"):
        config_data.setdefault("collector", {})["retry_limit"] = int(env_retries)
    if env_delay := os.environ.get("RELAY_RETRY_DELAY"):
        config_data.setdefault("collector", {})["retry_delay_seconds"] = float(env_delay)
    if env_buffer := os.environ.get("RELAY_MAX_BUFFER"):
        config_data.setdefault("collector", {})["max_buffer_size"] = int(env_buffer)

    # Server settings
    if env_port := os.environ.get("PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)
    elif env_port := os.environ.get("RELAY_PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)

    # Logging settings
    if env_log := os.environ.get("RELAY_LOG_LEVEL"):
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
