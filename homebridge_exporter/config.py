"""Application configuration via environment variables and .env file.

Uses pydantic-settings to load configuration from environment variables
with optional fallback to a .env file. All settings can be overridden
by setting the corresponding environment variable.
"""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from homebridge_exporter.logging_config import resolve_log_level


class Settings(BaseSettings):
    """Central configuration for the Homebridge exporter.

    Attributes:
        HOMEBRIDGE_USERNAME: Homebridge UI login name.
        HOMEBRIDGE_PASSWORD: Homebridge UI password.
        HOMEBRIDGE_URI: Base URL of the Homebridge UI (e.g. http://pi:8581).
        EXPORTER_HOST: Address the metrics server binds to.
        EXPORTER_PORT: Port serving ``/metrics`` for the Prometheus scraper.
        METRICS_PREFIX: Namespace prepended to every exported metric name.
        AUTH_KEYFILE: YAML file listing the bearer keys allowed to restart.
        REQUEST_TIMEOUT: Timeout in seconds for calls to the Homebridge API.
        LOG_LEVEL: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    HOMEBRIDGE_USERNAME: str
    HOMEBRIDGE_PASSWORD: str
    HOMEBRIDGE_URI: str = "http://localhost:8581"
    EXPORTER_HOST: str = "0.0.0.0"
    EXPORTER_PORT: int = Field(default=8001, ge=1, le=65535)
    METRICS_PREFIX: str = "homebridge"
    AUTH_KEYFILE: str = "authorization_keys.yaml"
    REQUEST_TIMEOUT: float = Field(default=10.0, gt=0)
    LOG_LEVEL: str = "INFO"

    @field_validator("HOMEBRIDGE_URI")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("LOG_LEVEL")
    @classmethod
    def _known_log_level(cls, value: str) -> str:
        resolve_log_level(value)
        return value.strip().upper()
