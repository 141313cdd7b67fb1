"""Configuration values for the tickerwatch package."""

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def default_config_dir() -> Path:
    """Platform config directory, honouring XDG_CONFIG_HOME."""
    base = os.getenv("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(base) / "tickerwatch"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    polygon_api_key: str | None = Field(None, description="Polygon.io API key")

    log_level: str = Field("INFO", description="Log level")
    log_file: str | None = Field(
        None, description="Log file path (defaults to the config directory)"
    )

    config_path: str | None = Field(
        None, description="Path to the persisted symbol config file"
    )

    fetch_timeout_seconds: float = Field(
        15.0, gt=0, description="Seconds before a pending fetch is marked as timed out"
    )
    max_fetch_workers: int = Field(8, ge=1, description="Concurrent fetch threads")
    refresh_interval_seconds: int = Field(
        300, ge=0, description="Seconds between automatic refreshes (0 disables)"
    )
    prediction_horizon: int = Field(5, ge=1, description="Number of projected prices")

    sentry_dsn: str | None = Field(None, description="Sentry DSN for error reporting")
    sentry_environment: str = Field("production", description="Sentry environment")
    sentry_traces_sample_rate: float = Field(
        0.0, ge=0.0, le=1.0, description="Sentry traces sample rate"
    )

    def get_config_path(self) -> Path:
        if self.config_path:
            return Path(self.config_path).expanduser()
        return default_config_dir() / "config.json"

    def get_log_path(self) -> Path:
        if self.log_file:
            return Path(self.log_file).expanduser()
        return default_config_dir() / "tickerwatch.log"


settings = Settings()
