"""JSON persistence for the tracked symbol list.

The config file holds nothing but the symbol list and the analysis period. It
is read once at startup and written only when an edit session is saved.
"""

import os
from pathlib import Path

import sentry_sdk
from pydantic import ValidationError

from tickerwatch.config import settings
from tickerwatch.exceptions import ConfigError, PersistenceError
from tickerwatch.logging import logger
from tickerwatch.models import StockConfig


class ConfigStore:
    """Reads and writes a StockConfig at a fixed path."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or settings.get_config_path()

    def load_config(self) -> StockConfig:
        """
        Load the persisted config.

        Returns:
            The stored config, or the built-in defaults when no file exists

        Raises:
            ConfigError: If the file exists but cannot be read or parsed
        """
        if not self.path.exists():
            logger.info("No config file, using defaults path={path}", path=str(self.path))
            return StockConfig()

        try:
            content = self.path.read_bytes()
            config = StockConfig.model_validate_json(content)
        except (OSError, UnicodeDecodeError, ValidationError) as e:
            logger.warning(
                "Failed to load config path={path} error={error}",
                path=str(self.path),
                error=str(e),
            )
            raise ConfigError(f"Could not read {self.path}, using defaults") from e

        logger.info(
            "Loaded config path={path} symbols={symbols} period={period}",
            path=str(self.path),
            symbols=config.symbols,
            period=config.analysis_period_days,
        )
        return config

    def load_or_default(self) -> tuple[StockConfig, str | None]:
        """Load the config, falling back to defaults with a warning message."""
        try:
            return self.load_config(), None
        except ConfigError as e:
            return StockConfig(), e.message

    def save_config(self, config: StockConfig) -> None:
        """
        Write `config` to disk, replacing the previous file atomically.

        Raises:
            PersistenceError: If the file cannot be written
        """
        sentry_sdk.add_breadcrumb(
            category="config",
            message="Saving config",
            level="info",
            data={"path": str(self.path), "symbols": config.symbols},
        )
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(config.model_dump_json(indent=2), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error(
                "Failed to save config path={path} error={error}",
                path=str(self.path),
                error=str(e),
            )
            raise PersistenceError(f"Could not save config: {e.strerror or e}") from e

        logger.info("Saved config path={path} symbols={symbols}", path=str(self.path), symbols=config.symbols)
