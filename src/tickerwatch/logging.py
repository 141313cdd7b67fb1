"""Centralized logging configuration using loguru."""

from pathlib import Path

from loguru import logger

# The terminal belongs to curses while the app runs, so nothing goes to stderr.
logger.remove()


def configure_logging(path: Path, level: str = "INFO") -> None:
    """Send log records to a rotating file at `path`."""
    path.parent.mkdir(parents=True, exist_ok=True)
    logger.remove()
    logger.add(path, level=level.upper(), rotation="5 MB", retention=3)


__all__ = ["configure_logging", "logger"]
