"""Version information for tickerwatch."""

import os
from importlib.metadata import PackageNotFoundError, version


def get_package_version() -> str:
    """Get the installed distribution version.

    Returns:
        Version string, or '0.0.0' when running from an uninstalled checkout.
    """
    try:
        return version("tickerwatch")
    except PackageNotFoundError:
        return "0.0.0"


def get_git_commit() -> str:
    """Git commit hash from the GIT_COMMIT environment variable, or 'unknown'."""
    return os.getenv("GIT_COMMIT", "unknown")


def get_version_info() -> str:
    """Get formatted version information for logging and `--version`."""
    return f"tickerwatch {get_package_version()} (commit={get_git_commit()})"
