"""
balance_config -- single public entrypoint for tracker settings.

Responsibility:
    Provides the ONLY way to obtain settings at runtime through
    ``get_active_settings()``.  No other component may read settings
    files or environment variables directly.

Architecture position:
    Configuration -- sits above ``balance_kernel`` and below
    ``balance_services``.  The kernel MUST NEVER import from
    ``balance_config``; the composition root passes plain values
    (URL, pool sizes, log level) into the kernel.

Invariants enforced:
    - Single entrypoint: all runtime settings flow through
      ``get_active_settings()``.
    - Source precedence: explicit ``config_path`` argument, then the
      ``BALANCE_TRACKER_CONFIG`` file, then the packaged ``defaults.yaml``.
      ``BALANCE_TRACKER_DATABASE_URL`` overrides ``database.url`` last.
    - Invalid settings fail loudly; nothing is silently defaulted.

Failure modes:
    - ``FileNotFoundError`` -- the named settings file does not exist.
    - ``ValueError`` -- unknown keys or invalid values.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from balance_config.loader import apply_overrides, load_yaml_file, parse_settings
from balance_config.schema import (
    DatabaseSettings,
    LoggingSettings,
    RetrySettings,
    TrackerSettings,
)

_logger = logging.getLogger("balance_kernel.config")

CONFIG_PATH_ENV = "BALANCE_TRACKER_CONFIG"
DATABASE_URL_ENV = "BALANCE_TRACKER_DATABASE_URL"

_DEFAULT_CONFIG_FILE = Path(__file__).parent / "defaults.yaml"


def get_active_settings(config_path: Path | str | None = None) -> TrackerSettings:
    """The ONLY public settings entrypoint.

    Args:
        config_path: Override path to a settings file.

    Returns:
        TrackerSettings -- frozen, validated.

    Raises:
        FileNotFoundError: If the selected settings file does not exist.
        ValueError: If the settings are invalid.
    """
    env_path = os.environ.get(CONFIG_PATH_ENV)
    path = Path(config_path or env_path or _DEFAULT_CONFIG_FILE)

    data = load_yaml_file(path)
    database_url = os.environ.get(DATABASE_URL_ENV)
    settings = parse_settings(apply_overrides(data, database_url), source=str(path))

    _logger.info(
        "BALANCE_CONFIG_TRACE",
        extra={
            "trace_type": "BALANCE_CONFIG_TRACE",
            "config_source": settings.source,
            "checksum": settings.checksum,
            "database_url_overridden": bool(database_url),
            "default_currency": settings.default_currency,
        },
    )
    return settings


__all__ = [
    "CONFIG_PATH_ENV",
    "DATABASE_URL_ENV",
    "DatabaseSettings",
    "LoggingSettings",
    "RetrySettings",
    "TrackerSettings",
    "get_active_settings",
]
