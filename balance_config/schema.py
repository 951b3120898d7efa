"""
Tracker settings schema.

Frozen dataclasses parsed from YAML by ``balance_config.loader``.  Each
class validates its own fields on construction; invalid values raise
ValueError and are never replaced by defaults.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from balance_kernel.domain.currency import CurrencyRegistry

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


@dataclass(frozen=True)
class DatabaseSettings:
    """Connection settings passed to ``init_engine_from_url``."""

    url: str = "sqlite:///balance_tracker.db"
    echo: bool = False
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 1800

    def __post_init__(self) -> None:
        if not self.url or not isinstance(self.url, str):
            raise ValueError("database.url must be a non-empty string")
        for name in ("pool_size", "pool_timeout", "pool_recycle"):
            if getattr(self, name) < 1:
                raise ValueError(f"database.{name} must be >= 1")
        if self.max_overflow < 0:
            raise ValueError("database.max_overflow must be >= 0")


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"

    def __post_init__(self) -> None:
        normalized = str(self.level).upper()
        if normalized not in _LOG_LEVELS:
            raise ValueError(
                f"logging.level must be one of {sorted(_LOG_LEVELS)}, got {self.level!r}"
            )
        object.__setattr__(self, "level", normalized)

    @property
    def level_number(self) -> int:
        return logging.getLevelName(self.level)


@dataclass(frozen=True)
class RetrySettings:
    """Bounded retry of transient infrastructure failures."""

    max_attempts: int = 3
    backoff_seconds: float = 0.1

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("retry.max_attempts must be >= 1")
        if self.backoff_seconds < 0:
            raise ValueError("retry.backoff_seconds must be >= 0")


@dataclass(frozen=True)
class TrackerSettings:
    """Root settings object returned by ``get_active_settings()``."""

    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    retry: RetrySettings = field(default_factory=RetrySettings)
    default_currency: str = "USD"
    source: str | None = None
    checksum: str | None = None

    def __post_init__(self) -> None:
        code = str(self.default_currency).upper().strip()
        if not CurrencyRegistry.is_valid(code):
            raise ValueError(
                f"default_currency must be an ISO 4217 code, got {self.default_currency!r}"
            )
        object.__setattr__(self, "default_currency", code)
