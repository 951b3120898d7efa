"""
Settings Loader (``balance_config.loader``).

Responsibility
--------------
Loads a YAML settings file and parses it into the frozen dataclasses of
``balance_config.schema``.  The single public entry point for runtime
settings is ``balance_config.get_active_settings()``.

Invariants enforced
-------------------
* Unknown keys are rejected, so a typo never silently falls back to a
  default.
* Every parsed object is a frozen dataclass from ``schema.py``.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the parsed
  settings for the config trace log.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys or invalid values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import fields
from pathlib import Path
from typing import Any

import yaml

from balance_config.schema import (
    DatabaseSettings,
    LoggingSettings,
    RetrySettings,
    TrackerSettings,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def _parse_section(cls: type, section: str, data: Any) -> Any:
    if data is None:
        return cls()
    if not isinstance(data, dict):
        raise ValueError(f"{section} must be a mapping, got {type(data).__name__}")
    allowed = {f.name for f in fields(cls)}
    unknown = set(data) - allowed
    if unknown:
        raise ValueError(f"Unknown keys in {section}: {sorted(unknown)}")
    return cls(**data)


def parse_settings(
    data: dict[str, Any],
    source: str | None = None,
) -> TrackerSettings:
    """
    Parse a settings mapping into TrackerSettings.

    Raises:
        ValueError: on unknown keys or invalid values.
    """
    allowed = {"database", "logging", "retry", "default_currency"}
    unknown = set(data) - allowed
    if unknown:
        raise ValueError(f"Unknown top-level settings keys: {sorted(unknown)}")

    kwargs: dict[str, Any] = {
        "database": _parse_section(DatabaseSettings, "database", data.get("database")),
        "logging": _parse_section(LoggingSettings, "logging", data.get("logging")),
        "retry": _parse_section(RetrySettings, "retry", data.get("retry")),
        "source": source,
        "checksum": compute_checksum(data),
    }
    if "default_currency" in data:
        kwargs["default_currency"] = data["default_currency"]
    return TrackerSettings(**kwargs)


def apply_overrides(data: dict[str, Any], database_url: str | None) -> dict[str, Any]:
    """Return a copy of data with the database URL replaced, if given."""
    if not database_url:
        return data
    merged = dict(data)
    database = dict(merged.get("database") or {})
    database["url"] = database_url
    merged["database"] = database
    return merged


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
