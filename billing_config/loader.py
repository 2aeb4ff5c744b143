"""
Configuration Loader (``billing_config.loader``).

Loads a YAML file and parses it into ``billing_config.schema`` dataclasses.
The runtime entry point is ``billing_config.get_active_config()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Out-of-range or mistyped values  -> ``ValueError`` naming the key.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from billing_config.schema import (
    CycleDefaults,
    DatabaseConfig,
    EngineConfig,
    ExpiryConfig,
    SchedulerConfig,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of the parsed configuration."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _int(section: dict[str, Any], key: str, default: int, low: int, high: int | None = None) -> int:
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"'{key}' must be an integer, got {value!r}")
    if value < low or (high is not None and value > high):
        bound = f"{low}..{high}" if high is not None else f">= {low}"
        raise ValueError(f"'{key}' must be {bound}, got {value}")
    return value


def _bool(section: dict[str, Any], key: str, default: bool) -> bool:
    value = section.get(key, default)
    if not isinstance(value, bool):
        raise ValueError(f"'{key}' must be true or false, got {value!r}")
    return value


def parse_database(data: dict[str, Any]) -> DatabaseConfig:
    return DatabaseConfig(
        url=str(data.get("url", DatabaseConfig.url)),
        echo=_bool(data, "echo", False),
        pool_size=_int(data, "pool_size", 5, 1),
        max_overflow=_int(data, "max_overflow", 5, 0),
    )


def parse_scheduler(data: dict[str, Any]) -> SchedulerConfig:
    return SchedulerConfig(
        enabled=_bool(data, "enabled", True),
        tick_interval_seconds=_int(data, "tick_interval_seconds", 3600, 1),
    )


def parse_cycle(data: dict[str, Any]) -> CycleDefaults:
    return CycleDefaults(
        due_day=_int(data, "due_day", 1, 1, 28),
        auto_reset_enabled=_bool(data, "auto_reset_enabled", False),
    )


def parse_expiry(data: dict[str, Any]) -> ExpiryConfig:
    return ExpiryConfig(
        window_days=_int(data, "window_days", 30, 1),
        expiring_soon_days=_int(data, "expiring_soon_days", 5, 0),
    )


def parse_engine_config(data: dict[str, Any]) -> EngineConfig:
    """
    Parse a full ``EngineConfig``.  Every section is optional.

    Raises:
        ValueError: if a value is out of range or has the wrong type.
    """
    return EngineConfig(
        database=parse_database(data.get("database") or {}),
        scheduler=parse_scheduler(data.get("scheduler") or {}),
        cycle=parse_cycle(data.get("cycle") or {}),
        expiry=parse_expiry(data.get("expiry") or {}),
        timezone=str(data.get("timezone", "UTC")),
        reset_log_limit=_int(data, "reset_log_limit", 300, 1),
        log_level=str(data.get("log_level", "INFO")).upper(),
        checksum=compute_checksum(data),
    )
