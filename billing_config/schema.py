"""
Configuration schema (``billing_config.schema``).

Frozen dataclasses describing one engine deployment.  Produced by
``billing_config.loader`` from YAML; nothing else constructs them outside
tests.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class DatabaseConfig:
    url: str = "sqlite:///billing.db"
    echo: bool = False
    pool_size: int = 5
    max_overflow: int = 5


@dataclass(frozen=True)
class SchedulerConfig:
    enabled: bool = True
    tick_interval_seconds: int = 3600


@dataclass(frozen=True)
class CycleDefaults:
    """Seeds for the settings store; saved settings take precedence."""

    due_day: int = 1
    auto_reset_enabled: bool = False


@dataclass(frozen=True)
class ExpiryConfig:
    window_days: int = 30
    expiring_soon_days: int = 5


@dataclass(frozen=True)
class EngineConfig:
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    cycle: CycleDefaults = field(default_factory=CycleDefaults)
    expiry: ExpiryConfig = field(default_factory=ExpiryConfig)
    timezone: str = "UTC"
    reset_log_limit: int = 300
    log_level: str = "INFO"
    checksum: str = ""
