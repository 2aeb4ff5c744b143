"""
billing_config -- single public entrypoint for engine configuration.

Responsibility:
    ``get_active_config()`` is the ONLY way to obtain configuration at
    runtime.  It reads one YAML file (the bundled ``defaults.yaml`` unless a
    path is given), applies the ``BILLING_DATABASE_URL`` environment
    override and returns a frozen ``EngineConfig``.

Architecture position:
    Configuration sits above ``billing_kernel``.  The kernel never imports
    from ``billing_config``; callers (CLI, tests) pass the values they need
    into kernel constructors.

Failure modes:
    - ``FileNotFoundError`` -- the given path does not exist.
    - ``ValueError`` -- a value is out of range or mistyped.
"""

from __future__ import annotations

import logging
import os
from dataclasses import replace
from pathlib import Path
from typing import Mapping

from billing_config.loader import load_yaml_file, parse_engine_config
from billing_config.schema import (
    CycleDefaults,
    DatabaseConfig,
    EngineConfig,
    ExpiryConfig,
    SchedulerConfig,
)

_logger = logging.getLogger("billing_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"
DATABASE_URL_ENV = "BILLING_DATABASE_URL"
CONFIG_PATH_ENV = "BILLING_CONFIG"


def get_active_config(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> EngineConfig:
    """The ONLY public configuration entrypoint.

    Args:
        path: YAML file to load.  Falls back to ``$BILLING_CONFIG``, then
            the bundled defaults.
        environ: Environment to read overrides from (``os.environ`` when
            omitted).
    """
    env = os.environ if environ is None else environ
    config_path = Path(path or env.get(CONFIG_PATH_ENV) or DEFAULT_CONFIG_PATH)

    config = parse_engine_config(load_yaml_file(config_path))

    url_override = env.get(DATABASE_URL_ENV)
    if url_override:
        config = replace(config, database=replace(config.database, url=url_override))

    _logger.info(
        "BILLING_CONFIG_TRACE",
        extra={
            "trace_type": "BILLING_CONFIG_TRACE",
            "config_path": str(config_path),
            "checksum": config.checksum,
            "database_url_overridden": bool(url_override),
        },
    )
    return config


__all__ = [
    "CycleDefaults",
    "DatabaseConfig",
    "EngineConfig",
    "ExpiryConfig",
    "SchedulerConfig",
    "get_active_config",
]
