"""
pettycash_config -- single public entrypoint for runtime configuration.

Responsibility:
    ``get_active_config()`` is the only way to obtain configuration at
    runtime and the only place that reads environment variables.

Architecture position:
    Sits above ``pettycash_kernel`` and ``pettycash_ingestion``.  The kernel
    never imports from this package; ``pettycash_services`` passes the
    values it needs into kernel constructors.

Environment:
    PETTYCASH_CONFIG     path to a YAML set (default: sets/default.yaml)
    DATABASE_URL         overrides ``database_url``
    PETTYCASH_LOG_LEVEL  overrides ``log_level``

Failure modes:
    - ``FileNotFoundError`` if the selected set does not exist.
    - ``ValueError`` / ``KeyError`` if the set fails validation.
"""

from __future__ import annotations

import dataclasses
import logging
import os
from pathlib import Path

from pettycash_config.loader import load_config_file
from pettycash_config.schema import (
    AnalyticsSettings,
    ExtractionSettings,
    PettyCashConfig,
    StorageSettings,
)

_logger = logging.getLogger("pettycash.config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(
    path: Path | None = None,
    environ: dict[str, str] | None = None,
) -> PettyCashConfig:
    """Load the active configuration set and apply environment overrides.

    Args:
        path: Explicit YAML path.  Wins over ``PETTYCASH_CONFIG``.
        environ: Environment mapping; defaults to ``os.environ``.
    """
    env = os.environ if environ is None else environ
    config_path = Path(path or env.get("PETTYCASH_CONFIG") or _DEFAULT_CONFIG_PATH)
    config = load_config_file(config_path)

    overrides = {}
    if env.get("DATABASE_URL"):
        overrides["database_url"] = env["DATABASE_URL"]
    if env.get("PETTYCASH_LOG_LEVEL"):
        overrides["log_level"] = env["PETTYCASH_LOG_LEVEL"].upper()
    if overrides:
        config = dataclasses.replace(config, **overrides)

    _logger.info(
        "config_loaded",
        extra={
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "config_path": str(config_path),
            "overrides": sorted(overrides),
        },
    )
    return config


__all__ = [
    "AnalyticsSettings",
    "ExtractionSettings",
    "PettyCashConfig",
    "StorageSettings",
    "get_active_config",
]
