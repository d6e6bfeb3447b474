"""
Configuration loader (``pettycash_config.loader``).

Responsibility
--------------
Reads a YAML configuration set and parses it into the frozen dataclasses in
``pettycash_config.schema``.  Runtime callers go through
``pettycash_config.get_active_config()``; this module is the parsing layer
underneath it and is used directly by tests.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Out-of-range values  -> ``ValueError`` from the schema's validation.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from pettycash_config.schema import (
    AnalyticsSettings,
    ExtractionSettings,
    PettyCashConfig,
    StorageSettings,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file; an empty file yields ``{}``."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any) -> Decimal:
    """YAML floats go through str() so 200.1 stays 200.1."""
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def parse_extraction(data: dict[str, Any]) -> ExtractionSettings:
    defaults = ExtractionSettings()
    return ExtractionSettings(
        enabled=bool(data.get("enabled", defaults.enabled)),
        endpoint=data.get("endpoint", defaults.endpoint),
        model=data.get("model", defaults.model),
        api_key_env=data.get("api_key_env", defaults.api_key_env),
        timeout_seconds=float(data.get("timeout_seconds", defaults.timeout_seconds)),
        image_detail=data.get("image_detail", defaults.image_detail),
        policy_text=(data.get("policy_text") or "").strip(),
    )


def parse_analytics(data: dict[str, Any]) -> AnalyticsSettings:
    defaults = AnalyticsSettings()
    return AnalyticsSettings(
        window_days=int(data.get("window_days", defaults.window_days)),
        high_value_threshold=parse_decimal(
            data.get("high_value_threshold", defaults.high_value_threshold)
        ),
        low_confidence_threshold=int(
            data.get("low_confidence_threshold", defaults.low_confidence_threshold)
        ),
        top_merchant_count=int(data.get("top_merchant_count", defaults.top_merchant_count)),
    )


def parse_storage(data: dict[str, Any]) -> StorageSettings:
    defaults = StorageSettings()
    return StorageSettings(
        root_dir=str(data.get("root_dir", defaults.root_dir)),
        public_base_url=str(data.get("public_base_url", defaults.public_base_url)).rstrip("/"),
    )


def parse_config(data: dict[str, Any]) -> PettyCashConfig:
    """Parse a whole configuration set.  ``config_id``, ``version`` and
    ``database_url`` are required; every other key has a default."""
    float_amount = data.get("default_float_amount")
    return PettyCashConfig(
        config_id=data["config_id"],
        version=int(data["version"]),
        database_url=data["database_url"],
        log_level=str(data.get("log_level", "INFO")).upper(),
        currency=data.get("currency", "SGD"),
        default_float_amount=(
            parse_decimal(float_amount) if float_amount is not None else Decimal("3500.00")
        ),
        receipt_max_age_days=int(data.get("receipt_max_age_days", 30)),
        seed_departments=tuple(data.get("seed_departments") or ()),
        extraction=parse_extraction(data.get("extraction") or {}),
        analytics=parse_analytics(data.get("analytics") or {}),
        storage=parse_storage(data.get("storage") or {}),
        checksum=compute_checksum(data),
    )


def load_config_file(path: Path) -> PettyCashConfig:
    return parse_config(load_yaml_file(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON form; identical data, identical hash."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
