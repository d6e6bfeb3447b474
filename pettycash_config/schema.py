"""
Petty cash configuration schema.

Typed, frozen view of a configuration set.  YAML is parsed into these types
by the loader; every field is validated on construction so an invalid set
fails at load time, never mid-request.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
_IMAGE_DETAILS = ("low", "high", "auto")


# ---------------------------------------------------------------------------
# Extraction service
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ExtractionSettings:
    """OpenAI-compatible chat-completions endpoint used to read receipts."""

    enabled: bool = True
    endpoint: str = "https://api.openai.com/v1/chat/completions"
    model: str = "gpt-4o-mini"
    api_key_env: str = "PETTYCASH_LLM_API_KEY"
    timeout_seconds: float = 30.0
    image_detail: str = "high"
    policy_text: str = ""

    def __post_init__(self) -> None:
        if self.enabled and not self.endpoint:
            raise ValueError("extraction.endpoint is required when extraction is enabled")
        if not self.model:
            raise ValueError("extraction.model must not be empty")
        if self.timeout_seconds <= 0:
            raise ValueError(f"extraction.timeout_seconds must be positive, got {self.timeout_seconds}")
        if self.image_detail not in _IMAGE_DETAILS:
            raise ValueError(f"extraction.image_detail must be one of {_IMAGE_DETAILS}")


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AnalyticsSettings:
    window_days: int = 14
    high_value_threshold: Decimal = Decimal("200.00")
    low_confidence_threshold: int = 70
    top_merchant_count: int = 5

    def __post_init__(self) -> None:
        if self.window_days < 1:
            raise ValueError(f"analytics.window_days must be >= 1, got {self.window_days}")
        if self.high_value_threshold < 0:
            raise ValueError("analytics.high_value_threshold must not be negative")
        if not 0 <= self.low_confidence_threshold <= 100:
            raise ValueError("analytics.low_confidence_threshold must be within 0-100")
        if self.top_merchant_count < 1:
            raise ValueError("analytics.top_merchant_count must be >= 1")


# ---------------------------------------------------------------------------
# Object storage
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StorageSettings:
    """Local receipt image store."""

    root_dir: str = "var/receipts"
    public_base_url: str = "/files"

    def __post_init__(self) -> None:
        if not self.root_dir:
            raise ValueError("storage.root_dir must not be empty")


# ---------------------------------------------------------------------------
# Top level
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PettyCashConfig:
    config_id: str
    version: int
    database_url: str
    log_level: str = "INFO"
    currency: str = "SGD"
    default_float_amount: Decimal = Decimal("3500.00")
    receipt_max_age_days: int = 30
    seed_departments: tuple[str, ...] = ()
    extraction: ExtractionSettings = field(default_factory=ExtractionSettings)
    analytics: AnalyticsSettings = field(default_factory=AnalyticsSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)
    checksum: str = ""

    def __post_init__(self) -> None:
        if not self.config_id:
            raise ValueError("config_id must not be empty")
        if not self.database_url:
            raise ValueError("database_url must not be empty")
        if self.log_level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {_LOG_LEVELS}, got {self.log_level!r}")
        if self.default_float_amount < 0:
            raise ValueError("default_float_amount must not be negative")
        if self.receipt_max_age_days < 1:
            raise ValueError("receipt_max_age_days must be >= 1")
        if len(set(self.seed_departments)) != len(self.seed_departments):
            raise ValueError("seed_departments contains duplicates")
