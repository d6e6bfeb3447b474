"""Adapters for the external services used at receipt intake."""

from pettycash_ingestion.adapters.base import (
    ObjectStore,
    PolicyAssessment,
    ReceiptExtractor,
)
from pettycash_ingestion.adapters.llm_extractor import LlmReceiptExtractor
from pettycash_ingestion.adapters.object_store import LocalObjectStore

__all__ = [
    "LlmReceiptExtractor",
    "LocalObjectStore",
    "ObjectStore",
    "PolicyAssessment",
    "ReceiptExtractor",
]
