"""
Intake adapter protocols.

Contract:
    ReceiptExtractor.extract() never raises for a service failure; it
    returns the default extraction instead.
    ObjectStore.put() stores bytes under a key and returns a retrievable URL.

Architecture: pettycash_ingestion/adapters.  No DB access; may import
kernel domain value objects only.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol, Sequence, runtime_checkable

from pettycash_kernel.domain.extraction import LineItem, ReceiptExtraction
from pettycash_kernel.domain.values import ExpenseCategory


@runtime_checkable
class ReceiptExtractor(Protocol):
    """Reads structured fields off a receipt image."""

    def extract(self, image_url: str) -> ReceiptExtraction:
        ...


@runtime_checkable
class ObjectStore(Protocol):
    """Binary blob storage for receipt images."""

    def put(self, key: str, data: bytes, mime_type: str) -> str:
        """Store ``data`` under ``key`` and return its URL."""
        ...


@dataclass(frozen=True)
class PolicyAssessment:
    """Outcome of a second-pass policy check on user-corrected details."""

    is_valid: bool
    flags: tuple[str, ...]
    reasoning: str


@runtime_checkable
class PolicyChecker(Protocol):

    def validate_policy(
        self,
        merchant_name: str,
        amount: Decimal,
        category: ExpenseCategory,
        line_items: Sequence[LineItem] = (),
    ) -> PolicyAssessment:
        ...
