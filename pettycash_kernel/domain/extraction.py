"""
Receipt extraction result and the post-hoc policy rules applied to it.

Responsibility:
    The value object produced by the AI extraction service, the default
    substituted when that service fails, and the receipt-age rule.  Pure
    functions only; the HTTP client lives in pettycash_ingestion.

Invariants enforced:
    - "Receipt too old" appears at most once in the flag list.
    - The age rule fires only when elapsed days strictly exceed the limit.
      Future-dated receipts are never flagged by it.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

from pettycash_kernel.db.types import to_money
from pettycash_kernel.domain.values import ExpenseCategory
from pettycash_kernel.exceptions import ExtractionFailedError

RECEIPT_TOO_OLD_FLAG = "Receipt too old"
EXTRACTION_FAILED_FLAG = "AI extraction failed"
DEFAULT_MAX_AGE_DAYS = 30

# Flags the extraction prompt asks the model to raise.
KNOWN_POLICY_FLAGS: tuple[str, ...] = (
    "Alcohol detected",
    RECEIPT_TOO_OLD_FLAG,
    "Excessive amount",
    "Missing date",
    "Missing merchant",
    "Low quality image",
    "Suspicious item",
)


@dataclass(frozen=True)
class LineItem:
    description: str
    amount: Decimal


@dataclass(frozen=True)
class ReceiptExtraction:
    """Structured fields read off a receipt image."""
    merchant_name: str | None
    transaction_date: date | None
    amount_total: Decimal | None
    amount_gst: Decimal | None
    category: ExpenseCategory
    confidence: int
    reasoning: str
    flags: tuple[str, ...] = ()
    line_items: tuple[LineItem, ...] = field(default_factory=tuple)

    @property
    def failed(self) -> bool:
        return EXTRACTION_FAILED_FLAG in self.flags

    def to_dict(self) -> dict[str, Any]:
        return {
            "merchantName": self.merchant_name,
            "transactionDate": (
                self.transaction_date.isoformat() if self.transaction_date else None
            ),
            "amountTotal": str(self.amount_total) if self.amount_total is not None else None,
            "amountGst": str(self.amount_gst) if self.amount_gst is not None else None,
            "category": self.category.value,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "flags": list(self.flags),
            "lineItems": [
                {"description": li.description, "amount": str(li.amount)}
                for li in self.line_items
            ],
        }


def default_extraction(reason: str) -> ReceiptExtraction:
    """Result used in place of a failed extraction call."""
    return ReceiptExtraction(
        merchant_name=None,
        transaction_date=None,
        amount_total=None,
        amount_gst=None,
        category=ExpenseCategory.OTHER,
        confidence=0,
        reasoning=(
            f"Automatic extraction was unavailable ({reason}). "
            "Please enter the receipt details manually."
        ),
        flags=(EXTRACTION_FAILED_FLAG,),
    )


def receipt_age_days(transaction_date: date, today: date) -> int:
    return (today - transaction_date).days


def apply_receipt_age_policy(
    result: ReceiptExtraction,
    today: date,
    max_age_days: int = DEFAULT_MAX_AGE_DAYS,
) -> ReceiptExtraction:
    """Flag receipts older than ``max_age_days``.

    Returns ``result`` unchanged when there is no date, the receipt is recent
    or in the future, or the flag is already present.
    """
    if result.transaction_date is None:
        return result
    if RECEIPT_TOO_OLD_FLAG in result.flags:
        return result
    age = receipt_age_days(result.transaction_date, today)
    if age <= max_age_days:
        return result
    return replace(
        result,
        flags=result.flags + (RECEIPT_TOO_OLD_FLAG,),
        reasoning=(
            f"{result.reasoning} Note: Receipt is {age} days old, exceeding "
            f"the {max_age_days}-day policy limit."
        ),
    )


def flags_with_age_policy(
    flags: tuple[str, ...] | list[str],
    transaction_date: date | None,
    today: date,
    max_age_days: int = DEFAULT_MAX_AGE_DAYS,
) -> list[str]:
    """Flag list with the age rule applied, for user-corrected dates."""
    out = list(flags)
    if (
        transaction_date is not None
        and RECEIPT_TOO_OLD_FLAG not in out
        and receipt_age_days(transaction_date, today) > max_age_days
    ):
        out.append(RECEIPT_TOO_OLD_FLAG)
    return out


def parse_extraction_payload(payload: Mapping[str, Any]) -> ReceiptExtraction:
    """Build a ReceiptExtraction from the service's JSON object.

    Unknown categories are coded to Other.  Confidence is clamped to 0-100.

    Raises:
        ExtractionFailedError: payload is not an object or a field is
            malformed.
    """
    if not isinstance(payload, Mapping):
        raise ExtractionFailedError("response is not a JSON object")

    try:
        raw_date = payload.get("transactionDate")
        transaction_date = date.fromisoformat(raw_date) if raw_date else None
        amount_total = to_money(payload.get("amountTotal"))
        amount_gst = to_money(payload.get("amountGst"))
        confidence = int(payload.get("confidence") or 0)
        line_items = tuple(
            LineItem(
                description=str(item.get("description", "")),
                amount=to_money(item.get("amount")) or Decimal("0.00"),
            )
            for item in payload.get("lineItems") or ()
        )
    except (TypeError, ValueError, AttributeError, OverflowError, InvalidOperation) as exc:
        raise ExtractionFailedError(f"malformed field: {exc}") from exc

    try:
        category = ExpenseCategory(payload.get("category"))
    except ValueError:
        category = ExpenseCategory.OTHER

    merchant = payload.get("merchantName")
    return ReceiptExtraction(
        merchant_name=str(merchant).strip() or None if merchant else None,
        transaction_date=transaction_date,
        amount_total=amount_total,
        amount_gst=amount_gst,
        category=category,
        confidence=max(0, min(100, confidence)),
        reasoning=str(payload.get("reasoning") or ""),
        flags=tuple(str(f) for f in payload.get("flags") or ()),
        line_items=line_items,
    )
