"""
Extraction results, the default substitute and the receipt-age rule.

Verifies:
- 10 days old: no flag; 45 days old: flagged once with the age in reasoning
- Future-dated receipts are never flagged by the age rule
- Payload parsing maps unknown categories to Other and clamps confidence
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from pettycash_kernel.domain.extraction import (
    EXTRACTION_FAILED_FLAG,
    RECEIPT_TOO_OLD_FLAG,
    ReceiptExtraction,
    apply_receipt_age_policy,
    default_extraction,
    flags_with_age_policy,
    parse_extraction_payload,
)
from pettycash_kernel.domain.values import ExpenseCategory
from pettycash_kernel.exceptions import ExtractionFailedError

TODAY = date(2025, 1, 15)


def _extraction(transaction_date, flags=()):
    return ReceiptExtraction(
        merchant_name="Kopitiam",
        transaction_date=transaction_date,
        amount_total=Decimal("12.50"),
        amount_gst=Decimal("1.03"),
        category=ExpenseCategory.BUSINESS_MEALS,
        confidence=88,
        reasoning="Overtime meal.",
        flags=tuple(flags),
    )


class TestReceiptAgeRule:

    def test_recent_receipt_not_flagged(self):
        result = apply_receipt_age_policy(_extraction(TODAY - timedelta(days=10)), TODAY)
        assert RECEIPT_TOO_OLD_FLAG not in result.flags
        assert result.reasoning == "Overtime meal."

    def test_exactly_thirty_days_not_flagged(self):
        result = apply_receipt_age_policy(_extraction(TODAY - timedelta(days=30)), TODAY)
        assert result.flags == ()

    def test_old_receipt_flagged_with_age_note(self):
        result = apply_receipt_age_policy(_extraction(TODAY - timedelta(days=45)), TODAY)
        assert result.flags == (RECEIPT_TOO_OLD_FLAG,)
        assert "Receipt is 45 days old, exceeding the 30-day policy limit." in result.reasoning

    def test_flag_not_duplicated(self):
        already = _extraction(TODAY - timedelta(days=45), flags=[RECEIPT_TOO_OLD_FLAG])
        result = apply_receipt_age_policy(already, TODAY)
        assert result.flags.count(RECEIPT_TOO_OLD_FLAG) == 1
        assert result.reasoning == "Overtime meal."

    def test_future_receipt_not_flagged(self):
        result = apply_receipt_age_policy(_extraction(TODAY + timedelta(days=5)), TODAY)
        assert result.flags == ()

    def test_missing_date_not_flagged(self):
        assert apply_receipt_age_policy(_extraction(None), TODAY).flags == ()

    def test_custom_limit(self):
        result = apply_receipt_age_policy(
            _extraction(TODAY - timedelta(days=10)), TODAY, max_age_days=7
        )
        assert RECEIPT_TOO_OLD_FLAG in result.flags

    def test_flags_with_age_policy_for_corrected_date(self):
        flags = flags_with_age_policy(["Missing merchant"], TODAY - timedelta(days=31), TODAY)
        assert flags == ["Missing merchant", RECEIPT_TOO_OLD_FLAG]
        assert flags_with_age_policy([], TODAY, TODAY) == []


class TestDefaultExtraction:

    def test_default_shape(self):
        result = default_extraction("timeout")
        assert result.merchant_name is None
        assert result.transaction_date is None
        assert result.amount_total is None
        assert result.amount_gst is None
        assert result.category is ExpenseCategory.OTHER
        assert result.confidence == 0
        assert result.flags == (EXTRACTION_FAILED_FLAG,)
        assert result.failed
        assert "timeout" in result.reasoning


class TestPayloadParsing:

    def test_full_payload(self):
        result = parse_extraction_payload({
            "merchantName": "Shell Singapore",
            "transactionDate": "2025-01-10",
            "amountTotal": 45.0,
            "amountGst": 3.93,
            "category": "Transport and Vehicle",
            "confidence": 95,
            "reasoning": "Fuel.",
            "flags": [],
            "lineItems": [{"description": "Diesel", "amount": 45.0}],
        })
        assert result.merchant_name == "Shell Singapore"
        assert result.transaction_date == date(2025, 1, 10)
        assert result.amount_total == Decimal("45.00")
        assert result.amount_gst == Decimal("3.93")
        assert result.category is ExpenseCategory.TRANSPORT_AND_VEHICLE
        assert result.line_items[0].amount == Decimal("45.00")
        assert not result.failed

    def test_unknown_category_becomes_other(self):
        result = parse_extraction_payload({"category": "Entertainment", "confidence": 50})
        assert result.category is ExpenseCategory.OTHER

    def test_confidence_clamped(self):
        assert parse_extraction_payload({"category": "Fees", "confidence": 140}).confidence == 100
        assert parse_extraction_payload({"category": "Fees", "confidence": -3}).confidence == 0

    @pytest.mark.parametrize(
        "payload",
        [
            ["not", "an", "object"],
            {"transactionDate": "15/01/2025"},
            {"amountTotal": "lots"},
            {"amountTotal": 1e30},
            {"amountTotal": "Infinity"},
            {"amountGst": "NaN"},
            {"confidence": float("inf")},
            {"confidence": float("nan")},
        ],
    )
    def test_malformed_payload_raises(self, payload):
        with pytest.raises(ExtractionFailedError):
            parse_extraction_payload(payload)

    def test_to_dict_uses_wire_names(self):
        data = _extraction(TODAY).to_dict()
        assert data["merchantName"] == "Kopitiam"
        assert data["transactionDate"] == "2025-01-15"
        assert data["amountTotal"] == "12.50"
        assert data["lineItems"] == []
