"""
Chat-completions extraction client.

The HTTP session is replaced by a recording fake; no network access.
"""

import json
from datetime import date, timedelta
from decimal import Decimal

import pytest
import requests

from pettycash_ingestion.adapters.base import PolicyChecker, ReceiptExtractor
from pettycash_ingestion.adapters.llm_extractor import (
    RECEIPT_EXTRACTION_SCHEMA,
    LlmReceiptExtractor,
)
from pettycash_kernel.domain.extraction import EXTRACTION_FAILED_FLAG, RECEIPT_TOO_OLD_FLAG
from pettycash_kernel.domain.values import ExpenseCategory


class FakeResponse:

    def __init__(self, body=None, status_code=200, text=None):
        self.status_code = status_code
        self._body = body
        self._text = text

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if self._text is not None:
            return json.loads(self._text)
        return self._body


class FakeHttp:

    def __init__(self, response=None, exc=None):
        self.response = response
        self.exc = exc
        self.calls = []

    def post(self, url, headers=None, json=None, timeout=None):
        self.calls.append({"url": url, "headers": headers, "json": json, "timeout": timeout})
        if self.exc is not None:
            raise self.exc
        return self.response


def _completion(answer):
    return FakeResponse({"choices": [{"message": {"content": json.dumps(answer)}}]})


def _answer(**overrides):
    answer = {
        "merchantName": "Shell Singapore",
        "transactionDate": "2025-01-10",
        "amountTotal": 45.0,
        "amountGst": 3.93,
        "category": "Transport and Vehicle",
        "confidence": 92,
        "reasoning": "Fuel receipt.",
        "flags": [],
        "lineItems": [],
    }
    answer.update(overrides)
    return answer


@pytest.fixture
def make_extractor(clock):
    def _make(http, api_key="sk-test", **kwargs):
        return LlmReceiptExtractor(
            endpoint="https://llm.example.test/v1/chat/completions",
            model="gpt-4o-mini",
            api_key=api_key,
            timeout_seconds=5,
            policy_text="Meals up to S$40.",
            clock=clock,
            http=http,
            **kwargs,
        )

    return _make


class TestExtract:

    def test_satisfies_protocols(self, make_extractor):
        extractor = make_extractor(FakeHttp())
        assert isinstance(extractor, ReceiptExtractor)
        assert isinstance(extractor, PolicyChecker)

    def test_successful_extraction(self, make_extractor):
        http = FakeHttp(_completion(_answer()))
        result = make_extractor(http).extract("https://files.example.test/r.jpg")

        assert result.merchant_name == "Shell Singapore"
        assert result.transaction_date == date(2025, 1, 10)
        assert result.amount_total == Decimal("45.00")
        assert result.category is ExpenseCategory.TRANSPORT_AND_VEHICLE
        assert result.flags == ()
        assert not result.failed

    def test_request_shape(self, make_extractor):
        http = FakeHttp(_completion(_answer()))
        make_extractor(http).extract("https://files.example.test/r.jpg")

        (call,) = http.calls
        assert call["url"] == "https://llm.example.test/v1/chat/completions"
        assert call["headers"]["Authorization"] == "Bearer sk-test"
        assert call["timeout"] == 5
        payload = call["json"]
        assert payload["model"] == "gpt-4o-mini"
        assert payload["response_format"]["json_schema"]["schema"] == RECEIPT_EXTRACTION_SCHEMA
        system, user = payload["messages"]
        assert "Meals up to S$40." in system["content"]
        image_part = user["content"][1]
        assert image_part["image_url"] == {
            "url": "https://files.example.test/r.jpg",
            "detail": "high",
        }

    def test_age_rule_applied(self, make_extractor, clock):
        old = (clock.today() - timedelta(days=45)).isoformat()
        http = FakeHttp(_completion(_answer(transactionDate=old)))
        result = make_extractor(http).extract("u")
        assert result.flags == (RECEIPT_TOO_OLD_FLAG,)
        assert "45 days old" in result.reasoning

    def test_future_date_not_flagged(self, make_extractor, clock):
        future = (clock.today() + timedelta(days=3)).isoformat()
        http = FakeHttp(_completion(_answer(transactionDate=future)))
        assert make_extractor(http).extract("u").flags == ()

    @pytest.mark.parametrize(
        "http",
        [
            FakeHttp(exc=requests.ConnectionError("refused")),
            FakeHttp(exc=requests.Timeout("slow")),
            FakeHttp(FakeResponse(status_code=500)),
            FakeHttp(FakeResponse(text="<html>")),
            FakeHttp(FakeResponse({"choices": []})),
            FakeHttp(FakeResponse({"choices": [{"message": {"content": "not json"}}]})),
            FakeHttp(_completion(["not", "an", "object"])),
            FakeHttp(_completion(_answer(amountTotal=1e30))),
            FakeHttp(_completion(_answer(amountTotal="Infinity"))),
            FakeHttp(_completion(_answer(confidence=float("inf")))),
        ],
        ids=["connection", "timeout", "http-500", "html-body", "no-choices",
             "content-not-json", "content-not-object", "huge-amount",
             "infinite-amount", "infinite-confidence"],
    )
    def test_failures_degrade_to_default(self, make_extractor, http, captured_logs):
        result = make_extractor(http).extract("u")
        assert result.failed
        assert result.flags == (EXTRACTION_FAILED_FLAG,)
        assert result.category is ExpenseCategory.OTHER
        assert result.confidence == 0
        assert any(r["message"] == "receipt_extraction_failed" for r in captured_logs())

    def test_missing_api_key_makes_no_request(self, make_extractor):
        http = FakeHttp(_completion(_answer()))
        result = make_extractor(http, api_key=None).extract("u")
        assert result.failed
        assert http.calls == []


class TestValidatePolicy:

    def test_assessment_returned(self, make_extractor):
        http = FakeHttp(_completion({
            "isValid": False,
            "flags": ["Alcohol detected"],
            "reasoning": "Beer on the bill.",
        }))
        assessment = make_extractor(http).validate_policy(
            "Kopitiam", Decimal("38.00"), "Business Meals",
        )
        assert assessment.is_valid is False
        assert assessment.flags == ("Alcohol detected",)
        assert assessment.reasoning == "Beer on the bill."
        user = http.calls[0]["json"]["messages"][1]["content"]
        assert "S$38.00" in user
        assert "Business Meals" in user

    def test_unavailable_check_fails_closed(self, make_extractor):
        http = FakeHttp(exc=requests.ConnectionError("refused"))
        assessment = make_extractor(http).validate_policy(
            "Kopitiam", Decimal("38.00"), ExpenseCategory.BUSINESS_MEALS,
        )
        assert assessment.is_valid is False
        assert assessment.flags == ("Policy check unavailable",)
