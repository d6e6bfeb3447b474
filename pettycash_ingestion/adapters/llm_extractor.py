"""
Module: pettycash_ingestion.adapters.llm_extractor
Responsibility: Receipt extraction over an OpenAI-compatible chat-completions
    endpoint.  The model is given the expense policy and the image URL and
    must answer with a JSON object matching RECEIPT_EXTRACTION_SCHEMA.

Failure modes:
    Every failure (no API key, transport error, non-2xx status, malformed
    JSON, schema mismatch) is logged at WARNING and replaced by
    ``default_extraction``.  The caller always gets a usable result and the
    claimant enters the details by hand.

Post-processing:
    The receipt-age rule is applied to every result, including results the
    model already flagged (the rule is idempotent).
"""

from __future__ import annotations

import json
from decimal import Decimal
from typing import Any, Sequence

import requests

from pettycash_ingestion.adapters.base import PolicyAssessment
from pettycash_kernel.domain.clock import Clock, SystemClock
from pettycash_kernel.domain.extraction import (
    DEFAULT_MAX_AGE_DAYS,
    KNOWN_POLICY_FLAGS,
    LineItem,
    ReceiptExtraction,
    apply_receipt_age_policy,
    default_extraction,
    parse_extraction_payload,
)
from pettycash_kernel.domain.values import ExpenseCategory
from pettycash_kernel.exceptions import ExtractionFailedError
from pettycash_kernel.logging_config import get_logger

logger = get_logger("ingestion.llm_extractor")

_NULLABLE_STRING = {"type": ["string", "null"]}
_NULLABLE_NUMBER = {"type": ["number", "null"]}

RECEIPT_EXTRACTION_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "merchantName": {**_NULLABLE_STRING, "description": "Name of the merchant or vendor"},
        "transactionDate": {**_NULLABLE_STRING, "description": "Transaction date, YYYY-MM-DD"},
        "amountTotal": {**_NULLABLE_NUMBER, "description": "Total amount paid in SGD"},
        "amountGst": {**_NULLABLE_NUMBER, "description": "GST amount in SGD"},
        "category": {
            "type": "string",
            "enum": [c.value for c in ExpenseCategory],
            "description": "Expense category",
        },
        "confidence": {"type": "integer", "minimum": 0, "maximum": 100},
        "reasoning": {"type": "string"},
        "flags": {"type": "array", "items": {"type": "string"}},
        "lineItems": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "description": {"type": "string"},
                    "amount": {"type": "number"},
                },
                "required": ["description", "amount"],
                "additionalProperties": False,
            },
        },
    },
    "required": [
        "merchantName", "transactionDate", "amountTotal", "amountGst",
        "category", "confidence", "reasoning", "flags", "lineItems",
    ],
    "additionalProperties": False,
}

POLICY_VALIDATION_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "isValid": {"type": "boolean"},
        "flags": {"type": "array", "items": {"type": "string"}},
        "reasoning": {"type": "string"},
    },
    "required": ["isValid", "flags", "reasoning"],
    "additionalProperties": False,
}

_EXTRACTION_SYSTEM_PROMPT = """You are a receipt analyser for a Singapore logistics company's petty cash desk.
Extract the details of the receipt in the image and check them against the expense policy below.

{policy}

Instructions:
- Read every visible field, including handwritten receipts and Chinese characters.
- If GST is not shown, calculate it at 9% of the subtotal.
- Choose the single most appropriate expense category.
- Dates use ISO format (YYYY-MM-DD). Amounts are the total paid, in SGD.
- Give a confidence score from 0 to 100 reflecting image quality and certainty.

Raise any of these flags that apply:
{flags}"""

_EXTRACTION_USER_PROMPT = (
    "Analyse this receipt. Return the merchant, transaction date, total, GST, "
    "category, any policy flags, your confidence and a brief reasoning. "
    "Flag alcohol, tobacco or any other non-reimbursable item."
)

_POLICY_SYSTEM_PROMPT = """You check petty cash claims for expense policy compliance.

{policy}

Return your assessment with any flags and the reasoning behind it."""


class LlmReceiptExtractor:
    """ReceiptExtractor and PolicyChecker backed by a chat-completions API."""

    def __init__(
        self,
        endpoint: str,
        model: str,
        api_key: str | None,
        timeout_seconds: float = 30.0,
        image_detail: str = "high",
        policy_text: str = "",
        clock: Clock | None = None,
        max_age_days: int = DEFAULT_MAX_AGE_DAYS,
        http: requests.Session | None = None,
    ):
        self._endpoint = endpoint
        self._model = model
        self._api_key = api_key
        self._timeout = timeout_seconds
        self._image_detail = image_detail
        self._policy_text = policy_text
        self._clock = clock or SystemClock()
        self._max_age_days = max_age_days
        self._http = http or requests.Session()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _complete(self, messages: list[dict], schema_name: str, schema: dict) -> dict:
        """POST one chat completion and return the parsed JSON answer."""
        if not self._api_key:
            raise ExtractionFailedError("no API key configured")

        payload = {
            "model": self._model,
            "messages": messages,
            "response_format": {
                "type": "json_schema",
                "json_schema": {"name": schema_name, "strict": True, "schema": schema},
            },
        }
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        try:
            response = self._http.post(
                self._endpoint, headers=headers, json=payload, timeout=self._timeout
            )
            response.raise_for_status()
            body = response.json()
        except requests.RequestException as exc:
            raise ExtractionFailedError(f"request failed: {exc}") from exc
        except ValueError as exc:
            raise ExtractionFailedError("response body is not JSON") from exc

        try:
            content = body["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise ExtractionFailedError("response has no message content") from exc
        if not isinstance(content, str) or not content:
            raise ExtractionFailedError("response has no message content")

        try:
            return json.loads(content)
        except ValueError as exc:
            raise ExtractionFailedError("message content is not JSON") from exc

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    def _extraction_messages(self, image_url: str) -> list[dict]:
        system = _EXTRACTION_SYSTEM_PROMPT.format(
            policy=self._policy_text,
            flags="\n".join(f'- "{flag}"' for flag in KNOWN_POLICY_FLAGS),
        )
        return [
            {"role": "system", "content": system},
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": _EXTRACTION_USER_PROMPT},
                    {
                        "type": "image_url",
                        "image_url": {"url": image_url, "detail": self._image_detail},
                    },
                ],
            },
        ]

    def extract(self, image_url: str) -> ReceiptExtraction:
        try:
            answer = self._complete(
                self._extraction_messages(image_url),
                "receipt_extraction",
                RECEIPT_EXTRACTION_SCHEMA,
            )
            result = parse_extraction_payload(answer)
        except ExtractionFailedError as exc:
            logger.warning(
                "receipt_extraction_failed",
                extra={"image_url": image_url, "reason": exc.reason},
            )
            return default_extraction(exc.reason)

        result = apply_receipt_age_policy(result, self._clock.today(), self._max_age_days)
        logger.info(
            "receipt_extracted",
            extra={
                "image_url": image_url,
                "category": result.category.value,
                "confidence": result.confidence,
                "flag_count": len(result.flags),
            },
        )
        return result

    # ------------------------------------------------------------------
    # Policy check
    # ------------------------------------------------------------------

    def validate_policy(
        self,
        merchant_name: str,
        amount: Decimal,
        category: ExpenseCategory,
        line_items: Sequence[LineItem] = (),
    ) -> PolicyAssessment:
        """Second-pass compliance check on the claimant's corrected details.

        Returns an invalid assessment with an explanatory reason if the
        service cannot be reached; a claim is never passed unchecked.
        """
        items = [{"description": li.description, "amount": float(li.amount)} for li in line_items]
        user = (
            "Review this expense for policy compliance:\n"
            f"- Merchant: {merchant_name}\n"
            f"- Total Amount: S${amount:.2f}\n"
            f"- Category: {ExpenseCategory.parse(category).value}\n"
            f"- Line Items: {json.dumps(items)}\n\n"
            "Check for prohibited items (alcohol, tobacco, personal items), "
            "amount limits (S$40 for meals, S$50 for petty cash) and any "
            "suspicious patterns."
        )
        messages = [
            {"role": "system", "content": _POLICY_SYSTEM_PROMPT.format(policy=self._policy_text)},
            {"role": "user", "content": user},
        ]
        try:
            answer = self._complete(messages, "policy_validation", POLICY_VALIDATION_SCHEMA)
            return PolicyAssessment(
                is_valid=bool(answer["isValid"]),
                flags=tuple(str(f) for f in answer.get("flags") or ()),
                reasoning=str(answer.get("reasoning") or ""),
            )
        except (ExtractionFailedError, KeyError, TypeError) as exc:
            reason = exc.reason if isinstance(exc, ExtractionFailedError) else "malformed answer"
            logger.warning("policy_validation_failed", extra={"reason": reason})
            return PolicyAssessment(
                is_valid=False,
                flags=("Policy check unavailable",),
                reasoning=f"Automatic policy check was unavailable ({reason}).",
            )
