"""
IntakeService -- store a receipt image and pre-fill its details.

Responsibility:
    Accept the raw image from the claimant, store it under
    ``receipts/<departmentId>/<random>.<ext>``, and run extraction on the
    stored URL.  Nothing is persisted to the database here: the claimant
    reviews and corrects the extraction, then submits through
    ReceiptService.create_receipt.

Failure modes:
    - ValidationError for an empty image, an unsupported MIME type, or
      base64 input that does not decode.
    - Object store errors propagate (no receipt can exist without an image).
    - Extraction failures never propagate; the extractor substitutes the
      default result.
"""

from __future__ import annotations

import base64
import binascii
import secrets
from dataclasses import dataclass
from uuid import UUID

from pettycash_ingestion.adapters.base import ObjectStore, ReceiptExtractor
from pettycash_kernel.domain.extraction import ReceiptExtraction
from pettycash_kernel.exceptions import ValidationError
from pettycash_kernel.logging_config import LogContext, get_logger

logger = get_logger("ingestion.intake")

DEFAULT_EXTENSION = "jpg"

# Entropy of the random object key component.
_KEY_TOKEN_BYTES = 16


@dataclass(frozen=True)
class UploadResult:
    image_url: str
    image_key: str
    extraction: ReceiptExtraction


def extension_for(mime_type: str | None) -> str:
    """File extension from the MIME subtype (``image/png`` -> ``png``)."""
    if not mime_type or "/" not in mime_type:
        return DEFAULT_EXTENSION
    subtype = mime_type.split("/", 1)[1].split(";", 1)[0].strip().lower()
    if subtype == "jpeg":
        return "jpg"
    return subtype or DEFAULT_EXTENSION


def object_key(department_id: UUID, mime_type: str | None) -> str:
    token = secrets.token_urlsafe(_KEY_TOKEN_BYTES)
    return f"receipts/{department_id}/{token}.{extension_for(mime_type)}"


def decode_image(image: bytes | str) -> bytes:
    """Raw bytes pass through; a string is treated as base64."""
    if isinstance(image, bytes):
        return image
    try:
        return base64.b64decode(image, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValidationError("Image data is not valid base64") from exc


class IntakeService:

    def __init__(self, store: ObjectStore, extractor: ReceiptExtractor):
        self._store = store
        self._extractor = extractor

    def upload_and_extract(
        self,
        image: bytes | str,
        mime_type: str,
        department_id: UUID,
    ) -> UploadResult:
        data = decode_image(image)
        if not data:
            raise ValidationError("Receipt image is empty")
        if mime_type and not mime_type.lower().startswith("image/"):
            raise ValidationError(f"Unsupported receipt file type: {mime_type!r}")

        key = object_key(department_id, mime_type)
        with LogContext.bind(department_id=department_id):
            image_url = self._store.put(key, data, mime_type)
            extraction = self._extractor.extract(image_url)
            logger.info(
                "receipt_image_uploaded",
                extra={
                    "image_key": key,
                    "extraction_failed": extraction.failed,
                    "confidence": extraction.confidence,
                },
            )
        return UploadResult(image_url=image_url, image_key=key, extraction=extraction)
