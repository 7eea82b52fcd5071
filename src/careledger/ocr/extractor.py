"""Receipt extraction: capture validation, one OCR call and field normalization."""

from __future__ import annotations

import asyncio
import io
import json
import logging
import time
from typing import Any, Dict, List, Optional

import httpx
from PIL import Image, UnidentifiedImageError
from pypdf import PdfReader
from pypdf.errors import PdfReadError

from careledger import metrics
from careledger.config import Settings, get_settings
from careledger.errors import (
    ExtractionError,
    ExtractionFailed,
    ExtractionTimeout,
    IncompleteExtraction,
    PayloadTooLarge,
    UnsupportedFormat,
)
from careledger.models.receipt import ExtractedReceipt, RawCapture, capture_digest
from careledger.ocr.client import OcrEndpoint
from careledger.ocr.fields import (
    clean_text,
    coerce_confidence,
    parse_amount,
    parse_receipt_date,
)
from careledger.ocr.sanitize import mask_all, mask_card_numbers, mask_optional

logger = logging.getLogger(__name__)

SUPPORTED_IMAGE_FORMATS = {"JPEG", "PNG", "GIF", "BMP", "TIFF", "WEBP"}
REQUIRED_FIELDS = ("vendor", "category", "amount", "date")
FIELD_ORDER = ("vendor", "category", "amount", "date", "description", "items")

_PDF_MAGIC = b"%PDF-"


def detect_format(content: bytes) -> str:
    """Return the capture format name or raise ``UnsupportedFormat``."""

    if not content:
        raise UnsupportedFormat("Receipt capture is empty.")

    if content.startswith(_PDF_MAGIC):
        try:
            pages = len(PdfReader(io.BytesIO(content)).pages)
        except (PdfReadError, ValueError, KeyError) as exc:
            raise UnsupportedFormat("Receipt PDF could not be read.") from exc
        if pages != 1:
            raise UnsupportedFormat(
                f"Receipt PDFs must have exactly one page (found {pages})."
            )
        return "PDF"

    try:
        with Image.open(io.BytesIO(content)) as image:
            image_format = (image.format or "").upper()
            image.verify()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError) as exc:
        raise UnsupportedFormat("Receipt capture is not a readable image.") from exc

    if image_format not in SUPPORTED_IMAGE_FORMATS:
        raise UnsupportedFormat(f"Image format {image_format or 'unknown'} is not supported.")
    return image_format


def _model_confidences(data: Dict[str, Any]) -> Dict[str, Any]:
    """Collect per-field confidences in whatever shape the model produced."""

    raw = None
    for key in ("fieldConfidence", "field_confidence", "confidence"):
        raw = data.get(key)
        if raw is not None:
            break
    if isinstance(raw, dict):
        confidences = dict(raw)
        if "merchant" in confidences and "vendor" not in confidences:
            confidences["vendor"] = confidences["merchant"]
        return confidences
    if raw is not None:
        return {field: raw for field in FIELD_ORDER}
    return {}


class ReceiptExtractor:
    """Turn a raw receipt capture into an ``ExtractedReceipt``.

    Local checks (size, format) run before any I/O. The OCR endpoint is called
    exactly once per ``extract``; there is no retry and no caching, callers
    decide whether a ``retryable`` failure is worth another attempt.
    """

    def __init__(self, endpoint: OcrEndpoint, *, settings: Optional[Settings] = None) -> None:
        self._endpoint = endpoint
        self._settings = settings or get_settings()

    async def extract(
        self, capture: RawCapture, *, timeout: Optional[float] = None
    ) -> ExtractedReceipt:
        try:
            content = self._validate(capture)
            body = await self._recognize(capture, timeout)
            receipt = self._parse(body, capture_digest(content))
        except ExtractionError as exc:
            metrics.EXTRACTIONS.labels(status=exc.kind.value).inc()
            logger.warning("Receipt extraction failed kind=%s reason=%s", exc.kind.value, exc)
            raise

        metrics.EXTRACTIONS.labels(status="succeeded").inc()
        logger.info(
            "Receipt extracted digest=%s low_confidence=%s",
            receipt.capture_digest[:12],
            ",".join(receipt.low_confidence_fields) or "-",
        )
        return receipt

    def _validate(self, capture: RawCapture) -> bytes:
        limit = self._settings.max_capture_bytes
        estimated = capture.estimated_size()
        if estimated > limit:
            raise PayloadTooLarge(estimated, limit)

        try:
            content = capture.decode()
        except ValueError as exc:
            raise UnsupportedFormat("Receipt capture is not valid base64.") from exc

        if len(content) > limit:
            raise PayloadTooLarge(len(content), limit)

        detected = detect_format(content)
        logger.debug(
            "Validated receipt capture source=%s format=%s bytes=%s",
            capture.source,
            detected,
            len(content),
        )
        return content

    async def _recognize(self, capture: RawCapture, timeout: Optional[float]) -> Dict[str, Any]:
        limit = timeout if timeout is not None else self._settings.ocr_timeout_seconds
        started = time.perf_counter()
        try:
            body = await asyncio.wait_for(
                self._endpoint.recognize(capture.base64_body), timeout=limit
            )
        except asyncio.TimeoutError as exc:
            raise ExtractionTimeout(limit) from exc
        except httpx.TimeoutException as exc:
            raise ExtractionTimeout(limit) from exc
        except httpx.HTTPError as exc:
            raise ExtractionFailed(
                "Could not reach the receipt OCR service.", diagnostic=repr(exc)
            ) from exc
        finally:
            metrics.EXTRACTION_LATENCY.observe(time.perf_counter() - started)

        if not isinstance(body, dict):
            raise ExtractionFailed(
                "Receipt OCR service returned an unexpected payload.",
                diagnostic=repr(body)[:2000],
            )

        if not body.get("success"):
            diagnostic = body.get("rawModel")
            if diagnostic is None:
                diagnostic = json.dumps(body, default=str)[:2000]
            reason = clean_text(body.get("error")) or "Receipt OCR failed."
            logger.debug("OCR failure diagnostic: %s", diagnostic)
            raise ExtractionFailed(reason, diagnostic=str(diagnostic))
        return body

    def _parse(self, body: Dict[str, Any], digest: str) -> ExtractedReceipt:
        data = body.get("data")
        if not isinstance(data, dict):
            raise IncompleteExtraction(REQUIRED_FIELDS)

        vendor = clean_text(data.get("vendor")) or clean_text(data.get("merchant"))
        category = clean_text(data.get("category"))
        amount = parse_amount(data.get("amount"))
        purchase_date = parse_receipt_date(data.get("date"))

        missing: List[str] = []
        if vendor is None:
            missing.append("vendor")
        if category is None:
            missing.append("category")
        if amount is None:
            missing.append("amount")
        if purchase_date is None:
            missing.append("date")
        if missing:
            raise IncompleteExtraction(missing)

        description = mask_optional(clean_text(data.get("description")))
        raw_items = data.get("items") or []
        if not isinstance(raw_items, list):
            raw_items = [raw_items]
        items = mask_all(
            text for text in (clean_text(entry) for entry in raw_items) if text
        )

        populated = {
            "vendor": True,
            "category": True,
            "amount": True,
            "date": True,
            "description": description is not None,
            "items": bool(items),
        }
        model_confidence = _model_confidences(data)
        default = self._settings.default_field_confidence
        cap = self._settings.ambiguous_confidence_cap

        field_confidence: Dict[str, float] = {}
        for field in FIELD_ORDER:
            if populated[field]:
                field_confidence[field] = coerce_confidence(model_confidence.get(field), default)
        if not amount.strict:
            field_confidence["amount"] = min(field_confidence["amount"], cap)
        if not purchase_date.strict:
            field_confidence["date"] = min(field_confidence["date"], cap)

        low_confidence: List[str] = []
        for field, score in field_confidence.items():
            threshold = (
                self._settings.amount_confidence_threshold
                if field == "amount"
                else self._settings.field_confidence_threshold
            )
            if score < threshold:
                low_confidence.append(field)

        return ExtractedReceipt(
            vendor=mask_card_numbers(vendor),
            category=category,
            amount=amount.value,
            date=purchase_date.value,
            description=description,
            items=items,
            field_confidence=field_confidence,
            low_confidence_fields=low_confidence,
            capture_digest=digest,
        )


__all__ = ["ReceiptExtractor", "detect_format", "SUPPORTED_IMAGE_FORMATS", "REQUIRED_FIELDS"]
