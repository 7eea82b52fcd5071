"""Pydantic models for receipt captures and extraction results."""

from __future__ import annotations

import base64
import binascii
import datetime as dt
import hashlib
from decimal import Decimal
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

CaptureSource = Literal["camera", "gallery", "file"]


class RawCapture(BaseModel):
    """A receipt image or PDF exactly as the client uploaded it.

    ``payload`` is base64 text, optionally wrapped in a ``data:`` URL. Captures
    are held in memory for the duration of one extraction and never stored.
    """

    payload: str = Field(description="Base64 encoded image or single-page PDF.")
    source: CaptureSource = Field(default="file")

    model_config = ConfigDict(frozen=True)

    @property
    def base64_body(self) -> str:
        body = self.payload.strip()
        if body.startswith("data:") and "," in body:
            body = body.split(",", 1)[1]
        return "".join(body.split())

    def estimated_size(self) -> int:
        """Decoded size in bytes, computed from the base64 length alone."""

        body = self.base64_body
        padding = len(body) - len(body.rstrip("="))
        return max(0, (len(body) * 3) // 4 - padding)

    def decode(self) -> bytes:
        """Return the decoded bytes; raises ``ValueError`` on malformed base64."""

        try:
            return base64.b64decode(self.base64_body, validate=True)
        except binascii.Error as exc:
            raise ValueError(f"capture is not valid base64: {exc}") from exc


def capture_digest(content: bytes) -> str:
    return hashlib.sha256(content).hexdigest()


class ExtractedReceipt(BaseModel):
    """Normalized fields read off a receipt with per-field confidence."""

    vendor: str
    category: str
    amount: Decimal = Field(decimal_places=2)
    date: dt.date
    description: Optional[str] = None
    items: List[str] = Field(default_factory=list)
    field_confidence: Dict[str, float] = Field(default_factory=dict)
    low_confidence_fields: List[str] = Field(default_factory=list)
    capture_digest: str

    model_config = ConfigDict(frozen=True)

    def confidence(self, field: str) -> float:
        return self.field_confidence.get(field, 0.0)


__all__ = ["CaptureSource", "RawCapture", "ExtractedReceipt", "capture_digest"]
