"""HTTP client for the hosted receipt OCR function."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Protocol

import httpx

from careledger.config import Settings, get_settings

logger = logging.getLogger(__name__)


class OcrEndpoint(Protocol):
    """Anything that turns a base64 receipt image into the OCR response envelope.

    The envelope is ``{"success": bool, "data": {...}, "error": str}``. Timeouts
    and transport failures may surface as ``httpx`` exceptions; the extractor
    classifies them.
    """

    async def recognize(self, image_base64: str) -> Dict[str, Any]:
        ...


class HttpOcrEndpoint:
    """Post captures to the OCR function as ``{"imageBase64": ...}``."""

    def __init__(
        self,
        *,
        url: str,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._url = url
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["apikey"] = self._api_key
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def recognize(self, image_base64: str) -> Dict[str, Any]:
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            response = await client.post(
                self._url,
                json={"imageBase64": image_base64},
                headers=self._headers(),
            )

        try:
            body = response.json()
        except ValueError:
            logger.debug(
                "OCR endpoint returned a non-JSON body status=%s", response.status_code
            )
            return {
                "success": False,
                "error": f"OCR service returned an unreadable response (HTTP {response.status_code}).",
                "rawModel": response.text[:2000],
            }

        if not isinstance(body, dict):
            return {
                "success": False,
                "error": "OCR service returned an unexpected payload.",
                "rawModel": response.text[:2000],
            }

        # The function reports its own failures as HTTP 500 with a JSON envelope.
        if response.is_error and "success" not in body:
            body = {
                "success": False,
                "error": body.get("error") or f"OCR service returned HTTP {response.status_code}.",
                "rawModel": response.text[:2000],
            }
        return body


def build_ocr_endpoint(settings: Optional[Settings] = None) -> Optional[HttpOcrEndpoint]:
    """Create the HTTP OCR endpoint when a URL is configured."""

    settings = settings or get_settings()
    if not settings.ocr_endpoint_url:
        logger.debug("Receipt OCR endpoint URL not configured.")
        return None
    return HttpOcrEndpoint(
        url=settings.ocr_endpoint_url,
        api_key=settings.ocr_api_key,
        timeout=settings.ocr_timeout_seconds,
    )


__all__ = ["OcrEndpoint", "HttpOcrEndpoint", "build_ocr_endpoint"]
