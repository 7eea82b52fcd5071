"""Receipt OCR extraction."""

from .client import HttpOcrEndpoint, OcrEndpoint, build_ocr_endpoint
from .extractor import ReceiptExtractor, detect_format

__all__ = [
    "ReceiptExtractor",
    "detect_format",
    "OcrEndpoint",
    "HttpOcrEndpoint",
    "build_ocr_endpoint",
]
