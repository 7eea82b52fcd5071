"""Parsing helpers for the loosely typed fields an OCR model returns.

Each parser reports whether the value matched the canonical form (``strict``)
or was recovered from a looser one. Recovered values are still usable, but the
extractor caps their confidence so a reviewer looks at them.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")

CENTS = Decimal("0.01")

_STRICT_AMOUNT = re.compile(r"^\$?\d+(?:\.\d{1,2})?$")
_CURRENCY_MARKERS = re.compile(r"(?i)\b(?:usd|us\$|cad|eur|gbp)\b|[$€£]")
_THOUSANDS_COMMA = re.compile(r"^\d{1,3}(?:,\d{3})+(?:\.\d+)?$")
_THOUSANDS_DOT = re.compile(r"^\d{1,3}(?:\.\d{3})+(?:,\d+)?$")
_DECIMAL_COMMA = re.compile(r"^\d+,\d{1,2}$")
_PLAIN_NUMBER = re.compile(r"^\d+(?:\.\d+)?$")

_STRICT_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_LOOSE_DATE_FORMATS = ("%m/%d/%Y", "%Y/%m/%d", "%m-%d-%y", "%m/%d/%y")


@dataclass(frozen=True)
class ParsedValue(Generic[T]):
    value: T
    strict: bool


def _quantize(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def _decimal_or_none(text: str) -> Optional[Decimal]:
    try:
        result = Decimal(text)
    except InvalidOperation:
        return None
    if not result.is_finite() or result < 0:
        return None
    return result


def parse_amount(raw: Any) -> Optional[ParsedValue[Decimal]]:
    """Parse a receipt total into a cent-quantized ``Decimal``.

    JSON numbers and ``[$]digits[.dd]`` strings are strict. Thousand
    separators, decimal commas, currency codes and extra decimal places are
    accepted as best-effort. Anything else returns ``None``.
    """

    if raw is None or isinstance(raw, bool):
        return None

    if isinstance(raw, (int, float)):
        if isinstance(raw, float) and not math.isfinite(raw):
            return None
        value = _decimal_or_none(str(raw))
        if value is None:
            return None
        exponent = value.as_tuple().exponent
        strict = isinstance(exponent, int) and exponent >= -2
        return ParsedValue(_quantize(value), strict)

    text = str(raw).strip()
    if not text:
        return None

    if _STRICT_AMOUNT.match(text):
        value = _decimal_or_none(text.lstrip("$"))
        if value is None:
            return None
        return ParsedValue(_quantize(value), True)

    cleaned = _CURRENCY_MARKERS.sub("", text)
    cleaned = re.sub(r"\s+", "", cleaned)
    if not cleaned:
        return None

    if _THOUSANDS_COMMA.match(cleaned):
        normalized = cleaned.replace(",", "")
    elif _THOUSANDS_DOT.match(cleaned) and ("," in cleaned or cleaned.count(".") > 1):
        normalized = cleaned.replace(".", "").replace(",", ".")
    elif _DECIMAL_COMMA.match(cleaned):
        normalized = cleaned.replace(",", ".")
    elif _PLAIN_NUMBER.match(cleaned):
        normalized = cleaned
    else:
        return None

    value = _decimal_or_none(normalized)
    if value is None:
        return None
    return ParsedValue(_quantize(value), False)


def parse_receipt_date(raw: Any) -> Optional[ParsedValue[date]]:
    """Parse a purchase date; ISO ``YYYY-MM-DD`` is the only strict form."""

    if raw is None:
        return None
    text = str(raw).strip()
    if not text:
        return None

    if _STRICT_DATE.match(text):
        try:
            return ParsedValue(date.fromisoformat(text), True)
        except ValueError:
            return None

    for fmt in _LOOSE_DATE_FORMATS:
        try:
            return ParsedValue(datetime.strptime(text, fmt).date(), False)
        except ValueError:
            continue
    return None


def coerce_confidence(raw: Any, default: float) -> float:
    """Normalize a model confidence to ``[0, 1]``.

    Values above 1 are read as percentages. Missing or non-numeric values
    become ``default``.
    """

    if raw is None or isinstance(raw, bool):
        return default
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return default
    if math.isnan(value):
        return default
    if value > 1.0:
        value = value / 100.0
    return min(1.0, max(0.0, value))


def clean_text(raw: Any) -> Optional[str]:
    if raw is None:
        return None
    text = re.sub(r"\s+", " ", str(raw)).strip()
    return text or None


__all__ = [
    "CENTS",
    "ParsedValue",
    "parse_amount",
    "parse_receipt_date",
    "coerce_confidence",
    "clean_text",
]
