"""Merchant string normalization for bank transaction descriptions."""

from __future__ import annotations

import re
from typing import Optional

_PROCESSOR_PREFIX = re.compile(r"^(?:SQ\s*\*|TST\s*\*|PAYPAL\s*\*|SP\s*\*)\s*", re.IGNORECASE)
_TRAILING_STORE_NUMBER = re.compile(
    r"(?:\s*#\s*\d+|\s+STORE\s*#?\s*\d+|\s+\d+)$",
    re.IGNORECASE,
)
_WHITESPACE = re.compile(r"\s+")


def normalize_merchant(value: Optional[str]) -> str:
    """Strip processor prefixes and store numbers, collapse whitespace, uppercase.

    >>> normalize_merchant("SQ *Joe's Coffee  #0042")
    "JOE'S COFFEE"
    >>> normalize_merchant("UBER   TRIP 8841")
    'UBER TRIP'
    """

    if not value:
        return ""
    text = _WHITESPACE.sub(" ", value).strip()
    text = _PROCESSOR_PREFIX.sub("", text)
    previous = None
    while previous != text:
        previous = text
        text = _TRAILING_STORE_NUMBER.sub("", text).strip()
    return text.upper()


def display_merchant(merchant_name: Optional[str], raw_description: str) -> str:
    """Best merchant label for a transaction, preferring the provider's cleaned name."""

    return normalize_merchant(merchant_name) or normalize_merchant(raw_description)


__all__ = ["normalize_merchant", "display_merchant"]
