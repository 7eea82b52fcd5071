"""Masking for card numbers that OCR picks up from receipt footers."""

from __future__ import annotations

import re
from typing import Iterable, Optional

_CARD_PATTERN = re.compile(r"(?<!\d)\d(?:[\s-]?\d){11,18}(?!\d)")


def mask_card_numbers(value: str) -> str:
    """Replace digit runs that look like payment card numbers with their last four digits."""

    def _mask(match: re.Match[str]) -> str:
        digits = re.sub(r"\D", "", match.group())
        if len(digits) < 12:
            return match.group()
        return "*" * (len(digits) - 4) + digits[-4:]

    return _CARD_PATTERN.sub(_mask, value)


def mask_optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return mask_card_numbers(value)


def mask_all(values: Iterable[str]) -> list[str]:
    return [mask_card_numbers(value) for value in values]


__all__ = ["mask_card_numbers", "mask_optional", "mask_all"]
