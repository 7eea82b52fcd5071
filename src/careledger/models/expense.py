"""Expense ledger models."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

SourceType = Literal["ocr", "transaction", "manual"]


class SourceRef(BaseModel):
    """Where an expense came from.

    ``id`` is the capture digest for ``ocr``, ``"<account>:<transaction>"`` for
    ``transaction`` and free-form (or empty) for ``manual`` entries.
    """

    type: SourceType
    id: str = ""

    model_config = ConfigDict(frozen=True)

    @property
    def is_manual(self) -> bool:
        return self.type == "manual"

    def __str__(self) -> str:
        return f"{self.type}:{self.id}"


class ExpenseDraft(BaseModel):
    """Proposed expense awaiting materialization."""

    description: str
    vendor: Optional[str] = None
    category: str
    subcategory: Optional[str] = None
    amount: Decimal
    date: dt.date
    care_recipient_id: Optional[str] = None
    is_tax_deductible: bool = False
    notes: Optional[str] = Field(default=None, max_length=2000)
    source_ref: SourceRef

    model_config = ConfigDict(frozen=True)


class DraftOverrides(BaseModel):
    """User edits applied on top of a generated draft; ``None`` keeps the draft value."""

    description: Optional[str] = None
    vendor: Optional[str] = None
    category: Optional[str] = None
    subcategory: Optional[str] = None
    amount: Optional[Decimal] = None
    date: Optional[dt.date] = None
    care_recipient_id: Optional[str] = None
    is_tax_deductible: Optional[bool] = None
    notes: Optional[str] = Field(default=None, max_length=2000)

    model_config = ConfigDict(frozen=True, extra="forbid")


class Expense(ExpenseDraft):
    """Persisted expense row."""

    id: int
    user_id: str
    created_at: dt.datetime

    model_config = ConfigDict(frozen=True, from_attributes=True)


__all__ = ["SourceType", "SourceRef", "ExpenseDraft", "DraftOverrides", "Expense"]
