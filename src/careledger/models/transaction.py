"""Bank transaction and triage queue models."""

from __future__ import annotations

import datetime as dt
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from careledger.models.expense import ExpenseDraft


class BankTransaction(BaseModel):
    """A transaction as delivered by the bank-sync provider."""

    id: str = Field(description="Provider transaction id, unique within the account.")
    account_id: str
    amount_cents: int = Field(description="Signed amount; negative values are debits.")
    posted_date: dt.date
    raw_description: str
    merchant_name_normalized: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @property
    def source_key(self) -> str:
        return f"{self.account_id}:{self.id}"

    @property
    def is_credit(self) -> bool:
        return self.amount_cents > 0


class TriageState(str, Enum):
    PENDING = "pending"
    KEPT = "kept"
    SKIPPED = "skipped"


class SyncedTransaction(BaseModel):
    """Persisted bank transaction together with its review decision."""

    id: int
    user_id: str
    transaction: BankTransaction
    state: TriageState = TriageState.PENDING
    draft: Optional[ExpenseDraft] = None
    expense_id: Optional[int] = None
    duplicate_of: Optional[int] = Field(
        default=None,
        description="Row id of an earlier transaction this one likely repeats.",
    )
    synced_at: dt.datetime
    decided_at: Optional[dt.datetime] = None

    model_config = ConfigDict(frozen=True)


class SyncSummary(BaseModel):
    inserted: int = 0
    unchanged: int = 0
    possible_duplicates: int = 0
    total: int = 0


class ScoredTransaction(BaseModel):
    """A pending transaction with its deductibility score."""

    transaction: SyncedTransaction
    score: float = Field(ge=0.0, le=1.0)
    is_candidate: bool
    category: str
    subcategory: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class TriageStats(BaseModel):
    pending: int = 0
    candidates: int = 0
    kept: int = 0
    skipped: int = 0


__all__ = [
    "BankTransaction",
    "TriageState",
    "SyncedTransaction",
    "SyncSummary",
    "ScoredTransaction",
    "TriageStats",
]
