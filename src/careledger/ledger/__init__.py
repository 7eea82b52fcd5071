"""Expense ledger: draft builders and the materializer."""

from .drafts import apply_overrides, draft_from_mileage, draft_from_receipt, draft_from_transaction
from .materializer import ExpenseMaterializer, list_expenses

__all__ = [
    "ExpenseMaterializer",
    "list_expenses",
    "apply_overrides",
    "draft_from_mileage",
    "draft_from_receipt",
    "draft_from_transaction",
]
