"""Pydantic models defining shared data contracts."""

from careledger.models.classification import ClassificationResult
from careledger.models.expense import (
    DraftOverrides,
    Expense,
    ExpenseDraft,
    SourceRef,
    SourceType,
)
from careledger.models.receipt import (
    CaptureSource,
    ExtractedReceipt,
    RawCapture,
    capture_digest,
)
from careledger.models.report import DeductionSummary, MileageEstimate
from careledger.models.transaction import (
    BankTransaction,
    ScoredTransaction,
    SyncedTransaction,
    SyncSummary,
    TriageState,
    TriageStats,
)

__all__ = [
    "ClassificationResult",
    "DraftOverrides",
    "Expense",
    "ExpenseDraft",
    "SourceRef",
    "SourceType",
    "CaptureSource",
    "ExtractedReceipt",
    "RawCapture",
    "capture_digest",
    "DeductionSummary",
    "MileageEstimate",
    "BankTransaction",
    "ScoredTransaction",
    "SyncedTransaction",
    "SyncSummary",
    "TriageState",
    "TriageStats",
]
