"""Exception taxonomy shared by the extraction, triage and ledger layers."""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Optional


class ErrorKind(str, Enum):
    """Stable classification carried by every pipeline error."""

    PAYLOAD_TOO_LARGE = "payload_too_large"
    UNSUPPORTED_FORMAT = "unsupported_format"
    EXTRACTION_FAILED = "extraction_failed"
    EXTRACTION_TIMEOUT = "extraction_timeout"
    INCOMPLETE_EXTRACTION = "incomplete_extraction"
    ALREADY_DECIDED = "already_decided"
    INVALID_TRANSITION = "invalid_transition"
    TRANSACTION_NOT_FOUND = "transaction_not_found"
    EXPENSE_NOT_FOUND = "expense_not_found"
    INVALID_DRAFT = "invalid_draft"
    DUPLICATE_SOURCE_REF = "duplicate_source_ref"
    MILEAGE_FAILED = "mileage_failed"


class CareLedgerError(Exception):
    """Base class for errors scoped to a single pipeline call."""

    kind: ErrorKind
    retryable: bool = False


class ExtractionError(CareLedgerError):
    """Raised when a receipt capture cannot be turned into an extracted receipt."""


class PayloadTooLarge(ExtractionError):
    kind = ErrorKind.PAYLOAD_TOO_LARGE

    def __init__(self, size_bytes: int, limit_bytes: int) -> None:
        super().__init__(
            f"Receipt capture is {size_bytes} bytes; the limit is {limit_bytes} bytes."
        )
        self.size_bytes = size_bytes
        self.limit_bytes = limit_bytes


class UnsupportedFormat(ExtractionError):
    kind = ErrorKind.UNSUPPORTED_FORMAT


class ExtractionFailed(ExtractionError):
    """The OCR endpoint reported a failure or returned an unusable body.

    ``diagnostic`` keeps the raw upstream payload for logs and support; it is
    never part of the message shown to users.
    """

    kind = ErrorKind.EXTRACTION_FAILED

    def __init__(self, reason: str, *, diagnostic: Optional[str] = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.diagnostic = diagnostic


class ExtractionTimeout(ExtractionError):
    kind = ErrorKind.EXTRACTION_TIMEOUT
    retryable = True

    def __init__(self, timeout: float) -> None:
        super().__init__(f"Receipt extraction did not finish within {timeout:g}s.")
        self.timeout = timeout


class IncompleteExtraction(ExtractionError):
    kind = ErrorKind.INCOMPLETE_EXTRACTION

    def __init__(self, missing: Iterable[str]) -> None:
        self.missing = sorted(set(missing))
        super().__init__(
            "Receipt extraction is missing required fields: " + ", ".join(self.missing)
        )


class TriageError(CareLedgerError):
    """Raised when a review decision cannot be applied."""

    def __init__(self, message: str, *, transaction_id: int) -> None:
        super().__init__(message)
        self.transaction_id = transaction_id


class AlreadyDecided(TriageError):
    """The transaction left ``pending`` before this decision arrived.

    Callers retrying after a dropped response should treat this as success.
    """

    kind = ErrorKind.ALREADY_DECIDED

    def __init__(self, transaction_id: int, state: str) -> None:
        super().__init__(
            f"Transaction {transaction_id} is already {state}.",
            transaction_id=transaction_id,
        )
        self.state = state


class InvalidTransition(TriageError):
    kind = ErrorKind.INVALID_TRANSITION


class TransactionNotFound(TriageError):
    kind = ErrorKind.TRANSACTION_NOT_FOUND

    def __init__(self, transaction_id: int) -> None:
        super().__init__(
            f"Synced transaction {transaction_id} not found",
            transaction_id=transaction_id,
        )


class InvalidDraft(CareLedgerError):
    kind = ErrorKind.INVALID_DRAFT

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field


class ExpenseNotFound(CareLedgerError):
    kind = ErrorKind.EXPENSE_NOT_FOUND

    def __init__(self, expense_id: int) -> None:
        super().__init__(f"Expense {expense_id} not found")
        self.expense_id = expense_id


class DuplicateSourceRef(CareLedgerError):
    """Informational: an expense already exists for the draft's source reference.

    The materializer resolves this to the existing expense and never lets it
    reach callers.
    """

    kind = ErrorKind.DUPLICATE_SOURCE_REF


class MileageError(CareLedgerError):
    kind = ErrorKind.MILEAGE_FAILED

    def __init__(self, message: str, *, status_code: int, details: Optional[str] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.details = details
        self.retryable = status_code >= 500


__all__ = [
    "ErrorKind",
    "CareLedgerError",
    "ExtractionError",
    "PayloadTooLarge",
    "UnsupportedFormat",
    "ExtractionFailed",
    "ExtractionTimeout",
    "IncompleteExtraction",
    "TriageError",
    "AlreadyDecided",
    "InvalidTransition",
    "TransactionNotFound",
    "InvalidDraft",
    "ExpenseNotFound",
    "DuplicateSourceRef",
    "MileageError",
]
