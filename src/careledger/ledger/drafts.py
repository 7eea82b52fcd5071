"""Builders turning extraction, triage and mileage results into expense drafts."""

from __future__ import annotations

from datetime import date
from typing import Optional

from careledger.classify.classifier import transaction_amount
from careledger.classify.merchant import display_merchant
from careledger.config import Settings, get_settings
from careledger.models.classification import ClassificationResult
from careledger.models.expense import DraftOverrides, ExpenseDraft, SourceRef
from careledger.models.receipt import ExtractedReceipt
from careledger.models.report import MileageEstimate
from careledger.models.transaction import BankTransaction

MILEAGE_CATEGORY = "Transportation"
MILEAGE_SUBCATEGORY = "Mileage & Parking"


def apply_overrides(draft: ExpenseDraft, overrides: Optional[DraftOverrides]) -> ExpenseDraft:
    """Merge user edits into ``draft`` field by field; set override fields win."""

    if overrides is None:
        return draft
    updates = overrides.model_dump(exclude_none=True)
    if not updates:
        return draft
    return ExpenseDraft.model_validate({**draft.model_dump(), **updates})


def draft_from_transaction(
    transaction: BankTransaction,
    classification: ClassificationResult,
    *,
    settings: Optional[Settings] = None,
) -> ExpenseDraft:
    settings = settings or get_settings()
    merchant = display_merchant(transaction.merchant_name_normalized, transaction.raw_description)
    return ExpenseDraft(
        description=merchant or transaction.raw_description.strip(),
        vendor=merchant or None,
        category=classification.category,
        subcategory=classification.subcategory,
        amount=transaction_amount(transaction),
        date=transaction.posted_date,
        is_tax_deductible=classification.deductible_likelihood >= settings.candidate_threshold,
        source_ref=SourceRef(type="transaction", id=transaction.source_key),
    )


def draft_from_receipt(
    receipt: ExtractedReceipt,
    classification: ClassificationResult,
    *,
    settings: Optional[Settings] = None,
) -> ExpenseDraft:
    settings = settings or get_settings()
    notes = None
    if receipt.items:
        notes = "Items: " + ", ".join(receipt.items)
    return ExpenseDraft(
        description=receipt.description or receipt.vendor,
        vendor=receipt.vendor,
        category=classification.category,
        subcategory=classification.subcategory,
        amount=receipt.amount,
        date=receipt.date,
        is_tax_deductible=classification.deductible_likelihood >= settings.candidate_threshold,
        notes=notes[:2000] if notes else None,
        source_ref=SourceRef(type="ocr", id=receipt.capture_digest),
    )


def draft_from_mileage(
    estimate: MileageEstimate,
    trip_date: date,
    *,
    care_recipient_id: Optional[str] = None,
    notes: Optional[str] = None,
) -> ExpenseDraft:
    """Manual Transportation draft for a medical trip at the IRS mileage rate."""

    return ExpenseDraft(
        description=f"Medical mileage: {estimate.origin} to {estimate.destination} ({estimate.miles} mi)",
        category=MILEAGE_CATEGORY,
        subcategory=MILEAGE_SUBCATEGORY,
        amount=estimate.deduction,
        date=trip_date,
        care_recipient_id=care_recipient_id,
        is_tax_deductible=True,
        notes=notes,
        source_ref=SourceRef(type="manual"),
    )


__all__ = [
    "apply_overrides",
    "draft_from_transaction",
    "draft_from_receipt",
    "draft_from_mileage",
    "MILEAGE_CATEGORY",
    "MILEAGE_SUBCATEGORY",
]
