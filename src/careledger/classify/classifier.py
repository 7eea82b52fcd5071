"""Rule-based expense classifier for receipts and bank transactions."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional, Union

from careledger.classify.merchant import display_merchant, normalize_merchant
from careledger.classify.rules import (
    MEDICAL,
    TRANSPORTATION,
    UNMATCHED_CATEGORY,
    match_rule,
)
from careledger.config import Settings, get_settings
from careledger.models.classification import ClassificationResult
from careledger.models.receipt import ExtractedReceipt
from careledger.models.transaction import BankTransaction

logger = logging.getLogger(__name__)

Classifiable = Union[ExtractedReceipt, BankTransaction]


def transaction_amount(transaction: BankTransaction) -> Decimal:
    """Unsigned dollar amount of a transaction."""

    return (Decimal(abs(transaction.amount_cents)) / Decimal(100)).quantize(Decimal("0.01"))


def transaction_text(transaction: BankTransaction) -> str:
    merchant = display_merchant(transaction.merchant_name_normalized, transaction.raw_description)
    description = normalize_merchant(transaction.raw_description)
    if description and description != merchant:
        return f"{merchant} {description}"
    return merchant


def receipt_text(receipt: ExtractedReceipt) -> str:
    parts = [receipt.vendor, receipt.description or "", receipt.category]
    return " ".join(part for part in parts if part)


class ExpenseClassifier:
    """Assign a category and deductibility likelihood from merchant text and amount.

    Classification is a pure function of the input and the settings: no I/O,
    no clock, no randomness.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()

    def classify(self, item: Classifiable) -> ClassificationResult:
        if isinstance(item, BankTransaction):
            text = transaction_text(item)
            amount = transaction_amount(item)
            is_credit = item.is_credit
        else:
            text = receipt_text(item)
            amount = item.amount
            is_credit = False

        matched = match_rule(text)
        if matched is None:
            likelihood = self._adjust(
                self._settings.unmatched_likelihood, None, amount, is_credit
            )
            return ClassificationResult(
                category=UNMATCHED_CATEGORY,
                deductible_likelihood=likelihood,
            )

        rule, keyword = matched
        likelihood = self._adjust(self._base_likelihood(rule.group), rule.group, amount, is_credit)
        logger.debug(
            "Classified text=%r category=%s subcategory=%s keyword=%s likelihood=%.4f",
            text,
            rule.category,
            rule.subcategory,
            keyword,
            likelihood,
        )
        return ClassificationResult(
            category=rule.category,
            subcategory=rule.subcategory,
            deductible_likelihood=likelihood,
            matched_keyword=keyword,
        )

    def _base_likelihood(self, group: str) -> float:
        if group == MEDICAL:
            return self._settings.medical_likelihood
        if group == TRANSPORTATION:
            return self._settings.transportation_likelihood
        return self._settings.unmatched_likelihood

    def _adjust(
        self, likelihood: float, group: Optional[str], amount: Decimal, is_credit: bool
    ) -> float:
        settings = self._settings
        if amount < settings.micro_amount_threshold:
            likelihood -= settings.micro_amount_penalty
        if group == MEDICAL and amount >= settings.large_amount_threshold:
            likelihood += settings.large_amount_bonus
        if is_credit:
            likelihood *= settings.refund_factor
        return round(min(1.0, max(0.0, likelihood)), 4)


__all__ = [
    "ExpenseClassifier",
    "Classifiable",
    "transaction_amount",
    "transaction_text",
    "receipt_text",
]
