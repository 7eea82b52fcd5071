"""Tests for the rule-based expense classifier."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from careledger.classify import ExpenseClassifier, display_merchant, match_rule, normalize_merchant
from careledger.config import Settings
from careledger.models.receipt import ExtractedReceipt
from tests.helpers import bank_transaction


@pytest.fixture()
def classifier() -> ExpenseClassifier:
    return ExpenseClassifier(Settings())


def test_pharmacy_transaction_is_medical(classifier):
    result = classifier.classify(bank_transaction(raw_description="CVS/PHARMACY #1234"))

    assert result.category == "Medical Care"
    assert result.subcategory == "Prescriptions"
    assert result.deductible_likelihood >= 0.8
    assert result.matched


def test_rideshare_transaction_is_transportation(classifier):
    result = classifier.classify(
        bank_transaction(raw_description="UBER TRIP 8841", amount_cents=-1850)
    )

    assert result.category == "Transportation"
    assert result.subcategory == "Rideshare & Taxi"
    assert 0.4 <= result.deductible_likelihood <= 0.6


def test_receipt_classified_from_vendor_and_category(classifier):
    receipt = ExtractedReceipt(
        vendor="CVS Pharmacy",
        category="Pharmacy",
        amount=Decimal("24.99"),
        date=date(2024, 3, 5),
        capture_digest="abc123",
    )
    result = classifier.classify(receipt)
    assert result.category == "Medical Care"
    assert result.deductible_likelihood == pytest.approx(0.8)


def test_classification_is_deterministic(classifier):
    transaction = bank_transaction(raw_description="SQ *SUNRISE DENTAL #12", amount_cents=-18000)
    first = classifier.classify(transaction)
    assert all(classifier.classify(transaction) == first for _ in range(5))
    assert first.subcategory == "Dental"


@pytest.mark.parametrize(
    "description, amount_cents, expected",
    [
        ("CVS/PHARMACY #1234", -50, 0.7),
        ("CITY GENERAL HOSPITAL", -30000, 0.85),
        ("CVS/PHARMACY #1234", 2499, 0.4),
        ("SHELL OIL 5521", -4000, 0.1),
        ("SHELL OIL 5521", -25, 0.0),
    ],
)
def test_amount_and_refund_adjustments(classifier, description, amount_cents, expected):
    result = classifier.classify(
        bank_transaction(raw_description=description, amount_cents=amount_cents)
    )
    assert result.deductible_likelihood == pytest.approx(expected)


def test_unmatched_merchant_is_other(classifier):
    result = classifier.classify(bank_transaction(raw_description="SHELL OIL 5521"))
    assert result.category == "Other"
    assert result.subcategory is None
    assert not result.matched


def test_first_rule_in_table_order_wins():
    matched = match_rule("WALGREENS CLINIC")
    assert matched is not None
    rule, keyword = matched
    assert rule.subcategory == "Prescriptions"
    assert keyword == "walgreens"


def test_short_keywords_match_whole_words_only():
    assert match_rule("BARTELL DRUGS") is None
    matched = match_rule("BART CLIPPER")
    assert matched is not None
    assert matched[0].subcategory == "Public Transit"


def test_five_letter_keywords_do_not_match_longer_words():
    assert match_rule("METROPOLITAN OPERA SHOP") is None
    matched = match_rule("METRO NORTH RAILROAD")
    assert matched is not None
    assert matched[0].subcategory == "Public Transit"
    assert match_rule("COPAYS DUE")[1] == "copay"


def test_custom_thresholds_change_candidate_likelihood():
    settings = Settings(medical_likelihood=0.95)
    result = ExpenseClassifier(settings).classify(bank_transaction())
    assert result.deductible_likelihood == pytest.approx(0.95)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("SQ *Joe's Coffee  #0042", "JOE'S COFFEE"),
        ("TST* Local Diner STORE 12", "LOCAL DINER"),
        ("UBER   TRIP 8841", "UBER TRIP"),
        ("walgreens", "WALGREENS"),
        ("", ""),
        (None, ""),
    ],
)
def test_normalize_merchant(raw, expected):
    assert normalize_merchant(raw) == expected


def test_display_merchant_prefers_provider_name():
    assert display_merchant("Walgreens", "WALGREENS #9912 NEW YORK") == "WALGREENS"
    assert display_merchant(None, "LYFT *RIDE 3321") == "LYFT *RIDE"
