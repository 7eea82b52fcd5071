"""Tests for deduction summaries and the CSV export."""

from __future__ import annotations

import csv
import io
from datetime import date, datetime
from decimal import Decimal

from careledger.config import Settings
from careledger.models.expense import Expense, SourceRef
from careledger.reports import CSV_HEADERS, export_csv, summarize_deductions


def _expense(expense_id, amount, expense_date, *, category="Medical Care", deductible=True, **extra):
    payload = {
        "id": expense_id,
        "user_id": "user-1",
        "description": f"Expense {expense_id}",
        "category": category,
        "amount": Decimal(amount),
        "date": expense_date,
        "is_tax_deductible": deductible,
        "source_ref": SourceRef(type="manual"),
        "created_at": datetime(2024, 12, 31, 9, 0, 0),
    }
    payload.update(extra)
    return Expense(**payload)


EXPENSES = [
    _expense(1, "120.00", date(2024, 2, 1), subcategory="Dental", vendor="Sunrise Dental"),
    _expense(2, "18.50", date(2024, 3, 6), category="Transportation"),
    _expense(3, "45.00", date(2024, 1, 15), deductible=False),
    _expense(4, "300.00", date(2023, 12, 30)),
    _expense(5, "61.50", date(2024, 1, 20), notes='Co-pay, "urgent" visit'),
]


def test_summary_totals_deductible_expenses_for_year():
    summary = summarize_deductions(EXPENSES, 2024, settings=Settings())

    assert summary.expense_count == 3
    assert summary.total_deductible == Decimal("200.00")
    assert summary.by_category == {
        "Medical Care": Decimal("181.50"),
        "Transportation": Decimal("18.50"),
    }
    assert summary.agi_floor is None


def test_summary_applies_agi_floor():
    summary = summarize_deductions(EXPENSES, 2024, Decimal("2000"), settings=Settings())
    assert summary.agi_floor == Decimal("150.00")
    assert summary.deductible_above_floor == Decimal("50.00")

    high_income = summarize_deductions(EXPENSES, 2024, Decimal("100000"), settings=Settings())
    assert high_income.deductible_above_floor == Decimal("0.00")


def test_csv_export_lists_rows_then_summary():
    content = export_csv(EXPENSES, 2024, settings=Settings())
    rows = list(csv.reader(io.StringIO(content)))

    assert rows[0] == CSV_HEADERS
    assert [row[0] for row in rows[1:4]] == ["2024-01-20", "2024-02-01", "2024-03-06"]
    assert rows[1][8] == 'Co-pay, "urgent" visit'
    assert rows[2][5] == "Sunrise Dental"
    assert ["Total Deductible Expenses", "200.00"] in rows
    assert ["Number of Expenses", "3"] in rows
    by_category = rows.index(["BY CATEGORY"])
    assert rows[by_category + 1] == ["Medical Care", "181.50"]
    assert '"Date","Amount"' in content.splitlines()[0]


def test_csv_export_for_empty_year_has_only_summary():
    rows = list(csv.reader(io.StringIO(export_csv([], 2022, settings=Settings()))))
    assert rows[0] == CSV_HEADERS
    assert ["Tax Year", "2022"] in rows
    assert ["Total Deductible Expenses", "0.00"] in rows
