"""Tax-year deduction summaries and CSV export."""

from __future__ import annotations

import csv
import io
from collections import defaultdict
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional

from careledger.config import Settings, get_settings
from careledger.models.expense import Expense
from careledger.models.report import DeductionSummary

CSV_HEADERS = [
    "Date",
    "Amount",
    "Category",
    "Subcategory",
    "Description",
    "Vendor",
    "Care Recipient",
    "Source",
    "Notes",
]

_CENTS = Decimal("0.01")


def deductible_expenses(expenses: Iterable[Expense], tax_year: int) -> List[Expense]:
    """Tax-deductible expenses dated within ``tax_year``, oldest first."""

    selected = [
        expense
        for expense in expenses
        if expense.is_tax_deductible and expense.date.year == tax_year
    ]
    return sorted(selected, key=lambda expense: (expense.date, expense.id))


def summarize_deductions(
    expenses: Iterable[Expense],
    tax_year: int,
    agi: Optional[Decimal] = None,
    *,
    settings: Optional[Settings] = None,
) -> DeductionSummary:
    """Total deductible expenses for the year, by category.

    With an adjusted gross income the summary also shows the 7.5% floor and
    the part of the total above it. This is a display calculation only, not
    tax advice.
    """

    settings = settings or get_settings()
    selected = deductible_expenses(expenses, tax_year)

    by_category: Dict[str, Decimal] = defaultdict(lambda: Decimal("0.00"))
    for expense in selected:
        by_category[expense.category] += expense.amount
    total = sum((expense.amount for expense in selected), Decimal("0.00"))

    agi_floor = None
    above_floor = None
    if agi is not None:
        agi_floor = (agi * settings.agi_floor_rate).quantize(_CENTS, rounding=ROUND_HALF_UP)
        above_floor = max(Decimal("0.00"), total - agi_floor)

    return DeductionSummary(
        tax_year=tax_year,
        expense_count=len(selected),
        total_deductible=total.quantize(_CENTS),
        by_category={
            category: amount.quantize(_CENTS) for category, amount in sorted(by_category.items())
        },
        agi=agi,
        agi_floor=agi_floor,
        deductible_above_floor=above_floor,
    )


def export_csv(
    expenses: Iterable[Expense],
    tax_year: int,
    *,
    settings: Optional[Settings] = None,
) -> str:
    """Render deductible rows followed by a summary and per-category totals."""

    selected = deductible_expenses(expenses, tax_year)
    summary = summarize_deductions(selected, tax_year, settings=settings)

    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for expense in selected:
        writer.writerow(
            [
                expense.date.isoformat(),
                f"{expense.amount:.2f}",
                expense.category,
                expense.subcategory or "",
                expense.description,
                expense.vendor or "",
                expense.care_recipient_id or "",
                expense.source_ref.type,
                expense.notes or "",
            ]
        )

    writer.writerow([])
    writer.writerow(["SUMMARY"])
    writer.writerow(["Tax Year", str(tax_year)])
    writer.writerow(["Total Deductible Expenses", f"{summary.total_deductible:.2f}"])
    writer.writerow(["Number of Expenses", str(summary.expense_count)])
    writer.writerow([])
    writer.writerow(["BY CATEGORY"])
    for category, amount in summary.by_category.items():
        writer.writerow([category, f"{amount:.2f}"])
    return buffer.getvalue()


__all__ = ["CSV_HEADERS", "deductible_expenses", "summarize_deductions", "export_csv"]
