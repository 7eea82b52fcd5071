"""Expense persistence helpers."""

from __future__ import annotations

import logging
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from careledger.errors import DuplicateSourceRef, ExpenseNotFound
from careledger.models.expense import Expense, ExpenseDraft, SourceRef

from .models import ExpenseORM, SyncedTransactionORM
from .repository import session_scope

logger = logging.getLogger(__name__)

_CENTS = Decimal("0.01")


def to_cents(amount: Decimal) -> int:
    return int(amount.quantize(_CENTS, rounding=ROUND_HALF_UP) * 100)


def from_cents(amount_cents: int) -> Decimal:
    return (Decimal(amount_cents) / Decimal(100)).quantize(_CENTS)


def _to_model(row: ExpenseORM) -> Expense:
    return Expense.model_validate(
        {
            "id": row.id,
            "user_id": row.user_id,
            "description": row.description,
            "vendor": row.vendor,
            "category": row.category,
            "subcategory": row.subcategory,
            "amount": from_cents(row.amount_cents),
            "date": row.date,
            "care_recipient_id": row.care_recipient_id,
            "is_tax_deductible": row.is_tax_deductible,
            "notes": row.notes,
            "source_ref": {"type": row.source_type, "id": row.source_id},
            "created_at": row.created_at,
        }
    )


def _select_by_source(user_id: str, source_ref: SourceRef):
    return select(ExpenseORM).where(
        ExpenseORM.user_id == user_id,
        ExpenseORM.source_type == source_ref.type,
        ExpenseORM.source_id == source_ref.id,
    )


def find_expense_by_source(user_id: str, source_ref: SourceRef) -> Optional[Expense]:
    """Return the expense recorded for a non-manual source reference, if any."""

    if source_ref.is_manual:
        return None
    with session_scope() as session:
        row = session.execute(_select_by_source(user_id, source_ref)).scalars().first()
        return _to_model(row) if row is not None else None


def _link_synced_transaction(session: Session, user_id: str, source_key: str, expense_id: int) -> None:
    result = session.execute(
        update(SyncedTransactionORM)
        .where(
            SyncedTransactionORM.user_id == user_id,
            SyncedTransactionORM.source_key == source_key,
        )
        .values(expense_id=expense_id)
    )
    if result.rowcount == 0:
        logger.debug("No synced transaction to link source_key=%s", source_key)


def insert_expense(user_id: str, draft: ExpenseDraft) -> Expense:
    """Insert a validated draft.

    Raises ``DuplicateSourceRef`` when another expense already holds the same
    non-manual source reference for this user.
    """

    try:
        with session_scope() as session:
            record = ExpenseORM(
                user_id=user_id,
                description=draft.description.strip(),
                vendor=draft.vendor,
                category=draft.category.strip(),
                subcategory=draft.subcategory,
                amount_cents=to_cents(draft.amount),
                date=draft.date,
                care_recipient_id=draft.care_recipient_id,
                is_tax_deductible=draft.is_tax_deductible,
                notes=draft.notes,
                source_type=draft.source_ref.type,
                source_id=draft.source_ref.id,
            )
            session.add(record)
            session.flush()
            if draft.source_ref.type == "transaction":
                _link_synced_transaction(session, user_id, draft.source_ref.id, record.id)
            return _to_model(record)
    except IntegrityError as exc:
        if "unique" not in str(exc.orig).lower():
            raise
        raise DuplicateSourceRef(
            f"Expense already recorded for source {draft.source_ref}"
        ) from exc


def get_expense(user_id: str, expense_id: int) -> Expense:
    """Return one of the user's expenses or raise ``ExpenseNotFound``."""

    with session_scope() as session:
        record = session.get(ExpenseORM, expense_id)
        if record is None or record.user_id != user_id:
            raise ExpenseNotFound(expense_id)
        return _to_model(record)


def list_expenses(user_id: str, tax_year: Optional[int] = None) -> List[Expense]:
    """Return a user's expenses, newest first, optionally limited to one tax year."""

    statement = select(ExpenseORM).where(ExpenseORM.user_id == user_id)
    if tax_year is not None:
        statement = statement.where(
            ExpenseORM.date >= date(tax_year, 1, 1),
            ExpenseORM.date <= date(tax_year, 12, 31),
        )
    statement = statement.order_by(ExpenseORM.date.desc(), ExpenseORM.id.desc())
    with session_scope() as session:
        rows = session.execute(statement).scalars().all()
        return [_to_model(row) for row in rows]


__all__ = [
    "to_cents",
    "from_cents",
    "find_expense_by_source",
    "insert_expense",
    "get_expense",
    "list_expenses",
]
