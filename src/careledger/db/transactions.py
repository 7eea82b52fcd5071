"""Synced bank transaction persistence and triage transitions."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Dict, Iterable, List, Optional, Sequence

from rapidfuzz import fuzz
from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from careledger.classify.merchant import display_merchant
from careledger.errors import AlreadyDecided, InvalidTransition, TransactionNotFound
from careledger.models.expense import ExpenseDraft
from careledger.models.transaction import (
    BankTransaction,
    SyncedTransaction,
    SyncSummary,
    TriageState,
)

from .models import ExpenseORM, SyncedTransactionORM
from .repository import session_scope

logger = logging.getLogger(__name__)


def _to_model(row: SyncedTransactionORM) -> SyncedTransaction:
    return SyncedTransaction.model_validate(
        {
            "id": row.id,
            "user_id": row.user_id,
            "transaction": {
                "id": row.source_transaction_id,
                "account_id": row.account_id,
                "amount_cents": row.amount_cents,
                "posted_date": row.posted_date,
                "raw_description": row.raw_description,
                "merchant_name_normalized": row.merchant_name_normalized,
            },
            "state": row.state,
            "draft": ExpenseDraft.model_validate_json(row.draft) if row.draft else None,
            "expense_id": row.expense_id,
            "duplicate_of": row.duplicate_of,
            "synced_at": row.synced_at,
            "decided_at": row.decided_at,
        }
    )


def _find_possible_duplicate(
    session: Session,
    user_id: str,
    transaction: BankTransaction,
    merchant_key: str,
    *,
    window_days: int,
    similarity: float,
) -> Optional[int]:
    """Return the id of an earlier row that looks like the same charge re-posted."""

    window = timedelta(days=window_days)
    rows = session.execute(
        select(SyncedTransactionORM.id, SyncedTransactionORM.merchant_key)
        .where(
            SyncedTransactionORM.user_id == user_id,
            SyncedTransactionORM.account_id == transaction.account_id,
            SyncedTransactionORM.amount_cents == transaction.amount_cents,
            SyncedTransactionORM.posted_date >= transaction.posted_date - window,
            SyncedTransactionORM.posted_date <= transaction.posted_date + window,
            SyncedTransactionORM.source_transaction_id != transaction.id,
        )
        .order_by(SyncedTransactionORM.id.asc())
    ).all()
    for row_id, existing_key in rows:
        if fuzz.token_set_ratio(merchant_key, existing_key) >= similarity:
            return row_id
    return None


def upsert_transactions(
    user_id: str,
    transactions: Sequence[BankTransaction],
    *,
    window_days: int,
    similarity: float,
) -> SyncSummary:
    """Insert transactions not seen before; existing rows and their decisions are left alone."""

    inserted = unchanged = duplicates = 0
    seen: set[str] = set()
    with session_scope() as session:
        for transaction in transactions:
            if transaction.source_key in seen:
                unchanged += 1
                continue
            seen.add(transaction.source_key)

            existing = session.execute(
                select(SyncedTransactionORM.id).where(
                    SyncedTransactionORM.user_id == user_id,
                    SyncedTransactionORM.account_id == transaction.account_id,
                    SyncedTransactionORM.source_transaction_id == transaction.id,
                )
            ).scalar_one_or_none()
            if existing is not None:
                unchanged += 1
                continue

            merchant_key = display_merchant(
                transaction.merchant_name_normalized, transaction.raw_description
            )
            duplicate_of = _find_possible_duplicate(
                session,
                user_id,
                transaction,
                merchant_key,
                window_days=window_days,
                similarity=similarity,
            )
            if duplicate_of is not None:
                duplicates += 1
                logger.info(
                    "Possible duplicate transaction source_key=%s duplicate_of=%s",
                    transaction.source_key,
                    duplicate_of,
                )

            session.add(
                SyncedTransactionORM(
                    user_id=user_id,
                    account_id=transaction.account_id,
                    source_transaction_id=transaction.id,
                    source_key=transaction.source_key,
                    amount_cents=transaction.amount_cents,
                    posted_date=transaction.posted_date,
                    raw_description=transaction.raw_description,
                    merchant_name_normalized=transaction.merchant_name_normalized,
                    merchant_key=merchant_key,
                    state=TriageState.PENDING.value,
                    duplicate_of=duplicate_of,
                )
            )
            # Later rows in the same batch must see this one when checking duplicates.
            session.flush()
            inserted += 1

    return SyncSummary(
        inserted=inserted,
        unchanged=unchanged,
        possible_duplicates=duplicates,
        total=len(transactions),
    )


def list_synced_transactions(
    user_id: str, states: Optional[Iterable[TriageState]] = None
) -> List[SyncedTransaction]:
    """Return a user's synced transactions in sync order."""

    statement = select(SyncedTransactionORM).where(SyncedTransactionORM.user_id == user_id)
    if states is not None:
        statement = statement.where(
            SyncedTransactionORM.state.in_([state.value for state in states])
        )
    statement = statement.order_by(SyncedTransactionORM.id.asc())
    with session_scope() as session:
        rows = session.execute(statement).scalars().all()
        return [_to_model(row) for row in rows]


def _get_row(session: Session, user_id: str, row_id: int) -> SyncedTransactionORM:
    record = session.get(SyncedTransactionORM, row_id)
    if record is None or record.user_id != user_id:
        raise TransactionNotFound(row_id)
    return record


def fetch_synced_transaction(user_id: str, row_id: int) -> SyncedTransaction:
    with session_scope() as session:
        return _to_model(_get_row(session, user_id, row_id))


def decide(
    user_id: str,
    row_id: int,
    state: TriageState,
    draft: Optional[ExpenseDraft] = None,
) -> SyncedTransaction:
    """Move a pending row to ``state``.

    The update only matches rows still ``pending``; if another decision got
    there first the row is left untouched and ``AlreadyDecided`` is raised.
    """

    with session_scope() as session:
        result = session.execute(
            update(SyncedTransactionORM)
            .where(
                SyncedTransactionORM.id == row_id,
                SyncedTransactionORM.user_id == user_id,
                SyncedTransactionORM.state == TriageState.PENDING.value,
            )
            .values(
                state=state.value,
                draft=draft.model_dump_json() if draft is not None else None,
                decided_at=func.now(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            record = _get_row(session, user_id, row_id)
            raise AlreadyDecided(row_id, record.state)
        record = _get_row(session, user_id, row_id)
        session.refresh(record)
        return _to_model(record)


def reset_decision(user_id: str, row_id: int) -> SyncedTransaction:
    """Return a kept or skipped row to ``pending``.

    A materialized expense linked to the row is deleted in the same database
    transaction, so undo never leaves an orphaned ledger entry behind.
    """

    with session_scope() as session:
        record = _get_row(session, user_id, row_id)
        current = record.state
        if current == TriageState.PENDING.value:
            raise InvalidTransition(
                f"Transaction {row_id} is already pending; nothing to reset.",
                transaction_id=row_id,
            )
        expense_id = record.expense_id

        result = session.execute(
            update(SyncedTransactionORM)
            .where(
                SyncedTransactionORM.id == row_id,
                SyncedTransactionORM.state == current,
            )
            .values(
                state=TriageState.PENDING.value,
                draft=None,
                expense_id=None,
                decided_at=None,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise InvalidTransition(
                f"Transaction {row_id} changed while resetting.",
                transaction_id=row_id,
            )

        if expense_id is not None:
            session.execute(
                delete(ExpenseORM).where(
                    ExpenseORM.id == expense_id,
                    ExpenseORM.user_id == user_id,
                )
            )
            logger.info(
                "Removed expense_id=%s while resetting transaction_id=%s", expense_id, row_id
            )

        session.refresh(record)
        return _to_model(record)


def count_by_state(user_id: str) -> Dict[TriageState, int]:
    with session_scope() as session:
        rows = session.execute(
            select(SyncedTransactionORM.state, func.count(SyncedTransactionORM.id))
            .where(SyncedTransactionORM.user_id == user_id)
            .group_by(SyncedTransactionORM.state)
        ).all()
    counts = {state: 0 for state in TriageState}
    for state, total in rows:
        counts[TriageState(state)] = total
    return counts


__all__ = [
    "upsert_transactions",
    "list_synced_transactions",
    "fetch_synced_transaction",
    "decide",
    "reset_decision",
    "count_by_state",
]
