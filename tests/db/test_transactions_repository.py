"""Tests for synced transaction and expense repository helpers."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import text

from careledger.db.expenses import from_cents, get_expense, insert_expense, to_cents
from careledger.db.repository import session_scope
from careledger.db.transactions import (
    count_by_state,
    decide,
    fetch_synced_transaction,
    list_synced_transactions,
    reset_decision,
    upsert_transactions,
)
from careledger.errors import (
    AlreadyDecided,
    ExpenseNotFound,
    InvalidTransition,
    TransactionNotFound,
)
from careledger.models.expense import ExpenseDraft, SourceRef
from careledger.models.transaction import TriageState
from tests.helpers import bank_transaction

USER = "user-1"


def _sync(*transactions):
    return upsert_transactions(USER, list(transactions), window_days=3, similarity=90)


def _draft(source_id="acct-1:tx-1") -> ExpenseDraft:
    return ExpenseDraft(
        description="CVS/PHARMACY",
        category="Medical Care",
        amount=Decimal("24.99"),
        date=date(2024, 3, 5),
        is_tax_deductible=True,
        source_ref=SourceRef(type="transaction", id=source_id),
    )


def test_upsert_stores_transaction_fields():
    summary = _sync(bank_transaction(merchant_name="CVS"))
    assert summary.inserted == 1

    [row] = list_synced_transactions(USER)
    assert row.state is TriageState.PENDING
    assert row.transaction.merchant_name_normalized == "CVS"
    assert row.transaction.amount_cents == -2499
    assert row.synced_at is not None
    assert fetch_synced_transaction(USER, row.id) == row


def test_same_transaction_id_in_other_account_is_distinct():
    summary = _sync(bank_transaction("tx-1"), bank_transaction("tx-1", account_id="acct-2"))
    assert summary.inserted == 2


def test_decide_only_moves_pending_rows():
    _sync(bank_transaction())
    [row] = list_synced_transactions(USER)

    kept = decide(USER, row.id, TriageState.KEPT, _draft())
    assert kept.state is TriageState.KEPT
    assert kept.draft == _draft()

    with pytest.raises(AlreadyDecided) as excinfo:
        decide(USER, row.id, TriageState.SKIPPED)
    assert excinfo.value.state == "kept"
    assert fetch_synced_transaction(USER, row.id).draft == _draft()


def test_decide_unknown_row_is_not_found():
    with pytest.raises(TransactionNotFound):
        decide(USER, 12345, TriageState.SKIPPED)


def test_reset_deletes_linked_expense_in_same_transaction():
    _sync(bank_transaction())
    [row] = list_synced_transactions(USER)
    decide(USER, row.id, TriageState.KEPT, _draft())
    expense = insert_expense(USER, _draft())

    assert fetch_synced_transaction(USER, row.id).expense_id == expense.id

    reset = reset_decision(USER, row.id)
    assert reset.state is TriageState.PENDING
    assert reset.expense_id is None
    with pytest.raises(ExpenseNotFound):
        get_expense(USER, expense.id)


def test_reset_requires_a_decision():
    _sync(bank_transaction())
    [row] = list_synced_transactions(USER)
    with pytest.raises(InvalidTransition):
        reset_decision(USER, row.id)


def test_count_by_state_includes_empty_states():
    _sync(bank_transaction("tx-1"), bank_transaction("tx-2", posted_date=date(2024, 5, 1)))
    first = list_synced_transactions(USER)[0]
    decide(USER, first.id, TriageState.SKIPPED)

    counts = count_by_state(USER)
    assert counts == {TriageState.PENDING: 1, TriageState.KEPT: 0, TriageState.SKIPPED: 1}
    assert list_synced_transactions(USER, states=[TriageState.SKIPPED])[0].id == first.id


def test_foreign_keys_are_enforced():
    with session_scope() as session:
        enabled = session.execute(text("PRAGMA foreign_keys")).scalar_one()
    assert enabled == 1


def test_cent_conversions_round_half_up():
    assert to_cents(Decimal("24.99")) == 2499
    assert to_cents(Decimal("0.005")) == 1
    assert from_cents(-1850) == Decimal("-18.50")
