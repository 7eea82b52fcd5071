"""Tests for the persistent triage queue."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import date
from decimal import Decimal

import pytest

from careledger.errors import AlreadyDecided, InvalidTransition, TransactionNotFound
from careledger.ledger import ExpenseMaterializer, list_expenses
from careledger.models.expense import DraftOverrides
from careledger.models.transaction import TriageState
from careledger.triage import TriageQueue
from tests.helpers import bank_transaction

USER = "user-1"


def _batch():
    return [
        bank_transaction("tx-1", raw_description="CVS/PHARMACY #1234", amount_cents=-2499),
        bank_transaction(
            "tx-2",
            raw_description="UBER TRIP 8841",
            amount_cents=-1850,
            posted_date=date(2024, 3, 6),
        ),
        bank_transaction(
            "tx-3",
            raw_description="SHELL OIL 5521",
            amount_cents=-4000,
            posted_date=date(2024, 3, 7),
        ),
    ]


@pytest.fixture()
def queue(settings) -> TriageQueue:
    triage = TriageQueue(USER, settings=settings)
    triage.sync(_batch())
    return triage


def _row_id(queue: TriageQueue, description: str) -> int:
    for entry in queue.pending():
        if entry.transaction.transaction.raw_description == description:
            return entry.transaction.id
    raise AssertionError(f"{description} not pending")


def test_sync_is_idempotent(settings):
    triage = TriageQueue(USER, settings=settings)
    first = triage.sync(_batch())
    second = triage.sync(_batch())

    assert (first.inserted, first.unchanged, first.total) == (3, 0, 3)
    assert (second.inserted, second.unchanged, second.total) == (0, 3, 3)
    assert len(triage.pending()) == 3


def test_repeated_transaction_in_one_batch_is_counted_once(settings):
    triage = TriageQueue(USER, settings=settings)
    transaction = bank_transaction()
    summary = triage.sync([transaction, transaction])
    assert summary.inserted == 1
    assert summary.unchanged == 1


def test_pending_views(queue):
    everything = queue.pending("all")
    candidates = queue.pending("candidates")

    assert [entry.transaction.transaction.id for entry in everything] == ["tx-1", "tx-2", "tx-3"]
    assert [entry.transaction.transaction.id for entry in candidates] == ["tx-1"]


def test_keep_returns_draft_and_stores_it(queue):
    row_id = _row_id(queue, "CVS/PHARMACY #1234")
    draft = queue.keep(row_id)

    assert draft.category == "Medical Care"
    assert draft.subcategory == "Prescriptions"
    assert draft.amount == Decimal("24.99")
    assert draft.date == date(2024, 3, 5)
    assert draft.is_tax_deductible is True
    assert str(draft.source_ref) == "transaction:acct-1:tx-1"

    stored = queue.get(row_id)
    assert stored.state is TriageState.KEPT
    assert stored.draft == draft
    assert stored.decided_at is not None
    assert row_id not in [entry.transaction.id for entry in queue.pending()]


def test_keep_applies_overrides(queue):
    row_id = _row_id(queue, "UBER TRIP 8841")
    draft = queue.keep(
        row_id,
        DraftOverrides(amount=Decimal("21.00"), notes="Ride to dialysis", care_recipient_id="mom"),
    )

    assert draft.amount == Decimal("21.00")
    assert draft.notes == "Ride to dialysis"
    assert draft.care_recipient_id == "mom"
    assert draft.category == "Transportation"


def test_second_keep_reports_already_decided(queue):
    row_id = _row_id(queue, "CVS/PHARMACY #1234")
    first = queue.keep(row_id)

    with pytest.raises(AlreadyDecided) as excinfo:
        queue.keep(row_id, DraftOverrides(amount=Decimal("99.00")))

    assert excinfo.value.state == "kept"
    assert queue.get(row_id).draft == first


def test_skip_then_keep_is_rejected(queue):
    row_id = _row_id(queue, "SHELL OIL 5521")
    skipped = queue.skip(row_id)
    assert skipped.state is TriageState.SKIPPED
    assert skipped.draft is None

    with pytest.raises(AlreadyDecided):
        queue.keep(row_id)
    with pytest.raises(AlreadyDecided):
        queue.skip(row_id)


def test_racing_decisions_have_one_winner(queue):
    row_id = _row_id(queue, "CVS/PHARMACY #1234")

    def attempt(action):
        try:
            action(row_id)
        except AlreadyDecided:
            return "lost"
        return "won"

    with ThreadPoolExecutor(max_workers=2) as pool:
        results = list(pool.map(attempt, [queue.keep, queue.skip]))

    assert sorted(results) == ["lost", "won"]
    stored = queue.get(row_id)
    if results[0] == "won":
        assert stored.state is TriageState.KEPT
        assert stored.draft is not None
    else:
        assert stored.state is TriageState.SKIPPED
        assert stored.draft is None


def test_reset_returns_row_to_pending(queue):
    row_id = _row_id(queue, "SHELL OIL 5521")
    queue.skip(row_id)

    reset = queue.reset(row_id)
    assert reset.state is TriageState.PENDING
    assert reset.decided_at is None
    assert queue.keep(row_id).category == "Other"


def test_reset_pending_row_is_invalid(queue):
    row_id = _row_id(queue, "SHELL OIL 5521")
    with pytest.raises(InvalidTransition):
        queue.reset(row_id)


def test_reset_removes_materialized_expense(queue, settings):
    row_id = _row_id(queue, "CVS/PHARMACY #1234")
    draft = queue.keep(row_id)
    materializer = ExpenseMaterializer(USER, settings=settings, today=lambda: date(2024, 12, 31))
    expense = materializer.materialize(draft)

    assert queue.get(row_id).expense_id == expense.id

    reset = queue.reset(row_id)
    assert reset.state is TriageState.PENDING
    assert reset.draft is None
    assert reset.expense_id is None
    assert list_expenses(USER) == []


def test_resync_leaves_decisions_alone(queue):
    row_id = _row_id(queue, "CVS/PHARMACY #1234")
    queue.keep(row_id)

    summary = queue.sync(_batch())
    assert summary.inserted == 0
    assert queue.get(row_id).state is TriageState.KEPT


def test_unknown_or_foreign_rows_are_not_found(queue, settings):
    row_id = _row_id(queue, "CVS/PHARMACY #1234")
    stranger = TriageQueue("user-2", settings=settings)

    with pytest.raises(TransactionNotFound):
        queue.get(9999)
    with pytest.raises(TransactionNotFound):
        queue.skip(9999)
    with pytest.raises(TransactionNotFound):
        stranger.keep(row_id)
    assert len(stranger.pending()) == 0


def test_possible_duplicates_are_flagged_not_dropped(settings):
    triage = TriageQueue(USER, settings=settings)
    triage.sync([bank_transaction("tx-1", raw_description="CVS/PHARMACY #1234")])
    summary = triage.sync(
        [
            bank_transaction(
                "tx-1b", raw_description="CVS/PHARMACY #5678", posted_date=date(2024, 3, 6)
            ),
            bank_transaction(
                "tx-far", raw_description="CVS/PHARMACY #1234", posted_date=date(2024, 3, 20)
            ),
            bank_transaction("tx-other", raw_description="CVS/PHARMACY #1234", amount_cents=-999),
        ]
    )

    assert summary.inserted == 3
    assert summary.possible_duplicates == 1
    rows = {entry.transaction.transaction.id: entry.transaction for entry in triage.pending()}
    assert rows["tx-1b"].duplicate_of == rows["tx-1"].id
    assert rows["tx-far"].duplicate_of is None
    assert rows["tx-other"].duplicate_of is None


def test_stats_counts_each_state(queue):
    queue.keep(_row_id(queue, "CVS/PHARMACY #1234"))
    queue.skip(_row_id(queue, "SHELL OIL 5521"))

    stats = queue.stats()
    assert (stats.pending, stats.candidates, stats.kept, stats.skipped) == (1, 0, 1, 1)
