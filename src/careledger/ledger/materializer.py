"""Validate expense drafts and persist them exactly once per source."""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Callable, List, Optional

from careledger import metrics
from careledger.config import Settings, get_settings
from careledger.db import expenses as expense_store
from careledger.errors import DuplicateSourceRef, InvalidDraft
from careledger.models.expense import Expense, ExpenseDraft

logger = logging.getLogger(__name__)


class ExpenseMaterializer:
    """Turn drafts into ledger rows for one user.

    Drafts with an ``ocr`` or ``transaction`` source are idempotent: asking
    twice (or racing another request) returns the row that already exists.
    Manual drafts always insert.
    """

    def __init__(
        self,
        user_id: str,
        *,
        settings: Optional[Settings] = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._user_id = user_id
        self._settings = settings or get_settings()
        self._today = today

    def validate(self, draft: ExpenseDraft) -> None:
        if draft.amount <= 0:
            raise InvalidDraft("amount", "must be greater than zero")
        latest = self._today() + timedelta(days=self._settings.clock_skew_days)
        if draft.date > latest:
            raise InvalidDraft("date", f"must not be later than {latest.isoformat()}")
        if not draft.category or not draft.category.strip():
            raise InvalidDraft("category", "must not be blank")

    def materialize(self, draft: ExpenseDraft) -> Expense:
        source = draft.source_ref
        try:
            self.validate(draft)
        except InvalidDraft:
            metrics.MATERIALIZATIONS.labels(source=source.type, result="invalid").inc()
            raise

        if not source.is_manual:
            existing = expense_store.find_expense_by_source(self._user_id, source)
            if existing is not None:
                metrics.MATERIALIZATIONS.labels(source=source.type, result="existing").inc()
                logger.debug("Expense already materialized source=%s id=%s", source, existing.id)
                return existing

        try:
            expense = expense_store.insert_expense(self._user_id, draft)
        except DuplicateSourceRef as exc:
            logger.info("%s; returning existing expense", exc)
            existing = expense_store.find_expense_by_source(self._user_id, source)
            if existing is None:
                raise
            metrics.MATERIALIZATIONS.labels(source=source.type, result="existing").inc()
            return existing

        metrics.MATERIALIZATIONS.labels(source=source.type, result="created").inc()
        logger.info(
            "Materialized expense id=%s source=%s category=%s", expense.id, source, expense.category
        )
        return expense

    def get(self, expense_id: int) -> Expense:
        return expense_store.get_expense(self._user_id, expense_id)

    def list_expenses(self, tax_year: Optional[int] = None) -> List[Expense]:
        return list_expenses(self._user_id, tax_year)


def list_expenses(user_id: str, tax_year: Optional[int] = None) -> List[Expense]:
    """Return a user's expenses, newest first."""

    return expense_store.list_expenses(user_id, tax_year)


__all__ = ["ExpenseMaterializer", "list_expenses"]
