"""Per-user review queue over synced bank transactions."""

from __future__ import annotations

import logging
from typing import Iterable, Literal, Optional

from careledger import metrics
from careledger.classify.classifier import ExpenseClassifier
from careledger.config import Settings, get_settings
from careledger.db import transactions as transaction_store
from careledger.errors import AlreadyDecided, TriageError
from careledger.ledger.drafts import apply_overrides, draft_from_transaction
from careledger.models.expense import DraftOverrides, ExpenseDraft
from careledger.models.transaction import (
    BankTransaction,
    SyncedTransaction,
    SyncSummary,
    TriageState,
    TriageStats,
)
from careledger.triage.candidates import ScoredQueue, TransactionClassifier, score_candidates

logger = logging.getLogger(__name__)

QueueView = Literal["all", "candidates"]


class TriageQueue:
    """Sync, score and decide on one user's bank transactions.

    Every transition is a conditional update on the stored state, so two
    racing decisions on the same row resolve to exactly one winner; the loser
    gets ``AlreadyDecided`` and the stored row reflects the winner.
    """

    def __init__(
        self,
        user_id: str,
        *,
        classifier: Optional[TransactionClassifier] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._user_id = user_id
        self._settings = settings or get_settings()
        self._classifier = classifier or ExpenseClassifier(self._settings)

    @property
    def user_id(self) -> str:
        return self._user_id

    def sync(self, transactions: Iterable[BankTransaction]) -> SyncSummary:
        batch = list(transactions)
        summary = transaction_store.upsert_transactions(
            self._user_id,
            batch,
            window_days=self._settings.duplicate_window_days,
            similarity=self._settings.duplicate_similarity,
        )
        metrics.SYNCED_TRANSACTIONS.labels(result="inserted").inc(summary.inserted)
        metrics.SYNCED_TRANSACTIONS.labels(result="unchanged").inc(summary.unchanged)
        metrics.SYNCED_TRANSACTIONS.labels(result="possible_duplicate").inc(
            summary.possible_duplicates
        )
        logger.info(
            "Synced transactions user=%s inserted=%s unchanged=%s possible_duplicates=%s",
            self._user_id,
            summary.inserted,
            summary.unchanged,
            summary.possible_duplicates,
        )
        return summary

    def pending(self, view: QueueView = "all") -> ScoredQueue:
        """Scored queue of undecided transactions.

        ``view="candidates"`` narrows the queue to likely deductible rows.
        """

        rows = transaction_store.list_synced_transactions(
            self._user_id, states=[TriageState.PENDING]
        )
        return score_candidates(
            rows,
            self._classifier,
            settings=self._settings,
            only_candidates=view == "candidates",
        )

    def get(self, transaction_id: int) -> SyncedTransaction:
        return transaction_store.fetch_synced_transaction(self._user_id, transaction_id)

    def skip(self, transaction_id: int) -> SyncedTransaction:
        return self._decide("skip", transaction_id, TriageState.SKIPPED)

    def keep(
        self, transaction_id: int, overrides: Optional[DraftOverrides] = None
    ) -> ExpenseDraft:
        """Mark a pending transaction kept and store the draft built for it.

        The draft is not materialized; pass it to ``ExpenseMaterializer`` once
        the user confirms.
        """

        synced = self.get(transaction_id)
        if synced.state != TriageState.PENDING:
            metrics.TRIAGE_DECISIONS.labels(decision="keep", result="already_decided").inc()
            raise AlreadyDecided(transaction_id, synced.state.value)

        classification = self._classifier.classify(synced.transaction)
        draft = draft_from_transaction(
            synced.transaction, classification, settings=self._settings
        )
        draft = apply_overrides(draft, overrides)
        self._decide("keep", transaction_id, TriageState.KEPT, draft)
        return draft

    def reset(self, transaction_id: int) -> SyncedTransaction:
        try:
            synced = transaction_store.reset_decision(self._user_id, transaction_id)
        except TriageError as exc:
            metrics.TRIAGE_DECISIONS.labels(decision="reset", result=exc.kind.value).inc()
            raise
        metrics.TRIAGE_DECISIONS.labels(decision="reset", result="applied").inc()
        logger.info("Reset transaction user=%s id=%s", self._user_id, transaction_id)
        return synced

    def stats(self) -> TriageStats:
        counts = transaction_store.count_by_state(self._user_id)
        return TriageStats(
            pending=counts[TriageState.PENDING],
            candidates=len(self.pending("candidates")),
            kept=counts[TriageState.KEPT],
            skipped=counts[TriageState.SKIPPED],
        )

    def _decide(
        self,
        decision: str,
        transaction_id: int,
        state: TriageState,
        draft: Optional[ExpenseDraft] = None,
    ) -> SyncedTransaction:
        try:
            synced = transaction_store.decide(self._user_id, transaction_id, state, draft)
        except TriageError as exc:
            metrics.TRIAGE_DECISIONS.labels(decision=decision, result=exc.kind.value).inc()
            logger.info(
                "Triage %s rejected user=%s id=%s reason=%s",
                decision,
                self._user_id,
                transaction_id,
                exc,
            )
            raise
        metrics.TRIAGE_DECISIONS.labels(decision=decision, result="applied").inc()
        logger.info("Triage %s user=%s id=%s", decision, self._user_id, transaction_id)
        return synced


__all__ = ["TriageQueue", "QueueView"]
