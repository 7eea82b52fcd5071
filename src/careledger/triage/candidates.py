"""Score pending bank transactions and order them for review."""

from __future__ import annotations

import logging
from typing import Iterable, Iterator, List, Optional, Protocol

from careledger.classify.classifier import ExpenseClassifier
from careledger.config import Settings, get_settings
from careledger.models.classification import ClassificationResult
from careledger.models.transaction import BankTransaction, ScoredTransaction, SyncedTransaction

logger = logging.getLogger(__name__)


class TransactionClassifier(Protocol):
    def classify(self, item: BankTransaction) -> ClassificationResult:
        ...


class ScoredQueue:
    """Finite, restartable view of scored transactions.

    Nothing is classified until the queue is first iterated or measured. Every
    iteration walks the same ordered results: score descending, then posted
    date descending, then input order.
    """

    def __init__(
        self,
        transactions: Iterable[SyncedTransaction],
        classifier: TransactionClassifier,
        threshold: float,
        *,
        only_candidates: bool = False,
    ) -> None:
        self._source: List[SyncedTransaction] = list(transactions)
        self._classifier = classifier
        self._threshold = threshold
        self._only_candidates = only_candidates
        self._scored: Optional[List[ScoredTransaction]] = None

    def _results(self) -> List[ScoredTransaction]:
        if self._scored is None:
            ranked = []
            for index, synced in enumerate(self._source):
                result = self._classifier.classify(synced.transaction)
                scored = ScoredTransaction(
                    transaction=synced,
                    score=result.deductible_likelihood,
                    is_candidate=result.deductible_likelihood >= self._threshold,
                    category=result.category,
                    subcategory=result.subcategory,
                )
                sort_key = (
                    -scored.score,
                    -synced.transaction.posted_date.toordinal(),
                    index,
                )
                ranked.append((sort_key, scored))
            ranked.sort(key=lambda entry: entry[0])
            self._scored = [
                scored
                for _, scored in ranked
                if scored.is_candidate or not self._only_candidates
            ]
            logger.debug(
                "Scored %s transactions (%s candidates)",
                len(self._scored),
                sum(1 for entry in self._scored if entry.is_candidate),
            )
        return self._scored

    def __iter__(self) -> Iterator[ScoredTransaction]:
        return iter(self._results())

    def __len__(self) -> int:
        return len(self._results())

    def all(self) -> List[ScoredTransaction]:
        return list(self._results())

    def candidates(self) -> List[ScoredTransaction]:
        return [entry for entry in self._results() if entry.is_candidate]


def score_candidates(
    transactions: Iterable[SyncedTransaction],
    classifier: Optional[TransactionClassifier] = None,
    *,
    settings: Optional[Settings] = None,
    only_candidates: bool = False,
) -> ScoredQueue:
    """Build a lazily scored review queue.

    Non-candidates are kept with their scores unless ``only_candidates`` is set.
    """

    settings = settings or get_settings()
    classifier = classifier or ExpenseClassifier(settings)
    return ScoredQueue(
        transactions,
        classifier,
        settings.candidate_threshold,
        only_candidates=only_candidates,
    )


__all__ = ["ScoredQueue", "score_candidates", "TransactionClassifier"]
