"""Bank transaction review: candidate scoring and the triage queue."""

from .candidates import ScoredQueue, score_candidates
from .queue import TriageQueue

__all__ = ["ScoredQueue", "score_candidates", "TriageQueue"]
