"""Per-word mastery tracking: exposure counts, streaks and recall confidence."""
from __future__ import annotations

from typing import TYPE_CHECKING

from vocab_drill.models import MasteryRecord

if TYPE_CHECKING:
    from vocab_drill.store import WordStore

DEFAULT_ALPHA = 0.3
DEFAULT_BETA = 0.5


def update_confidence(
    confidence: float,
    correct: bool,
    alpha: float = DEFAULT_ALPHA,
    beta: float = DEFAULT_BETA,
) -> float:
    """Apply one review to a confidence estimate.

    correct:   c + (1 - c) * alpha   (approaches 1.0, never reaches it)
    incorrect: c * beta              (sharp demotion)

    The input is clamped to [0, 1] first, so the result always stays there.
    """
    confidence = max(0.0, min(1.0, confidence))
    if correct:
        return confidence + (1.0 - confidence) * alpha
    return confidence * beta


class MasteryTracker:
    """Owns every MasteryRecord of one WordStore.

    Time is logical: the store's clock advances by one on each recorded
    result, and ``last_seen`` is the tick of the word's latest review.
    """

    def __init__(self, store: WordStore, alpha: float = DEFAULT_ALPHA, beta: float = DEFAULT_BETA):
        if not 0.0 < alpha <= 1.0:
            raise ValueError(f"alpha must be in (0, 1], got {alpha}")
        if not 0.0 <= beta < 1.0:
            raise ValueError(f"beta must be in [0, 1), got {beta}")
        self.store = store
        self.alpha = alpha
        self.beta = beta

    @property
    def now(self) -> int:
        return self.store.clock

    def get(self, word_id: str) -> MasteryRecord | None:
        return self.store.records.get(word_id)

    def confidence(self, word_id: str) -> float:
        record = self.get(word_id)
        return record.confidence if record else 0.0

    def exposures(self, word_id: str) -> int:
        record = self.get(word_id)
        return record.exposures if record else 0

    def elapsed(self, word_id: str) -> int | None:
        """Logical ticks since the word was last seen, None if never seen."""
        record = self.get(word_id)
        if record is None or record.last_seen is None:
            return None
        return max(0, self.now - record.last_seen)

    def record_result(self, word_id: str, correct: bool) -> float:
        """Record one review and return the updated confidence."""
        if word_id not in self.store.entries:
            raise KeyError(f"Unknown word id: {word_id!r}")
        record = self.store.records.get(word_id)
        if record is None:
            record = MasteryRecord(word_id=word_id)
            self.store.records[word_id] = record

        self.store.clock += 1
        record.exposures += 1
        record.correct_streak = record.correct_streak + 1 if correct else 0
        record.confidence = update_confidence(record.confidence, correct, self.alpha, self.beta)
        record.last_seen = self.store.clock
        return record.confidence
