"""Next-word selection and distractor choice.

Target selection scores every reviewed word by

    score = (1 - confidence) * recency_factor(elapsed)

where ``recency_factor`` rises from 1.0 toward ``recency_cap`` as logical time
passes since the word was last seen. Unreviewed words score exactly
``recency_cap``, above any reviewed word, so the whole corpus is covered
before anything repeats.
"""
from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING

from vocab_drill.errors import EmptyCorpus
from vocab_drill.models import QuizItem, QuizMode, WordEntry

if TYPE_CHECKING:
    from vocab_drill.mastery import MasteryTracker
    from vocab_drill.similarity import SimilarityIndex
    from vocab_drill.store import WordStore

log = logging.getLogger("vocab_drill.scheduler")

DEFAULT_RECENCY_CAP = 3.0
DEFAULT_RECENCY_SCALE = 10.0
DEFAULT_CONFIDENCE_FLOOR = 0.2
DEFAULT_DISTRACTOR_COUNT = 3


def recency_factor(elapsed: float, cap: float = DEFAULT_RECENCY_CAP, scale: float = DEFAULT_RECENCY_SCALE) -> float:
    """1.0 right after a review, approaching *cap* as *elapsed* grows."""
    return 1.0 + (cap - 1.0) * (1.0 - math.exp(-max(0.0, elapsed) / scale))


class Scheduler:
    def __init__(
        self,
        recency_cap: float = DEFAULT_RECENCY_CAP,
        recency_scale: float = DEFAULT_RECENCY_SCALE,
        confidence_floor: float = DEFAULT_CONFIDENCE_FLOOR,
        distractor_count: int = DEFAULT_DISTRACTOR_COUNT,
    ):
        if recency_cap <= 1.0:
            raise ValueError(f"recency_cap must be > 1.0, got {recency_cap}")
        if recency_scale <= 0.0:
            raise ValueError(f"recency_scale must be > 0, got {recency_scale}")
        self.recency_cap = recency_cap
        self.recency_scale = recency_scale
        self.confidence_floor = confidence_floor
        self.distractor_count = distractor_count

    @classmethod
    def from_settings(cls, settings) -> Scheduler:
        return cls(
            recency_cap=settings.recency_cap,
            recency_scale=settings.recency_scale,
            confidence_floor=settings.confidence_floor,
            distractor_count=settings.distractor_count,
        )

    def weakness(self, tracker: MasteryTracker, word_id: str) -> float:
        record = tracker.get(word_id)
        if record is None or record.exposures == 0:
            return self.recency_cap
        elapsed = tracker.elapsed(word_id) or 0
        return (1.0 - record.confidence) * recency_factor(elapsed, self.recency_cap, self.recency_scale)

    def _priority(self, tracker: MasteryTracker, entry: WordEntry) -> tuple:
        # max score, then fewest exposures, then lowest id
        return (-self.weakness(tracker, entry.id), tracker.exposures(entry.id), entry.id)

    def pick_target(self, store: WordStore, tracker: MasteryTracker) -> WordEntry:
        if len(store) == 0:
            raise EmptyCorpus(f"Corpus {store.corpus!r} has no words")
        return min(store, key=lambda e: self._priority(tracker, e))

    def rank(self, store: WordStore, tracker: MasteryTracker) -> list[WordEntry]:
        """All entries in the order they would currently be picked."""
        return sorted(store, key=lambda e: self._priority(tracker, e))

    def pick_distractors(
        self,
        target: WordEntry,
        tracker: MasteryTracker,
        index: SimilarityIndex,
    ) -> list[WordEntry]:
        """Nearest confusable words, preferring ones the learner already knows.

        Neighbors below the confidence floor are skipped unless that leaves
        too few, in which case the plain nearest neighbors are used.
        """
        neighbors = [entry for entry, _ in index.nearest_neighbors(target.id)]
        wanted = min(self.distractor_count, len(neighbors))
        if wanted == 0:
            return []
        known = [n for n in neighbors if tracker.confidence(n.id) >= self.confidence_floor]
        if len(known) >= wanted:
            return known[:wanted]
        log.debug("Relaxing confidence floor for %s: %d/%d neighbors pass",
                  target.id, len(known), wanted)
        return neighbors[:wanted]

    def next_item(self, store: WordStore, tracker: MasteryTracker, index: SimilarityIndex) -> QuizItem:
        target = self.pick_target(store, tracker)
        if tracker.exposures(target.id) == 0:
            return QuizItem(target=target, mode=QuizMode.RECALL)

        if not target.definition and not target.example:
            log.info("No cue for %s, falling back to recall", target.id)
            return QuizItem(target=target, mode=QuizMode.RECALL, review=True)

        distractors = self.pick_distractors(target, tracker, index)
        if not distractors:
            log.info("No distractors for %s, falling back to recall", target.id)
            return QuizItem(target=target, mode=QuizMode.RECALL, review=True)
        return QuizItem(target=target, mode=QuizMode.MULTIPLE_CHOICE, distractors=distractors)
