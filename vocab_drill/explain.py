"""Free-text check of a learner's own explanation of a word.

On a recall item the learner may type what they think the word means. The
answer is embedded and compared with the word's embedding by cosine
similarity, and the definition model writes a short verdict. Either half can
be missing when its provider is not configured or fails; the check never
changes mastery.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from vocab_drill.enrichment import call_with_retry
from vocab_drill.errors import ProviderError
from vocab_drill.similarity import cosine_distance

if TYPE_CHECKING:
    from vocab_drill.models import WordEntry
    from vocab_drill.providers.base import DefinitionProvider, EmbeddingProvider

log = logging.getLogger("vocab_drill.explain")


@dataclass
class ExplanationResult:
    score: float | None = None
    feedback: str | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def available(self) -> bool:
        return self.score is not None or self.feedback is not None


def similarity_score(a, b) -> float:
    """Cosine similarity clamped to [0, 1]; zero vectors score 0."""
    return max(0.0, min(1.0, 1.0 - cosine_distance(a, b)))


class ExplanationChecker:
    def __init__(
        self,
        definer: DefinitionProvider | None,
        embedder: EmbeddingProvider | None,
        timeout: float = 30.0,
        backoff: float = 1.0,
    ):
        self.definer = definer
        self.embedder = embedder
        self.timeout = timeout
        self.backoff = backoff

    @classmethod
    def from_settings(cls, settings, definer, embedder) -> ExplanationChecker | None:
        if not settings.explain_check or (definer is None and embedder is None):
            return None
        return cls(definer, embedder, timeout=settings.provider_timeout, backoff=settings.retry_backoff)

    async def _embed(self, text: str) -> list[float]:
        return await call_with_retry(
            lambda: self.embedder.embed(text), self.timeout, self.backoff, f"embed {text!r}"
        )

    async def _score(self, entry: WordEntry, answer: str) -> float | None:
        if self.embedder is None:
            return None
        vector = await self._embed(answer)
        reference = entry.embedding
        if reference is None or len(reference) != len(vector):
            reference = await self._embed(entry.embedding_text())
        return similarity_score(reference, vector)

    async def _judge(self, entry: WordEntry, answer: str) -> str | None:
        if self.definer is None:
            return None
        return await call_with_retry(
            lambda: self.definer.judge(entry.text, answer), self.timeout, self.backoff, f"judge {entry.id}"
        )

    async def check(self, entry: WordEntry, answer: str) -> ExplanationResult:
        answer = answer.strip()
        result = ExplanationResult()
        score, feedback = await asyncio.gather(
            self._score(entry, answer), self._judge(entry, answer), return_exceptions=True
        )
        for name, value in (("score", score), ("feedback", feedback)):
            if isinstance(value, ProviderError):
                log.warning("Explanation %s for %s unavailable: %s", name, entry.id, value)
                result.errors.append(str(value))
            elif isinstance(value, BaseException):
                raise value
            else:
                setattr(result, name, value)
        log.info("Explanation for %s scored %s", entry.id,
                 f"{result.score:.3f}" if result.score is not None else "n/a")
        return result
