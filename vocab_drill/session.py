"""One interactive study session.

The loop is strictly sequential: schedule an item, present it, read the
answer, update mastery, persist. Background enrichment fills in content
meanwhile; the similarity index is rebuilt whenever it reports a change.
"""
from __future__ import annotations

import logging
import random
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from vocab_drill.errors import EmptyCorpus
from vocab_drill.mastery import MasteryTracker
from vocab_drill.models import QuizItem, QuizMode, WordEntry
from vocab_drill.scheduler import Scheduler
from vocab_drill.similarity import SimilarityIndex

if TYPE_CHECKING:
    from vocab_drill.config import Settings
    from vocab_drill.enrichment import EnrichmentPool
    from vocab_drill.explain import ExplanationChecker
    from vocab_drill.store import WordStore
    from vocab_drill.terminal import TerminalUI

log = logging.getLogger("vocab_drill.session")

QUIT_KEYS = {"q", "quit", ":q"}
RETRY_KEYS = {"r", "retry"}


@dataclass
class SessionContext:
    """Everything a session touches, passed explicitly."""

    store: WordStore
    tracker: MasteryTracker
    scheduler: Scheduler
    persist: Callable[[], None]
    enrichment: EnrichmentPool | None = None
    session_length: int = 0  # 0 = until the learner quits
    enrich_wait: float = 30.0
    rng: random.Random = field(default_factory=random.Random)
    index: SimilarityIndex | None = None
    checker: ExplanationChecker | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: WordStore,
        persist: Callable[[], None],
        enrichment: EnrichmentPool | None = None,
        checker: ExplanationChecker | None = None,
    ) -> SessionContext:
        return cls(
            store=store,
            tracker=MasteryTracker(store, alpha=settings.alpha, beta=settings.beta),
            scheduler=Scheduler.from_settings(settings),
            persist=persist,
            enrichment=enrichment,
            session_length=settings.session_length,
            enrich_wait=settings.provider_timeout,
            checker=checker,
        )

    def refresh_index(self) -> SimilarityIndex:
        changed = self.enrichment.consume_changes() if self.enrichment else False
        if self.index is None or changed:
            self.index = SimilarityIndex.build(self.store)
        return self.index

    def next_item(self) -> QuizItem:
        return self.scheduler.next_item(self.store, self.tracker, self.refresh_index())


@dataclass
class SessionSummary:
    shown: int = 0
    quizzed: int = 0
    correct: int = 0
    explained: int = 0
    quit: bool = False

    def record(self, item: QuizItem, correct: bool) -> None:
        self.shown += 1
        if item.mode is QuizMode.MULTIPLE_CHOICE:
            self.quizzed += 1
            if correct:
                self.correct += 1


def build_choices(item: QuizItem, rng: random.Random) -> list[WordEntry]:
    """Shuffled answer options; empty for recall items."""
    if item.mode is QuizMode.RECALL:
        return []
    choices = [item.target, *item.distractors]
    rng.shuffle(choices)
    return choices


def evaluate(item: QuizItem, selected_id: str | None) -> bool:
    if item.mode is QuizMode.RECALL:
        # exposure only, not a test
        return True
    if item.mode is QuizMode.MULTIPLE_CHOICE:
        return selected_id == item.target.id
    raise ValueError(f"Unknown quiz mode: {item.mode}")


def parse_choice(response: str, choices: list[WordEntry]) -> WordEntry | None:
    """Map a typed number (or the word itself) to a choice."""
    response = response.strip()
    if response.isdigit():
        n = int(response)
        if 1 <= n <= len(choices):
            return choices[n - 1]
        return None
    lowered = response.lower()
    return next((c for c in choices if c.id == lowered), None)


class Session:
    def __init__(self, ctx: SessionContext, ui: TerminalUI):
        self.ctx = ctx
        self.ui = ui
        self.summary = SessionSummary()

    def _finished(self) -> bool:
        length = self.ctx.session_length
        return self.summary.quit or (length > 0 and self.summary.shown >= length)

    async def _await_answer(self, item: QuizItem, choices: list[WordEntry]) -> tuple[bool, WordEntry | None]:
        """Read input until it is usable. Returns (quit, selected choice)."""
        position = self.summary.shown + 1
        while True:
            response = await self.ui.present(item, choices, position)
            if response.strip().lower() in QUIT_KEYS:
                return True, None
            if item.mode is QuizMode.RECALL:
                if response.strip() and self.ctx.checker is not None:
                    return await self._explain(item, response), None
                return False, None
            selected = parse_choice(response, choices)
            if selected is not None:
                return False, selected
            self.ui.show_invalid(response, len(choices))

    async def _explain(self, item: QuizItem, answer: str) -> bool:
        """Check typed explanations until the learner moves on. Returns True on quit."""
        while True:
            result = await self.ctx.checker.check(item.target, answer)
            self.summary.explained += 1
            key = (await self.ui.review_explanation(item, result)).strip().lower()
            if key in QUIT_KEYS:
                return True
            if key not in RETRY_KEYS:
                return False
            answer = await self.ui.ask_explanation(item)
            if answer.strip().lower() in QUIT_KEYS:
                return True
            if not answer.strip():
                return False

    async def run(self) -> SessionSummary:
        ctx = self.ctx
        if len(ctx.store) == 0:
            raise EmptyCorpus(f"Corpus {ctx.store.corpus!r} has no words to study")
        if ctx.enrichment is not None:
            ctx.enrichment.start(ctx.scheduler.rank(ctx.store, ctx.tracker))

        log.info("Session started: corpus %s, %d words", ctx.store.corpus, len(ctx.store))
        try:
            while not self._finished():
                await self.step()
        finally:
            if ctx.enrichment is not None:
                await ctx.enrichment.close()
            ctx.persist()
        log.info("Session ended: %d shown, %d/%d correct",
                 self.summary.shown, self.summary.correct, self.summary.quizzed)
        return self.summary

    async def step(self) -> None:
        """Run one scheduling/answer/update round."""
        ctx = self.ctx
        target = ctx.scheduler.pick_target(ctx.store, ctx.tracker)
        if ctx.enrichment is not None and target.definition is None:
            await ctx.enrichment.wait_for(target.id, ctx.enrich_wait)

        item = ctx.next_item()
        choices = build_choices(item, ctx.rng)
        quit_, selected = await self._await_answer(item, choices)
        if quit_:
            self.summary.quit = True
            return

        correct = evaluate(item, selected.id if selected else None)
        confidence = ctx.tracker.record_result(item.target.id, correct)
        ctx.persist()
        self.summary.record(item, correct)
        log.info("%s %s -> %s (confidence %.3f)", item.mode.value, item.target.id,
                 "correct" if correct else "wrong", confidence)
        if item.mode is QuizMode.MULTIPLE_CHOICE:
            self.ui.show_feedback(item, selected, correct, confidence)
