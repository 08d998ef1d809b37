"""Tests for the session loop."""
from __future__ import annotations

import asyncio
import random

import pytest

from vocab_drill.config import Settings
from vocab_drill.enrichment import EnrichmentPool
from vocab_drill.errors import EmptyCorpus
from vocab_drill.explain import ExplanationResult
from vocab_drill.mastery import MasteryTracker
from vocab_drill.models import Definition, QuizItem, QuizMode, WordEntry
from vocab_drill.scheduler import Scheduler
from vocab_drill.session import (
    Session,
    SessionContext,
    build_choices,
    evaluate,
    parse_choice,
)


class FakeUI:
    """Scripted stand-in for TerminalUI."""

    def __init__(self, responses=None, default=""):
        self.responses = list(responses or [])
        self.default = default
        self.presented = []
        self.feedback = []
        self.invalid = []
        self.explanations = []

    async def present(self, item, choices, position):
        self.presented.append((item, list(choices)))
        if self.responses:
            response = self.responses.pop(0)
            return response(item, choices) if callable(response) else response
        return self.default

    def show_feedback(self, item, selected, correct, confidence):
        self.feedback.append((item.target.id, selected.id, correct))

    def show_invalid(self, response, n_choices):
        self.invalid.append(response)

    def _next(self):
        return self.responses.pop(0) if self.responses else self.default

    async def review_explanation(self, item, result):
        self.explanations.append((item.target.id, result.score, result.feedback))
        return self._next()

    async def ask_explanation(self, item):
        return self._next()


class FakeChecker:
    def __init__(self):
        self.answers = []

    async def check(self, entry, answer):
        self.answers.append((entry.id, answer))
        return ExplanationResult(score=0.8, feedback="close enough")


class FakeProvider:
    def __init__(self, delay=0.0):
        self._delay = delay

    async def define(self, word):
        await asyncio.sleep(self._delay)
        return Definition(f"meaning of {word}", "")

    async def embed(self, text):
        await asyncio.sleep(self._delay)
        return [1.0, float(len(text))]

    def name(self):
        return "fake"


def right(item, choices):
    return str(next(i for i, c in enumerate(choices, 1) if c.id == item.target.id))


def wrong(item, choices):
    return str(next(i for i, c in enumerate(choices, 1) if c.id != item.target.id))


def make_context(store, length=0, enrichment=None, checker=None):
    saves = []
    ctx = SessionContext(
        store=store,
        tracker=MasteryTracker(store),
        scheduler=Scheduler(),
        persist=lambda: saves.append(store.clock),
        enrichment=enrichment,
        session_length=length,
        enrich_wait=1.0,
        rng=random.Random(0),
        checker=checker,
    )
    return ctx, saves


class TestEvaluate:
    def test_recall_always_correct(self):
        item = QuizItem(WordEntry.from_text("abate"), QuizMode.RECALL)
        assert evaluate(item, None) is True

    def test_multiple_choice(self):
        target = WordEntry.from_text("abate")
        item = QuizItem(target, QuizMode.MULTIPLE_CHOICE, [WordEntry.from_text("diminish")])
        assert evaluate(item, "abate") is True
        assert evaluate(item, "diminish") is False


class TestChoices:
    def test_recall_has_no_choices(self):
        item = QuizItem(WordEntry.from_text("abate"), QuizMode.RECALL)
        assert build_choices(item, random.Random(0)) == []

    def test_choices_contain_target_and_distractors(self):
        target = WordEntry.from_text("abate")
        others = [WordEntry.from_text("diminish"), WordEntry.from_text("exacerbate")]
        choices = build_choices(QuizItem(target, QuizMode.MULTIPLE_CHOICE, others), random.Random(1))
        assert sorted(c.id for c in choices) == ["abate", "diminish", "exacerbate"]

    def test_parse_choice(self):
        choices = [WordEntry.from_text("abate"), WordEntry.from_text("diminish")]
        assert parse_choice("2", choices).id == "diminish"
        assert parse_choice(" Abate ", choices).id == "abate"
        assert parse_choice("3", choices) is None
        assert parse_choice("0", choices) is None
        assert parse_choice("nope", choices) is None


class TestSessionLoop:
    @pytest.mark.asyncio
    async def test_empty_corpus(self, empty_store):
        ctx, _ = make_context(empty_store)
        with pytest.raises(EmptyCorpus):
            await Session(ctx, FakeUI()).run()

    @pytest.mark.asyncio
    async def test_session_length(self, scenario_store):
        ctx, saves = make_context(scenario_store, length=5)
        ui = FakeUI(responses=["", "", "", right, right])
        summary = await Session(ctx, ui).run()
        assert summary.shown == 5
        assert summary.quizzed == 2
        assert summary.correct == 2
        assert not summary.quit
        # one save per answered item plus the final one
        assert len(saves) == 6

    @pytest.mark.asyncio
    async def test_recall_then_multiple_choice(self, scenario_store):
        ctx, _ = make_context(scenario_store, length=4)
        ui = FakeUI(responses=["", "", "", right])
        await Session(ctx, ui).run()
        modes = [item.mode for item, _ in ui.presented]
        assert modes == [QuizMode.RECALL] * 3 + [QuizMode.MULTIPLE_CHOICE]
        item, choices = ui.presented[3]
        assert item.target.id == "abate"
        assert {c.id for c in choices} == {"abate", "diminish", "exacerbate"}
        assert ui.feedback == [("abate", "abate", True)]

    @pytest.mark.asyncio
    async def test_wrong_answer_updates_tracker(self, scenario_store):
        ctx, _ = make_context(scenario_store, length=4)
        ui = FakeUI(responses=["", "", "", wrong])
        await Session(ctx, ui).run()
        record = ctx.tracker.get("abate")
        assert record.correct_streak == 0
        assert record.confidence == pytest.approx(0.15)
        assert ui.feedback[0][2] is False

    @pytest.mark.asyncio
    async def test_quit(self, scenario_store):
        ctx, saves = make_context(scenario_store)
        ui = FakeUI(responses=["", "q"])
        summary = await Session(ctx, ui).run()
        assert summary.quit
        assert summary.shown == 1
        assert ctx.tracker.exposures("abate") == 1
        assert ctx.tracker.exposures("diminish") == 0
        assert saves[-1] == 1

    @pytest.mark.asyncio
    async def test_invalid_choice_reprompts(self, scenario_store):
        ctx, _ = make_context(scenario_store, length=4)
        ui = FakeUI(responses=["", "", "", "9", "banana", right])
        summary = await Session(ctx, ui).run()
        assert ui.invalid == ["9", "banana"]
        assert summary.correct == 1
        assert ctx.store.clock == 4

    @pytest.mark.asyncio
    async def test_enrichment_runs_during_session(self, bare_store):
        pool = EnrichmentPool(FakeProvider(), FakeProvider(), workers=2, timeout=1.0, backoff=0.0)
        ctx, _ = make_context(bare_store, length=3, enrichment=pool)
        ui = FakeUI()
        await Session(ctx, ui).run()
        # each new word waited for its own definition before being shown
        first_item, _ = ui.presented[0]
        assert first_item.target.definition == "meaning of ephemeral"
        assert all(item.target.definition for item, _ in ui.presented)

    @pytest.mark.asyncio
    async def test_index_rebuilt_after_embeddings_arrive(self, bare_store):
        pool = EnrichmentPool(FakeProvider(), FakeProvider(), workers=3, timeout=1.0, backoff=0.0)
        ctx, _ = make_context(bare_store, length=4, enrichment=pool)
        ui = FakeUI(responses=["", "", "", right])
        await Session(ctx, ui).run()
        assert len(ctx.index) == 3
        assert ui.presented[3][0].mode is QuizMode.MULTIPLE_CHOICE

    @pytest.mark.asyncio
    async def test_from_settings(self, scenario_store):
        settings = Settings(alpha=0.5, session_length=2, confidence_floor=0.4)
        ctx = SessionContext.from_settings(settings, scenario_store, persist=lambda: None)
        assert ctx.tracker.alpha == 0.5
        assert ctx.scheduler.confidence_floor == 0.4
        summary = await Session(ctx, FakeUI()).run()
        assert summary.shown == 2


class TestExplanationCheck:
    @pytest.mark.asyncio
    async def test_explanation_scored_and_recall_still_counts(self, scenario_store):
        checker = FakeChecker()
        ctx, _ = make_context(scenario_store, length=1, checker=checker)
        ui = FakeUI(responses=["it gets weaker", ""])
        summary = await Session(ctx, ui).run()
        assert checker.answers == [("abate", "it gets weaker")]
        assert ui.explanations == [("abate", 0.8, "close enough")]
        assert summary.shown == 1
        assert summary.explained == 1
        assert ctx.tracker.confidence("abate") == pytest.approx(0.3)

    @pytest.mark.asyncio
    async def test_retry_asks_again(self, scenario_store):
        checker = FakeChecker()
        ctx, _ = make_context(scenario_store, length=1, checker=checker)
        ui = FakeUI(responses=["no idea", "r", "to lessen", ""])
        summary = await Session(ctx, ui).run()
        assert [a for _, a in checker.answers] == ["no idea", "to lessen"]
        assert summary.explained == 2
        assert ctx.store.clock == 1

    @pytest.mark.asyncio
    async def test_empty_retry_moves_on(self, scenario_store):
        checker = FakeChecker()
        ctx, _ = make_context(scenario_store, length=2, checker=checker)
        ui = FakeUI(responses=["no idea", "r", "", ""])
        summary = await Session(ctx, ui).run()
        assert summary.shown == 2
        assert summary.explained == 1

    @pytest.mark.asyncio
    async def test_quit_from_explanation(self, scenario_store):
        ctx, _ = make_context(scenario_store, checker=FakeChecker())
        ui = FakeUI(responses=["guess", "q"])
        summary = await Session(ctx, ui).run()
        assert summary.quit
        assert ctx.tracker.exposures("abate") == 0

    @pytest.mark.asyncio
    async def test_typed_text_ignored_without_checker(self, scenario_store):
        ctx, _ = make_context(scenario_store, length=1)
        ui = FakeUI(responses=["it gets weaker"])
        summary = await Session(ctx, ui).run()
        assert summary.shown == 1
        assert summary.explained == 0
        assert ui.explanations == []
