"""Tests for target selection and distractor choice."""
from __future__ import annotations

import random

import pytest

from vocab_drill.errors import EmptyCorpus
from vocab_drill.mastery import MasteryTracker
from vocab_drill.models import QuizMode, WordEntry
from vocab_drill.scheduler import Scheduler, recency_factor
from vocab_drill.similarity import SimilarityIndex


class TestRecencyFactor:
    def test_starts_at_one(self):
        assert recency_factor(0) == 1.0

    def test_grows_with_elapsed(self):
        values = [recency_factor(t) for t in range(0, 50, 5)]
        assert values == sorted(values)
        assert values[-1] > values[0]

    def test_bounded_by_cap(self):
        assert recency_factor(10_000, cap=3.0) <= 3.0

    def test_rejects_bad_config(self):
        with pytest.raises(ValueError):
            Scheduler(recency_cap=1.0)
        with pytest.raises(ValueError):
            Scheduler(recency_scale=0.0)


class TestTargetSelection:
    def test_empty_store_raises(self, empty_store, scheduler):
        tracker = MasteryTracker(empty_store)
        with pytest.raises(EmptyCorpus):
            scheduler.next_item(empty_store, tracker, SimilarityIndex.build(empty_store))

    def test_new_words_in_id_order(self, scenario_store, tracker, scheduler):
        assert scheduler.pick_target(scenario_store, tracker).id == "abate"

    def test_unreviewed_beats_any_reviewed_word(self, scenario_store, tracker, scheduler):
        # a word with zero confidence seen long ago still loses to a new word
        tracker.record_result("abate", False)
        scenario_store.records["abate"].confidence = 0.0
        scenario_store.clock = 10_000
        assert scheduler.pick_target(scenario_store, tracker).id == "diminish"

    def test_lower_confidence_wins(self, scenario_store, tracker, scheduler):
        for word in ("abate", "diminish", "exacerbate"):
            tracker.record_result(word, True)
        tracker.record_result("diminish", True)
        tracker.record_result("abate", True)
        tracker.record_result("exacerbate", False)
        assert scheduler.pick_target(scenario_store, tracker).id == "exacerbate"

    def test_stale_word_becomes_urgent(self, scenario_store, tracker, scheduler):
        for word in ("abate", "diminish", "exacerbate"):
            tracker.record_result(word, True)
        # same confidence everywhere; abate has waited longest
        assert scheduler.pick_target(scenario_store, tracker).id == "abate"

    def test_rank_orders_whole_store(self, scenario_store, tracker, scheduler):
        tracker.record_result("abate", True)
        assert [e.id for e in scheduler.rank(scenario_store, tracker)] == ["diminish", "exacerbate", "abate"]

    def test_corpus_covered_before_repeats(self, large_store, scheduler):
        tracker = MasteryTracker(large_store)
        index = SimilarityIndex.build(large_store)
        rng = random.Random(3)
        seen = []
        for _ in range(len(large_store)):
            item = scheduler.next_item(large_store, tracker, index)
            seen.append(item.target.id)
            tracker.record_result(item.target.id, rng.random() < 0.5)
        assert sorted(seen) == sorted(large_store.entries)


class TestModesAndDistractors:
    def test_first_exposure_is_recall(self, scenario_store, tracker, scheduler):
        item = scheduler.next_item(scenario_store, tracker, SimilarityIndex.build(scenario_store))
        assert item.mode is QuizMode.RECALL
        assert item.distractors == []

    def test_three_word_scenario(self, scenario_store, tracker, scheduler):
        index = SimilarityIndex.build(scenario_store)
        first_three = []
        for _ in range(3):
            item = scheduler.next_item(scenario_store, tracker, index)
            assert item.mode is QuizMode.RECALL
            first_three.append(item.target.id)
            tracker.record_result(item.target.id, True)
        assert first_three == ["abate", "diminish", "exacerbate"]

        item = scheduler.next_item(scenario_store, tracker, index)
        assert item.mode is QuizMode.MULTIPLE_CHOICE
        assert item.target.id == "abate"
        assert [d.id for d in item.distractors] == ["diminish", "exacerbate"]

    def test_distractor_count_capped(self, large_store):
        scheduler = Scheduler(distractor_count=3)
        tracker = MasteryTracker(large_store)
        for word in large_store.entries:
            tracker.record_result(word, True)
        index = SimilarityIndex.build(large_store)
        item = scheduler.next_item(large_store, tracker, index)
        assert item.mode is QuizMode.MULTIPLE_CHOICE
        assert len(item.distractors) == 3
        assert item.target not in item.distractors

    def test_weak_neighbors_skipped(self, large_store, scheduler):
        tracker = MasteryTracker(large_store)
        for word in large_store.entries:
            tracker.record_result(word, True)
        tracker.record_result("bravo", False)
        tracker.record_result("bravo", False)  # 0.3 -> 0.15 -> 0.075
        index = SimilarityIndex.build(large_store)
        distractors = scheduler.pick_distractors(large_store.get("alpha"), tracker, index)
        assert [d.id for d in distractors] == ["charlie", "delta", "echo"]

    def test_floor_relaxed_when_too_few_pass(self, large_store, scheduler):
        tracker = MasteryTracker(large_store)
        tracker.record_result("alpha", True)
        tracker.record_result("charlie", True)  # the only neighbor above the floor
        index = SimilarityIndex.build(large_store)
        distractors = scheduler.pick_distractors(large_store.get("alpha"), tracker, index)
        assert [d.id for d in distractors] == ["bravo", "charlie", "delta"]

    def test_small_corpus_uses_weak_neighbors(self, scenario_store, tracker, scheduler):
        tracker.record_result("abate", True)
        index = SimilarityIndex.build(scenario_store)
        distractors = scheduler.pick_distractors(scenario_store.get("abate"), tracker, index)
        assert [d.id for d in distractors] == ["diminish", "exacerbate"]

    def test_no_neighbors_falls_back_to_recall(self, bare_store, scheduler):
        tracker = MasteryTracker(bare_store)
        for word in bare_store.entries:
            tracker.record_result(word, True)
        item = scheduler.next_item(bare_store, tracker, SimilarityIndex.build(bare_store))
        assert item.mode is QuizMode.RECALL

    def test_word_without_cue_is_not_quizzed(self, empty_store, scheduler):
        # embedded from the bare word after the definition fetch failed
        for w, vec in (("abate", [1.0, 0.1]), ("diminish", [0.9, 0.2]), ("exacerbate", [-1.0, 0.3])):
            empty_store.add(WordEntry(w, w, embedding=vec))
        tracker = MasteryTracker(empty_store)
        for w in ("abate", "diminish", "exacerbate"):
            tracker.record_result(w, True)
        item = scheduler.next_item(empty_store, tracker, SimilarityIndex.build(empty_store))
        assert item.mode is QuizMode.RECALL
        assert item.distractors == []

    def test_example_alone_is_enough_for_a_quiz(self, empty_store, scheduler):
        for w, vec in (("abate", [1.0, 0.1]), ("diminish", [0.9, 0.2])):
            empty_store.add(WordEntry(w, w, example=f"Costs will {w} soon.", embedding=vec))
        tracker = MasteryTracker(empty_store)
        tracker.record_result("abate", True)
        tracker.record_result("diminish", True)
        item = scheduler.next_item(empty_store, tracker, SimilarityIndex.build(empty_store))
        assert item.mode is QuizMode.MULTIPLE_CHOICE

    def test_single_word_corpus(self, empty_store, scheduler):
        empty_store.add(WordEntry("lone", "lone", "alone", embedding=[1.0, 0.0]))
        tracker = MasteryTracker(empty_store)
        tracker.record_result("lone", True)
        item = scheduler.next_item(empty_store, tracker, SimilarityIndex.build(empty_store))
        assert item.target.id == "lone"
        assert item.mode is QuizMode.RECALL
