"""Shared test fixtures."""
from __future__ import annotations

import math

import pytest

from vocab_drill.mastery import MasteryTracker
from vocab_drill.models import WordEntry
from vocab_drill.scheduler import Scheduler
from vocab_drill.store import WordStore

# abate and diminish point the same way, exacerbate points away
SCENARIO_VECTORS = {
    "abate": [1.0, 0.1, 0.0],
    "diminish": [0.95, 0.15, 0.0],
    "exacerbate": [-1.0, 0.2, 0.3],
}


@pytest.fixture
def empty_store():
    return WordStore("test")


@pytest.fixture
def scenario_store():
    """abate/diminish/exacerbate with embeddings, nothing reviewed yet."""
    store = WordStore("gre")
    store.import_words([
        WordEntry("abate", "abate", "become less intense", embedding=SCENARIO_VECTORS["abate"]),
        WordEntry("diminish", "diminish", "make or become less", embedding=SCENARIO_VECTORS["diminish"]),
        WordEntry("exacerbate", "exacerbate", "make worse", embedding=SCENARIO_VECTORS["exacerbate"]),
    ])
    return store


@pytest.fixture
def large_store():
    """Eight words spread over a half circle; neighbors follow list order."""
    store = WordStore("big")
    words = ["alpha", "bravo", "charlie", "delta", "echo", "foxtrot", "golf", "hotel"]
    for i, w in enumerate(words):
        angle = i * math.pi / 8
        store.add(WordEntry(w, w, f"definition of {w}", embedding=[math.cos(angle), math.sin(angle)]))
    return store


@pytest.fixture
def bare_store():
    """Words with no definitions or embeddings."""
    store = WordStore("bare")
    store.import_words([WordEntry.from_text(w) for w in ("ephemeral", "ubiquitous", "venerate")])
    return store


@pytest.fixture
def tracker(scenario_store):
    return MasteryTracker(scenario_store)


@pytest.fixture
def scheduler():
    return Scheduler()
