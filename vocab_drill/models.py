from __future__ import annotations

import enum
from dataclasses import dataclass, field


def normalize_word(text: str) -> str:
    """Stable id for a word: stripped and lower-cased."""
    return text.strip().lower()


@dataclass
class WordEntry:
    id: str
    text: str
    definition: str | None = None
    example: str | None = None
    embedding: list[float] | None = None

    @classmethod
    def from_text(cls, text: str, definition: str | None = None, example: str | None = None) -> WordEntry:
        return cls(id=normalize_word(text), text=text.strip(), definition=definition, example=example)

    def set_definition(self, definition: str | None, example: str | None = None) -> bool:
        """Replace definition/example. Returns True if the embedding was invalidated."""
        changed = definition != self.definition
        self.definition = definition
        self.example = example
        if changed and self.embedding is not None:
            self.embedding = None
            return True
        return False

    def embedding_text(self) -> str:
        if self.definition:
            return f"{self.text}: {self.definition}"
        return self.text


@dataclass
class MasteryRecord:
    word_id: str
    exposures: int = 0
    correct_streak: int = 0
    last_seen: int | None = None  # logical review tick
    confidence: float = 0.0


class QuizMode(enum.Enum):
    RECALL = "recall"
    MULTIPLE_CHOICE = "multiple_choice"


@dataclass
class QuizItem:
    target: WordEntry
    mode: QuizMode
    distractors: list[WordEntry] = field(default_factory=list)  # nearest first
    review: bool = False  # recall shown for an already-seen word


@dataclass
class Definition:
    definition: str
    example: str = ""
