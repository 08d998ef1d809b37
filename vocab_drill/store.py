"""Word Store and its JSON persistence.

State file layout::

    {
      "version": 1,
      "corpora": {
        "<corpus>": {
          "clock": 12,
          "words": [
            {"id": ..., "text": ..., "definition": ..., "example": ...,
             "embedding": [...], "exposures": ..., "correct_streak": ...,
             "confidence": ..., "last_seen": ...},
            ...
          ]
        }
      }
    }

Writes go to a temp file in the same directory and are moved into place with
``os.replace``, so an interrupted save leaves the previous file intact.
"""
from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path

from vocab_drill.errors import StorageCorrupt, StorageError
from vocab_drill.models import MasteryRecord, WordEntry

log = logging.getLogger("vocab_drill.store")

STATE_VERSION = 1


class WordStore:
    """Entries and mastery records of a single corpus."""

    def __init__(self, corpus: str):
        self.corpus = corpus
        self.entries: dict[str, WordEntry] = {}
        self.records: dict[str, MasteryRecord] = {}
        self.clock = 0

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries.values())

    def __contains__(self, word_id: str) -> bool:
        return word_id in self.entries

    def get(self, word_id: str) -> WordEntry | None:
        return self.entries.get(word_id)

    def add(self, entry: WordEntry) -> WordEntry:
        """Add *entry* unless a word with the same id exists; return the stored one."""
        existing = self.entries.get(entry.id)
        if existing is not None:
            return existing
        self.entries[entry.id] = entry
        return entry

    def import_words(self, words: list[WordEntry]) -> int:
        """Merge parsed words into the store. Returns the number of new entries.

        Existing entries keep their mastery and cached embedding unless the
        imported definition differs, in which case the embedding is dropped.
        """
        added = 0
        for w in words:
            existing = self.entries.get(w.id)
            if existing is None:
                self.entries[w.id] = w
                added += 1
                continue
            if w.definition and w.definition != existing.definition:
                existing.set_definition(w.definition, w.example or existing.example)
            elif w.example and not existing.example:
                existing.example = w.example
        return added

    def get_word_count(self) -> int:
        return len(self.entries)

    def missing_content(self) -> list[WordEntry]:
        """Entries lacking a definition or an embedding."""
        return [e for e in self if e.definition is None or e.embedding is None]

    def get_stats(self) -> dict:
        reviewed = [r for r in self.records.values() if r.exposures > 0]
        return {
            "corpus": self.corpus,
            "total_words": len(self.entries),
            "words_reviewed": len(reviewed),
            "words_new": len(self.entries) - len(reviewed),
            "with_definition": sum(1 for e in self if e.definition),
            "with_embedding": sum(1 for e in self if e.embedding is not None),
            "total_exposures": sum(r.exposures for r in reviewed),
            "mean_confidence": (
                round(sum(r.confidence for r in reviewed) / len(reviewed), 4) if reviewed else 0.0
            ),
        }

    def mastery_rows(self) -> list[dict]:
        """Reviewed words, weakest first."""
        rows = [
            {
                "id": e.id,
                "text": e.text,
                "exposures": r.exposures,
                "correct_streak": r.correct_streak,
                "confidence": r.confidence,
            }
            for e in self
            if (r := self.records.get(e.id)) is not None
        ]
        rows.sort(key=lambda row: (row["confidence"], row["id"]))
        return rows

    # ── Serialization ─────────────────────────────────────────────────────

    def to_dict(self) -> dict:
        words = []
        for e in self:
            r = self.records.get(e.id)
            words.append({
                "id": e.id,
                "text": e.text,
                "definition": e.definition,
                "example": e.example,
                "embedding": e.embedding,
                "exposures": r.exposures if r else 0,
                "correct_streak": r.correct_streak if r else 0,
                "confidence": r.confidence if r else 0.0,
                "last_seen": r.last_seen if r else None,
            })
        return {"clock": self.clock, "words": words}

    @classmethod
    def from_dict(cls, corpus: str, data: dict) -> WordStore:
        """Build a store from its serialized form. Raises StorageCorrupt."""
        store = cls(corpus)
        try:
            store.clock = int(data.get("clock", 0))
            for raw in data["words"]:
                entry = WordEntry(
                    id=_require_str(raw, "id"),
                    text=_require_str(raw, "text"),
                    definition=raw.get("definition"),
                    example=raw.get("example"),
                    embedding=_parse_embedding(raw.get("embedding")),
                )
                if entry.id in store.entries:
                    raise StorageCorrupt(f"duplicate word id {entry.id!r} in corpus {corpus!r}")
                store.entries[entry.id] = entry

                exposures = _non_negative(raw, "exposures", entry.id)
                streak = _non_negative(raw, "correct_streak", entry.id)
                last_seen = raw.get("last_seen")
                if last_seen is not None:
                    last_seen = _non_negative(raw, "last_seen", entry.id)
                if exposures > 0 or last_seen is not None:
                    confidence = float(raw.get("confidence", 0.0))
                    if not 0.0 <= confidence <= 1.0:
                        raise StorageCorrupt(f"confidence out of range for {entry.id!r}: {confidence}")
                    store.records[entry.id] = MasteryRecord(
                        word_id=entry.id,
                        exposures=exposures,
                        correct_streak=streak,
                        last_seen=last_seen,
                        confidence=confidence,
                    )
        except StorageCorrupt:
            raise
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise StorageCorrupt(f"malformed corpus {corpus!r}: {e}") from e
        return store


def _require_str(raw: dict, key: str) -> str:
    value = raw[key]
    if not isinstance(value, str) or not value:
        raise StorageCorrupt(f"field {key!r} must be a non-empty string, got {value!r}")
    return value


def _non_negative(raw: dict, key: str, word_id: str) -> int:
    value = int(raw.get(key) or 0)
    if value < 0:
        raise StorageCorrupt(f"{key} must not be negative for {word_id!r}: {value}")
    return value


def _parse_embedding(value) -> list[float] | None:
    if value is None:
        return None
    if not isinstance(value, list):
        raise StorageCorrupt(f"embedding must be a list, got {type(value).__name__}")
    return [float(x) for x in value]


class StateFile:
    """All corpora persisted in one JSON document."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self.corpora: dict[str, WordStore] = {}

    @classmethod
    def open(cls, path: Path) -> tuple[StateFile, str | None]:
        """Load *path*, recovering from a corrupt file.

        Returns (state, warning). A corrupt file is moved aside rather than
        overwritten and an empty state is returned with a warning message.
        Raises StorageError when the file cannot be read or moved at all.
        """
        state = cls(path)
        try:
            state.load()
        except StorageCorrupt as e:
            backup = state.path.with_name(
                f"{state.path.name}.corrupt-{datetime.now().strftime('%Y%m%d%H%M%S')}"
            )
            try:
                os.replace(state.path, backup)
            except OSError as move_err:
                raise StorageError(f"Cannot move corrupt state file aside: {move_err}") from move_err
            state.corpora = {}
            warning = f"State file {state.path} is corrupt ({e}); moved to {backup.name}, starting fresh."
            log.warning(warning)
            return state, warning
        return state, None

    def load(self) -> None:
        if not self.path.exists():
            self.corpora = {}
            return
        try:
            text = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Cannot read state file {self.path}: {e}") from e
        try:
            doc = json.loads(text)
        except json.JSONDecodeError as e:
            raise StorageCorrupt(f"invalid JSON: {e}") from e
        if not isinstance(doc, dict) or not isinstance(doc.get("corpora"), dict):
            raise StorageCorrupt("missing 'corpora' mapping")
        version = doc.get("version", STATE_VERSION)
        if version != STATE_VERSION:
            raise StorageCorrupt(f"unsupported state version {version!r}")
        self.corpora = {
            name: WordStore.from_dict(name, data) for name, data in doc["corpora"].items()
        }
        log.info("Loaded %d corpora from %s", len(self.corpora), self.path)

    def corpus(self, name: str) -> WordStore:
        """Return the named corpus, creating an empty one if needed."""
        store = self.corpora.get(name)
        if store is None:
            store = WordStore(name)
            self.corpora[name] = store
        return store

    def to_dict(self) -> dict:
        return {
            "version": STATE_VERSION,
            "corpora": {name: store.to_dict() for name, store in self.corpora.items()},
        }

    def save(self) -> None:
        """Atomically write every corpus to disk."""
        payload = json.dumps(self.to_dict(), indent=2, ensure_ascii=False) + "\n"
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
        except OSError as e:
            raise StorageError(f"Cannot write state file {self.path}: {e}") from e
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except OSError as e:
            Path(tmp_name).unlink(missing_ok=True)
            raise StorageError(f"Cannot write state file {self.path}: {e}") from e
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
