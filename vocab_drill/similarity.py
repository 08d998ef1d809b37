"""Nearest-neighbor index over word embeddings (cosine distance)."""
from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable

import numpy as np

from vocab_drill.models import WordEntry

log = logging.getLogger("vocab_drill.similarity")


def cosine_distance(a, b) -> float:
    """1 - cosine similarity; a zero vector is treated as orthogonal to everything."""
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    mag_a = float(np.linalg.norm(a))
    mag_b = float(np.linalg.norm(b))
    if mag_a == 0.0 or mag_b == 0.0:
        return 1.0
    return 1.0 - float(np.dot(a, b) / (mag_a * mag_b))


class SimilarityIndex:
    """Immutable k-NN structure built from the embedded entries of a store.

    Entries without an embedding are left out; they never appear in query
    results until the index is rebuilt after their embedding is populated.
    """

    def __init__(self, entries: list[WordEntry], matrix: np.ndarray):
        self._entries = entries
        self._matrix = matrix  # rows L2-normalized, zero rows stay zero
        self._position = {e.id: i for i, e in enumerate(entries)}

    @classmethod
    def build(cls, entries: Iterable[WordEntry]) -> SimilarityIndex:
        embedded = [e for e in entries if e.embedding]
        if not embedded:
            return cls([], np.zeros((0, 0)))

        dims = Counter(len(e.embedding) for e in embedded)
        dim = dims.most_common(1)[0][0]
        skipped = [e.id for e in embedded if len(e.embedding) != dim]
        if skipped:
            log.warning("Skipping %d entries with embedding dimension != %d: %s",
                        len(skipped), dim, ", ".join(skipped))
            embedded = [e for e in embedded if len(e.embedding) == dim]

        embedded.sort(key=lambda e: e.id)
        matrix = np.array([e.embedding for e in embedded], dtype=np.float64)
        norms = np.linalg.norm(matrix, axis=1, keepdims=True)
        matrix = np.divide(matrix, norms, out=np.zeros_like(matrix), where=norms > 0)
        log.info("Built similarity index: %d entries, dim %d", len(embedded), dim)
        return cls(embedded, matrix)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, word_id: str) -> bool:
        return word_id in self._position

    def nearest_neighbors(self, word_id: str, k: int | None = None) -> list[tuple[WordEntry, float]]:
        """The *k* entries closest to *word_id*, nearest first.

        Ties are broken by id ascending. The word itself is excluded; an
        unknown or unembedded word has no neighbors.
        """
        pos = self._position.get(word_id)
        if pos is None or k == 0:
            return []
        distances = 1.0 - self._matrix @ self._matrix[pos]
        # Entries are sorted by id, so a stable sort on distance keeps id order on ties.
        order = np.argsort(distances, kind="stable")
        result = []
        for i in order:
            if i == pos:
                continue
            result.append((self._entries[i], float(distances[i])))
            if k is not None and len(result) >= k:
                break
        return result
