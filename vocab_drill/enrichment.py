"""Background population of definitions and embeddings.

Provider calls are slow and may stall, so each one is bounded by a timeout,
retried once after a backoff, and then given up on. A word that could not be
enriched is still taught; it just has no definition to show or no embedding
to be picked as a distractor.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import TYPE_CHECKING, TypeVar

from vocab_drill.errors import ProviderError, ProviderTimeout

if TYPE_CHECKING:
    from vocab_drill.models import WordEntry
    from vocab_drill.providers.base import DefinitionProvider, EmbeddingProvider

log = logging.getLogger("vocab_drill.enrich")

T = TypeVar("T")

MAX_ATTEMPTS = 2


async def call_with_retry(
    fn: Callable[[], Awaitable[T]],
    timeout: float,
    backoff: float,
    what: str = "provider call",
) -> T:
    """Await ``fn()`` with a timeout, retrying once on timeout.

    Raises ProviderTimeout after the second timeout. Other provider errors
    propagate immediately.
    """
    attempt = 1
    while True:
        try:
            return await asyncio.wait_for(fn(), timeout)
        except (asyncio.TimeoutError, ProviderTimeout) as e:
            if attempt >= MAX_ATTEMPTS:
                raise ProviderTimeout(f"{what} timed out {attempt} times") from e
            log.warning("%s timed out (attempt %d), retrying in %.1fs", what, attempt, backoff * attempt)
            await asyncio.sleep(backoff * attempt)
            attempt += 1


class EnrichmentPool:
    """Bounded pool of asyncio tasks filling in missing word content."""

    def __init__(
        self,
        definer: DefinitionProvider | None,
        embedder: EmbeddingProvider | None,
        workers: int = 4,
        timeout: float = 30.0,
        backoff: float = 1.0,
    ):
        self.definer = definer
        self.embedder = embedder
        self.workers = max(1, workers)
        self.timeout = timeout
        self.backoff = backoff
        self._semaphore: asyncio.Semaphore | None = None
        self._tasks: dict[str, asyncio.Task] = {}
        self._embeddings_changed = False
        self.failures: dict[str, str] = {}

    def start(self, entries: Iterable[WordEntry]) -> int:
        """Queue every entry that lacks content, in the given order."""
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self.workers)
        queued = 0
        for entry in entries:
            if entry.id in self._tasks or not self._needs_work(entry):
                continue
            self._tasks[entry.id] = asyncio.create_task(self._enrich(entry), name=f"enrich:{entry.id}")
            queued += 1
        if queued:
            log.info("Queued %d words for enrichment (%d workers)", queued, self.workers)
        return queued

    def _needs_work(self, entry: WordEntry) -> bool:
        return (self.definer is not None and entry.definition is None) or (
            self.embedder is not None and entry.embedding is None
        )

    async def _enrich(self, entry: WordEntry) -> None:
        async with self._semaphore:
            if self.definer is not None and entry.definition is None:
                try:
                    result = await call_with_retry(
                        lambda: self.definer.define(entry.text),
                        self.timeout, self.backoff, what=f"define({entry.text})",
                    )
                    if entry.set_definition(result.definition, result.example or None):
                        self._embeddings_changed = True
                except ProviderError as e:
                    log.warning("No definition for %s: %s", entry.text, e)
                    self.failures[entry.id] = str(e)

            if self.embedder is not None and entry.embedding is None:
                text = entry.embedding_text()
                try:
                    entry.embedding = await call_with_retry(
                        lambda: self.embedder.embed(text),
                        self.timeout, self.backoff, what=f"embed({entry.text})",
                    )
                    self._embeddings_changed = True
                except ProviderError as e:
                    log.warning("No embedding for %s: %s", entry.text, e)
                    self.failures[entry.id] = str(e)

    def consume_changes(self) -> bool:
        """True if any embedding changed since the last call."""
        changed = self._embeddings_changed
        self._embeddings_changed = False
        return changed

    def pending(self) -> int:
        return sum(1 for t in self._tasks.values() if not t.done())

    async def wait_for(self, word_id: str, timeout: float | None = None) -> bool:
        """Wait until *word_id* is enriched. False if it is still running."""
        task = self._tasks.get(word_id)
        if task is None:
            return True
        done, _ = await asyncio.wait({task}, timeout=timeout)
        return task in done

    async def drain(self) -> None:
        if self._tasks:
            await asyncio.gather(*self._tasks.values())

    async def close(self) -> None:
        """Cancel whatever is still running."""
        pending = [t for t in self._tasks.values() if not t.done()]
        for t in pending:
            t.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            log.info("Cancelled %d pending enrichment tasks", len(pending))
