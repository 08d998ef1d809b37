from __future__ import annotations

from abc import ABC, abstractmethod

from vocab_drill.errors import ProviderUnavailable
from vocab_drill.models import Definition


class DefinitionProvider(ABC):
    @abstractmethod
    async def define(self, word: str) -> Definition:
        ...

    async def judge(self, word: str, answer: str) -> str:
        """Short verdict on how well *answer* explains *word*."""
        raise ProviderUnavailable(f"{self.name()} cannot judge explanations")

    async def check(self) -> None:
        """Raise ProviderUnavailable if the service cannot be reached."""

    @abstractmethod
    def name(self) -> str:
        ...


class EmbeddingProvider(ABC):
    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        ...

    async def check(self) -> None:
        """Raise ProviderUnavailable if the service cannot be reached."""

    @abstractmethod
    def name(self) -> str:
        ...
