from __future__ import annotations

import os

from vocab_drill.errors import ProviderTimeout, ProviderUnavailable
from vocab_drill.models import Definition
from vocab_drill.prompts import format_definition_prompt, format_judge_prompt, parse_definition, parse_judgement
from vocab_drill.providers.base import DefinitionProvider, EmbeddingProvider


class OpenAIProvider(DefinitionProvider, EmbeddingProvider):
    def __init__(self, model: str = "gpt-4o-mini"):
        import openai
        self._openai = openai
        self.client = openai.AsyncOpenAI(
            api_key=os.environ.get("OPENAI_API_KEY", ""),
        )
        self.model = model

    async def _call(self, coro):
        try:
            return await coro
        except self._openai.APITimeoutError as e:
            raise ProviderTimeout(f"{self.name()} timed out") from e
        except self._openai.OpenAIError as e:
            raise ProviderUnavailable(f"{self.name()} failed: {e}") from e

    async def check(self) -> None:
        if not os.environ.get("OPENAI_API_KEY"):
            raise ProviderUnavailable("OPENAI_API_KEY is not set")

    async def define(self, word: str) -> Definition:
        resp = await self._call(self.client.chat.completions.create(
            model=self.model,
            temperature=0.5,
            messages=[{"role": "user", "content": format_definition_prompt(word)}],
        ))
        definition = parse_definition(resp.choices[0].message.content or "")
        if definition is None:
            raise ProviderUnavailable(f"{self.name()} returned no usable definition for {word!r}")
        return definition

    async def judge(self, word: str, answer: str) -> str:
        resp = await self._call(self.client.chat.completions.create(
            model=self.model,
            temperature=0.5,
            messages=[{"role": "user", "content": format_judge_prompt(word, answer)}],
        ))
        verdict = parse_judgement(resp.choices[0].message.content or "")
        if verdict is None:
            raise ProviderUnavailable(f"{self.name()} returned an empty verdict for {word!r}")
        return verdict

    async def embed(self, text: str) -> list[float]:
        resp = await self._call(self.client.embeddings.create(model=self.model, input=text))
        return list(resp.data[0].embedding)

    def name(self) -> str:
        return f"openai/{self.model}"
