from __future__ import annotations

import os

from vocab_drill.errors import ProviderTimeout, ProviderUnavailable
from vocab_drill.models import Definition
from vocab_drill.prompts import format_definition_prompt, format_judge_prompt, parse_definition, parse_judgement
from vocab_drill.providers.base import DefinitionProvider


class AnthropicProvider(DefinitionProvider):
    """Definitions only; Anthropic has no embedding endpoint."""

    def __init__(self, model: str = "claude-sonnet-4-20250514"):
        import anthropic
        self._anthropic = anthropic
        self.client = anthropic.AsyncAnthropic(
            api_key=os.environ.get("ANTHROPIC_API_KEY", ""),
        )
        self.model = model

    async def check(self) -> None:
        if not os.environ.get("ANTHROPIC_API_KEY"):
            raise ProviderUnavailable("ANTHROPIC_API_KEY is not set")

    async def _complete(self, prompt: str) -> str:
        try:
            message = await self.client.messages.create(
                model=self.model,
                max_tokens=512,
                temperature=0.5,
                messages=[{"role": "user", "content": prompt}],
            )
        except self._anthropic.APITimeoutError as e:
            raise ProviderTimeout(f"{self.name()} timed out") from e
        except self._anthropic.AnthropicError as e:
            raise ProviderUnavailable(f"{self.name()} failed: {e}") from e
        return message.content[0].text

    async def define(self, word: str) -> Definition:
        definition = parse_definition(await self._complete(format_definition_prompt(word)))
        if definition is None:
            raise ProviderUnavailable(f"{self.name()} returned no usable definition for {word!r}")
        return definition

    async def judge(self, word: str, answer: str) -> str:
        verdict = parse_judgement(await self._complete(format_judge_prompt(word, answer)))
        if verdict is None:
            raise ProviderUnavailable(f"{self.name()} returned an empty verdict for {word!r}")
        return verdict

    def name(self) -> str:
        return f"anthropic/{self.model}"
