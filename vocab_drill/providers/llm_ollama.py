from __future__ import annotations

import logging
import time

import httpx

from vocab_drill.errors import ProviderTimeout, ProviderUnavailable
from vocab_drill.models import Definition
from vocab_drill.prompts import format_definition_prompt, format_judge_prompt, parse_definition, parse_judgement
from vocab_drill.providers.base import DefinitionProvider, EmbeddingProvider

log = logging.getLogger("vocab_drill.llm")


class OllamaProvider(DefinitionProvider, EmbeddingProvider):
    """Definitions via ``/api/generate`` and embeddings via ``/api/embed``.

    One instance may serve either role; *model* picks the generation or
    embedding model accordingly.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: str = "llama3.2:latest",
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def _post(self, path: str, body: dict) -> dict:
        try:
            async with self._client() as client:
                resp = await client.post(f"{self.base_url}{path}", json=body)
                resp.raise_for_status()
                return resp.json()
        except httpx.TimeoutException as e:
            raise ProviderTimeout(f"{self.name()} timed out on {path}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise ProviderUnavailable(f"{self.name()} failed on {path}: {e}") from e

    async def check(self) -> None:
        try:
            async with self._client() as client:
                resp = await client.get(f"{self.base_url}/api/tags")
                resp.raise_for_status()
                names = {m.get("name") for m in resp.json().get("models", [])}
        except (httpx.HTTPError, ValueError) as e:
            raise ProviderUnavailable(f"Ollama is not reachable at {self.base_url}: {e}") from e
        if names and self.model not in names and f"{self.model}:latest" not in names:
            raise ProviderUnavailable(
                f"Ollama model {self.model!r} is not installed (run: ollama pull {self.model})"
            )

    async def define(self, word: str) -> Definition:
        prompt = format_definition_prompt(word)
        log.info("── DEFINE (%s) ── %s", self.model, word)
        t0 = time.monotonic()
        data = await self._post("/api/generate", {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": {"temperature": 0.5},
        })
        response = data.get("response", "")
        log.info("── RESPONSE (%.1fs, %s tokens) ──\n%s",
                 time.monotonic() - t0, data.get("eval_count", "?"), response)
        definition = parse_definition(response)
        if definition is None:
            raise ProviderUnavailable(f"{self.name()} returned no usable definition for {word!r}")
        return definition

    async def judge(self, word: str, answer: str) -> str:
        log.info("── JUDGE (%s) ── %s: %s", self.model, word, answer)
        data = await self._post("/api/generate", {
            "model": self.model,
            "prompt": format_judge_prompt(word, answer),
            "stream": False,
            "options": {"temperature": 0.5},
        })
        verdict = parse_judgement(data.get("response", ""))
        if verdict is None:
            raise ProviderUnavailable(f"{self.name()} returned an empty verdict for {word!r}")
        return verdict

    async def embed(self, text: str) -> list[float]:
        t0 = time.monotonic()
        data = await self._post("/api/embed", {"model": self.model, "input": text})
        try:
            vector = [float(x) for x in data["embeddings"][0]]
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise ProviderUnavailable(f"{self.name()} returned a malformed embedding") from e
        log.info("── EMBED (%s, %.1fs, dim %d) ── %s", self.model, time.monotonic() - t0, len(vector), text)
        return vector

    def name(self) -> str:
        return f"ollama/{self.model}"
