"""Prompt templates and model-output parsing."""
from __future__ import annotations

import json
import re

from vocab_drill.models import Definition

DEFINITION_PROMPT = """\
You are helping a student prepare for the GRE and SAT vocabulary sections.

Word: **{word}**

Give the word's most common meaning as it would be tested on the exam, and \
one natural example sentence that uses the word in that meaning.

Rules:
1. The definition is a single phrase of at most 20 words and must NOT contain \
the word itself or an inflection of it.
2. The example is one sentence of 10-25 words that makes the meaning clear \
from context.
3. Respond in this exact JSON format only, with no other text:
{{
  "definition": "short definition",
  "example": "Example sentence using {word}."
}}
"""


def format_definition_prompt(word: str) -> str:
    return DEFINITION_PROMPT.format(word=word)


def extract_json(text: str) -> dict | None:
    """Extract a JSON object from model output.

    Strips ``<think>`` blocks, then tries a code-fenced object, then every
    balanced ``{...}`` block from last to first.
    """
    text = re.sub(r"<think>.*?</think>", "", text, flags=re.DOTALL).strip()

    m = re.search(r"```(?:json)?\s*\n?({.*?})\s*\n?```", text, re.DOTALL)
    if m:
        try:
            return json.loads(m.group(1))
        except json.JSONDecodeError:
            pass

    for candidate in reversed(_find_json_objects(text)):
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue
    return None


def _find_json_objects(text: str) -> list[str]:
    """Find balanced top-level ``{...}`` substrings in *text*."""
    results: list[str] = []
    i = 0
    while i < len(text):
        if text[i] != "{":
            i += 1
            continue
        depth = 0
        in_str = False
        escape = False
        end = None
        for j in range(i, len(text)):
            ch = text[j]
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_str = not in_str
            elif in_str:
                continue
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    end = j
                    break
        if end is None:
            i += 1
            continue
        results.append(text[i:end + 1])
        i = end + 1
    return results


def parse_definition(text: str) -> Definition | None:
    """Turn a model response into a Definition, or None if unusable."""
    data = extract_json(text)
    if not data:
        return None
    definition = data.get("definition")
    if not isinstance(definition, str) or not definition.strip():
        return None
    example = data.get("example")
    if not isinstance(example, str):
        example = ""
    return Definition(definition=definition.strip(), example=example.strip())


JUDGE_PROMPT = """\
Given a word, how well does the following sentence explain what it means?

Word: "{word}"

Sentence: "{answer}"

Tell me 3 things:
1. How well the sentence describes the word.
2. The word's meaning.
3. An example sentence with the word.

Keep the whole reply under 300 characters, as plain text.
"""


def format_judge_prompt(word: str, answer: str) -> str:
    return JUDGE_PROMPT.format(word=word, answer=answer)


def parse_judgement(text: str) -> str | None:
    """Model verdict on an explanation, without reasoning blocks."""
    text = re.sub(r"<think>.*?</think>", "", text, flags=re.DOTALL).strip()
    return text or None
