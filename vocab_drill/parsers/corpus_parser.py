"""Parse corpus files into WordEntry objects.

Two formats:
  *.md   markdown tables, ``| **word** | definition | example |`` (the
         example column is optional, surrounding ``*italics*`` are dropped)
  other  a plain word list, one word per line; blank lines and ``#``
         comments are ignored
"""
from __future__ import annotations

import re
from pathlib import Path

from vocab_drill.models import WordEntry

ROW_RE = re.compile(r"^\|\s*\*\*(.+?)\*\*\s*\|(.*)$")


def _clean_cell(cell: str) -> str:
    cell = cell.strip()
    if len(cell) > 1 and cell.startswith("*") and cell.endswith("*"):
        cell = cell.strip("*").strip()
    return cell


def parse_markdown_table(text: str) -> list[WordEntry]:
    words: list[WordEntry] = []
    for line in text.splitlines():
        if not line.startswith("|"):
            continue
        m = ROW_RE.match(line.strip())
        if not m:
            continue
        word = m.group(1).strip()
        cells = [_clean_cell(c) for c in m.group(2).strip().rstrip("|").split("|")]
        definition = cells[0] if cells and cells[0] else None
        example = cells[1] if len(cells) > 1 and cells[1] else None
        words.append(WordEntry.from_text(word, definition=definition, example=example))
    return words


def parse_word_list(text: str) -> list[WordEntry]:
    words: list[WordEntry] = []
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        words.append(WordEntry.from_text(line))
    return words


def parse_corpus_file(path: Path) -> list[WordEntry]:
    """Parse *path*, de-duplicating by word id (first occurrence wins)."""
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in (".md", ".markdown"):
        words = parse_markdown_table(text)
    else:
        words = parse_word_list(text)

    seen: set[str] = set()
    unique: list[WordEntry] = []
    for w in words:
        if w.id and w.id not in seen:
            seen.add(w.id)
            unique.append(w)
    return unique
