"""CLI entry point for vocab-drill.

Usage:
  python -m vocab_drill start [--corpus NAME] [--length N] [--no-enrich]
  python -m vocab_drill import [--corpus NAME] [FILE ...]
  python -m vocab_drill enrich [--corpus NAME]
  python -m vocab_drill stats [--corpus NAME]
  python -m vocab_drill corpora

Exit codes: 0 clean exit, 1 usage error or nothing to study,
2 provider unavailable at startup, 3 unrecoverable storage failure.
"""
from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

from vocab_drill.config import Settings, load_settings
from vocab_drill.errors import EmptyCorpus, ProviderUnavailable, StorageError
from vocab_drill.store import StateFile, WordStore
from vocab_drill.terminal import TerminalUI

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_PROVIDER = 2
EXIT_STORAGE = 3

VALUE_FLAGS = ("--corpus", "--length")


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    command = args[0] if args and not args[0].startswith("--") else "start"
    rest = args[1:] if args and not args[0].startswith("--") else args

    commands = {
        "start": _start,
        "import": _import_corpus,
        "enrich": _enrich,
        "stats": _stats,
        "corpora": _corpora,
    }
    handler = commands.get(command)
    if handler is None:
        print(f"Unknown command: {command}")
        print(f"Commands: {', '.join(commands)}")
        return EXIT_USAGE

    settings = load_settings()
    _setup_logging(settings)
    ui = TerminalUI()
    try:
        return handler(rest, settings, ui)
    except StorageError as e:
        ui.error(str(e))
        return EXIT_STORAGE


def _setup_logging(settings: Settings) -> None:
    # Log to a file so records never land in the middle of the quiz screen.
    logging.basicConfig(
        filename=str(settings.log_full_path),
        level=logging.INFO,
        format="%(asctime)s %(name)s | %(message)s",
    )


def _parse_flag(args: list[str], name: str, default: str) -> str:
    for i, a in enumerate(args):
        if a == name and i + 1 < len(args):
            return args[i + 1]
    return default


def _positional(args: list[str]) -> list[str]:
    """Arguments that are neither flags nor flag values."""
    result = []
    skip = False
    for a in args:
        if skip:
            skip = False
            continue
        if a in VALUE_FLAGS:
            skip = True
            continue
        if a.startswith("--"):
            continue
        result.append(a)
    return result


def _get_definer(settings: Settings):
    p = settings.definition_provider
    if p == "ollama":
        from vocab_drill.providers.llm_ollama import OllamaProvider
        return OllamaProvider(base_url=settings.ollama_url, model=settings.definition_model,
                              timeout=settings.provider_timeout)
    elif p == "openai":
        from vocab_drill.providers.llm_openai import OpenAIProvider
        return OpenAIProvider(model=settings.definition_model)
    elif p == "anthropic":
        from vocab_drill.providers.llm_anthropic import AnthropicProvider
        return AnthropicProvider(model=settings.definition_model)
    elif p == "none":
        return None
    raise ValueError(f"Unknown definition provider: {p}")


def _get_embedder(settings: Settings):
    p = settings.embedding_provider
    if p == "ollama":
        from vocab_drill.providers.llm_ollama import OllamaProvider
        return OllamaProvider(base_url=settings.ollama_url, model=settings.embedding_model,
                              timeout=settings.provider_timeout)
    elif p == "openai":
        from vocab_drill.providers.llm_openai import OpenAIProvider
        return OpenAIProvider(model=settings.embedding_model)
    elif p == "none":
        return None
    raise ValueError(f"Unknown embedding provider: {p}")


async def _make_enrichment(settings: Settings, definer, embedder):
    """Build the enrichment pool after checking that its providers respond.

    Raises ProviderUnavailable when a configured provider is unreachable.
    """
    from vocab_drill.enrichment import EnrichmentPool

    for provider in (definer, embedder):
        if provider is not None:
            await provider.check()
    if definer is None and embedder is None:
        return None
    return EnrichmentPool(
        definer,
        embedder,
        workers=settings.enrich_workers,
        timeout=settings.provider_timeout,
        backoff=settings.retry_backoff,
    )


def _open_state(settings: Settings, ui: TerminalUI) -> StateFile:
    state, warning = StateFile.open(settings.state_full_path)
    if warning:
        ui.warn(warning)
    return state


def _import_files(store: WordStore, files: list[Path], ui: TerminalUI) -> int:
    from vocab_drill.parsers.corpus_parser import parse_corpus_file

    added = 0
    for path in files:
        if not path.exists():
            ui.warn(f"Skipping (not found): {path}")
            continue
        words = parse_corpus_file(path)
        n = store.import_words(words)
        ui.console.print(f"  {path.name}: {len(words)} words, {n} new")
        added += n
    return added


def _start(args: list[str], settings: Settings, ui: TerminalUI) -> int:
    from vocab_drill.explain import ExplanationChecker
    from vocab_drill.session import Session, SessionContext

    corpus = _parse_flag(args, "--corpus", settings.corpus)
    try:
        settings.session_length = int(_parse_flag(args, "--length", str(settings.session_length)))
    except ValueError:
        ui.error("--length needs a whole number")
        return EXIT_USAGE
    if settings.session_length < 0:
        ui.error("--length cannot be negative (use 0 for no limit)")
        return EXIT_USAGE
    enrich = "--no-enrich" not in args

    state = _open_state(settings, ui)
    store = state.corpus(corpus)
    if len(store) == 0:
        _import_files(store, settings.resolved_corpus_files(), ui)
        state.save()

    async def run():
        definer = embedder = None
        if enrich:
            definer, embedder = _get_definer(settings), _get_embedder(settings)
        enrichment = None
        if store.missing_content():
            enrichment = await _make_enrichment(settings, definer, embedder)
        checker = ExplanationChecker.from_settings(settings, definer, embedder)
        ui.explain = checker is not None
        ctx = SessionContext.from_settings(settings, store, state.save, enrichment, checker)
        ui.show_intro(store.get_stats(), pending=len(store.missing_content()) if enrichment else 0)
        return await Session(ctx, ui).run()

    try:
        summary = asyncio.run(run())
    except EmptyCorpus as e:
        ui.error(f"{e}. Add words with: python -m vocab_drill import --corpus {corpus} FILE")
        return EXIT_USAGE
    except ProviderUnavailable as e:
        ui.error(f"{e}\nStart the model service, or run with --no-enrich to study without it.")
        return EXIT_PROVIDER
    except ValueError as e:
        ui.error(str(e))
        return EXIT_USAGE
    except KeyboardInterrupt:
        ui.console.print("\nInterrupted; progress saved.")
        return EXIT_OK

    ui.show_summary(summary.shown, summary.correct, summary.quizzed)
    return EXIT_OK


def _import_corpus(args: list[str], settings: Settings, ui: TerminalUI) -> int:
    corpus = _parse_flag(args, "--corpus", settings.corpus)
    files = [Path(f) for f in _positional(args)] or settings.resolved_corpus_files()
    if not files:
        ui.error(f"No corpus files given and none found in {settings.data_dir}")
        return EXIT_USAGE

    state = _open_state(settings, ui)
    store = state.corpus(corpus)
    added = _import_files(store, files, ui)
    state.save()
    ui.console.print(f"\nCorpus “{corpus}”: {added} new, {store.get_word_count()} total")
    return EXIT_OK


def _enrich(args: list[str], settings: Settings, ui: TerminalUI) -> int:
    corpus = _parse_flag(args, "--corpus", settings.corpus)
    state = _open_state(settings, ui)
    store = state.corpus(corpus)
    missing = store.missing_content()
    if not missing:
        ui.console.print("Nothing to enrich.")
        return EXIT_OK

    async def run():
        pool = await _make_enrichment(settings, _get_definer(settings), _get_embedder(settings))
        if pool is None:
            return {}
        pool.start(missing)
        try:
            await pool.drain()
        finally:
            state.save()
        return pool.failures

    try:
        failures = asyncio.run(run())
    except ProviderUnavailable as e:
        ui.error(str(e))
        return EXIT_PROVIDER
    except ValueError as e:
        ui.error(str(e))
        return EXIT_USAGE

    ui.console.print(f"Enriched {len(missing) - len(failures)}/{len(missing)} words.")
    for word_id, reason in sorted(failures.items()):
        ui.warn(f"{word_id}: {reason}")
    return EXIT_OK


def _stats(args: list[str], settings: Settings, ui: TerminalUI) -> int:
    corpus = _parse_flag(args, "--corpus", settings.corpus)
    state = _open_state(settings, ui)
    if corpus not in state.corpora:
        ui.error(f"No corpus named “{corpus}”.")
        return EXIT_USAGE
    store = state.corpora[corpus]
    ui.show_stats(store.get_stats(), store.mastery_rows())
    return EXIT_OK


def _corpora(args: list[str], settings: Settings, ui: TerminalUI) -> int:
    state = _open_state(settings, ui)
    if not state.corpora:
        ui.console.print("No corpora yet.")
        return EXIT_OK
    for name, store in sorted(state.corpora.items()):
        stats = store.get_stats()
        ui.console.print(f"{name}: {stats['total_words']} words, {stats['words_reviewed']} reviewed")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
