from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.json"

DEFAULTS = {
    "definition_provider": "ollama",
    "definition_model": "llama3.2:latest",
    "embedding_provider": "ollama",
    "embedding_model": "all-minilm",
    "ollama_url": "http://localhost:11434",
    "state_path": "vocab_state.json",
    "log_path": "vocab_drill.log",
    "corpus": "default",
    "corpus_files": [],
    "session_length": 0,
    "alpha": 0.3,
    "beta": 0.5,
    "recency_cap": 3.0,
    "recency_scale": 10.0,
    "confidence_floor": 0.2,
    "distractor_count": 3,
    "provider_timeout": 30.0,
    "retry_backoff": 1.0,
    "enrich_workers": 4,
    "explain_check": True,
}


@dataclass
class Settings:
    definition_provider: str = DEFAULTS["definition_provider"]
    definition_model: str = DEFAULTS["definition_model"]
    embedding_provider: str = DEFAULTS["embedding_provider"]
    embedding_model: str = DEFAULTS["embedding_model"]
    ollama_url: str = DEFAULTS["ollama_url"]
    state_path: str = DEFAULTS["state_path"]
    log_path: str = DEFAULTS["log_path"]
    corpus: str = DEFAULTS["corpus"]
    corpus_files: list[str] = field(default_factory=lambda: list(DEFAULTS["corpus_files"]))
    session_length: int = DEFAULTS["session_length"]  # 0 = until quit
    alpha: float = DEFAULTS["alpha"]
    beta: float = DEFAULTS["beta"]
    recency_cap: float = DEFAULTS["recency_cap"]
    recency_scale: float = DEFAULTS["recency_scale"]
    confidence_floor: float = DEFAULTS["confidence_floor"]
    distractor_count: int = DEFAULTS["distractor_count"]
    provider_timeout: float = DEFAULTS["provider_timeout"]
    retry_backoff: float = DEFAULTS["retry_backoff"]
    enrich_workers: int = DEFAULTS["enrich_workers"]
    explain_check: bool = DEFAULTS["explain_check"]

    @property
    def project_root(self) -> Path:
        return Path(__file__).resolve().parent.parent

    @property
    def data_dir(self) -> Path:
        return self.project_root / "data"

    @property
    def state_full_path(self) -> Path:
        return self.project_root / self.state_path

    @property
    def log_full_path(self) -> Path:
        return self.project_root / self.log_path

    def resolved_corpus_files(self) -> list[Path]:
        if self.corpus_files:
            root = self.project_root
            return [root / f for f in self.corpus_files]
        return sorted(self.data_dir.glob("*.md")) + sorted(self.data_dir.glob("*.txt"))

    def to_dict(self) -> dict:
        return {name: getattr(self, name) for name in DEFAULTS}


def load_settings() -> Settings:
    if CONFIG_PATH.exists():
        raw = json.loads(CONFIG_PATH.read_text())
        known = {f.name for f in Settings.__dataclass_fields__.values()}
        filtered = {k: v for k, v in raw.items() if k in known}
        return Settings(**filtered)
    return Settings()


def save_settings(settings: Settings) -> None:
    CONFIG_PATH.write_text(json.dumps(settings.to_dict(), indent=4) + "\n")
