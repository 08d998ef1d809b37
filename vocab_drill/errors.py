"""Error kinds raised across the trainer."""
from __future__ import annotations


class VocabDrillError(Exception):
    pass


class ProviderError(VocabDrillError):
    pass


class ProviderUnavailable(ProviderError):
    """The embedding/definition service cannot be reached."""


class ProviderTimeout(ProviderError):
    """A single provider call did not finish in time."""


class EmptyCorpus(VocabDrillError):
    """There are no words to schedule."""


class StorageCorrupt(VocabDrillError):
    """The persisted state exists but cannot be parsed."""


class StorageError(VocabDrillError):
    """The persisted state cannot be read or written at all."""
