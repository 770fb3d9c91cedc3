"""Language-model interface shared by both backends.

The rest of the server is generic over "a loaded model": the decode
pipeline only needs a vocabulary to map input words and a conditional
log-probability.  Both backends keep their tables in plain Python
containers built during load and expose no mutators, so a single
instance is safely shared by every connection for the life of the process.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable, Sequence
from typing import Protocol, runtime_checkable

#: Sentence boundary tokens, as in ARPA files.
BOS = "<s>"
EOS = "</s>"
UNK = "<unk>"


class Backend(enum.StrEnum):
    """Language-model implementations selectable with ``--lm.type``."""

    SRI = "sri"
    SALM = "salm"


class Vocabulary:
    """Read-only word ↔ id mapping.

    Id 0 is reserved for the unknown word, so ``index()`` never fails.
    """

    def __init__(self, words: Iterable[str]) -> None:
        self._ids: dict[str, int] = {UNK: 0}
        for word in words:
            if word not in self._ids:
                self._ids[word] = len(self._ids)

    def index(self, word: str) -> int:
        return self._ids.get(word, 0)

    def __contains__(self, word: object) -> bool:
        return word in self._ids

    def __len__(self) -> int:
        return len(self._ids)


@runtime_checkable
class LanguageModel(Protocol):
    """Capability the decode pipeline relies on."""

    backend: Backend
    order: int
    vocabulary: Vocabulary

    def log_prob(self, context: Sequence[str], word: str) -> float:
        """Log10 probability of *word* following *context* (oldest first)."""
        ...

    def score_sentence(self, tokens: Sequence[str]) -> float:
        """Log10 probability of a whole sentence including ``</s>``."""
        ...


def score_sentence(model: LanguageModel, tokens: Sequence[str]) -> float:
    """Sum ``log_prob`` over *tokens* plus the end-of-sentence marker.

    Context is truncated to ``order - 1`` words and starts with ``<s>``.
    Backends delegate their ``score_sentence`` here.
    """
    history = [BOS]
    total = 0.0
    for word in [*tokens, EOS]:
        context = history[-(model.order - 1) :] if model.order > 1 else []
        total += model.log_prob(context, word)
        history.append(word)
    return total
