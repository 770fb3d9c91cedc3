"""Suffix-array corpus language model (``--lm.type=salm``).

The model file is a tokenized plain-text corpus, one sentence per line.
At load time every sentence is wrapped in ``<s> ... </s>``, the whole
corpus is mapped to vocabulary ids, and a suffix array (suffix start
positions sorted by the first ``order`` ids of each suffix) is built.
Any n-gram count up to ``order`` is then two binary searches over that
array, so no n-gram table is ever materialised.

Scores are stupid back-off relative frequencies (Brants et al., 2007),
reported in log10 so they combine with ARPA scores the same way::

    S(w | ctx) = c(ctx w) / c(ctx)           if c(ctx w) > 0
               = ALPHA * S(w | ctx[1:])      otherwise
"""

from __future__ import annotations

import bisect
import logging
import math
from collections.abc import Sequence
from pathlib import Path

from memt_server.errors import ModelLoadError
from memt_server.lm.base import BOS, EOS, Backend, Vocabulary, score_sentence

logger = logging.getLogger(__name__)

ALPHA = 0.4

# Log10 score for a word never seen in the corpus.
OOV_LOG_PROB = -100.0


class SuffixArrayModel:
    """Corpus-backed n-gram model answering counts from a suffix array."""

    backend = Backend.SALM

    def __init__(self, sentences: Sequence[Sequence[str]], order: int) -> None:
        self.order = order
        self.vocabulary = Vocabulary(
            [BOS, EOS, *(word for sentence in sentences for word in sentence)]
        )
        corpus: list[int] = []
        for sentence in sentences:
            corpus.append(self.vocabulary.index(BOS))
            corpus.extend(self.vocabulary.index(word) for word in sentence)
            corpus.append(self.vocabulary.index(EOS))
        self._corpus = tuple(corpus)
        self._suffixes = sorted(range(len(corpus)), key=self._prefix)
        # Unigram denominator excludes <s>, which is never predicted.
        self._tokens = len(corpus) - len(sentences)

    @classmethod
    def load(cls, path: str | Path, order: int) -> SuffixArrayModel:
        """Read and index a corpus file.

        Raises:
            ModelLoadError: On a missing/unreadable file or an empty corpus.
        """
        path = Path(path)
        if order < 1:
            raise ModelLoadError(Backend.SALM, str(path), f"order must be >= 1, got {order}")
        try:
            with path.open(encoding="utf-8") as handle:
                sentences = [line.split() for line in handle if line.strip()]
        except (OSError, UnicodeDecodeError) as exc:
            raise ModelLoadError(Backend.SALM, str(path), str(exc)) from exc
        if not sentences:
            raise ModelLoadError(Backend.SALM, str(path), "corpus is empty")

        model = cls(sentences, order)
        logger.info(
            "Indexed corpus %s: %d sentences, %d tokens, vocabulary %d",
            path,
            len(sentences),
            len(model._corpus),
            len(model.vocabulary),
        )
        return model

    def count(self, ngram: Sequence[str]) -> int:
        """Number of occurrences of *ngram* in the corpus (length <= order)."""
        if not ngram:
            return self._tokens
        if any(word not in self.vocabulary for word in ngram):
            return 0
        key = tuple(self.vocabulary.index(word) for word in ngram)
        width = len(key)

        def prefix(pos: int) -> tuple[int, ...]:
            return self._corpus[pos : pos + width]

        lo = bisect.bisect_left(self._suffixes, key, key=prefix)
        hi = bisect.bisect_right(self._suffixes, key, key=prefix)
        return hi - lo

    def log_prob(self, context: Sequence[str], word: str) -> float:
        if word not in self.vocabulary:
            return OOV_LOG_PROB
        history = tuple(context)[-(self.order - 1) :] if self.order > 1 else ()
        penalty = 0.0
        while True:
            joint = self.count((*history, word))
            if joint:
                return penalty + math.log10(joint / self.count(history))
            if not history:
                return OOV_LOG_PROB
            penalty += math.log10(ALPHA)
            history = history[1:]

    def score_sentence(self, tokens: Sequence[str]) -> float:
        return score_sentence(self, tokens)

    def _prefix(self, pos: int) -> tuple[int, ...]:
        return self._corpus[pos : pos + self.order]
