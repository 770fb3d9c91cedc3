"""ARPA back-off language model (``--lm.type=sri``).

Reads the standard ARPA text format written by SRILM and KenLM::

    \\data\\
    ngram 1=4
    ngram 2=2

    \\1-grams:
    -1.2041  <s>   -0.3010
    -0.6990  a     -0.2218
    ...
    \\2-grams:
    -0.3010  <s> a
    \\end\\

n-grams longer than the requested order are skipped while reading, so
``--lm.order`` can cheaply truncate a larger model.  Scoring is Katz
back-off in log10: if ``context + word`` is not listed, add the back-off
weight of ``context`` and retry with the context shortened by one word.
"""

from __future__ import annotations

import gzip
import logging
import re
from collections.abc import Iterator, Sequence
from pathlib import Path

from memt_server.errors import ModelLoadError
from memt_server.lm.base import UNK, Backend, Vocabulary, score_sentence

logger = logging.getLogger(__name__)

# Log10 probability assigned to a word when the model has no <unk> entry.
OOV_LOG_PROB = -100.0

_COUNT_RE = re.compile(r"^ngram\s+(\d+)\s*=\s*(\d+)$")
_SECTION_RE = re.compile(r"^\\(\d+)-grams:$")


class SRIModel:
    """Back-off n-gram model loaded from an ARPA file."""

    backend = Backend.SRI

    def __init__(
        self,
        order: int,
        probs: dict[tuple[str, ...], float],
        backoffs: dict[tuple[str, ...], float],
    ) -> None:
        self.order = order
        self._probs = probs
        self._backoffs = backoffs
        self.vocabulary = Vocabulary(ngram[0] for ngram in probs if len(ngram) == 1)
        self._has_unk = (UNK,) in probs

    @classmethod
    def load(cls, path: str | Path, order: int) -> SRIModel:
        """Read an ARPA file (optionally gzip-compressed).

        Raises:
            ModelLoadError: On a missing/unreadable file or malformed content.
        """
        path = Path(path)
        if order < 1:
            raise ModelLoadError(Backend.SRI, str(path), f"order must be >= 1, got {order}")
        try:
            with _open_text(path) as handle:
                probs, backoffs = _read_arpa(handle, order)
        except OSError as exc:
            raise ModelLoadError(Backend.SRI, str(path), str(exc)) from exc
        except ValueError as exc:
            raise ModelLoadError(Backend.SRI, str(path), str(exc)) from exc

        logger.info("Loaded ARPA model %s: %d n-grams up to order %d", path, len(probs), order)
        return cls(order, probs, backoffs)

    def log_prob(self, context: Sequence[str], word: str) -> float:
        if (word,) not in self._probs:
            if not self._has_unk:
                return OOV_LOG_PROB
            word = UNK
        history = tuple(self._known(w) for w in context)
        history = history[-(self.order - 1) :] if self.order > 1 else ()

        penalty = 0.0
        while True:
            prob = self._probs.get((*history, word))
            if prob is not None:
                return penalty + prob
            penalty += self._backoffs.get(history, 0.0)
            history = history[1:]

    def score_sentence(self, tokens: Sequence[str]) -> float:
        return score_sentence(self, tokens)

    def _known(self, word: str) -> str:
        return word if (word,) in self._probs or not self._has_unk else UNK


def _open_text(path: Path):
    if path.suffix == ".gz":
        return gzip.open(path, "rt", encoding="utf-8")
    return path.open(encoding="utf-8")


def _read_arpa(
    lines: Iterator[str], order: int
) -> tuple[dict[tuple[str, ...], float], dict[tuple[str, ...], float]]:
    """Parse ARPA text into probability and back-off tables.

    Raises:
        ValueError: If the header or an n-gram line is malformed.
    """
    probs: dict[tuple[str, ...], float] = {}
    backoffs: dict[tuple[str, ...], float] = {}
    declared: dict[int, int] = {}
    state = "preamble"
    current = 0

    for number, raw in enumerate(lines, start=1):
        line = raw.strip()
        if not line:
            continue
        if line == "\\data\\":
            state = "data"
            continue
        if line == "\\end\\":
            state = "end"
            break
        section = _SECTION_RE.match(line)
        if section:
            if state == "preamble":
                raise ValueError(f"line {number}: n-gram section before \\data\\")
            current = int(section.group(1))
            if current not in declared:
                raise ValueError(f"line {number}: undeclared {current}-gram section")
            state = "ngrams"
            continue

        if state == "data":
            count = _COUNT_RE.match(line)
            if not count:
                raise ValueError(f"line {number}: bad count line {line!r}")
            declared[int(count.group(1))] = int(count.group(2))
        elif state == "ngrams":
            if current > order:
                continue
            fields = line.split()
            if len(fields) not in (current + 1, current + 2):
                raise ValueError(f"line {number}: expected {current}-gram entry, got {line!r}")
            ngram = tuple(fields[1 : current + 1])
            probs[ngram] = float(fields[0])
            if len(fields) == current + 2:
                backoffs[ngram] = float(fields[-1])

    if state != "end":
        raise ValueError("missing \\end\\ marker")
    if not any(len(ngram) == 1 for ngram in probs):
        raise ValueError("no unigrams")
    return probs, backoffs
