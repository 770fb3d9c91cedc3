"""Baseline system-selection pipeline.

This is the default ``[decode] pipeline``.  It performs no search: for
each segment it ranks the upstream systems' complete outputs and emits
the best one.  It lets a fresh install serve requests end to end and
gives tests a real pipeline to exercise; deployments with a combination
decoder point ``MEMT_PIPELINE`` at their own factory instead.

Matched-file format
-------------------
Segments are separated by one or more blank lines.  A segment has one
line per upstream system, in the same order as ``input.confidence``::

    the cat sat on the mat
    a cat sat on the mat

    hello world
    hello , world

A segment whose line count differs from the number of confidences is an
input error (``ValueError``) and fails the request.

Scoring
-------
Each system's line is scored as::

    score.lm * LM log10 prob (/ (tokens + 1) when length_normalize)
        + score.alignment * confidence[system]

and the top ``output.nbest`` hypotheses are returned, best first.

Output
------
One-best: one line per segment with the top hypothesis.
Oracle (when ``output.oracle_prefix`` is set): ``<prefix>nbest`` with one
line per hypothesis:
``segment ||| rank ||| system ||| score ||| features ||| text``, where
``features`` is the space-separated ``name=value`` breakdown (``lm`` and
``confidence`` for this pipeline).
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import TextIO

from memt_server.decode.interfaces import CompletedHypothesis
from memt_server.decode.pipeline import DecodePipeline
from memt_server.lm.base import LanguageModel, Vocabulary
from memt_server.protocol.request import DecoderConfig, InputConfig

logger = logging.getLogger(__name__)

ORACLE_SUFFIX = "nbest"


@dataclass(frozen=True)
class Segment:
    """One sentence as produced by every upstream system."""

    segment_id: int
    systems: tuple[tuple[str, ...], ...]
    confidences: tuple[float, ...]


class SegmentReader:
    """Input factory for the blank-line-separated matched format."""

    def __init__(self) -> None:
        self._next_id = 0

    def make(self, config: InputConfig, matched: TextIO, vocabulary: Vocabulary) -> Segment | None:
        lines: list[tuple[str, ...]] = []
        for raw in matched:
            if not raw.strip():
                if lines:
                    break
                continue
            lines.append(tuple(raw.split()))
        if not lines:
            return None

        if len(lines) != len(config.confidences):
            raise ValueError(
                f"segment {self._next_id}: {len(lines)} system line(s) "
                f"but {len(config.confidences)} confidence value(s)"
            )
        oov = sum(1 for line in lines for word in line if word not in vocabulary)
        if oov:
            logger.debug("segment %d: %d out-of-vocabulary token(s)", self._next_id, oov)

        segment = Segment(self._next_id, tuple(lines), config.confidences)
        self._next_id += 1
        return segment


class SystemSelector:
    """Rank whole system outputs by weighted LM score and confidence."""

    def run(
        self, config: DecoderConfig, model: LanguageModel, unit: Segment
    ) -> list[CompletedHypothesis]:
        scored = []
        for system, words in enumerate(unit.systems):
            lm = model.score_sentence(words)
            if config.length_normalize:
                lm /= len(words) + 1
            confidence = unit.confidences[system]
            score = config.scorer.lm * lm + config.scorer.alignment * confidence
            features = {"lm": lm, "confidence": confidence}
            scored.append(CompletedHypothesis(words, score, system, features))
        scored.sort(key=lambda hyp: hyp.score, reverse=True)
        return scored[: config.end_beam_size]


class TopWriter:
    """Write the best hypothesis of each segment, one per line."""

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream

    def write(self, nbest: Sequence[CompletedHypothesis], unit: Segment) -> None:
        self._stream.write((nbest[0].text if nbest else "") + "\n")

    def close(self) -> None:
        self._stream.flush()


class OracleFileWriter:
    """Write the whole n-best list with system and score annotations."""

    def __init__(self, prefix: str) -> None:
        self.path = Path(f"{prefix}{ORACLE_SUFFIX}")
        self._stream = self.path.open("w", encoding="utf-8")

    def write(self, nbest: Sequence[CompletedHypothesis], unit: Segment) -> None:
        for rank, hyp in enumerate(nbest):
            features = " ".join(f"{name}={value:.6f}" for name, value in hyp.features.items())
            fields = (unit.segment_id, rank, hyp.system, f"{hyp.score:.6f}", features, hyp.text)
            self._stream.write(" ||| ".join(str(field) for field in fields) + "\n")

    def close(self) -> None:
        self._stream.close()


def build_pipeline() -> DecodePipeline:
    """Pipeline factory referenced by the default ``[decode] pipeline`` setting."""
    return DecodePipeline(
        name="baseline",
        input_factory=SegmentReader,
        decoder=SystemSelector,
        one_best_writer=TopWriter,
        oracle_writer=OracleFileWriter,
    )
