"""Interfaces between the server and the external decode pipeline.

The server never looks inside an input unit or a hypothesis beyond what is
declared here.  A pipeline is any set of objects satisfying these
protocols; :mod:`memt_server.decode.baseline` is the one shipped with the
package.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Protocol, TextIO

from memt_server.lm.base import LanguageModel, Vocabulary
from memt_server.protocol.request import DecoderConfig, InputConfig


@dataclass(frozen=True)
class CompletedHypothesis:
    """One finished output sentence.

    Attributes:
        words: Output tokens.
        score: Total model score (higher is better).
        system: Index of the upstream system the words came from, when
            that is meaningful for the pipeline; ``None`` otherwise.
        features: Optional per-feature breakdown for oracle output.
    """

    words: tuple[str, ...]
    score: float
    system: int | None = None
    features: dict[str, float] = field(default_factory=dict)

    @property
    def text(self) -> str:
        return " ".join(self.words)


class InputUnit(Protocol):
    """A single segment produced by the input factory."""

    segment_id: int


class InputFactory(Protocol):
    def make(
        self, config: InputConfig, matched: TextIO, vocabulary: Vocabulary
    ) -> InputUnit | None:
        """Read the next unit from *matched*; ``None`` once input is exhausted."""
        ...


class Decoder(Protocol):
    def run(
        self, config: DecoderConfig, model: LanguageModel, unit: InputUnit
    ) -> Sequence[CompletedHypothesis]:
        """Decode one unit and return its n-best list, best first."""
        ...


class OutputWriter(Protocol):
    def write(self, nbest: Sequence[CompletedHypothesis], unit: InputUnit) -> None: ...

    def close(self) -> None:
        """Release anything the writer opened itself."""
        ...


#: Builds the one-best writer around the output stream opened by dispatch.
OneBestWriterFactory = Callable[[TextIO], OutputWriter]

#: Builds the oracle writer from ``output.oracle_prefix``.
OracleWriterFactory = Callable[[str], OutputWriter]
