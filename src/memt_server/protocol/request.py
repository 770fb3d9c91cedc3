"""Per-connection request parsing and validation.

``RequestFields`` is the declarative field table for the request grammar:
every wire key appears once, with its type, default (or none, meaning
mandatory) and constraints.  The same table drives all four checks in
``parse_request``, so adding a key means adding one line here:

    1. unknown keys        -> UnknownKeyError
    2. cardinality         -> MandatoryKeyCountError / KeyCountError
    3. typed conversion    -> RequestValueError
    4. confidence vector   -> BadConfidenceFormat

The validated fields are then resolved into ``RequestConfig``, the frozen
structure the decode pipeline consumes.  ``horizon.radius`` lands in both
``decoder.coverage.old_horizon`` and ``text.horizon_radius`` from a single
value, and ``RequestConfig`` refuses to be built with the two apart.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import BinaryIO

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from memt_server.errors import (
    KeyCountError,
    MalformedRequestError,
    MandatoryKeyCountError,
    RequestTooLargeError,
    RequestValueError,
    UnknownKeyError,
)
from memt_server.protocol.confidence import parse_confidences
from memt_server.protocol.config_block import ConfigBlock, parse_config_text

logger = logging.getLogger(__name__)

DEFAULT_NGRAM_BASE = 1.0 / 3.0

_DISCARD_CHUNK = 64 * 1024


# ============================================================================
# FIELD TABLE
# ============================================================================


class RequestFields(BaseModel):
    """Query-time options, keyed by their wire names.

    Fields without a default are mandatory and must appear exactly once;
    the rest may appear at most once.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", allow_inf_nan=False)

    score_lm: float = Field(alias="score.lm", description="LM scoring weight")
    score_alignment: float = Field(alias="score.alignment", description="Alignment scoring weight")
    score_ngram: float = Field(alias="score.ngram", description="NGram scoring weight")
    score_ngram_base: float = Field(
        DEFAULT_NGRAM_BASE, alias="score.ngram_base", description="NGram score base"
    )
    score_overlap: float = Field(alias="score.overlap", description="Overlap scoring weight")
    score_fuzz_ratio: float = Field(
        0.0,
        ge=0.0,
        alias="score.fuzz.ratio",
        description="Proportion of scoring weight to randomly fuzz",
    )
    beam_size: int = Field(
        500, gt=0, alias="beam_size", description="Size of the decoder's internal search beam"
    )
    length_normalize: bool = Field(
        True, alias="length_normalize", description="Length normalize before comparing ends"
    )
    output_nbest: int = Field(1, gt=0, alias="output.nbest", description="Number of n-best")
    horizon_radius: int = Field(5, ge=0, alias="horizon.radius", description="Horizon radius")
    horizon_new: bool = Field(
        False, alias="horizon.new", description="Use the new horizon implementation"
    )
    horizon_threshold: float = Field(
        0.8, alias="horizon.threshold", description="New horizon threshold"
    )
    output_oracle_prefix: str = Field(
        "", alias="output.oracle_prefix", description="Oracle output prefix; empty disables"
    )
    output_one_best: str = Field(
        min_length=1, alias="output.one_best", description="One best output file"
    )
    input_matched_file: str = Field(
        min_length=1, alias="input.matched_file", description="Input from matcher"
    )
    input_confidence: str = Field(alias="input.confidence", description="Confidence values")
    align_pick_best: bool = Field(
        False, alias="align.pick_best", description="Pick the aligned word with most confidence"
    )
    align_transitive: bool = Field(
        False, alias="align.transitive", description="Make alignments transitive"
    )

    @classmethod
    def wire_keys(cls) -> dict[str, str]:
        """Map each wire key to its field name, in declaration order."""
        return {info.alias or name: name for name, info in cls.model_fields.items()}

    @classmethod
    def mandatory_keys(cls) -> tuple[str, ...]:
        return tuple(
            info.alias or name for name, info in cls.model_fields.items() if info.is_required()
        )


# ============================================================================
# RESOLVED CONFIGURATION
# ============================================================================


@dataclass(frozen=True)
class ScorerConfig:
    lm: float
    alignment: float
    ngram: float
    ngram_base: float
    overlap: float
    fuzz_ratio: float


@dataclass(frozen=True)
class CoverageConfig:
    old_horizon: int
    use_new: bool
    stay_threshold: float


@dataclass(frozen=True)
class DecoderConfig:
    """Parameters handed to the external decoder."""

    scorer: ScorerConfig
    internal_beam_size: int
    length_normalize: bool
    end_beam_size: int
    coverage: CoverageConfig


@dataclass(frozen=True)
class InputConfig:
    """Parameters handed to the external input factory."""

    confidences: tuple[float, ...]
    horizon_radius: int
    pick_best: bool
    transitive: bool


@dataclass(frozen=True)
class RequestConfig:
    """Fully validated configuration for one connection."""

    decoder: DecoderConfig
    text: InputConfig
    output_oracle_prefix: str
    output_one_best: str
    input_matched: str

    def __post_init__(self) -> None:
        if self.text.horizon_radius != self.decoder.coverage.old_horizon:
            raise ValueError(
                "horizon radius out of sync: "
                f"input {self.text.horizon_radius} != decoder {self.decoder.coverage.old_horizon}"
            )

    @property
    def oracle_enabled(self) -> bool:
        return bool(self.output_oracle_prefix)

    @classmethod
    def from_fields(cls, fields: RequestFields, confidences: Sequence[float]) -> RequestConfig:
        decoder = DecoderConfig(
            scorer=ScorerConfig(
                lm=fields.score_lm,
                alignment=fields.score_alignment,
                ngram=fields.score_ngram,
                ngram_base=fields.score_ngram_base,
                overlap=fields.score_overlap,
                fuzz_ratio=fields.score_fuzz_ratio,
            ),
            internal_beam_size=fields.beam_size,
            length_normalize=fields.length_normalize,
            end_beam_size=fields.output_nbest,
            coverage=CoverageConfig(
                old_horizon=fields.horizon_radius,
                use_new=fields.horizon_new,
                stay_threshold=fields.horizon_threshold,
            ),
        )
        text = InputConfig(
            confidences=tuple(confidences),
            horizon_radius=decoder.coverage.old_horizon,
            pick_best=fields.align_pick_best,
            transitive=fields.align_transitive,
        )
        return cls(
            decoder=decoder,
            text=text,
            output_oracle_prefix=fields.output_oracle_prefix,
            output_one_best=fields.output_one_best,
            input_matched=fields.input_matched_file,
        )

    def describe(self) -> list[str]:
        """Human-readable dump used for the per-request log echo."""
        scorer = self.decoder.scorer
        coverage = self.decoder.coverage
        return [
            f"input.matched_file = {self.input_matched}",
            f"text: confidences={list(self.text.confidences)} "
            f"horizon_radius={self.text.horizon_radius} "
            f"pick_best={self.text.pick_best} transitive={self.text.transitive}",
            f"scorer: lm={scorer.lm} alignment={scorer.alignment} ngram={scorer.ngram} "
            f"ngram_base={scorer.ngram_base:.6g} overlap={scorer.overlap} "
            f"fuzz.ratio={scorer.fuzz_ratio}",
            f"decoder: beam_size={self.decoder.internal_beam_size} "
            f"length_normalize={self.decoder.length_normalize} "
            f"nbest={self.decoder.end_beam_size} horizon.radius={coverage.old_horizon} "
            f"horizon.new={coverage.use_new} horizon.threshold={coverage.stay_threshold}",
            f"output: one_best={self.output_one_best} "
            f"oracle_prefix={self.output_oracle_prefix or '(disabled)'}",
        ]


# ============================================================================
# PARSING
# ============================================================================


def check_cardinality(block: Mapping[str, Sequence[str]]) -> None:
    """Reject unknown keys, then enforce per-key occurrence counts.

    Raises:
        UnknownKeyError: For the first key not in the field table.
        MandatoryKeyCountError: Mandatory key absent or repeated.
        KeyCountError: Optional key repeated.
    """
    known = RequestFields.wire_keys()
    for key in block:
        if key not in known:
            raise UnknownKeyError(key)

    for key in RequestFields.mandatory_keys():
        count = len(block.get(key, ()))
        if count != 1:
            raise MandatoryKeyCountError(key, 1, count)

    for key, values in block.items():
        if len(values) > 1:
            raise KeyCountError(key, 1, len(values))


def resolve_block(block: ConfigBlock) -> RequestConfig:
    """Validate a parsed config block and resolve it into a RequestConfig."""
    check_cardinality(block)
    try:
        fields = RequestFields.model_validate({key: values[0] for key, values in block.items()})
    except ValidationError as exc:
        raise _value_error(exc, block) from None

    confidences = parse_confidences(fields.input_confidence)
    config = RequestConfig.from_fields(fields, confidences)
    for line in config.describe():
        logger.info(line)
    return config


def parse_request_text(text: str) -> RequestConfig:
    """Parse a request held in memory (used by ``memt-server check``)."""
    return resolve_block(parse_config_text(text))


def parse_request(stream: BinaryIO, *, max_bytes: int = 0) -> RequestConfig:
    """Read a request from a connection stream until EOF and validate it.

    Args:
        stream: Binary read side of the connection.
        max_bytes: Upper bound on the request size; 0 reads without limit.
            An oversized body is still read to EOF and discarded, so the
            client is not reset before it can read the rejection.

    Returns:
        The validated RequestConfig.

    Raises:
        ArgumentParseError: Any member of the request-validation family.
    """
    if max_bytes > 0:
        data = stream.read(max_bytes + 1)
        if len(data) > max_bytes:
            _discard(stream)
            raise RequestTooLargeError(max_bytes)
    else:
        data = stream.read()
    return parse_request_text(_decode(data))


def _discard(stream: BinaryIO) -> None:
    while stream.read(_DISCARD_CHUNK):
        pass


def _decode(data: bytes) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as exc:
        line_number = data.count(b"\n", 0, exc.start) + 1
        line = data.split(b"\n")[line_number - 1].decode("utf-8", errors="replace")
        raise MalformedRequestError(line_number, line, "not valid UTF-8") from None


def _value_error(exc: ValidationError, block: ConfigBlock) -> RequestValueError:
    """Turn the first pydantic error into a RequestValueError naming the wire key."""
    error = exc.errors()[0]
    names = {name: key for key, name in RequestFields.wire_keys().items()}
    loc = str(error["loc"][0]) if error["loc"] else ""
    key = names.get(loc, loc)
    value = block[key][0] if key in block else error.get("input")
    return RequestValueError(key, value, error["msg"])
