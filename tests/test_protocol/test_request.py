"""
Unit tests for request validation (memt_server/protocol/request.py).

Tests cover:
- Cardinality of every mandatory key (missing and duplicated)
- Unknown and repeated optional keys
- Typed conversion and constraints from the field table
- Defaults applied exactly when keys are absent
- Resolution into the nested RequestConfig, including the shared horizon radius
- Reading from a byte stream (size bound, UTF-8)
"""

import io

import pytest

from memt_server.errors import (
    ArgumentParseError,
    BadConfidenceFormat,
    KeyCountError,
    MalformedRequestError,
    MandatoryKeyCountError,
    RequestTooLargeError,
    RequestValueError,
    UnknownKeyError,
)
from memt_server.protocol.request import (
    DEFAULT_NGRAM_BASE,
    CoverageConfig,
    RequestConfig,
    RequestFields,
    parse_request,
    parse_request_text,
)

pytestmark = pytest.mark.unit

MANDATORY = (
    "score.lm",
    "score.alignment",
    "score.ngram",
    "score.overlap",
    "output.one_best",
    "input.matched_file",
    "input.confidence",
)


def _override(key: str) -> str:
    return key.replace(".", "__")


# ============================================================================
# FIELD TABLE
# ============================================================================


class TestFieldTable:
    def test_mandatory_keys_in_check_order(self):
        assert RequestFields.mandatory_keys() == MANDATORY

    def test_wire_keys_cover_every_field(self):
        keys = RequestFields.wire_keys()
        assert len(keys) == 18
        assert keys["score.fuzz.ratio"] == "score_fuzz_ratio"
        assert keys["beam_size"] == "beam_size"


# ============================================================================
# CARDINALITY
# ============================================================================


class TestMandatoryKeys:
    @pytest.mark.parametrize("key", MANDATORY)
    def test_missing_key_rejected_naming_it(self, make_request, key):
        body = make_request(**{_override(key): None})
        with pytest.raises(MandatoryKeyCountError) as exc_info:
            parse_request_text(body)
        assert exc_info.value.key == key
        assert str(exc_info.value) == f"Expected {key} 1 time(s), got it 0."

    @pytest.mark.parametrize("key", MANDATORY)
    def test_duplicated_key_rejected_naming_it(self, make_request, key):
        body = make_request()
        line = next(line for line in body.splitlines() if line.startswith(f"{key}="))
        with pytest.raises(MandatoryKeyCountError) as exc_info:
            parse_request_text(body + line + "\n")
        assert exc_info.value.key == key
        assert exc_info.value.actual == 2
        assert key in str(exc_info.value)

    def test_first_missing_key_reported(self):
        with pytest.raises(MandatoryKeyCountError) as exc_info:
            parse_request_text("")
        assert exc_info.value.key == "score.lm"


class TestOtherKeys:
    def test_unknown_key_rejected(self, make_request):
        with pytest.raises(UnknownKeyError, match="Unrecognised option 'beam.size'"):
            parse_request_text(make_request(**{"beam.size": "10"}))

    def test_keys_are_case_sensitive(self, make_request):
        with pytest.raises(UnknownKeyError):
            parse_request_text(make_request(Beam_Size="10"))

    def test_unknown_key_reported_before_missing_mandatory(self):
        with pytest.raises(UnknownKeyError):
            parse_request_text("bogus=1\n")

    def test_duplicated_optional_key_rejected(self, make_request):
        body = make_request() + "beam_size=10\nbeam_size=20\n"
        with pytest.raises(KeyCountError) as exc_info:
            parse_request_text(body)
        assert not isinstance(exc_info.value, MandatoryKeyCountError)
        assert str(exc_info.value) == "Expected beam_size at most 1 time(s), got it 2."


# ============================================================================
# TYPED VALUES
# ============================================================================


class TestValueConversion:
    @pytest.mark.parametrize(
        ("key", "value"),
        [
            ("score.lm", "abc"),
            ("score.overlap", "nan"),
            ("beam_size", "2.5"),
            ("beam_size", "0"),
            ("output.nbest", "-1"),
            ("horizon.radius", "-1"),
            ("score.fuzz.ratio", "-0.5"),
            ("length_normalize", "maybe"),
            ("output.one_best", ""),
            ("input.matched_file", ""),
        ],
    )
    def test_bad_value_rejected(self, make_request, key, value):
        with pytest.raises(RequestValueError) as exc_info:
            parse_request_text(make_request(**{_override(key): value}))
        assert exc_info.value.key == key
        assert exc_info.value.value == value

    def test_value_error_message_names_key(self, make_request):
        with pytest.raises(RequestValueError, match=r"Invalid value 'abc' for score.lm"):
            parse_request_text(make_request(score__lm="abc"))

    @pytest.mark.parametrize("raw", ["true", "1", "yes", "on"])
    def test_bool_truthy_spellings(self, make_request, raw):
        request = parse_request_text(make_request(horizon__new=raw))
        assert request.decoder.coverage.use_new is True

    @pytest.mark.parametrize("raw", ["false", "0", "no", "off"])
    def test_bool_falsy_spellings(self, make_request, raw):
        request = parse_request_text(make_request(length_normalize=raw))
        assert request.decoder.length_normalize is False

    def test_bad_confidence_rejected(self, make_request):
        with pytest.raises(BadConfidenceFormat):
            parse_request_text(make_request(input__confidence="0.9 abc"))


# ============================================================================
# DEFAULTS AND RESOLUTION
# ============================================================================


class TestDefaults:
    def test_defaults_apply_when_keys_absent(self, make_request):
        request = parse_request_text(make_request())
        decoder = request.decoder
        assert decoder.internal_beam_size == 500
        assert decoder.length_normalize is True
        assert decoder.end_beam_size == 1
        assert decoder.scorer.ngram_base == pytest.approx(DEFAULT_NGRAM_BASE)
        assert decoder.scorer.fuzz_ratio == 0.0
        assert decoder.coverage == CoverageConfig(old_horizon=5, use_new=False, stay_threshold=0.8)
        assert request.text.horizon_radius == 5
        assert request.text.pick_best is False
        assert request.text.transitive is False
        assert request.output_oracle_prefix == ""
        assert request.oracle_enabled is False

    def test_explicit_values_override_defaults(self, make_request):
        request = parse_request_text(
            make_request(
                beam_size="20",
                output__nbest="3",
                score__ngram_base="0.5",
                output__oracle_prefix="/tmp/oracle.",
                align__pick_best="true",
            )
        )
        assert request.decoder.internal_beam_size == 20
        assert request.decoder.end_beam_size == 3
        assert request.decoder.scorer.ngram_base == 0.5
        assert request.output_oracle_prefix == "/tmp/oracle."
        assert request.oracle_enabled is True
        assert request.text.pick_best is True


class TestResolution:
    def test_fields_land_in_nested_structure(self, make_request, matched_file, tmp_path):
        request = parse_request_text(
            make_request(score__lm="0.5", score__alignment="2", score__ngram="3", score__overlap="4")
        )
        scorer = request.decoder.scorer
        assert (scorer.lm, scorer.alignment, scorer.ngram, scorer.overlap) == (0.5, 2.0, 3.0, 4.0)
        assert request.text.confidences == (0.9, 0.8, 0.95)
        assert request.input_matched == str(matched_file)
        assert request.output_one_best == str(tmp_path / "out.txt")

    def test_horizon_radius_feeds_both_consumers(self, make_request):
        request = parse_request_text(make_request(horizon__radius="9"))
        assert request.decoder.coverage.old_horizon == 9
        assert request.text.horizon_radius == 9

    def test_out_of_sync_horizon_cannot_be_built(self, make_request):
        request = parse_request_text(make_request())
        coverage = CoverageConfig(old_horizon=7, use_new=False, stay_threshold=0.8)
        decoder = type(request.decoder)(
            scorer=request.decoder.scorer,
            internal_beam_size=500,
            length_normalize=True,
            end_beam_size=1,
            coverage=coverage,
        )
        with pytest.raises(ValueError, match="horizon radius out of sync"):
            RequestConfig(
                decoder=decoder,
                text=request.text,
                output_oracle_prefix="",
                output_one_best="out",
                input_matched="in",
            )

    def test_sections_and_comments_accepted(self, matched_file, tmp_path):
        body = (
            "# weights\n"
            "[score]\nlm = 1\nalignment = 1\nngram = 1\noverlap = 1\n"
            "[]\n"
            f"output.one_best = {tmp_path / 'out.txt'}\n"
            f"input.matched_file = {matched_file}\n"
            "input.confidence = 0.5 0.5 0.5\n"
        )
        assert parse_request_text(body).decoder.scorer.overlap == 1.0

    def test_trailing_comments_on_values(self, make_request):
        config = parse_request_text(
            make_request(
                input__confidence="0.9 0.8 0.95  # three systems",
                score__lm="2.0 # heavier",
            )
        )
        assert config.text.confidences == (0.9, 0.8, 0.95)
        assert config.decoder.scorer.lm == 2.0

    def test_describe_starts_with_matched_file(self, make_request, matched_file):
        lines = parse_request_text(make_request()).describe()
        assert lines[0] == f"input.matched_file = {matched_file}"
        assert any("oracle_prefix=(disabled)" in line for line in lines)


# ============================================================================
# STREAM READING
# ============================================================================


class TestParseRequestStream:
    def test_reads_until_eof(self, make_request):
        stream = io.BytesIO(make_request().encode())
        assert parse_request(stream).decoder.internal_beam_size == 500

    def test_unbounded_by_default(self, make_request):
        body = make_request() + "# " + "x" * 100_000 + "\n"
        assert parse_request(io.BytesIO(body.encode())).oracle_enabled is False

    def test_size_bound_enforced(self, make_request):
        body = make_request().encode()
        with pytest.raises(RequestTooLargeError, match=f"exceeds {len(body) - 1} bytes"):
            parse_request(io.BytesIO(body), max_bytes=len(body) - 1)

    def test_oversized_body_read_to_eof(self, make_request):
        stream = io.BytesIO(make_request().encode() + b"#" * 200_000 + b"\n")
        with pytest.raises(RequestTooLargeError):
            parse_request(stream, max_bytes=64)
        assert stream.read() == b""

    def test_body_at_size_bound_accepted(self, make_request):
        body = make_request().encode()
        assert parse_request(io.BytesIO(body), max_bytes=len(body)) is not None

    def test_invalid_utf8_rejected_with_line_number(self, make_request):
        body = b"# fine\nscore.lm=\xff\xfe\n" + make_request().encode()
        with pytest.raises(MalformedRequestError) as exc_info:
            parse_request(io.BytesIO(body))
        assert exc_info.value.line_number == 2
        assert exc_info.value.reason == "not valid UTF-8"

    def test_every_failure_is_an_argument_parse_error(self):
        with pytest.raises(ArgumentParseError):
            parse_request(io.BytesIO(b"nonsense\n"))
