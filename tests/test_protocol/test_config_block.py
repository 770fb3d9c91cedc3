"""Unit tests for the request config-block reader."""

import pytest

from memt_server.errors import MalformedRequestError
from memt_server.protocol.config_block import parse_config_block, parse_config_text

pytestmark = pytest.mark.unit


class TestAssignments:
    def test_key_value_pairs_in_order(self):
        block = parse_config_text("score.lm=1.0\nbeam_size = 20\n")
        assert block == {"score.lm": ["1.0"], "beam_size": ["20"]}
        assert list(block) == ["score.lm", "beam_size"]

    def test_whitespace_trimmed_around_key_and_value(self):
        block = parse_config_text("   output.one_best   =   /tmp/out.txt   \n")
        assert block == {"output.one_best": ["/tmp/out.txt"]}

    def test_value_keeps_inner_spaces(self):
        block = parse_config_text("input.confidence = 0.9 0.8  0.95")
        assert block["input.confidence"] == ["0.9 0.8  0.95"]

    def test_value_splits_on_first_equals_only(self):
        block = parse_config_text("output.oracle_prefix=/tmp/a=b/")
        assert block["output.oracle_prefix"] == ["/tmp/a=b/"]

    def test_empty_value_is_kept(self):
        assert parse_config_text("output.oracle_prefix =") == {"output.oracle_prefix": [""]}

    def test_repeated_key_collects_every_value(self):
        block = parse_config_text("score.lm=1\nscore.lm=2\n")
        assert block == {"score.lm": ["1", "2"]}

    def test_accepts_any_iterable_of_lines(self):
        assert parse_config_block(iter(["a=1", "b=2"])) == {"a": ["1"], "b": ["2"]}


class TestSkippedLines:
    def test_blank_lines_ignored(self):
        assert parse_config_text("\n\n  \nscore.lm=1\n\n") == {"score.lm": ["1"]}

    def test_comments_ignored(self):
        text = "# weights\n   # indented comment\nscore.lm=1\n"
        assert parse_config_text(text) == {"score.lm": ["1"]}

    def test_trailing_comment_dropped(self):
        text = "input.confidence = 0.9 0.8 0.95  # three systems\nbeam_size=5#wide\n"
        assert parse_config_text(text) == {
            "input.confidence": ["0.9 0.8 0.95"],
            "beam_size": ["5"],
        }

    def test_comment_after_section_header(self):
        assert parse_config_text("[score]  # weights\nlm=1\n") == {"score.lm": ["1"]}

    def test_empty_input(self):
        assert parse_config_text("") == {}


class TestSections:
    def test_section_prefixes_following_keys(self):
        block = parse_config_text("[score]\nlm = 1\nalignment = 2\n")
        assert block == {"score.lm": ["1"], "score.alignment": ["2"]}

    def test_empty_section_clears_prefix(self):
        block = parse_config_text("[score]\nlm = 1\n[]\nbeam_size = 5\n")
        assert block == {"score.lm": ["1"], "beam_size": ["5"]}

    def test_section_and_dotted_key_count_as_same_key(self):
        block = parse_config_text("score.lm=1\n[score]\nlm=2\n")
        assert block == {"score.lm": ["1", "2"]}


class TestMalformedLines:
    def test_line_without_equals(self):
        with pytest.raises(MalformedRequestError) as exc_info:
            parse_config_text("score.lm=1\njust some words\n")
        assert exc_info.value.line_number == 2
        assert exc_info.value.line == "just some words"
        assert "line 2" in str(exc_info.value)

    def test_empty_key(self):
        with pytest.raises(MalformedRequestError) as exc_info:
            parse_config_text("= 1.0")
        assert exc_info.value.reason == "empty key"

    def test_line_number_counts_skipped_lines(self):
        with pytest.raises(MalformedRequestError) as exc_info:
            parse_config_text("# header\n\nbroken\n")
        assert exc_info.value.line_number == 3
