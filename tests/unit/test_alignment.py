# tests/unit/test_alignment.py
"""Unit tests for word-level alignment."""

import pytest

from speaking.alignment import (
    Deletion,
    Insertion,
    Match,
    Substitution,
    align,
    normalize_words,
)


class TestNormalizeWords:
    def test_strips_punctuation_and_case(self):
        assert normalize_words('The cat, "sat".') == ["the", "cat", "sat"]

    def test_collapses_whitespace(self):
        assert normalize_words("  a \t b\n\nc ") == ["a", "b", "c"]

    def test_keeps_apostrophes(self):
        assert normalize_words("It's fine!") == ["it's", "fine"]

    def test_empty(self):
        assert normalize_words("") == []
        assert normalize_words(" ?! ") == []


class TestAlign:
    def test_identical(self):
        result = align("the cat sat", "the cat sat")
        assert result.word_error_rate == 0
        assert len(result.diff) == 3
        assert all(isinstance(d, Match) for d in result.diff)

    def test_single_substitution(self):
        result = align("the cat sat", "the dog sat")
        assert result.word_error_rate == pytest.approx(1 / 3)
        subs = [d for d in result.diff if isinstance(d, Substitution)]
        assert subs == [Substitution(expected="cat", actual="dog")]

    @pytest.mark.parametrize("ref,hyp", [("", "anything"), ("anything", ""), ("", ""), ("...", "words")])
    def test_degenerate_inputs(self, ref, hyp):
        result = align(ref, hyp)
        assert result.word_error_rate == 0
        assert result.diff == []
        assert result.degenerate

    def test_tie_prefers_substitution_over_deletion(self):
        result = align("a b", "c")
        assert result.diff == [Deletion(word="a"), Substitution(expected="b", actual="c")]
        assert result.word_error_rate == 1.0

    def test_tie_prefers_substitution_over_insertion(self):
        # last cell: substitution a->c and insertion of c both cost 2
        result = align("a", "b c")
        assert result.diff == [Insertion(word="b"), Substitution(expected="a", actual="c")]
        assert result.word_error_rate == 2.0

    def test_insertion(self):
        result = align("the cat", "the big cat")
        assert result.diff == [Match(word="the"), Insertion(word="big"), Match(word="cat")]
        assert result.word_error_rate == 0.5

    def test_deletion(self):
        result = align("the big cat", "the cat")
        assert result.diff == [Match(word="the"), Deletion(word="big"), Match(word="cat")]
        assert result.edit_count == 1

    def test_error_rate_can_exceed_one(self):
        result = align("hi", "well hello there friend")
        assert result.word_error_rate == 4.0

    @pytest.mark.parametrize(
        "ref,hyp",
        [
            ("the cat sat on the mat", "a cat sat on mat today"),
            ("Yesterday I walked to the park.", "yesterday i walk to park"),
            ("one two three", "four five"),
            ("x", "x x x"),
        ],
    )
    def test_diff_replays_both_sides(self, ref, hyp):
        result = align(ref, hyp)
        assert result.reference_words() == normalize_words(ref)
        assert result.hypothesis_words() == normalize_words(hyp)

    def test_result_serializes_with_op_tags(self):
        data = align("a b", "a c").model_dump()
        assert [d["op"] for d in data["diff"]] == ["match", "substitution"]
