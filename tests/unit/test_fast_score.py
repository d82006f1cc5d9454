# tests/unit/test_fast_score.py
"""Unit tests for the provisional fast scorer."""

import pytest

from speaking.fast_score import (
    DEFAULT_FILLER_WORDS,
    FastFeatures,
    compute_provisional_band,
    count_grammar_proxy_errors,
    extract_features,
    filler_words,
    score_transcript,
)
from speaking.pause_analyzer import PauseStats
from speaking.schemas import SpeakingMetrics


class TestGrammarProxies:
    def test_agreement_slip(self):
        assert count_grammar_proxy_errors("I is happy today.") == 1

    def test_repeated_word(self):
        assert count_grammar_proxy_errors("We went to to the shop.") == 1

    def test_long_sentence_without_verb(self):
        assert count_grammar_proxy_errors("The big red car near the old house.") == 1

    def test_clean_and_empty(self):
        assert count_grammar_proxy_errors("She is reading a book.") == 0
        assert count_grammar_proxy_errors("") == 0


class TestFeatures:
    def test_fillers_and_counts(self):
        features = extract_features("Um I think, you know, it is basically fine.")
        assert features.word_count == 9
        assert features.filler_count == 3
        assert features.filler_density == pytest.approx(3 / 9)

    def test_pause_features(self):
        metrics = SpeakingMetrics(wpm=110, pauses=PauseStats.from_totals(2, 1200, 700))
        features = extract_features("one two three four", metrics)
        assert features.wpm == 110
        assert features.pause_count == 2
        assert features.avg_pause_ms == 600
        assert features.pause_per_100_words == 50

    def test_empty_transcript(self):
        features = extract_features("")
        assert features.word_count == 0
        assert features.sentence_count == 1
        assert features.lexical_diversity == 0

    def test_filler_words_from_env(self, monkeypatch):
        monkeypatch.setenv("SPEAKING_FILLER_WORDS", "erm, kind of")
        assert filler_words() == ["erm", "kind of"]
        monkeypatch.setenv("SPEAKING_FILLER_WORDS", " , ")
        assert filler_words() == DEFAULT_FILLER_WORDS


class TestBanding:
    def test_default_features(self):
        bands = compute_provisional_band(FastFeatures())
        assert bands.fluency_coherence == 6.0
        assert bands.grammatical_range == 7.0
        assert bands.lexical_resource == 4.0
        assert bands.pronunciation == 5.0
        assert bands.band_score == 5.5

    def test_scores_are_half_steps_in_range(self):
        analysis = score_transcript(
            "Yesterday I went to the market with my sister. We bought fresh vegetables "
            "and talked about our plans for the weekend.",
            SpeakingMetrics(wpm=130, pauses=PauseStats.from_totals(1, 600, 600)),
        )
        for score in (
            analysis.band_score,
            analysis.fluency_coherence.score,
            analysis.lexical_resource.score,
            analysis.grammatical_range.score,
            analysis.pronunciation.score,
        ):
            assert 0 <= score <= 9
            assert (score * 2) == int(score * 2)
        assert "provisional" in analysis.general_feedback
