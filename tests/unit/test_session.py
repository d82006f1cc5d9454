# tests/unit/test_session.py
"""Unit tests for the session model and its scoring state."""

import pytest
from pydantic import ValidationError

from speaking.pause_analyzer import PauseStats
from speaking.schemas import ReadingDiagnostics, SpeakingMetrics
from speaking.session import (
    COMPLETED,
    PROCESSING,
    PROVISIONAL_READY,
    Completed,
    Processing,
    ProvisionalReady,
    SpeakingSession,
)


def test_new_session_is_processing():
    session = SpeakingSession(id="s", question_id="q")
    assert isinstance(session.scoring, Processing)
    assert session.scoring_state == PROCESSING
    assert session.status == PROCESSING
    assert session.analysis is None
    assert not session.is_completed


def test_completed_requires_analysis():
    with pytest.raises(ValidationError):
        Completed(ai_source="x")


def test_provisional_state(analysis_factory):
    provisional = analysis_factory(5.0)
    session = SpeakingSession(
        id="s", question_id="q", scoring=ProvisionalReady(provisional_analysis=provisional)
    )
    assert session.scoring_state == PROVISIONAL_READY
    assert session.status == PROCESSING
    assert session.provisional_analysis == provisional
    assert session.provisional_source == "formula_v1"


def test_completed_state(analysis_factory):
    session = SpeakingSession(
        id="s",
        question_id="q",
        scoring=Completed(analysis=analysis_factory(7.0), ai_source="ollama:test"),
    )
    assert session.status == COMPLETED
    assert session.is_completed
    assert session.analysis.band_score == 7.0
    assert session.ai_source == "ollama:test"


def test_scoring_state_parses_from_tag(analysis_factory):
    raw = SpeakingSession(
        id="s",
        question_id="q",
        scoring=Completed(analysis=analysis_factory(), ai_source="a"),
    ).model_dump(mode="json")
    assert raw["scoring"]["state"] == "completed"

    restored = SpeakingSession.model_validate(raw)
    assert isinstance(restored.scoring, Completed)

    raw["scoring"] = {"state": "completed", "ai_source": "a"}
    with pytest.raises(ValidationError):
        SpeakingSession.model_validate(raw)


def test_metrics_from_capture():
    metrics = SpeakingMetrics.from_capture("one two three", 1500, PauseStats())
    assert metrics.wpm == 120.0
    assert SpeakingMetrics.from_capture("one two", 0, PauseStats()).wpm == 0.0
    assert SpeakingMetrics.from_capture("", 1000, PauseStats()).wpm == 0.0


def test_reading_diagnostics():
    diag = ReadingDiagnostics.compute("he walked home", "he walk home")
    assert diag.word_error_rate == pytest.approx(1 / 3)
    assert [i.word for i in diag.ending_issues] == ["walked"]
