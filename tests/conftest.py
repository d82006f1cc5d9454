# tests/conftest.py
"""Root pytest configuration and fixtures for speaking engine tests."""

import pytest
from unittest.mock import MagicMock

from speaking.errors import GradingUnavailable
from speaking.helper.session_store import InMemorySessionRepository, InMemoryTopicRepository
from speaking.pause_analyzer import PauseStats
from speaking.schemas import CriterionScore, SpeakingAnalysis, SpeakingMetrics
from speaking.session import SpeakingSession


def make_analysis(band: float = 6.5, transcript=None) -> SpeakingAnalysis:
    crit = CriterionScore(score=band, feedback="ok")
    return SpeakingAnalysis(
        band_score=band,
        fluency_coherence=crit,
        lexical_resource=crit,
        grammatical_range=crit,
        pronunciation=crit,
        general_feedback="Solid answer.",
        sample_answer="A model answer.",
        transcript=transcript,
    )


class FakeGrader:
    """Grader double that records requests and returns a fixed analysis."""

    source = "fake:grader"

    def __init__(self, analysis=None, error=None):
        self.analysis = analysis or make_analysis()
        self.error = error
        self.requests = []

    def grade(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.analysis


@pytest.fixture
def mock_ollama_response():
    """Factory fixture for mocking Ollama API responses."""
    def _make_response(content: str):
        return {"message": {"content": content}, "done_reason": "stop"}
    return _make_response


@pytest.fixture
def mock_ollama_post(mock_ollama_response):
    """Factory: patch-ready response object for requests.post."""
    def _make(content: str):
        mock_resp = MagicMock()
        mock_resp.json.return_value = mock_ollama_response(content)
        mock_resp.raise_for_status = MagicMock()
        return mock_resp
    return _make


@pytest.fixture
def analysis_factory():
    return make_analysis


@pytest.fixture
def grader():
    return FakeGrader()


@pytest.fixture
def failing_grader():
    return FakeGrader(error=GradingUnavailable("grader offline"))


@pytest.fixture
def sample_session():
    return SpeakingSession(
        id="s1",
        question_id="q1",
        user_id="u1",
        transcript="Yesterday I walk to the park and I see many dog there.",
        reference_text="Yesterday I walked to the park and I saw many dogs there.",
        metrics=SpeakingMetrics(wpm=120.0, pauses=PauseStats.from_totals(2, 1400, 800)),
        audio_object_id="s1.webm",
    )


@pytest.fixture
def sessions(sample_session):
    return InMemorySessionRepository([sample_session])


@pytest.fixture
def topics():
    return InMemoryTopicRepository({"q1": "Describe a place you visited recently."})


@pytest.fixture
def grader_factory():
    return FakeGrader
