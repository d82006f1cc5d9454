from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from .alignment import AlignmentResult, align
from .endings import EndingIssue, detect_ending_issues
from .pause_analyzer import PauseStats


# ----------------------------
# Capture metrics
# ----------------------------

class SpeakingMetrics(BaseModel):
    wpm: float = Field(default=0.0, ge=0.0)
    pauses: PauseStats = Field(default_factory=PauseStats)

    @classmethod
    def from_capture(cls, transcript: str, duration_ms: int, pauses: PauseStats) -> "SpeakingMetrics":
        """Derive words-per-minute from the transcript and the speaking time."""
        words = len((transcript or "").split())
        wpm = (words / duration_ms) * 60000.0 if duration_ms > 0 and words else 0.0
        return cls(wpm=round(wpm, 1), pauses=pauses)


# ----------------------------
# Diagnostics (read-aloud)
# ----------------------------

class ReadingDiagnostics(BaseModel):
    word_error_rate: float = 0.0
    alignment: AlignmentResult = Field(default_factory=AlignmentResult)
    ending_issues: List[EndingIssue] = Field(default_factory=list)

    @classmethod
    def compute(cls, reference: str, transcript: str) -> "ReadingDiagnostics":
        result = align(reference, transcript)
        return cls(
            word_error_rate=result.word_error_rate,
            alignment=result,
            ending_issues=detect_ending_issues(reference, transcript),
        )


# ----------------------------
# Analysis (grader / fast scorer output)
# ----------------------------

class CriterionScore(BaseModel):
    score: float = Field(ge=0.0, le=9.0)
    feedback: str = ""


class SpeakingAnalysis(BaseModel):
    band_score: float = Field(ge=0.0, le=9.0)
    fluency_coherence: CriterionScore
    lexical_resource: CriterionScore
    grammatical_range: CriterionScore
    pronunciation: CriterionScore
    general_feedback: str = ""
    sample_answer: str = ""
    transcript: Optional[str] = None
    diagnostics: Optional[ReadingDiagnostics] = None


# ----------------------------
# Grading capability input
# ----------------------------

class GradingRequest(BaseModel):
    transcript: str
    reference_prompt: str
    metrics: SpeakingMetrics = Field(default_factory=SpeakingMetrics)
    provisional_analysis: Optional[SpeakingAnalysis] = None
    diagnostics: Optional[ReadingDiagnostics] = None
