"""
Session - A spoken-response attempt and its scoring lifecycle state.

The lifecycle fields live in one tagged value (`scoring`) so that a completed
session always carries its analysis:

    Processing -> ProvisionalReady -> Completed
    Processing ----------------------> Completed
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

from .schemas import SpeakingAnalysis, SpeakingMetrics

PROCESSING = "processing"
PROVISIONAL_READY = "provisional_ready"
COMPLETED = "completed"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Processing(BaseModel):
    state: Literal["processing"] = PROCESSING


class ProvisionalReady(BaseModel):
    state: Literal["provisional_ready"] = PROVISIONAL_READY
    provisional_analysis: SpeakingAnalysis
    provisional_source: str = "formula_v1"
    provisional_ready_at: datetime = Field(default_factory=utcnow)


class Completed(BaseModel):
    state: Literal["completed"] = COMPLETED
    analysis: SpeakingAnalysis
    ai_source: str
    completed_at: datetime = Field(default_factory=utcnow)
    provisional_analysis: Optional[SpeakingAnalysis] = None


ScoringState = Annotated[
    Union[Processing, ProvisionalReady, Completed],
    Field(discriminator="state"),
]


class SpeakingSession(BaseModel):
    id: str
    question_id: str
    user_id: Optional[str] = None
    transcript: str = ""
    reference_text: Optional[str] = None  # read-aloud target, enables diagnostics
    metrics: SpeakingMetrics = Field(default_factory=SpeakingMetrics)
    audio_object_id: Optional[str] = None
    audio_deleted_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    scoring: ScoringState = Field(default_factory=Processing)

    @property
    def scoring_state(self) -> str:
        return self.scoring.state

    @property
    def status(self) -> str:
        """Coarse status: 'completed' once terminal, 'processing' otherwise."""
        return COMPLETED if isinstance(self.scoring, Completed) else PROCESSING

    @property
    def is_completed(self) -> bool:
        return isinstance(self.scoring, Completed)

    @property
    def analysis(self) -> Optional[SpeakingAnalysis]:
        if isinstance(self.scoring, Completed):
            return self.scoring.analysis
        return None

    @property
    def provisional_analysis(self) -> Optional[SpeakingAnalysis]:
        if isinstance(self.scoring, (ProvisionalReady, Completed)):
            return self.scoring.provisional_analysis
        return None

    @property
    def ai_source(self) -> Optional[str]:
        if isinstance(self.scoring, Completed):
            return self.scoring.ai_source
        return None

    @property
    def provisional_source(self) -> Optional[str]:
        if isinstance(self.scoring, ProvisionalReady):
            return self.scoring.provisional_source
        return None
