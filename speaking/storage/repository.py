"""
SQL repositories for speaking sessions and topics (SQLAlchemy async).

Saves are a conditional UPDATE on scoring_state; a zero row count means the
session moved on (or vanished) and StaleSessionState is raised.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

from sqlalchemy import select, update

from ..errors import StaleSessionState
from ..schemas import SpeakingAnalysis, SpeakingMetrics
from ..session import (
    COMPLETED,
    PROVISIONAL_READY,
    Completed,
    Processing,
    ProvisionalReady,
    SpeakingSession,
)
from .models import SpeakingSessionRow, SpeakingTopicRow


def _dump(model) -> Optional[Dict[str, Any]]:
    return model.model_dump(mode="json") if model is not None else None


def session_to_values(session: SpeakingSession) -> Dict[str, Any]:
    """Flatten a session into column values."""
    scoring = session.scoring
    values: Dict[str, Any] = {
        "question_id": session.question_id,
        "user_id": session.user_id,
        "transcript": session.transcript,
        "reference_text": session.reference_text,
        "metrics": session.metrics.model_dump(mode="json"),
        "status": session.status,
        "scoring_state": session.scoring_state,
        "provisional_analysis": _dump(session.provisional_analysis),
        "provisional_source": None,
        "provisional_ready_at": None,
        "analysis": None,
        "ai_source": None,
        "completed_at": None,
        "audio_object_id": session.audio_object_id,
        "audio_deleted_at": session.audio_deleted_at,
    }
    if isinstance(scoring, ProvisionalReady):
        values["provisional_source"] = scoring.provisional_source
        values["provisional_ready_at"] = scoring.provisional_ready_at
    elif isinstance(scoring, Completed):
        values["analysis"] = _dump(scoring.analysis)
        values["ai_source"] = scoring.ai_source
        values["completed_at"] = scoring.completed_at
    return values


def row_to_session(row: SpeakingSessionRow) -> SpeakingSession:
    provisional = (
        SpeakingAnalysis.model_validate(row.provisional_analysis)
        if row.provisional_analysis is not None
        else None
    )

    if row.scoring_state == COMPLETED:
        scoring: Any = Completed(
            analysis=SpeakingAnalysis.model_validate(row.analysis),
            ai_source=row.ai_source or "",
            completed_at=row.completed_at,
            provisional_analysis=provisional,
        )
    elif row.scoring_state == PROVISIONAL_READY:
        scoring = ProvisionalReady(
            provisional_analysis=provisional,
            provisional_source=row.provisional_source or "formula_v1",
            provisional_ready_at=row.provisional_ready_at,
        )
    else:
        scoring = Processing()

    return SpeakingSession(
        id=row.id,
        question_id=row.question_id,
        user_id=row.user_id,
        transcript=row.transcript or "",
        reference_text=row.reference_text,
        metrics=SpeakingMetrics.model_validate(row.metrics or {}),
        audio_object_id=row.audio_object_id,
        audio_deleted_at=row.audio_deleted_at,
        created_at=row.created_at,
        scoring=scoring,
    )


class SqlSessionRepository:
    def __init__(self, session_factory):
        """
        Args:
            session_factory: Callable returning an AsyncSession
                (see storage.db.make_sessionmaker).
        """
        self._session_factory = session_factory

    async def add(self, session: SpeakingSession) -> None:
        async with self._session_factory() as db:
            db.add(SpeakingSessionRow(id=session.id, created_at=session.created_at, **session_to_values(session)))
            await db.commit()

    async def get(self, session_id: str) -> Optional[SpeakingSession]:
        async with self._session_factory() as db:
            row = await db.get(SpeakingSessionRow, session_id)
            return row_to_session(row) if row is not None else None

    async def save(self, session: SpeakingSession, expected_state: str) -> None:
        async with self._session_factory() as db:
            result = await db.execute(
                update(SpeakingSessionRow)
                .where(
                    SpeakingSessionRow.id == session.id,
                    SpeakingSessionRow.scoring_state == expected_state,
                )
                .values(**session_to_values(session))
            )
            if result.rowcount == 0:
                await db.rollback()
                actual = await db.scalar(
                    select(SpeakingSessionRow.scoring_state).where(SpeakingSessionRow.id == session.id)
                )
                raise StaleSessionState(session.id, expected_state, actual)
            await db.commit()


class SqlTopicRepository:
    def __init__(self, session_factory):
        self._session_factory = session_factory

    async def add(self, question_id: str, prompt: str) -> None:
        async with self._session_factory() as db:
            db.add(SpeakingTopicRow(id=question_id, prompt=prompt))
            await db.commit()

    async def get_prompt(self, question_id: str) -> Optional[str]:
        async with self._session_factory() as db:
            row = await db.get(SpeakingTopicRow, question_id)
            return row.prompt if row is not None else None
