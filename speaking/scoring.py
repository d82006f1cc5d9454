"""
Scoring Lifecycle - Drives a speaking session from submission to its final score.

    processing -> provisional_ready -> completed
    processing ----------------------> completed

Every transition is persisted with a compare-and-set save against the state
the session was read in. A final score whose save finds a newer non-terminal
state (a provisional score that landed during grading) is rebased onto it
and saved once more. The session object read from the repository is never
mutated; a new copy is built and saved, and that save is the last await of a
transition, so a cancelled call leaves the stored session as it was.
"""
from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from functools import partial
from typing import Optional, Protocol

from pydantic import BaseModel

from .errors import (
    GradingError,
    GradingUnavailable,
    PersistenceFailure,
    SessionNotFound,
    StaleSessionState,
    TopicNotFound,
)
from .fast_score import FORMULA_VERSION, score_transcript
from .grading import Grader
from .helper.env import env_bool, load_repo_dotenv
from .schemas import GradingRequest, ReadingDiagnostics, SpeakingAnalysis
from .session import PROCESSING, Completed, ProvisionalReady, SpeakingSession, utcnow

load_repo_dotenv()

logger = logging.getLogger(__name__)

_SAVE_ATTEMPTS = 2


# -----------------------------------------------------------------------------
# Config
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class ScoringCfg:
    fast_pipeline: bool = env_bool("SPEAKING_FAST_PIPELINE", False)


# -----------------------------------------------------------------------------
# Collaborators
# -----------------------------------------------------------------------------

class SessionRepository(Protocol):
    async def get(self, session_id: str) -> Optional[SpeakingSession]:
        ...

    async def save(self, session: SpeakingSession, expected_state: str) -> None:
        """Persist session only if its stored scoring state is expected_state."""
        ...


class TopicRepository(Protocol):
    async def get_prompt(self, question_id: str) -> Optional[str]:
        ...


class BlobStore(Protocol):
    def delete(self, object_id: str) -> None:
        ...


class ScoreResult(BaseModel):
    skipped: bool
    session: SpeakingSession


# -----------------------------------------------------------------------------
# Lifecycle
# -----------------------------------------------------------------------------

class ScoringLifecycle:
    """
    Scores sessions held in a SessionRepository.

    Args:
        sessions: Session repository with compare-and-set saves.
        topics: Lookup for the question prompt of a session.
        grader: Final grading capability (blocking; runs in an executor).
        blobs: Optional audio store; recorded audio is removed on completion.
        cfg: Pipeline policy.
    """

    def __init__(
        self,
        sessions: SessionRepository,
        topics: TopicRepository,
        grader: Grader,
        blobs: Optional[BlobStore] = None,
        cfg: Optional[ScoringCfg] = None,
    ):
        self.sessions = sessions
        self.topics = topics
        self.grader = grader
        self.blobs = blobs
        self.cfg = cfg or ScoringCfg()

    async def _load(self, session_id: str) -> SpeakingSession:
        session = await self.sessions.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    # -- provisional ---------------------------------------------------------

    async def score_provisional(self, session_id: str) -> ScoreResult:
        """
        Attach a fast heuristic score to a session that is still processing.

        Skipped when the fast pipeline is disabled, the session has already
        left `processing`, or there is no transcript to score.
        """
        session = await self._load(session_id)
        if (
            not self.cfg.fast_pipeline
            or session.scoring_state != PROCESSING
            or not session.transcript.strip()
        ):
            return ScoreResult(skipped=True, session=session)

        provisional = score_transcript(session.transcript, session.metrics)
        updated = session.model_copy(
            update={
                "scoring": ProvisionalReady(
                    provisional_analysis=provisional,
                    provisional_source=FORMULA_VERSION,
                )
            }
        )

        try:
            await self.sessions.save(updated, PROCESSING)
        except StaleSessionState:
            # Final grading (or another provisional run) got there first.
            return ScoreResult(skipped=True, session=await self._load(session_id))

        logger.info(
            "speaking_provisional_score_ready "
            + json.dumps({"session_id": session.id, "band_score": provisional.band_score})
        )
        return ScoreResult(skipped=False, session=updated)

    # -- final ---------------------------------------------------------------

    async def score_session(self, session_id: str) -> ScoreResult:
        """
        Grade a session and move it to `completed`.

        Returns:
            ScoreResult with skipped=True when the session was already completed
            (nothing is graded or saved in that case).

        Raises:
            SessionNotFound: unknown session id.
            TopicNotFound: the session's question does not exist.
            GradingUnavailable / MalformedResponse: grading failed; nothing saved.
            PersistenceFailure: the scored session could not be saved. The
                exception carries it for commit_pending().
        """
        session = await self._load(session_id)
        if session.is_completed:
            return ScoreResult(skipped=True, session=session)

        prompt = await self.topics.get_prompt(session.question_id)
        if prompt is None:
            raise TopicNotFound(session.question_id)

        diagnostics = None
        if session.reference_text:
            diagnostics = ReadingDiagnostics.compute(session.reference_text, session.transcript)

        request = GradingRequest(
            transcript=session.transcript,
            reference_prompt=prompt,
            metrics=session.metrics,
            provisional_analysis=session.provisional_analysis,
            diagnostics=diagnostics,
        )
        analysis = await self._grade(request)
        if diagnostics is not None:
            analysis = analysis.model_copy(update={"diagnostics": diagnostics})

        completed = await self._complete(session, analysis)
        result = await self._commit(completed, session.scoring_state)
        if not result.skipped:
            self._log_final(result.session)
        return result

    async def commit_pending(self, failure: PersistenceFailure) -> ScoreResult:
        """
        Retry the save of an already graded session without grading again.

        The stored session is read first, so a provisional score that landed
        after the failed save is kept and the save targets the current state.
        """
        if failure.pending is None or failure.expected_state is None:
            raise ValueError("PersistenceFailure carries no pending session")

        pending = failure.pending
        stored = await self._load(pending.id)
        if stored.is_completed:
            return ScoreResult(skipped=True, session=stored)

        result = await self._commit(self._rebase(pending, stored), stored.scoring_state)
        if not result.skipped:
            self._log_final(result.session)
        return result

    # -- internals -----------------------------------------------------------

    async def _grade(self, request: GradingRequest) -> SpeakingAnalysis:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, partial(self.grader.grade, request))
        except GradingError:
            raise
        except Exception as e:
            raise GradingUnavailable(f"Grader failed ({self.grader.source}): {e}") from e

    async def _complete(self, session: SpeakingSession, analysis: SpeakingAnalysis) -> SpeakingSession:
        update = {
            "transcript": analysis.transcript or session.transcript,
            "scoring": Completed(
                analysis=analysis,
                ai_source=self.grader.source,
                provisional_analysis=session.provisional_analysis,
            ),
        }

        if session.audio_object_id and self.blobs is not None:
            loop = asyncio.get_running_loop()
            try:
                await loop.run_in_executor(None, partial(self.blobs.delete, session.audio_object_id))
            except Exception as e:
                logger.warning(f"Audio cleanup failed for session {session.id}: {e}")
            else:
                update["audio_object_id"] = None
                update["audio_deleted_at"] = utcnow()

        return session.model_copy(update=update)

    @staticmethod
    def _rebase(pending: SpeakingSession, stored: SpeakingSession) -> SpeakingSession:
        """Carry the stored provisional score into a pending completed session."""
        scoring = pending.scoring.model_copy(update={"provisional_analysis": stored.provisional_analysis})
        return pending.model_copy(update={"scoring": scoring})

    async def _commit(self, pending: SpeakingSession, expected_state: str) -> ScoreResult:
        """
        Compare-and-set save of a completed session.

        If the stored session moved to another non-terminal state meanwhile
        (a provisional score landed during grading), the save is retried once
        against that state. A session completed elsewhere wins.
        """
        attempt = 1
        while True:
            try:
                await self.sessions.save(pending, expected_state)
                return ScoreResult(skipped=False, session=pending)
            except StaleSessionState as e:
                stored = await self.sessions.get(pending.id)
                if stored is not None and stored.is_completed:
                    logger.info(f"Session {pending.id} already completed elsewhere, keeping stored result")
                    return ScoreResult(skipped=True, session=stored)
                if stored is None or attempt >= _SAVE_ATTEMPTS:
                    raise PersistenceFailure(str(e), pending=pending, expected_state=expected_state) from e
                attempt += 1
                pending = self._rebase(pending, stored)
                expected_state = stored.scoring_state
            except Exception as e:
                logger.error(f"Saving scored session {pending.id} failed: {e}")
                raise PersistenceFailure(
                    f"Could not save session {pending.id}: {e}",
                    pending=pending,
                    expected_state=expected_state,
                ) from e

    def _log_final(self, session: SpeakingSession) -> None:
        created = session.created_at
        if created.tzinfo is None:
            created = created.replace(tzinfo=utcnow().tzinfo)
        submit_to_final_ms = max(0, int((utcnow() - created).total_seconds() * 1000))

        band_diff = None
        provisional = session.provisional_analysis
        if provisional is not None and session.analysis is not None:
            band_diff = abs(session.analysis.band_score - provisional.band_score)

        logger.info(
            json.dumps(
                {
                    "event": "speaking_final_score_ready",
                    "session_id": session.id,
                    "ai_source": session.ai_source,
                    "submit_to_final_ms": submit_to_final_ms,
                    "provisional_final_band_diff": band_diff,
                }
            )
        )
