"""
Session Store - In-memory speaking sessions and topics.

Same contract as the SQL repository: reads return copies, and save() is a
compare-and-set on the scoring state so a session is only moved forward by
the caller that saw its current state.
"""
from __future__ import annotations

import threading
from typing import Dict, Iterable, Optional

from ..errors import StaleSessionState
from ..session import SpeakingSession


class InMemorySessionRepository:
    """
    Thread-safe in-memory session repository.

    Handy for tests and single-process deployments.
    """

    def __init__(self, sessions: Iterable[SpeakingSession] = ()):
        self._sessions: Dict[str, SpeakingSession] = {}
        self._lock = threading.Lock()
        for s in sessions:
            self.add(s)

    def add(self, session: SpeakingSession) -> None:
        """Store a new session, as the capture subsystem does on submit."""
        with self._lock:
            self._sessions[session.id] = session.model_copy(deep=True)

    async def get(self, session_id: str) -> Optional[SpeakingSession]:
        with self._lock:
            stored = self._sessions.get(session_id)
            return stored.model_copy(deep=True) if stored is not None else None

    async def save(self, session: SpeakingSession, expected_state: str) -> None:
        """
        Persist session if the stored scoring state still equals expected_state.

        Raises:
            StaleSessionState: the stored state moved on (or the session is gone).
        """
        with self._lock:
            stored = self._sessions.get(session.id)
            actual = stored.scoring_state if stored is not None else None
            if actual != expected_state:
                raise StaleSessionState(session.id, expected_state, actual)
            self._sessions[session.id] = session.model_copy(deep=True)


class InMemoryTopicRepository:
    def __init__(self, prompts: Optional[Dict[str, str]] = None):
        self._prompts: Dict[str, str] = dict(prompts or {})

    def add(self, question_id: str, prompt: str) -> None:
        self._prompts[question_id] = prompt

    async def get_prompt(self, question_id: str) -> Optional[str]:
        return self._prompts.get(question_id)
