"""
Errors - Typed failures for the speaking assessment engine.

Every stage that can fail raises its own type so callers can tell exactly
which step broke (device, lookup, grading, persistence).
"""
from __future__ import annotations

from typing import Any, Optional


class SpeakingError(Exception):
    """Base class for all speaking engine errors."""


class DeviceUnavailable(SpeakingError):
    """The audio capture device could not be acquired."""


class NotFound(SpeakingError):
    pass


class SessionNotFound(NotFound):
    def __init__(self, session_id: str):
        super().__init__(f"Speaking session not found: {session_id}")
        self.session_id = session_id


class TopicNotFound(NotFound):
    def __init__(self, question_id: str):
        super().__init__(f"Speaking topic not found: {question_id}")
        self.question_id = question_id


class GradingError(SpeakingError):
    """The grading capability failed. The session is left non-terminal."""


class GradingUnavailable(GradingError):
    pass


class MalformedResponse(GradingError):
    def __init__(self, message: str, raw_output: str = ""):
        super().__init__(message)
        self.raw_output = raw_output


class StaleSessionState(SpeakingError):
    """
    Raised by a repository when a compare-and-set save finds the stored
    scoring state differs from the expected one.
    """

    def __init__(self, session_id: str, expected: str, actual: Optional[str]):
        super().__init__(
            f"Session {session_id} is in state {actual!r}, expected {expected!r}"
        )
        self.session_id = session_id
        self.expected = expected
        self.actual = actual


class PersistenceFailure(SpeakingError):
    """
    Saving a scored session failed.

    Carries the pending (already scored) session so the save can be retried
    without invoking the grader again.
    """

    def __init__(self, message: str, pending: Any = None, expected_state: Optional[str] = None):
        super().__init__(message)
        self.pending = pending
        self.expected_state = expected_state
