# tests/unit/helper/test_stores.py
"""Unit tests for the in-memory repositories and the local blob store."""

import asyncio

import pytest

from speaking.errors import StaleSessionState
from speaking.helper.blob_store import LocalBlobStore
from speaking.helper.session_store import InMemorySessionRepository, InMemoryTopicRepository
from speaking.session import PROCESSING, ProvisionalReady, SpeakingSession


class TestInMemorySessionRepository:
    def test_get_returns_copy(self, sessions):
        first = asyncio.run(sessions.get("s1"))
        first.transcript = "changed"
        assert asyncio.run(sessions.get("s1")).transcript != "changed"

    def test_get_unknown(self, sessions):
        assert asyncio.run(sessions.get("missing")) is None

    def test_compare_and_set(self, sessions, analysis_factory):
        current = asyncio.run(sessions.get("s1"))
        moved = current.model_copy(update={"scoring": ProvisionalReady(provisional_analysis=analysis_factory())})

        asyncio.run(sessions.save(moved, PROCESSING))
        assert asyncio.run(sessions.get("s1")).scoring_state == "provisional_ready"

        with pytest.raises(StaleSessionState) as exc:
            asyncio.run(sessions.save(moved, PROCESSING))
        assert exc.value.actual == "provisional_ready"

    def test_save_unknown_session(self):
        repo = InMemorySessionRepository()
        with pytest.raises(StaleSessionState):
            asyncio.run(repo.save(SpeakingSession(id="x", question_id="q"), PROCESSING))


def test_topic_repository():
    topics = InMemoryTopicRepository({"q1": "Talk about food."})
    topics.add("q2", "Talk about travel.")
    assert asyncio.run(topics.get_prompt("q2")) == "Talk about travel."
    assert asyncio.run(topics.get_prompt("q3")) is None


class TestLocalBlobStore:
    def test_delete_file(self, tmp_path):
        (tmp_path / "a.webm").write_bytes(b"audio")
        LocalBlobStore(tmp_path).delete("a.webm")
        assert not (tmp_path / "a.webm").exists()

    def test_delete_missing_is_ok(self, tmp_path):
        LocalBlobStore(tmp_path).delete("gone.webm")

    def test_rejects_escaping_ids(self, tmp_path):
        with pytest.raises(ValueError):
            LocalBlobStore(tmp_path / "audio").delete("../secret")
