from __future__ import annotations
from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, DateTime, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# JSONB on Postgres, plain JSON elsewhere (sqlite in tests)
JsonType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    pass


class SpeakingTopicRow(Base):
    __tablename__ = "speaking_topics"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    prompt: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class SpeakingSessionRow(Base):
    """
    One spoken-response attempt.

    scoring_state is the compare-and-set guard for every lifecycle save.
    """
    __tablename__ = "speaking_sessions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    question_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    user_id: Mapped[Optional[str]] = mapped_column(String(64), index=True, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    transcript: Mapped[str] = mapped_column(Text, nullable=False, default="")
    reference_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    metrics: Mapped[dict] = mapped_column(JsonType, nullable=False, default=dict)

    status: Mapped[str] = mapped_column(String(16), nullable=False, default="processing")
    scoring_state: Mapped[str] = mapped_column(String(32), index=True, nullable=False, default="processing")

    provisional_analysis: Mapped[Optional[dict]] = mapped_column(JsonType, nullable=True)
    provisional_source: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    provisional_ready_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    analysis: Mapped[Optional[dict]] = mapped_column(JsonType, nullable=True)
    ai_source: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    audio_object_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    audio_deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
