from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Integer, SmallInteger, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.db.models.base import Base


class AsyncMatchRound(Base):
    __tablename__ = "async_match_rounds"
    __table_args__ = (
        CheckConstraint("round_no >= 1", name="ck_async_match_rounds_round_positive"),
        CheckConstraint(
            "correct_option BETWEEN 0 AND 3",
            name="ck_async_match_rounds_correct_option_range",
        ),
        CheckConstraint(
            "initiator_choice IS NULL OR initiator_choice BETWEEN -1 AND 3",
            name="ck_async_match_rounds_initiator_choice_range",
        ),
        CheckConstraint(
            "opponent_choice IS NULL OR opponent_choice BETWEEN -1 AND 3",
            name="ck_async_match_rounds_opponent_choice_range",
        ),
    )

    match_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("async_matches.id", ondelete="CASCADE"),
        primary_key=True,
    )
    round_no: Mapped[int] = mapped_column(Integer, primary_key=True)
    question_id: Mapped[str] = mapped_column(String(64), nullable=False)
    fingerprint: Mapped[str] = mapped_column(String(40), nullable=False)
    topic: Mapped[str] = mapped_column(String(128), nullable=False)
    difficulty: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    correct_option: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    question_payload: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)
    issued_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    initiator_choice: Mapped[int | None] = mapped_column(SmallInteger, nullable=True)
    initiator_correct: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    initiator_response_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    initiator_client_response_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    initiator_answered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    opponent_choice: Mapped[int | None] = mapped_column(SmallInteger, nullable=True)
    opponent_correct: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    opponent_response_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    opponent_client_response_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    opponent_answered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    scored_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
