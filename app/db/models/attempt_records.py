from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    SmallInteger,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.db.models.base import Base


class AttemptRecord(Base):
    __tablename__ = "attempt_records"
    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "match_id",
            "question_id",
            name="uq_attempt_records_user_match_question",
        ),
        CheckConstraint("response_ms >= 0", name="ck_attempt_records_response_ms_non_negative"),
        CheckConstraint("difficulty >= 0", name="ck_attempt_records_difficulty_non_negative"),
        Index("idx_attempt_records_user_answered", "user_id", "answered_at"),
        Index("idx_attempt_records_match", "match_id"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=False)
    match_id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), nullable=False)
    question_id: Mapped[str] = mapped_column(String(64), nullable=False)
    subject: Mapped[str] = mapped_column(String(64), nullable=False)
    subtopic: Mapped[str] = mapped_column(String(128), nullable=False)
    difficulty: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    is_correct: Mapped[bool] = mapped_column(Boolean, nullable=False)
    response_ms: Mapped[int] = mapped_column(Integer, nullable=False)
    mastery_delta: Mapped[float] = mapped_column(Float, nullable=False)
    mastery_after: Mapped[float] = mapped_column(Float, nullable=False)
    answered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("now()"),
    )
