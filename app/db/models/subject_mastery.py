from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, CheckConstraint, DateTime, Float, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.models.base import Base


class SubjectMastery(Base):
    __tablename__ = "subject_mastery"
    __table_args__ = (
        CheckConstraint(
            "mastery >= 0 AND mastery <= 100",
            name="ck_subject_mastery_mastery_range",
        ),
        CheckConstraint("attempts >= 0", name="ck_subject_mastery_attempts_non_negative"),
        CheckConstraint("correct >= 0 AND correct <= attempts", name="ck_subject_mastery_correct_range"),
        Index("idx_subject_mastery_user_subject", "user_id", "subject"),
    )

    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id"), primary_key=True)
    subject: Mapped[str] = mapped_column(String(64), primary_key=True)
    subtopic: Mapped[str] = mapped_column(String(128), primary_key=True)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    correct: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    mastery: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    last_seen_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
